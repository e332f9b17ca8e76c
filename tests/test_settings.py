import pytest

from idealplots.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from idealplots.db.init_db import bootstrap_admin
from idealplots.models import AuditLog, SystemSetting, User
from idealplots.models.enums import SettingType, UserRole
from idealplots.services.settings_services import DEFAULT_SETTINGS, SettingsServices
from tests import factories


@pytest.mark.asyncio
async def test_seed_defaults_is_idempotent(database):
    assert await database.run(SettingsServices.seed_defaults) == len(DEFAULT_SETTINGS)
    assert await database.run(SettingsServices.seed_defaults) == 0

    assert await database.run(SettingsServices.get_bool, "auto_assign_agents") is True
    assert await database.run(SettingsServices.get_value, "max_properties_per_user") == 10
    assert await database.run(SettingsServices.get_value, "missing", "fallback") == "fallback"


@pytest.mark.asyncio
async def test_admin_changes_setting(database):
    admin = await database.run(factories.create_admin)
    await database.run(SettingsServices.seed_defaults)

    setting = await database.run(SettingsServices.set_setting, admin.id, "auto_assign_agents", False)

    assert setting.setting_value == "false"
    assert await database.run(SettingsServices.get_bool, "auto_assign_agents", True) is False
    audit = (await database.run(factories.rows, AuditLog))[0]
    assert audit.action == "update_setting"
    assert audit.old_values == {"setting_value": "true"}


@pytest.mark.asyncio
async def test_setting_type_is_enforced(database):
    admin = await database.run(factories.create_admin)
    await database.run(SettingsServices.seed_defaults)

    with pytest.raises(ValidationError):
        await database.run(SettingsServices.set_setting, admin.id, "auto_assign_agents", "maybe")
    with pytest.raises(NotFoundError):
        await database.run(SettingsServices.set_setting, admin.id, "brand_new", "x")

    created = await database.run(
        SettingsServices.set_setting, admin.id, "featured_cities", ["Kochi", "Kannur"], SettingType.JSON
    )
    assert created.setting_value == '["Kochi", "Kannur"]'
    assert await database.run(SettingsServices.get_value, "featured_cities") == ["Kochi", "Kannur"]


@pytest.mark.asyncio
async def test_only_admins_change_settings(database):
    user = await database.run(factories.create_user)

    with pytest.raises(AuthorizationError):
        await database.run(SettingsServices.set_setting, user.id, "site_name", "Other", SettingType.STRING)
    assert await database.run(factories.count, SystemSetting) == 0


@pytest.mark.asyncio
async def test_bootstrap_admin_runs_once(database):
    first = await database.run(bootstrap_admin, "Root", "root@idealplots.in", "+919000000000", factories.H60)
    second = await database.run(bootstrap_admin, "Root", "root@idealplots.in", "+919000000000", factories.H60)

    assert first.id == second.id
    admin = await database.run(factories.get, User, first.id)
    assert admin.role == UserRole.ADMIN
    assert admin.is_active_admin
    assert await database.run(factories.count, User) == 1

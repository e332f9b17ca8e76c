# idealplots/services/settings_services.py
import json
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.core.exceptions import NotFoundError, ValidationError
from idealplots.crud import audit_logs as audit_crud
from idealplots.crud import settings as settings_crud
from idealplots.models import SystemSetting
from idealplots.models.enums import AuditSeverity, SettingType
from idealplots.services.access import require_admin

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = (
    ("site_name", "Ideal Plots", SettingType.STRING, "Website name", True),
    ("site_description", "Premium Real Estate Platform in Kerala", SettingType.STRING, "Website description", True),
    ("contact_email", "info@idealplots.in", SettingType.STRING, "Contact email", True),
    ("contact_phone", "+91 9876543210", SettingType.STRING, "Contact phone", True),
    ("max_properties_per_user", "10", SettingType.NUMBER, "Maximum properties per user", False),
    ("property_approval_required", "true", SettingType.BOOLEAN, "Require admin approval for properties", False),
    ("auto_assign_agents", "true", SettingType.BOOLEAN, "Automatically assign agents to new users", False),
    ("require_account_for_favorites", "true", SettingType.BOOLEAN, "Users must create account to favorite", True),
    ("offer_account_creation_on_enquiry", "true", SettingType.BOOLEAN, "Offer account creation during enquiry", True),
)


def parse_setting(setting: SystemSetting) -> Any:
    raw = setting.setting_value
    if raw is None:
        return None
    if setting.setting_type == SettingType.BOOLEAN:
        return raw.strip().lower() in ("true", "1", "yes", "on")
    if setting.setting_type == SettingType.NUMBER:
        number = float(raw)
        return int(number) if number.is_integer() else number
    if setting.setting_type == SettingType.JSON:
        return json.loads(raw)
    return raw


def serialize_setting(value: Any, setting_type: SettingType) -> Optional[str]:
    if value is None:
        return None
    if setting_type == SettingType.BOOLEAN:
        if not isinstance(value, bool):
            raise ValidationError("Boolean setting requires true or false", details={"value": value})
        return "true" if value else "false"
    if setting_type == SettingType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError("Number setting requires a numeric value", details={"value": value})
        return str(value)
    if setting_type == SettingType.JSON:
        return json.dumps(value)
    return str(value)


class SettingsServices:

    @staticmethod
    async def get_value(db: AsyncSession, key: str, default: Any = None) -> Any:
        setting = await settings_crud.get_setting(db, key)
        if setting is None:
            return default
        value = parse_setting(setting)
        return default if value is None else value

    @staticmethod
    async def get_bool(db: AsyncSession, key: str, default: bool = False) -> bool:
        return bool(await SettingsServices.get_value(db, key, default))

    @staticmethod
    async def set_setting(
        db: AsyncSession,
        admin_id: int,
        key: str,
        value: Any,
        setting_type: Optional[SettingType] = None,
    ) -> SystemSetting:
        """
        Create or change a system setting on behalf of an admin.

        Workflow:
        1. Verify the actor is an active admin.
        2. Serialize the value according to the setting's type (existing
           settings keep their type).
        3. Write the setting and append an audit entry with old/new values.
        """

        # 1. --- Authorize ---
        admin = await require_admin(db, admin_id)

        # 2. --- Serialize & write ---
        setting = await settings_crud.get_setting(db, key)
        old_value = None
        if setting is None:
            if setting_type is None:
                raise NotFoundError(f"Setting {key} does not exist; a setting_type is required to create it")
            setting = await settings_crud.create_setting(
                db, key, setting_type=setting_type, setting_value=serialize_setting(value, setting_type)
            )
        else:
            old_value = setting.setting_value
            setting.setting_value = serialize_setting(value, setting.setting_type)
            await db.flush()

        # 3. --- Audit ---
        await audit_crud.create_audit_log(
            db,
            user_id=admin.id,
            action="update_setting",
            table_name="system_settings",
            record_id=setting.id,
            old_values={"setting_value": old_value},
            new_values={"setting_value": setting.setting_value},
            description=f"System setting {key} changed",
            severity=AuditSeverity.MEDIUM,
        )
        logger.info("Setting %s changed by admin %s", key, admin.id)
        return setting

    @staticmethod
    async def seed_defaults(db: AsyncSession) -> int:
        created = 0
        for key, value, setting_type, description, is_public in DEFAULT_SETTINGS:
            if await settings_crud.get_setting(db, key) is None:
                await settings_crud.create_setting(
                    db,
                    key,
                    setting_value=value,
                    setting_type=setting_type,
                    description=description,
                    is_public=is_public,
                )
                created += 1
        return created

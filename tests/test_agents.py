import pytest

from idealplots.core.exceptions import CheckViolationError, StateTransitionError, ValidationError
from idealplots.models import AdminCreatedNotification, AuditLog, PendingApproval, User
from idealplots.models.enums import (
    ApprovalStatus, ApprovalType, NotificationChannel, UserRole, UserStatus,
)
from idealplots.schemas.agent import AgentCreateRequest
from idealplots.services.agent_services import (
    DUPLICATE_CONTACT, RESET_NOT_REQUIRED, AgentServices, issue_temp_credential,
)
from idealplots.services.access import INVALID_ADMIN
from tests import factories


def agent_request(**overrides) -> AgentCreateRequest:
    values = {
        "name": "Anjali Menon",
        "email": "anjali@coastalrealty.in",
        "phone": "+919847000111",
        "temp_password": "Welcome@123",
        "license_number": "KL-RERA-0042",
        "agency_name": "Coastal Realty",
    }
    values.update(overrides)
    return AgentCreateRequest(**values)


# =============================================================================
# Provisioning
# =============================================================================
@pytest.mark.asyncio
async def test_admin_create_agent(database):
    admin = await database.run(factories.create_admin)

    result = await database.run(AgentServices.admin_create_agent, admin.id, agent_request(), factories.H60)

    assert result.success is True
    agent = await database.run(factories.get, User, result.agent_id)
    assert agent.role == UserRole.AGENT
    assert agent.status == UserStatus.PENDING_VERIFICATION
    assert agent.is_buyer is False
    assert len(agent.email_verification_token) == 32
    assert len(agent.phone_verification_code) == 6
    assert agent.phone_verification_code.isdigit()

    notification = await database.run(factories.get, AdminCreatedNotification, result.notification_id)
    assert notification.user_id == agent.id
    assert notification.created_by_admin_id == admin.id
    assert notification.password_reset_required is True
    assert (notification.email_sent, notification.sms_sent) == (False, False)
    assert "Temporary Password: Welcome@123" in notification.email_body
    assert "anjali@coastalrealty.in" in notification.sms_message

    audit = (await database.run(factories.rows, AuditLog, AuditLog.action == "admin_create_agent"))[0]
    assert audit.severity.value == "medium"
    assert audit.new_values["user_type"] == "agent"

    approval = (await database.run(factories.rows, PendingApproval))[0]
    assert approval.approval_type == ApprovalType.USER_VERIFICATION
    assert approval.record_id == agent.id
    assert approval.status == ApprovalStatus.APPROVED
    assert approval.approved_by == admin.id


@pytest.mark.asyncio
async def test_generated_temp_password_reaches_outbox(database):
    admin = await database.run(factories.create_admin)
    seen = []

    def recording_hasher(plain):
        seen.append(plain)
        return factories.H60

    request, credential_hash = issue_temp_credential(agent_request(temp_password=None), recording_hasher)
    result = await database.run(AgentServices.admin_create_agent, admin.id, request, credential_hash)

    notification = await database.run(factories.get, AdminCreatedNotification, result.notification_id)
    assert len(seen) == 1
    assert notification.temp_password == seen[0]
    assert seen[0] in notification.email_body


@pytest.mark.asyncio
async def test_provisioning_requires_an_issued_temp_password(database):
    admin = await database.run(factories.create_admin)

    with pytest.raises(ValidationError):
        await database.run(
            AgentServices.admin_create_agent, admin.id, agent_request(temp_password=None), factories.H60
        )
    assert await database.run(factories.count, User) == 1


@pytest.mark.asyncio
async def test_duplicate_contact_writes_nothing(database):
    admin = await database.run(factories.create_admin)
    await database.run(factories.create_user, phone="+919847000111")
    users_before = await database.run(factories.count, User)

    result = await database.run(AgentServices.admin_create_agent, admin.id, agent_request(), factories.H60)

    assert result.success is False
    assert result.error == DUPLICATE_CONTACT
    assert await database.run(factories.count, User) == users_before
    assert await database.run(factories.count, AuditLog) == 0


@pytest.mark.asyncio
async def test_non_admin_cannot_provision(database):
    agent = await database.run(factories.create_agent)

    result = await database.run(AgentServices.admin_create_agent, agent.id, agent_request(), factories.H60)

    assert result.success is False
    assert result.error == INVALID_ADMIN
    assert await database.run(factories.count, AdminCreatedNotification) == 0


@pytest.mark.asyncio
async def test_short_hash_is_a_check_violation(database):
    admin = await database.run(factories.create_admin)

    with pytest.raises(CheckViolationError):
        await database.run(
            AgentServices.admin_create_agent, admin.id, agent_request(), "too-short"
        )
    assert await database.run(factories.count, User) == 1


@pytest.mark.asyncio
async def test_agent_without_license_is_rejected_by_the_schema(database):
    with pytest.raises(CheckViolationError):
        await database.run(factories.create_user, role=UserRole.AGENT, license_number=None)


# =============================================================================
# First login
# =============================================================================
@pytest.mark.asyncio
async def test_first_login_reset_succeeds_once(database):
    admin = await database.run(factories.create_admin)
    created = await database.run(AgentServices.admin_create_agent, admin.id, agent_request(), factories.H60)
    new_hash = "$2b$12$" + "R" * 53

    first = await database.run(AgentServices.agent_first_login_reset, created.agent_id, new_hash)
    second = await database.run(AgentServices.agent_first_login_reset, created.agent_id, new_hash)

    assert first.success is True
    assert second.success is False
    assert second.message == RESET_NOT_REQUIRED

    agent = await database.run(factories.get, User, created.agent_id)
    assert agent.status == UserStatus.ACTIVE
    assert agent.credential_hash == new_hash
    assert agent.email_verified_at is not None
    assert agent.phone_verified_at is not None
    assert agent.email_verification_token is None

    notification = await database.run(factories.get, AdminCreatedNotification, created.notification_id)
    assert notification.password_reset_required is False


@pytest.mark.asyncio
async def test_first_login_reset_for_non_agent(database):
    user = await database.run(factories.create_user)

    result = await database.run(AgentServices.agent_first_login_reset, user.id, factories.H60)

    assert result.success is False


# =============================================================================
# Outbox delivery
# =============================================================================
@pytest.mark.asyncio
async def test_mark_notification_sent_per_channel(database):
    admin = await database.run(factories.create_admin)
    created = await database.run(AgentServices.admin_create_agent, admin.id, agent_request(), factories.H60)

    email = await database.run(
        AgentServices.mark_notification_sent, admin.id, created.notification_id, NotificationChannel.EMAIL
    )
    assert email.email_sent is True
    assert email.email_sent_at is not None
    assert email.sms_sent is False

    with pytest.raises(StateTransitionError):
        await database.run(
            AgentServices.mark_notification_sent, admin.id, created.notification_id, NotificationChannel.EMAIL
        )

    sms = await database.run(
        AgentServices.mark_notification_sent, admin.id, created.notification_id, NotificationChannel.SMS
    )
    assert (sms.email_sent, sms.sms_sent) == (True, True)

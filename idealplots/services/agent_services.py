# idealplots/services/agent_services.py
import logging
from typing import Callable, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.core.exceptions import CheckViolationError, NotFoundError, StateTransitionError, ValidationError
from idealplots.core.security import (
    MIN_CREDENTIAL_HASH_LENGTH, generate_phone_code, generate_temp_password, generate_verification_token,
    hash_credential,
)
from idealplots.crud import approvals as approval_crud
from idealplots.crud import audit_logs as audit_crud
from idealplots.crud import notifications as notification_crud
from idealplots.crud import users as user_crud
from idealplots.db.base_class import utcnow
from idealplots.models import AdminCreatedNotification, UserVerification
from idealplots.models.enums import (
    ApprovalPriority, ApprovalStatus, AuditSeverity, NotificationChannel, UserRole, UserStatus,
)
from idealplots.schemas.agent import AgentCreateRequest, AgentCreationResult, FirstLoginResetResult
from idealplots.services import maintainers
from idealplots.services.access import INVALID_ADMIN, require_admin
from idealplots.services.notification_templates import render_agent_welcome

logger = logging.getLogger(__name__)

DUPLICATE_CONTACT = "User with this email or phone number already exists"
RESET_NOT_REQUIRED = "Agent not found or password reset not required"
RESET_DONE = "Password successfully updated and account activated"


def require_credential_hash(credential_hash: str) -> str:
    if not credential_hash or len(credential_hash) < MIN_CREDENTIAL_HASH_LENGTH:
        raise CheckViolationError(
            f"Credential hash must be at least {MIN_CREDENTIAL_HASH_LENGTH} characters"
        )
    return credential_hash


def issue_temp_credential(
    request: AgentCreateRequest, hasher: Callable[[str], str] = hash_credential
) -> Tuple[AgentCreateRequest, str]:
    """
    Fill in a generated temporary password when the admin supplied none and
    hash it. bcrypt is slow and blocking: call this from a worker thread and
    before the provisioning transaction opens.
    """
    temp_password = request.temp_password or generate_temp_password()
    return request.model_copy(update={"temp_password": temp_password}), hasher(temp_password)


class AgentServices:

    @staticmethod
    async def admin_create_agent(
        db: AsyncSession,
        admin_id: int,
        request: AgentCreateRequest,
        credential_hash: str,
    ) -> AgentCreationResult:
        """
        Provision an agent account on behalf of an admin.

        Workflow:
        1. Verify the admin exists and is active.
        2. Reject when a user with the same email or phone exists.
        3. Check the pre-computed hash of the temporary credential (see
           `issue_temp_credential`).
        4. Insert the agent (pending_verification, verification token/code).
        5. Queue the welcome notification in the outbox.
        6. Append the audit entry.
        7. Record the creation as an already-approved user_verification.

        Precondition failures return `success=False` before anything is
        written; the facade translates a concurrent duplicate insert into the
        same shape.
        """

        # 1. --- Admin ---
        admin = await user_crud.get_active_admin(db, admin_id)
        if admin is None:
            logger.warning("Agent provisioning refused for user %s", admin_id)
            return AgentCreationResult(success=False, error=INVALID_ADMIN)

        # 2. --- Duplicate contact ---
        if await user_crud.find_user_by_contact(db, request.email, request.phone) is not None:
            return AgentCreationResult(success=False, error=DUPLICATE_CONTACT)

        # 3. --- Credential ---
        temp_password = request.temp_password
        if not temp_password:
            raise ValidationError("A temporary password must be issued before provisioning")
        credential_hash = require_credential_hash(credential_hash)

        # 4. --- Agent user ---
        agent = await user_crud.create_user(
            db,
            name=request.name,
            email=request.email,
            phone=request.phone,
            credential_hash=credential_hash,
            role=UserRole.AGENT,
            status=UserStatus.PENDING_VERIFICATION,
            is_buyer=False,
            is_seller=False,
            license_number=request.license_number,
            agency_name=request.agency_name,
            commission_rate=request.commission_rate,
            experience_years=request.experience_years,
            specialization=request.specialization,
            agent_bio=request.agent_bio,
            email_verification_token=generate_verification_token(),
            phone_verification_code=generate_phone_code(),
        )

        # 5. --- Outbox ---
        rendered = render_agent_welcome(request.name, request.email, temp_password)
        notification = await notification_crud.create_notification(
            db,
            user_id=agent.id,
            created_by_admin_id=admin.id,
            temp_password=temp_password,
            password_reset_required=True,
            email_sent=False,
            sms_sent=False,
            email_subject=rendered.email_subject,
            email_body=rendered.email_body,
            sms_message=rendered.sms_message,
        )

        # 6. --- Audit ---
        await audit_crud.create_audit_log(
            db,
            user_id=admin.id,
            action="admin_create_agent",
            table_name="users",
            record_id=agent.id,
            new_values={
                "name": request.name,
                "email": request.email,
                "phone": request.phone,
                "user_type": UserRole.AGENT.value,
                "license_number": request.license_number,
                "agency_name": request.agency_name,
            },
            description=f"Admin created agent account for: {request.name} ({request.email})",
            severity=AuditSeverity.MEDIUM,
        )

        # 7. --- Approval record ---
        now = utcnow()
        await approval_crud.create_approval(
            db,
            UserVerification(agent.id),
            submitted_by=admin.id,
            submission_data={
                "created_by_admin": True,
                "agent_name": request.name,
                "agent_email": request.email,
                "license_number": request.license_number,
                "agency_name": request.agency_name,
            },
            status=ApprovalStatus.APPROVED,
            priority=ApprovalPriority.NORMAL,
            approved_by=admin.id,
            approved_at=now,
            admin_notes="Agent account created by admin",
        )

        logger.info("Agent %s provisioned by admin %s", agent.id, admin.id)
        return AgentCreationResult(
            success=True,
            agent_id=agent.id,
            notification_id=notification.id,
            message="Agent account created successfully",
        )

    @staticmethod
    async def agent_first_login_reset(
        db: AsyncSession, agent_id: int, new_credential_hash: str
    ) -> FirstLoginResetResult:
        """
        Complete the first login of an admin-provisioned agent. Succeeds once:
        the outbox row's `password_reset_required` flag is cleared here.
        """
        agent = await user_crud.get_user_for_update(db, agent_id)
        notification = None
        if agent is not None and agent.role == UserRole.AGENT and agent.deleted_at is None:
            notification = await notification_crud.lock_pending_reset(db, agent_id)
        if notification is None:
            return FirstLoginResetResult(success=False, message=RESET_NOT_REQUIRED)

        now = utcnow()
        previous_email_verified_at = agent.email_verified_at
        agent.credential_hash = require_credential_hash(new_credential_hash)
        agent.status = UserStatus.ACTIVE
        agent.email_verified_at = now
        agent.phone_verified_at = now
        agent.email_verification_token = None
        agent.phone_verification_code = None
        notification.password_reset_required = False
        await maintainers.auto_assign_agent(db, agent, previous_email_verified_at)

        await audit_crud.create_audit_log(
            db,
            user_id=agent.id,
            action="first_login_password_reset",
            table_name="users",
            record_id=agent.id,
            new_values={"status": UserStatus.ACTIVE.value, "password_reset_required": False},
            description="Agent completed first login password reset",
            severity=AuditSeverity.MEDIUM,
        )
        logger.info("Agent %s completed first login reset", agent.id)
        return FirstLoginResetResult(success=True, message=RESET_DONE)

    @staticmethod
    async def mark_notification_sent(
        db: AsyncSession, admin_id: int, notification_id: int, channel: NotificationChannel
    ) -> AdminCreatedNotification:
        """Delivery worker callback: flag one channel of an outbox row as sent."""
        await require_admin(db, admin_id)
        notification = await notification_crud.lock_notification(db, notification_id)
        if notification is None:
            raise NotFoundError("Notification not found")

        now = utcnow()
        if channel == NotificationChannel.EMAIL:
            if notification.email_sent:
                raise StateTransitionError("Email already marked as sent")
            notification.email_sent = True
            notification.email_sent_at = now
        else:
            if notification.sms_sent:
                raise StateTransitionError("SMS already marked as sent")
            notification.sms_sent = True
            notification.sms_sent_at = now
        await db.flush()
        return notification

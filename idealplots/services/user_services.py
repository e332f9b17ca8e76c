# idealplots/services/user_services.py
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.core.exceptions import (
    AuthorizationError, DuplicateKeyError, NotFoundError, StateTransitionError, ValidationError,
)
from idealplots.core.security import generate_phone_code, generate_verification_token
from idealplots.crud import assignments as assignment_crud
from idealplots.crud import audit_logs as audit_crud
from idealplots.crud import users as user_crud
from idealplots.db.base_class import utcnow
from idealplots.models import User, UserAgentAssignment
from idealplots.models.enums import (
    AssignmentStatus, AssignmentType, AuditSeverity, UserRole, UserStatus,
)
from idealplots.schemas.user import UserRegistration, UserUpdate
from idealplots.services import maintainers
from idealplots.services.access import require_actor, require_admin
from idealplots.services.agent_services import require_credential_hash

logger = logging.getLogger(__name__)

ADMIN_ONLY_FIELDS = {"status", "email_verified_at", "phone_verified_at"}


async def _locked_user(db: AsyncSession, user_id: int) -> User:
    user = await user_crud.get_user_for_update(db, user_id)
    if user is None or user.deleted_at is not None:
        raise NotFoundError("User not found")
    return user


async def _require_agent(db: AsyncSession, agent_id: int, user_id: int) -> User:
    if agent_id == user_id:
        raise ValidationError("A user cannot be their own agent")
    agent = await user_crud.get_active_agent(db, agent_id)
    if agent is None:
        raise ValidationError("Preferred agent must be an active agent", details={"agent_id": agent_id})
    return agent


def _activate_if_verified(user: User) -> None:
    if (
        user.status == UserStatus.PENDING_VERIFICATION
        and user.email_verified_at is not None
        and user.phone_verified_at is not None
    ):
        user.status = UserStatus.ACTIVE


class UserServices:

    @staticmethod
    async def register_user(db: AsyncSession, request: UserRegistration, credential_hash: str) -> User:
        if await user_crud.find_user_by_contact(db, request.email, request.phone) is not None:
            raise DuplicateKeyError("User with this email or phone number already exists")

        fields = request.model_dump(exclude={"password"})
        user = await user_crud.create_user(
            db,
            **fields,
            credential_hash=require_credential_hash(credential_hash),
            role=UserRole.USER,
            status=UserStatus.PENDING_VERIFICATION,
            email_verification_token=generate_verification_token(),
            phone_verification_code=generate_phone_code(),
        )
        logger.info("User %s registered", user.id)
        return user

    @staticmethod
    async def update_user(db: AsyncSession, actor_id: int, user_id: int, patch: UserUpdate) -> User:
        """
        Partial profile update by the user themself or by an admin.

        Workflow:
        1. Resolve the actor; only self or an active admin may write.
        2. Lock the user and validate `preferred_agent_id` (must be an active
           agent, never the user).
        3. Apply the fields present in the payload.
        4. Activate once both email and phone are verified.
        5. Run the auto agent assignment when email verification just landed.
        6. Audit changes made by an admin.
        """

        # 1. --- Actor ---
        actor = await require_actor(db, actor_id)
        acting_admin = actor.is_active_admin
        if actor.id != user_id and not acting_admin:
            logger.warning("User %s tried to update user %s", actor_id, user_id)
            raise AuthorizationError("You can only update your own profile")

        changes = patch.model_dump(exclude_unset=True)
        if not acting_admin and ADMIN_ONLY_FIELDS & changes.keys():
            raise AuthorizationError("Only admins can change account status or verification")

        # 2. --- Target & agent reference ---
        user = await _locked_user(db, user_id)
        new_agent_id = changes.get("preferred_agent_id")
        if new_agent_id is not None and new_agent_id != user.preferred_agent_id:
            await _require_agent(db, new_agent_id, user.id)

        budget_min = changes.get("budget_min", user.budget_min)
        budget_max = changes.get("budget_max", user.budget_max)
        if budget_min is not None and budget_max is not None and budget_min > budget_max:
            raise ValidationError("budget_min must not exceed budget_max")

        # 3. --- Apply ---
        previous_email_verified_at = user.email_verified_at
        previous_agent_id = user.preferred_agent_id
        old_values = {key: audit_crud.audit_value(getattr(user, key)) for key in changes}
        for key, value in changes.items():
            setattr(user, key, value)

        if "preferred_agent_id" in changes and new_agent_id != previous_agent_id:
            await assignment_crud.deactivate_user_assignments(db, user.id)
            if new_agent_id is not None:
                await assignment_crud.create_assignment(
                    db, user.id, new_agent_id, AssignmentType.MANUAL, "Preferred agent chosen on profile"
                )

        # 4. --- Activation ---
        _activate_if_verified(user)
        await db.flush()

        # 5. --- Auto assignment ---
        await maintainers.auto_assign_agent(db, user, previous_email_verified_at)

        # 6. --- Audit ---
        if acting_admin and actor.id != user.id:
            await audit_crud.create_audit_log(
                db,
                user_id=actor.id,
                action="update_user",
                table_name="users",
                record_id=user.id,
                old_values=old_values,
                new_values={key: audit_crud.audit_value(value) for key, value in changes.items()},
                description=f"Admin updated user {user.email}",
                severity=AuditSeverity.MEDIUM,
            )
        return user

    @staticmethod
    async def verify_email(db: AsyncSession, user_id: int, token: str) -> User:
        user = await _locked_user(db, user_id)
        if user.email_verified_at is not None:
            return user
        if not user.email_verification_token or token != user.email_verification_token:
            raise ValidationError("Invalid verification token")

        previous_email_verified_at = user.email_verified_at
        user.email_verified_at = utcnow()
        user.email_verification_token = None
        _activate_if_verified(user)
        await db.flush()
        await maintainers.auto_assign_agent(db, user, previous_email_verified_at)
        return user

    @staticmethod
    async def verify_phone(db: AsyncSession, user_id: int, code: str) -> User:
        user = await _locked_user(db, user_id)
        if user.phone_verified_at is not None:
            return user
        if not user.phone_verification_code or code != user.phone_verification_code:
            raise ValidationError("Invalid verification code")

        user.phone_verified_at = utcnow()
        user.phone_verification_code = None
        _activate_if_verified(user)
        await db.flush()
        return user

    @staticmethod
    async def assign_agent_to_user(
        db: AsyncSession, admin_id: int, user_id: int, agent_id: int, reason: Optional[str] = None
    ) -> UserAgentAssignment:
        """
        Manually route a user to an agent.

        Workflow:
        1. Validate the admin, the user and the agent.
        2. Retire the user's active assignments.
        3. Insert the manual assignment and point preferred_agent_id at it.
        4. Audit.
        """

        # 1. --- Validate ---
        admin = await require_admin(db, admin_id)
        user = await _locked_user(db, user_id)
        agent = await _require_agent(db, agent_id, user.id)

        # 2. --- Retire earlier assignments ---
        previous_agent_id = user.preferred_agent_id
        retired = await assignment_crud.deactivate_user_assignments(db, user.id)

        # 3. --- New assignment ---
        assignment = await assignment_crud.create_assignment(
            db, user.id, agent.id, AssignmentType.MANUAL, reason
        )
        user.preferred_agent_id = agent.id
        await db.flush()

        # 4. --- Audit ---
        await audit_crud.create_audit_log(
            db,
            user_id=admin.id,
            action="assign_agent",
            table_name="user_agent_assignments",
            record_id=assignment.id,
            old_values={"preferred_agent_id": previous_agent_id},
            new_values={"preferred_agent_id": agent.id, "reason": reason},
            description=f"Assigned {agent.name} to {user.name} ({retired} earlier assignment(s) retired)",
            severity=AuditSeverity.MEDIUM,
        )
        logger.info("User %s manually assigned to agent %s by admin %s", user.id, agent.id, admin.id)
        return assignment

    @staticmethod
    async def end_assignment(
        db: AsyncSession, actor_id: int, assignment_id: int, status: AssignmentStatus
    ) -> UserAgentAssignment:
        if status == AssignmentStatus.ACTIVE:
            raise ValidationError("An assignment can only end as completed or inactive")

        actor = await require_actor(db, actor_id)
        assignment = await assignment_crud.get_assignment_for_update(db, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment not found")
        if actor.id not in (assignment.user_id, assignment.agent_id) and not actor.is_active_admin:
            raise AuthorizationError("Not allowed to end this assignment")
        if assignment.status != AssignmentStatus.ACTIVE:
            raise StateTransitionError(f"Assignment is already {assignment.status.value}")

        assignment.status = status
        assignment.completed_at = utcnow()

        user = await _locked_user(db, assignment.user_id)
        if user.preferred_agent_id == assignment.agent_id:
            user.preferred_agent_id = None
        await db.flush()
        return assignment
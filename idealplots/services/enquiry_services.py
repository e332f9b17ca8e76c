# idealplots/services/enquiry_services.py
import logging
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.core.config import settings
from idealplots.core.exceptions import (
    AuthorizationError, NotFoundError, StateTransitionError, ValidationError,
)
from idealplots.core.security import generate_phone_code, generate_verification_token
from idealplots.crud import audit_logs as audit_crud
from idealplots.crud import enquiries as enquiry_crud
from idealplots.crud import listings as listing_crud
from idealplots.crud import users as user_crud
from idealplots.db.base_class import utcnow
from idealplots.models import Enquiry, EnquiryNote, User
from idealplots.models.enums import (
    AuditSeverity, CommunicationMethod, EnquiryStatus, NoteType, UserRole, UserStatus,
)
from idealplots.schemas.enquiry import (
    EnquiryIntake, EnquiryIntakeResult, EnquiryNoteCreate, EnquiryPatch, EnquiryTracking,
)
from idealplots.services import maintainers
from idealplots.services.access import require_actor, require_admin
from idealplots.services.identifiers import insert_with_unique_retry, ticket_numbers
from idealplots.services.settings_services import SettingsServices

logger = logging.getLogger(__name__)

NOT_ASSIGNED = "Enquiry not found or not assigned to you"

ENQUIRY_TRANSITIONS = {
    EnquiryStatus.NEW: {EnquiryStatus.ASSIGNED, EnquiryStatus.IN_PROGRESS, EnquiryStatus.RESOLVED},
    EnquiryStatus.ASSIGNED: {EnquiryStatus.IN_PROGRESS, EnquiryStatus.RESOLVED},
    EnquiryStatus.IN_PROGRESS: {EnquiryStatus.RESOLVED},
    EnquiryStatus.RESOLVED: {EnquiryStatus.IN_PROGRESS},
    EnquiryStatus.CLOSED: set(),
}


async def _assigned_enquiry(db: AsyncSession, agent_id: int, enquiry_id: int) -> Enquiry:
    enquiry = await enquiry_crud.lock_enquiry(db, enquiry_id)
    if enquiry is None or enquiry.assigned_to != agent_id:
        logger.warning("Agent %s refused access to enquiry %s", agent_id, enquiry_id)
        raise AuthorizationError(NOT_ASSIGNED)
    return enquiry


async def _add_note(db: AsyncSession, enquiry: Enquiry, author_id: int, **fields) -> EnquiryNote:
    note = await enquiry_crud.create_note(db, enquiry.id, author_id, **fields)
    await maintainers.mark_first_response(db, enquiry)
    return note


async def _route_enquiry(db: AsyncSession, user: Optional[User]) -> Optional[User]:
    if user is not None and user.preferred_agent_id is not None:
        agent = await user_crud.get_active_agent(db, user.preferred_agent_id)
        if agent is not None:
            return agent
    return await user_crud.pick_enquiry_agent(db)


def describe_patch(patch: EnquiryPatch) -> str:
    parts = []
    if patch.status is not None:
        parts.append(f"Status changed to {patch.status.value}")
    if patch.priority is not None:
        parts.append(f"Priority changed to {patch.priority.value}")
    if patch.resolution_notes is not None:
        parts.append("Resolution notes added")
    if patch.customer_satisfaction_rating is not None:
        parts.append(f"Satisfaction rating set to {patch.customer_satisfaction_rating}")
    return "Enquiry updated: " + ". ".join(parts) + "."


class EnquiryServices:

    @staticmethod
    async def handle_enquiry(db: AsyncSession, intake: EnquiryIntake) -> EnquiryIntakeResult:
        """
        Record a lead coming from the public enquiry form.

        Workflow:
        1. Lock the referenced listing (if any) and snapshot title and price.
        2. Match an existing user by email OR phone.
        3. Create a buyer account when requested, no user matched and a
           credential hash was supplied.
        4. Insert the enquiry with a fresh ticket number, retrying on a
           ticket collision.
        5. Bump the listing's inquiries_count.
        6. Route to an agent when `auto_assign_agents` is on.

        Raises:
            NotFoundError: property_id does not reference a live listing.
            TicketCollisionError: no unique ticket number after N attempts.
        """

        # 1. --- Listing context ---
        listing = None
        if intake.property_id is not None:
            listing = await listing_crud.lock_listing(db, intake.property_id)
            if listing is None or listing.deleted_at is not None:
                raise NotFoundError("Property not found")

        # 2. --- Existing user ---
        user = await user_crud.find_user_by_contact(db, intake.email, intake.phone)

        # 3. --- Account creation ---
        account_created = False
        if intake.create_account and user is None and intake.credential_hash:
            user = await user_crud.create_user(
                db,
                name=intake.name,
                email=intake.email,
                phone=intake.phone,
                credential_hash=intake.credential_hash,
                role=UserRole.USER,
                status=UserStatus.PENDING_VERIFICATION,
                is_buyer=True,
                is_seller=False,
                email_verification_token=generate_verification_token(),
                phone_verification_code=generate_phone_code(),
            )
            account_created = True
            logger.info("Account %s created from enquiry form", user.id)

        # 4. --- Enquiry ---
        async def build(attempt: int) -> Enquiry:
            return Enquiry(
                ticket_number=ticket_numbers.next(),
                user_id=user.id if user is not None else None,
                name=intake.name,
                email=intake.email,
                phone=intake.phone,
                requirements=intake.requirements,
                property_id=listing.id if listing is not None else None,
                property_title=listing.title if listing is not None else None,
                property_price=str(listing.price) if listing is not None else None,
                account_creation_offered=intake.create_account,
                account_created_during_enquiry=account_created,
                source=intake.source,
                page_url=intake.page_url,
                user_agent=intake.user_agent,
                status=EnquiryStatus.NEW,
            )

        enquiry = await insert_with_unique_retry(db, build, "ticket_number", settings.ticket_insert_attempts)

        # 5. --- Inquiry counter ---
        await maintainers.increment_inquiries_count(db, enquiry.property_id)

        # 6. --- Routing ---
        if await SettingsServices.get_bool(db, "auto_assign_agents", default=False):
            agent = await _route_enquiry(db, user)
            if agent is not None:
                enquiry.assigned_to = agent.id
                enquiry.status = EnquiryStatus.ASSIGNED
                await db.flush()

        logger.info("Enquiry %s recorded (user=%s)", enquiry.ticket_number, enquiry.user_id)
        return EnquiryIntakeResult(
            enquiry_id=enquiry.id,
            user_id=enquiry.user_id,
            ticket_number=enquiry.ticket_number,
            account_created=account_created,
            assigned_to=enquiry.assigned_to,
        )

    @staticmethod
    async def add_enquiry_note(
        db: AsyncSession, agent_id: int, enquiry_id: int, request: EnquiryNoteCreate
    ) -> EnquiryNote:
        enquiry = await _assigned_enquiry(db, agent_id, enquiry_id)
        return await _add_note(
            db,
            enquiry,
            agent_id,
            note=request.note,
            note_type=request.note_type,
            communication_method=request.communication_method,
            next_follow_up_date=request.next_follow_up_date,
        )

    @staticmethod
    async def update_enquiry(
        db: AsyncSession, agent_id: int, enquiry_id: int, patch: EnquiryPatch
    ) -> Enquiry:
        """
        Apply an assigned agent's changes to an enquiry.

        Workflow:
        1. Lock the enquiry; the agent must be its assignee.
        2. Check the status move against ENQUIRY_TRANSITIONS.
        3. Apply the patch; `resolved` stamps resolved_at, reopening clears it.
        4. Add a system note describing the change (first response bookkeeping).
        """

        # 1. --- Access ---
        enquiry = await _assigned_enquiry(db, agent_id, enquiry_id)

        # 2. --- Transition ---
        if enquiry.status == EnquiryStatus.CLOSED:
            raise StateTransitionError("Closed enquiries cannot be changed")
        if patch.status is not None and patch.status != enquiry.status:
            if patch.status not in ENQUIRY_TRANSITIONS[enquiry.status]:
                raise StateTransitionError(
                    f"Cannot move enquiry from {enquiry.status.value} to {patch.status.value}"
                )
            if patch.status == EnquiryStatus.RESOLVED:
                enquiry.resolved_at = utcnow()
            elif enquiry.status == EnquiryStatus.RESOLVED:
                enquiry.resolved_at = None
            enquiry.status = patch.status

        # 3. --- Fields ---
        if patch.priority is not None:
            enquiry.priority = patch.priority
        if patch.resolution_notes is not None:
            enquiry.resolution_notes = patch.resolution_notes
        if patch.customer_satisfaction_rating is not None:
            enquiry.customer_satisfaction_rating = patch.customer_satisfaction_rating
        await db.flush()

        # 4. --- System note ---
        await _add_note(
            db,
            enquiry,
            agent_id,
            note=describe_patch(patch),
            note_type=NoteType.SYSTEM,
            communication_method=CommunicationMethod.SYSTEM,
        )
        logger.info("Enquiry %s updated by agent %s", enquiry.ticket_number, agent_id)
        return enquiry

    @staticmethod
    async def assign_enquiry(
        db: AsyncSession, admin_id: int, enquiry_id: int, agent_id: int, reason: Optional[str] = None
    ) -> Enquiry:
        admin = await require_admin(db, admin_id)
        agent = await user_crud.get_active_agent(db, agent_id)
        if agent is None:
            raise ValidationError("Agent not found or not active", details={"agent_id": agent_id})

        enquiry = await enquiry_crud.lock_enquiry(db, enquiry_id)
        if enquiry is None:
            raise NotFoundError("Enquiry not found")
        if enquiry.status in (EnquiryStatus.RESOLVED, EnquiryStatus.CLOSED):
            raise StateTransitionError(f"Cannot assign an enquiry in status {enquiry.status.value}")

        previous_agent = enquiry.assigned_to
        enquiry.assigned_to = agent.id
        if enquiry.status == EnquiryStatus.NEW:
            enquiry.status = EnquiryStatus.ASSIGNED
        await db.flush()

        note = f"Enquiry assigned to {agent.name} ({agent.agency_name or 'Independent'})"
        if reason:
            note += f". Reason: {reason}"
        await _add_note(
            db, enquiry, admin.id,
            note=note, note_type=NoteType.SYSTEM, communication_method=CommunicationMethod.SYSTEM,
        )

        await audit_crud.create_audit_log(
            db,
            user_id=admin.id,
            action="assign_enquiry",
            table_name="enquiries",
            record_id=enquiry.id,
            old_values={"assigned_to": previous_agent},
            new_values={"assigned_to": agent.id},
            description=note,
            severity=AuditSeverity.LOW,
        )
        return enquiry

    @staticmethod
    async def close_enquiry(db: AsyncSession, admin_id: int, enquiry_id: int) -> Enquiry:
        admin = await require_admin(db, admin_id)
        enquiry = await enquiry_crud.lock_enquiry(db, enquiry_id)
        if enquiry is None:
            raise NotFoundError("Enquiry not found")
        if enquiry.status != EnquiryStatus.RESOLVED:
            raise StateTransitionError("Only resolved enquiries can be closed")

        enquiry.status = EnquiryStatus.CLOSED
        await db.flush()
        await audit_crud.create_audit_log(
            db,
            user_id=admin.id,
            action="close_enquiry",
            table_name="enquiries",
            record_id=enquiry.id,
            old_values={"status": EnquiryStatus.RESOLVED.value},
            new_values={"status": EnquiryStatus.CLOSED.value},
            description=f"Enquiry {enquiry.ticket_number} closed",
            severity=AuditSeverity.LOW,
        )
        return enquiry

    @staticmethod
    async def list_agent_enquiries(
        db: AsyncSession, agent_id: int, offset: int, limit: int, status: Optional[EnquiryStatus] = None
    ) -> Tuple[List[Enquiry], int]:
        agent = await user_crud.get_active_agent(db, agent_id)
        if agent is None:
            raise AuthorizationError("Only active agents have an enquiry queue")
        return await enquiry_crud.list_agent_enquiries(db, agent.id, status, offset, limit)

    @staticmethod
    async def list_enquiry_notes(db: AsyncSession, actor_id: int, enquiry_id: int) -> List[EnquiryNote]:
        enquiry = await enquiry_crud.get_enquiry(db, enquiry_id)
        if enquiry is None:
            raise NotFoundError("Enquiry not found")
        if enquiry.assigned_to != actor_id:
            await require_admin(db, actor_id)
        return await enquiry_crud.list_notes(db, enquiry.id)

    @staticmethod
    async def track_enquiry(db: AsyncSession, ticket_number: str) -> EnquiryTracking:
        """Public status lookup by ticket number; exposes no contact details of the enquirer."""
        found = await enquiry_crud.get_enquiry_by_ticket(db, ticket_number)
        if found is None:
            raise NotFoundError("Ticket number not found. Please check and try again.")
        enquiry, agent = found
        return EnquiryTracking(
            ticket_number=enquiry.ticket_number,
            status=enquiry.status,
            priority=enquiry.priority,
            created_at=enquiry.created_at,
            first_response_at=enquiry.first_response_at,
            resolved_at=enquiry.resolved_at,
            agent_name=agent.name if agent else None,
            agent_phone=agent.phone if agent else None,
        )

    @staticmethod
    async def list_user_enquiries(
        db: AsyncSession, user_id: int, offset: int, limit: int, status: Optional[EnquiryStatus] = None
    ) -> Tuple[List[Enquiry], int]:
        user = await require_actor(db, user_id)
        return await enquiry_crud.list_user_enquiries(db, user.id, status, offset, limit)

    @staticmethod
    async def get_user_enquiry(db: AsyncSession, user_id: int, enquiry_id: int) -> Enquiry:
        user = await require_actor(db, user_id)
        enquiry = await enquiry_crud.get_enquiry(db, enquiry_id)
        if enquiry is None:
            raise NotFoundError("Enquiry not found")
        if enquiry.user_id != user.id:
            raise AuthorizationError("Access denied")
        return enquiry

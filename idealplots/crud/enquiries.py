# idealplots/crud/enquiries.py
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.models import Enquiry, EnquiryNote, User
from idealplots.models.enums import EnquiryStatus

OPEN_ENQUIRY_STATUSES = (EnquiryStatus.NEW, EnquiryStatus.ASSIGNED, EnquiryStatus.IN_PROGRESS)


# --- Fetch Enquiry ---
async def get_enquiry(db: AsyncSession, enquiry_id: int) -> Optional[Enquiry]:
    result = await db.execute(select(Enquiry).where(Enquiry.id == enquiry_id))
    return result.scalar_one_or_none()


async def lock_enquiry(db: AsyncSession, enquiry_id: int) -> Optional[Enquiry]:
    result = await db.execute(
        select(Enquiry)
        .where(Enquiry.id == enquiry_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_enquiry_by_ticket(
    db: AsyncSession, ticket_number: str
) -> Optional[Tuple[Enquiry, Optional[User]]]:
    """The enquiry behind a ticket number and the agent it is assigned to, if any."""
    result = await db.execute(
        select(Enquiry, User)
        .outerjoin(User, Enquiry.assigned_to == User.id)
        .where(Enquiry.ticket_number == ticket_number)
    )
    row = result.first()
    return (row[0], row[1]) if row else None


async def _list_enquiries(
    db: AsyncSession, filters: list, status: Optional[EnquiryStatus], offset: int, limit: int
) -> Tuple[List[Enquiry], int]:
    if status is not None:
        filters = [*filters, Enquiry.status == status]

    total = (await db.execute(select(func.count(Enquiry.id)).where(*filters))).scalar() or 0
    result = await db.execute(
        select(Enquiry)
        .where(*filters)
        .order_by(Enquiry.created_at.desc(), Enquiry.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total


# --- Agent queue ---
async def list_agent_enquiries(
    db: AsyncSession,
    agent_id: int,
    status: Optional[EnquiryStatus],
    offset: int,
    limit: int,
) -> Tuple[List[Enquiry], int]:
    return await _list_enquiries(db, [Enquiry.assigned_to == agent_id], status, offset, limit)


# --- Enquiries a user submitted ---
async def list_user_enquiries(
    db: AsyncSession,
    user_id: int,
    status: Optional[EnquiryStatus],
    offset: int,
    limit: int,
) -> Tuple[List[Enquiry], int]:
    return await _list_enquiries(db, [Enquiry.user_id == user_id], status, offset, limit)


# --- Notes ---
async def create_note(db: AsyncSession, enquiry_id: int, user_id: int, **fields) -> EnquiryNote:
    note = EnquiryNote(enquiry_id=enquiry_id, user_id=user_id, **fields)
    db.add(note)
    await db.flush()
    return note


async def list_notes(db: AsyncSession, enquiry_id: int) -> List[EnquiryNote]:
    result = await db.execute(
        select(EnquiryNote).where(EnquiryNote.enquiry_id == enquiry_id).order_by(EnquiryNote.id)
    )
    return list(result.scalars().all())

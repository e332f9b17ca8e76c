# idealplots/crud/users.py
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.crud.enquiries import OPEN_ENQUIRY_STATUSES
from idealplots.models import Enquiry, User
from idealplots.models.enums import UserRole, UserStatus


# --- Fetch User by ID ---
async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_for_update(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# --- Duplicate check (email OR phone) ---
async def find_user_by_contact(db: AsyncSession, email: str, phone: str) -> Optional[User]:
    stmt = (
        select(User)
        .where(or_(User.email == email, User.phone == phone))
        .order_by(User.id)
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


# --- Insert User ---
async def create_user(db: AsyncSession, **fields) -> User:
    user = User(**fields)
    db.add(user)
    await db.flush()
    return user


# --- Role checks ---
async def get_active_admin(db: AsyncSession, admin_id: int) -> Optional[User]:
    result = await db.execute(
        select(User).where(
            User.id == admin_id,
            User.role == UserRole.ADMIN,
            User.status == UserStatus.ACTIVE,
            User.deleted_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


async def get_active_agent(db: AsyncSession, agent_id: int) -> Optional[User]:
    result = await db.execute(
        select(User).where(
            User.id == agent_id,
            User.role == UserRole.AGENT,
            User.status == UserStatus.ACTIVE,
            User.deleted_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


# --- Agent pick for automatic buyer assignment ---
async def pick_residential_agent(db: AsyncSession) -> Optional[User]:
    """
    Best active agent whose specialization is empty or covers residential.
    Rows locked by a concurrent pick are skipped.
    """
    stmt = (
        select(User)
        .where(
            User.role == UserRole.AGENT,
            User.status == UserStatus.ACTIVE,
            User.deleted_at.is_(None),
            or_(
                User.specialization.is_(None),
                func.lower(User.specialization).like("%residential%"),
            ),
        )
        .order_by(User.agent_rating.desc(), User.total_sales.desc(), User.id.asc())
        .limit(1)
        .with_for_update(skip_locked=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


# --- Agent pick for routing a new enquiry ---
async def pick_enquiry_agent(db: AsyncSession) -> Optional[User]:
    """Highest rated active agent, then the one with fewest open enquiries."""
    open_count = (
        select(func.count(Enquiry.id))
        .where(Enquiry.assigned_to == User.id, Enquiry.status.in_(OPEN_ENQUIRY_STATUSES))
        .correlate(User)
        .scalar_subquery()
    )
    stmt = (
        select(User)
        .where(
            User.role == UserRole.AGENT,
            User.status == UserStatus.ACTIVE,
            User.deleted_at.is_(None),
        )
        .order_by(User.agent_rating.desc(), open_count.asc(), User.id.asc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()

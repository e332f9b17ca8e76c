# idealplots/crud/notifications.py
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.models import AdminCreatedNotification


# --- Insert Outbox Row ---
async def create_notification(db: AsyncSession, **fields) -> AdminCreatedNotification:
    notification = AdminCreatedNotification(**fields)
    db.add(notification)
    await db.flush()
    return notification


async def lock_notification(db: AsyncSession, notification_id: int) -> Optional[AdminCreatedNotification]:
    result = await db.execute(
        select(AdminCreatedNotification)
        .where(AdminCreatedNotification.id == notification_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# --- Pending first-login reset ---
async def lock_pending_reset(db: AsyncSession, agent_id: int) -> Optional[AdminCreatedNotification]:
    result = await db.execute(
        select(AdminCreatedNotification)
        .where(
            AdminCreatedNotification.user_id == agent_id,
            AdminCreatedNotification.password_reset_required.is_(True),
        )
        .order_by(AdminCreatedNotification.id.desc())
        .limit(1)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()

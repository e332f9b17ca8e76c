# idealplots/crud/approvals.py
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.models import ApprovalTarget, ListingApproval, PendingApproval
from idealplots.models.pending_approval import target_key
from idealplots.models.enums import OPEN_APPROVAL_STATUSES


# --- Insert Approval ---
async def create_approval(db: AsyncSession, target: ApprovalTarget, **fields) -> PendingApproval:
    approval = PendingApproval.for_target(target, **fields)
    db.add(approval)
    await db.flush()
    return approval


# --- Open approval for a target ---
async def get_open_approval_for_update(db: AsyncSession, target: ApprovalTarget) -> Optional[PendingApproval]:
    approval_type, record_id = target_key(target)
    result = await db.execute(
        select(PendingApproval)
        .where(
            PendingApproval.approval_type == approval_type,
            PendingApproval.record_id == record_id,
            PendingApproval.status.in_(OPEN_APPROVAL_STATUSES),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_open_listing_approval(db: AsyncSession, listing_pk: int) -> Optional[PendingApproval]:
    return await get_open_approval_for_update(db, ListingApproval(listing_pk))

# idealplots/services/maintainers.py
"""
Reactions that keep denormalized counters and cross-entity state consistent.

Each function is called explicitly by the write path that triggers it, inside
the same transaction, and takes a row lock on the row it changes:

- `create_listing_approval`   listing entered pending_review -> open approval
- `adjust_favorites_count`    favorite added/removed -> listing.favorites_count
- `auto_assign_agent`         buyer verified email -> preferred agent + assignment
- `mark_first_response`       note added -> enquiry.first_response_at
- `increment_inquiries_count` enquiry on a listing -> listing.inquiries_count
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.crud import approvals as approval_crud
from idealplots.crud import assignments as assignment_crud
from idealplots.crud import listings as listing_crud
from idealplots.crud import users as user_crud
from idealplots.core.exceptions import NotFoundError
from idealplots.db.base_class import utcnow
from idealplots.models import (
    Enquiry, ListingApproval, PendingApproval, PropertyListing, User, UserAgentAssignment,
)
from idealplots.models.enums import ApprovalPriority, ApprovalStatus, AssignmentType, ListingStatus
from idealplots.services.settings_services import SettingsServices

logger = logging.getLogger(__name__)

AUTO_ASSIGN_REASON = "Auto-assigned based on preferences and agent performance"


def listing_snapshot(listing: PropertyListing) -> dict:
    return {
        "title": listing.title,
        "property_type": listing.property_type.value,
        "price": str(listing.price),
        "city": listing.city,
    }


# --- Approval auto-creation ---
async def create_listing_approval(db: AsyncSession, listing: PropertyListing) -> Optional[PendingApproval]:
    if listing.status != ListingStatus.PENDING_REVIEW:
        return None

    existing = await approval_crud.get_open_listing_approval(db, listing.id)
    if existing is not None:
        return existing

    approval = await approval_crud.create_approval(
        db,
        ListingApproval(listing.id),
        submitted_by=listing.owner_id,
        submission_data=listing_snapshot(listing),
        status=ApprovalStatus.PENDING,
        priority=ApprovalPriority.NORMAL,
    )
    logger.info("Approval %s opened for listing %s", approval.id, listing.listing_id)
    return approval


# --- Favorites counter ---
async def adjust_favorites_count(db: AsyncSession, listing_pk: int, delta: int) -> PropertyListing:
    listing = await listing_crud.lock_listing(db, listing_pk)
    if listing is None:
        raise NotFoundError("Property not found")
    listing.favorites_count = (listing.favorites_count or 0) + delta
    await db.flush()
    return listing


# --- Auto agent assignment ---
async def auto_assign_agent(
    db: AsyncSession, user: User, previous_email_verified_at
) -> Optional[UserAgentAssignment]:
    """
    Fires only on the null -> non-null transition of email_verified_at for a
    buyer without a preferred agent, and only when `auto_assign_agents` is on.
    """
    if not user.is_buyer:
        return None
    if previous_email_verified_at is not None or user.email_verified_at is None:
        return None
    if user.preferred_agent_id is not None:
        return None
    if not await SettingsServices.get_bool(db, "auto_assign_agents", default=False):
        return None

    agent = await user_crud.pick_residential_agent(db)
    if agent is None or agent.id == user.id:
        logger.info("No eligible agent to auto-assign for user %s", user.id)
        return None

    user.preferred_agent_id = agent.id
    assignment = await assignment_crud.create_assignment(
        db, user.id, agent.id, AssignmentType.AUTO, AUTO_ASSIGN_REASON
    )
    logger.info("User %s auto-assigned to agent %s", user.id, agent.id)
    return assignment


# --- Enquiry first response ---
async def mark_first_response(db: AsyncSession, enquiry: Enquiry) -> Enquiry:
    if enquiry.first_response_at is None:
        enquiry.first_response_at = utcnow()
        await db.flush()
    return enquiry


# --- Property inquiry counter ---
async def increment_inquiries_count(db: AsyncSession, listing_pk: Optional[int]) -> Optional[PropertyListing]:
    if listing_pk is None:
        return None
    listing = await listing_crud.lock_listing(db, listing_pk)
    if listing is None:
        raise NotFoundError("Property not found")
    listing.inquiries_count = (listing.inquiries_count or 0) + 1
    await db.flush()
    return listing

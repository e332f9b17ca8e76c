# idealplots/crud/views.py
"""
Read projections over the entity store: the public listing feed and listing
detail, a user's favorites, the admin approval queue, per-user dashboards
and the notification outbox queue.

All functions return plain dicts (one per row) so callers can validate them
straight into response schemas.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, case, func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from idealplots.models import (
    AdminCreatedNotification, Enquiry, PendingApproval, PropertyListing, User, UserFavorite,
)
from idealplots.models.enums import (
    OPEN_APPROVAL_STATUSES, ApprovalPriority, ApprovalType, ListingStatus, PropertyType, UserRole,
)
from idealplots.models.property_listing import search_query, search_vector

Row = Dict[str, Any]

_PRIORITY_RANK = case(
    (PendingApproval.priority == ApprovalPriority.URGENT, 0),
    (PendingApproval.priority == ApprovalPriority.HIGH, 1),
    (PendingApproval.priority == ApprovalPriority.NORMAL, 2),
    else_=3,
)


async def _paged(db: AsyncSession, stmt, offset: int, limit: int) -> Tuple[List[Row], int]:
    total = (await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))).scalar() or 0
    result = await db.execute(stmt.offset(offset).limit(limit))
    return [dict(row._mapping) for row in result], total


# --- ActivePropertiesWithUsers ---
def _text_match(db: AsyncSession, term: str):
    # PostgreSQL uses idx_listings_fulltext; other backends match substrings.
    if db.get_bind().dialect.name == "postgresql":
        matched = search_vector(
            PropertyListing.title, PropertyListing.description, PropertyListing.location
        ).bool_op("@@")(search_query(term))
    else:
        matched = or_(
            PropertyListing.title.icontains(term, autoescape=True),
            PropertyListing.description.icontains(term, autoescape=True),
            PropertyListing.location.icontains(term, autoescape=True),
        )
    return or_(matched, PropertyListing.listing_id.icontains(term, autoescape=True))


async def active_properties_with_users(
    db: AsyncSession,
    offset: int = 0,
    limit: int = 20,
    *,
    search: Optional[str] = None,
    property_type: Optional[Sequence[PropertyType]] = None,
    city: Optional[Sequence[str]] = None,
    location: Optional[str] = None,
    price_min: Optional[Decimal] = None,
    price_max: Optional[Decimal] = None,
    area_min: Optional[Decimal] = None,
    area_max: Optional[Decimal] = None,
    bedrooms: Optional[Sequence[int]] = None,
    bathrooms: Optional[int] = None,
    parking: Optional[bool] = None,
    furnished: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Tuple[List[Row], int]:
    """
    Active, non-deleted listings with owner and agent contact. Featured
    listings always lead; `sort_by` orders within that.
    """
    owner = aliased(User)
    agent = aliased(User)
    stmt = (
        select(
            PropertyListing.id,
            PropertyListing.listing_id,
            PropertyListing.title,
            PropertyListing.property_type,
            PropertyListing.price,
            PropertyListing.area,
            PropertyListing.price_per_area,
            PropertyListing.city,
            PropertyListing.location,
            PropertyListing.bedrooms,
            PropertyListing.bathrooms,
            PropertyListing.is_featured,
            PropertyListing.views_count,
            PropertyListing.inquiries_count,
            PropertyListing.favorites_count,
            PropertyListing.slug,
            PropertyListing.created_at,
            owner.name.label("owner_name"),
            owner.email.label("owner_email"),
            owner.phone.label("owner_phone"),
            owner.is_seller.label("owner_is_seller"),
            agent.name.label("agent_name"),
            agent.email.label("agent_email"),
            agent.phone.label("agent_phone"),
            agent.agency_name.label("agency_name"),
            agent.agent_rating.label("agent_rating"),
        )
        .outerjoin(owner, PropertyListing.owner_id == owner.id)
        .outerjoin(agent, PropertyListing.assigned_agent_id == agent.id)
        .where(PropertyListing.status == ListingStatus.ACTIVE, PropertyListing.deleted_at.is_(None))
    )

    filters = []
    if search:
        filters.append(_text_match(db, search))
    if property_type:
        filters.append(PropertyListing.property_type.in_(property_type))
    if city:
        filters.append(PropertyListing.city.in_(city))
    if location:
        filters.append(PropertyListing.location.icontains(location, autoescape=True))
    if price_min is not None:
        filters.append(PropertyListing.price >= price_min)
    if price_max is not None:
        filters.append(PropertyListing.price <= price_max)
    if area_min is not None:
        filters.append(PropertyListing.area >= area_min)
    if area_max is not None:
        filters.append(PropertyListing.area <= area_max)
    if bedrooms:
        filters.append(PropertyListing.bedrooms.in_(bedrooms))
    if bathrooms is not None:
        filters.append(PropertyListing.bathrooms >= bathrooms)
    if parking is not None:
        filters.append(PropertyListing.parking.is_(parking))
    if furnished is not None:
        filters.append(PropertyListing.furnished.is_(furnished))
    if filters:
        stmt = stmt.where(*filters)

    sort_column = getattr(PropertyListing, sort_by)
    ordered = sort_column.asc() if sort_order == "asc" else sort_column.desc()
    stmt = stmt.order_by(PropertyListing.is_featured.desc(), ordered, PropertyListing.id.desc())
    return await _paged(db, stmt, offset, limit)


# --- Listing detail ---
_LISTING_KEYS = {
    "id": PropertyListing.id,
    "listing_id": PropertyListing.listing_id,
    "slug": PropertyListing.slug,
}
_CONTACT_FIELDS = ("owner_name", "owner_phone", "owner_email", "agent_name", "agent_phone", "agency_name")


async def listing_with_contacts(
    db: AsyncSession, key: str, value
) -> Optional[Tuple[PropertyListing, Row]]:
    """
    A non-deleted listing looked up by `id`, `listing_id` or `slug`, plus
    owner and agent contact.
    """
    owner = aliased(User)
    agent = aliased(User)
    stmt = (
        select(
            PropertyListing,
            owner.name.label("owner_name"),
            owner.phone.label("owner_phone"),
            owner.email.label("owner_email"),
            agent.name.label("agent_name"),
            agent.phone.label("agent_phone"),
            agent.agency_name.label("agency_name"),
        )
        .outerjoin(owner, PropertyListing.owner_id == owner.id)
        .outerjoin(agent, PropertyListing.assigned_agent_id == agent.id)
        .where(_LISTING_KEYS[key] == value, PropertyListing.deleted_at.is_(None))
    )
    row = (await db.execute(stmt)).first()
    if row is None:
        return None
    return row[0], dict(zip(_CONTACT_FIELDS, row[1:]))


# --- User favorites ---
async def user_favorite_listings(
    db: AsyncSession, user_id: int, offset: int = 0, limit: int = 10
) -> Tuple[List[Row], int]:
    owner = aliased(User)
    stmt = (
        select(
            PropertyListing.id,
            PropertyListing.listing_id,
            PropertyListing.title,
            PropertyListing.property_type,
            PropertyListing.price,
            PropertyListing.area,
            PropertyListing.city,
            PropertyListing.location,
            PropertyListing.bedrooms,
            PropertyListing.bathrooms,
            PropertyListing.main_image,
            PropertyListing.views_count,
            PropertyListing.favorites_count,
            PropertyListing.status,
            UserFavorite.notes.label("user_notes"),
            UserFavorite.created_at.label("favorited_at"),
            owner.name.label("owner_name"),
            owner.phone.label("owner_phone"),
        )
        .select_from(UserFavorite)
        .join(PropertyListing, UserFavorite.property_id == PropertyListing.id)
        .outerjoin(owner, PropertyListing.owner_id == owner.id)
        .where(
            UserFavorite.user_id == user_id,
            PropertyListing.status == ListingStatus.ACTIVE,
            PropertyListing.deleted_at.is_(None),
        )
        .order_by(UserFavorite.created_at.desc(), UserFavorite.id.desc())
    )
    return await _paged(db, stmt, offset, limit)


# --- PendingApprovalsSummary ---
async def pending_approvals_summary(db: AsyncSession, offset: int = 0, limit: int = 20) -> Tuple[List[Row], int]:
    submitter = aliased(User)
    reviewer = aliased(User)
    subject = aliased(User)
    item_title = case(
        (PendingApproval.approval_type == ApprovalType.PROPERTY_LISTING, PropertyListing.title),
        (PendingApproval.approval_type == ApprovalType.USER_VERIFICATION, literal("User: ") + subject.name),
        else_=literal("Other"),
    )
    stmt = (
        select(
            PendingApproval.id,
            PendingApproval.approval_type,
            PendingApproval.record_id,
            PendingApproval.table_name,
            PendingApproval.status,
            PendingApproval.priority,
            PendingApproval.submission_data,
            PendingApproval.created_at,
            PendingApproval.review_deadline,
            submitter.name.label("submitted_by_name"),
            submitter.email.label("submitted_by_email"),
            reviewer.name.label("reviewer_name"),
            item_title.label("item_title"),
        )
        .outerjoin(submitter, PendingApproval.submitted_by == submitter.id)
        .outerjoin(reviewer, PendingApproval.assigned_reviewer == reviewer.id)
        .outerjoin(
            PropertyListing,
            and_(
                PendingApproval.approval_type == ApprovalType.PROPERTY_LISTING,
                PendingApproval.record_id == PropertyListing.id,
            ),
        )
        .outerjoin(
            subject,
            and_(
                PendingApproval.approval_type == ApprovalType.USER_VERIFICATION,
                PendingApproval.record_id == subject.id,
            ),
        )
        .where(PendingApproval.status.in_(OPEN_APPROVAL_STATUSES))
        .order_by(_PRIORITY_RANK, PendingApproval.created_at.asc(), PendingApproval.id.asc())
    )
    return await _paged(db, stmt, offset, limit)


# --- UserDashboard ---
async def user_dashboard(db: AsyncSession, user_id: int) -> Optional[Row]:
    agent = aliased(User)
    owned = and_(PropertyListing.owner_id == User.id, PropertyListing.deleted_at.is_(None))

    def listing_count(*conditions):
        return (
            select(func.count(PropertyListing.id)).where(owned, *conditions).correlate(User).scalar_subquery()
        )

    stmt = (
        select(
            User.id,
            User.name,
            User.email,
            User.is_buyer,
            User.is_seller,
            User.preferred_agent_id,
            agent.name.label("preferred_agent_name"),
            listing_count().label("properties_listed"),
            select(func.count(UserFavorite.id))
            .where(UserFavorite.user_id == User.id)
            .correlate(User)
            .scalar_subquery()
            .label("properties_favorited"),
            select(func.count(Enquiry.id))
            .where(Enquiry.user_id == User.id)
            .correlate(User)
            .scalar_subquery()
            .label("enquiries_submitted"),
            listing_count(PropertyListing.status == ListingStatus.ACTIVE).label("active_listings"),
            listing_count(PropertyListing.status == ListingStatus.SOLD).label("sold_properties"),
        )
        .outerjoin(agent, User.preferred_agent_id == agent.id)
        .where(User.id == user_id, User.role == UserRole.USER)
    )
    row = (await db.execute(stmt)).first()
    return dict(row._mapping) if row else None


# --- AdminCreatedAgentsPendingNotifications ---
async def agents_pending_notifications(db: AsyncSession, offset: int = 0, limit: int = 50) -> Tuple[List[Row], int]:
    agent = aliased(User)
    admin = aliased(User)
    stmt = (
        select(
            AdminCreatedNotification.id.label("notification_id"),
            agent.id.label("agent_id"),
            agent.name.label("agent_name"),
            agent.email.label("agent_email"),
            agent.phone.label("agent_phone"),
            agent.license_number,
            agent.agency_name,
            admin.name.label("created_by_admin_name"),
            AdminCreatedNotification.email_sent,
            AdminCreatedNotification.sms_sent,
            AdminCreatedNotification.password_reset_required,
            AdminCreatedNotification.created_at.label("account_created_at"),
        )
        .join(agent, AdminCreatedNotification.user_id == agent.id)
        .join(admin, AdminCreatedNotification.created_by_admin_id == admin.id)
        .where(
            agent.role == UserRole.AGENT,
            or_(AdminCreatedNotification.email_sent.is_(False), AdminCreatedNotification.sms_sent.is_(False)),
        )
        .order_by(AdminCreatedNotification.created_at.desc(), AdminCreatedNotification.id.desc())
    )
    return await _paged(db, stmt, offset, limit)

# idealplots/services/listing_services.py
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.core.config import settings
from idealplots.core.exceptions import (
    AuthorizationError, NotFoundError, StateTransitionError, ValidationError,
)
from idealplots.crud import approvals as approval_crud
from idealplots.crud import audit_logs as audit_crud
from idealplots.crud import favorites as favorite_crud
from idealplots.crud import listings as listing_crud
from idealplots.crud import users as user_crud
from idealplots.crud import views as view_crud
from idealplots.db.base_class import utcnow
from idealplots.models import ListingApproval, PendingApproval, PropertyImage, PropertyListing
from idealplots.models.enums import ApprovalPriority, ApprovalStatus, AuditSeverity, ListingStatus, UserStatus
from idealplots.schemas.listing import (
    ListingCreate, ListingDetail, ListingUpdate, PropertyImageCreate, PropertyImageOut, PropertyViewCreate,
    ViewRecordResult,
)
from idealplots.services import maintainers
from idealplots.services.access import require_actor, require_admin
from idealplots.services.identifiers import (
    format_listing_id, insert_with_unique_retry, listing_lookup_key, listing_prefix,
)

logger = logging.getLogger(__name__)

VIEW_DEDUP_WINDOW = timedelta(minutes=30)

# Moves allowed through `change_listing_status`; approval and rejection
# have their own operations.
OWNER_STATUS_CHANGES = {
    ListingStatus.DRAFT: {ListingStatus.WITHDRAWN},
    ListingStatus.PENDING_REVIEW: {ListingStatus.WITHDRAWN},
    ListingStatus.APPROVED: {ListingStatus.WITHDRAWN},
    ListingStatus.ACTIVE: {ListingStatus.SOLD, ListingStatus.RENTED, ListingStatus.WITHDRAWN},
    ListingStatus.REJECTED: {ListingStatus.WITHDRAWN},
}
ADMIN_STATUS_CHANGES = {
    **OWNER_STATUS_CHANGES,
    ListingStatus.APPROVED: {ListingStatus.ACTIVE, ListingStatus.WITHDRAWN, ListingStatus.EXPIRED},
    ListingStatus.ACTIVE: {ListingStatus.SOLD, ListingStatus.RENTED, ListingStatus.WITHDRAWN, ListingStatus.EXPIRED},
}
SUBMITTABLE_STATUSES = (
    ListingStatus.DRAFT, ListingStatus.REJECTED, ListingStatus.WITHDRAWN, ListingStatus.EXPIRED,
)


async def _locked_listing(db: AsyncSession, listing_pk: int) -> PropertyListing:
    listing = await listing_crud.lock_listing(db, listing_pk)
    if listing is None or listing.deleted_at is not None:
        raise NotFoundError("Property not found")
    return listing


async def _listing_for_actor(db: AsyncSession, actor_id: int, listing_pk: int):
    """Lock the listing and resolve whether the actor owns it or is an admin."""
    actor = await require_actor(db, actor_id)
    listing = await _locked_listing(db, listing_pk)
    is_admin = actor.is_active_admin
    if listing.owner_id != actor.id and not is_admin:
        raise AuthorizationError("Only the owner or an admin may change this listing")
    return actor, listing, is_admin


async def _close_open_approval(
    db: AsyncSession, listing: PropertyListing, status: ApprovalStatus, reason: str, admin_id: Optional[int] = None
) -> Optional[PendingApproval]:
    approval = await approval_crud.get_open_listing_approval(db, listing.id)
    if approval is None:
        return None
    approval.status = status
    approval.rejection_reason = reason if status == ApprovalStatus.REJECTED else approval.rejection_reason
    if admin_id is not None:
        approval.approved_by = admin_id
        approval.approved_at = utcnow()
    await db.flush()
    return approval


class ListingServices:

    @staticmethod
    async def create_listing(db: AsyncSession, owner_id: int, request: ListingCreate) -> PropertyListing:
        """
        Create a property listing for an owner.

        Workflow:
        1. Verify the owner exists, is not deleted and is not suspended.
        2. Generate the human listing id `CITY-TYPE-YEAR-NNNN`, retrying the
           insert on a listing id collision.
        3. Mark the owner as a seller.
        4. Open the review approval when the listing starts in pending_review.

        Raises:
            NotFoundError: owner missing.
            AuthorizationError: owner suspended or inactive.
            DuplicateKeyError: slug already taken.
        """

        # 1. --- Owner ---
        owner = await user_crud.get_user(db, owner_id)
        if owner is None or owner.deleted_at is not None:
            raise NotFoundError("Owner not found")
        if owner.status in (UserStatus.SUSPENDED, UserStatus.INACTIVE):
            raise AuthorizationError("Account is not allowed to list properties")

        # 2. --- Insert with generated listing id ---
        now = utcnow()
        prefix = listing_prefix(request.city, request.property_type, now.year)
        fields = request.model_dump()

        async def build(attempt: int) -> PropertyListing:
            sequence = await listing_crud.count_listing_ids_with_prefix(db, prefix) + attempt
            return listing_crud.build_listing(
                listing_id=format_listing_id(prefix, sequence), owner_id=owner.id, **fields
            )

        listing = await insert_with_unique_retry(db, build, "listing_id", settings.ticket_insert_attempts)

        # 3. --- Seller flag ---
        if not owner.is_seller:
            owner.is_seller = True

        # 4. --- Review queue ---
        await maintainers.create_listing_approval(db, listing)

        logger.info("Listing %s created by user %s (%s)", listing.listing_id, owner.id, listing.status.value)
        return listing

    @staticmethod
    async def submit_listing(db: AsyncSession, owner_id: int, listing_pk: int) -> PropertyListing:
        listing = await _locked_listing(db, listing_pk)
        if listing.owner_id != owner_id:
            raise AuthorizationError("Only the owner may submit this listing")
        if listing.status not in SUBMITTABLE_STATUSES:
            raise StateTransitionError(
                f"Listing in status {listing.status.value} cannot be submitted for review"
            )

        listing.status = ListingStatus.PENDING_REVIEW
        listing.rejection_reason = None
        await db.flush()
        await maintainers.create_listing_approval(db, listing)
        return listing

    @staticmethod
    async def approve_listing(
        db: AsyncSession, listing_pk: int, admin_id: int, notes: Optional[str] = None
    ) -> PropertyListing:
        """
        Approve a listing that is waiting for review.

        Workflow:
        1. Validate the admin (role admin, status active).
        2. Lock the listing; it must be in pending_review.
        3. Activate the listing and stamp review metadata.
        4. Mark the open approval as approved.
        5. Append the `approve` audit entry.
        """

        # 1. --- Admin ---
        admin = await require_admin(db, admin_id)

        # 2. --- Listing ---
        listing = await _locked_listing(db, listing_pk)
        if listing.status != ListingStatus.PENDING_REVIEW:
            raise StateTransitionError(
                f"Only listings in pending_review can be approved (current: {listing.status.value})"
            )

        # 3. --- Activate ---
        now = utcnow()
        listing.status = ListingStatus.ACTIVE
        listing.approved_at = now
        listing.published_at = listing.published_at or now
        listing.reviewed_by = admin.id
        listing.reviewed_at = now
        listing.review_notes = notes

        # 4. --- Approval record ---
        approval = await approval_crud.get_open_listing_approval(db, listing.id)
        if approval is None:
            logger.warning("Listing %s had no open approval; recording one", listing.listing_id)
            approval = await approval_crud.create_approval(
                db,
                ListingApproval(listing.id),
                submitted_by=listing.owner_id,
                submission_data=maintainers.listing_snapshot(listing),
                priority=ApprovalPriority.NORMAL,
            )
        approval.status = ApprovalStatus.APPROVED
        approval.approved_by = admin.id
        approval.approved_at = now
        approval.admin_notes = notes

        # 5. --- Audit ---
        await audit_crud.create_audit_log(
            db,
            user_id=admin.id,
            action="approve",
            table_name="property_listings",
            record_id=listing.id,
            old_values={"status": ListingStatus.PENDING_REVIEW.value},
            new_values={"status": ListingStatus.ACTIVE.value},
            description=f"Property listing approved: {notes}" if notes else "Property listing approved",
            severity=AuditSeverity.LOW,
        )
        logger.info("Listing %s approved by admin %s", listing.listing_id, admin.id)
        return listing

    @staticmethod
    async def reject_listing(db: AsyncSession, listing_pk: int, admin_id: int, reason: str) -> PropertyListing:
        admin = await require_admin(db, admin_id)
        listing = await _locked_listing(db, listing_pk)
        if listing.status != ListingStatus.PENDING_REVIEW:
            raise StateTransitionError(
                f"Only listings in pending_review can be rejected (current: {listing.status.value})"
            )

        now = utcnow()
        listing.status = ListingStatus.REJECTED
        listing.reviewed_by = admin.id
        listing.reviewed_at = now
        listing.rejection_reason = reason

        await _close_open_approval(db, listing, ApprovalStatus.REJECTED, reason, admin.id)
        await audit_crud.create_audit_log(
            db,
            user_id=admin.id,
            action="reject",
            table_name="property_listings",
            record_id=listing.id,
            old_values={"status": ListingStatus.PENDING_REVIEW.value},
            new_values={"status": ListingStatus.REJECTED.value, "rejection_reason": reason},
            description=f"Property listing rejected: {reason}",
            severity=AuditSeverity.LOW,
        )
        logger.info("Listing %s rejected by admin %s", listing.listing_id, admin.id)
        return listing

    @staticmethod
    async def change_listing_status(
        db: AsyncSession, actor_id: int, listing_pk: int, new_status: ListingStatus, notes: Optional[str] = None
    ) -> PropertyListing:
        actor, listing, is_admin = await _listing_for_actor(db, actor_id, listing_pk)
        old_status = listing.status
        allowed = (ADMIN_STATUS_CHANGES if is_admin else OWNER_STATUS_CHANGES).get(old_status, set())
        if new_status not in allowed:
            raise StateTransitionError(f"Cannot move listing from {old_status.value} to {new_status.value}")

        listing.status = new_status
        if new_status == ListingStatus.ACTIVE:
            listing.published_at = listing.published_at or utcnow()
        if old_status == ListingStatus.PENDING_REVIEW:
            await _close_open_approval(db, listing, ApprovalStatus.REJECTED, "Withdrawn by owner")

        if is_admin:
            await audit_crud.create_audit_log(
                db,
                user_id=actor.id,
                action="status_change",
                table_name="property_listings",
                record_id=listing.id,
                old_values={"status": old_status.value},
                new_values={"status": new_status.value},
                description=f"Listing status changed to {new_status.value}" + (f": {notes}" if notes else ""),
                severity=AuditSeverity.MEDIUM,
            )
        return listing

    @staticmethod
    async def soft_delete_listing(db: AsyncSession, actor_id: int, listing_pk: int) -> PropertyListing:
        actor, listing, is_admin = await _listing_for_actor(db, actor_id, listing_pk)
        listing.deleted_at = utcnow()
        if listing.status == ListingStatus.PENDING_REVIEW:
            await _close_open_approval(db, listing, ApprovalStatus.REJECTED, "Listing deleted")
        if is_admin:
            await audit_crud.create_audit_log(
                db,
                user_id=actor.id,
                action="delete",
                table_name="property_listings",
                record_id=listing.id,
                description=f"Property listing {listing.listing_id} deleted",
                severity=AuditSeverity.HIGH,
            )
        return listing

    @staticmethod
    async def record_property_view(
        db: AsyncSession, listing_pk: int, request: PropertyViewCreate
    ) -> ViewRecordResult:
        """Views from the same IP within 30 minutes count once."""
        if not request.ip_address:
            raise ValidationError("ip_address is required to record a view")
        listing = await _locked_listing(db, listing_pk)
        since = utcnow() - VIEW_DEDUP_WINDOW
        if await listing_crud.has_recent_view(db, listing.id, request.ip_address, since):
            return ViewRecordResult(recorded=False, views_count=listing.views_count)

        await listing_crud.create_view(db, listing.id, **request.model_dump())
        listing.views_count = (listing.views_count or 0) + 1
        await db.flush()
        return ViewRecordResult(recorded=True, views_count=listing.views_count)

    @staticmethod
    async def add_property_image(
        db: AsyncSession, actor_id: int, listing_pk: int, request: PropertyImageCreate
    ) -> PropertyImage:
        _, listing, _ = await _listing_for_actor(db, actor_id, listing_pk)
        fields = request.model_dump()
        if fields.get("display_order") is None:
            fields["display_order"] = await listing_crud.next_image_order(db, listing.id)
        if not fields["image_url"].strip():
            raise ValidationError("image_url must not be empty")
        return await listing_crud.create_image(db, listing.id, **fields)

    @staticmethod
    async def update_listing(
        db: AsyncSession, actor_id: int, listing_pk: int, patch: ListingUpdate
    ) -> PropertyListing:
        """
        Edit listing content in place. The owner or an admin may edit; edits
        by an admin on someone else's listing are audited. A new price or area
        refreshes `price_per_area` through the mapper's update hook.
        """
        actor, listing, is_admin = await _listing_for_actor(db, actor_id, listing_pk)
        changes = patch.model_dump(exclude_unset=True)
        old_values = {key: audit_crud.audit_value(getattr(listing, key)) for key in changes}

        for key, value in changes.items():
            setattr(listing, key, value)
        await db.flush()

        if is_admin and actor.id != listing.owner_id:
            await audit_crud.create_audit_log(
                db,
                user_id=actor.id,
                action="update",
                table_name="property_listings",
                record_id=listing.id,
                old_values=old_values,
                new_values={key: audit_crud.audit_value(value) for key, value in changes.items()},
                description=f"Admin edited listing {listing.listing_id}",
                severity=AuditSeverity.MEDIUM,
            )
        logger.info(
            "Listing %s edited by user %s (%s)", listing.listing_id, actor.id, ", ".join(sorted(changes))
        )
        return listing

    @staticmethod
    async def get_listing_details(
        db: AsyncSession, identifier: str, viewer_id: Optional[int] = None
    ) -> ListingDetail:
        """
        Public listing page, looked up by numeric id, listing code or slug.

        Workflow:
        1. Resolve the identifier and load the listing with owner and agent
           contact.
        2. Listings that are not active are visible only to their owner and
           admins.
        3. Attach the gallery and, for a known viewer, whether they favorited
           the listing.
        """

        # 1. --- Lookup ---
        found = await view_crud.listing_with_contacts(db, *listing_lookup_key(identifier))
        if found is None:
            raise NotFoundError("Property not found")
        listing, contacts = found

        # 2. --- Visibility ---
        viewer = await user_crud.get_user(db, viewer_id) if viewer_id is not None else None
        if listing.status != ListingStatus.ACTIVE:
            if viewer is None or (viewer.id != listing.owner_id and not viewer.is_active_admin):
                raise NotFoundError("Property not found")

        # 3. --- Gallery & favorite flag ---
        images = await listing_crud.list_images(db, listing.id)
        is_favorited = None
        if viewer is not None:
            is_favorited = await favorite_crud.get_favorite(db, viewer.id, listing.id) is not None

        columns = {column.key: getattr(listing, column.key) for column in PropertyListing.__table__.columns}
        return ListingDetail(
            **columns,
            **contacts,
            images=[PropertyImageOut.model_validate(image) for image in images],
            is_favorited=is_favorited,
        )

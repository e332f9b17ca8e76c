# idealplots/services/reconciliation.py
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.crud import audit_logs as audit_crud
from idealplots.crud import favorites as favorite_crud
from idealplots.crud import listings as listing_crud
from idealplots.models import PropertyListing
from idealplots.models.enums import AuditSeverity
from idealplots.schemas.listing import ReconciliationReport
from idealplots.services.access import require_admin

logger = logging.getLogger(__name__)


async def reconcile_favorites_counts(db: AsyncSession, admin_id: int, fix: bool = False) -> ReconciliationReport:
    """
    Recompute every listing's favorites_count from user_favorites.

    Each drifting listing is logged at CRITICAL and gets a `critical` audit
    entry. With `fix=True` the stored counter is overwritten, under the
    listing's row lock, with the recomputed value.
    """
    admin = await require_admin(db, admin_id)

    actual = await favorite_crud.favorite_counts_by_listing(db)
    rows = (await db.execute(select(PropertyListing.id, PropertyListing.favorites_count))).all()

    drifted = []
    for listing_pk, stored in rows:
        expected = actual.get(listing_pk, 0)
        if stored == expected:
            continue

        logger.critical(
            "favorites_count drift on listing %s: stored=%s actual=%s", listing_pk, stored, expected
        )
        drifted.append({"listing_id": listing_pk, "stored": stored, "actual": expected})
        await audit_crud.create_audit_log(
            db,
            user_id=admin.id,
            action="favorites_count_drift",
            table_name="property_listings",
            record_id=listing_pk,
            old_values={"favorites_count": stored},
            new_values={"favorites_count": expected},
            description=f"favorites_count drift detected ({stored} stored, {expected} actual)",
            severity=AuditSeverity.CRITICAL,
        )
        if fix:
            listing = await listing_crud.lock_listing(db, listing_pk)
            listing.favorites_count = await favorite_crud.count_favorites(db, listing_pk)
            await db.flush()

    return ReconciliationReport(checked=len(rows), drifted=drifted, fixed=fix and bool(drifted))

# idealplots/crud/listings.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.models import PropertyImage, PropertyListing, PropertyView


# --- Fetch Listing ---
async def lock_listing(db: AsyncSession, listing_pk: int) -> Optional[PropertyListing]:
    """Row-lock a listing for the rest of the transaction and refresh it."""
    result = await db.execute(
        select(PropertyListing)
        .where(PropertyListing.id == listing_pk)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# --- Listing ID sequence per CITY-TYPE-YEAR prefix ---
async def count_listing_ids_with_prefix(db: AsyncSession, prefix: str) -> int:
    result = await db.execute(
        select(func.count(PropertyListing.id)).where(PropertyListing.listing_id.like(f"{prefix}-%"))
    )
    return result.scalar() or 0


# --- Insert Listing ---
def build_listing(**fields) -> PropertyListing:
    return PropertyListing(**fields)


# --- Property views ---
async def has_recent_view(db: AsyncSession, listing_pk: int, ip_address: str, since: datetime) -> bool:
    result = await db.execute(
        select(PropertyView.id)
        .where(
            PropertyView.property_id == listing_pk,
            PropertyView.ip_address == ip_address,
            PropertyView.viewed_at >= since,
        )
        .limit(1)
    )
    return result.first() is not None


async def create_view(db: AsyncSession, listing_pk: int, **fields) -> PropertyView:
    view = PropertyView(property_id=listing_pk, **fields)
    db.add(view)
    await db.flush()
    return view


# --- Property images ---
async def next_image_order(db: AsyncSession, listing_pk: int) -> int:
    result = await db.execute(
        select(func.max(PropertyImage.display_order)).where(PropertyImage.property_id == listing_pk)
    )
    current = result.scalar()
    return 0 if current is None else current + 1


async def create_image(db: AsyncSession, listing_pk: int, **fields) -> PropertyImage:
    image = PropertyImage(property_id=listing_pk, **fields)
    db.add(image)
    await db.flush()
    return image


async def list_images(db: AsyncSession, listing_pk: int) -> List[PropertyImage]:
    result = await db.execute(
        select(PropertyImage)
        .where(PropertyImage.property_id == listing_pk)
        .order_by(PropertyImage.display_order, PropertyImage.id)
    )
    return list(result.scalars().all())

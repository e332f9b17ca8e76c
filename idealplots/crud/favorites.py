# idealplots/crud/favorites.py
from typing import Dict, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.models import UserFavorite


async def get_favorite(db: AsyncSession, user_id: int, listing_pk: int) -> Optional[UserFavorite]:
    result = await db.execute(
        select(UserFavorite).where(UserFavorite.user_id == user_id, UserFavorite.property_id == listing_pk)
    )
    return result.scalar_one_or_none()


# --- Insert Favorite ---
async def create_favorite(
    db: AsyncSession,
    user_id: int,
    listing_pk: int,
    notes: Optional[str] = None,
    notification_preferences: Optional[Dict[str, bool]] = None,
) -> UserFavorite:
    favorite = UserFavorite(user_id=user_id, property_id=listing_pk, notes=notes)
    if notification_preferences is not None:
        favorite.notification_preferences = notification_preferences
    db.add(favorite)
    await db.flush()
    return favorite


# --- Delete Favorite ---
async def delete_favorite(db: AsyncSession, user_id: int, listing_pk: int) -> bool:
    result = await db.execute(
        delete(UserFavorite)
        .where(UserFavorite.user_id == user_id, UserFavorite.property_id == listing_pk)
        .execution_options(synchronize_session="fetch")
    )
    return (result.rowcount or 0) > 0


async def count_favorites(db: AsyncSession, listing_pk: int) -> int:
    result = await db.execute(
        select(func.count(UserFavorite.id)).where(UserFavorite.property_id == listing_pk)
    )
    return result.scalar() or 0


async def favorite_counts_by_listing(db: AsyncSession) -> Dict[int, int]:
    result = await db.execute(
        select(UserFavorite.property_id, func.count(UserFavorite.id)).group_by(UserFavorite.property_id)
    )
    return {row[0]: row[1] for row in result.all()}


# idealplots/services/favorite_services.py
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.core.exceptions import AuthorizationError, DuplicateKeyError, NotFoundError
from idealplots.crud import favorites as favorite_crud
from idealplots.crud import listings as listing_crud
from idealplots.crud import users as user_crud
from idealplots.crud import views as view_crud
from idealplots.models import PropertyListing
from idealplots.models.enums import ListingStatus, UserStatus
from idealplots.schemas.common import Page, PageParams, Pagination
from idealplots.schemas.listing import FavoriteCreate, FavoriteListingRow, FavoriteToggleResult
from idealplots.services import maintainers

logger = logging.getLogger(__name__)


async def _check_user(db: AsyncSession, user_id: int) -> None:
    user = await user_crud.get_user(db, user_id)
    if user is None or user.deleted_at is not None:
        raise NotFoundError("User not found")
    if user.status in (UserStatus.SUSPENDED, UserStatus.INACTIVE):
        raise AuthorizationError("Account is not allowed to favorite properties")


async def _lock(db: AsyncSession, listing_pk: int) -> PropertyListing:
    # Every favorite write on a listing holds its row lock first, so writers
    # on the same listing serialize before touching user_favorites.
    listing = await listing_crud.lock_listing(db, listing_pk)
    if listing is None:
        raise NotFoundError("Property not found")
    return listing


class FavoriteServices:

    @staticmethod
    async def add_favorite(
        db: AsyncSession, user_id: int, listing_pk: int, request: Optional[FavoriteCreate] = None
    ) -> FavoriteToggleResult:
        await _check_user(db, user_id)
        listing = await _lock(db, listing_pk)
        if listing.deleted_at is not None or listing.status != ListingStatus.ACTIVE:
            raise NotFoundError("Property not found")

        if await favorite_crud.get_favorite(db, user_id, listing.id) is not None:
            raise DuplicateKeyError("Property already in favorites")

        request = request or FavoriteCreate()
        await favorite_crud.create_favorite(
            db, user_id, listing.id, request.notes, request.notification_preferences
        )
        listing = await maintainers.adjust_favorites_count(db, listing.id, +1)
        return FavoriteToggleResult(is_favorited=True, action="added", favorites_count=listing.favorites_count)

    @staticmethod
    async def remove_favorite(db: AsyncSession, user_id: int, listing_pk: int) -> FavoriteToggleResult:
        listing = await _lock(db, listing_pk)
        if not await favorite_crud.delete_favorite(db, user_id, listing.id):
            raise NotFoundError("Favorite not found")
        listing = await maintainers.adjust_favorites_count(db, listing.id, -1)
        return FavoriteToggleResult(is_favorited=False, action="removed", favorites_count=listing.favorites_count)

    @staticmethod
    async def toggle_favorite(db: AsyncSession, user_id: int, listing_pk: int) -> FavoriteToggleResult:
        listing = await _lock(db, listing_pk)
        if await favorite_crud.get_favorite(db, user_id, listing.id) is not None:
            return await FavoriteServices.remove_favorite(db, user_id, listing.id)
        return await FavoriteServices.add_favorite(db, user_id, listing.id)

    @staticmethod
    async def list_user_favorites(db: AsyncSession, user_id: int, params: PageParams) -> Page[FavoriteListingRow]:
        """The user's favorited listings that are still active, most recently favorited first."""
        await _check_user(db, user_id)
        rows, total = await view_crud.user_favorite_listings(db, user_id, params.offset, params.limit)
        return Page[FavoriteListingRow](
            items=[FavoriteListingRow(**row) for row in rows],
            pagination=Pagination.build(params.page, params.limit, total),
        )

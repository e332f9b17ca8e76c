# idealplots/services/dashboard_services.py
import logging
from typing import Optional

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.core.config import settings
from idealplots.core.exceptions import NotFoundError
from idealplots.crud import views as view_crud
from idealplots.db.redis_client import cache_get_json, cache_set_json
from idealplots.models.enums import PropertyType
from idealplots.schemas.agent import PendingNotificationRow
from idealplots.schemas.approval import PendingApprovalRow
from idealplots.schemas.common import Page, PageParams, Pagination
from idealplots.schemas.listing import ActivePropertyRow, ListingSearch
from idealplots.schemas.user import UserDashboard
from idealplots.services.access import require_admin, require_self_or_admin

logger = logging.getLogger(__name__)


def dashboard_cache_key(user_id: int) -> str:
    return f"dashboard:user:{user_id}"


class DashboardServices:

    @staticmethod
    async def get_user_dashboard(
        db: AsyncSession, actor_id: int, user_id: int, redis: Redis
    ) -> UserDashboard:
        """
        Per-user aggregates (listed, favorited, enquired, active, sold and the
        preferred agent's name).

        Workflow:
        1. Only the user or an admin may read it.
        2. Serve from the Redis cache when present.
        3. Otherwise compute the projection and cache it for
           `dashboard_cache_ttl_seconds`.
        """

        # 1. --- Access ---
        await require_self_or_admin(db, actor_id, user_id)

        # 2. --- Checking Redis cache ---
        cache_key = dashboard_cache_key(user_id)
        cached = await cache_get_json(redis, cache_key)
        if cached:
            return UserDashboard(**cached)

        # 3. --- Projection ---
        row = await view_crud.user_dashboard(db, user_id)
        if row is None:
            raise NotFoundError("Dashboard is only available for users with role user")
        dashboard = UserDashboard(**row)

        await cache_set_json(redis, cache_key, dashboard.model_dump(), settings.dashboard_cache_ttl_seconds)
        return dashboard

    @staticmethod
    async def active_properties(
        db: AsyncSession,
        params: PageParams,
        city: Optional[str] = None,
        property_type: Optional[PropertyType] = None,
    ) -> Page[ActivePropertyRow]:
        rows, total = await view_crud.active_properties_with_users(
            db,
            params.offset,
            params.limit,
            city=[city] if city else None,
            property_type=[property_type] if property_type else None,
        )
        return Page[ActivePropertyRow](
            items=[ActivePropertyRow(**row) for row in rows],
            pagination=Pagination.build(params.page, params.limit, total),
        )

    @staticmethod
    async def search_properties(db: AsyncSession, params: PageParams, search: ListingSearch) -> Page[ActivePropertyRow]:
        """
        Filtered feed of active listings. Featured listings lead, then the
        requested sort column, then newest id.
        """
        filters = search.model_dump(exclude_none=True)
        rows, total = await view_crud.active_properties_with_users(db, params.offset, params.limit, **filters)
        logger.debug("Property search %s matched %d listings", filters, total)
        return Page[ActivePropertyRow](
            items=[ActivePropertyRow(**row) for row in rows],
            pagination=Pagination.build(params.page, params.limit, total),
        )

    @staticmethod
    async def pending_approvals(db: AsyncSession, admin_id: int, params: PageParams) -> Page[PendingApprovalRow]:
        await require_admin(db, admin_id)
        rows, total = await view_crud.pending_approvals_summary(db, params.offset, params.limit)
        return Page[PendingApprovalRow](
            items=[PendingApprovalRow(**row) for row in rows],
            pagination=Pagination.build(params.page, params.limit, total),
        )

    @staticmethod
    async def pending_notifications(
        db: AsyncSession, admin_id: int, params: PageParams
    ) -> Page[PendingNotificationRow]:
        await require_admin(db, admin_id)
        rows, total = await view_crud.agents_pending_notifications(db, params.offset, params.limit)
        return Page[PendingNotificationRow](
            items=[PendingNotificationRow(**row) for row in rows],
            pagination=Pagination.build(params.page, params.limit, total),
        )

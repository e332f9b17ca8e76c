# idealplots/services/access.py
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.core.exceptions import AuthorizationError
from idealplots.crud import users as user_crud
from idealplots.models import User

logger = logging.getLogger(__name__)

INVALID_ADMIN = "Invalid admin user or insufficient privileges"


async def require_admin(db: AsyncSession, admin_id: int) -> User:
    admin = await user_crud.get_active_admin(db, admin_id)
    if admin is None:
        logger.warning("Admin-only operation refused for user %s", admin_id)
        raise AuthorizationError(INVALID_ADMIN)
    return admin


async def require_actor(db: AsyncSession, actor_id: int) -> User:
    actor = await user_crud.get_user(db, actor_id)
    if actor is None or actor.deleted_at is not None:
        logger.warning("Request from unknown user %s refused", actor_id)
        raise AuthorizationError("Unknown user")
    return actor


async def require_self_or_admin(db: AsyncSession, actor_id: int, user_id: int) -> User:
    actor = await require_actor(db, actor_id)
    if actor.id != user_id and not actor.is_active_admin:
        logger.warning("User %s refused access to data of user %s", actor_id, user_id)
        raise AuthorizationError("You can only access your own data")
    return actor

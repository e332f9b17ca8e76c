# idealplots/db/init_db.py
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from idealplots import models  # noqa: F401
from idealplots.core.config import settings
from idealplots.core.logging_config import LogConfig, setup_logging
from idealplots.core.security import hash_credential
from idealplots.crud import users as user_crud
from idealplots.db.base_class import Base, utcnow
from idealplots.db.session import Database, database
from idealplots.models import User
from idealplots.models.enums import UserRole, UserStatus
from idealplots.services.settings_services import SettingsServices

logger = logging.getLogger(__name__)


async def create_schema(db: Database) -> None:
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def bootstrap_admin(session: AsyncSession, name: str, email: str, phone: str, credential_hash: str):
    """
    First admin of a fresh install. preferred_agent_id stays null, so the
    self-referencing foreign key never blocks the insert.
    """
    existing = await user_crud.find_user_by_contact(session, email, phone)
    if existing is not None:
        return existing
    now = utcnow()
    admin: User = await user_crud.create_user(
        session,
        name=name,
        email=email,
        phone=phone,
        credential_hash=credential_hash,
        role=UserRole.ADMIN,
        status=UserStatus.ACTIVE,
        is_buyer=False,
        email_verified_at=now,
        phone_verified_at=now,
    )
    logger.info("Bootstrap admin %s created", admin.id)
    return admin


async def init_db(db: Database = database) -> None:
    """
    Workflow:
    1. Create missing tables.
    2. Seed default system settings.
    3. Create the bootstrap admin when BOOTSTRAP_ADMIN_* is configured.
    """
    await db.init()

    # 1. --- Schema ---
    await create_schema(db)

    # 2. --- Settings ---
    created = await db.run(SettingsServices.seed_defaults)
    logger.info("Seeded %s default settings", created)

    # 3. --- Admin ---
    if settings.bootstrap_admin_email and settings.bootstrap_admin_phone and settings.bootstrap_admin_password:
        await db.run(
            bootstrap_admin,
            settings.bootstrap_admin_name,
            settings.bootstrap_admin_email,
            settings.bootstrap_admin_phone,
            hash_credential(settings.bootstrap_admin_password),
        )


async def main() -> None:
    setup_logging(LogConfig(level=settings.log_level))
    try:
        await init_db()
    finally:
        await database.close()


if __name__ == "__main__":
    asyncio.run(main())

# idealplots/crud/settings.py
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.models import SystemSetting


async def get_setting(db: AsyncSession, key: str) -> Optional[SystemSetting]:
    result = await db.execute(select(SystemSetting).where(SystemSetting.setting_key == key))
    return result.scalar_one_or_none()


async def create_setting(db: AsyncSession, key: str, **fields) -> SystemSetting:
    setting = SystemSetting(setting_key=key, **fields)
    db.add(setting)
    await db.flush()
    return setting

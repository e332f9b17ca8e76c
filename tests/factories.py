"""
Row factories for tests.

Every factory takes the session first so it can be handed to
`Database.run(factory, **fields)` and commit on its own.
"""

import itertools
from decimal import Decimal

from sqlalchemy import func, select

from idealplots.crud import settings as settings_crud
from idealplots.models import PropertyListing, SystemSetting, User
from idealplots.models.enums import ListingStatus, PropertyType, SettingType, UserRole, UserStatus

# bcrypt-shaped, 60 characters
H60 = "$2b$12$" + "N" * 53

_seq = itertools.count(1)


def _next() -> int:
    return next(_seq)


async def create_user(session, **fields) -> User:
    n = _next()
    values = {
        "name": f"User {n}",
        "email": f"user{n}@example.com",
        "phone": f"+9190000{n:05d}",
        "credential_hash": H60,
        "role": UserRole.USER,
        "status": UserStatus.ACTIVE,
        "is_buyer": True,
        "is_seller": False,
    }
    values.update(fields)
    user = User(**values)
    session.add(user)
    await session.flush()
    return user


async def create_admin(session, **fields) -> User:
    fields.setdefault("role", UserRole.ADMIN)
    fields.setdefault("is_buyer", False)
    return await create_user(session, **fields)


async def create_agent(session, **fields) -> User:
    fields.setdefault("role", UserRole.AGENT)
    fields.setdefault("is_buyer", False)
    fields.setdefault("license_number", f"KL-AG-{_next():04d}")
    fields.setdefault("agency_name", "Coastal Realty")
    fields.setdefault("agent_rating", Decimal("4.00"))
    return await create_user(session, **fields)


async def create_listing(session, owner_id: int, **fields) -> PropertyListing:
    n = _next()
    values = {
        "listing_id": f"KOC-AP-2026-{n:04d}",
        "owner_id": owner_id,
        "title": f"Listing {n}",
        "description": "Spacious home close to the backwaters",
        "property_type": PropertyType.APARTMENT,
        "price": Decimal("3000000"),
        "area": Decimal("1200"),
        "city": "Kochi",
        "location": "Kakkanad",
        "status": ListingStatus.ACTIVE,
    }
    values.update(fields)
    listing = PropertyListing(**values)
    session.add(listing)
    await session.flush()
    return listing


async def set_setting(session, key: str, value: str, setting_type: SettingType = SettingType.BOOLEAN) -> SystemSetting:
    setting = await settings_crud.get_setting(session, key)
    if setting is None:
        return await settings_crud.create_setting(session, key, setting_value=value, setting_type=setting_type)
    setting.setting_value = value
    await session.flush()
    return setting


async def get(session, model, pk: int):
    """Load one row by primary key."""
    return await session.get(model, pk)


async def count(session, model, *criteria) -> int:
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return (await session.execute(stmt)).scalar()


async def rows(session, model, *criteria):
    stmt = select(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return list((await session.execute(stmt.order_by(model.id))).scalars().all())

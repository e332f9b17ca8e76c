# idealplots/services/identifiers.py
import itertools
import logging
import re
import secrets
from datetime import date
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.core.exceptions import TicketCollisionError, is_duplicate_on
from idealplots.db.base_class import Base, utcnow
from idealplots.models.enums import PropertyType

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

_TICKET_SPACE = 1_000_000


class TicketNumberGenerator:
    """
    `TKT-yyyymmdd-NNNNNN` where NNNNNN comes from a monotonic per-process
    counter. The counter starts at a random offset so separate processes are
    unlikely to walk the same sequence; residual collisions are handled by
    the insert retry in `insert_with_unique_retry`.
    """

    def __init__(self, start: Optional[int] = None):
        if start is None:
            start = secrets.randbelow(_TICKET_SPACE)
        self._counter = itertools.count(start)

    def next(self, today: Optional[date] = None) -> str:
        today = today or utcnow().date()
        suffix = next(self._counter) % _TICKET_SPACE
        return f"TKT-{today:%Y%m%d}-{suffix:06d}"


ticket_numbers = TicketNumberGenerator()


def listing_prefix(city: str, property_type: PropertyType, year: int) -> str:
    return f"{city[:3].upper()}-{PropertyType(property_type).code}-{year}"


def format_listing_id(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:04d}"


LISTING_ID_PATTERN = re.compile(r"^[A-Z]{2,3}-[A-Z]{2}-\d{4}-\d{4,}$")


def listing_lookup_key(identifier: str) -> Tuple[str, Any]:
    """Which listing column a public identifier refers to: numeric id, listing code or slug."""
    if identifier.isdigit():
        return "id", int(identifier)
    if LISTING_ID_PATTERN.match(identifier):
        return "listing_id", identifier
    return "slug", identifier


async def insert_with_unique_retry(
    db: AsyncSession,
    build: Callable[[int], Awaitable[ModelT]],
    column: str,
    attempts: int,
) -> ModelT:
    """
    Insert the row produced by `build(attempt)` inside a savepoint. A unique
    violation on `column` rolls back only the savepoint and retries with a
    freshly built row; after `attempts` failures TicketCollisionError is
    raised. Any other integrity error propagates.
    """
    for attempt in range(1, attempts + 1):
        instance = await build(attempt)
        try:
            async with db.begin_nested():
                db.add(instance)
                await db.flush()
            return instance
        except IntegrityError as exc:
            if not is_duplicate_on(exc, column):
                raise
            logger.warning(
                "Collision on %s.%s (attempt %s/%s)", instance.__tablename__, column, attempt, attempts
            )
    raise TicketCollisionError(f"Could not generate a unique {column} after {attempts} attempts")

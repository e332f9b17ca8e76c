import asyncio
from datetime import date

import pytest

from idealplots.core.exceptions import (
    DuplicateKeyError, OperationTimeoutError, PoolClosedError, TransientError,
)
from idealplots.db.session import Database
from idealplots.models import User
from idealplots.models.enums import PropertyType
from idealplots.services.identifiers import TicketNumberGenerator, format_listing_id, listing_prefix
from tests import factories


@pytest.mark.asyncio
async def test_transient_failures_are_retried(database):
    calls = []

    async def flaky(session):
        calls.append(1)
        if len(calls) < 3:
            raise TransientError("serialization failure")
        return "done"

    assert await database.run(flaky) == "done"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_transient_failure_surfaces_after_budget(database):
    calls = []

    async def always_failing(session):
        calls.append(1)
        raise TransientError("deadlock detected")

    with pytest.raises(TransientError):
        await database.run(always_failing)
    assert len(calls) == database.retry_attempts + 1


@pytest.mark.asyncio
async def test_operation_budget(database):
    database.operation_timeout = 0.05

    async def slow(session):
        await asyncio.sleep(1)

    with pytest.raises(OperationTimeoutError):
        await database.run(slow)


@pytest.mark.asyncio
async def test_unique_violation_is_translated(database):
    await database.run(factories.create_user, email="same@example.com")

    with pytest.raises(DuplicateKeyError):
        await database.run(factories.create_user, email="same@example.com")
    assert await database.run(factories.count, User) == 1


@pytest.mark.asyncio
async def test_closed_pool_rejects_work(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'closed.db'}", pool_size=1, max_reconnect_attempts=1)
    await db.init()
    assert db.is_ready

    await db.close()

    assert not db.is_ready
    with pytest.raises(PoolClosedError):
        await db.run(factories.count, User)
    with pytest.raises(PoolClosedError):
        await db.init()


def test_ticket_numbers_are_sequential():
    generator = TicketNumberGenerator(start=999_999)
    today = date(2026, 3, 15)

    assert generator.next(today) == "TKT-20260315-999999"
    assert generator.next(today) == "TKT-20260315-000000"


def test_listing_id_format():
    prefix = listing_prefix("Thiruvananthapuram", PropertyType.COMMERCIAL_BUILDING, 2026)

    assert prefix == "THI-CB-2026"
    assert format_listing_id(prefix, 7) == "THI-CB-2026-0007"

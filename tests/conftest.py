"""
Pytest configuration and fixtures.

Provides:
- `database`: a real `Database` over a file-backed SQLite database
  (aiosqlite), schema created per test
- `fake_redis`: an AsyncMock standing in for redis.asyncio
- `client`: httpx AsyncClient wired to the FastAPI app with the two
  fixtures above injected through dependency overrides
"""

from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from idealplots import models  # noqa: F401
from idealplots.db.base_class import Base
from idealplots.db.redis_client import get_redis
from idealplots.db.session import Database, get_database


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Fresh schema per test; transient retries do not sleep."""
    db = Database(
        f"sqlite+aiosqlite:///{tmp_path / 'idealplots.db'}",
        pool_size=1,
        acquire_timeout=30,
        operation_timeout=30,
        retry_attempts=3,
        retry_backoff=0,
        max_reconnect_attempts=1,
    )
    await db.init()
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield db

    await db.close()


# ============================================================================
# Cache Fixtures
# ============================================================================

@pytest.fixture
def fake_redis():
    """Mock Redis client: empty cache, counters start at 1."""
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.incr = AsyncMock(return_value=1)
    client.expire = AsyncMock(return_value=True)
    return client


# ============================================================================
# HTTP Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def client(database, fake_redis) -> AsyncGenerator[AsyncClient, None]:
    from idealplots.main import app

    async def _redis():
        yield fake_redis

    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_redis] = _redis
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()

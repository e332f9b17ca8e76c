# idealplots/db/redis_client.py
import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

from idealplots.core.config import settings

logger = logging.getLogger(__name__)

# Create a Redis client instance
redis_client = redis.from_url(settings.redis_url, decode_responses=True)


async def get_redis():
    """
    Dependency to provide Redis client in FastAPI endpoints
    Usage: `redis: redis.Redis = Depends(get_redis)`
    """
    yield redis_client


# --- Rate limiting ---
async def hit_rate_limit(client, key: str, limit: int, window_seconds: int) -> bool:
    """
    Count one request against `key`; True when the caller is over `limit`
    within the fixed window. Redis outages fail open.
    """
    try:
        count = await client.incr(key)
        if count == 1:
            await client.expire(key, window_seconds)
        return count > limit
    except redis.RedisError as e:
        logger.warning("Rate limiter unavailable for %s: %s", key, e)
        return False


# --- JSON cache ---
async def cache_get_json(client, key: str) -> Optional[Any]:
    try:
        raw = await client.get(key)
    except redis.RedisError as e:
        logger.warning("Cache read failed for %s: %s", key, e)
        return None
    return json.loads(raw) if raw else None


async def cache_set_json(client, key: str, value: Any, ttl: int) -> None:
    try:
        await client.set(key, json.dumps(value, default=str), ex=ttl)
    except redis.RedisError as e:
        logger.warning("Cache write failed for %s: %s", key, e)


async def cache_delete(client, *keys: str) -> None:
    if not keys:
        return
    try:
        await client.delete(*keys)
    except redis.RedisError as e:
        logger.warning("Cache delete failed for %s: %s", keys, e)

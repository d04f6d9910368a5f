"""Redis connection management.

One client per process, created in the app lifespan. Holds login sessions
and one-time OAuth state; the roster itself is never stored here.
"""

import redis.asyncio as aioredis

from rosterdesk.config import settings
from rosterdesk.logging_config import get_logger

logger = get_logger(__name__)

_redis: aioredis.Redis | None = None


async def init_redis() -> None:
    """Create the Redis client and verify connectivity."""
    global _redis
    _redis = aioredis.from_url(str(settings.redis_url), decode_responses=True)
    try:
        await _redis.ping()
    except aioredis.RedisError:
        logger.warning("Redis not reachable at startup", url=str(settings.redis_url))


async def close_redis() -> None:
    """Close the Redis client."""
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis_client() -> aioredis.Redis:
    """Return the process Redis client."""
    if _redis is None:
        raise RuntimeError("Redis not initialized")
    return _redis


async def get_redis_health() -> bool:
    """Return True if Redis answers PING."""
    try:
        return bool(await get_redis_client().ping())
    except (RuntimeError, aioredis.RedisError):
        return False

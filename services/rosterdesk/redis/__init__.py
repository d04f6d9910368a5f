"""Redis client module."""

from .client import close_redis, get_redis_client, get_redis_health, init_redis

__all__ = [
    "close_redis",
    "get_redis_client",
    "get_redis_health",
    "init_redis",
]

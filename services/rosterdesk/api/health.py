"""
Health check endpoints for the rosterdesk API server.

Provides /health (liveness) and /ready (readiness) endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends, Response, status

from rosterdesk.logging_config import get_logger
from rosterdesk.redis.client import get_redis_health
from rosterdesk.services.roster_cache import RosterCache

from .dependencies import get_roster_cache

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    """
    Liveness probe endpoint.

    Returns 200 if the API server is running.
    """
    return {"status": "healthy"}


@router.get("/ready", status_code=status.HTTP_200_OK)
async def ready(
    response: Response,
    cache: RosterCache = Depends(get_roster_cache),
) -> dict[str, Any]:
    """
    Readiness probe endpoint.

    Ready once Redis answers and the roster cache holds a snapshot (stale
    or not). The cache status is included for diagnostics.
    """
    redis_healthy = await get_redis_health()
    cache_status = cache.status()

    checks: dict[str, str] = {
        "redis": "healthy" if redis_healthy else "unhealthy",
        "roster": "healthy" if cache_status["has_snapshot"] else "empty",
    }

    if not (redis_healthy and cache_status["has_snapshot"]):
        logger.warning("Readiness check failed", checks=checks)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not ready", "checks": checks, "roster": cache_status}

    return {"status": "ready", "checks": checks, "roster": cache_status}

"""
Health check endpoints - used by load balancers, Docker healthcheck, and monitoring.

- GET /health       - basic liveness (always 200 if app running)
- GET /health/ready - readiness check (event store + Redis when configured)
"""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Request

from payhook.config import APP_VERSION

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check - returns 200 if the app is running."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": APP_VERSION,
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """
    Readiness check - verifies the event store and, if one is configured,
    the Redis cache. Redis is optional, so it is only reported when present.
    """
    checks = {"store": await _check_store(request.app.state.store)}

    cache = getattr(request.app.state, "cache", None)
    if cache is not None:
        checks["redis"] = await _check_redis(cache)

    all_healthy = all(checks.values())
    return {
        "status": "ready" if all_healthy else "degraded",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def _check_store(store) -> bool:
    try:
        await store.ping()
        return True
    except Exception as e:
        logger.error("Event store health check failed: %s", str(e))
        return False


async def _check_redis(cache) -> bool:
    try:
        await cache.ping()
        return True
    except Exception as e:
        logger.warning("Redis health check failed: %s", str(e))
        return False

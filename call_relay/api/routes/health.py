"""
Health check and status endpoints
"""

from datetime import datetime, timezone
from fastapi import APIRouter, Request
from redis.exceptions import RedisError

from call_relay.api.deps import get_context
from call_relay.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """
    Basic health check endpoint
    """
    context = get_context(request)
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": context.settings.environment
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness check - verifies the database and cache are reachable
    """
    context = get_context(request)

    try:
        cache_ok = bool(await context.cache.client.ping())
    except RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        cache_ok = False

    checks = {
        "database": context.repository.adapter.is_connected(),
        "cache": cache_ok,
    }

    return {
        "status": "ready" if all(checks.values()) else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
        "background_jobs": context.supervisor.pending
    }

"""
Health Check Routes

- ``GET /health``: liveness plus a summary of each dependency; always 200 so
  load balancers keep routing (the cache is optional, a dead cache only
  degrades latency)
- ``GET /health/cache``: detailed store health and statistics; 503 when the
  store does not answer
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from comicwise.config.settings import get_settings
from comicwise.infrastructure.cache.cache_service import get_cache_service

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    """Standard health check response model."""

    status: str  # "healthy" or "degraded"
    timestamp: str  # ISO 8601
    version: str
    components: dict | None = None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("", response_model=HealthResponse)
async def health_check():
    """Quick health check for load balancers."""
    cache = get_cache_service()
    cache_healthy = await cache.health_check()

    return HealthResponse(
        status="healthy" if cache_healthy else "degraded",
        timestamp=_timestamp(),
        version=get_settings().app.APP_VERSION,
        components={
            "cache": {
                "status": "healthy" if cache_healthy else "unhealthy",
                "backend": getattr(cache.store, "name", "unknown"),
                "enabled": cache.enabled,
            }
        },
    )


@router.get("/cache")
async def cache_health():
    """
    Detailed cache health: connectivity, latency, pool usage and hit rate.

    HTTP Status Codes:
        200: Store reachable
        503: Store unreachable (the API keeps serving uncached)
    """
    cache = get_cache_service()
    details = await cache.health_details()
    stats = await cache.get_stats()

    healthy = details.get("status") == "healthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"timestamp": _timestamp(), "health": details, "stats": stats},
    )

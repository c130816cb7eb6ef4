"""
Admin Routes

Operational endpoints for the cache and rate-limit layers:

- ``POST /admin/cache/invalidate``: invalidate by prefix, glob pattern and tags
- ``GET /admin/cache/stats``: store statistics and hit rate
- ``GET /admin/rate-limit/{identifier}``: current window for an identifier
- ``DELETE /admin/rate-limit/{identifier}``: reset an identifier's window

In production these should sit behind authentication and must not be
exposed on the public port.
"""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field, model_validator

from comicwise.application.api.middleware.cache_middleware import invalidate_cache
from comicwise.core.logging.logger import get_logger
from comicwise.infrastructure.cache.cache_service import get_cache_service
from comicwise.rate_limiting.rate_limiter import clear_rate_limit, get_rate_limit_status

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ============================================================================
# REQUEST / RESPONSE MODELS
# ============================================================================


class CacheInvalidationRequest(BaseModel):
    prefix: str | None = Field(default=None, description="Delete every key under '<prefix>:'")
    pattern: str | None = Field(default=None, description="Glob pattern, e.g. 'comic:*'")
    tags: list[str] = Field(default_factory=list, description="Invalidation tags")

    @model_validator(mode="after")
    def require_target(self):
        if not (self.prefix or self.pattern or self.tags):
            raise ValueError("At least one of prefix, pattern or tags is required")
        return self


class CacheInvalidationResponse(BaseModel):
    invalidated: int
    prefix: str | None = None
    pattern: str | None = None
    tags: list[str] = Field(default_factory=list)


class RateLimitStatusResponse(BaseModel):
    identifier: str
    exists: bool
    count: int
    reset_at: int | None = None


# ============================================================================
# CACHE ENDPOINTS
# ============================================================================


@router.post("/cache/invalidate", response_model=CacheInvalidationResponse)
async def invalidate(request: CacheInvalidationRequest):
    """Invalidate cached entries and report how many keys were removed."""
    count = await invalidate_cache(prefix=request.prefix, pattern=request.pattern, tags=request.tags)
    logger.info(
        "Cache invalidated via admin API",
        prefix=request.prefix,
        pattern=request.pattern,
        tags=request.tags,
        count=count,
    )
    return CacheInvalidationResponse(
        invalidated=count,
        prefix=request.prefix,
        pattern=request.pattern,
        tags=request.tags,
    )


@router.get("/cache/stats")
async def cache_stats():
    return await get_cache_service().get_stats()


# ============================================================================
# RATE LIMIT ENDPOINTS
# ============================================================================


@router.get("/rate-limit/{identifier}", response_model=RateLimitStatusResponse)
async def rate_limit_status(identifier: str):
    current = await get_rate_limit_status(identifier)
    return RateLimitStatusResponse(
        identifier=identifier,
        exists=current.exists,
        count=current.count,
        reset_at=current.reset_at,
    )


@router.delete("/rate-limit/{identifier}", status_code=status.HTTP_204_NO_CONTENT)
async def reset_rate_limit(identifier: str):
    if not await clear_rate_limit(identifier):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limit store unavailable",
        )
    logger.info("Rate limit cleared via admin API", identifier=identifier)

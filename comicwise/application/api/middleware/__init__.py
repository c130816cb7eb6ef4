"""
Middleware Package

AVAILABLE MIDDLEWARE:
---------------------
1. request_context: request ID correlation and request logging
2. rate_limit: fixed-window rate limiting (app-wide or per route)
3. cache_middleware: per-route response caching and invalidation wrappers

MIDDLEWARE ORDERING:
--------------------
Starlette runs the middleware added LAST first. ``setup_middleware`` adds
rate limiting before request context so the request ID is bound before a
request can be throttled and the 429 is logged with it.

USAGE EXAMPLE:
--------------
    from fastapi import FastAPI
    from comicwise.application.api.middleware import setup_middleware

    app = FastAPI()
    setup_middleware(app)
"""

from fastapi import FastAPI

from comicwise.config.settings import get_settings
from comicwise.core.logging.logger import get_logger

from .cache_middleware import (
    CacheMiddlewareConfig,
    generate_cache_key,
    invalidate_cache,
    with_cache,
    with_cache_invalidation,
    with_smart_cache,
)
from .rate_limit import (
    RateLimitMiddleware,
    add_rate_limit_middleware,
    get_client_identifier,
    rate_limited_response,
    with_rate_limit,
)
from .request_context import RequestContextMiddleware, add_request_context_middleware

logger = get_logger(__name__)


def setup_middleware(app: FastAPI) -> None:
    """
    Register application-wide middleware in order.

    Rate limiting is only registered when RATE_LIMIT_ENABLED is set.
    """
    settings = get_settings()

    if settings.rate_limit.RATE_LIMIT_ENABLED:
        add_rate_limit_middleware(
            app,
            requests=settings.rate_limit.RATE_LIMIT_DEFAULT_REQUESTS,
            window=settings.rate_limit.RATE_LIMIT_DEFAULT_WINDOW,
        )

    add_request_context_middleware(app)

    logger.info("All middleware components registered successfully")


__all__ = [
    "setup_middleware",
    "CacheMiddlewareConfig",
    "generate_cache_key",
    "with_cache",
    "invalidate_cache",
    "with_cache_invalidation",
    "with_smart_cache",
    "RateLimitMiddleware",
    "add_rate_limit_middleware",
    "get_client_identifier",
    "rate_limited_response",
    "with_rate_limit",
    "RequestContextMiddleware",
    "add_request_context_middleware",
]

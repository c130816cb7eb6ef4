"""
FastAPI Application Entry Point

Configures the ComicWise cache service application: lifecycle (store
connection, rate-limit sweeper, background write draining), middleware,
exception handlers and routes.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from comicwise.application.api.middleware import setup_middleware
from comicwise.application.api.middleware.rate_limit import RATE_LIMIT_MESSAGE, rate_limited_response
from comicwise.application.api.routes import admin_router, health_router
from comicwise.config.constants import HEADER_REQUEST_ID, Stage
from comicwise.config.settings import get_settings
from comicwise.core.background import drain_background_tasks
from comicwise.core.exceptions import ComicWiseError, ConfigurationError, RateLimitExceededError
from comicwise.core.logging.logger import get_logger, get_request_id, setup_logging
from comicwise.infrastructure.cache.cache_service import close_cache, init_cache
from comicwise.infrastructure.monitoring.metrics_collector import get_metrics_collector
from comicwise.rate_limiting.rate_limiter import get_rate_limiter, set_rate_limiter

logger = get_logger(__name__)

API_BASE_PATH = "/api/v1"

# Seconds to wait for in-flight cache writes on shutdown
SHUTDOWN_DRAIN_TIMEOUT = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).

    Startup: logging, store connection, rate-limit sweeper.
    Shutdown: stop the sweeper, flush pending cache writes, close the store.
    """
    settings = get_settings()

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    logger.info(
        "Starting ComicWise cache service",
        stage=Stage.INITIALIZATION.value,
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
        backend=settings.cache.CACHE_BACKEND,
    )

    limiter = None
    try:
        cache = await init_cache()
        logger.info("Cache initialized", backend=getattr(cache.store, "name", "unknown"))

        if settings.rate_limit.RATE_LIMIT_ENABLED:
            limiter = get_rate_limiter()
            limiter.start_sweeper(settings.rate_limit.RATE_LIMIT_SWEEP_INTERVAL)

        logger.info("Application startup complete")

        yield

    finally:
        logger.info("Shutting down application", stage=Stage.CLEANUP.value)

        if limiter is not None:
            await limiter.stop_sweeper()
        set_rate_limiter(None)

        await drain_background_tasks(timeout=SHUTDOWN_DRAIN_TIMEOUT)
        await close_cache()

        logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Caching and rate limiting layer for the ComicWise comic reader",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(health_router, prefix=API_BASE_PATH)
    app.include_router(admin_router, prefix=API_BASE_PATH)

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus exposition endpoint."""
        collector = get_metrics_collector()
        return Response(content=collector.get_prometheus_metrics(), media_type=collector.get_content_type())

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": f"{API_BASE_PATH}/health",
        }

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_handler(request: Request, exc: RateLimitExceededError):
        """Render a rate-limit breach raised by ``RateLimiter.enforce``."""
        if exc.result is not None:
            return rate_limited_response(exc.result)
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests", "message": RATE_LIMIT_MESSAGE},
        )

    @app.exception_handler(ComicWiseError)
    async def comicwise_exception_handler(request: Request, exc: ComicWiseError):
        """Handle application exceptions that escaped a route."""
        logger.error(
            f"Unhandled application error: {exc.message}",
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        status_code = 500 if isinstance(exc, ConfigurationError) else 503
        exc.request_id = exc.request_id or get_request_id()
        return JSONResponse(
            status_code=status_code,
            content=exc.to_dict(),
            headers={HEADER_REQUEST_ID: exc.request_id or ""},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "comicwise.application.app:app",
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )

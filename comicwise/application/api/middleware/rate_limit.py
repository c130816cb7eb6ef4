"""
Rate Limit Middleware

Applies the fixed-window RateLimiter at the HTTP edge, either per route
(``with_rate_limit``) or for a whole application (``RateLimitMiddleware``).

RESPONSE CONTRACT:
------------------
Allowed requests get informational headers:

    X-RateLimit-Limit:     requests allowed per window
    X-RateLimit-Remaining: requests left in the current window
    X-RateLimit-Reset:     window reset time (epoch milliseconds)

Rejected requests get ``429 Too Many Requests`` with the same headers plus
``Retry-After`` (seconds) and a JSON body:

    {"error": "Too many requests", "message": "...", "retryAfter": 42}
"""

import inspect
from collections.abc import Awaitable, Callable, Iterable

import orjson
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from comicwise.config.constants import (
    ANONYMOUS_IDENTIFIER,
    HEADER_FORWARDED_FOR,
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_REAL_IP,
    HEADER_RETRY_AFTER,
)
from comicwise.core.logging.logger import get_logger
from comicwise.rate_limiting.rate_limiter import (
    RateLimitConfig,
    RateLimiter,
    RateLimitResult,
    default_config,
    get_rate_limiter,
)

logger = get_logger(__name__)

Handler = Callable[[Request], Awaitable[Response]]
KeyGenerator = Callable[[Request], str | None | Awaitable[str | None]]

DEFAULT_EXEMPT_PATHS = ("/api/v1/health", "/metrics")

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


def get_client_identifier(request: Request) -> str:
    """
    Identify the caller by address.

    Uses the first ``X-Forwarded-For`` hop (the original client behind
    proxies), then ``X-Real-IP``, else ``anonymous``.
    """
    forwarded = request.headers.get(HEADER_FORWARDED_FOR)
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.headers.get(HEADER_REAL_IP) or ANONYMOUS_IDENTIFIER


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        HEADER_RATE_LIMIT: str(result.limit),
        HEADER_RATE_REMAINING: str(result.remaining),
        HEADER_RATE_RESET: str(result.reset_at),
    }


def _apply_headers(response: Response, result: RateLimitResult) -> None:
    # An inner limiter that already answered (a nested 429) keeps its own headers.
    for name, value in rate_limit_headers(result).items():
        response.headers.setdefault(name, value)


def rate_limited_response(result: RateLimitResult) -> Response:
    """Build the 429 response for a rejected request."""
    retry_after = result.retry_after()
    headers = rate_limit_headers(result)
    headers[HEADER_RETRY_AFTER] = str(retry_after)
    return Response(
        content=orjson.dumps(
            {
                "error": "Too many requests",
                "message": RATE_LIMIT_MESSAGE,
                "retryAfter": retry_after,
            }
        ),
        status_code=429,
        headers=headers,
        media_type="application/json",
    )


def _build_config(requests: int | None, window: int | None) -> RateLimitConfig:
    defaults = default_config()
    return RateLimitConfig(requests=requests or defaults.requests, window=window or defaults.window)


async def _identify(request: Request, key_generator: KeyGenerator | None) -> str:
    if key_generator is not None:
        identifier = key_generator(request)
        if inspect.isawaitable(identifier):
            identifier = await identifier
        if identifier:
            return str(identifier)
    return get_client_identifier(request)


def with_rate_limit(
    handler: Handler,
    requests: int | None = None,
    window: int | None = None,
    key_generator: KeyGenerator | None = None,
    *,
    limiter: RateLimiter | None = None,
) -> Handler:
    """
    Wrap a route handler with a fixed-window rate limit.

    Args:
        handler: Route handler
        requests: Requests per window (default: RATE_LIMIT_DEFAULT_REQUESTS)
        window: Window length in seconds (default: RATE_LIMIT_DEFAULT_WINDOW)
        key_generator: Caller identity; falls back to the client address
        limiter: RateLimiter override (default: process-wide limiter)
    """
    config = _build_config(requests, window)

    async def limited_handler(request: Request) -> Response:
        identifier = await _identify(request, key_generator)
        result = await (limiter or get_rate_limiter()).check(identifier, config)

        if not result.allowed:
            return rate_limited_response(result)

        response = await handler(request)
        _apply_headers(response, result)
        return response

    return limited_handler


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Application-wide rate limiting.

    Every request whose path does not start with one of ``exempt_paths`` is
    counted against its caller's window. Health checks and the metrics
    endpoint are exempt by default so monitoring never gets throttled.
    """

    def __init__(
        self,
        app,
        requests: int | None = None,
        window: int | None = None,
        key_generator: KeyGenerator | None = None,
        exempt_paths: Iterable[str] = DEFAULT_EXEMPT_PATHS,
        limiter: RateLimiter | None = None,
    ):
        super().__init__(app)
        self.config = _build_config(requests, window)
        self.key_generator = key_generator
        self.exempt_paths = tuple(exempt_paths)
        self.limiter = limiter

    def _is_exempt(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.exempt_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self._is_exempt(request.url.path):
            return await call_next(request)

        identifier = await _identify(request, self.key_generator)
        result = await (self.limiter or get_rate_limiter()).check(identifier, self.config)

        if not result.allowed:
            logger.info(
                "Request throttled",
                identifier=identifier,
                path=request.url.path,
                method=request.method,
            )
            return rate_limited_response(result)

        response = await call_next(request)
        _apply_headers(response, result)
        return response


def add_rate_limit_middleware(
    app: FastAPI,
    requests: int | None = None,
    window: int | None = None,
    key_generator: KeyGenerator | None = None,
    exempt_paths: Iterable[str] = DEFAULT_EXEMPT_PATHS,
    limiter: RateLimiter | None = None,
) -> None:
    """Register RateLimitMiddleware on the application."""
    app.add_middleware(
        RateLimitMiddleware,
        requests=requests,
        window=window,
        key_generator=key_generator,
        exempt_paths=exempt_paths,
        limiter=limiter,
    )
    logger.info("Rate limit middleware registered", requests=requests, window=window)

"""
HTTP Response Cache Middleware

Route-level wrappers that cache JSON responses of request handlers and
invalidate cached entries after mutations.

A handler is any ``async (Request) -> Response`` callable, typically a
Starlette endpoint. Wrappers compose:

    handler = with_cache(list_comics, CacheMiddlewareConfig(include_query=True, tags=["comics"]))
    handler = with_cache_invalidation(create_comic, tags=["comics"])
    app.add_route("/comics", handler)

CACHE KEY LAYOUT:
-----------------
    <prefix>:<path>[:<sorted query>][:body:<md5>][:user:<id>]

The stored entry is ``{"body": <json>, "headers": {...}, "status": int}``;
a hit rebuilds an equivalent response and marks it ``X-Cache: HIT``.
"""

import hashlib
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import orjson
from starlette.requests import Request
from starlette.responses import Response

from comicwise.config.constants import (
    BODY_METHODS,
    CACHE_STATUS_HIT,
    CACHE_STATUS_MISS,
    COOKIE_USER_ID,
    HEADER_CACHE,
    HEADER_CACHE_KEY,
    HEADER_USER_ID,
    MUTATING_METHODS,
    CacheTTL,
    Stage,
)
from comicwise.config.settings import get_settings
from comicwise.core.background import spawn_background
from comicwise.core.logging.logger import get_logger, log_stage
from comicwise.infrastructure.cache.cache_service import CacheService, get_cache_service
from comicwise.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = get_logger(__name__)

Handler = Callable[[Request], Awaitable[Response]]
RequestPredicate = Callable[[Request], bool | Awaitable[bool]]

# Headers recomputed when a cached response is rebuilt
_UNRESTORED_HEADERS = frozenset({"content-length", HEADER_CACHE.lower(), HEADER_CACHE_KEY.lower()})


@dataclass
class CacheMiddlewareConfig:
    """
    Per-route response caching options.

    Attributes:
        ttl: Seconds to keep the response (default: MEDIUM tier)
        prefix: Key prefix (default: the CACHE_KEY_PREFIX setting)
        include_query: Add the sorted query string to the key
        include_body: Add an md5 of the request body to the key; also makes
            POST/PUT/PATCH requests cacheable
        key_generator: Custom key function, replaces the default layout
        user_specific: Add the caller's user id to the key
        tags: Invalidation tags registered for each stored response
        skip_cache: Predicate; when true the handler runs uncached
        revalidate: Predicate; when true the cache read is skipped but the
            fresh response is still stored
    """

    ttl: int | None = None
    prefix: str | None = None
    include_query: bool = False
    include_body: bool = False
    key_generator: Callable[[Request], str | Awaitable[str]] | None = None
    user_specific: bool = False
    tags: list[str] | None = None
    skip_cache: RequestPredicate | None = None
    revalidate: RequestPredicate | None = None


async def _resolve(fn: Callable[[Request], Any], request: Request) -> Any:
    """Call a sync or async request callback."""
    result = fn(request)
    if inspect.isawaitable(result):
        result = await result
    return result


def _user_id(request: Request) -> str | None:
    return request.headers.get(HEADER_USER_ID) or request.cookies.get(COOKIE_USER_ID)


async def generate_cache_key(request: Request, config: CacheMiddlewareConfig) -> str:
    """
    Build the cache key for a request.

    Query parameters are sorted by name so ``?b=2&a=1`` and ``?a=1&b=2``
    share an entry. The body hash only applies to POST/PUT/PATCH requests
    with a non-empty body.
    """
    if config.key_generator is not None:
        return str(await _resolve(config.key_generator, request))

    prefix = config.prefix or get_settings().cache.CACHE_KEY_PREFIX
    parts = [f"{prefix}:{request.url.path}"]

    if config.include_query and request.query_params:
        items = sorted(request.query_params.multi_items(), key=lambda item: item[0])
        parts.append("&".join(f"{name}={value}" for name, value in items))

    if config.include_body and request.method in BODY_METHODS:
        body = await request.body()
        if body:
            parts.append(f"body:{hashlib.md5(body).hexdigest()}")

    if config.user_specific:
        user_id = _user_id(request)
        if user_id:
            parts.append(f"user:{user_id}")

    return ":".join(parts)


def _cached_response(entry: dict[str, Any], key: str) -> Response:
    headers = {
        name: value
        for name, value in (entry.get("headers") or {}).items()
        if name.lower() not in _UNRESTORED_HEADERS
    }
    response = Response(
        content=orjson.dumps(entry.get("body")),
        status_code=int(entry.get("status", 200)),
        headers=headers,
        media_type="application/json",
    )
    response.headers[HEADER_CACHE] = CACHE_STATUS_HIT
    response.headers[HEADER_CACHE_KEY] = key
    return response


def _is_success(response: Response) -> bool:
    return 200 <= response.status_code < 300


def with_cache(
    handler: Handler,
    config: CacheMiddlewareConfig | None = None,
    *,
    cache: CacheService | None = None,
) -> Handler:
    """
    Wrap a handler with response caching.

    Stages: HTTP.CACHE, CACHE.HIT

    Flow:
        1. ``skip_cache`` true, or a non-GET request without ``include_body``:
           run the handler uncached
        2. Compute the key and, unless ``revalidate`` is true, read the cache
        3. Hit: rebuild the stored response with ``X-Cache: HIT``
        4. Miss: run the handler; a 2xx JSON response is stored in the
           background and marked ``X-Cache: MISS``

    If computing the key or reading the cache fails the handler runs
    uncached. Exceptions raised by the handler propagate unchanged.
    """
    config = config or CacheMiddlewareConfig()
    metrics = get_metrics_collector()

    async def cached_handler(request: Request) -> Response:
        if config.skip_cache is not None and await _resolve(config.skip_cache, request):
            return await handler(request)
        if request.method != "GET" and not config.include_body:
            return await handler(request)

        service = cache or get_cache_service()

        try:
            key = await generate_cache_key(request, config)
            revalidate = config.revalidate is not None and bool(await _resolve(config.revalidate, request))
            entry = None if revalidate else await service.get(key)
        except Exception as e:
            log_stage(
                logger,
                Stage.HTTP_CACHE,
                "Cache lookup failed, serving uncached",
                level="warning",
                path=request.url.path,
                error=str(e),
            )
            return await handler(request)

        if isinstance(entry, dict) and "body" in entry:
            metrics.record_cache_hit("http")
            log_stage(logger, Stage.CACHE_HIT, "HTTP cache hit", level="debug", key=key)
            return _cached_response(entry, key)

        metrics.record_cache_miss("http")
        response = await handler(request)

        body = getattr(response, "body", None)
        if not _is_success(response) or not body:
            return response

        try:
            payload = orjson.loads(body)
        except orjson.JSONDecodeError:
            log_stage(logger, Stage.HTTP_CACHE, "Response is not JSON, not caching", level="debug", key=key)
            return response

        entry = {
            "body": payload,
            "headers": dict(response.headers),
            "status": response.status_code,
        }
        spawn_background(
            service.set(key, entry, ttl=config.ttl or int(CacheTTL.MEDIUM), tags=config.tags),
            name=f"http-cache-set:{key}",
        )

        response.headers[HEADER_CACHE] = CACHE_STATUS_MISS
        response.headers[HEADER_CACHE_KEY] = key
        return response

    return cached_handler


async def invalidate_cache(
    prefix: str | None = None,
    pattern: str | None = None,
    tags: list[str] | None = None,
    *,
    cache: CacheService | None = None,
) -> int:
    """
    Invalidate cached entries by glob pattern, key prefix and tags.

    Returns:
        Total number of keys invalidated
    """
    service = cache or get_cache_service()
    total = 0

    if pattern:
        count = await service.delete_pattern(pattern)
        total += count
        log_stage(logger, Stage.CACHE_INVALIDATE, "Invalidated keys by pattern", pattern=pattern, count=count)

    if prefix:
        count = await service.delete_pattern(f"{prefix}:*")
        total += count
        log_stage(logger, Stage.CACHE_INVALIDATE, "Invalidated keys by prefix", prefix=prefix, count=count)

    for tag in tags or ():
        count = await service.invalidate_by_tag(tag)
        total += count
        log_stage(logger, Stage.CACHE_INVALIDATE, "Invalidated keys by tag", tag=tag, count=count)

    return total


def with_cache_invalidation(
    handler: Handler,
    patterns: list[str] | None = None,
    tags: list[str] | None = None,
    invalidate: Callable[[Request], Any] | None = None,
    *,
    cache: CacheService | None = None,
) -> Handler:
    """
    Wrap a mutating handler so a successful POST/PUT/PATCH/DELETE invalidates
    cached reads.

    Order: custom ``invalidate`` callback, then ``patterns``, then ``tags``.
    Invalidation errors are logged and never change the response.
    """

    async def invalidating_handler(request: Request) -> Response:
        response = await handler(request)

        if not _is_success(response) or request.method not in MUTATING_METHODS:
            return response

        service = cache or get_cache_service()
        try:
            if invalidate is not None:
                await _resolve(invalidate, request)
            for pattern in patterns or ():
                await service.delete_pattern(pattern)
            for tag in tags or ():
                await service.invalidate_by_tag(tag)
            log_stage(
                logger,
                Stage.CACHE_INVALIDATE,
                "Cache invalidated after mutation",
                method=request.method,
                path=request.url.path,
            )
        except Exception as e:
            logger.error(
                "Cache invalidation failed",
                stage=Stage.CACHE_INVALIDATE.value,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
            )

        return response

    return invalidating_handler


def with_smart_cache(
    handler: Handler,
    cache_config: CacheMiddlewareConfig | None = None,
    invalidation: dict[str, Any] | None = None,
    *,
    cache: CacheService | None = None,
) -> Handler:
    """
    Combine ``with_cache_invalidation`` (inner) and ``with_cache`` (outer).

    Args:
        handler: Route handler
        cache_config: Response caching options; None disables caching
        invalidation: Keyword arguments for ``with_cache_invalidation``
            (``patterns``, ``tags``, ``invalidate``); None disables it
        cache: Cache service override
    """
    wrapped = handler
    if invalidation:
        wrapped = with_cache_invalidation(wrapped, **invalidation, cache=cache)
    if cache_config is not None:
        wrapped = with_cache(wrapped, cache_config, cache=cache)
    return wrapped

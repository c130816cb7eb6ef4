"""
Cache Service - cache-aside caching on top of a KeyValueStore

Responsibilities:
    - JSON (orjson) encoding of values, with decode failures treated as misses
    - Default TTL tier (MEDIUM) and "no expiry" for ttl <= 0
    - Tag index maintenance (``tag:<tag>`` sets) and tag invalidation
    - Pattern deletion, counters, sets and sorted-set leaderboards
    - Cache-aside ``get_or_set`` with fire-and-forget population

The cache is never the source of truth. Every public method catches store
failures, logs them and returns a safe default, so an outage degrades to
"always miss" instead of failing the request.

Consistency notes:
    ``get_or_set`` returns the freshly fetched value before the cache write
    lands, so an immediate ``get`` on the same key can still miss. Concurrent
    misses each call ``fetch_fn``; the last write wins.
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import orjson

from comicwise.config.constants import TAG_KEY_PREFIX, CacheTTL, Stage
from comicwise.config.settings import Settings, get_settings
from comicwise.core.background import spawn_background
from comicwise.core.exceptions import CacheKeyError, CacheSerializationError
from comicwise.core.interfaces.store import KeyValueStore
from comicwise.core.logging.logger import get_logger, log_stage
from comicwise.infrastructure.cache.store_factory import close_store, get_store, init_store
from comicwise.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = get_logger(__name__)

T = TypeVar("T")


def _default(obj: Any) -> Any:
    """orjson fallback for pydantic models and sets."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def encode_value(value: Any) -> str:
    """
    Serialize a value for storage.

    Raises:
        CacheSerializationError: If the value is not JSON serializable
    """
    try:
        return orjson.dumps(value, default=_default).decode("utf-8")
    except TypeError as e:
        raise CacheSerializationError(
            f"Value is not JSON serializable: {e}",
            details={"type": type(value).__name__},
        ) from e


def decode_value(raw: str) -> Any:
    """
    Deserialize a stored value.

    Raises:
        CacheSerializationError: If the stored text is not valid JSON
    """
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise CacheSerializationError(f"Stored value is not valid JSON: {e}") from e


def tag_key(tag: str) -> str:
    return f"{TAG_KEY_PREFIX}{tag}"


def _require_key(key: str) -> None:
    if not key or not key.strip():
        raise CacheKeyError("Cache key must be a non-empty string", details={"key": key})


class CacheService:
    """
    Typed cache operations over a key-value store.

    Usage:
        cache = CacheService(store)
        await cache.set("comic:1", comic, ttl=CacheTTL.LONG, tags=["comic", "comic:1"])
        comic = await cache.get("comic:1")
        await cache.invalidate_by_tag("comic:1")
    """

    def __init__(self, store: KeyValueStore, settings: Settings | None = None):
        self._store = store
        self._settings = settings or get_settings()
        self._metrics = get_metrics_collector()

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def enabled(self) -> bool:
        return self._settings.cache.ENABLE_CACHING

    @property
    def default_ttl(self) -> int:
        return self._settings.cache.CACHE_DEFAULT_TTL or int(CacheTTL.MEDIUM)

    async def _guard(
        self,
        operation: str,
        call: Callable[[], Awaitable[Any]],
        default: Any,
        key: str | None = None,
    ) -> Any:
        """Run a store call; on any failure log it and return ``default``."""
        try:
            return await call()
        except Exception as e:
            log_stage(
                logger,
                Stage.CACHE_ERROR,
                f"Cache {operation} failed",
                level="error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            self._metrics.record_cache_error(operation)
            return default

    # =========================================================================
    # Basic operations
    # =========================================================================

    async def get(self, key: str) -> Any | None:
        """
        Get and decode a value.

        Returns:
            The decoded value, or None on miss, decode failure or store error
        """
        if not self.enabled:
            return None

        raw = await self._guard("get", lambda: self._store.get(key), None, key)
        if raw is None:
            self._metrics.record_cache_miss("service")
            log_stage(logger, Stage.CACHE_MISS, "Cache miss", level="debug", key=key)
            return None

        try:
            value = decode_value(raw)
        except CacheSerializationError as e:
            log_stage(
                logger, Stage.CACHE_ERROR, "Cache decode failed, treating as miss",
                level="warning", key=key, error=e.message,
            )
            self._metrics.record_cache_miss("service")
            return None

        self._metrics.record_cache_hit("service")
        log_stage(logger, Stage.CACHE_HIT, "Cache hit", level="debug", key=key)
        return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
        tags: list[str] | None = None,
    ) -> bool:
        """
        Encode and store a value.

        Args:
            key: Cache key
            value: JSON-serializable value (pydantic models and dataclasses accepted)
            ttl: Seconds; None uses the default tier, <= 0 stores without expiry
            tags: Invalidation groups to register the key under

        Returns:
            True if the value was written

        Raises:
            CacheKeyError: If the key is empty
        """
        _require_key(key)
        if not self.enabled:
            return False

        try:
            payload = encode_value(value)
        except CacheSerializationError as e:
            log_stage(logger, Stage.CACHE_ERROR, "Cache encode failed", level="error", key=key, error=e.message)
            self._metrics.record_cache_error("set")
            return False

        effective_ttl = self.default_ttl if ttl is None else int(ttl)
        stored = await self._guard(
            "set", lambda: self._store.set(key, payload, effective_ttl if effective_ttl > 0 else None), False, key
        )
        if not stored:
            return False

        for tag in tags or ():
            await self._guard("tag", lambda t=tag: self._store.add_to_set(tag_key(t), key), 0, key)

        log_stage(logger, Stage.CACHE_WRITE, "Cache set", level="debug", key=key, ttl=effective_ttl, tags=tags)
        return True

    async def delete(self, key: str) -> bool:
        removed = await self._guard("delete", lambda: self._store.delete(key), None, key)
        if removed is None:
            return False
        self._metrics.record_invalidation("key", removed)
        return True

    async def delete_many(self, keys: list[str]) -> bool:
        if not keys:
            return True
        removed = await self._guard("delete_many", lambda: self._store.delete_many(list(keys)), None)
        if removed is None:
            return False
        self._metrics.record_invalidation("key", removed)
        return True

    async def exists(self, key: str) -> bool:
        return await self._guard("exists", lambda: self._store.exists(key), False, key)

    async def get_ttl(self, key: str) -> int:
        """Seconds left; -1 for no expiry, -2 for a missing key."""
        return await self._guard("ttl", lambda: self._store.ttl(key), -1, key)

    async def set_ttl(self, key: str, ttl: int) -> bool:
        return await self._guard("expire", lambda: self._store.expire(key, int(ttl)), False, key)

    # =========================================================================
    # Pattern and tag invalidation
    # =========================================================================

    async def get_keys(self, pattern: str) -> list[str]:
        """Keys matching a glob pattern (``*``, ``?``, ``[...]``)."""
        if not pattern:
            return []
        return await self._guard("keys", lambda: self._store.keys_matching(pattern), [], pattern)

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern.

        Returns:
            Number of keys matched and deleted; 0 for an empty pattern
        """
        if not pattern:
            return 0

        keys = await self.get_keys(pattern)
        if not keys:
            return 0

        removed = await self._guard("delete_pattern", lambda: self._store.delete_many(keys), None, pattern)
        if removed is None:
            return 0
        self._metrics.record_invalidation("pattern", len(keys))
        log_stage(logger, Stage.CACHE_INVALIDATE, "Deleted keys by pattern", pattern=pattern, count=len(keys))
        return len(keys)

    async def invalidate_by_tag(self, tag: str) -> int:
        """
        Delete every key registered under a tag, then the tag set itself.

        Members that already expired are deleted harmlessly.

        Returns:
            Number of keys the tag referenced; 0 when the members could not
            be deleted (the tag set is kept for a later retry)
        """
        index_key = tag_key(tag)
        keys = await self._guard("tag_members", lambda: self._store.members(index_key), [], index_key)

        if keys:
            removed = await self._guard("invalidate_tag", lambda: self._store.delete_many(keys), None, index_key)
            if removed is None:
                return 0
        await self._guard("invalidate_tag", lambda: self._store.delete(index_key), 0, index_key)

        self._metrics.record_invalidation("tag", len(keys))
        log_stage(logger, Stage.CACHE_INVALIDATE, "Invalidated tag", tag=tag, count=len(keys))
        return len(keys)

    # =========================================================================
    # Cache-aside
    # =========================================================================

    async def get_or_set(
        self,
        key: str,
        fetch_fn: Callable[[], T] | Callable[[], Awaitable[T]],
        ttl: int | None = None,
        tags: list[str] | None = None,
    ) -> T:
        """
        Return the cached value, or fetch it and populate the cache.

        Stages: CACHE.HIT, CACHE.MISS, CACHE.WRITE

        ``fetch_fn`` may be sync or async; its exceptions propagate. The cache
        write after a miss runs in the background and its failure is only
        logged.

        Raises:
            CacheKeyError: If the key is empty
        """
        _require_key(key)

        cached = await self.get(key)
        if cached is not None:
            return cached

        value = fetch_fn()
        if inspect.isawaitable(value):
            value = await value

        if value is not None and self.enabled:
            spawn_background(self.set(key, value, ttl=ttl, tags=tags), name=f"cache-set:{key}")

        return value

    # =========================================================================
    # Counters
    # =========================================================================

    async def increment(self, key: str, amount: int = 1) -> int:
        return await self._guard("increment", lambda: self._store.increment(key, amount), 0, key)

    async def decrement(self, key: str, amount: int = 1) -> int:
        return await self._guard("decrement", lambda: self._store.decrement(key, amount), 0, key)

    # =========================================================================
    # Sets
    # =========================================================================

    async def add_to_set(self, key: str, *members: str) -> bool:
        added = await self._guard("sadd", lambda: self._store.add_to_set(key, *members), None, key)
        return added is not None

    async def get_set(self, key: str) -> list[str]:
        return await self._guard("smembers", lambda: self._store.members(key), [], key)

    async def remove_from_set(self, key: str, *members: str) -> bool:
        removed = await self._guard("srem", lambda: self._store.remove_from_set(key, *members), None, key)
        return removed is not None

    async def is_in_set(self, key: str, member: str) -> bool:
        return await self._guard("sismember", lambda: self._store.is_member(key, member), False, key)

    # =========================================================================
    # Sorted sets
    # =========================================================================

    async def add_to_sorted_set(self, key: str, score: float, member: str) -> bool:
        return await self._guard("zadd", lambda: self._store.add_scored(key, score, member), False, key)

    async def get_top_from_sorted_set(self, key: str, count: int = 10) -> list[dict[str, Any]]:
        """
        Highest-scored members first.

        Returns:
            ``[{"member": str, "score": float}, ...]``; order between equal
            scores is whatever the store returns
        """
        rows = await self._guard("zrevrange", lambda: self._store.top_n(key, count), [], key)
        return [{"member": member, "score": score} for member, score in rows]

    async def increment_score(self, key: str, member: str, amount: float = 1) -> float:
        return await self._guard(
            "zincrby", lambda: self._store.increment_score(key, member, amount), 0.0, key
        )

    # =========================================================================
    # Maintenance and health
    # =========================================================================

    async def flush_all(self) -> bool:
        flushed = await self._guard("flush", self._store.flush, False)
        if flushed:
            logger.warning("Cache flushed", stage=Stage.CACHE_INVALIDATE.value)
        return flushed

    async def get_stats(self) -> dict[str, Any]:
        """
        Store-level statistics.

        Returns:
            keys, memory, hits, misses and hit_rate (percent, two decimals)
        """
        stats = await self._guard(
            "stats",
            self._store.stats,
            {"keys": 0, "memory": "unknown", "hits": 0, "misses": 0},
        )
        hits = int(stats.get("hits", 0))
        misses = int(stats.get("misses", 0))
        total = hits + misses
        return {
            "backend": getattr(self._store, "name", "unknown"),
            "keys": int(stats.get("keys", 0)),
            "memory": stats.get("memory", "unknown"),
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / total * 100, 2) if total else 0.0,
        }

    async def health_check(self) -> bool:
        """Liveness check: True if the store answers PING."""
        return bool(await self._guard("ping", self._store.ping, False))

    async def health_details(self) -> dict[str, Any]:
        details = await self._guard(
            "health",
            self._store.health_check,
            {"status": "unhealthy", "backend": getattr(self._store, "name", "unknown")},
        )
        details["caching_enabled"] = self.enabled
        return details


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_cache_service: CacheService | None = None


def get_cache_service() -> CacheService:
    """
    Get the global cache service, bound to the global store.
    """
    global _cache_service

    if _cache_service is None:
        _cache_service = CacheService(get_store())

    return _cache_service


def set_cache_service(service: CacheService | None) -> None:
    """Replace the global cache service (tests, custom wiring)."""
    global _cache_service
    _cache_service = service


async def init_cache() -> CacheService:
    """Connect the global store and return the global cache service."""
    await init_store()
    return get_cache_service()


async def close_cache() -> None:
    """Drop the global cache service and close the global store."""
    global _cache_service

    _cache_service = None
    await close_store()

"""
In-process key-value store.

Implements the KeyValueStore protocol with plain dicts so development and
tests run without a Redis server. Semantics follow Redis where callers can
observe them: TTL sentinels (-1 / -2), INCR preserving an existing expiry,
SET clearing it, glob patterns for key matching, and reverse-lexicographic
order between equal sorted-set scores.

Expiry is lazy: an expired key is dropped the next time it is touched, and
``purge_expired()`` removes the rest in one pass (driven by the rate-limit
sweeper).

Note: every method body runs without awaiting, so on a single event loop each
call is atomic with respect to other coroutines. Not shared across processes.
"""

import functools
import math
import time
from collections.abc import Callable
from fnmatch import fnmatchcase
from typing import Any

from comicwise.config.constants import Stage
from comicwise.core.logging.logger import get_logger

logger = get_logger(__name__)


def _safe(default: Any):
    """Turn WRONGTYPE and non-integer counter errors into the safe default."""

    def decorator(method):
        @functools.wraps(method)
        async def wrapper(self, key: str, *args, **kwargs):
            try:
                return await method(self, key, *args, **kwargs)
            except (TypeError, ValueError) as e:
                logger.error(
                    "Memory store operation failed",
                    stage=Stage.STORE_OPERATION.value,
                    operation=method.__name__,
                    key=key,
                    error=str(e),
                )
                return default() if callable(default) else default

        return wrapper

    return decorator


class MemoryStore:
    """
    Dict-backed store with per-key expiry.

    Values are ``str`` (strings and counters), ``set[str]`` (sets) or
    ``dict[str, float]`` (sorted sets: member -> score).

    Args:
        clock: Monotonic time source in seconds; injectable for tests
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, Any] = {}
        self._expires_at: dict[str, float] = {}
        self._hits = 0
        self._misses = 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _is_expired(self, key: str) -> bool:
        deadline = self._expires_at.get(key)
        return deadline is not None and self._clock() >= deadline

    def _drop(self, key: str) -> None:
        self._data.pop(key, None)
        self._expires_at.pop(key, None)

    def _lookup(self, key: str) -> Any:
        """Return the live value at key, expiring it first if needed."""
        if self._is_expired(key):
            self._drop(key)
            return None
        return self._data.get(key)

    def _typed(self, key: str, kind: type, operation: str) -> Any:
        value = self._lookup(key)
        if value is not None and not isinstance(value, kind):
            raise TypeError(f"WRONGTYPE {operation} against a key holding the wrong kind of value")
        return value

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        logger.info("Memory store ready", stage=Stage.STORE_CONNECT.value)

    async def close(self) -> None:
        self._data.clear()
        self._expires_at.clear()

    async def ping(self) -> bool:
        return True

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "backend": self.name,
            "connected": True,
            "latency_ms": 0.0,
            "keys": len(self._data),
        }

    async def stats(self) -> dict[str, Any]:
        self._purge()
        return {
            "keys": len(self._data),
            "memory": "n/a",
            "hits": self._hits,
            "misses": self._misses,
        }

    async def flush(self) -> bool:
        self._data.clear()
        self._expires_at.clear()
        return True

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        value = self._lookup(key)
        if not isinstance(value, str):
            self._misses += 1
            return None
        self._hits += 1
        return value

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        self._data[key] = value
        if ttl is not None and ttl > 0:
            self._expires_at[key] = self._clock() + ttl
        else:
            self._expires_at.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._lookup(key) is not None:
                removed += 1
            self._drop(key)
        return removed

    async def delete_many(self, keys: list[str]) -> int:
        return await self.delete(*keys)

    async def exists(self, key: str) -> bool:
        return self._lookup(key) is not None

    async def ttl(self, key: str) -> int:
        if self._lookup(key) is None:
            return -2
        deadline = self._expires_at.get(key)
        if deadline is None:
            return -1
        return max(0, math.ceil(deadline - self._clock()))

    async def expire(self, key: str, seconds: int) -> bool:
        if self._lookup(key) is None:
            return False
        if seconds <= 0:
            self._drop(key)
        else:
            self._expires_at[key] = self._clock() + seconds
        return True

    async def keys_matching(self, pattern: str) -> list[str]:
        self._purge()
        return [key for key in self._data if fnmatchcase(key, pattern)]

    def _purge(self) -> int:
        now = self._clock()
        expired = [key for key, deadline in self._expires_at.items() if now >= deadline]
        for key in expired:
            self._drop(key)
        return len(expired)

    async def purge_expired(self) -> int:
        return self._purge()

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    @_safe(0)
    async def increment(self, key: str, amount: int = 1) -> int:
        current = self._typed(key, str, "INCRBY")
        value = int(current or 0) + amount
        self._data[key] = str(value)
        return value

    async def decrement(self, key: str, amount: int = 1) -> int:
        return await self.increment(key, -amount)

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    @_safe(0)
    async def add_to_set(self, key: str, *members: str) -> int:
        current = self._typed(key, set, "SADD")
        if current is None:
            current = self._data[key] = set()
        before = len(current)
        current.update(members)
        return len(current) - before

    @_safe(list)
    async def members(self, key: str) -> list[str]:
        return list(self._typed(key, set, "SMEMBERS") or ())

    @_safe(0)
    async def remove_from_set(self, key: str, *members: str) -> int:
        current = self._typed(key, set, "SREM")
        if not current:
            return 0
        before = len(current)
        current.difference_update(members)
        if not current:
            self._drop(key)
        return before - len(current)

    @_safe(False)
    async def is_member(self, key: str, member: str) -> bool:
        return member in (self._typed(key, set, "SISMEMBER") or ())

    # ------------------------------------------------------------------
    # Sorted sets
    # ------------------------------------------------------------------

    @_safe(False)
    async def add_scored(self, key: str, score: float, member: str) -> bool:
        current = self._typed(key, dict, "ZADD")
        if current is None:
            current = self._data[key] = {}
        current[member] = float(score)
        return True

    @_safe(list)
    async def top_n(self, key: str, count: int) -> list[tuple[str, float]]:
        current = self._typed(key, dict, "ZREVRANGE") or {}
        ranked = sorted(current.items(), key=lambda item: (item[1], item[0]), reverse=True)
        return ranked[:max(count, 0)]

    @_safe(0.0)
    async def increment_score(self, key: str, member: str, amount: float = 1) -> float:
        current = self._typed(key, dict, "ZINCRBY")
        if current is None:
            current = self._data[key] = {}
        current[member] = current.get(member, 0.0) + amount
        return current[member]

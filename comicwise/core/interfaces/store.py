"""
Key-Value Store Protocol

The single interface every store backend implements. The cache service and
the rate limiter depend only on this protocol; which implementation they get
is decided once, from configuration, by the store factory.

Architectural Decision: Protocol-based abstraction
- Redis in production, in-process memory store for development and tests
- No runtime shape inspection: backends are chosen at construction
- Easy mocking for tests (AsyncMock(spec=KeyValueStore))

Failure contract:
    Implementations never raise for an unavailable backend. Each operation
    logs the failure and returns its safe default (None, False, 0, [] or -1),
    so a store outage behaves like an empty cache. Deletes and set membership
    changes return None on failure so callers can tell an outage from a
    legitimate zero.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Protocol for key-value store backends.

    Implementations:
    - RedisStore: redis-py asyncio client with pooling and retries
    - MemoryStore: dict-backed store with lazy TTL expiry
    """

    name: str

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the backend connection (idempotent)."""
        ...

    async def close(self) -> None:
        """Release the backend connection."""
        ...

    async def ping(self) -> bool:
        """Return True if the backend answers."""
        ...

    async def health_check(self) -> dict[str, Any]:
        """Return a status dict: status, backend, latency_ms and backend extras."""
        ...

    async def stats(self) -> dict[str, Any]:
        """Return keys, memory, hits and misses counters."""
        ...

    async def flush(self) -> bool:
        """Remove every key in the current database."""
        ...

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """Return the raw string at key, or None."""
        ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Store value; ttl in seconds, None or <= 0 means no expiry."""
        ...

    async def delete(self, *keys: str) -> int | None:
        """Delete keys; returns how many existed, None on failure."""
        ...

    async def delete_many(self, keys: list[str]) -> int | None:
        """Delete a possibly large list of keys in chunks; None on failure."""
        ...

    async def exists(self, key: str) -> bool:
        ...

    async def ttl(self, key: str) -> int:
        """Seconds left; -1 when the key has no expiry, -2 when missing."""
        ...

    async def expire(self, key: str, seconds: int) -> bool:
        ...

    async def keys_matching(self, pattern: str) -> list[str]:
        """Glob match (``*``, ``?``, ``[...]``) over all keys."""
        ...

    async def purge_expired(self) -> int:
        """Drop expired keys eagerly; returns how many were removed."""
        ...

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    async def increment(self, key: str, amount: int = 1) -> int:
        ...

    async def decrement(self, key: str, amount: int = 1) -> int:
        ...

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    async def add_to_set(self, key: str, *members: str) -> int | None:
        """Returns how many members were new, None on failure."""

    async def members(self, key: str) -> list[str]:
        ...

    async def remove_from_set(self, key: str, *members: str) -> int | None:
        """Returns how many members were removed, None on failure."""

    async def is_member(self, key: str, member: str) -> bool:
        ...

    # ------------------------------------------------------------------
    # Sorted sets
    # ------------------------------------------------------------------

    async def add_scored(self, key: str, score: float, member: str) -> bool:
        ...

    async def top_n(self, key: str, count: int) -> list[tuple[str, float]]:
        """Highest scores first."""
        ...

    async def increment_score(self, key: str, member: str, amount: float = 1) -> float:
        ...

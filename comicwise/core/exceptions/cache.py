"""
Cache-Related Exceptions

Raised inside the store adapters; the cache service catches them and degrades
to a miss, so callers above the service never see them.
"""

from comicwise.core.exceptions.base import ComicWiseError


class CacheError(ComicWiseError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the key-value store.

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port/TLS configuration
    - Authentication failure
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a write is attempted with an unusable key.

    This is a caller bug, not a store failure, so it is raised rather than
    degraded to a safe default.
    """
    pass


class CacheSerializationError(CacheError):
    """Raised when a value cannot be encoded to or decoded from JSON."""
    pass

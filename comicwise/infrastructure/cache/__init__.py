"""
Cache Infrastructure

Key-value store backends (Redis, in-memory), backend selection and the
cache-aside CacheService built on top of them.
"""

from .cache_service import (
    CacheService,
    close_cache,
    get_cache_service,
    init_cache,
    set_cache_service,
)
from .memory_store import MemoryStore
from .redis_store import RedisStore
from .store_factory import close_store, create_store, get_store, init_store, set_store

__all__ = [
    "CacheService",
    "get_cache_service",
    "set_cache_service",
    "init_cache",
    "close_cache",
    "MemoryStore",
    "RedisStore",
    "create_store",
    "get_store",
    "set_store",
    "init_store",
    "close_store",
]

"""
Store selection and the process-wide store instance.

The backend is chosen once from ``CACHE_BACKEND``. Everything else (cache
service, rate limiter) receives the store through its constructor; the
singleton below only wires the default instance used by the application.
"""

from comicwise.config.settings import Settings, get_settings
from comicwise.core.exceptions import ConfigurationError
from comicwise.core.interfaces.store import KeyValueStore
from comicwise.core.logging.logger import get_logger
from comicwise.infrastructure.cache.memory_store import MemoryStore
from comicwise.infrastructure.cache.redis_store import RedisStore

logger = get_logger(__name__)


def create_store(settings: Settings | None = None) -> KeyValueStore:
    """
    Build the store named by ``CACHE_BACKEND``.

    Raises:
        ConfigurationError: For an unknown backend name
    """
    settings = settings or get_settings()
    backend = settings.cache.CACHE_BACKEND

    if backend == "redis":
        store: KeyValueStore = RedisStore(settings)
    elif backend == "memory":
        store = MemoryStore()
    else:
        raise ConfigurationError(
            f"Unknown cache backend: {backend}",
            details={"CACHE_BACKEND": backend},
        ).with_suggestion("Set CACHE_BACKEND to 'redis' or 'memory'")

    logger.info("Key-value store created", stage="STORE.CREATE", backend=store.name)
    return store


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_store: KeyValueStore | None = None


def get_store() -> KeyValueStore:
    """
    Get the global store instance (singleton).

    Returns:
        KeyValueStore: Global store, not necessarily connected yet
    """
    global _store

    if _store is None:
        _store = create_store()

    return _store


def set_store(store: KeyValueStore | None) -> None:
    """Replace the global store (tests, custom wiring)."""
    global _store
    _store = store


async def init_store() -> KeyValueStore:
    """
    Create and connect the global store.

    Returns:
        KeyValueStore: The global store
    """
    store = get_store()
    await store.connect()
    return store


async def close_store() -> None:
    """Close the global store."""
    global _store

    if _store is not None:
        await _store.close()
        _store = None

"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.

Every test runs against an in-memory store installed as the process-wide
store, so nothing tries to reach Redis unless a test builds a RedisStore
explicitly with a mocked client.
"""

from unittest.mock import MagicMock

import httpx
import pytest

from comicwise.config.settings import Settings
from comicwise.core.background import drain_background_tasks
from comicwise.infrastructure.cache.cache_service import CacheService, set_cache_service
from comicwise.infrastructure.cache.memory_store import MemoryStore
from comicwise.infrastructure.cache.store_factory import set_store
from comicwise.rate_limiting.rate_limiter import RateLimiter, set_rate_limiter
from tests.test_fixtures import FakeClock, StoreTestFactory

# ============================================================================
# Mock Configuration Fixtures
# ============================================================================


@pytest.fixture
def mock_settings():
    """
    Mock application settings for testing.

    Returns a MagicMock with the grouped settings views populated.
    """
    settings = MagicMock(spec=Settings)

    settings.cache.CACHE_BACKEND = "memory"
    settings.cache.ENABLE_CACHING = True
    settings.cache.CACHE_DEFAULT_TTL = 1800
    settings.cache.CACHE_KEY_PREFIX = "api"

    settings.rate_limit.RATE_LIMIT_ENABLED = True
    settings.rate_limit.RATE_LIMIT_DEFAULT_REQUESTS = 100
    settings.rate_limit.RATE_LIMIT_DEFAULT_WINDOW = 60
    settings.rate_limit.RATE_LIMIT_SWEEP_INTERVAL = 60

    settings.redis.REDIS_HOST = "localhost"
    settings.redis.REDIS_PORT = 6379
    settings.redis.REDIS_DB = 0
    settings.redis.REDIS_PASSWORD = None
    settings.redis.REDIS_MAX_CONNECTIONS = 10
    settings.redis.REDIS_SOCKET_TIMEOUT = 1.0
    settings.redis.REDIS_SOCKET_CONNECT_TIMEOUT = 1.0
    settings.redis.REDIS_HEALTH_CHECK_INTERVAL = 30
    settings.redis.REDIS_MAX_RETRIES = 1
    settings.redis.REDIS_RETRY_BACKOFF_BASE = 0.001
    settings.redis.REDIS_RETRY_BACKOFF_CAP = 0.002
    settings.redis.REDIS_RECONNECT_COOLDOWN = 5.0
    settings.use_tls = False

    settings.app.ENVIRONMENT = "test"
    settings.app.APP_VERSION = "1.0.0-test"
    settings.app.APP_NAME = "ComicWise Test"

    return settings


# ============================================================================
# Store, Cache and Limiter Fixtures
# ============================================================================


@pytest.fixture
def fake_clock():
    """Controllable clock; call ``fake_clock.advance(seconds)`` to move time."""
    return FakeClock()


@pytest.fixture
def memory_store(fake_clock):
    """In-memory store driven by the fake clock."""
    return MemoryStore(clock=fake_clock)


@pytest.fixture
def cache_service(memory_store, mock_settings):
    """CacheService over the in-memory store, installed as the global service."""
    service = CacheService(memory_store, settings=mock_settings)
    set_cache_service(service)
    return service


@pytest.fixture
def failing_store():
    """Store whose every operation raises."""
    return StoreTestFactory.failing_store()


@pytest.fixture
def failing_cache_service(failing_store, mock_settings):
    return CacheService(failing_store, settings=mock_settings)


@pytest.fixture
def rate_limiter(memory_store, fake_clock):
    """RateLimiter over the in-memory store, installed as the global limiter."""
    limiter = RateLimiter(memory_store, clock=fake_clock)
    set_rate_limiter(limiter)
    return limiter


@pytest.fixture
def mock_redis_client():
    """Mocked redis.asyncio client for RedisStore tests."""
    return StoreTestFactory.mock_redis_client()


# ============================================================================
# HTTP Fixtures
# ============================================================================


@pytest.fixture
def make_client():
    """
    Build an httpx AsyncClient bound to an ASGI app in-process.

    Usage:
        async with make_client(app) as client:
            response = await client.get("/comics")
    """

    def _make(app) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")

    return _make


# ============================================================================
# Isolation
# ============================================================================


@pytest.fixture(autouse=True)
async def isolate_globals():
    """
    Install a fresh in-memory global store and reset the global cache service
    and rate limiter around every test. Pending background writes are drained
    so no task outlives its test.
    """
    set_store(MemoryStore())
    set_cache_service(None)
    set_rate_limiter(None)

    yield

    await drain_background_tasks(timeout=5)
    set_cache_service(None)
    set_rate_limiter(None)
    set_store(None)

"""
Unit Tests for RedisStore

Tests command mapping, safe defaults on failure, reconnect cooldown and
health reporting against a mocked redis.asyncio client.
"""

from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError, ResponseError

from comicwise.infrastructure.cache.cache_service import CacheService
from comicwise.infrastructure.cache.redis_store import RedisStore
from comicwise.rate_limiting.rate_limiter import RateLimiter
from tests.test_fixtures import StoreTestFactory


@pytest.fixture
def redis_store(mock_settings, mock_redis_client):
    return RedisStore(settings=mock_settings, client=mock_redis_client)


@pytest.mark.unit
class TestRedisStoreCommands:
    """Test that store operations map onto Redis commands."""

    @pytest.mark.asyncio
    async def test_connect_pings(self, redis_store, mock_redis_client):
        await redis_store.connect()

        mock_redis_client.ping.assert_awaited()
        assert redis_store._conn_mgr.is_connected() is True

    @pytest.mark.asyncio
    async def test_set_with_ttl_uses_ex(self, redis_store, mock_redis_client):
        mock_redis_client.set.return_value = True

        assert await redis_store.set("comic:1", "{}", ttl=60) is True
        mock_redis_client.set.assert_awaited_with("comic:1", "{}", ex=60)

    @pytest.mark.asyncio
    async def test_set_without_ttl(self, redis_store, mock_redis_client):
        mock_redis_client.set.return_value = True

        await redis_store.set("comic:1", "{}", ttl=None)
        mock_redis_client.set.assert_awaited_with("comic:1", "{}")

    @pytest.mark.asyncio
    async def test_get(self, redis_store, mock_redis_client):
        mock_redis_client.get.return_value = '{"id": 1}'

        assert await redis_store.get("comic:1") == '{"id": 1}'

    @pytest.mark.asyncio
    async def test_increment_and_ttl(self, redis_store, mock_redis_client):
        mock_redis_client.incrby.return_value = 3
        mock_redis_client.ttl.return_value = 42

        assert await redis_store.increment("ratelimit:ip:1", 1) == 3
        assert await redis_store.ttl("ratelimit:ip:1") == 42
        mock_redis_client.incrby.assert_awaited_with("ratelimit:ip:1", 1)

    @pytest.mark.asyncio
    async def test_delete_many_chunks(self, redis_store, mock_redis_client):
        """Test that large deletes are split into DEL batches."""
        mock_redis_client.delete.side_effect = lambda *keys: len(keys)
        keys = [f"k:{i}" for i in range(1200)]

        assert await redis_store.delete_many(keys) == 1200
        assert mock_redis_client.delete.await_count == 3

    @pytest.mark.asyncio
    async def test_keys_matching_uses_scan(self, redis_store, mock_redis_client):
        """Test that pattern lookup iterates SCAN instead of KEYS."""

        async def scan(**kwargs):
            for key in ("comic:1", "comic:2"):
                yield key

        mock_redis_client.scan_iter = MagicMock(side_effect=lambda **kwargs: scan(**kwargs))

        assert await redis_store.keys_matching("comic:*") == ["comic:1", "comic:2"]
        assert mock_redis_client.scan_iter.call_args.kwargs["match"] == "comic:*"

    @pytest.mark.asyncio
    async def test_top_n_converts_scores(self, redis_store, mock_redis_client):
        mock_redis_client.zrevrange.return_value = [("7", 12.0), ("3", 4.0)]

        assert await redis_store.top_n("trending:sorted", 2) == [("7", 12.0), ("3", 4.0)]
        mock_redis_client.zrevrange.assert_awaited_with("trending:sorted", 0, 1, withscores=True)

    @pytest.mark.asyncio
    async def test_top_n_non_positive_count(self, redis_store, mock_redis_client):
        assert await redis_store.top_n("trending:sorted", 0) == []
        mock_redis_client.zrevrange.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stats(self, redis_store, mock_redis_client):
        mock_redis_client.info.side_effect = lambda section: {
            "stats": {"keyspace_hits": 8, "keyspace_misses": 2},
            "memory": {"used_memory_human": "1.5M"},
        }[section]
        mock_redis_client.dbsize.return_value = 10

        assert await redis_store.stats() == {"keys": 10, "memory": "1.5M", "hits": 8, "misses": 2}

    @pytest.mark.asyncio
    async def test_close(self, redis_store, mock_redis_client):
        await redis_store.close()

        mock_redis_client.aclose.assert_awaited_once()


@pytest.mark.unit
class TestRedisStoreFailures:
    """Test that failures degrade to safe defaults instead of raising."""

    @pytest.mark.asyncio
    async def test_command_error_returns_default(self, redis_store, mock_redis_client):
        mock_redis_client.incrby.side_effect = ResponseError("WRONGTYPE")

        assert await redis_store.increment("k") == 0

    @pytest.mark.asyncio
    async def test_connection_error_starts_cooldown(self, redis_store, mock_redis_client):
        """Test that a dropped connection suppresses commands until the cooldown ends."""
        mock_redis_client.get.side_effect = ConnectionError("connection reset")

        assert await redis_store.get("comic:1") is None
        assert redis_store._conn_mgr.is_connected() is False

        mock_redis_client.get.side_effect = None
        mock_redis_client.get.return_value = "value"

        # Still cooling down: no reconnect attempt, safe default returned
        assert await redis_store.get("comic:1") is None

    @pytest.mark.asyncio
    async def test_connect_failure_is_not_raised(self, redis_store, mock_redis_client):
        mock_redis_client.ping.side_effect = ConnectionError("refused")

        await redis_store.connect()

        assert redis_store._conn_mgr.is_connected() is False

    @pytest.mark.asyncio
    async def test_mutable_defaults_not_shared(self, redis_store, mock_redis_client):
        mock_redis_client.smembers.side_effect = ResponseError("boom")

        first = await redis_store.members("tag:x")
        first.append("mutated")

        assert await redis_store.members("tag:x") == []

    @pytest.mark.asyncio
    async def test_health_check_healthy(self, redis_store):
        health = await redis_store.health_check()

        assert health["status"] == "healthy"
        assert health["connected"] is True
        assert health["latency_ms"] is not None

    @pytest.mark.asyncio
    async def test_health_check_unhealthy(self, redis_store, mock_redis_client):
        mock_redis_client.ping.side_effect = ConnectionError("refused")

        health = await redis_store.health_check()

        assert health["status"] == "unhealthy"
        assert "error" in health


@pytest.fixture
def unreachable_store(mock_settings):
    return RedisStore(settings=mock_settings, client=StoreTestFactory.unreachable_redis_client())


@pytest.mark.unit
class TestRedisStoreOutage:
    """Test that writes against an unreachable Redis are reported as failed."""

    @pytest.mark.asyncio
    async def test_failed_deletes_return_none(self, unreachable_store):
        assert await unreachable_store.delete("comic:1") is None
        assert await unreachable_store.delete_many(["comic:1", "comic:2"]) is None

    @pytest.mark.asyncio
    async def test_failed_set_changes_return_none(self, unreachable_store):
        assert await unreachable_store.add_to_set("tag:comic", "comic:1") is None
        assert await unreachable_store.remove_from_set("tag:comic", "comic:1") is None

    @pytest.mark.asyncio
    async def test_empty_writes_skip_the_store(self, unreachable_store):
        assert await unreachable_store.delete() == 0
        assert await unreachable_store.delete_many([]) == 0
        assert await unreachable_store.add_to_set("tag:comic") == 0

    @pytest.mark.asyncio
    async def test_cache_service_reports_failed_writes(self, unreachable_store, mock_settings):
        cache = CacheService(unreachable_store, settings=mock_settings)

        assert await cache.set("comic:1", {"id": 1}) is False
        assert await cache.delete("comic:1") is False
        assert await cache.delete_many(["comic:1", "comic:2"]) is False
        assert await cache.add_to_set("bookmarks:7", "comic:1") is False
        assert await cache.remove_from_set("bookmarks:7", "comic:1") is False
        assert await cache.invalidate_by_tag("comic") == 0

    @pytest.mark.asyncio
    async def test_rate_limit_clear_reports_failure(self, unreachable_store):
        assert await RateLimiter(unreachable_store).clear("ip:1.2.3.4") is False

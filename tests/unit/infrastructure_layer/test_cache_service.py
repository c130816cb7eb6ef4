"""
Unit Tests for CacheService

Tests JSON round-trips, TTL handling, tag and pattern invalidation,
cache-aside population and fail-open behaviour on store errors.
"""

from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel

from comicwise.config.constants import CacheTTL
from comicwise.core.background import drain_background_tasks
from comicwise.core.exceptions import CacheKeyError, CacheSerializationError
from comicwise.infrastructure.cache.cache_service import (
    CacheService,
    decode_value,
    encode_value,
    get_cache_service,
    set_cache_service,
)
from tests.test_fixtures import StoreTestFactory


class Comic(BaseModel):
    id: int
    title: str


@pytest.mark.unit
class TestSerialization:
    """Test value encoding."""

    def test_encode_pydantic_and_sets(self):
        """Test that models and sets are JSON encodable."""
        assert decode_value(encode_value(Comic(id=1, title="Saga"))) == {"id": 1, "title": "Saga"}
        assert decode_value(encode_value({"genres": {"b", "a"}})) == {"genres": ["a", "b"]}

    def test_encode_unsupported_type_raises(self):
        with pytest.raises(CacheSerializationError):
            encode_value(object())

    def test_decode_invalid_json_raises(self):
        with pytest.raises(CacheSerializationError):
            decode_value("{not json")


@pytest.mark.unit
class TestBasicOperations:
    """Test get/set/delete."""

    @pytest.mark.asyncio
    async def test_round_trip(self, cache_service):
        """Test that a stored value reads back equal."""
        value = {"id": 1, "title": "Saga", "tags": ["space", "war"], "rating": 4.5}

        assert await cache_service.set("comic:1", value) is True
        assert await cache_service.get("comic:1") == value

    @pytest.mark.asyncio
    async def test_miss_returns_none(self, cache_service):
        assert await cache_service.get("comic:404") is None

    @pytest.mark.asyncio
    async def test_default_ttl_applied(self, cache_service):
        await cache_service.set("comic:1", {"id": 1})

        assert await cache_service.get_ttl("comic:1") == CacheTTL.MEDIUM

    @pytest.mark.asyncio
    async def test_non_positive_ttl_means_no_expiry(self, cache_service):
        await cache_service.set("comic:1", {"id": 1}, ttl=0)

        assert await cache_service.get_ttl("comic:1") == -1

    @pytest.mark.asyncio
    async def test_value_expires(self, cache_service, fake_clock):
        """Test that a value is gone after its TTL."""
        await cache_service.set("search:x", ["a"], ttl=CacheTTL.SHORT)

        fake_clock.advance(CacheTTL.SHORT - 1)
        assert await cache_service.get("search:x") == ["a"]

        fake_clock.advance(1)
        assert await cache_service.get("search:x") is None

    @pytest.mark.asyncio
    async def test_corrupt_value_is_a_miss(self, cache_service, memory_store):
        await memory_store.set("comic:1", "{broken")

        assert await cache_service.get("comic:1") is None

    @pytest.mark.asyncio
    async def test_unserializable_value_not_stored(self, cache_service):
        assert await cache_service.set("comic:1", object()) is False
        assert await cache_service.exists("comic:1") is False

    @pytest.mark.asyncio
    async def test_delete_and_exists(self, cache_service):
        await cache_service.set("a", 1)
        await cache_service.set("b", 2)

        assert await cache_service.delete("a") is True
        assert await cache_service.delete_many(["b"]) is True
        assert await cache_service.exists("a") is False
        assert await cache_service.exists("b") is False

    @pytest.mark.asyncio
    async def test_caching_disabled(self, cache_service, mock_settings):
        """Test that a disabled cache neither reads nor writes."""
        await cache_service.set("comic:1", {"id": 1})
        mock_settings.cache.ENABLE_CACHING = False

        assert await cache_service.get("comic:1") is None
        assert await cache_service.set("comic:2", {"id": 2}) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["", "   "])
    async def test_set_rejects_blank_key(self, cache_service, key):
        with pytest.raises(CacheKeyError) as exc_info:
            await cache_service.set(key, {"id": 1})

        assert exc_info.value.details == {"key": key}


@pytest.mark.unit
class TestInvalidation:
    """Test pattern and tag invalidation."""

    @pytest.mark.asyncio
    async def test_delete_pattern_counts_matches(self, cache_service):
        """Test that a pattern delete removes exactly the matching keys."""
        await cache_service.set("comic:1", 1)
        await cache_service.set("comic:2", 2)
        await cache_service.set("chapter:1", 3)

        assert await cache_service.delete_pattern("comic:*") == 2
        assert await cache_service.get("chapter:1") == 3
        assert await cache_service.get_keys("comic:*") == []

    @pytest.mark.asyncio
    async def test_empty_pattern_is_noop(self, cache_service):
        await cache_service.set("comic:1", 1)

        assert await cache_service.delete_pattern("") == 0
        assert await cache_service.get_keys("") == []
        assert await cache_service.exists("comic:1") is True

    @pytest.mark.asyncio
    async def test_invalidate_by_tag_removes_all_members(self, cache_service):
        """Test that every key registered under a tag is gone afterwards."""
        await cache_service.set("comic:1", 1, tags=["comic", "comic:1"])
        await cache_service.set("comic:2", 2, tags=["comic"])
        await cache_service.set("genre:1", 3, tags=["genres"])

        assert await cache_service.invalidate_by_tag("comic") == 2

        assert await cache_service.get("comic:1") is None
        assert await cache_service.get("comic:2") is None
        assert await cache_service.get("genre:1") == 3
        assert await cache_service.get_set("tag:comic") == []

    @pytest.mark.asyncio
    async def test_invalidate_unknown_tag(self, cache_service):
        assert await cache_service.invalidate_by_tag("nothing") == 0

    @pytest.mark.asyncio
    async def test_flush_all(self, cache_service):
        await cache_service.set("a", 1)

        assert await cache_service.flush_all() is True
        assert await cache_service.get("a") is None


@pytest.mark.unit
class TestGetOrSet:
    """Test the cache-aside helper."""

    @pytest.mark.asyncio
    async def test_miss_fetches_and_populates(self, cache_service):
        """Test that a miss returns the fetched value and caches it in the background."""
        fetch = AsyncMock(return_value={"id": 7})

        assert await cache_service.get_or_set("comic:7", fetch, ttl=CacheTTL.LONG, tags=["comic"]) == {"id": 7}
        await drain_background_tasks()

        assert await cache_service.get("comic:7") == {"id": 7}
        assert await cache_service.get_ttl("comic:7") == CacheTTL.LONG
        assert await cache_service.is_in_set("tag:comic", "comic:7") is True

    @pytest.mark.asyncio
    async def test_hit_skips_fetch(self, cache_service):
        await cache_service.set("comic:7", {"id": 7})
        fetch = AsyncMock()

        assert await cache_service.get_or_set("comic:7", fetch) == {"id": 7}
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sync_fetch_function(self, cache_service):
        assert await cache_service.get_or_set("genres:list:all", lambda: ["action"]) == ["action"]

    @pytest.mark.asyncio
    async def test_none_is_not_cached(self, cache_service):
        await cache_service.get_or_set("comic:404", lambda: None)
        await drain_background_tasks()

        assert await cache_service.exists("comic:404") is False

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self, cache_service):
        async def fetch():
            raise LookupError("db down")

        with pytest.raises(LookupError):
            await cache_service.get_or_set("comic:1", fetch)

    @pytest.mark.asyncio
    async def test_store_failure_falls_back_to_fetch(self, failing_cache_service):
        """Test that a dead store still serves the fetched value."""
        result = await failing_cache_service.get_or_set("comic:1", lambda: {"id": 1})
        await drain_background_tasks()

        assert result == {"id": 1}

    @pytest.mark.asyncio
    async def test_blank_key_raises_before_fetch(self, cache_service):
        fetch = AsyncMock()

        with pytest.raises(CacheKeyError):
            await cache_service.get_or_set("", fetch)
        fetch.assert_not_awaited()


@pytest.mark.unit
class TestCountersAndSets:
    """Test counters, sets and sorted sets."""

    @pytest.mark.asyncio
    async def test_counters(self, cache_service):
        assert await cache_service.increment("views:comic:1") == 1
        assert await cache_service.increment("views:comic:1", 5) == 6
        assert await cache_service.decrement("views:comic:1") == 5
        assert await cache_service.get("views:comic:1") == 5

    @pytest.mark.asyncio
    async def test_sets(self, cache_service):
        assert await cache_service.add_to_set("bookmarks:u1", "1", "2") is True
        assert sorted(await cache_service.get_set("bookmarks:u1")) == ["1", "2"]
        assert await cache_service.remove_from_set("bookmarks:u1", "1") is True
        assert await cache_service.is_in_set("bookmarks:u1", "1") is False

    @pytest.mark.asyncio
    async def test_sorted_set_top(self, cache_service):
        await cache_service.add_to_sorted_set("trending:sorted", 5, "10")
        await cache_service.add_to_sorted_set("trending:sorted", 9, "20")
        await cache_service.increment_score("trending:sorted", "10", 10)

        assert await cache_service.get_top_from_sorted_set("trending:sorted", 2) == [
            {"member": "10", "score": 15.0},
            {"member": "20", "score": 9.0},
        ]

    @pytest.mark.asyncio
    async def test_set_ttl(self, cache_service):
        await cache_service.set("k", 1, ttl=0)

        assert await cache_service.set_ttl("k", 30) is True
        assert await cache_service.get_ttl("k") == 30


@pytest.mark.unit
class TestFailOpen:
    """Test that store failures never escape the cache service."""

    @pytest.mark.asyncio
    async def test_reads_return_safe_defaults(self, failing_cache_service):
        assert await failing_cache_service.get("k") is None
        assert await failing_cache_service.exists("k") is False
        assert await failing_cache_service.get_keys("comic:*") == []
        assert await failing_cache_service.get_set("s") == []
        assert await failing_cache_service.get_top_from_sorted_set("z") == []
        assert await failing_cache_service.increment("c") == 0
        assert await failing_cache_service.health_check() is False

    @pytest.mark.asyncio
    async def test_writes_report_failure(self, failing_cache_service):
        assert await failing_cache_service.set("k", 1) is False
        assert await failing_cache_service.delete("k") is False
        assert await failing_cache_service.delete_pattern("comic:*") == 0
        assert await failing_cache_service.invalidate_by_tag("comic") == 0
        assert await failing_cache_service.flush_all() is False

    @pytest.mark.asyncio
    async def test_degraded_writes_report_failure(self, mock_settings):
        """Test that the None a store returns for a failed write is not read as success."""
        cache = CacheService(StoreTestFactory.degraded_store(), settings=mock_settings)

        assert await cache.delete("k") is False
        assert await cache.delete_many(["a", "b"]) is False
        assert await cache.add_to_set("s", "m") is False
        assert await cache.remove_from_set("s", "m") is False

    @pytest.mark.asyncio
    async def test_failed_tag_delete_keeps_tag_set(self, mock_settings):
        store = StoreTestFactory.degraded_store()
        store.members.return_value = ["comic:1", "comic:2"]
        cache = CacheService(store, settings=mock_settings)

        assert await cache.invalidate_by_tag("comic") == 0
        store.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stats_and_health_details(self, failing_cache_service):
        stats = await failing_cache_service.get_stats()
        details = await failing_cache_service.health_details()

        assert stats["keys"] == 0
        assert stats["hit_rate"] == 0.0
        assert details["status"] == "unhealthy"
        assert details["caching_enabled"] is True


@pytest.mark.unit
class TestStatsAndSingleton:
    """Test statistics and the global instance."""

    @pytest.mark.asyncio
    async def test_hit_rate(self, cache_service):
        await cache_service.set("a", 1)
        await cache_service.get("a")
        await cache_service.get("a")
        await cache_service.get("a")
        await cache_service.get("missing")

        stats = await cache_service.get_stats()

        assert stats["backend"] == "memory"
        assert stats["hits"] == 3
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 75.0

    def test_global_service_uses_global_store(self):
        service = get_cache_service()

        assert isinstance(service, CacheService)
        assert get_cache_service() is service

        set_cache_service(None)
        assert get_cache_service() is not service

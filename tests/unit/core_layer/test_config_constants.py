"""
Unit Tests for Constants

Tests TTL tiers, key namespaces and stage identifiers.
"""

import pytest

from comicwise.config.constants import (
    MUTATING_METHODS,
    RATE_LIMIT_KEY_PREFIX,
    TAG_KEY_PREFIX,
    CacheKeys,
    CacheTTL,
    Stage,
)


@pytest.mark.unit
class TestCacheTTL:
    """Test TTL tier values."""

    def test_tier_values(self):
        """Test the documented TTL tiers in seconds."""
        assert CacheTTL.SHORT == 300
        assert CacheTTL.MEDIUM == 1800
        assert CacheTTL.LONG == 7200
        assert CacheTTL.VERY_LONG == 43200
        assert CacheTTL.DAILY == 86400
        assert CacheTTL.WEEKLY == 604800

    def test_tiers_are_ordered(self):
        """Test that each tier is longer than the previous one."""
        values = [tier.value for tier in CacheTTL]
        assert values == sorted(values)


@pytest.mark.unit
class TestKeyNamespaces:
    """Test key prefixes shared by writers and invalidators."""

    def test_entity_prefixes(self):
        """Test entity key prefixes."""
        assert CacheKeys.COMIC == "comic:"
        assert CacheKeys.COMICS_LIST == "comics:list:"
        assert CacheKeys.COMIC_CHAPTERS == "comic:chapters:"
        assert CacheKeys.USER_BOOKMARKS == "user:bookmarks:"
        assert CacheKeys.COMMENT_COUNT == "comic:comments:"
        assert CacheKeys.VIEW_COUNT == "views:"

    def test_internal_prefixes(self):
        """Test tag index and rate limit prefixes."""
        assert TAG_KEY_PREFIX == "tag:"
        assert RATE_LIMIT_KEY_PREFIX == "ratelimit:"

    def test_mutating_methods(self):
        """Test that only write methods trigger invalidation."""
        assert MUTATING_METHODS == {"POST", "PUT", "PATCH", "DELETE"}


@pytest.mark.unit
class TestStage:
    """Test stage identifiers."""

    def test_stage_is_string_enum(self):
        """Test that stages compare equal to their string values."""
        assert Stage.CACHE_HIT == "CACHE.HIT"
        assert Stage.RATE_LIMIT_REJECT.value == "RATELIMIT.REJECT"

    def test_store_lifecycle_stages(self):
        assert Stage.STORE_CONNECT == "STORE.CONNECT"
        assert Stage.STORE_CLOSE == "STORE.CLOSE"
        assert Stage.INITIALIZATION == "APP.STARTUP"

    def test_stage_values_unique(self):
        """Test that no two stages share a value."""
        values = [stage.value for stage in Stage]
        assert len(values) == len(set(values))

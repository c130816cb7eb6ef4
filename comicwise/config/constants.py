#!/usr/bin/env python3
"""
System Constants and Enumerations

Key namespaces, TTL tiers, header names and log stage identifiers shared by
the cache and rate-limit layers.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for key prefixes (every writer and every
  invalidator must agree on them)
- Type-safe enums for TTL tiers and stages
"""

from enum import Enum, IntEnum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages used as the ``stage`` field of log events.

    Format: {PREFIX}.{NAME}, e.g. ``CACHE.HIT`` or ``RATELIMIT.REJECT``.
    """

    INITIALIZATION = "APP.STARTUP"
    CLEANUP = "APP.SHUTDOWN"

    STORE_CONNECT = "STORE.CONNECT"
    STORE_CLOSE = "STORE.CLOSE"
    STORE_OPERATION = "STORE.OPERATION"
    CACHE_HIT = "CACHE.HIT"
    CACHE_MISS = "CACHE.MISS"
    CACHE_WRITE = "CACHE.WRITE"
    CACHE_INVALIDATE = "CACHE.INVALIDATE"
    CACHE_ERROR = "CACHE.ERROR"
    HTTP_CACHE = "HTTP.CACHE"
    RATE_LIMIT_ALLOW = "RATELIMIT.ALLOW"
    RATE_LIMIT_REJECT = "RATELIMIT.REJECT"
    RATE_LIMIT_FAIL_OPEN = "RATELIMIT.FAIL_OPEN"
    RATE_LIMIT_SWEEP = "RATELIMIT.SWEEP"
    BACKGROUND = "BACKGROUND.TASK"


# ============================================================================
# Cache TTL Tiers (seconds)
# ============================================================================


class CacheTTL(IntEnum):
    """
    Standard cache lifetimes.

    SHORT suits volatile data (search results, counters), VERY_LONG suits
    data that almost never changes (genre lists).
    """

    SHORT = 300
    MEDIUM = 1800
    LONG = 7200
    VERY_LONG = 43200
    DAILY = 86400
    WEEKLY = 604800


# ============================================================================
# Cache Key Namespaces
# ============================================================================


class CacheKeys:
    """Key prefixes for every cached entity."""

    COMIC = "comic:"
    COMICS_LIST = "comics:list:"
    COMIC_CHAPTERS = "comic:chapters:"
    CHAPTER = "chapter:"
    AUTHOR = "author:"
    ARTIST = "artist:"
    GENRE = "genre:"
    GENRES_LIST = "genres:list:"
    SEARCH = "search:"
    TRENDING = "trending:"
    POPULAR = "popular:"
    USER_BOOKMARKS = "user:bookmarks:"
    USER_HISTORY = "user:history:"
    COMMENT_COUNT = "comic:comments:"
    VIEW_COUNT = "views:"
    RATING_AVG = "rating:"


TAG_KEY_PREFIX = "tag:"
RATE_LIMIT_KEY_PREFIX = "ratelimit:"

# Redis SCAN batch size and DEL chunk size
SCAN_BATCH_SIZE = 500
DELETE_CHUNK_SIZE = 500

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_CACHE = "X-Cache"
HEADER_CACHE_KEY = "X-Cache-Key"
HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"
HEADER_USER_ID = "x-user-id"
HEADER_FORWARDED_FOR = "x-forwarded-for"
HEADER_REAL_IP = "x-real-ip"
COOKIE_USER_ID = "userId"

CACHE_STATUS_HIT = "HIT"
CACHE_STATUS_MISS = "MISS"

ANONYMOUS_IDENTIFIER = "anonymous"

# Methods whose successful completion invalidates cached reads
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Methods whose body participates in the cache key
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

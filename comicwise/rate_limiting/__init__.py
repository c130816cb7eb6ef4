"""
Rate Limiting Module

Fixed-window rate limiting over the key-value store.
"""

from .rate_limiter import (
    RATE_LIMIT_PRESETS,
    RateLimitConfig,
    RateLimiter,
    RateLimitResult,
    RateLimitStatus,
    build_identifier,
    check_rate_limit,
    clear_rate_limit,
    get_preset,
    get_rate_limit_status,
    get_rate_limiter,
    set_rate_limiter,
)

__all__ = [
    "RateLimiter",
    "RateLimitConfig",
    "RateLimitResult",
    "RateLimitStatus",
    "RATE_LIMIT_PRESETS",
    "get_preset",
    "build_identifier",
    "get_rate_limiter",
    "set_rate_limiter",
    "check_rate_limit",
    "clear_rate_limit",
    "get_rate_limit_status",
]

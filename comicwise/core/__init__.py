"""
Core Module

Foundational components: logging, exceptions, store protocol and background
task tracking.
"""

from .background import drain_background_tasks, spawn_background
from .exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    ComicWiseError,
    ConfigurationError,
    RateLimitError,
    RateLimitExceededError,
)
from .interfaces import KeyValueStore
from .logging import (
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    set_request_id,
    setup_logging,
)

__all__ = [
    "ComicWiseError",
    "ConfigurationError",
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
    "RateLimitError",
    "RateLimitExceededError",
    "KeyValueStore",
    "spawn_background",
    "drain_background_tasks",
    "setup_logging",
    "get_logger",
    "log_stage",
    "set_request_id",
    "get_request_id",
    "clear_request_id",
]

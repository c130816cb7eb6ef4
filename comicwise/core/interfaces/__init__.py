"""
Core Interfaces Module

Protocols that decouple the cache service and rate limiter from a concrete
store backend.
"""

from .store import KeyValueStore

__all__ = ["KeyValueStore"]

"""
Domain Services

Comic-specific caching conventions on top of the cache service.
"""

from .comic_cache import ComicCacheService, get_comic_cache_service

__all__ = ["ComicCacheService", "get_comic_cache_service"]

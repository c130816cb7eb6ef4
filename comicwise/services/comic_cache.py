"""
Comic Cache Service

Comic-specific caching conventions on top of CacheService: which key
namespace, TTL tier and tags each entity uses, and which entries a mutation
must invalidate.

    comics = get_comic_cache_service()
    comic = await comics.get_comic(42, lambda: repository.find_comic(42))
    ...
    await repository.update_comic(42, changes)
    await comics.invalidate_comic(42)

KEY / TTL / TAG CONVENTIONS:
----------------------------
    comic:<id>              LONG       comic, comic:<id>
    comic:slug:<slug>       LONG       comic, comic:slug:<slug>
    comics:list:<key>       MEDIUM     comics (+ caller tags)
    comic:chapters:<id>     MEDIUM     chapters, comic:<id>
    chapter:<id>            LONG       chapter, chapter:<id>
    search:<key>            SHORT      search
    trending:comics         MEDIUM     trending
    popular:comics          LONG       popular
    genres:list:all         VERY_LONG  genres
    user:bookmarks:<user>   SHORT      user:<user>, bookmarks
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from comicwise.config.constants import CacheKeys, CacheTTL
from comicwise.core.logging.logger import get_logger
from comicwise.infrastructure.cache.cache_service import CacheService, get_cache_service

logger = get_logger(__name__)

T = TypeVar("T")

Fetcher = Callable[[], T] | Callable[[], Awaitable[T]]

TRENDING_SORTED_KEY = f"{CacheKeys.TRENDING}sorted"


class ComicCacheService:
    """Cache façade for comics, chapters, listings and per-comic counters."""

    def __init__(self, cache: CacheService | None = None):
        self._cache = cache

    @property
    def cache(self) -> CacheService:
        return self._cache or get_cache_service()

    # =========================================================================
    # Cached reads
    # =========================================================================

    async def get_comic(self, comic_id: int, fetch_fn: Fetcher) -> Any:
        return await self.cache.get_or_set(
            f"{CacheKeys.COMIC}{comic_id}",
            fetch_fn,
            ttl=CacheTTL.LONG,
            tags=["comic", f"comic:{comic_id}"],
        )

    async def get_comic_by_slug(self, slug: str, fetch_fn: Fetcher) -> Any:
        return await self.cache.get_or_set(
            f"{CacheKeys.COMIC}slug:{slug}",
            fetch_fn,
            ttl=CacheTTL.LONG,
            tags=["comic", f"comic:slug:{slug}"],
        )

    async def get_comics_list(
        self,
        cache_key: str,
        fetch_fn: Fetcher,
        ttl: int | None = None,
        tags: list[str] | None = None,
    ) -> Any:
        """
        Cache a listing page (filters and page number encoded in ``cache_key``).

        Every listing is tagged ``comics`` so any comic mutation can drop
        them all at once.
        """
        return await self.cache.get_or_set(
            f"{CacheKeys.COMICS_LIST}{cache_key}",
            fetch_fn,
            ttl=ttl or CacheTTL.MEDIUM,
            tags=["comics", *(tags or [])],
        )

    async def get_comic_chapters(self, comic_id: int, fetch_fn: Fetcher) -> Any:
        return await self.cache.get_or_set(
            f"{CacheKeys.COMIC_CHAPTERS}{comic_id}",
            fetch_fn,
            ttl=CacheTTL.MEDIUM,
            tags=["chapters", f"comic:{comic_id}"],
        )

    async def get_chapter(self, chapter_id: int, fetch_fn: Fetcher) -> Any:
        return await self.cache.get_or_set(
            f"{CacheKeys.CHAPTER}{chapter_id}",
            fetch_fn,
            ttl=CacheTTL.LONG,
            tags=["chapter", f"chapter:{chapter_id}"],
        )

    async def get_search_results(self, search_key: str, fetch_fn: Fetcher) -> Any:
        # Search results go stale fast
        return await self.cache.get_or_set(
            f"{CacheKeys.SEARCH}{search_key}", fetch_fn, ttl=CacheTTL.SHORT, tags=["search"]
        )

    async def get_trending_comics(self, fetch_fn: Fetcher) -> Any:
        return await self.cache.get_or_set(
            f"{CacheKeys.TRENDING}comics", fetch_fn, ttl=CacheTTL.MEDIUM, tags=["trending"]
        )

    async def get_popular_comics(self, fetch_fn: Fetcher) -> Any:
        return await self.cache.get_or_set(
            f"{CacheKeys.POPULAR}comics", fetch_fn, ttl=CacheTTL.LONG, tags=["popular"]
        )

    async def get_genres(self, fetch_fn: Fetcher) -> Any:
        return await self.cache.get_or_set(
            f"{CacheKeys.GENRES_LIST}all", fetch_fn, ttl=CacheTTL.VERY_LONG, tags=["genres"]
        )

    async def get_user_bookmarks(self, user_id: str, fetch_fn: Fetcher) -> Any:
        return await self.cache.get_or_set(
            f"{CacheKeys.USER_BOOKMARKS}{user_id}",
            fetch_fn,
            ttl=CacheTTL.SHORT,
            tags=[f"user:{user_id}", "bookmarks"],
        )

    # =========================================================================
    # Invalidation
    # =========================================================================

    async def invalidate_comic(self, comic_id: int) -> None:
        """
        Drop a comic, every slug lookup and its chapter list, then everything
        tagged ``comic:<id>``.

        Slug keys do not carry the comic id, so all slug lookups go.
        """
        patterns = [
            f"{CacheKeys.COMIC}{comic_id}",
            f"{CacheKeys.COMIC}slug:*",
            f"{CacheKeys.COMIC_CHAPTERS}{comic_id}",
        ]
        await asyncio.gather(*(self.cache.delete_pattern(pattern) for pattern in patterns))
        await self.cache.invalidate_by_tag(f"comic:{comic_id}")

    async def invalidate_comics_list(self) -> None:
        await self.cache.delete_pattern(f"{CacheKeys.COMICS_LIST}*")
        await self.cache.invalidate_by_tag("comics")

    async def invalidate_chapter(self, chapter_id: int, comic_id: int | None = None) -> None:
        """Drop a chapter and, when ``comic_id`` is given, the comic's chapter list."""
        await self.cache.delete(f"{CacheKeys.CHAPTER}{chapter_id}")
        await self.cache.invalidate_by_tag(f"chapter:{chapter_id}")

        if comic_id:
            await self.cache.delete(f"{CacheKeys.COMIC_CHAPTERS}{comic_id}")
            await self.cache.invalidate_by_tag(f"comic:{comic_id}")

    async def invalidate_search(self) -> None:
        await self.cache.delete_pattern(f"{CacheKeys.SEARCH}*")
        await self.cache.invalidate_by_tag("search")

    async def invalidate_trending(self) -> None:
        await self.cache.delete_pattern(f"{CacheKeys.TRENDING}*")
        await self.cache.invalidate_by_tag("trending")

    async def invalidate_popular(self) -> None:
        await self.cache.delete_pattern(f"{CacheKeys.POPULAR}*")
        await self.cache.invalidate_by_tag("popular")

    async def invalidate_genres(self) -> None:
        await self.cache.delete_pattern(f"{CacheKeys.GENRES_LIST}*")
        await self.cache.invalidate_by_tag("genres")

    async def invalidate_user_bookmarks(self, user_id: str) -> None:
        await self.cache.delete(f"{CacheKeys.USER_BOOKMARKS}{user_id}")
        await self.cache.invalidate_by_tag(f"user:{user_id}")

    # =========================================================================
    # Counters and trending
    # =========================================================================

    async def increment_views(self, comic_id: int, amount: int = 1) -> int:
        return await self.cache.increment(f"{CacheKeys.VIEW_COUNT}comic:{comic_id}", amount)

    async def get_view_count(self, comic_id: int) -> int:
        count = await self.cache.get(f"{CacheKeys.VIEW_COUNT}comic:{comic_id}")
        return int(count or 0)

    async def increment_chapter_views(self, chapter_id: int, amount: int = 1) -> int:
        return await self.cache.increment(f"{CacheKeys.VIEW_COUNT}chapter:{chapter_id}", amount)

    async def add_to_trending(self, comic_id: int, views: float) -> None:
        """Record a comic's score in the trending leaderboard (kept for a week)."""
        await self.cache.add_to_sorted_set(TRENDING_SORTED_KEY, views, str(comic_id))
        await self.cache.set_ttl(TRENDING_SORTED_KEY, CacheTTL.WEEKLY)

    async def get_top_trending(self, limit: int = 10) -> list[int]:
        """Comic ids with the highest trending score first."""
        rows = await self.cache.get_top_from_sorted_set(TRENDING_SORTED_KEY, limit)
        return [int(row["member"]) for row in rows]

    async def get_comment_count(self, comic_id: int) -> int:
        count = await self.cache.get(f"{CacheKeys.COMMENT_COUNT}{comic_id}")
        return int(count or 0)

    async def set_comment_count(self, comic_id: int, count: int) -> None:
        await self.cache.set(f"{CacheKeys.COMMENT_COUNT}{comic_id}", count, ttl=CacheTTL.SHORT)

    async def increment_comment_count(self, comic_id: int) -> int:
        return await self.cache.increment(f"{CacheKeys.COMMENT_COUNT}{comic_id}", 1)

    async def decrement_comment_count(self, comic_id: int) -> int:
        return await self.cache.decrement(f"{CacheKeys.COMMENT_COUNT}{comic_id}", 1)

    # =========================================================================
    # Warming and stats
    # =========================================================================

    async def warm_cache(self, popular_comics: Iterable[Any]) -> None:
        """
        Preload comics (dicts or objects with an ``id``) for the VERY_LONG tier,
        tagged ``popular`` as well as with their comic tags.
        """
        comics = list(popular_comics)
        logger.info("Warming cache with popular comics", count=len(comics))

        await asyncio.gather(*(self._warm_one(comic) for comic in comics))

        logger.info("Cache warming completed", count=len(comics))

    async def _warm_one(self, comic: Any) -> bool:
        comic_id = comic["id"] if isinstance(comic, dict) else comic.id
        return await self.cache.set(
            f"{CacheKeys.COMIC}{comic_id}",
            comic,
            ttl=CacheTTL.VERY_LONG,
            tags=["comic", f"comic:{comic_id}", "popular"],
        )

    async def get_comic_cache_stats(self) -> dict[str, int]:
        comics, chapters, searches = await asyncio.gather(
            self.cache.get_keys(f"{CacheKeys.COMIC}*"),
            self.cache.get_keys(f"{CacheKeys.CHAPTER}*"),
            self.cache.get_keys(f"{CacheKeys.SEARCH}*"),
        )
        return {
            "comics_cached": len(comics),
            "chapters_cached": len(chapters),
            "searches_cached": len(searches),
        }


_comic_cache_service: ComicCacheService | None = None


def get_comic_cache_service() -> ComicCacheService:
    global _comic_cache_service
    if _comic_cache_service is None:
        _comic_cache_service = ComicCacheService()
    return _comic_cache_service

"""Search orchestration: offset search, cursor search and suggestions."""

import asyncio
import logging
from datetime import timedelta
from typing import Any, Coroutine, List, Optional, Set

from ..config import (DEFAULT_CURSOR_SECRET, CacheSettings, SearchSettings,
                      settings)
from ..schemas.search import (CursorPage, SearchFilters, SearchOptions,
                              SearchResult, SortKey, SortOrder)
from ..utils.cache import CacheService
from .facets import compute_facets
from .filters import (build_search_query, build_sort, has_text, merge_queries,
                      normalize_query)
from .pagination import (CursorCodec, build_cursor_query, cursor_sort,
                         cursor_value, split_page, total_pages)
from .popularity import PopularityTracker
from .ranking import rank_listings
from .search_cache import SearchCache
from .store import ListingStore

logger = logging.getLogger(__name__)


class SearchService:
    """Entry point for listing search.

    Cache writes and popularity tracking run as background tasks; they are
    never awaited by the request and their failures are only logged.
    """

    def __init__(
        self,
        store: ListingStore,
        cache: CacheService,
        tracker: PopularityTracker,
        codec: Optional[CursorCodec] = None,
        search_settings: Optional[SearchSettings] = None,
        cache_settings: Optional[CacheSettings] = None,
    ):
        self.store = store
        self.tracker = tracker
        self.config = search_settings or settings.search
        cache_config = cache_settings or settings.cache
        self.results_cache = SearchCache(cache, cache_config.search_ttl, cache_config.search_prefix)
        if codec is None:
            secret = self.config.cursor_secret.get_secret_value()
            if secret == DEFAULT_CURSOR_SECRET:
                logger.warning("CURSOR_SECRET is not set; pagination cursors are signed with the public default")
            codec = CursorCodec(secret, max_age=timedelta(hours=self.config.cursor_max_age_hours))
        self.codec = codec
        self._background: Set[asyncio.Task] = set()

    # Background work

    def _spawn(self, coro: Coroutine[Any, Any, Any], description: str) -> None:
        task = asyncio.create_task(coro, name=description)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Background task '{task.get_name()}' failed: {exc}")

    def _track(self, filters: SearchFilters, user_id: Optional[str]) -> None:
        if has_text(filters):
            self._spawn(
                self.tracker.track_search(filters.query, filters.category_id, user_id),
                "track-search",
            )

    async def drain(self) -> None:
        """Wait for outstanding cache writes and tracking."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # Search

    async def search(
        self, filters: SearchFilters, options: SearchOptions, user_id: Optional[str] = None
    ) -> SearchResult:
        """Offset-paginated search with facets on the first page.

        Args:
            filters: Validated filters
            options: Page, limit, sort and include_inactive
            user_id: Searching user, for search history

        Returns:
            The requested page; may be served from cache

        Raises:
            Exception: Any store failure propagates
        """
        key = self.results_cache.make_key(filters, options)
        cached = await self.results_cache.get(key)
        if cached is not None:
            logger.debug(f"Search cache hit for {key}")
            self._track(filters, user_id)
            return cached

        query = await build_search_query(filters, options.include_inactive, self.store)
        text_search = has_text(filters)
        sort = build_sort(options.sort_by, options.sort_order, text_search)
        skip = (options.page - 1) * options.limit

        lookups = [
            self.store.count(query),
            self.store.find(query, sort, skip, options.limit),
        ]
        if options.page == 1:
            lookups.append(
                compute_facets(self.store, query, self.config.facet_limit, self.config.price_ranges)
            )
        results = await asyncio.gather(*lookups)
        total, listings = results[0], results[1]
        facets = results[2] if options.page == 1 else None

        if text_search:
            listings = rank_listings(listings, filters.query)

        result = SearchResult(
            listings=listings,
            total=total,
            page=options.page,
            total_pages=total_pages(total, options.limit),
            facets=facets,
        )
        logger.info(
            f"Search '{normalize_query(filters.query)}' page {options.page}: "
            f"{len(listings)} of {total} listings"
        )

        self._spawn(self.results_cache.put(key, result), "cache-search-result")
        self._track(filters, user_id)
        return result

    async def search_with_cursor(
        self,
        filters: SearchFilters,
        cursor: Optional[str] = None,
        limit: int = 20,
        sort_by: SortKey = SortKey.CREATED_AT,
        sort_order: SortOrder = SortOrder.DESC,
        user_id: Optional[str] = None,
        include_inactive: bool = False,
    ) -> CursorPage:
        """Cursor-paginated (infinite scroll) search.

        An invalid, expired or mismatched cursor is ignored and the first page
        is returned.
        """
        query = await build_search_query(filters, include_inactive, self.store)

        decoded = self.codec.decode(cursor)
        if decoded is not None and decoded.sort_key != sort_by:
            logger.warning(
                f"Ignoring cursor for sort key '{decoded.sort_key}' on a '{sort_by}' search"
            )
            decoded = None

        cursor_query = build_cursor_query(decoded, sort_order) if decoded is not None else None
        if cursor_query:
            query = merge_queries(query, cursor_query)

        rows = await self.store.find(query, cursor_sort(sort_by, sort_order), 0, limit + 1)
        page, has_next_page = split_page(rows, limit)

        # Cursors follow store order, before any in-page re-ranking
        next_cursor = None
        previous_cursor = None
        if page:
            if has_next_page:
                last = page[-1]
                next_cursor = self.codec.encode(sort_by, cursor_value(last, sort_by), last.id)
            first = page[0]
            previous_cursor = self.codec.encode(sort_by, cursor_value(first, sort_by), first.id)

        data = rank_listings(page, filters.query) if has_text(filters) else page
        self._track(filters, user_id)

        return CursorPage(
            data=data,
            limit=limit,
            has_next_page=has_next_page,
            has_previous_page=cursor_query is not None,
            next_cursor=next_cursor,
            previous_cursor=previous_cursor,
        )

    async def get_search_suggestions(self, query: Optional[str], limit: int = 10) -> List[str]:
        """Popular queries containing query, topped up with matching category names."""
        normalized = normalize_query(query)
        if not normalized:
            return []

        popular = await self.tracker.get_popular_searches(self.config.suggestion_pool_size)
        suggestions = [item.query for item in popular if normalized in item.query][:limit]

        if len(suggestions) < limit:
            seen = {suggestion.lower() for suggestion in suggestions}
            categories = await self.store.search_categories(normalized, limit - len(suggestions))
            for category in categories:
                if category.name.lower() not in seen:
                    seen.add(category.name.lower())
                    suggestions.append(category.name)

        return suggestions[:limit]

    async def get_popular_searches(self, limit: int = 10):
        return await self.tracker.get_popular_searches(limit)

    async def clear_search_cache(self, pattern: Optional[str] = None) -> int:
        """Delete cached search results; returns the number of deleted keys."""
        return await self.results_cache.clear(pattern)

"""Search popularity and trending analytics backed by Redis counters."""

import asyncio
import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

from ..config import AnalyticsSettings, settings
from ..schemas.analytics import (AnalyticsScope, CategoryAnalytics,
                                 PopularityMetrics, SearchAnalytics,
                                 SearchVolume, UserSearch)
from ..schemas.listings import ListingStatus
from ..utils.cache import CacheService
from .filters import normalize_query
from .pagination import Clock, utcnow
from .store import ListingStore

logger = logging.getLogger(__name__)

DAY_SECONDS = 86400


def hour_bucket(moment: datetime) -> int:
    """Whole hours since the Unix epoch."""
    return math.floor(moment.timestamp() / 3600)


def _from_hour_bucket(bucket: float) -> datetime:
    return datetime.fromtimestamp(bucket * 3600, tz=timezone.utc)


class PopularityTracker:
    """Best-effort search analytics.

    Writes never raise; reads return empty defaults when Redis or the store
    is unavailable.
    """

    def __init__(
        self,
        counters: CacheService,
        store: ListingStore,
        clock: Clock = utcnow,
        config: Optional[AnalyticsSettings] = None,
    ):
        self.counters = counters
        self.store = store
        self.clock = clock
        self.config = config or settings.analytics

        prefix = self.config.key_prefix
        self.prefix = prefix
        self.popular_key = f"{prefix}:popular_searches"
        self.trending_key = f"{prefix}:trending_queries"
        self.last_searched_key = f"{prefix}:last_searched"
        self.volume_key = f"{prefix}:search_volume"
        self.category_searches_key = f"{prefix}:category_searches"
        self.category_views_key = f"{prefix}:category_views"

    # Key helpers

    def _day(self, day: date) -> str:
        return day.isoformat()

    def _user_searches_key(self, user_id: str) -> str:
        return f"{self.prefix}:user_searches:{user_id}"

    def _user_categories_key(self, user_id: str) -> str:
        return f"{self.prefix}:user_categories:{user_id}"

    # Writes

    async def track_search(
        self, query: Optional[str], category_id: Optional[str] = None, user_id: Optional[str] = None
    ) -> None:
        """Record a free-text search.

        Args:
            query: Raw query text; blank queries are ignored
            category_id: Category the search was scoped to, if any
            user_id: Searching user, if known
        """
        normalized = normalize_query(query)
        if not normalized:
            return

        now = self.clock()
        bucket = hour_bucket(now)
        today = self._day(now.date())
        daily_ttl = DAY_SECONDS * self.config.daily_retention_days

        try:
            await self.counters.increment_scored_set(self.popular_key, 1, normalized)
            await self.counters.increment_scored_set(self.trending_key, bucket, normalized)
            await self.counters.add_scored_member(self.last_searched_key, bucket, normalized)

            volume_key = f"{self.volume_key}:{today}"
            await self.counters.increment_hash(volume_key, "total")
            await self.counters.increment_hash(volume_key, f"hour_{now.hour}")
            await self.counters.expire(volume_key, daily_ttl)

            if category_id:
                category_key = f"{self.category_searches_key}:{today}"
                await self.counters.increment_scored_set(category_key, 1, category_id)
                await self.counters.expire(category_key, daily_ttl)

            if user_id:
                await self._track_user_search(user_id, normalized, now)
        except Exception as e:
            logger.warning(f"Failed to track search '{normalized}': {e}")

    async def _track_user_search(self, user_id: str, query: str, now: datetime) -> None:
        key = self._user_searches_key(user_id)
        await self.counters.add_scored_member(key, now.timestamp() * 1000, query)
        await self.counters.trim_scored_set(key, self.config.user_history_max)
        await self.counters.expire(key, DAY_SECONDS * self.config.user_retention_days)

    async def track_category_view(self, category_id: str, user_id: Optional[str] = None) -> None:
        """Record a view of a category page."""
        today = self._day(self.clock().date())
        try:
            views_key = f"{self.category_views_key}:{today}"
            await self.counters.increment_scored_set(views_key, 1, category_id)
            await self.counters.trim_scored_set(views_key, self.config.category_views_max)
            await self.counters.expire(views_key, DAY_SECONDS * self.config.daily_retention_days)

            if user_id:
                user_key = self._user_categories_key(user_id)
                await self.counters.increment_scored_set(user_key, 1, category_id)
                await self.counters.trim_scored_set(user_key, self.config.user_history_max)
                await self.counters.expire(user_key, DAY_SECONDS * self.config.user_retention_days)
        except Exception as e:
            logger.warning(f"Failed to track view of category {category_id}: {e}")

    async def prune_trending(self) -> int:
        """Drop trending entries whose score has not grown past the window start.

        Last-searched buckets older than the window are dropped as well.

        Returns:
            Number of trending entries removed
        """
        window_start = hour_bucket(self.clock() - timedelta(days=self.config.trending_window_days))
        removed = await self.counters.remove_scored_set_below(self.trending_key, window_start)
        stale = await self.counters.remove_scored_set_below(self.last_searched_key, window_start)
        if removed or stale:
            logger.info(f"Pruned {removed} stale trending queries and {stale} last-searched entries")
        return removed

    async def clear_analytics(self, scope: AnalyticsScope = AnalyticsScope.ALL) -> int:
        """Delete analytics data.

        Returns:
            Number of keys deleted
        """
        if scope == AnalyticsScope.SEARCHES:
            patterns = [
                f"{self.popular_key}*",
                f"{self.volume_key}*",
                f"{self.trending_key}*",
                f"{self.last_searched_key}*",
                f"{self.prefix}:user_searches:*",
            ]
        elif scope == AnalyticsScope.CATEGORIES:
            patterns = [f"{self.prefix}:category_*", f"{self.prefix}:user_categories:*"]
        else:
            patterns = [f"{self.prefix}:*"]

        deleted = 0
        for pattern in patterns:
            deleted += await self.counters.clear_pattern(pattern)
        logger.info(f"Cleared {deleted} analytics keys ({scope})")
        return deleted

    # Reads

    async def get_popular_searches(self, limit: int = 10) -> List[SearchAnalytics]:
        """Most frequent queries of all time."""
        results = await self.counters.range_scored_set_desc(self.popular_key, 0, limit - 1)
        searches = []
        for query, count in results:
            bucket = await self.counters.get_score(self.last_searched_key, query)
            searches.append(
                SearchAnalytics(
                    query=query,
                    count=count,
                    last_searched=_from_hour_bucket(bucket) if bucket is not None else None,
                )
            )
        return searches

    async def get_trending_queries(self, limit: int = 10) -> List[SearchAnalytics]:
        """Queries ranked by their recency-weighted trending score."""
        results = await self.counters.range_scored_set_desc(self.trending_key, 0, limit - 1)
        return [SearchAnalytics(query=query, count=round(score)) for query, score in results]

    async def _listing_counts(self) -> Dict[str, int]:
        groups = await self.store.group_count(
            {"is_active": True, "status": ListingStatus.LIVE}, ["category_id"]
        )
        return {group["category_id"]: group["count"] for group in groups}

    async def get_popular_categories(self, limit: int = 10) -> List[CategoryAnalytics]:
        """Today's most popular categories.

        Popularity is searches * 2 + views + live listings * 0.1.
        """
        today = self._day(self.clock().date())
        try:
            search_counts, view_counts, categories, listing_counts = await asyncio.gather(
                self.counters.range_scored_set_desc(f"{self.category_searches_key}:{today}", 0, limit - 1),
                self.counters.range_scored_set_desc(f"{self.category_views_key}:{today}", 0, limit - 1),
                self.store.get_categories(),
                self._listing_counts(),
            )
        except Exception as e:
            logger.warning(f"Failed to load popular categories: {e}")
            return []

        searches = dict(search_counts)
        views = dict(view_counts)
        analytics = []
        for category in categories:
            search_count = searches.get(category.id, 0)
            view_count = views.get(category.id, 0)
            listing_count = listing_counts.get(category.id, 0)
            analytics.append(
                CategoryAnalytics(
                    category_id=category.id,
                    category_name=category.name,
                    search_count=search_count,
                    view_count=view_count,
                    listing_count=listing_count,
                    popularity_score=search_count * 2 + view_count + listing_count * 0.1,
                )
            )

        analytics.sort(key=lambda item: item.popularity_score, reverse=True)
        return analytics[:limit]

    async def _daily_total(self, day: date) -> int:
        value = await self.counters.get_hash_field(f"{self.volume_key}:{self._day(day)}", "total")
        try:
            return int(value) if value is not None else 0
        except ValueError:
            logger.warning(f"Ignoring non-numeric search volume for {day}: {value!r}")
            return 0

    async def get_search_volume(self) -> SearchVolume:
        """Search totals for today, the last 7 days and the last 30 days."""
        today = self.clock().date()
        totals = await asyncio.gather(*(self._daily_total(today - timedelta(days=i)) for i in range(30)))
        return SearchVolume(today=totals[0], this_week=sum(totals[:7]), this_month=sum(totals))

    async def get_popularity_metrics(self, limit: int = 10) -> PopularityMetrics:
        popular_searches, popular_categories, trending_queries, search_volume = await asyncio.gather(
            self.get_popular_searches(limit),
            self.get_popular_categories(limit),
            self.get_trending_queries(limit),
            self.get_search_volume(),
        )
        return PopularityMetrics(
            popular_searches=popular_searches,
            popular_categories=popular_categories,
            trending_queries=trending_queries,
            search_volume=search_volume,
        )

    async def get_user_search_history(self, user_id: str, limit: int = 20) -> List[UserSearch]:
        """A user's most recent searches, newest first."""
        results = await self.counters.range_scored_set_desc(self._user_searches_key(user_id), 0, limit - 1)
        return [
            UserSearch(query=query, searched_at=datetime.fromtimestamp(score / 1000, tz=timezone.utc))
            for query, score in results
        ]

    async def get_user_search_recommendations(self, user_id: str, limit: int = 5) -> List[str]:
        """Popular queries the user has not searched for yet.

        Users without any tracked searches or category views get no recommendations.
        """
        history = await self.counters.range_scored_set_desc(
            self._user_searches_key(user_id), 0, self.config.user_history_max - 1
        )
        categories = await self.counters.range_scored_set_desc(self._user_categories_key(user_id), 0, 5)
        if not history and not categories:
            return []

        searched = {query for query, _ in history}
        popular = await self.get_popular_searches(limit * 2 + len(searched))
        recommendations = [item.query for item in popular if item.query not in searched]
        return recommendations[:limit]

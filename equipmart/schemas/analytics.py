"""Schemas for search popularity analytics."""

from datetime import datetime
from enum import StrEnum
from typing import List, Optional

from pydantic import Field

from .search import CamelModel


class AnalyticsScope(StrEnum):
    """Which analytics data to clear."""

    SEARCHES = "searches"
    CATEGORIES = "categories"
    ALL = "all"


class SearchAnalytics(CamelModel):
    """Popularity record for a normalized query."""

    query: str
    count: float
    last_searched: Optional[datetime] = None


class CategoryAnalytics(CamelModel):
    """Popularity of a category across searches, views and live listings."""

    category_id: str
    category_name: str
    search_count: float = 0
    listing_count: int = 0
    view_count: float = 0
    popularity_score: float = 0


class SearchVolume(CamelModel):
    today: int = 0
    this_week: int = 0
    this_month: int = 0


class PopularityMetrics(CamelModel):
    popular_searches: List[SearchAnalytics] = Field(default_factory=list)
    popular_categories: List[CategoryAnalytics] = Field(default_factory=list)
    trending_queries: List[SearchAnalytics] = Field(default_factory=list)
    search_volume: SearchVolume = Field(default_factory=SearchVolume)


class UserSearch(CamelModel):
    """An entry of a user's search history."""

    query: str
    searched_at: datetime

"""Response envelopes for the search API."""

from typing import Generic, List, TypeVar

from .analytics import AnalyticsScope, SearchAnalytics, UserSearch
from .search import CamelModel

T = TypeVar("T")


class ApiResponse(CamelModel, Generic[T]):
    """Successful response envelope: {"success": true, "data": ...}."""

    success: bool = True
    data: T


class SuggestionsData(CamelModel):
    query: str
    suggestions: List[str]


class PopularSearchesData(CamelModel):
    popular_searches: List[SearchAnalytics]


class TrendingQueriesData(CamelModel):
    trending_queries: List[SearchAnalytics]


class SearchHistoryData(CamelModel):
    history: List[UserSearch]


class RecommendationsData(CamelModel):
    recommendations: List[str]


class CategoryViewData(CamelModel):
    category_id: str
    tracked: bool = True


class CacheClearData(CamelModel):
    pattern: str
    deleted: int


class AnalyticsClearData(CamelModel):
    scope: AnalyticsScope
    deleted: int

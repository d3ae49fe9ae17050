"""Search analytics endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...config import settings
from ...dependencies import get_tracker
from ...logic.search_params import parse_limit
from ...schemas.analytics import AnalyticsScope, PopularityMetrics
from ...schemas.responses import (AnalyticsClearData, ApiResponse,
                                  CategoryViewData, PopularSearchesData,
                                  RecommendationsData, SearchHistoryData,
                                  TrendingQueriesData)
from ...security import get_user_id, require_user_id, verify_admin
from ...services.popularity import PopularityTracker
from ...utils.errors import InvalidParameterError, failure_as

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["Search analytics"])

DEFAULT_LIMIT = 10
MAX_LIMIT = 50
RECOMMENDATIONS_DEFAULT_LIMIT = 5
RECOMMENDATIONS_MAX_LIMIT = 20


@router.get("/popular", response_model=ApiResponse[PopularSearchesData])
async def popular_searches(
    limit: Optional[str] = Query(None),
    tracker: PopularityTracker = Depends(get_tracker),
) -> ApiResponse[PopularSearchesData]:
    """Most frequent search queries."""
    size = parse_limit(limit, DEFAULT_LIMIT, MAX_LIMIT)
    with failure_as("POPULAR_SEARCHES_FAILED", "Failed to get popular searches"):
        searches = await tracker.get_popular_searches(size)
    return ApiResponse[PopularSearchesData](data=PopularSearchesData(popular_searches=searches))


@router.get("/trending", response_model=ApiResponse[TrendingQueriesData])
async def trending_queries(
    limit: Optional[str] = Query(None),
    tracker: PopularityTracker = Depends(get_tracker),
) -> ApiResponse[TrendingQueriesData]:
    """Queries gaining popularity recently."""
    size = parse_limit(limit, DEFAULT_LIMIT, MAX_LIMIT)
    with failure_as("TRENDING_FAILED", "Failed to get trending queries"):
        queries = await tracker.get_trending_queries(size)
    return ApiResponse[TrendingQueriesData](data=TrendingQueriesData(trending_queries=queries))


@router.get("/analytics", response_model=ApiResponse[PopularityMetrics])
async def popularity_metrics(
    limit: Optional[str] = Query(None),
    tracker: PopularityTracker = Depends(get_tracker),
) -> ApiResponse[PopularityMetrics]:
    """Popular searches, categories, trending queries and search volume."""
    size = parse_limit(limit, DEFAULT_LIMIT, MAX_LIMIT)
    with failure_as("ANALYTICS_FAILED", "Failed to get search analytics"):
        metrics = await tracker.get_popularity_metrics(size)
    return ApiResponse[PopularityMetrics](data=metrics)


@router.get("/history", response_model=ApiResponse[SearchHistoryData])
async def search_history(
    limit: Optional[str] = Query(None),
    user_id: str = Depends(require_user_id),
    tracker: PopularityTracker = Depends(get_tracker),
) -> ApiResponse[SearchHistoryData]:
    """The calling user's recent searches."""
    size = parse_limit(limit, 20, settings.analytics.user_history_max)
    with failure_as("HISTORY_FAILED", "Failed to get search history"):
        history = await tracker.get_user_search_history(user_id, size)
    return ApiResponse[SearchHistoryData](data=SearchHistoryData(history=history))


@router.get("/recommendations", response_model=ApiResponse[RecommendationsData])
async def search_recommendations(
    limit: Optional[str] = Query(None),
    user_id: str = Depends(require_user_id),
    tracker: PopularityTracker = Depends(get_tracker),
) -> ApiResponse[RecommendationsData]:
    """Popular queries the calling user has not tried yet."""
    size = parse_limit(limit, RECOMMENDATIONS_DEFAULT_LIMIT, RECOMMENDATIONS_MAX_LIMIT)
    with failure_as("RECOMMENDATIONS_FAILED", "Failed to get search recommendations"):
        recommendations = await tracker.get_user_search_recommendations(user_id, size)
    return ApiResponse[RecommendationsData](data=RecommendationsData(recommendations=recommendations))


@router.post("/categories/{category_id}/views", response_model=ApiResponse[CategoryViewData])
async def track_category_view(
    category_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    tracker: PopularityTracker = Depends(get_tracker),
) -> ApiResponse[CategoryViewData]:
    """Record a category page view."""
    with failure_as("CATEGORY_VIEW_FAILED", "Failed to track category view"):
        await tracker.track_category_view(category_id, user_id)
    return ApiResponse[CategoryViewData](data=CategoryViewData(category_id=category_id))


@router.delete("/analytics", response_model=ApiResponse[AnalyticsClearData])
async def clear_analytics(
    analytics_type: Optional[str] = Query(None, alias="type"),
    _: None = Depends(verify_admin),
    tracker: PopularityTracker = Depends(get_tracker),
) -> ApiResponse[AnalyticsClearData]:
    """Delete analytics data: searches, categories or all (admin only)."""
    try:
        scope = AnalyticsScope(analytics_type) if analytics_type else AnalyticsScope.ALL
    except ValueError:
        valid = ", ".join(item.value for item in AnalyticsScope)
        raise InvalidParameterError("INVALID_ANALYTICS_TYPE", f"Type must be one of: {valid}")

    with failure_as("ANALYTICS_CLEAR_FAILED", "Failed to clear analytics"):
        deleted = await tracker.clear_analytics(scope)
    return ApiResponse[AnalyticsClearData](data=AnalyticsClearData(scope=scope, deleted=deleted))

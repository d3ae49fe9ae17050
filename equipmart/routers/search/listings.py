"""Listing search endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ...config import settings
from ...dependencies import get_search_service
from ...logic.search_params import (parse_filters, parse_flag, parse_limit,
                                    parse_page, parse_sort_by,
                                    parse_sort_order)
from ...schemas.responses import (ApiResponse, CacheClearData,
                                  SuggestionsData)
from ...schemas.search import CursorPage, SearchOptions, SearchResult, SortKey
from ...security import get_user_id, is_admin, verify_admin
from ...services.search import SearchService
from ...utils.errors import (ForbiddenError, InvalidParameterError,
                             failure_as)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["Search"])

SUGGESTIONS_DEFAULT_LIMIT = 5
SUGGESTIONS_MAX_LIMIT = 20


@router.get("", response_model=ApiResponse[SearchResult])
async def search_listings(
    request: Request,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    include_inactive: Optional[str] = Query(None, alias="includeInactive"),
    admin: bool = Depends(is_admin),
    user_id: Optional[str] = Depends(get_user_id),
    service: SearchService = Depends(get_search_service),
) -> ApiResponse[SearchResult]:
    """Search listings with filters, offset pagination and facets.

    Filters are read from the query string (q, categoryId, categoryIds, city,
    state, latitude, longitude, radius, minPrice, maxPrice, condition,
    conditions, createdAfter, createdBefore, sellerId, negotiable, pickupOnly,
    canArrangeShipping and, for admins, status).
    """
    options = SearchOptions(
        page=parse_page(page),
        limit=parse_limit(limit, settings.search.default_limit, settings.search.max_limit),
        sort_by=parse_sort_by(sort_by, SortKey.RELEVANCE),
        sort_order=parse_sort_order(sort_order),
        include_inactive=parse_flag(include_inactive) is True,
    )
    if options.include_inactive and not admin:
        raise ForbiddenError("Admin privileges required to include inactive listings")

    filters = parse_filters(request.query_params, allow_status=admin)

    with failure_as("SEARCH_FAILED", "Search request failed"):
        result = await service.search(filters, options, user_id)
    return ApiResponse[SearchResult](data=result)


@router.get("/scroll", response_model=ApiResponse[CursorPage])
async def scroll_listings(
    request: Request,
    cursor: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    admin: bool = Depends(is_admin),
    user_id: Optional[str] = Depends(get_user_id),
    service: SearchService = Depends(get_search_service),
) -> ApiResponse[CursorPage]:
    """Infinite scroll search. Accepts the same filters as the search endpoint."""
    page_size = parse_limit(limit, settings.search.default_limit, settings.search.max_limit)
    sort_key = parse_sort_by(sort_by, SortKey.CREATED_AT)
    order = parse_sort_order(sort_order)
    filters = parse_filters(request.query_params, allow_status=admin)

    with failure_as("SCROLL_SEARCH_FAILED", "Scroll search request failed"):
        result = await service.search_with_cursor(
            filters,
            cursor=cursor,
            limit=page_size,
            sort_by=sort_key,
            sort_order=order,
            user_id=user_id,
        )
    return ApiResponse[CursorPage](data=result)


@router.get("/suggestions", response_model=ApiResponse[SuggestionsData])
async def search_suggestions(
    q: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    service: SearchService = Depends(get_search_service),
) -> ApiResponse[SuggestionsData]:
    """Query completions from popular searches and category names."""
    if not q:
        raise InvalidParameterError("MISSING_QUERY", "Query parameter is required")
    size = parse_limit(limit, SUGGESTIONS_DEFAULT_LIMIT, SUGGESTIONS_MAX_LIMIT)

    with failure_as("SUGGESTIONS_FAILED", "Failed to get search suggestions"):
        suggestions = await service.get_search_suggestions(q, size)
    return ApiResponse[SuggestionsData](data=SuggestionsData(query=q, suggestions=suggestions))


@router.delete("/cache", response_model=ApiResponse[CacheClearData])
async def clear_search_cache(
    pattern: Optional[str] = Query(None),
    _: None = Depends(verify_admin),
    service: SearchService = Depends(get_search_service),
) -> ApiResponse[CacheClearData]:
    """Purge cached search results (admin only)."""
    with failure_as("CACHE_CLEAR_FAILED", "Failed to clear search cache"):
        deleted = await service.clear_search_cache(pattern)
    logger.info(f"Search cache purge requested for pattern {pattern!r}: {deleted} keys")
    return ApiResponse[CacheClearData](
        data=CacheClearData(pattern=service.results_cache.namespaced(pattern), deleted=deleted)
    )

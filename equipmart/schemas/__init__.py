"""Schema package exports."""

from .analytics import (AnalyticsScope, CategoryAnalytics, PopularityMetrics,
                        SearchAnalytics, SearchVolume, UserSearch)
from .listings import (Category, CategoryDocument, Condition, Listing,
                       ListingDocument, ListingStatus)
from .search import (CursorData, CursorPage, SearchFacets, SearchFilters,
                     SearchOptions, SearchResult, SortKey, SortOrder)
from .responses import (AnalyticsClearData, ApiResponse, CacheClearData,
                        CategoryViewData, PopularSearchesData,
                        RecommendationsData, SearchHistoryData,
                        SuggestionsData, TrendingQueriesData)

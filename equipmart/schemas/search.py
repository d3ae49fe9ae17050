"""Search request and response schemas."""

import math
from datetime import datetime
from enum import StrEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .listings import Condition, Listing, ListingStatus


class SortKey(StrEnum):
    """Sort keys accepted by search."""

    RELEVANCE = "relevance"
    PRICE = "price"
    CREATED_AT = "createdAt"
    VIEWS = "views"
    SAVES = "saves"


class SortOrder(StrEnum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchFilters(CamelModel):
    """Filters for a listing search.

    All present fields are ANDed together; list fields are ORed within themselves.
    """

    query: Optional[str] = None

    # Category filters; category_id is expanded to its whole subtree
    category_id: Optional[str] = None
    category_ids: Optional[List[str]] = None

    # Location filters
    city: Optional[str] = None
    state: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[float] = None  # kilometers

    # Price filters
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    # Condition filters
    condition: Optional[Condition] = None
    conditions: Optional[List[Condition]] = None

    # Date filters
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None

    # Other filters
    seller_id: Optional[str] = None
    status: Optional[ListingStatus] = None
    negotiable: Optional[bool] = None
    pickup_only: Optional[bool] = None
    can_arrange_shipping: Optional[bool] = None

    @field_validator("latitude", "longitude", "radius", "min_price", "max_price")
    @classmethod
    def drop_non_finite(cls, value: Optional[float]) -> Optional[float]:
        """Treat NaN and infinite numbers as not specified."""
        if value is not None and not math.isfinite(value):
            return None
        return value


class SearchOptions(CamelModel):
    """Pagination and sorting options for offset search."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    sort_by: SortKey = SortKey.RELEVANCE
    sort_order: SortOrder = SortOrder.DESC
    include_inactive: bool = False


class CategoryFacet(CamelModel):
    id: str
    name: str
    count: int


class ConditionFacet(CamelModel):
    condition: Condition
    count: int


class PriceRangeFacet(CamelModel):
    min: float
    max: Optional[float] = None
    count: int


class LocationFacet(CamelModel):
    city: Optional[str] = None
    state: Optional[str] = None
    count: int


class SearchFacets(CamelModel):
    """Aggregate counts over the whole filtered result set."""

    categories: List[CategoryFacet] = Field(default_factory=list)
    conditions: List[ConditionFacet] = Field(default_factory=list)
    price_ranges: List[PriceRangeFacet] = Field(default_factory=list)
    locations: List[LocationFacet] = Field(default_factory=list)


class SearchResult(CamelModel):
    """Result of an offset search."""

    listings: List[Listing]
    total: int
    page: int
    total_pages: int
    facets: Optional[SearchFacets] = None


class CursorData(BaseModel):
    """Decoded contents of a pagination cursor."""

    sort_key: SortKey
    value: str
    id: str
    issued_at: datetime


class CursorPage(CamelModel):
    """Result of a cursor (infinite scroll) search."""

    data: List[Listing]
    limit: int
    has_next_page: bool
    has_previous_page: bool = False
    next_cursor: Optional[str] = None
    previous_cursor: Optional[str] = None

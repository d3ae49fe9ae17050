"""Parse and validate search query string parameters.

Pagination and sort parameters are validated strictly and raise
InvalidParameterError. Filter values that do not parse are dropped.
"""

import logging
import math
from datetime import datetime
from typing import List, Optional

from starlette.datastructures import QueryParams

from ..schemas.listings import Condition, ListingStatus
from ..schemas.search import SearchFilters, SortKey, SortOrder
from ..utils.errors import InvalidParameterError

logger = logging.getLogger(__name__)


def _parse_int(raw: Optional[str]) -> Optional[int]:
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None


def parse_page(raw: Optional[str]) -> int:
    if raw is None:
        return 1
    page = _parse_int(raw)
    if page is None or page < 1:
        raise InvalidParameterError("INVALID_PAGE", "Page must be a positive integer")
    return page


def parse_limit(raw: Optional[str], default: int, maximum: int) -> int:
    if raw is None:
        return default
    limit = _parse_int(raw)
    if limit is None or limit < 1 or limit > maximum:
        raise InvalidParameterError("INVALID_LIMIT", f"Limit must be between 1 and {maximum}")
    return limit


def parse_sort_by(raw: Optional[str], default: SortKey) -> SortKey:
    if raw is None:
        return default
    try:
        return SortKey(raw)
    except ValueError:
        valid = ", ".join(key.value for key in SortKey)
        raise InvalidParameterError("INVALID_SORT_BY", f"Sort by must be one of: {valid}")


def parse_sort_order(raw: Optional[str]) -> SortOrder:
    if raw is None:
        return SortOrder.DESC
    try:
        return SortOrder(raw)
    except ValueError:
        raise InvalidParameterError("INVALID_SORT_ORDER", 'Sort order must be "asc" or "desc"')


def parse_flag(raw: Optional[str]) -> Optional[bool]:
    """Tri-state boolean: absent is None, only "true" is True."""
    if raw is None:
        return None
    return raw == "true"


def _parse_float(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.debug(f"Dropping non-numeric filter value {raw!r}")
        return None
    return value if math.isfinite(value) else None


def _parse_datetime(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        logger.debug(f"Dropping invalid date filter value {raw!r}")
        return None


def _parse_enum(enum_cls, raw: Optional[str]):
    if not raw:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        return None


def _list_param(params: QueryParams, name: str) -> List[str]:
    """Values of a repeated or comma-separated parameter."""
    values: List[str] = []
    for raw in params.getlist(name):
        values.extend(value.strip() for value in raw.split(",") if value.strip())
    return values


def parse_filters(params: QueryParams, allow_status: bool = False) -> SearchFilters:
    """Build SearchFilters from query parameters.

    Args:
        params: Request query parameters (camelCase names, free text as "q")
        allow_status: Honor the status override (admin requests only)

    Returns:
        Filters with every unparseable value left unset
    """
    filters = SearchFilters()

    filters.query = params.get("q") or None
    filters.category_id = params.get("categoryId") or None
    filters.category_ids = _list_param(params, "categoryIds") or None

    filters.city = params.get("city") or None
    filters.state = params.get("state") or None

    latitude = _parse_float(params.get("latitude"))
    longitude = _parse_float(params.get("longitude"))
    if latitude is not None and longitude is not None:
        filters.latitude = latitude
        filters.longitude = longitude
        radius = _parse_float(params.get("radius"))
        if radius is not None and radius > 0:
            filters.radius = radius

    min_price = _parse_float(params.get("minPrice"))
    if min_price is not None and min_price >= 0:
        filters.min_price = min_price
    max_price = _parse_float(params.get("maxPrice"))
    if max_price is not None and max_price >= 0:
        filters.max_price = max_price

    filters.condition = _parse_enum(Condition, params.get("condition"))
    conditions = [_parse_enum(Condition, value) for value in _list_param(params, "conditions")]
    filters.conditions = [condition for condition in conditions if condition] or None

    filters.created_after = _parse_datetime(params.get("createdAfter"))
    filters.created_before = _parse_datetime(params.get("createdBefore"))

    filters.seller_id = params.get("sellerId") or None
    filters.negotiable = parse_flag(params.get("negotiable"))
    filters.pickup_only = parse_flag(params.get("pickupOnly"))
    filters.can_arrange_shipping = parse_flag(params.get("canArrangeShipping"))

    if allow_status:
        filters.status = _parse_enum(ListingStatus, params.get("status"))

    return filters

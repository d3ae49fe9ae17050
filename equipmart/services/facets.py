"""Facet counts over a filtered (unpaginated) listing set."""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..schemas.search import (CategoryFacet, ConditionFacet, LocationFacet,
                              PriceRangeFacet, SearchFacets)
from .filters import merge_queries
from .store import ListingStore

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = "Unknown"

PriceBucket = Tuple[float, Optional[float]]


async def category_facets(store: ListingStore, query: Dict[str, Any], limit: int) -> List[CategoryFacet]:
    groups = await store.group_count(query, ["category_id"], limit)
    if not groups:
        return []

    categories = await store.get_categories([group["category_id"] for group in groups])
    names = {category.id: category.name for category in categories}
    return [
        CategoryFacet(
            id=group["category_id"],
            name=names.get(group["category_id"], UNKNOWN_CATEGORY),
            count=group["count"],
        )
        for group in groups
    ]


async def condition_facets(store: ListingStore, query: Dict[str, Any]) -> List[ConditionFacet]:
    groups = await store.group_count(query, ["condition"])
    return [ConditionFacet(condition=group["condition"], count=group["count"]) for group in groups]


async def location_facets(store: ListingStore, query: Dict[str, Any], limit: int) -> List[LocationFacet]:
    groups = await store.group_count(query, ["city", "state"], limit)
    return [
        LocationFacet(city=group.get("city"), state=group.get("state"), count=group["count"])
        for group in groups
    ]


async def price_range_facets(
    store: ListingStore, query: Dict[str, Any], buckets: Sequence[PriceBucket]
) -> List[PriceRangeFacet]:
    """Count listings per price bucket; buckets are [min, max) and max None is open-ended."""

    async def count_bucket(lower: float, upper: Optional[float]) -> int:
        bounds: Dict[str, Any] = {"$gte": Decimal(str(lower))}
        if upper is not None:
            bounds["$lt"] = Decimal(str(upper))
        return await store.count(merge_queries(query, {"price": bounds}))

    counts = await asyncio.gather(*(count_bucket(lower, upper) for lower, upper in buckets))
    return [
        PriceRangeFacet(min=lower, max=upper, count=count)
        for (lower, upper), count in zip(buckets, counts)
        if count
    ]


async def compute_facets(
    store: ListingStore,
    query: Dict[str, Any],
    limit: int,
    price_buckets: Sequence[PriceBucket],
) -> SearchFacets:
    """Compute all facets for a query concurrently.

    Args:
        store: Listing store
        query: The same query document used for the result page
        limit: Top-N for the category and location facets
        price_buckets: Price ranges to count

    Returns:
        Category, condition, price range and location facets
    """
    categories, conditions, price_ranges, locations = await asyncio.gather(
        category_facets(store, query, limit),
        condition_facets(store, query),
        price_range_facets(store, query, price_buckets),
        location_facets(store, query, limit),
    )
    logger.debug(
        f"Computed facets: {len(categories)} categories, {len(conditions)} conditions, "
        f"{len(price_ranges)} price ranges, {len(locations)} locations"
    )
    return SearchFacets(
        categories=categories,
        conditions=conditions,
        price_ranges=price_ranges,
        locations=locations,
    )

"""Compile search filters into MongoDB query documents."""

import logging
import re
from collections import deque
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

from ..schemas.listings import ListingStatus
from ..schemas.search import SearchFilters, SortKey, SortOrder
from .store import ListingStore

logger = logging.getLogger(__name__)

# Approximate kilometers per degree, used for the bounding-box radius filter
KM_PER_DEGREE = 111.0

# Store field behind each sort key; relevance pages on recency
SORT_FIELDS: Dict[SortKey, str] = {
    SortKey.RELEVANCE: "created_at",
    SortKey.PRICE: "price",
    SortKey.CREATED_AT: "created_at",
    SortKey.VIEWS: "views",
    SortKey.SAVES: "saves",
}

TEXT_FIELDS = ("title", "description", "brand", "model")


def normalize_query(query: Optional[str]) -> str:
    """Lowercase and collapse whitespace; empty string when there is no query."""
    if not query:
        return ""
    return " ".join(query.lower().split())


def split_terms(query: Optional[str]) -> List[str]:
    return normalize_query(query).split()


def _contains(text: str) -> Dict[str, str]:
    return {"$regex": re.escape(text), "$options": "i"}


def merge_queries(*parts: Dict[str, Any]) -> Dict[str, Any]:
    """AND together query documents, skipping empty ones."""
    conditions = [part for part in parts if part]
    if not conditions:
        return {}
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


def _range(lower: Any = None, upper: Any = None) -> Dict[str, Any]:
    bounds: Dict[str, Any] = {}
    if lower is not None:
        bounds["$gte"] = lower
    if upper is not None:
        bounds["$lte"] = upper
    return bounds


def _price(value: Optional[float]) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


async def expand_category_ids(store: ListingStore, category_id: str) -> List[str]:
    """Resolve a category to itself plus all of its descendants.

    Walks the tree breadth-first with a visited set, so a corrupt parent graph
    containing a cycle still terminates.
    """
    visited = {category_id}
    ordered = [category_id]
    queue = deque([category_id])

    while queue:
        level = list(queue)
        queue.clear()
        children = await store.get_child_category_ids(level)
        for child in children:
            if child in visited:
                continue
            visited.add(child)
            ordered.append(child)
            queue.append(child)

    logger.debug(f"Category {category_id} expanded to {len(ordered)} ids")
    return ordered


async def build_text_query(store: ListingStore, query: Optional[str]) -> Dict[str, Any]:
    """OR of field branches, each requiring every term of the query."""
    terms = split_terms(query)
    if not terms:
        return {}

    branches = [{"$and": [{field: _contains(term)} for term in terms]} for field in TEXT_FIELDS]

    category_ids = await store.find_category_ids_by_name(terms)
    if category_ids:
        branches.append({"category_id": {"$in": category_ids}})

    return {"$or": branches}


async def build_search_query(
    filters: SearchFilters, include_inactive: bool, store: ListingStore
) -> Dict[str, Any]:
    """Build the MongoDB query matching a set of search filters.

    Args:
        filters: Validated search filters
        include_inactive: Skip the live-only restriction (admin searches)
        store: Used to resolve category subtrees and category name matches

    Returns:
        Query document; all conditions are ANDed
    """
    conditions: List[Dict[str, Any]] = []

    if not include_inactive:
        conditions.append({"is_active": True})
        conditions.append({"status": filters.status or ListingStatus.LIVE})
    elif filters.status:
        conditions.append({"status": filters.status})

    conditions.append(await build_text_query(store, filters.query))

    if filters.category_id:
        category_ids = await expand_category_ids(store, filters.category_id)
        conditions.append({"category_id": {"$in": category_ids}})
    elif filters.category_ids:
        conditions.append({"category_id": {"$in": list(filters.category_ids)}})

    if filters.city:
        conditions.append({"city": _contains(filters.city)})
    if filters.state:
        conditions.append({"state": filters.state})

    if filters.latitude is not None and filters.longitude is not None and filters.radius is not None:
        delta = filters.radius / KM_PER_DEGREE
        conditions.append({"latitude": _range(filters.latitude - delta, filters.latitude + delta)})
        conditions.append({"longitude": _range(filters.longitude - delta, filters.longitude + delta)})

    price_range = _range(_price(filters.min_price), _price(filters.max_price))
    if price_range:
        conditions.append({"price": price_range})

    if filters.condition:
        conditions.append({"condition": filters.condition})
    elif filters.conditions:
        conditions.append({"condition": {"$in": list(filters.conditions)}})

    created_range = _range(filters.created_after, filters.created_before)
    if created_range:
        conditions.append({"created_at": created_range})

    if filters.seller_id:
        conditions.append({"seller_id": filters.seller_id})
    for field in ("negotiable", "pickup_only", "can_arrange_shipping"):
        value = getattr(filters, field)
        if value is not None:
            conditions.append({field: value})

    return merge_queries(*conditions)


def direction(sort_order: SortOrder) -> int:
    return ASCENDING if sort_order == SortOrder.ASC else DESCENDING


def build_sort(sort_by: SortKey, sort_order: SortOrder, has_query: bool) -> List[Tuple[str, int]]:
    """Store-level sort for offset search, with _id as the final tie-breaker."""
    if sort_by == SortKey.RELEVANCE:
        if has_query:
            return [("views", DESCENDING), ("saves", DESCENDING), ("created_at", DESCENDING), ("_id", DESCENDING)]
        return [("created_at", DESCENDING), ("_id", DESCENDING)]

    order = direction(sort_order)
    return [(SORT_FIELDS[sort_by], order), ("_id", order)]


def has_text(filters: SearchFilters) -> bool:
    return bool(split_terms(filters.query))


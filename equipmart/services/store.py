"""Listing store used by search.

The search engine only depends on the ListingStore protocol; BeanieListingStore
is the MongoDB implementation.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from ..schemas.listings import (Category, CategoryDocument, Listing,
                                ListingDocument)
from ..utils.utils import decode_document, encode_query

logger = logging.getLogger(__name__)

SortSpec = List[Tuple[str, int]]


class ListingStore(Protocol):
    """Query interface over listings and categories."""

    async def count(self, query: Dict[str, Any]) -> int:
        ...

    async def find(
        self, query: Dict[str, Any], sort: SortSpec, skip: int = 0, limit: int = 0
    ) -> List[Listing]:
        ...

    async def group_count(
        self, query: Dict[str, Any], fields: Sequence[str], limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Count matching listings per distinct combination of fields.

        Returns:
            Dicts holding the grouped field values plus "count", largest count first
        """
        ...

    async def get_child_category_ids(self, parent_ids: Sequence[str]) -> List[str]:
        ...

    async def find_category_ids_by_name(self, terms: Sequence[str]) -> List[str]:
        """Ids of categories whose name contains every term (case-insensitive)."""
        ...

    async def get_categories(self, ids: Optional[Sequence[str]] = None) -> List[Category]:
        ...

    async def search_categories(self, text: str, limit: int) -> List[Category]:
        """Categories whose name or slug contains text (case-insensitive)."""
        ...


def _contains(text: str) -> Dict[str, str]:
    return {"$regex": re.escape(text), "$options": "i"}


class BeanieListingStore:
    """ListingStore over the MongoDB collections managed by Beanie."""

    async def count(self, query: Dict[str, Any]) -> int:
        collection = ListingDocument.get_motor_collection()
        return await collection.count_documents(encode_query(query))

    async def find(
        self, query: Dict[str, Any], sort: SortSpec, skip: int = 0, limit: int = 0
    ) -> List[Listing]:
        collection = ListingDocument.get_motor_collection()
        cursor = collection.find(encode_query(query))
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(length=None)
        logger.debug(f"Fetched {len(docs)} listings (skip={skip}, limit={limit})")
        return [Listing.model_validate(decode_document(doc)) for doc in docs]

    async def group_count(
        self, query: Dict[str, Any], fields: Sequence[str], limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        pipeline: List[Dict[str, Any]] = [
            {"$match": encode_query(query)},
            {
                "$group": {
                    "_id": {field: f"${field}" for field in fields},
                    "count": {"$sum": 1},
                }
            },
            {"$sort": {"count": -1, "_id": 1}},
        ]
        if limit:
            pipeline.append({"$limit": limit})

        results = await ListingDocument.aggregate(pipeline).to_list()
        return [{**result["_id"], "count": result["count"]} for result in results]

    async def get_child_category_ids(self, parent_ids: Sequence[str]) -> List[str]:
        children = await CategoryDocument.find({"parent_id": {"$in": list(parent_ids)}}).to_list()
        return [child.id for child in children]

    async def find_category_ids_by_name(self, terms: Sequence[str]) -> List[str]:
        if not terms:
            return []
        query = {"$and": [{"name": _contains(term)} for term in terms]}
        categories = await CategoryDocument.find(query).to_list()
        return [category.id for category in categories]

    async def get_categories(self, ids: Optional[Sequence[str]] = None) -> List[Category]:
        query = {"_id": {"$in": list(ids)}} if ids is not None else {}
        categories = await CategoryDocument.find(query).to_list()
        return [Category.model_validate(category.model_dump()) for category in categories]

    async def search_categories(self, text: str, limit: int) -> List[Category]:
        query = {"$or": [{"name": _contains(text)}, {"slug": _contains(text)}]}
        categories = await CategoryDocument.find(query).limit(limit).to_list()
        return [Category.model_validate(category.model_dump()) for category in categories]

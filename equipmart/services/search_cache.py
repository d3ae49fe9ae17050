"""Read-through cache of offset search results."""

import hashlib
import json
import logging
from typing import Optional

from pydantic import ValidationError

from ..schemas.search import SearchFilters, SearchOptions, SearchResult
from ..utils.cache import CacheService
from .filters import normalize_query

logger = logging.getLogger(__name__)


class SearchCache:
    """Stores SearchResult payloads under "<prefix>:<sha256>" keys."""

    def __init__(self, cache: CacheService, ttl: int, prefix: str = "search"):
        self.cache = cache
        self.ttl = ttl
        self.prefix = prefix

    def make_key(self, filters: SearchFilters, options: SearchOptions) -> str:
        """Deterministic key for a (filters, options) pair."""
        normalized = filters.model_dump(mode="json", by_alias=True, exclude_none=True)
        if "query" in normalized:
            normalized["query"] = normalize_query(filters.query)
        canonical = json.dumps(
            {"filters": normalized, "options": options.model_dump(mode="json", by_alias=True)},
            sort_keys=True,
            separators=(",", ":"),
        )
        return f"{self.prefix}:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"

    async def get(self, key: str) -> Optional[SearchResult]:
        raw = await self.cache.get(key)
        if raw is None:
            return None
        try:
            return SearchResult.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding corrupt cached search result '{key}': {e}")
            return None

    async def put(self, key: str, result: SearchResult) -> bool:
        return await self.cache.set(key, result.model_dump_json(by_alias=True), ttl=self.ttl)

    def namespaced(self, pattern: Optional[str]) -> str:
        """Confine a key pattern to the search namespace."""
        if not pattern:
            return f"{self.prefix}:*"
        if pattern.startswith(f"{self.prefix}:"):
            return pattern
        return f"{self.prefix}:{pattern}"

    async def clear(self, pattern: Optional[str] = None) -> int:
        """Delete cached results matching pattern (all search results by default).

        Returns:
            Number of keys deleted
        """
        pattern = self.namespaced(pattern)
        deleted = await self.cache.clear_pattern(pattern)
        logger.info(f"Cleared {deleted} cached search results matching '{pattern}'")
        return deleted

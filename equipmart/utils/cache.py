"""Redis-backed cache and counter store."""

import logging
from typing import List, Optional, Tuple

import redis.asyncio as aioredis

from ..config import settings

# Configure logger
logger = logging.getLogger(__name__)


class CacheService:
    """Redis-based cache and counter service.

    Every operation is best-effort: Redis failures are logged and a neutral
    value is returned, so callers never have to guard against an unavailable cache.
    """

    def __init__(self, redis: Optional[aioredis.Redis] = None):
        """Initialize the cache service with a Redis connection.

        Args:
            redis: Client to use; a client for the configured URL is created if omitted
        """
        if redis is None:
            redis = aioredis.from_url(settings.cache.redis_url, decode_responses=True)
            logger.info(f"Initialized Redis cache at {settings.cache.redis_url}")
        self.redis = redis

    # Key/value operations

    async def get(self, key: str) -> Optional[str]:
        """Get a string value from cache.

        Args:
            key: Cache key

        Returns:
            Cached string value or None if not found
        """
        try:
            return await self.redis.get(key)
        except Exception as e:
            logger.warning(f"Cache get failed for key '{key}': {e}")
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Set a string value in cache.

        Args:
            key: Cache key
            value: String value to cache
            ttl: Time-to-live in seconds, if None cache won't expire

        Returns:
            True if successful, False otherwise
        """
        try:
            return bool(await self.redis.set(key, value, ex=ttl))
        except Exception as e:
            logger.warning(f"Cache set failed for key '{key}': {e}")
            return False

    async def list_keys(self, pattern: str) -> List[str]:
        """List all keys matching a pattern.

        Args:
            pattern: Redis glob pattern (e.g., "search:*")

        Returns:
            Matching keys, empty on failure
        """
        try:
            return [key async for key in self.redis.scan_iter(match=pattern)]
        except Exception as e:
            logger.warning(f"Cache key listing failed for '{pattern}': {e}")
            return []

    async def clear_pattern(self, pattern: str) -> int:
        """Delete all keys matching a pattern.

        Args:
            pattern: Redis glob pattern (e.g., "search:*")

        Returns:
            Number of keys deleted
        """
        keys = await self.list_keys(pattern)
        if not keys:
            return 0
        try:
            return await self.redis.delete(*keys)
        except Exception as e:
            logger.warning(f"Cache clear pattern failed for '{pattern}': {e}")
            return 0

    async def expire(self, key: str, ttl: int) -> bool:
        """Set a key's time-to-live in seconds."""
        try:
            return bool(await self.redis.expire(key, ttl))
        except Exception as e:
            logger.warning(f"Cache expire failed for key '{key}': {e}")
            return False

    # Scored set (counter) operations

    async def increment_scored_set(self, key: str, score: float, member: str) -> Optional[float]:
        """Atomically add score to a member of a sorted set.

        Returns:
            The member's new score, or None on failure
        """
        try:
            return await self.redis.zincrby(key, score, member)
        except Exception as e:
            logger.warning(f"Sorted set increment failed for key '{key}': {e}")
            return None

    async def add_scored_member(self, key: str, score: float, member: str) -> bool:
        """Set a member's score in a sorted set, replacing any previous score."""
        try:
            await self.redis.zadd(key, {member: score})
            return True
        except Exception as e:
            logger.warning(f"Sorted set add failed for key '{key}': {e}")
            return False

    async def range_scored_set_desc(self, key: str, start: int, stop: int) -> List[Tuple[str, float]]:
        """Get members with scores, highest score first.

        Args:
            key: Sorted set key
            start: First rank (0-based, inclusive)
            stop: Last rank (inclusive, -1 for the end)

        Returns:
            List of (member, score) tuples
        """
        try:
            results = await self.redis.zrevrange(key, start, stop, withscores=True)
            return [(member, float(score)) for member, score in results]
        except Exception as e:
            logger.warning(f"Sorted set range failed for key '{key}': {e}")
            return []

    async def get_score(self, key: str, member: str) -> Optional[float]:
        """Get a single member's score."""
        try:
            return await self.redis.zscore(key, member)
        except Exception as e:
            logger.warning(f"Sorted set score lookup failed for key '{key}': {e}")
            return None

    async def remove_scored_set_below(self, key: str, threshold: float) -> int:
        """Remove members whose score is at or below threshold.

        Returns:
            Number of members removed
        """
        try:
            return await self.redis.zremrangebyscore(key, "-inf", threshold)
        except Exception as e:
            logger.warning(f"Sorted set prune failed for key '{key}': {e}")
            return 0

    async def trim_scored_set(self, key: str, keep: int) -> int:
        """Keep only the keep highest-scored members.

        Returns:
            Number of members removed
        """
        try:
            return await self.redis.zremrangebyrank(key, 0, -(keep + 1))
        except Exception as e:
            logger.warning(f"Sorted set trim failed for key '{key}': {e}")
            return 0

    # Hash counter operations

    async def increment_hash(self, key: str, field: str, amount: int = 1) -> Optional[int]:
        """Atomically increment a hash field."""
        try:
            return await self.redis.hincrby(key, field, amount)
        except Exception as e:
            logger.warning(f"Hash increment failed for key '{key}': {e}")
            return None

    async def get_hash_field(self, key: str, field: str) -> Optional[str]:
        """Get a single hash field."""
        try:
            return await self.redis.hget(key, field)
        except Exception as e:
            logger.warning(f"Hash get failed for key '{key}': {e}")
            return None

    async def ping(self) -> bool:
        """Check whether Redis answers."""
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.warning(f"Cache ping failed: {e}")
            return False

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self.redis.aclose()

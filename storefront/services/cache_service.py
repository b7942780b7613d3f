"""
==============================================================================
Cache Service Module
==============================================================================

Redis-backed JSON cache for product listings.

Redis is an optimization only: every Redis failure is logged and treated
as a cache miss so the API keeps serving from the database.

Key Layout:
----------
    products:list:<sha1 of filters>     cached list result
    products:<SECTION>:<...>            section-scoped entries

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Optional

import redis

from storefront.config import get_settings


logger = logging.getLogger(__name__)


class CacheService:
    """
    JSON cache on top of a redis-py client.

    Example:
        >>> cache = CacheService(redis.Redis.from_url("redis://localhost:6379/0"))
        >>> cache.set("products:list:abc", {"products": []}, ttl=300)
        >>> cache.get("products:list:abc")
        {'products': []}
    """

    SCAN_BATCH = 200

    def __init__(self, client: Optional[redis.Redis], enabled: bool = True) -> None:
        self._client = client
        self._enabled = enabled and client is not None

    @property
    def enabled(self) -> bool:
        return self._enabled

    # =========================================================================
    # READ / WRITE
    # =========================================================================

    def get(self, key: str) -> Optional[Any]:
        """Return the decoded value, or None on miss or Redis error."""
        if not self._enabled:
            return None

        try:
            raw = self._client.get(key)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Cache read failed for {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"⚠️ Discarding undecodable cache entry: {key}")
            self.delete(key)
            return None

    def set(self, key: str, value: Any, ttl: int) -> None:
        if not self._enabled:
            return

        try:
            self._client.setex(key, ttl, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning(f"⚠️ Cache write failed for {key}: {e}")

    def delete(self, key: str) -> None:
        if not self._enabled:
            return

        try:
            self._client.delete(key)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Cache delete failed for {key}: {e}")

    def invalidate_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern.

        Uses SCAN rather than KEYS so large keyspaces don't block Redis.

        Returns:
            Number of keys deleted
        """
        if not self._enabled:
            return 0

        deleted = 0
        try:
            batch = []
            for key in self._client.scan_iter(match=pattern, count=self.SCAN_BATCH):
                batch.append(key)
                if len(batch) >= self.SCAN_BATCH:
                    deleted += self._client.delete(*batch)
                    batch = []
            if batch:
                deleted += self._client.delete(*batch)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Cache invalidation failed for {pattern}: {e}")
            return deleted

        if deleted:
            logger.debug(f"Invalidated {deleted} cache keys matching {pattern}")
        return deleted

    def ping(self) -> bool:
        if not self._enabled:
            return False
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_cache_service() -> CacheService:
    """
    Get the global CacheService.

    The Redis connection is lazy; nothing is contacted until first use.
    """
    settings = get_settings()
    if not settings.cache_enabled:
        logger.info("Product cache disabled")
        return CacheService(None, enabled=False)

    client = redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    return CacheService(client)

"""Redis-backed cache for read models."""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

from hotel_content import metrics
from hotel_content.config import settings
from hotel_content.ingest.base import Cache

logger = logging.getLogger(__name__)


class RedisCache(Cache):
    """Stores JSON-encoded values with a TTL."""

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url or settings.redis_url
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = await redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.close()
            self._redis = None

    async def get(self, key: str) -> tuple[bool, Any]:
        """
        Look up a key.

        Returns:
            (True, value) on a hit, (False, None) on a miss. An entry that
            no longer decodes counts as a miss.
        """
        redis_client = await self._get_redis()
        raw = await redis_client.get(key)
        if raw is None:
            metrics.record_cache_event("miss")
            return False, None

        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            metrics.record_cache_event("miss")
            return False, None

        metrics.record_cache_event("hit")
        return True, value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        redis_client = await self._get_redis()
        await redis_client.setex(key, ttl_seconds, json.dumps(value, default=str))
        metrics.record_cache_event("set")

    async def delete(self, key: str) -> None:
        redis_client = await self._get_redis()
        await redis_client.delete(key)
        metrics.record_cache_event("del")

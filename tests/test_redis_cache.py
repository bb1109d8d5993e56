"""Tests for the Redis-backed cache."""

import pytest
import redis.asyncio as redis

from hotel_content.cache.redis_cache import RedisCache
from hotel_content.config import settings

KEY = "hotel:990000001:en"


async def _redis_available() -> bool:
    try:
        client = await redis.from_url(settings.redis_url, decode_responses=True)
        await client.ping()
        await client.close()
        return True
    except Exception:
        return False


@pytest.mark.asyncio
async def test_set_get_delete():
    if not await _redis_available():
        pytest.skip("Redis not available")

    cache = RedisCache(settings.redis_url)
    try:
        await cache.delete(KEY)
        assert await cache.get(KEY) == (False, None)

        await cache.set(KEY, {"id": 990000001, "name": "Test"}, ttl_seconds=30)
        assert await cache.get(KEY) == (True, {"id": 990000001, "name": "Test"})

        await cache.delete(KEY)
        assert await cache.get(KEY) == (False, None)
    finally:
        await cache.close()


@pytest.mark.asyncio
async def test_undecodable_entry_is_a_miss():
    if not await _redis_available():
        pytest.skip("Redis not available")

    client = await redis.from_url(settings.redis_url, decode_responses=True)
    await client.set(KEY, "{broken", ex=30)
    await client.close()

    cache = RedisCache(settings.redis_url)
    try:
        assert await cache.get(KEY) == (False, None)
    finally:
        await cache.delete(KEY)
        await cache.close()

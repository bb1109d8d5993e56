"""Cached read access to hotels and reviews."""

import json
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Optional

from hotel_content.cache.keys import hotel_key, reviews_key
from hotel_content.config import settings
from hotel_content.ingest.base import (
    Cache,
    Coords,
    HotelRepository,
    HotelView,
    PageQuery,
    Review,
    ReviewsPage,
)

logger = logging.getLogger(__name__)

# Review pages larger than this are served but not cached
MAX_CACHED_PAGE_BYTES = 1_000_000


def hotel_view_from_cache(data: Any) -> HotelView:
    if not isinstance(data, dict):
        raise TypeError(f"cached hotel view is {type(data).__name__}, expected object")
    data = dict(data)
    coords = data.pop("coords", None)
    view = HotelView(**data)
    if coords:
        view.coords = Coords(**coords)
    return view


def reviews_page_from_cache(data: Any) -> ReviewsPage:
    if not isinstance(data, dict):
        raise TypeError(f"cached review page is {type(data).__name__}, expected object")
    items = []
    for item in data.get("items", []):
        if not isinstance(item, dict):
            raise TypeError(f"cached review is {type(item).__name__}, expected object")
        item = dict(item)
        created_at = item.get("created_at")
        if isinstance(created_at, str):
            item["created_at"] = datetime.fromisoformat(created_at)
        items.append(Review(**item))
    return ReviewsPage(items=items)


class QueryService:
    """
    Read-through cache in front of the repository.

    Keys come from ``hotel_content.cache.keys`` so that ingestion evicts the
    same entries this service fills. Cache failures degrade to direct reads.
    """

    def __init__(
        self,
        repository: HotelRepository,
        cache: Cache,
        ttl_seconds: Optional[int] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.ttl_seconds = ttl_seconds or settings.cache_ttl_seconds

    async def _cache_get(self, key: str) -> tuple[bool, Any]:
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return False, None

    async def _cache_set(self, key: str, value: Any) -> None:
        try:
            await self.cache.set(key, value, self.ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    async def get_hotel(self, property_id: int, lang: str) -> HotelView:
        """
        Get a hotel in one language.

        Raises:
            HotelNotFound: If the property is not stored
        """
        key = hotel_key(property_id, lang)
        found, cached = await self._cache_get(key)
        if found:
            try:
                return hotel_view_from_cache(cached)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring stale cache entry {key}: {e}")

        view = await self.repository.get_hotel_view(property_id, lang)
        await self._cache_set(key, asdict(view))
        return view

    async def list_reviews(self, property_id: int, page: PageQuery) -> ReviewsPage:
        """Get one page of reviews, newest first."""
        key = reviews_key(property_id, page.limit, page.sort)
        found, cached = await self._cache_get(key)
        if found:
            try:
                return reviews_page_from_cache(cached)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring stale cache entry {key}: {e}")

        result = await self.repository.list_reviews(property_id, page)
        payload = asdict(result)
        if len(json.dumps(payload, default=str)) < MAX_CACHED_PAGE_BYTES:
            await self._cache_set(key, payload)
        return result

    async def list_hotels(self, lang: str, limit: int) -> list[HotelView]:
        """List hotel summaries (not cached)."""
        return await self.repository.list_hotels(lang, limit)

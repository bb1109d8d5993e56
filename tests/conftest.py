"""Shared fixtures: in-memory fakes for the ingestion ports."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from hotel_content.db.models import DEFAULT_REVIEW_SOURCE
from hotel_content.ingest.base import (
    Cache,
    ContentClient,
    Coords,
    Hotel,
    HotelI18n,
    HotelNotFound,
    HotelRepository,
    HotelView,
    PageQuery,
    Review,
    ReviewsPage,
)
from hotel_content.ingest.cupid_client import NotFoundError
from hotel_content.ingest.mapper import synthesize_source_id

REVIEW_MERGE_FIELDS = ("author", "rating", "lang", "title", "text", "aspects", "raw")


class FakeClient(ContentClient):
    """
    Serves canned documents. A value that is an exception instance is raised
    instead of returned; anything not configured is a 404.
    """

    def __init__(self):
        self.properties: dict[int, Any] = {}
        self.translations: dict[tuple[int, str], Any] = {}
        self.reviews: dict[int, Any] = {}
        self.calls: list[tuple] = []

    @staticmethod
    def _serve(value: Any, what: str) -> Any:
        if value is None:
            raise NotFoundError(f"{what}: not found", status_code=404)
        if isinstance(value, BaseException):
            raise value
        return value

    async def get_property(self, property_id: int) -> dict[str, Any]:
        self.calls.append(("property", property_id))
        return self._serve(self.properties.get(property_id), "property")

    async def get_translation(self, property_id: int, lang: str) -> dict[str, Any]:
        self.calls.append(("translation", property_id, lang))
        return self._serve(self.translations.get((property_id, lang)), "translation")

    async def get_reviews(self, property_id: int, count: int) -> list[dict[str, Any]]:
        self.calls.append(("reviews", property_id, count))
        return self._serve(self.reviews.get(property_id), "reviews")


class FakeRepository(HotelRepository):
    """Dict-backed repository with the same merge rules as the SQL one."""

    def __init__(self):
        self.properties: dict[int, Hotel] = {}
        self.i18n: dict[tuple[int, str], HotelI18n] = {}
        self.reviews: dict[tuple[int, str, str], Review] = {}
        self.misses: dict[tuple[int, str], int] = {}
        self.calls: list[tuple] = []
        self._next_review_id = 1
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    async def upsert_property(self, hotel: Hotel) -> None:
        self.calls.append(("upsert_property", hotel.id))
        self.properties[hotel.id] = hotel

    async def upsert_i18n(self, record: HotelI18n) -> None:
        self.calls.append(("upsert_i18n", record.property_id, record.lang))
        assert record.property_id in self.properties, "parent property must exist"
        self.i18n[(record.property_id, record.lang)] = record

    async def upsert_reviews(self, reviews: list[Review]) -> None:
        self.calls.append(("upsert_reviews", len(reviews)))
        for review in reviews:
            assert review.property_id in self.properties, "parent property must exist"
            source = review.source or DEFAULT_REVIEW_SOURCE
            source_id = review.source_id or synthesize_source_id(
                review.author, review.title, review.text, review.lang, review.rating
            )
            key = (review.property_id, source, source_id)
            existing = self.reviews.get(key)
            if existing is None:
                self._clock += timedelta(minutes=1)
                self.reviews[key] = Review(
                    property_id=review.property_id,
                    source_id=source_id,
                    author=review.author,
                    rating=review.rating,
                    lang=review.lang,
                    title=review.title,
                    text=review.text,
                    aspects=review.aspects,
                    source=source,
                    raw=review.raw,
                    id=self._next_review_id,
                    created_at=self._clock,
                )
                self._next_review_id += 1
                continue
            for name in REVIEW_MERGE_FIELDS:
                value = getattr(review, name)
                if value is not None and value != {}:
                    setattr(existing, name, value)

    async def record_miss(self, property_id: int, status_code: int, reason: str) -> None:
        self.calls.append(("record_miss", property_id, reason))
        self.misses.setdefault((property_id, reason), status_code)

    async def get_hotel_view(self, property_id: int, lang: str) -> HotelView:
        hotel = self.properties.get(property_id)
        if hotel is None:
            raise HotelNotFound(property_id)
        translation = self.i18n.get((property_id, lang))
        view = HotelView(
            id=hotel.id,
            language=lang,
            stars=hotel.stars,
            country=hotel.country,
            city=hotel.city,
            address=(translation.address if translation and translation.address else hotel.address_raw),
            amenities=list(hotel.amenities),
            images=list(hotel.images),
        )
        if hotel.lat is not None and hotel.lon is not None:
            view.coords = Coords(lat=hotel.lat, lon=hotel.lon)
        if translation is not None:
            view.name = translation.name
            view.description = translation.description
            view.policies = translation.policies
        return view

    async def list_reviews(self, property_id: int, page: PageQuery) -> ReviewsPage:
        items = [r for r in self.reviews.values() if r.property_id == property_id]
        items.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return ReviewsPage(items=items[: page.limit])

    async def list_hotels(self, lang: str, limit: int) -> list[HotelView]:
        return [await self.get_hotel_view(pid, lang) for pid in sorted(self.properties)[:limit]]


class FakeCache(Cache):
    """Dict cache that records operations; can be told to fail."""

    def __init__(self):
        self.store: dict[str, Any] = {}
        self.deleted: list[str] = []
        self.gets: list[str] = []
        self.fail_deletes = False
        self.fail_reads = False

    async def get(self, key: str) -> tuple[bool, Any]:
        self.gets.append(key)
        if self.fail_reads:
            raise ConnectionError("cache unavailable")
        if key in self.store:
            return True, self.store[key]
        return False, None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self.store[key] = value

    async def delete(self, key: str) -> None:
        if self.fail_deletes:
            raise ConnectionError("cache unavailable")
        self.deleted.append(key)
        self.store.pop(key, None)


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def fake_repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def fake_cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def property_doc() -> dict[str, Any]:
    """Property payload in the shape the current API version returns."""
    return {
        "hotel_id": 1641879,
        "chain_id": 7,
        "stars": 4.5,
        "latitude": 41.0082,
        "longitude": 28.9784,
        "address": {"city": "Istanbul", "country": "TR"},
        "facilities": [{"name": "Pool"}, {"name": "Spa"}],
        "photos": [{"url": "https://img.example/1.jpg"}, "https://img.example/2.jpg"],
    }

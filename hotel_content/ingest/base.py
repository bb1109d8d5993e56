"""Domain records and the interfaces the ingestion pipeline depends on."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass
class Hotel:
    """Normalized, language-agnostic property record."""

    id: int
    brand_id: Optional[int] = None
    stars: Optional[int] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    country: Optional[str] = None
    city: Optional[str] = None
    address_raw: Optional[str] = None
    amenities: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)  # full upstream payload


@dataclass
class HotelI18n:
    """Localized fields for one (property, language) pair."""

    property_id: int
    lang: str
    name: Optional[str] = None
    description: Optional[str] = None
    policies: Optional[str] = None
    address: Optional[str] = None
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class Review:
    """A single guest review, unique per (property_id, source, source_id)."""

    property_id: int
    source_id: Optional[str] = None
    author: Optional[str] = None
    rating: Optional[float] = None
    lang: Optional[str] = None
    title: Optional[str] = None
    text: Optional[str] = None
    aspects: Optional[dict[str, list[str]]] = None  # {"pros": [...], "cons": [...]}
    source: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class Coords:
    lat: float
    lon: float


@dataclass
class HotelView:
    """Property merged with one language's localized fields (read model)."""

    id: int
    language: str
    stars: Optional[int] = None
    coords: Optional[Coords] = None
    country: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    policies: Optional[str] = None
    amenities: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)


@dataclass
class PageQuery:
    limit: int = 50
    sort: str = "-created_at"


@dataclass
class ReviewsPage:
    items: list[Review] = field(default_factory=list)


class HotelNotFound(LookupError):
    """Raised by the read path when a property does not exist locally."""

    def __init__(self, property_id: int):
        super().__init__(f"hotel {property_id} not found")
        self.property_id = property_id


class ContentClient(ABC):
    """Upstream content API.

    Implementations raise ``NotFoundError`` / ``AccessDeniedError`` for the
    expected "no such resource" outcomes and any other exception for
    failures.
    """

    @abstractmethod
    async def get_property(self, property_id: int) -> dict[str, Any]:
        pass

    @abstractmethod
    async def get_translation(self, property_id: int, lang: str) -> dict[str, Any]:
        pass

    @abstractmethod
    async def get_reviews(self, property_id: int, count: int) -> list[dict[str, Any]]:
        pass


class HotelRepository(ABC):
    """Relational store: idempotent upserts for ingestion, reads for the API."""

    @abstractmethod
    async def upsert_property(self, hotel: Hotel) -> None:
        pass

    @abstractmethod
    async def upsert_i18n(self, record: HotelI18n) -> None:
        """Requires the property row to exist."""

    @abstractmethod
    async def upsert_reviews(self, reviews: list[Review]) -> None:
        """Merge on the natural key; incoming NULLs keep the stored value."""

    @abstractmethod
    async def record_miss(self, property_id: int, status_code: int, reason: str) -> None:
        """Repeated (property_id, reason) pairs only refresh the timestamp."""

    @abstractmethod
    async def get_hotel_view(self, property_id: int, lang: str) -> HotelView:
        """Raises HotelNotFound when the property does not exist."""

    @abstractmethod
    async def list_reviews(self, property_id: int, page: PageQuery) -> ReviewsPage:
        """Newest first, id as tie-breaker, at most ``page.limit`` items."""

    @abstractmethod
    async def list_hotels(self, lang: str, limit: int) -> list[HotelView]:
        pass


class Cache(ABC):
    """Key-value cache holding JSON-serializable values."""

    @abstractmethod
    async def get(self, key: str) -> tuple[bool, Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

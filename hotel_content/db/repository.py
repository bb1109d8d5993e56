"""PostgreSQL implementation of the hotel repository."""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hotel_content.db.models import (
    DEFAULT_REVIEW_SOURCE,
    IngestMiss,
    Property,
    PropertyReview,
    PropertyTranslation,
)
from hotel_content.db.session import AsyncSessionLocal
from hotel_content.ingest.base import (
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
from hotel_content.ingest.mapper import synthesize_source_id

logger = logging.getLogger(__name__)

PROPERTY_UPDATE_COLUMNS = (
    "brand_id", "stars", "lat", "lon", "country", "city",
    "address_raw", "amenities", "images", "raw",
)
I18N_UPDATE_COLUMNS = ("name", "description", "policies", "address", "extras")
# Incoming NULL keeps the stored value for these
REVIEW_MERGE_COLUMNS = ("author", "rating", "lang", "title", "text", "aspects", "raw")


def build_property_upsert(hotel: Hotel):
    """INSERT ... ON CONFLICT (id) DO UPDATE for a property."""
    stmt = pg_insert(Property).values(
        id=hotel.id,
        brand_id=hotel.brand_id,
        stars=hotel.stars,
        lat=hotel.lat,
        lon=hotel.lon,
        country=hotel.country,
        city=hotel.city,
        address_raw=hotel.address_raw,
        amenities=hotel.amenities,
        images=hotel.images,
        raw=hotel.raw,
    )
    update = {col: stmt.excluded[col] for col in PROPERTY_UPDATE_COLUMNS}
    update["updated_at"] = func.now()
    return stmt.on_conflict_do_update(index_elements=[Property.id], set_=update)


def build_i18n_upsert(record: HotelI18n):
    """INSERT ... ON CONFLICT (property_id, lang) DO UPDATE for localized fields."""
    stmt = pg_insert(PropertyTranslation).values(
        property_id=record.property_id,
        lang=record.lang,
        name=record.name,
        description=record.description,
        policies=record.policies,
        address=record.address,
        extras=record.extras,
    )
    update = {col: stmt.excluded[col] for col in I18N_UPDATE_COLUMNS}
    update["updated_at"] = func.now()
    return stmt.on_conflict_do_update(
        index_elements=[PropertyTranslation.property_id, PropertyTranslation.lang],
        set_=update,
    )


def _review_row(review: Review) -> dict:
    source_id = review.source_id or synthesize_source_id(
        review.author, review.title, review.text, review.lang, review.rating
    )
    return {
        "property_id": review.property_id,
        "source_id": source_id,
        "author": review.author,
        "rating": Decimal(str(round(review.rating, 2))) if review.rating is not None else None,
        "lang": review.lang,
        "title": review.title,
        "text": review.text,
        "aspects": review.aspects,
        "source": review.source or DEFAULT_REVIEW_SOURCE,
        "raw": review.raw or None,
    }


def merge_review_rows(reviews: list[Review]) -> list[dict]:
    """
    Collapse reviews sharing a natural key into one row.

    PostgreSQL refuses to update the same row twice in one statement, so
    duplicates in a batch are merged first: later non-null values win.
    """
    merged: dict[tuple, dict] = {}
    for review in reviews:
        row = _review_row(review)
        key = (row["property_id"], row["source"], row["source_id"])
        existing = merged.get(key)
        if existing is None:
            merged[key] = row
            continue
        for col, value in row.items():
            if value is not None:
                existing[col] = value
    return list(merged.values())


def build_reviews_upsert(rows: list[dict]):
    """Multi-row INSERT ... ON CONFLICT on the natural key with COALESCE merging."""
    stmt = pg_insert(PropertyReview).values(rows)
    table = PropertyReview.__table__
    update = {
        col: func.coalesce(stmt.excluded[col], table.c[col]) for col in REVIEW_MERGE_COLUMNS
    }
    update["updated_at"] = func.now()
    return stmt.on_conflict_do_update(
        index_elements=[PropertyReview.property_id, PropertyReview.source, PropertyReview.source_id],
        set_=update,
    )


def build_miss_upsert(property_id: int, status_code: int, reason: str):
    """Record a miss; a repeat of (id, reason) only bumps seen_at."""
    stmt = pg_insert(IngestMiss).values(id=property_id, http_status=status_code, reason=reason)
    return stmt.on_conflict_do_update(
        index_elements=[IngestMiss.id, IngestMiss.reason],
        set_={"seen_at": func.now()},
    )


def _to_view(prop: Property, translation: Optional[PropertyTranslation], lang: str) -> HotelView:
    view = HotelView(
        id=prop.id,
        language=lang,
        stars=prop.stars,
        country=prop.country,
        city=prop.city,
        amenities=list(prop.amenities or []),
        images=list(prop.images or []),
    )
    if prop.lat is not None and prop.lon is not None:
        view.coords = Coords(lat=prop.lat, lon=prop.lon)

    # Localized address wins when present, otherwise the base address
    localized_address = translation.address if translation is not None else None
    if localized_address and localized_address.strip():
        view.address = localized_address
    elif prop.address_raw and prop.address_raw.strip():
        view.address = prop.address_raw

    if translation is not None:
        view.name = translation.name
        view.description = translation.description
        view.policies = translation.policies
    return view


def _to_review(row: PropertyReview) -> Review:
    return Review(
        id=row.id,
        property_id=row.property_id,
        source_id=row.source_id,
        author=row.author,
        rating=float(row.rating) if row.rating is not None else None,
        lang=row.lang,
        title=row.title,
        text=row.text,
        aspects=row.aspects,
        source=row.source,
        raw=row.raw or {},
        created_at=row.created_at,
    )


class SqlHotelRepository(HotelRepository):
    """Hotel repository over an async SQLAlchemy session factory.

    Every write runs in its own short transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def _execute_write(self, stmt) -> None:
        async with self.session_factory() as db:
            await db.execute(stmt)
            await db.commit()

    async def upsert_property(self, hotel: Hotel) -> None:
        await self._execute_write(build_property_upsert(hotel))

    async def upsert_i18n(self, record: HotelI18n) -> None:
        await self._execute_write(build_i18n_upsert(record))

    async def upsert_reviews(self, reviews: list[Review]) -> None:
        if not reviews:
            return
        rows = merge_review_rows(reviews)
        await self._execute_write(build_reviews_upsert(rows))
        logger.debug(f"Upserted {len(rows)} reviews for property {rows[0]['property_id']}")

    async def record_miss(self, property_id: int, status_code: int, reason: str) -> None:
        await self._execute_write(build_miss_upsert(property_id, status_code, reason))

    async def get_hotel_view(self, property_id: int, lang: str) -> HotelView:
        query = (
            select(Property, PropertyTranslation)
            .outerjoin(
                PropertyTranslation,
                and_(
                    PropertyTranslation.property_id == Property.id,
                    PropertyTranslation.lang == lang,
                ),
            )
            .where(Property.id == property_id)
        )
        async with self.session_factory() as db:
            result = await db.execute(query)
            row = result.first()

        if row is None:
            raise HotelNotFound(property_id)
        prop, translation = row
        return _to_view(prop, translation, lang)

    async def list_reviews(self, property_id: int, page: PageQuery) -> ReviewsPage:
        query = (
            select(PropertyReview)
            .where(PropertyReview.property_id == property_id)
            .order_by(PropertyReview.created_at.desc(), PropertyReview.id.desc())
            .limit(page.limit)
        )
        async with self.session_factory() as db:
            result = await db.execute(query)
            rows = result.scalars().all()
        return ReviewsPage(items=[_to_review(r) for r in rows])

    async def list_hotels(self, lang: str, limit: int) -> list[HotelView]:
        query = (
            select(Property, PropertyTranslation)
            .outerjoin(
                PropertyTranslation,
                and_(
                    PropertyTranslation.property_id == Property.id,
                    PropertyTranslation.lang == lang,
                ),
            )
            .order_by(Property.id)
            .limit(limit)
        )
        async with self.session_factory() as db:
            result = await db.execute(query)
            rows = result.all()
        return [_to_view(prop, translation, lang) for prop, translation in rows]

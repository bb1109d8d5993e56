"""Per-hotel ingestion workflow: fetch, normalize, persist, invalidate."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from hotel_content import metrics
from hotel_content.cache.keys import (
    SUPPORTED_LANGUAGES,
    hotel_key,
    hotel_keys_all_languages,
    review_keys_default_variants,
)
from hotel_content.ingest.base import Cache, ContentClient, HotelRepository
from hotel_content.ingest.cupid_client import AccessDeniedError, NotFoundError, UpstreamError
from hotel_content.ingest.mapper import map_i18n, map_property, map_reviews
from hotel_content.logging_config import get_logger

logger = logging.getLogger(__name__)

MISS_NOT_FOUND = "not found"
MISS_INACTIVE = "inactive"
MISS_REVIEWS = "reviews"


def i18n_miss_reason(lang: str) -> str:
    return f"i18n:{lang}"


@dataclass
class IngestResult:
    """What one ``ingest_hotel`` call did."""

    property_id: int
    property_found: bool = False
    miss_reason: Optional[str] = None
    reviews_upserted: int = 0
    reviews_missed: bool = False
    languages_stored: list[str] = field(default_factory=list)
    languages_missed: list[str] = field(default_factory=list)


def _miss_status(exc: UpstreamError, default: int) -> int:
    return exc.status_code or default


class IngestionService:
    """
    Drives one hotel's ingestion to completion.

    Order: property, then reviews, then translations (en, fr, es). The
    property row is written before anything that references it. A 404 or
    401/403 is expected steady state: it is recorded as a miss, the affected
    cache entries are evicted, and processing continues (or stops cleanly
    for the property itself). Every other exception propagates and aborts
    this hotel only.

    Cache entries are evicted strictly after the write they cover. Eviction
    failures are logged and ignored; cached values also expire on their TTL.

    No locking is done per id: callers must not ingest the same id twice
    concurrently.
    """

    def __init__(
        self,
        client: ContentClient,
        repository: HotelRepository,
        cache: Optional[Cache] = None,
    ):
        self.client = client
        self.repository = repository
        self.cache = cache

    async def ingest_hotel(self, property_id: int, review_count: int) -> IngestResult:
        """
        Ingest one hotel.

        Args:
            property_id: Cupid property id
            review_count: Maximum number of reviews to request

        Returns:
            IngestResult summary

        Raises:
            Exception: Any failure other than not-found/access-denied
        """
        log = get_logger(__name__, property_id=property_id)
        result = IngestResult(property_id=property_id)

        # 1) Property (parent row first)
        try:
            payload = await self.client.get_property(property_id)
        except NotFoundError as e:
            await self._record_miss(property_id, _miss_status(e, 404), MISS_NOT_FOUND)
            await self._invalidate_everything(property_id)
            result.miss_reason = MISS_NOT_FOUND
            log.info(f"Property {property_id} not found upstream, recorded miss")
            metrics.record_ingestion("miss")
            return result
        except AccessDeniedError as e:
            await self._record_miss(property_id, _miss_status(e, 403), MISS_INACTIVE)
            await self._invalidate_everything(property_id)
            result.miss_reason = MISS_INACTIVE
            log.info(f"Property {property_id} not accessible (status {e.status_code}), recorded miss")
            metrics.record_ingestion("miss")
            return result

        await self.repository.upsert_property(map_property(payload, property_id))
        result.property_found = True
        # Base record feeds every language's view
        await self._invalidate(hotel_keys_all_languages(property_id))

        # 2) Reviews (best effort on not-found/denied)
        try:
            documents = await self.client.get_reviews(property_id, review_count)
        except (NotFoundError, AccessDeniedError) as e:
            default_status = 404 if isinstance(e, NotFoundError) else 403
            await self._record_miss(property_id, _miss_status(e, default_status), MISS_REVIEWS)
            await self._invalidate(review_keys_default_variants(property_id))
            result.reviews_missed = True
            log.info(f"Reviews for {property_id} unavailable (status {e.status_code})")
        else:
            if documents:
                reviews = map_reviews(property_id, documents)
                await self.repository.upsert_reviews(reviews)
                result.reviews_upserted = len(reviews)
            # Also after an empty list, so "had reviews" -> "none" is visible
            await self._invalidate(review_keys_default_variants(property_id))

        # 3) Translations, fixed order
        for lang in SUPPORTED_LANGUAGES:
            try:
                translation = await self.client.get_translation(property_id, lang)
            except (NotFoundError, AccessDeniedError) as e:
                default_status = 404 if isinstance(e, NotFoundError) else 403
                await self._record_miss(
                    property_id, _miss_status(e, default_status), i18n_miss_reason(lang)
                )
                await self._invalidate([hotel_key(property_id, lang)])
                result.languages_missed.append(lang)
                log.debug(f"Translation {lang} for {property_id} unavailable (status {e.status_code})")
                continue

            await self.repository.upsert_i18n(map_i18n(property_id, lang, translation))
            await self._invalidate([hotel_key(property_id, lang)])
            result.languages_stored.append(lang)

        log.info(
            f"Ingested property {property_id}: {result.reviews_upserted} reviews, "
            f"languages {','.join(result.languages_stored) or '-'}"
        )
        metrics.record_ingestion("ok")
        return result

    async def _record_miss(self, property_id: int, status_code: int, reason: str) -> None:
        await self.repository.record_miss(property_id, status_code, reason)
        metrics.record_miss(reason)

    async def _invalidate_everything(self, property_id: int) -> None:
        await self._invalidate(
            hotel_keys_all_languages(property_id) + review_keys_default_variants(property_id)
        )

    async def _invalidate(self, keys: list[str]) -> None:
        if self.cache is None:
            return
        for key in keys:
            try:
                await self.cache.delete(key)
            except Exception as e:
                logger.warning(f"Cache invalidation failed for {key}: {e}")

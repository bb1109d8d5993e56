"""Bounded concurrent ingestion over a list of property ids."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable

from hotel_content import metrics
from hotel_content.ingest.service import IngestionService, IngestResult

logger = logging.getLogger(__name__)


@dataclass
class IngestionReport:
    """Outcome of one driver run."""

    succeeded: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)  # property id -> error text
    results: list[IngestResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


def unique_ids(ids: Iterable[int]) -> list[int]:
    """Drop repeated ids, keeping first-seen order."""
    return list(dict.fromkeys(ids))


async def run_ingestion(
    service: IngestionService,
    ids: Iterable[int],
    review_count: int,
    concurrency: int,
) -> IngestionReport:
    """
    Ingest every id with at most ``concurrency`` hotels in flight.

    A failure for one id is logged and recorded in the report; the other ids
    keep going. Cancelling the caller cancels every in-flight ingestion.

    Args:
        service: Ingestion service shared by all workers
        ids: Property ids (duplicates are ingested once)
        review_count: Reviews requested per hotel
        concurrency: Maximum concurrent hotels (at least 1)

    Returns:
        IngestionReport
    """
    property_ids = unique_ids(ids)
    report = IngestionReport()
    if not property_ids:
        logger.info("No property ids to ingest")
        return report

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def ingest_with_semaphore(property_id: int) -> None:
        async with semaphore:
            try:
                result = await service.ingest_hotel(property_id, review_count)
            except Exception as e:
                logger.error(f"Ingestion failed for property {property_id}: {e!r}")
                metrics.record_ingestion("error")
                report.failed[property_id] = str(e) or type(e).__name__
                return
            report.succeeded.append(property_id)
            report.results.append(result)

    logger.info(f"Ingesting {len(property_ids)} properties with {max(1, concurrency)} workers")
    await asyncio.gather(*(ingest_with_semaphore(pid) for pid in property_ids))

    logger.info(
        f"Ingestion complete: {len(report.succeeded)} succeeded, "
        f"{len(report.failed)} failed out of {report.total}"
    )
    return report

"""APScheduler job definitions for periodic re-ingestion."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from hotel_content.config import settings
from hotel_content.ingest.service import IngestionService
from hotel_content.worker.driver import IngestionReport, run_ingestion

logger = logging.getLogger(__name__)


async def reingest_configured_properties(service: IngestionService) -> IngestionReport:
    """Re-ingest every id listed in settings.ingest_property_ids."""
    report = await run_ingestion(
        service,
        settings.ingest_property_ids,
        review_count=settings.ingest_review_count,
        concurrency=settings.ingest_workers,
    )
    if report.failed:
        logger.warning(f"Scheduled ingestion had {len(report.failed)} failures: {sorted(report.failed)}")
    return report


def setup_scheduler(service: IngestionService) -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    The re-ingestion job runs every settings.ingest_interval_minutes and
    never overlaps with itself.

    Returns:
        Configured scheduler instance
    """
    scheduler = AsyncIOScheduler()
    interval = max(1, int(settings.ingest_interval_minutes))

    scheduler.add_job(
        reingest_configured_properties,
        IntervalTrigger(minutes=interval),
        args=[service],
        id="hotel_reingest",
        name="Re-ingest configured hotels",
        max_instances=1,  # Prevent overlapping runs
        coalesce=True,
        misfire_grace_time=600,
        replace_existing=True,
    )

    logger.info(
        f"Scheduled re-ingestion of {len(settings.ingest_property_ids)} properties "
        f"every {interval} minutes"
    )
    return scheduler

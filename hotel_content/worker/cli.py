"""One-shot ingestion from the command line.

Usage:
    python -m hotel_content.worker.cli --ids 1641879 1641880 --workers 4
    python -m hotel_content.worker.cli --ids-file ids.txt --reviews 50
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from hotel_content.cache.redis_cache import RedisCache
from hotel_content.config import settings
from hotel_content.db.repository import SqlHotelRepository
from hotel_content.db.session import engine
from hotel_content.ingest.cupid_client import CupidClient
from hotel_content.ingest.service import IngestionService
from hotel_content.logging_config import setup_logging
from hotel_content.worker.driver import IngestionReport, run_ingestion

logger = logging.getLogger(__name__)


def read_ids_file(path: Path) -> list[int]:
    """
    Read property ids, one per line. Blank lines and lines starting with '#'
    are skipped.

    Raises:
        ValueError: If a line is not an integer
    """
    ids = []
    for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            ids.append(int(line))
        except ValueError:
            raise ValueError(f"{path}:{line_no}: not a property id: {line!r}") from None
    return ids


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ingest hotels from the Cupid content API")
    parser.add_argument(
        "--ids",
        type=int,
        nargs="*",
        default=None,
        help="Property ids to ingest (default: INGEST_PROPERTY_IDS)",
    )
    parser.add_argument(
        "--ids-file",
        type=Path,
        default=None,
        help="File with one property id per line",
    )
    parser.add_argument(
        "--reviews",
        type=int,
        default=settings.ingest_review_count,
        help=f"Reviews requested per hotel (default: {settings.ingest_review_count})",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=settings.ingest_workers,
        help=f"Hotels ingested concurrently (default: {settings.ingest_workers})",
    )
    return parser


def collect_ids(args: argparse.Namespace) -> list[int]:
    ids = list(args.ids or [])
    if args.ids_file is not None:
        ids.extend(read_ids_file(args.ids_file))
    if not ids and args.ids is None and args.ids_file is None:
        ids = list(settings.ingest_property_ids)
    return ids


async def ingest(ids: list[int], review_count: int, workers: int) -> IngestionReport:
    """Build the adapters from settings and run the driver once."""
    cache = RedisCache(settings.redis_url)
    try:
        async with CupidClient(
            settings.cupid_base_url,
            settings.cupid_api_key,
            requests_per_second=settings.requests_per_second,
            timeout=settings.http_timeout_seconds,
        ) as client:
            service = IngestionService(client, SqlHotelRepository(), cache)
            return await run_ingestion(service, ids, review_count, workers)
    finally:
        await cache.close()
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    if not settings.cupid_api_key:
        logger.error("CUPID_API_KEY is not set")
        return 2

    try:
        ids = collect_ids(args)
    except (OSError, ValueError) as e:
        logger.error(f"Could not read property ids: {e}")
        return 2

    if not ids:
        logger.warning("No property ids given, nothing to do")
        return 0

    try:
        report = asyncio.run(ingest(ids, args.reviews, args.workers))
    except KeyboardInterrupt:
        logger.warning("Ingestion interrupted")
        return 130

    # Per-hotel failures are reported, not fatal
    for property_id, error in sorted(report.failed.items()):
        logger.info(f"Failed: {property_id}: {error}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

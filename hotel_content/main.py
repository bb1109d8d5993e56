"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Response
from prometheus_fastapi_instrumentator import Instrumentator

from hotel_content.api.routes import hotels
from hotel_content.cache.redis_cache import RedisCache
from hotel_content.config import settings
from hotel_content.db.models import Base
from hotel_content.db.repository import SqlHotelRepository
from hotel_content.db.session import engine
from hotel_content.ingest.cupid_client import CupidClient
from hotel_content.ingest.service import IngestionService
from hotel_content.logging_config import setup_logging
from hotel_content.query import QueryService
from hotel_content.worker.scheduler import setup_scheduler

# Configure structured logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting hotel content service...")

    # Initialize database
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    cache = RedisCache(settings.redis_url)
    repository = SqlHotelRepository()
    app.state.query_service = QueryService(repository, cache, settings.cache_ttl_seconds)

    client = None
    scheduler = None
    if not settings.cupid_api_key:
        logger.warning("CUPID_API_KEY is not set; scheduled ingestion is disabled")
    elif settings.ingest_schedule_enabled:
        client = CupidClient(
            settings.cupid_base_url,
            settings.cupid_api_key,
            requests_per_second=settings.requests_per_second,
            timeout=settings.http_timeout_seconds,
        )
        scheduler = setup_scheduler(IngestionService(client, repository, cache))
        scheduler.start()
        logger.info("Scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down...")

    if scheduler:
        scheduler.shutdown()
    if client:
        await client.close()
    await cache.close()
    await engine.dispose()

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Hotel Content",
    description="Hotel content ingested from the Cupid API",
    version="0.1.0",
    lifespan=lifespan,
)

# Add Prometheus instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics", "/health", "/favicon.ico"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

# Include API routes
app.include_router(hotels.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/favicon.ico")
async def favicon():
    """Return empty favicon response to avoid 404 noise."""
    return Response(status_code=204)


if __name__ == "__main__":
    # Run with uvicorn
    uvicorn.run(
        "hotel_content.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )

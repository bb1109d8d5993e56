"""Prometheus metrics for the hotel content service."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("hotel_content", "Hotel content service application info")
app_info.info({"version": "0.1.0", "name": "hotel-content"})

# Upstream (Cupid) request metrics
upstream_requests_total = Counter(
    "upstream_requests_total",
    "Total number of outbound requests to the content API",
    ["resource", "status"],
)

upstream_request_duration_seconds = Histogram(
    "upstream_request_duration_seconds",
    "Time spent on outbound requests to the content API",
    ["resource"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0],
)

# Ingestion metrics
ingestions_total = Counter(
    "ingestions_total",
    "Total number of hotel ingestion runs",
    ["outcome"],
)

ingest_misses_total = Counter(
    "ingest_misses_total",
    "Total number of recorded ingestion misses",
    ["reason"],
)

# Cache metrics
cache_events_total = Counter(
    "cache_events_total",
    "Cache hits, misses, sets and deletes",
    ["event"],
)


def record_upstream_request(resource: str, status: str, duration: float):
    """Record one outbound attempt (status is the HTTP code or 'error')."""
    upstream_requests_total.labels(resource=resource, status=status).inc()
    upstream_request_duration_seconds.labels(resource=resource).observe(duration)


def record_ingestion(outcome: str):
    """Record the outcome of one hotel ingestion (ok, miss or error)."""
    ingestions_total.labels(outcome=outcome).inc()


def record_miss(reason: str):
    """Record an ingestion miss. Per-language reasons are collapsed to 'i18n'."""
    label = "i18n" if reason.startswith("i18n:") else reason
    ingest_misses_total.labels(reason=label).inc()


def record_cache_event(event: str):
    """Record a cache event (hit, miss, set, del)."""
    cache_events_total.labels(event=event).inc()

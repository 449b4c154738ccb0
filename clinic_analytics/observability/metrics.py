"""Prometheus metrics for cache behaviour and aggregation runs."""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from clinic_analytics.core.config import settings

CACHE_REQUESTS = Counter(
    "clinic_analytics_cache_requests_total",
    "Cache lookups by cache name and result",
    ["cache", "result"]
)

CACHE_EVICTIONS = Counter(
    "clinic_analytics_cache_evictions_total",
    "Entries evicted from bounded caches",
    ["cache"]
)

CACHE_SIZE = Gauge(
    "clinic_analytics_cache_entries",
    "Current number of entries held by a cache",
    ["cache"]
)

RECORDS_SKIPPED = Counter(
    "clinic_analytics_records_skipped_total",
    "Records excluded from date-based views or rejected outright",
    ["kind"]
)

AGGREGATION_DURATION = Histogram(
    "clinic_analytics_aggregation_duration_seconds",
    "Duration of a full aggregation run in seconds",
    ["granularity"]
)


def record_cache_access(cache: str, hit: bool) -> None:
    """Count a cache hit or miss."""
    if not settings.prometheus_enabled:
        return
    CACHE_REQUESTS.labels(cache=cache, result="hit" if hit else "miss").inc()


def record_cache_eviction(cache: str, size: int) -> None:
    """Count an eviction and publish the resulting size."""
    if not settings.prometheus_enabled:
        return
    CACHE_EVICTIONS.labels(cache=cache).inc()
    CACHE_SIZE.labels(cache=cache).set(size)


def record_cache_size(cache: str, size: int) -> None:
    if not settings.prometheus_enabled:
        return
    CACHE_SIZE.labels(cache=cache).set(size)


def record_skipped(kind: str) -> None:
    """Count a record excluded for a malformed date or rejected as unreadable."""
    if not settings.prometheus_enabled:
        return
    RECORDS_SKIPPED.labels(kind=kind).inc()


def observe_aggregation(granularity: str, duration: float) -> None:
    if not settings.prometheus_enabled:
        return
    AGGREGATION_DURATION.labels(granularity=granularity).observe(duration)


def get_metrics() -> bytes:
    """Get Prometheus metrics in text format."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST

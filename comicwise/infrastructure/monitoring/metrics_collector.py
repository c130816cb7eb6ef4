#!/usr/bin/env python3
"""
Metrics Collector with Prometheus Integration

Counters and histograms for the cache and rate-limit layers:
- Cache hits/misses by layer (``service`` for CacheService, ``http`` for
  the response cache middleware)
- Store operation errors by operation name
- Invalidations by kind (key, pattern, tag)
- Rate-limit decisions (allowed, rejected, fail_open)
- Store operation latency

Architectural Decision: prometheus-client for industry-standard metrics
- Scraped from GET /metrics
- Module-level metric objects registered once per process
"""


from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from comicwise.config.settings import get_settings
from comicwise.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

# Cache metrics
CACHE_HITS = Counter(
    'comicwise_cache_hits_total',
    'Total cache hits',
    ['layer']  # service or http
)

CACHE_MISSES = Counter(
    'comicwise_cache_misses_total',
    'Total cache misses',
    ['layer']
)

CACHE_ERRORS = Counter(
    'comicwise_cache_errors_total',
    'Cache operations that failed and degraded to a safe default',
    ['operation']
)

CACHE_INVALIDATIONS = Counter(
    'comicwise_cache_invalidated_keys_total',
    'Keys removed by invalidation',
    ['kind']  # key, pattern, tag, flush
)

STORE_LATENCY = Histogram(
    'comicwise_store_operation_seconds',
    'Key-value store operation latency',
    ['backend', 'operation'],
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0)
)

STORE_CONNECTED = Gauge(
    'comicwise_store_connected',
    'Whether the key-value store connection is up (1) or down (0)',
    ['backend']
)

# Rate limiting metrics
RATE_LIMIT_DECISIONS = Counter(
    'comicwise_rate_limit_decisions_total',
    'Rate limit decisions',
    ['outcome']  # allowed, rejected, fail_open
)

RATE_LIMIT_SWEPT = Counter(
    'comicwise_rate_limit_swept_total',
    'Expired rate limit records removed by the sweeper'
)

# App info
APP_INFO = Info(
    'comicwise_app',
    'Application information'
)


class MetricsCollector:
    """
    Centralized metrics collector.

    Records cache, store and rate limit metrics.

    Usage:
        metrics = get_metrics_collector()
        metrics.record_cache_hit("service")
        metrics.record_rate_limit_decision("rejected")
        output = metrics.get_prometheus_metrics()
    """

    def __init__(self):
        """Initialize metrics collector."""
        self.settings = get_settings()

        APP_INFO.info({
            'version': self.settings.app.APP_VERSION,
            'environment': self.settings.app.ENVIRONMENT,
            'app_name': self.settings.app.APP_NAME,
            'cache_backend': self.settings.cache.CACHE_BACKEND,
        })

        logger.info("Metrics collector initialized", stage="M.0")

    # =========================================================================
    # Cache Metrics
    # =========================================================================

    def record_cache_hit(self, layer: str) -> None:
        """Record cache hit."""
        CACHE_HITS.labels(layer=layer).inc()

    def record_cache_miss(self, layer: str) -> None:
        """Record cache miss."""
        CACHE_MISSES.labels(layer=layer).inc()

    def record_cache_error(self, operation: str) -> None:
        """Record a cache operation that degraded to its safe default."""
        CACHE_ERRORS.labels(operation=operation).inc()

    def record_invalidation(self, kind: str, count: int) -> None:
        """Record how many keys an invalidation removed."""
        if count > 0:
            CACHE_INVALIDATIONS.labels(kind=kind).inc(count)

    # =========================================================================
    # Store Metrics
    # =========================================================================

    def record_store_latency(self, backend: str, operation: str, duration_seconds: float) -> None:
        """Record store operation latency."""
        STORE_LATENCY.labels(backend=backend, operation=operation).observe(duration_seconds)

    def set_store_connected(self, backend: str, connected: bool) -> None:
        """Set store connection state."""
        STORE_CONNECTED.labels(backend=backend).set(1 if connected else 0)

    # =========================================================================
    # Rate Limiting Metrics
    # =========================================================================

    def record_rate_limit_decision(self, outcome: str) -> None:
        """Record an allowed, rejected or fail_open decision."""
        RATE_LIMIT_DECISIONS.labels(outcome=outcome).inc()

    def record_rate_limit_swept(self, count: int) -> None:
        if count > 0:
            RATE_LIMIT_SWEPT.inc(count)

    # =========================================================================
    # Export
    # =========================================================================

    def get_prometheus_metrics(self) -> bytes:
        """
        Get Prometheus metrics output.

        Returns:
            bytes: Prometheus text format metrics
        """
        return generate_latest(REGISTRY)

    def get_content_type(self) -> str:
        """Get Prometheus content type."""
        return CONTENT_TYPE_LATEST


# Global metrics collector
_metrics: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics

"""
Unit Tests for the Metrics Collector
"""

import pytest

from comicwise.infrastructure.monitoring.metrics_collector import (
    CACHE_HITS,
    RATE_LIMIT_DECISIONS,
    get_metrics_collector,
)


@pytest.mark.unit
class TestMetricsCollector:
    """Test Prometheus metric recording and export."""

    def test_singleton(self):
        assert get_metrics_collector() is get_metrics_collector()

    def test_cache_hit_counter_increments(self):
        metrics = get_metrics_collector()
        before = CACHE_HITS.labels(layer="http")._value.get()

        metrics.record_cache_hit("http")

        assert CACHE_HITS.labels(layer="http")._value.get() == before + 1

    def test_rate_limit_decision_counter(self):
        metrics = get_metrics_collector()
        before = RATE_LIMIT_DECISIONS.labels(outcome="rejected")._value.get()

        metrics.record_rate_limit_decision("rejected")

        assert RATE_LIMIT_DECISIONS.labels(outcome="rejected")._value.get() == before + 1

    def test_prometheus_export(self):
        metrics = get_metrics_collector()
        metrics.record_cache_miss("service")
        metrics.record_invalidation("tag", 3)
        metrics.set_store_connected("redis", False)

        output = metrics.get_prometheus_metrics().decode()

        assert "comicwise_cache_misses_total" in output
        assert "comicwise_cache_invalidated_keys_total" in output
        assert "comicwise_store_connected" in output
        assert metrics.get_content_type().startswith("text/plain")

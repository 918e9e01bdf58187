"""Unit tests for metrics module."""

import pytest

from stream_delivery.metrics import (
    MetricLabels,
    MetricsCollector,
    NoOpMetrics,
    PrometheusMetrics,
    StreamMetrics,
)


class RecordingMetrics(MetricsCollector):
    """Collector that remembers every call."""

    def __init__(self):
        self.calls = []

    def increment(self, metric, value=1, labels=None):
        self.calls.append(("increment", metric, value, labels))

    def histogram(self, metric, value, labels=None):
        self.calls.append(("histogram", metric, value, labels))

    def gauge(self, metric, value, labels=None):
        self.calls.append(("gauge", metric, value, labels))


class TestMetricsCollector:
    """Test MetricsCollector abstract base class."""

    def test_is_abstract(self):
        """Test that MetricsCollector cannot be instantiated."""
        with pytest.raises(TypeError):
            MetricsCollector()  # type: ignore

    def test_timing_is_histogram(self):
        metrics = RecordingMetrics()

        metrics.timing(StreamMetrics.SESSION_ATTACH_DURATION_MS, 42.0)

        assert metrics.calls == [
            ("histogram", StreamMetrics.SESSION_ATTACH_DURATION_MS, 42.0, None),
        ]


class TestNoOpMetrics:
    """Test NoOpMetrics implementation."""

    def test_noop_calls(self):
        """Test every method accepts calls silently."""
        metrics = NoOpMetrics()

        metrics.increment("test.metric")
        metrics.increment("test.metric", value=5, labels={"key": "value"})
        metrics.histogram("test.metric", 123.45)
        metrics.gauge("test.metric", -5.0)
        metrics.timing("test.metric", 1.0)

        assert isinstance(metrics, MetricsCollector)


class TestPrometheusMetrics:
    """Test PrometheusMetrics implementation."""

    @pytest.fixture
    def registry(self):
        prometheus_client = pytest.importorskip("prometheus_client")
        return prometheus_client.CollectorRegistry()

    def test_counter_with_labels(self, registry):
        metrics = PrometheusMetrics(registry=registry)

        metrics.increment(
            StreamMetrics.SESSION_FAILOVERS_TOTAL,
            labels={MetricLabels.CONTENT_TYPE: "channel"},
        )
        metrics.increment(
            StreamMetrics.SESSION_FAILOVERS_TOTAL,
            value=2,
            labels={MetricLabels.CONTENT_TYPE: "channel"},
        )

        value = registry.get_sample_value(
            "stream_session_failovers_total", {"content_type": "channel"}
        )
        assert value == 3.0

    def test_counter_without_labels(self, registry):
        metrics = PrometheusMetrics(registry=registry)

        metrics.increment(StreamMetrics.PROBER_SAMPLES_FAILED)

        assert registry.get_sample_value("stream_prober_samples_failed_total") == 1.0

    def test_histogram(self, registry):
        metrics = PrometheusMetrics(registry=registry)

        metrics.histogram(StreamMetrics.MONITOR_CYCLE_DURATION_MS, 120.0)
        metrics.histogram(StreamMetrics.MONITOR_CYCLE_DURATION_MS, 80.0)

        assert registry.get_sample_value("stream_monitor_cycle_duration_count") == 2.0
        assert registry.get_sample_value("stream_monitor_cycle_duration_sum") == 200.0

    def test_gauge_up_and_down(self, registry):
        metrics = PrometheusMetrics(registry=registry)

        metrics.gauge(StreamMetrics.SESSION_ACTIVE, 1)
        metrics.gauge(StreamMetrics.SESSION_ACTIVE, 1)
        metrics.gauge(StreamMetrics.SESSION_ACTIVE, -1)
        metrics.gauge(StreamMetrics.SESSION_ACTIVE, 0)

        assert registry.get_sample_value("stream_session_active") == 1.0

    def test_metric_objects_are_cached(self, registry):
        metrics = PrometheusMetrics(registry=registry)

        metrics.increment("stream.test.counter")
        metrics.increment("stream.test.counter")

        assert list(metrics._metrics) == [("counter", "stream_test_counter")]

    def test_sanitize_metric_name(self):
        assert PrometheusMetrics._sanitize_metric_name("stream.monitor-probes") == (
            "stream_monitor_probes"
        )

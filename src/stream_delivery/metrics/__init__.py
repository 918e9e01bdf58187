"""
Metrics collection for stream delivery.

Pluggable collectors for probe, monitor, session and analytics counters.
``NoOpMetrics`` is the zero-overhead default; ``PrometheusMetrics`` exports to
Prometheus when ``prometheus-client`` is installed.

Example:
    >>> from stream_delivery.metrics import NoOpMetrics, PrometheusMetrics, StreamMetrics
    >>> metrics = PrometheusMetrics()
    >>> metrics.increment(StreamMetrics.MONITOR_PROBES_TOTAL, labels={'format': 'hls'})
    >>> metrics.histogram(StreamMetrics.MONITOR_CYCLE_DURATION_MS, 812.5)
"""

from .base import MetricsCollector, NoOpMetrics
from .constants import MetricLabels, StreamMetrics
from .prometheus import PrometheusMetrics

__all__ = [
    "MetricsCollector",
    "NoOpMetrics",
    "PrometheusMetrics",
    "StreamMetrics",
    "MetricLabels",
]

"""
Metric name constants for stream delivery.

Standardized names keep dashboards stable across components.
"""


class StreamMetrics:
    """Metric name constants."""

    # Network prober
    PROBER_RUNS_TOTAL = "stream.prober.runs.total"
    PROBER_SAMPLES_FAILED = "stream.prober.samples.failed"
    PROBER_DEGRADED_TOTAL = "stream.prober.degraded.total"
    PROBER_BANDWIDTH_KBPS = "stream.prober.bandwidth.kbps"
    PROBER_RTT_MS = "stream.prober.rtt.milliseconds"

    # Health monitor
    MONITOR_CYCLES_TOTAL = "stream.monitor.cycles.total"
    MONITOR_CYCLES_FAILED = "stream.monitor.cycles.failed"
    MONITOR_CYCLE_DURATION_MS = "stream.monitor.cycle.duration"
    MONITOR_PROBES_TOTAL = "stream.monitor.probes.total"
    MONITOR_PROBES_FAILED = "stream.monitor.probes.failed"
    MONITOR_ITEMS_CHECKED = "stream.monitor.items.checked"
    MONITOR_ITEM_ERRORS = "stream.monitor.items.errors"

    # Playback sessions
    SESSION_ACTIVE = "stream.session.active"
    SESSION_STARTS_TOTAL = "stream.session.starts.total"
    SESSION_FAILOVERS_TOTAL = "stream.session.failovers.total"
    SESSION_EXHAUSTED_TOTAL = "stream.session.exhausted.total"
    SESSION_ATTACH_DURATION_MS = "stream.session.attach.duration"

    # Analytics
    ANALYTICS_EVENTS_TOTAL = "stream.analytics.events.total"
    ANALYTICS_DELIVERY_FAILED = "stream.analytics.delivery.failed"


class MetricLabels:
    """Standard label names for metrics."""

    FORMAT = "format"  # hls, dash, mp4, ts
    RESULT = "result"  # online, offline, success, timeout, error
    CONTENT_TYPE = "content_type"  # channel, movie, episode
    EVENT_KIND = "event_kind"  # start, stop, error, ...
    QUALITY = "quality"  # 240p ... 1080p, auto
    ERROR_TYPE = "error_type"  # Exception class name


__all__ = ["StreamMetrics", "MetricLabels"]

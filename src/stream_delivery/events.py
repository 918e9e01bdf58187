"""Structured log event name constants."""

from enum import Enum


class StreamEvents(str, Enum):
    """Event type constants for structured logging."""

    # Source events
    SOURCES_LOADED = "stream.sources.loaded"
    SOURCE_MALFORMED = "stream.sources.malformed"
    SOURCE_TEST_INSERTED = "stream.sources.test_inserted"

    # Network probe events
    PROBE_STARTED = "stream.probe.started"
    PROBE_RTT_FAILED = "stream.probe.rtt_failed"
    PROBE_SAMPLE = "stream.probe.sample"
    PROBE_SAMPLE_FAILED = "stream.probe.sample_failed"
    PROBE_COMPLETED = "stream.probe.completed"
    PROBE_DEGRADED = "stream.probe.degraded"

    # Selection events
    QUALITY_SELECTED = "stream.quality.selected"
    SOURCE_SELECTED = "stream.source.selected"

    # Session events
    SESSION_STARTED = "stream.session.started"
    SESSION_ATTACHING = "stream.session.attaching"
    SESSION_PLAYING = "stream.session.playing"
    SESSION_BUFFERING = "stream.session.buffering"
    SESSION_FAILOVER = "stream.session.failover"
    SESSION_EXHAUSTED = "stream.session.exhausted"
    SESSION_SWITCHED = "stream.session.switched"
    SESSION_STOPPED = "stream.session.stopped"
    SESSION_ENGINE_ERROR = "stream.session.engine_error"
    SESSION_FATAL_IGNORED = "stream.session.fatal_ignored"
    SESSION_PROBE_PREEMPTED = "stream.session.probe_preempted"

    # Health monitor events
    MONITOR_STARTED = "stream.monitor.started"
    MONITOR_STOPPED = "stream.monitor.stopped"
    MONITOR_CYCLE_STARTED = "stream.monitor.cycle.started"
    MONITOR_CYCLE_COMPLETED = "stream.monitor.cycle.completed"
    MONITOR_CYCLE_FAILED = "stream.monitor.cycle.failed"
    MONITOR_ITEM_CHECKED = "stream.monitor.item.checked"
    MONITOR_ITEM_FAILED = "stream.monitor.item.failed"
    MONITOR_SOURCE_PROBING = "stream.monitor.source.probing"
    MONITOR_SOURCE_UNREACHABLE = "stream.monitor.source.unreachable"

    # Analytics events
    ANALYTICS_RECORDED = "stream.analytics.recorded"
    ANALYTICS_DELIVERY_FAILED = "stream.analytics.delivery_failed"


__all__ = ["StreamEvents"]

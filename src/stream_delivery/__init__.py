"""
Stream Delivery Package

Source selection, failover and health tracking for live channels, movies and
episodes that each have several candidate stream sources.

This package provides:
- SourceSet: priority-ordered candidate sources of one content item
- NetworkProber: bandwidth and latency measurement
- QualitySelector: quality and source choice for current network conditions
- PlaybackSession: playback state machine with automatic failover
- HealthMonitor: recurring reachability check over the whole catalog
- AnalyticsRecorder: append-only playback analytics with aggregate reports

Usage:
    from stream_delivery import create_health_monitor, create_session, SourceSet

    monitor = create_health_monitor(catalog)
    await monitor.start()

    session = create_session(ContentType.CHANNEL, 7, engine)
    await session.start(SourceSet.from_raw(channel["streamSources"]))
"""

from typing import Optional

from .analytics import AnalyticsRecorder, AnalyticsReport, AnalyticsSink, HttpAnalyticsSink
from .catalog import CatalogService, InMemoryCatalog
from .config import AnalyticsConfig, HealthMonitorConfig, PlaybackSessionConfig, ProbeOptions
from .engine import EngineEvent, EngineEventKind, PlaybackEngine
from .exceptions import (
    NoSourcesError,
    PlaybackEngineError,
    SessionStateError,
    SourcesExhaustedError,
    StreamDeliveryError,
)
from .health_monitor import CycleReport, HealthMonitor
from .http_client_manager import get_analytics_http_client, get_probe_http_client
from .metrics import MetricsCollector
from .playback_session import PlaybackSession, SessionState
from .prober import NetworkProber
from .probes import FormatProbe, ProbeRegistry
from .quality import (
    PlaybackTuning,
    QualitySelector,
    SourceSelection,
    select_quality,
    select_source,
)
from .scheduler import RecurringScheduler
from .sources import SourceSet, sort_sources
from .time_provider import RealtimeTimeProvider, SimulatedTimeProvider, TimeProvider
from .types import (
    AnalyticsEvent,
    AnalyticsEventKind,
    ChannelHealth,
    ContentItem,
    ContentType,
    HealthStatus,
    NetworkStats,
    QualityHint,
    QualityLevel,
    StreamSource,
)

__version__ = "1.0.0"
__author__ = "Streaming Platform Team"


def create_prober(options: Optional[ProbeOptions] = None, **kwargs) -> NetworkProber:
    """Create a NetworkProber on the pooled probe client, configured from settings."""
    return NetworkProber(
        http_client=kwargs.pop("http_client", None) or get_probe_http_client(),
        options=options or ProbeOptions.from_settings(),
        **kwargs,
    )


def create_recorder(config: Optional[AnalyticsConfig] = None, **kwargs) -> AnalyticsRecorder:
    """Create an AnalyticsRecorder; an HTTP sink is attached when an endpoint is configured."""
    config = config or AnalyticsConfig.from_settings()
    sink = kwargs.pop("sink", None)
    if sink is None and config.endpoint:
        sink = HttpAnalyticsSink(
            get_analytics_http_client(timeout=config.timeout), config.endpoint, config.timeout
        )
    return AnalyticsRecorder(sink=sink, config=config, **kwargs)


def create_health_monitor(
    catalog: CatalogService, config: Optional[HealthMonitorConfig] = None, **kwargs
) -> HealthMonitor:
    """Create a HealthMonitor on the pooled probe client, configured from settings."""
    return HealthMonitor(
        catalog,
        http_client=kwargs.pop("http_client", None) or get_probe_http_client(),
        config=config or HealthMonitorConfig.from_settings(),
        **kwargs,
    )


def create_session(
    content_type: ContentType,
    content_id: int,
    engine: PlaybackEngine,
    config: Optional[PlaybackSessionConfig] = None,
    **kwargs,
) -> PlaybackSession:
    """Create a PlaybackSession configured from settings."""
    return PlaybackSession(
        content_type,
        content_id,
        engine,
        config=config or PlaybackSessionConfig.from_settings(),
        **kwargs,
    )


__all__ = [
    # Components
    "SourceSet",
    "NetworkProber",
    "QualitySelector",
    "PlaybackSession",
    "HealthMonitor",
    "AnalyticsRecorder",
    # Collaborator interfaces
    "CatalogService",
    "InMemoryCatalog",
    "PlaybackEngine",
    "EngineEvent",
    "EngineEventKind",
    "AnalyticsSink",
    "HttpAnalyticsSink",
    "MetricsCollector",
    "TimeProvider",
    "RealtimeTimeProvider",
    "SimulatedTimeProvider",
    "RecurringScheduler",
    "ProbeRegistry",
    "FormatProbe",
    # Data model
    "StreamSource",
    "ContentItem",
    "ContentType",
    "ChannelHealth",
    "HealthStatus",
    "NetworkStats",
    "QualityHint",
    "QualityLevel",
    "AnalyticsEvent",
    "AnalyticsEventKind",
    "AnalyticsReport",
    "CycleReport",
    "SessionState",
    "SourceSelection",
    "PlaybackTuning",
    # Configuration
    "ProbeOptions",
    "HealthMonitorConfig",
    "PlaybackSessionConfig",
    "AnalyticsConfig",
    # Exceptions
    "StreamDeliveryError",
    "NoSourcesError",
    "SourcesExhaustedError",
    "SessionStateError",
    "PlaybackEngineError",
    # Functions
    "sort_sources",
    "select_quality",
    "select_source",
    "create_prober",
    "create_recorder",
    "create_health_monitor",
    "create_session",
    # Metadata
    "__version__",
    "__author__",
]

"""
Stream Delivery Configuration Module

Dataclass configuration for every component. Each class validates itself on
construction and can be built from the loaded ``Settings`` with
``from_settings()``; explicit construction is used in tests and embedding code.
"""

from dataclasses import dataclass, fields
from typing import Any, Optional

from .exceptions import ConfigValidationError
from .settings import Settings, get_settings
from .types import QualityLevel


def _require(condition: bool, key: str, value: Any, message: str) -> None:
    if not condition:
        raise ConfigValidationError(message, config_key=key, config_value=value)


def _known(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class ProbeOptions:
    """
    Options for one network probe.

    Attributes:
        rtt_url: URL of the latency request (HEAD)
        bandwidth_url: URL serving the sample payload; defaults to ``rtt_url``
        sample_size: Number of sequential bandwidth samples
        sample_timeout: Per-sample timeout in seconds
        payload_bytes: Requested payload size per sample
        sample_delay: Pause between samples in seconds

    Examples:
        >>> options = ProbeOptions(rtt_url="https://cdn.example/ping")
        >>> options.bandwidth_url
        'https://cdn.example/ping'
    """

    rtt_url: Optional[str] = None
    bandwidth_url: Optional[str] = None
    sample_size: int = 3
    sample_timeout: float = 5.0
    payload_bytes: int = 128 * 1024
    sample_delay: float = 0.2

    def __post_init__(self) -> None:
        if self.bandwidth_url is None:
            self.bandwidth_url = self.rtt_url
        _require(self.sample_size >= 1, "sample_size", self.sample_size,
                 "sample_size must be at least 1")
        _require(self.sample_timeout > 0, "sample_timeout", self.sample_timeout,
                 "sample_timeout must be positive")
        _require(self.payload_bytes > 0, "payload_bytes", self.payload_bytes,
                 "payload_bytes must be positive")
        _require(self.sample_delay >= 0, "sample_delay", self.sample_delay,
                 "sample_delay must not be negative")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ProbeOptions":
        settings = settings or get_settings()
        return cls(**_known(cls, settings.section("prober")))


@dataclass
class HealthMonitorConfig:
    """
    Configuration for the recurring source health check.

    Attributes:
        interval: Seconds between cycle starts
        batch_size: Items checked concurrently per batch
        batch_delay: Pause between batches (not after the last one)
        probe_timeout: Timeout of a single source probe
        require_range_support: Progressive sources must advertise byte ranges
    """

    interval: float = 300.0
    batch_size: int = 5
    batch_delay: float = 1.0
    probe_timeout: float = 5.0
    require_range_support: bool = True
    enabled: bool = True

    def __post_init__(self) -> None:
        _require(self.interval > 0, "interval", self.interval, "interval must be positive")
        _require(self.batch_size >= 1, "batch_size", self.batch_size,
                 "batch_size must be at least 1")
        _require(self.batch_delay >= 0, "batch_delay", self.batch_delay,
                 "batch_delay must not be negative")
        _require(self.probe_timeout > 0, "probe_timeout", self.probe_timeout,
                 "probe_timeout must be positive")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "HealthMonitorConfig":
        settings = settings or get_settings()
        return cls(**_known(cls, settings.section("monitor")))


@dataclass
class PlaybackSessionConfig:
    """
    Configuration for playback sessions.

    Attributes:
        preferred_quality: Operator-preferred level; ``auto`` lets the network decide
        probe_on_start: Run a network probe before the first attach
        buffer_target_sec: Forward buffer the engine should aim for
        max_buffer_sec: Maximum forward buffer
        max_max_buffer_sec: Hard ceiling for the forward buffer
        return_to_primary: Switch back to the primary source when it becomes
            reachable again after a failover
        bandwidth_change_threshold: Relative change of the engine's bandwidth
            estimate that produces a ``bandwidth_change`` event

    Examples:
        >>> config = PlaybackSessionConfig(preferred_quality="720p")
        >>> config.preferred_quality
        <QualityLevel.P720: '720p'>
    """

    preferred_quality: QualityLevel = QualityLevel.AUTO
    probe_on_start: bool = True
    buffer_target_sec: float = 30.0
    max_buffer_sec: float = 60.0
    max_max_buffer_sec: float = 600.0
    return_to_primary: bool = False
    bandwidth_change_threshold: float = 0.25

    def __post_init__(self) -> None:
        if not isinstance(self.preferred_quality, QualityLevel):
            parsed = QualityLevel.parse(self.preferred_quality)
            _require(parsed is not None, "preferred_quality", self.preferred_quality,
                     "preferred_quality must be auto or a known resolution")
            self.preferred_quality = parsed
        _require(0 < self.buffer_target_sec <= self.max_buffer_sec, "buffer_target_sec",
                 self.buffer_target_sec, "buffer_target_sec must be within (0, max_buffer_sec]")
        _require(self.max_buffer_sec <= self.max_max_buffer_sec, "max_buffer_sec",
                 self.max_buffer_sec, "max_buffer_sec must not exceed max_max_buffer_sec")
        _require(self.bandwidth_change_threshold >= 0, "bandwidth_change_threshold",
                 self.bandwidth_change_threshold, "bandwidth_change_threshold must not be negative")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "PlaybackSessionConfig":
        settings = settings or get_settings()
        return cls(**_known(cls, settings.section("session")))


@dataclass
class AnalyticsConfig:
    """Configuration for analytics recording and delivery."""

    enabled: bool = True
    endpoint: Optional[str] = None
    timeout: float = 5.0

    def __post_init__(self) -> None:
        _require(self.timeout > 0, "timeout", self.timeout, "timeout must be positive")
        if self.endpoint is not None:
            _require(self.endpoint.startswith(("http://", "https://")), "endpoint",
                     self.endpoint, "endpoint must be an http(s) URL")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "AnalyticsConfig":
        settings = settings or get_settings()
        return cls(**_known(cls, settings.section("analytics")))


__all__ = [
    "ProbeOptions",
    "HealthMonitorConfig",
    "PlaybackSessionConfig",
    "AnalyticsConfig",
]

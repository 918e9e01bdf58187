"""
Core data model for stream delivery.

Sources, content items, health rows, network measurements, quality levels and
analytics events shared by every component. Catalog records arrive as loosely
typed dictionaries; ``from_dict`` constructors normalize them and reject
records that cannot be played.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .exceptions import MalformedSourceError


DEFAULT_PRIORITY = 1_000_000
"""Priority assigned to sources that do not declare one (sorts last)."""

TEST_SOURCE_PRIORITY = -1
"""Priority of an ephemeral operator test source (sorts before every persisted source)."""


class ContentType(str, Enum):
    """Kind of catalog content a source set belongs to."""

    CHANNEL = "channel"
    MOVIE = "movie"
    EPISODE = "episode"
    UNKNOWN = "unknown"


class StreamFormat(str, Enum):
    """Known stream formats. Anything else is probed leniently."""

    HLS = "hls"
    DASH = "dash"
    MP4 = "mp4"
    TS = "ts"


class HealthStatus(str, Enum):
    """Reachability status written back to the catalog."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class QualityHint(str, Enum):
    """Coarse network quality derived from a probe."""

    AUTO = "auto"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class QualityLevel(str, Enum):
    """
    Playback quality levels.

    ``AUTO`` delegates level choice to the adaptive engine. Concrete levels are
    ordered by vertical resolution; ``AUTO`` ranks below all of them.

    Examples:
        >>> QualityLevel.P720 > QualityLevel.P480
        True
        >>> QualityLevel.parse("1080")
        <QualityLevel.P1080: '1080p'>
    """

    AUTO = "auto"
    P240 = "240p"
    P360 = "360p"
    P480 = "480p"
    P720 = "720p"
    P1080 = "1080p"

    @property
    def height(self) -> int:
        """Vertical resolution in pixels (0 for auto)."""
        if self is QualityLevel.AUTO:
            return 0
        return int(self.value[:-1])

    @property
    def is_concrete(self) -> bool:
        return self is not QualityLevel.AUTO

    @property
    def rank(self) -> int:
        return self.height

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, QualityLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: Any) -> bool:
        if not isinstance(other, QualityLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: Any) -> bool:
        if not isinstance(other, QualityLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: Any) -> bool:
        if not isinstance(other, QualityLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: Any) -> Optional["QualityLevel"]:
        """Parse catalog resolution labels such as ``"720p"``, ``"720"`` or ``720``.

        Returns None for values that do not name a known level.
        """
        if value is None:
            return None
        if isinstance(value, QualityLevel):
            return value
        text = str(value).strip().lower()
        if not text:
            return None
        if text.isdigit():
            text = f"{text}p"
        try:
            return cls(text)
        except ValueError:
            return None


class AnalyticsEventKind(str, Enum):
    """Analytics event kinds accepted by the recorder."""

    START = "start"
    STOP = "stop"
    ERROR = "error"
    BUFFERING = "buffering"
    QUALITY_CHANGE = "quality_change"
    BANDWIDTH_CHANGE = "bandwidth_change"


def _optional_int(data: dict[str, Any], *keys: str) -> Optional[int]:
    for key in keys:
        value = data.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None


@dataclass(frozen=True)
class StreamSource:
    """
    One candidate stream location for a content item.

    Lower ``priority`` numbers are preferred. ``resolution`` and
    ``bandwidth_kbps`` are optional declarations used by quality selection.
    ``ephemeral`` marks an operator test source that is never persisted.
    """

    url: str
    priority: int = DEFAULT_PRIORITY
    format: str = StreamFormat.HLS.value
    label: Optional[str] = None
    resolution: Optional[QualityLevel] = None
    bandwidth_kbps: Optional[int] = None
    ephemeral: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "StreamSource":
        """
        Build a source from a catalog record.

        Accepts ``declaredBandwidthKbps``/``bandwidth``/``bandwidth_kbps`` for
        the declared bitrate and ``resolution``/``quality`` for the level.

        Raises:
            MalformedSourceError: If the record is not a mapping, has no
                non-empty string ``url``, or has a non-numeric priority
        """
        if not isinstance(data, dict):
            raise MalformedSourceError("Source record is not an object", raw=data)

        url = data.get("url")
        if not isinstance(url, str) or not url.strip():
            raise MalformedSourceError("Source record has no url", raw=data)

        raw_priority = data.get("priority")
        if raw_priority is None:
            priority = DEFAULT_PRIORITY
        else:
            try:
                priority = int(raw_priority)
            except (TypeError, ValueError) as e:
                raise MalformedSourceError("Source priority is not a number", raw=data) from e

        fmt = data.get("format")
        fmt = str(fmt).strip().lower() if fmt else StreamFormat.HLS.value

        resolution = QualityLevel.parse(data.get("resolution", data.get("quality")))
        if resolution is QualityLevel.AUTO:
            resolution = None

        label = data.get("label")
        return cls(
            url=url.strip(),
            priority=priority,
            format=fmt,
            label=str(label) if label else None,
            resolution=resolution,
            bandwidth_kbps=_optional_int(
                data, "declaredBandwidthKbps", "bandwidth_kbps", "bandwidth"
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the catalog record shape."""
        result: dict[str, Any] = {
            "url": self.url,
            "priority": self.priority,
            "format": self.format,
        }
        if self.label:
            result["label"] = self.label
        if self.resolution:
            result["resolution"] = self.resolution.value
        if self.bandwidth_kbps is not None:
            result["declaredBandwidthKbps"] = self.bandwidth_kbps
        return result


@dataclass(frozen=True)
class ContentItem:
    """A catalog item with its raw, as-fetched source list."""

    content_type: ContentType
    content_id: int
    sources: Any = field(default_factory=tuple)
    name: Optional[str] = None

    @property
    def ref(self) -> tuple[ContentType, int]:
        """The ``(type, id)`` key identifying this item."""
        return (self.content_type, self.content_id)


@dataclass
class ChannelHealth:
    """Health row for one content item, upserted by the health monitor."""

    content_type: ContentType
    content_id: int
    status: HealthStatus = HealthStatus.UNKNOWN
    last_checked_at: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "content_type": self.content_type.value,
            "content_id": self.content_id,
            "status": self.status.value,
            "last_checked_at": self.last_checked_at,
        }


@dataclass(frozen=True)
class NetworkStats:
    """
    Result of one network probe.

    Attributes:
        bandwidth_kbps: Mean measured throughput (0 when no sample succeeded)
        rtt_ms: Round-trip time of the latency request
        sampled_at: Time the probe finished
        quality_hint: Coarse quality classification
        samples_ok: Number of successful bandwidth samples
        samples_total: Number of attempted bandwidth samples
    """

    bandwidth_kbps: float = 0.0
    rtt_ms: float = 0.0
    sampled_at: float = 0.0
    quality_hint: QualityHint = QualityHint.AUTO
    samples_ok: int = 0
    samples_total: int = 0

    @property
    def degraded(self) -> bool:
        """True when no bandwidth sample succeeded."""
        return self.samples_ok == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "bandwidth_kbps": self.bandwidth_kbps,
            "rtt_ms": self.rtt_ms,
            "sampled_at": self.sampled_at,
            "quality_hint": self.quality_hint.value,
            "samples_ok": self.samples_ok,
            "samples_total": self.samples_total,
            "degraded": self.degraded,
        }


@dataclass(frozen=True)
class AnalyticsEvent:
    """One append-only analytics record."""

    content_type: ContentType
    content_id: int
    kind: AnalyticsEventKind
    timestamp: float
    quality: Optional[str] = None
    bandwidth: Optional[int] = None
    error: Optional[str] = None
    buffering_duration_ms: Optional[int] = None
    duration_ms: Optional[int] = None
    session_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Wire representation posted to analytics sinks."""
        payload: dict[str, Any] = {
            "contentType": self.content_type.value,
            "contentId": self.content_id,
            "event": self.kind.value,
        }
        optional = {
            "quality": self.quality,
            "bandwidth": self.bandwidth,
            "error": self.error,
            "bufferingDuration": self.buffering_duration_ms,
            "duration": self.duration_ms,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        if self.metadata:
            payload["customData"] = dict(self.metadata)
        return payload


__all__ = [
    "DEFAULT_PRIORITY",
    "TEST_SOURCE_PRIORITY",
    "ContentType",
    "StreamFormat",
    "HealthStatus",
    "QualityHint",
    "QualityLevel",
    "AnalyticsEventKind",
    "StreamSource",
    "ContentItem",
    "ChannelHealth",
    "NetworkStats",
    "AnalyticsEvent",
]

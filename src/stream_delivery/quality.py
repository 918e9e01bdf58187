"""
Quality selection.

Maps network measurements and the operator's preference to a target
``QualityLevel``, then picks a concrete source with a three-step fallback:

1. first source (by priority) whose declared resolution matches exactly
2. otherwise the source whose declared bandwidth is closest to the measured one
3. otherwise the highest-priority source, played in ``auto`` mode

``select_source`` is total for non-empty input and raises ``NoSourcesError``
for empty input.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence

from .events import StreamEvents
from .exceptions import NoSourcesError
from .log_config import get_context_logger
from .sources import sort_sources
from .types import NetworkStats, QualityHint, QualityLevel, StreamSource


# Minimum and optimal throughput (kbps) per concrete level
QUALITY_BANDWIDTH_RANGES: dict[QualityLevel, dict[str, int]] = {
    QualityLevel.P1080: {"min": 5000, "optimal": 8000},
    QualityLevel.P720: {"min": 2500, "optimal": 4000},
    QualityLevel.P480: {"min": 1000, "optimal": 2000},
    QualityLevel.P360: {"min": 500, "optimal": 1000},
    QualityLevel.P240: {"min": 300, "optimal": 500},
}

# Concrete levels from lowest to highest; start_level indexes into this ladder
QUALITY_LADDER: tuple[QualityLevel, ...] = (
    QualityLevel.P240,
    QualityLevel.P360,
    QualityLevel.P480,
    QualityLevel.P720,
    QualityLevel.P1080,
)

_HINT_QUALITY = {
    QualityHint.HIGH: QualityLevel.P1080,
    QualityHint.MEDIUM: QualityLevel.P720,
    QualityHint.LOW: QualityLevel.P480,
    QualityHint.AUTO: QualityLevel.AUTO,
}


class SelectionTier(str, Enum):
    """Which fallback step produced a source selection."""

    RESOLUTION = "resolution"
    BANDWIDTH = "bandwidth"
    PRIORITY = "priority"


@dataclass(frozen=True)
class SourceSelection:
    """Chosen source, the quality to play it at, and the step that chose it."""

    source: StreamSource
    resolved_quality: QualityLevel
    tier: SelectionTier

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.source.url,
            "priority": self.source.priority,
            "resolved_quality": self.resolved_quality.value,
            "tier": self.tier.value,
        }


@dataclass(frozen=True)
class PlaybackTuning:
    """
    Buffer and level settings handed to the playback engine on attach.

    Attributes:
        buffer_target_sec: Forward buffer the engine should aim for
        max_buffer_sec: Maximum forward buffer
        max_max_buffer_sec: Hard ceiling for the forward buffer
        start_level: Index into ``QUALITY_LADDER`` or -1 to let the engine decide
        adaptive: Whether the engine may switch levels on its own
        quality: Quality the session resolved for this attach
    """

    buffer_target_sec: float = 30.0
    max_buffer_sec: float = 60.0
    max_max_buffer_sec: float = 600.0
    start_level: int = -1
    adaptive: bool = True
    quality: QualityLevel = QualityLevel.AUTO


def quality_for_bandwidth(bandwidth_kbps: float) -> QualityLevel:
    """Highest level whose minimum bitrate is at most ``bandwidth_kbps``.

    Thresholds: >=5000 1080p, >=2500 720p, >=1000 480p, >=500 360p, else 240p.
    """
    for level in reversed(QUALITY_LADDER[1:]):
        if bandwidth_kbps >= QUALITY_BANDWIDTH_RANGES[level]["min"]:
            return level
    return QualityLevel.P240


def hint_to_quality(hint: QualityHint) -> QualityLevel:
    """Map a probe hint to a level: high 1080p, medium 720p, low 480p."""
    return _HINT_QUALITY[hint]


def select_quality(
    stats: Optional[NetworkStats], preferred: QualityLevel = QualityLevel.AUTO
) -> QualityLevel:
    """
    Choose the target quality.

    A concrete ``preferred`` level is returned unchanged. Otherwise the level
    follows measured bandwidth. When no bandwidth sample succeeded the probe's
    RTT-based hint is used, and without any measurement the engine decides.

    Examples:
        >>> select_quality(NetworkStats(bandwidth_kbps=6000, samples_ok=3))
        <QualityLevel.P1080: '1080p'>
        >>> select_quality(NetworkStats(bandwidth_kbps=6000, samples_ok=3), QualityLevel.P360)
        <QualityLevel.P360: '360p'>
    """
    if preferred.is_concrete:
        return preferred
    if stats is None:
        return QualityLevel.AUTO
    if stats.degraded:
        return hint_to_quality(stats.quality_hint)
    return quality_for_bandwidth(stats.bandwidth_kbps)


def select_source(
    sources: Sequence[StreamSource],
    quality: QualityLevel,
    stats: Optional[NetworkStats] = None,
) -> SourceSelection:
    """
    Pick one source for ``quality``.

    Ties on bandwidth distance go to the lower priority number, then to input
    order.

    Raises:
        NoSourcesError: If ``sources`` is empty
    """
    if not sources:
        raise NoSourcesError("Cannot select from an empty source list")

    ordered = sort_sources(sources)

    if quality.is_concrete:
        for source in ordered:
            if source.resolution is quality:
                return SourceSelection(source, quality, SelectionTier.RESOLUTION)

    measured = stats.bandwidth_kbps if stats is not None else 0.0
    declared = [s for s in ordered if s.bandwidth_kbps]
    if declared:
        # min() keeps the first of equal keys; ordered is already by priority
        closest = min(declared, key=lambda s: abs(s.bandwidth_kbps - measured))
        resolved = closest.resolution or quality_for_bandwidth(closest.bandwidth_kbps)
        return SourceSelection(closest, resolved, SelectionTier.BANDWIDTH)

    return SourceSelection(ordered[0], QualityLevel.AUTO, SelectionTier.PRIORITY)


def playback_tuning(
    quality: QualityLevel,
    buffer_target_sec: float = 30.0,
    max_buffer_sec: float = 60.0,
    max_max_buffer_sec: float = 600.0,
    user_preferred: bool = False,
) -> PlaybackTuning:
    """Engine settings for an attach at ``quality``.

    The engine starts at a fixed level only when the user chose a concrete
    quality; otherwise it starts in automatic mode.
    """
    pinned = user_preferred and quality.is_concrete
    return PlaybackTuning(
        buffer_target_sec=buffer_target_sec,
        max_buffer_sec=max_buffer_sec,
        max_max_buffer_sec=max_max_buffer_sec,
        start_level=QUALITY_LADDER.index(quality) if pinned else -1,
        adaptive=not pinned,
        quality=quality,
    )


class QualitySelector:
    """
    Stateless facade over the selection functions, with structured logging.

    Examples:
        >>> selector = QualitySelector()
        >>> selection = selector.choose(source_set, stats, QualityLevel.AUTO)
        >>> selection.source.url, selection.resolved_quality
        ('https://a/live.m3u8', <QualityLevel.P720: '720p'>)
    """

    def __init__(self):
        self.logger = get_context_logger("quality_selector")

    def select_quality(
        self, stats: Optional[NetworkStats], preferred: QualityLevel = QualityLevel.AUTO
    ) -> QualityLevel:
        quality = select_quality(stats, preferred)
        self.logger.debug(
            StreamEvents.QUALITY_SELECTED,
            quality=quality.value,
            preferred=preferred.value,
            bandwidth_kbps=stats.bandwidth_kbps if stats else None,
        )
        return quality

    def select_source(
        self,
        sources: Sequence[StreamSource],
        quality: QualityLevel,
        stats: Optional[NetworkStats] = None,
    ) -> SourceSelection:
        selection = select_source(sources, quality, stats)
        self.logger.info(
            StreamEvents.SOURCE_SELECTED,
            url=selection.source.url,
            priority=selection.source.priority,
            resolved_quality=selection.resolved_quality.value,
            tier=selection.tier.value,
            candidates=len(sources),
        )
        return selection

    def choose(
        self,
        sources: Sequence[StreamSource],
        stats: Optional[NetworkStats],
        preferred: QualityLevel = QualityLevel.AUTO,
    ) -> SourceSelection:
        """Resolve the target quality and pick a source in one step."""
        return self.select_source(sources, self.select_quality(stats, preferred), stats)


__all__ = [
    "QUALITY_BANDWIDTH_RANGES",
    "QUALITY_LADDER",
    "SelectionTier",
    "SourceSelection",
    "PlaybackTuning",
    "QualitySelector",
    "quality_for_bandwidth",
    "hint_to_quality",
    "select_quality",
    "select_source",
    "playback_tuning",
]

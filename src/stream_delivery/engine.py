"""
Playback engine interface.

A playback engine (hls.js bridge, native player, test double) plays one URL at
a time. ``attach`` raises ``PlaybackEngineError`` when the source cannot start;
runtime notifications are delivered to the owning session as ``EngineEvent``
values through ``PlaybackSession.handle_engine_event``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .quality import PlaybackTuning
from .types import QualityLevel


class EngineEventKind(str, Enum):
    """Notifications a playback engine reports back to its session."""

    FATAL = "fatal"
    ERROR = "error"
    LEVEL_SWITCHED = "level_switched"
    BUFFER_STALLED = "buffer_stalled"
    BUFFER_RECOVERED = "buffer_recovered"
    BANDWIDTH_ESTIMATE = "bandwidth_estimate"


@dataclass(frozen=True)
class EngineEvent:
    """
    One engine notification.

    Use the constructors rather than building events by hand:

    Examples:
        >>> EngineEvent.fatal("manifestLoadError")
        >>> EngineEvent.level_switched(QualityLevel.P480)
        >>> EngineEvent.bandwidth_estimate(3200)
    """

    kind: EngineEventKind
    detail: Optional[str] = None
    quality: Optional[QualityLevel] = None
    bandwidth_kbps: Optional[float] = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def fatal(cls, detail: str, **data: Any) -> "EngineEvent":
        return cls(EngineEventKind.FATAL, detail=detail, data=data)

    @classmethod
    def error(cls, detail: str, **data: Any) -> "EngineEvent":
        """Non-fatal error; the engine recovers on its own."""
        return cls(EngineEventKind.ERROR, detail=detail, data=data)

    @classmethod
    def level_switched(cls, quality: QualityLevel, bandwidth_kbps: Optional[float] = None) -> "EngineEvent":
        return cls(EngineEventKind.LEVEL_SWITCHED, quality=quality, bandwidth_kbps=bandwidth_kbps)

    @classmethod
    def buffer_stalled(cls) -> "EngineEvent":
        return cls(EngineEventKind.BUFFER_STALLED)

    @classmethod
    def buffer_recovered(cls) -> "EngineEvent":
        return cls(EngineEventKind.BUFFER_RECOVERED)

    @classmethod
    def bandwidth_estimate(cls, bandwidth_kbps: float) -> "EngineEvent":
        return cls(EngineEventKind.BANDWIDTH_ESTIMATE, bandwidth_kbps=bandwidth_kbps)


class PlaybackEngine(ABC):
    """Abstract playback engine driven by a ``PlaybackSession``."""

    @abstractmethod
    async def attach(self, url: str, tuning: PlaybackTuning) -> None:
        """Start playing ``url``.

        Returns once the first frames are available.

        Raises:
            PlaybackEngineError: If the source cannot be played. ``fatal=True``
                makes the session fail over to the next source.
        """
        pass

    @abstractmethod
    async def detach(self) -> None:
        """Stop playback and release the current source. Must be idempotent."""
        pass


__all__ = ["EngineEventKind", "EngineEvent", "PlaybackEngine"]

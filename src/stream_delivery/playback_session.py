"""
Playback Session State Machine

Drives one viewer's playback of one content item across its candidate
sources. The session probes the network, picks a quality and a source,
attaches the playback engine and fails over to the next source whenever the
engine reports a fatal error.

States::

    idle -> attaching -> playing <-> buffering -> stopped
                 \\___________\\__________\\______> failed   (sources exhausted)

``stopped`` is reachable from every state. ``failed`` is left only through an
explicit ``retry()`` or ``switch_source()``; the session never re-attaches on
its own once every source has failed.
"""

import asyncio
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .analytics import AnalyticsRecorder
from .config import PlaybackSessionConfig
from .engine import EngineEvent, EngineEventKind, PlaybackEngine
from .events import StreamEvents
from .exceptions import (
    NoSourcesError,
    PlaybackEngineError,
    SessionStateError,
    SourceError,
    SourcesExhaustedError,
)
from .log_config import SessionLogContext, get_context_logger, update_session_progress
from .metrics import MetricLabels, MetricsCollector, NoOpMetrics, StreamMetrics
from .prober import NetworkProber
from .quality import QualitySelector, SourceSelection, playback_tuning
from .sources import SourceSet
from .time_provider import RealtimeTimeProvider, TimeProvider
from .types import (
    AnalyticsEvent,
    AnalyticsEventKind,
    ContentType,
    NetworkStats,
    QualityLevel,
    StreamSource,
)


class SessionState(str, Enum):
    """Playback session state."""

    IDLE = "idle"
    ATTACHING = "attaching"
    PLAYING = "playing"
    BUFFERING = "buffering"
    STOPPED = "stopped"
    FAILED = "failed"


_ACTIVE_STATES = (SessionState.ATTACHING, SessionState.PLAYING, SessionState.BUFFERING)
_SWITCHABLE_STATES = (SessionState.PLAYING, SessionState.BUFFERING, SessionState.FAILED)


class PlaybackSession:
    """
    One viewer's playback of one content item.

    Only one attach or network probe is in flight at a time. A failover,
    ``stop()`` or ``switch_source()`` cancels a pending probe and falls back to
    the last known network stats.

    Args:
        content_type: Kind of content being played
        content_id: Catalog id of the content
        engine: Playback engine to drive
        recorder: Analytics recorder receiving every transition
        prober: Network prober run before the first attach
        selector: Quality selector
        config: Session configuration
        time_provider: Clock for event timestamps
        metrics: Metrics collector
        initial_stats: Network stats to use when no probe runs
        reachability: Async predicate used by ``check_primary_return()``
        session_id: Explicit session id (generated when omitted)

    Examples:
        >>> session = PlaybackSession(ContentType.CHANNEL, 7, engine, recorder=recorder,
        ...                           prober=prober)
        >>> await session.start(SourceSet.from_raw(channel["streamSources"]))
        >>> session.state, session.current_index
        (<SessionState.PLAYING: 'playing'>, 0)
        >>> await session.handle_engine_event(EngineEvent.fatal("manifestLoadError"))
        >>> session.current_index
        1
        >>> await session.stop()
    """

    def __init__(
        self,
        content_type: ContentType,
        content_id: int,
        engine: PlaybackEngine,
        recorder: Optional[AnalyticsRecorder] = None,
        prober: Optional[NetworkProber] = None,
        selector: Optional[QualitySelector] = None,
        config: Optional[PlaybackSessionConfig] = None,
        time_provider: Optional[TimeProvider] = None,
        metrics: Optional[MetricsCollector] = None,
        initial_stats: Optional[NetworkStats] = None,
        reachability: Optional[Callable[[StreamSource], Awaitable[bool]]] = None,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.content_type = content_type
        self.content_id = content_id
        self.engine = engine
        self.recorder = recorder
        self.prober = prober
        self.selector = selector or QualitySelector()
        self.config = config or PlaybackSessionConfig()
        self.time_provider = time_provider or RealtimeTimeProvider()
        self.metrics = metrics or NoOpMetrics()
        self.reachability = reachability

        self.state = SessionState.IDLE
        self.sources = SourceSet()
        self.current_index: Optional[int] = None
        self.current_quality = QualityLevel.AUTO
        self.stats = initial_stats
        self.events: list[AnalyticsEvent] = []
        self.attempts = 0
        self.failovers = 0
        self.last_error: Optional[str] = None
        self.started_at: Optional[float] = None
        self.buffering_since: Optional[float] = None

        self._lock = asyncio.Lock()
        self._selection_task: Optional[asyncio.Task] = None
        self._preempted = False
        self._pending_fatal: Optional[str] = None
        self._has_played = False
        self._active = False
        self._last_timestamp = float("-inf")
        self._last_bandwidth: Optional[float] = None

        self.logger = get_context_logger("playback_session")

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    async def start(self, source_set: SourceSet) -> None:
        """
        Start playback from the highest-priority source.

        Raises:
            SessionStateError: If the session was already started
            NoSourcesError: If ``source_set`` is empty
            SourcesExhaustedError: If every source failed to attach
        """
        if self.state is not SessionState.IDLE:
            raise SessionStateError(
                "Session already started", state=self.state.value, operation="start"
            )
        if not source_set:
            raise NoSourcesError(content_ref=(self.content_type.value, self.content_id))

        with SessionLogContext(**self._log_fields()):
            self.sources = source_set.copy()
            self.current_index = 0
            self.started_at = self.time_provider.now()
            self.logger.info(
                StreamEvents.SESSION_STARTED,
                sources=len(self.sources),
                preferred_quality=self.config.preferred_quality.value,
            )

            async with self._lock:
                if self.prober is not None and self.config.probe_on_start:
                    await self._probe_network()
                if self.state is SessionState.STOPPED:
                    return
                if self.stats is not None:
                    self._last_bandwidth = self.stats.bandwidth_kbps or None
                await self._attach_loop(self._select_in_tier(0))

    async def stop(self) -> None:
        """Stop playback. Legal in every state; a second call is a no-op."""
        if self.state is SessionState.STOPPED:
            return

        with SessionLogContext(**self._log_fields()):
            previous = self.state
            self._preempt_selection()
            self._set_state(SessionState.STOPPED)

            if previous is SessionState.BUFFERING:
                self._record_buffering_end()
            if previous in _ACTIVE_STATES:
                await self.engine.detach()

            duration_ms = self._elapsed_ms(self.started_at)
            if self.started_at is not None:
                self._emit(
                    AnalyticsEventKind.STOP,
                    quality=self.current_quality.value,
                    duration_ms=duration_ms,
                )
            self._deactivate()
            self.logger.info(
                StreamEvents.SESSION_STOPPED,
                previous_state=previous.value,
                duration_ms=duration_ms,
                failovers=self.failovers,
            )

    async def switch_source(self, index: int) -> None:
        """
        Operator switch to ``sources[index]``.

        Legal while playing, buffering or failed. Failures after the switch
        fail over from ``index`` onward.

        Raises:
            SessionStateError: If the session is in another state
            SourceError: If ``index`` is out of range
        """
        if self.state not in _SWITCHABLE_STATES:
            raise SessionStateError(
                "Cannot switch source in this state",
                state=self.state.value,
                operation="switch_source",
            )
        if not 0 <= index < len(self.sources):
            raise SourceError(
                "Source index out of range",
                context={"index": index, "sources": len(self.sources)},
            )

        with SessionLogContext(**self._log_fields()):
            async with self._lock:
                self._preempt_selection()
                if self.state in _ACTIVE_STATES:
                    if self.state is SessionState.BUFFERING:
                        self._record_buffering_end()
                    await self.engine.detach()

                previous_index = self.current_index
                self.current_index = index
                self.logger.info(
                    StreamEvents.SESSION_SWITCHED,
                    from_index=previous_index,
                    to_index=index,
                    url=self.sources[index].url,
                )
                selection = self.selector.select_source(
                    [self.sources[index]], self._target_quality(), self.stats
                )
                await self._attach_loop(selection)

    async def retry(self) -> None:
        """
        Manual retry after exhaustion: start over from the primary source.

        Raises:
            SessionStateError: If the session is not failed
        """
        if self.state is not SessionState.FAILED:
            raise SessionStateError(
                "Retry is only possible after failure", state=self.state.value, operation="retry"
            )
        await self.switch_source(0)

    async def handle_engine_event(self, event: EngineEvent) -> None:
        """
        Apply an engine notification.

        Raises:
            SourcesExhaustedError: If a fatal error hit the last source
        """
        with SessionLogContext(**self._log_fields()):
            if event.kind is EngineEventKind.FATAL:
                await self._on_fatal(event.detail or "fatal engine error")
            elif event.kind is EngineEventKind.ERROR:
                self.logger.warning(
                    StreamEvents.SESSION_ENGINE_ERROR,
                    detail=event.detail,
                    state=self.state.value,
                    **event.data,
                )
            elif event.kind is EngineEventKind.LEVEL_SWITCHED:
                self._on_level_switched(event)
            elif event.kind is EngineEventKind.BUFFER_STALLED:
                self._on_buffer_stalled()
            elif event.kind is EngineEventKind.BUFFER_RECOVERED:
                self._on_buffer_recovered()
            elif event.kind is EngineEventKind.BANDWIDTH_ESTIMATE:
                self._on_bandwidth_estimate(event.bandwidth_kbps)

    async def check_primary_return(self) -> bool:
        """
        Switch back to the primary source if it is reachable again.

        Does nothing unless ``return_to_primary`` is enabled, the session is
        playing a fallback source and a reachability check is configured.

        Returns:
            True if the session switched back to the primary source
        """
        if not self.config.return_to_primary or self.reachability is None:
            return False
        if self.state is not SessionState.PLAYING or not self.current_index:
            return False

        if not await self.reachability(self.sources[0]):
            return False
        if self.state is not SessionState.PLAYING:
            return False
        await self.switch_source(0)
        return self.state is SessionState.PLAYING and self.current_index == 0

    @property
    def current_source(self) -> Optional[StreamSource]:
        if self.current_index is None or not self.sources:
            return None
        return self.sources[self.current_index]

    def to_dict(self) -> dict[str, Any]:
        """Status snapshot."""
        source = self.current_source
        return {
            "session_id": self.session_id,
            "content_type": self.content_type.value,
            "content_id": self.content_id,
            "state": self.state.value,
            "current_index": self.current_index,
            "current_url": source.url if source else None,
            "current_quality": self.current_quality.value,
            "sources": len(self.sources),
            "attempts": self.attempts,
            "failovers": self.failovers,
            "last_error": self.last_error,
            "stats": self.stats.to_dict() if self.stats else None,
            "events": len(self.events),
        }

    # ------------------------------------------------------------------ #
    # Attach and failover
    # ------------------------------------------------------------------ #

    async def _attach_loop(self, selection: SourceSelection) -> None:
        """Attach ``selection``; on fatal errors fail over until something plays.

        Must be called with ``self._lock`` held.
        """
        while True:
            if self.state is SessionState.STOPPED:
                return

            source = self.sources[self.current_index]
            self.current_quality = selection.resolved_quality
            tuning = playback_tuning(
                self.current_quality,
                buffer_target_sec=self.config.buffer_target_sec,
                max_buffer_sec=self.config.max_buffer_sec,
                max_max_buffer_sec=self.config.max_max_buffer_sec,
                user_preferred=self.config.preferred_quality.is_concrete,
            )
            self._pending_fatal = None
            self._set_state(SessionState.ATTACHING)
            self.attempts += 1
            self.logger.info(
                StreamEvents.SESSION_ATTACHING,
                url=source.url,
                priority=source.priority,
                quality=self.current_quality.value,
                attempt=self.attempts,
            )

            started = self.time_provider.now()
            failure: Optional[str] = None
            try:
                await self.engine.attach(source.url, tuning)
            except PlaybackEngineError as e:
                if e.fatal:
                    failure = e.message
                else:
                    self.logger.warning(
                        StreamEvents.SESSION_ENGINE_ERROR, detail=e.message, url=source.url
                    )

            if self.state is SessionState.STOPPED:
                return
            if failure is None and self._pending_fatal is not None:
                failure = self._pending_fatal

            if failure is None:
                self.metrics.histogram(
                    StreamMetrics.SESSION_ATTACH_DURATION_MS, self._elapsed_ms(started)
                )
                self._enter_playing()
                return

            selection = self._advance(failure)

    async def _on_fatal(self, detail: str) -> None:
        if self.state is SessionState.ATTACHING:
            # The attach in flight picks this up when it returns
            self._pending_fatal = detail
            return
        if self.state not in (SessionState.PLAYING, SessionState.BUFFERING):
            self.logger.debug(
                StreamEvents.SESSION_FATAL_IGNORED, state=self.state.value, detail=detail
            )
            return

        # Identifies the attach this error belongs to
        attempt = self.attempts
        async with self._lock:
            if (
                self.state not in (SessionState.PLAYING, SessionState.BUFFERING)
                or self.attempts != attempt
            ):
                self.logger.debug(
                    StreamEvents.SESSION_FATAL_IGNORED, state=self.state.value, detail=detail
                )
                return
            if self.state is SessionState.BUFFERING:
                self._record_buffering_end()
            await self.engine.detach()
            if self.state is SessionState.STOPPED:
                return
            selection = self._advance(detail)
            await self._attach_loop(selection)

    def _advance(self, error: str) -> SourceSelection:
        """
        Record the failure of the current source and move to the next one.

        Raises:
            SourcesExhaustedError: If the failed source was the last one
        """
        self.last_error = error
        failed_index = self.current_index
        self._emit(
            AnalyticsEventKind.ERROR,
            quality=self.current_quality.value,
            error=error,
            metadata={"source_index": failed_index},
        )
        self._preempt_selection()

        next_index = failed_index + 1
        if next_index >= len(self.sources):
            self._fail()

        self.current_index = next_index
        self.failovers += 1
        selection = self._select_in_tier(next_index)
        self._emit(
            AnalyticsEventKind.QUALITY_CHANGE,
            quality=selection.resolved_quality.value,
            bandwidth=self._measured_bandwidth(),
            metadata={"reason": "failover", "from_index": failed_index, "to_index": next_index},
        )
        self.metrics.increment(
            StreamMetrics.SESSION_FAILOVERS_TOTAL,
            labels={MetricLabels.CONTENT_TYPE: self.content_type.value},
        )
        self.logger.warning(
            StreamEvents.SESSION_FAILOVER,
            from_index=failed_index,
            to_index=next_index,
            url=self.sources[next_index].url,
            quality=selection.resolved_quality.value,
            error=error,
        )
        return selection

    def _fail(self) -> None:
        attempts = self.attempts
        self._set_state(SessionState.FAILED)
        self.current_index = None
        self._deactivate()
        self.metrics.increment(
            StreamMetrics.SESSION_EXHAUSTED_TOTAL,
            labels={MetricLabels.CONTENT_TYPE: self.content_type.value},
        )
        self.logger.error(
            StreamEvents.SESSION_EXHAUSTED,
            sources=len(self.sources),
            attempts=attempts,
            last_error=self.last_error,
        )
        raise SourcesExhaustedError(
            session_id=self.session_id, attempts=attempts, last_error=self.last_error
        )

    def _select_in_tier(self, index: int) -> SourceSelection:
        """
        Choose among the not-yet-tried sources of ``index``'s priority tier.

        The chosen source is moved to ``index`` in this session's private copy,
        so later failovers still visit every source exactly once.
        """
        candidates = [i for i in self.sources.tier(index) if i >= index]
        selection = self.selector.select_source(
            [self.sources[i] for i in candidates], self._target_quality(), self.stats
        )
        chosen = next(i for i in candidates if self.sources[i] is selection.source)
        if chosen != index:
            order = [i for i in range(len(self.sources)) if i != chosen]
            order.insert(index, chosen)
            self.sources = self.sources.reordered(order)
        return selection

    def _target_quality(self) -> QualityLevel:
        return self.selector.select_quality(self.stats, self.config.preferred_quality)

    async def _probe_network(self) -> None:
        """Run the prober as a cancellable task; keep cached stats if preempted."""
        task = asyncio.ensure_future(self.prober.probe())
        self._selection_task = task
        try:
            self.stats = await task
        except asyncio.CancelledError:
            if not self._preempted:
                raise
            self.logger.info(StreamEvents.SESSION_PROBE_PREEMPTED, state=self.state.value)
        finally:
            self._selection_task = None
            self._preempted = False

    def _preempt_selection(self) -> None:
        task = self._selection_task
        if task is not None and not task.done():
            self._preempted = True
            task.cancel()

    # ------------------------------------------------------------------ #
    # Engine notifications
    # ------------------------------------------------------------------ #

    def _enter_playing(self) -> None:
        self._set_state(SessionState.PLAYING)
        if not self._active:
            self._active = True
            self.metrics.gauge(StreamMetrics.SESSION_ACTIVE, 1)
        if not self._has_played:
            self._has_played = True
            self._emit(
                AnalyticsEventKind.START,
                quality=self.current_quality.value,
                bandwidth=self._measured_bandwidth(),
            )
            self.metrics.increment(
                StreamMetrics.SESSION_STARTS_TOTAL,
                labels={MetricLabels.CONTENT_TYPE: self.content_type.value},
            )
        self.logger.info(
            StreamEvents.SESSION_PLAYING,
            url=self.current_source.url,
            quality=self.current_quality.value,
            failovers=self.failovers,
        )

    def _on_level_switched(self, event: EngineEvent) -> None:
        if self.state not in (SessionState.PLAYING, SessionState.BUFFERING):
            return
        if event.quality is None or event.quality is self.current_quality:
            return
        previous = self.current_quality
        self.current_quality = event.quality
        bandwidth = event.bandwidth_kbps if event.bandwidth_kbps is not None else self._last_bandwidth
        self._emit(
            AnalyticsEventKind.QUALITY_CHANGE,
            quality=event.quality.value,
            bandwidth=int(round(bandwidth)) if bandwidth else None,
            metadata={"reason": "adaptive", "previous_quality": previous.value},
        )

    def _on_buffer_stalled(self) -> None:
        if self.state is not SessionState.PLAYING:
            return
        self.buffering_since = self.time_provider.now()
        self._set_state(SessionState.BUFFERING)
        self.logger.info(StreamEvents.SESSION_BUFFERING, quality=self.current_quality.value)

    def _on_buffer_recovered(self) -> None:
        if self.state is not SessionState.BUFFERING:
            return
        self._record_buffering_end()
        self._set_state(SessionState.PLAYING)

    def _record_buffering_end(self) -> None:
        self._emit(
            AnalyticsEventKind.BUFFERING,
            quality=self.current_quality.value,
            buffering_duration_ms=self._elapsed_ms(self.buffering_since),
        )
        self.buffering_since = None

    def _on_bandwidth_estimate(self, bandwidth_kbps: Optional[float]) -> None:
        if bandwidth_kbps is None or self.state not in (SessionState.PLAYING, SessionState.BUFFERING):
            return
        previous = self._last_bandwidth
        if previous:
            change = abs(bandwidth_kbps - previous) / previous
            if change <= self.config.bandwidth_change_threshold:
                return
        self._last_bandwidth = bandwidth_kbps
        self._emit(
            AnalyticsEventKind.BANDWIDTH_CHANGE,
            quality=self.current_quality.value,
            bandwidth=int(round(bandwidth_kbps)),
            metadata={"previous_bandwidth": previous},
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _emit(self, kind: AnalyticsEventKind, **fields: Any) -> AnalyticsEvent:
        # Timestamps never go backwards within one session
        timestamp = max(self.time_provider.now(), self._last_timestamp)
        self._last_timestamp = timestamp
        event = AnalyticsEvent(
            content_type=self.content_type,
            content_id=self.content_id,
            kind=kind,
            timestamp=timestamp,
            session_id=self.session_id,
            **fields,
        )
        self.events.append(event)
        if self.recorder is not None:
            self.recorder.record(event)
        return event

    def _set_state(self, state: SessionState) -> None:
        self.state = state
        update_session_progress(session_state=state.value, source_index=self.current_index)

    def _deactivate(self) -> None:
        if self._active:
            self._active = False
            self.metrics.gauge(StreamMetrics.SESSION_ACTIVE, -1)

    def _measured_bandwidth(self) -> Optional[int]:
        if self.stats is None or self.stats.degraded:
            return None
        return int(round(self.stats.bandwidth_kbps))

    def _elapsed_ms(self, since: Optional[float]) -> int:
        if since is None:
            return 0
        return max(0, int(round((self.time_provider.now() - since) * 1000)))

    def _log_fields(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "content_type": self.content_type.value,
            "content_id": self.content_id,
        }


__all__ = ["PlaybackSession", "SessionState"]

"""
Playback analytics.

``AnalyticsRecorder`` keeps an append-only log of playback events and derives
aggregate reports from it on demand. Events can also be forwarded to an
``AnalyticsSink`` (for example the platform's HTTP analytics endpoint). That
delivery is fire-and-forget: it runs in a background task, and failures are
logged and dropped so they never reach the session or monitor that emitted
the event.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import AnalyticsConfig
from .events import StreamEvents
from .exceptions import AnalyticsDeliveryError, AnalyticsValidationError
from .log_config import get_context_logger
from .metrics import MetricLabels, MetricsCollector, NoOpMetrics, StreamMetrics
from .time_provider import RealtimeTimeProvider, TimeProvider
from .types import AnalyticsEvent, AnalyticsEventKind, ContentType


class AnalyticsPayload(BaseModel):
    """Wire schema of an inbound analytics record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    content_type: ContentType = Field(alias="contentType")
    content_id: int = Field(alias="contentId", ge=0, strict=True)
    event: AnalyticsEventKind
    quality: Optional[str] = None
    bandwidth: Optional[int] = Field(default=None, ge=0, strict=True)
    duration: Optional[int] = Field(default=None, ge=0)
    error: Optional[str] = None
    buffering_duration: Optional[int] = Field(default=None, alias="bufferingDuration", ge=0)
    custom_data: Optional[dict[str, Any]] = Field(default=None, alias="customData")


class AnalyticsSink(ABC):
    """Destination for analytics records."""

    @abstractmethod
    async def send(self, payload: dict[str, Any]) -> None:
        """Deliver one record.

        Raises:
            AnalyticsDeliveryError: If the record could not be delivered
        """
        pass


class HttpAnalyticsSink(AnalyticsSink):
    """POST records as JSON to an analytics endpoint. No retries."""

    def __init__(self, client: httpx.AsyncClient, endpoint: str, timeout: float = 5.0):
        self.client = client
        self.endpoint = endpoint
        self.timeout = timeout

    async def send(self, payload: dict[str, Any]) -> None:
        try:
            response = await self.client.post(self.endpoint, json=payload, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise AnalyticsDeliveryError(
                f"Analytics request failed: {type(e).__name__}",
                context={"endpoint": self.endpoint},
            ) from e
        if not response.is_success:
            raise AnalyticsDeliveryError(
                "Analytics endpoint rejected record",
                http_status=response.status_code,
                context={"endpoint": self.endpoint},
            )


@dataclass
class AnalyticsReport:
    """Aggregates over a filtered slice of the event log."""

    content_type: Optional[ContentType] = None
    content_id: Optional[int] = None
    total_events: int = 0
    starts: int = 0
    errors: int = 0
    buffering_events: int = 0
    average_bandwidth: Optional[float] = None
    most_used_quality: Optional[str] = None
    error_rate: float = 0.0
    buffering_rate: float = 0.0
    event_counts: dict[str, int] = field(default_factory=dict)
    quality_distribution: dict[str, int] = field(default_factory=dict)
    buffering_by_day: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content_type": self.content_type.value if self.content_type else None,
            "content_id": self.content_id,
            "total_events": self.total_events,
            "starts": self.starts,
            "errors": self.errors,
            "buffering_events": self.buffering_events,
            "average_bandwidth": self.average_bandwidth,
            "most_used_quality": self.most_used_quality,
            "error_rate": self.error_rate,
            "buffering_rate": self.buffering_rate,
            "event_counts": dict(self.event_counts),
            "quality_distribution": dict(self.quality_distribution),
            "buffering_by_day": list(self.buffering_by_day),
        }


def _most_used(qualities: list[str]) -> Optional[str]:
    """Statistical mode; ties go to the value that appeared first."""
    if not qualities:
        return None
    counts = Counter(qualities)
    best = max(counts.values())
    return next(q for q in qualities if counts[q] == best)


class AnalyticsRecorder:
    """
    Append-only analytics log with optional background delivery.

    Examples:
        >>> recorder = AnalyticsRecorder(
        ...     sink=HttpAnalyticsSink(get_analytics_http_client(), "https://api.example/analytics"),
        ... )
        >>> recorder.ingest({"contentType": "channel", "contentId": 7, "event": "start"})
        >>> recorder.report(ContentType.CHANNEL, 7).error_rate
        0.0
        >>> await recorder.flush()
    """

    def __init__(
        self,
        sink: Optional[AnalyticsSink] = None,
        config: Optional[AnalyticsConfig] = None,
        time_provider: Optional[TimeProvider] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.sink = sink
        self.config = config or AnalyticsConfig()
        self.time_provider = time_provider or RealtimeTimeProvider()
        self.metrics = metrics or NoOpMetrics()
        self._events: list[AnalyticsEvent] = []
        self._pending: set[asyncio.Task] = set()
        self.logger = get_context_logger("analytics")

    def __len__(self) -> int:
        return len(self._events)

    def record(self, event: AnalyticsEvent) -> None:
        """Append ``event`` and schedule its delivery. Never raises."""
        self._events.append(event)
        self.metrics.increment(
            StreamMetrics.ANALYTICS_EVENTS_TOTAL,
            labels={MetricLabels.EVENT_KIND: event.kind.value},
        )
        self.logger.debug(
            StreamEvents.ANALYTICS_RECORDED,
            kind=event.kind.value,
            content_type=event.content_type.value,
            content_id=event.content_id,
            session_id=event.session_id,
        )

        if self.sink is None or not self.config.enabled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.warning(
                StreamEvents.ANALYTICS_DELIVERY_FAILED,
                kind=event.kind.value,
                error="no running event loop",
            )
            return
        task = loop.create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def ingest(self, payload: dict[str, Any], session_id: Optional[str] = None) -> AnalyticsEvent:
        """
        Validate an inbound wire record and record it.

        Raises:
            AnalyticsValidationError: If the record does not match the schema
        """
        try:
            data = AnalyticsPayload.model_validate(payload)
        except ValidationError as e:
            raise AnalyticsValidationError(errors=e.errors()) from e

        event = AnalyticsEvent(
            content_type=data.content_type,
            content_id=data.content_id,
            kind=data.event,
            timestamp=self.time_provider.now(),
            quality=data.quality,
            bandwidth=data.bandwidth,
            error=data.error,
            buffering_duration_ms=data.buffering_duration,
            duration_ms=data.duration,
            session_id=session_id,
            metadata=data.custom_data or {},
        )
        self.record(event)
        return event

    def events(
        self,
        content_type: Optional[ContentType] = None,
        content_id: Optional[int] = None,
        kind: Optional[AnalyticsEventKind] = None,
    ) -> list[AnalyticsEvent]:
        """Matching events, newest first (later arrivals first on equal timestamps)."""
        matched = [
            (position, event)
            for position, event in enumerate(self._events)
            if self._matches(event, content_type, content_id)
            and (kind is None or event.kind is kind)
        ]
        matched.sort(key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
        return [event for _, event in matched]

    def latest_event(
        self,
        content_type: Optional[ContentType] = None,
        content_id: Optional[int] = None,
        kind: Optional[AnalyticsEventKind] = None,
    ) -> Optional[AnalyticsEvent]:
        found = self.events(content_type, content_id, kind)
        return found[0] if found else None

    def report(
        self,
        content_type: Optional[ContentType] = None,
        content_id: Optional[int] = None,
    ) -> AnalyticsReport:
        """
        Derive aggregates over the matching events.

        Events are ordered by timestamp (stable for equal timestamps) before
        order-dependent values are computed. Rates are 0.0 when there are no
        ``start`` events.
        """
        ordered = sorted(
            (e for e in self._events if self._matches(e, content_type, content_id)),
            key=lambda e: e.timestamp,
        )

        kind_counts = Counter(e.kind.value for e in ordered)
        starts = kind_counts.get(AnalyticsEventKind.START.value, 0)
        errors = kind_counts.get(AnalyticsEventKind.ERROR.value, 0)
        buffering = kind_counts.get(AnalyticsEventKind.BUFFERING.value, 0)

        bandwidths = [e.bandwidth for e in ordered if e.bandwidth is not None]
        qualities = [e.quality for e in ordered if e.quality]

        return AnalyticsReport(
            content_type=content_type,
            content_id=content_id,
            total_events=len(ordered),
            starts=starts,
            errors=errors,
            buffering_events=buffering,
            average_bandwidth=sum(bandwidths) / len(bandwidths) if bandwidths else None,
            most_used_quality=_most_used(qualities),
            error_rate=errors / starts if starts else 0.0,
            buffering_rate=buffering / starts if starts else 0.0,
            event_counts=dict(kind_counts),
            quality_distribution=dict(Counter(qualities)),
            buffering_by_day=self._buffering_by_day(ordered),
        )

    async def flush(self) -> None:
        """Wait for every pending delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver(self, event: AnalyticsEvent) -> None:
        try:
            await self.sink.send(event.to_payload())
        except Exception as e:
            self.metrics.increment(StreamMetrics.ANALYTICS_DELIVERY_FAILED)
            self.logger.warning(
                StreamEvents.ANALYTICS_DELIVERY_FAILED,
                kind=event.kind.value,
                content_type=event.content_type.value,
                content_id=event.content_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    @staticmethod
    def _matches(
        event: AnalyticsEvent,
        content_type: Optional[ContentType],
        content_id: Optional[int],
    ) -> bool:
        if content_type is not None and event.content_type is not content_type:
            return False
        return content_id is None or event.content_id == content_id

    @staticmethod
    def _buffering_by_day(ordered: list[AnalyticsEvent]) -> list[dict[str, Any]]:
        per_day: dict[str, list[int]] = defaultdict(list)
        for event in ordered:
            if event.kind is AnalyticsEventKind.BUFFERING and event.buffering_duration_ms is not None:
                day = datetime.fromtimestamp(event.timestamp, tz=timezone.utc).date().isoformat()
                per_day[day].append(event.buffering_duration_ms)
        return [
            {"date": day, "average_ms": sum(values) / len(values), "events": len(values)}
            for day, values in sorted(per_day.items())
        ]


__all__ = [
    "AnalyticsPayload",
    "AnalyticsSink",
    "HttpAnalyticsSink",
    "AnalyticsReport",
    "AnalyticsRecorder",
]

"""Unit tests for analytics recording and reporting."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from stream_delivery.analytics import AnalyticsRecorder, AnalyticsSink, HttpAnalyticsSink
from stream_delivery.config import AnalyticsConfig
from stream_delivery.exceptions import AnalyticsDeliveryError, AnalyticsValidationError
from stream_delivery.metrics import MetricsCollector, StreamMetrics
from stream_delivery.types import AnalyticsEvent, AnalyticsEventKind, ContentType


DAY = 86_400


def _event(kind, timestamp, content_id=7, **fields) -> AnalyticsEvent:
    return AnalyticsEvent(ContentType.CHANNEL, content_id, kind, timestamp, **fields)


class TestAnalyticsReport:
    """Test aggregates derived from the event log."""

    def test_error_rate(self, recorder):
        """Test ten starts and one error give an error rate of 0.1."""
        for i in range(10):
            recorder.record(_event(AnalyticsEventKind.START, 1000 + i, quality="720p"))
        recorder.record(_event(AnalyticsEventKind.ERROR, 2000, error="manifestLoadError"))

        report = recorder.report(ContentType.CHANNEL, 7)

        assert report.starts == 10
        assert report.errors == 1
        assert report.error_rate == pytest.approx(0.1)
        assert report.total_events == 11

    def test_no_starts(self, recorder):
        """Test rates are zero rather than undefined without start events."""
        recorder.record(_event(AnalyticsEventKind.ERROR, 1000))
        recorder.record(_event(AnalyticsEventKind.BUFFERING, 1001, buffering_duration_ms=300))

        report = recorder.report()

        assert report.error_rate == 0.0
        assert report.buffering_rate == 0.0

    def test_empty_report(self, recorder):
        report = recorder.report(ContentType.MOVIE, 1)

        assert report.total_events == 0
        assert report.average_bandwidth is None
        assert report.most_used_quality is None

    def test_filters_by_content(self, recorder):
        recorder.record(_event(AnalyticsEventKind.START, 1000, content_id=1))
        recorder.record(_event(AnalyticsEventKind.START, 1000, content_id=2))
        recorder.record(AnalyticsEvent(ContentType.MOVIE, 1, AnalyticsEventKind.START, 1000))

        assert recorder.report(ContentType.CHANNEL, 1).starts == 1
        assert recorder.report(ContentType.CHANNEL).starts == 2
        assert recorder.report().starts == 3

    def test_bandwidth_and_quality(self, recorder):
        """Test averages and the statistical mode of quality."""
        recorder.record(_event(AnalyticsEventKind.START, 1000, quality="720p", bandwidth=3000))
        recorder.record(
            _event(AnalyticsEventKind.QUALITY_CHANGE, 1001, quality="480p", bandwidth=1500)
        )
        recorder.record(_event(AnalyticsEventKind.QUALITY_CHANGE, 1002, quality="720p"))
        recorder.record(_event(AnalyticsEventKind.BANDWIDTH_CHANGE, 1003, bandwidth=4500))

        report = recorder.report()

        assert report.average_bandwidth == pytest.approx(3000)
        assert report.most_used_quality == "720p"
        assert report.quality_distribution == {"720p": 2, "480p": 1}

    def test_most_used_quality_tie_goes_to_earliest(self, recorder):
        """Test a tie is resolved by the first occurrence in time order."""
        # Recorded out of order; the 480p event is earlier in time
        recorder.record(_event(AnalyticsEventKind.START, 2000, quality="1080p"))
        recorder.record(_event(AnalyticsEventKind.START, 1000, quality="480p"))

        assert recorder.report().most_used_quality == "480p"

    def test_buffering_by_day(self, recorder):
        base = 1_700_006_400  # 2023-11-15T00:00:00Z
        recorder.record(_event(AnalyticsEventKind.START, base))
        recorder.record(_event(AnalyticsEventKind.BUFFERING, base + 10, buffering_duration_ms=400))
        recorder.record(_event(AnalyticsEventKind.BUFFERING, base + 20, buffering_duration_ms=800))
        recorder.record(
            _event(AnalyticsEventKind.BUFFERING, base + DAY, buffering_duration_ms=100)
        )

        report = recorder.report()

        assert report.buffering_rate == pytest.approx(3.0)
        assert report.buffering_by_day == [
            {"date": "2023-11-15", "average_ms": 600.0, "events": 2},
            {"date": "2023-11-16", "average_ms": 100.0, "events": 1},
        ]

    def test_to_dict(self, recorder):
        recorder.record(_event(AnalyticsEventKind.START, 1000))

        data = recorder.report(ContentType.CHANNEL, 7).to_dict()

        assert data["content_type"] == "channel"
        assert data["event_counts"] == {"start": 1}


class TestAnalyticsQueries:
    """Test event listing."""

    def test_newest_first(self, recorder):
        recorder.record(_event(AnalyticsEventKind.START, 1000))
        recorder.record(_event(AnalyticsEventKind.STOP, 3000))
        recorder.record(_event(AnalyticsEventKind.ERROR, 2000))

        kinds = [e.kind for e in recorder.events()]

        assert kinds == [AnalyticsEventKind.STOP, AnalyticsEventKind.ERROR, AnalyticsEventKind.START]

    def test_equal_timestamps_latest_arrival_first(self, recorder):
        recorder.record(_event(AnalyticsEventKind.ERROR, 1000))
        recorder.record(_event(AnalyticsEventKind.QUALITY_CHANGE, 1000))

        assert recorder.latest_event().kind is AnalyticsEventKind.QUALITY_CHANGE

    def test_filter_by_kind(self, recorder):
        recorder.record(_event(AnalyticsEventKind.START, 1000))
        recorder.record(_event(AnalyticsEventKind.ERROR, 1001))

        errors = recorder.events(kind=AnalyticsEventKind.ERROR)

        assert len(errors) == 1
        assert recorder.latest_event(ContentType.MOVIE) is None


class TestIngest:
    """Test validation of inbound wire records."""

    def test_valid_record(self, recorder, time_provider):
        event = recorder.ingest(
            {
                "contentType": "movie",
                "contentId": 42,
                "event": "buffering",
                "quality": "720p",
                "bufferingDuration": 1200,
                "customData": {"player": "web"},
            },
            session_id="s-1",
        )

        assert event.content_type is ContentType.MOVIE
        assert event.kind is AnalyticsEventKind.BUFFERING
        assert event.buffering_duration_ms == 1200
        assert event.timestamp == time_provider.now()
        assert event.metadata == {"player": "web"}
        assert len(recorder) == 1

    @pytest.mark.parametrize(
        "payload",
        [
            {"contentType": "podcast", "contentId": 1, "event": "start"},
            {"contentType": "channel", "contentId": "1", "event": "start"},
            {"contentType": "channel", "contentId": -1, "event": "start"},
            {"contentType": "channel", "contentId": 1, "event": "pause"},
            {"contentType": "channel", "contentId": 1, "event": "start", "bandwidth": -5},
            {"contentId": 1, "event": "start"},
        ],
    )
    def test_invalid_records(self, recorder, payload):
        with pytest.raises(AnalyticsValidationError) as exc_info:
            recorder.ingest(payload)

        assert exc_info.value.errors
        assert len(recorder) == 0


class TestDelivery:
    """Test background delivery to sinks."""

    @pytest.mark.asyncio
    async def test_delivers_payload(self, sink, time_provider):
        recorder = AnalyticsRecorder(sink=sink, time_provider=time_provider)

        recorder.record(_event(AnalyticsEventKind.START, 1000, quality="720p"))
        await recorder.flush()

        assert sink.payloads == [
            {"contentType": "channel", "contentId": 7, "event": "start", "quality": "720p"},
        ]

    @pytest.mark.asyncio
    async def test_delivery_counts_failures(self, time_provider):
        sink = AsyncMock(spec=AnalyticsSink)
        sink.send.side_effect = AnalyticsDeliveryError("rejected", http_status=503)
        metrics = MagicMock(spec=MetricsCollector)
        recorder = AnalyticsRecorder(sink=sink, time_provider=time_provider, metrics=metrics)

        recorder.record(_event(AnalyticsEventKind.ERROR, 1000, error="manifestLoadError"))
        await recorder.flush()

        sink.send.assert_awaited_once_with(
            {"contentType": "channel", "contentId": 7, "event": "error", "error": "manifestLoadError"}
        )
        metrics.increment.assert_any_call(StreamMetrics.ANALYTICS_DELIVERY_FAILED)

    @pytest.mark.asyncio
    async def test_sink_failure_is_contained(self, sink, time_provider):
        sink.fail = True
        recorder = AnalyticsRecorder(sink=sink, time_provider=time_provider)

        recorder.record(_event(AnalyticsEventKind.ERROR, 1000))
        await recorder.flush()

        assert len(recorder) == 1

    @pytest.mark.asyncio
    async def test_disabled_delivery(self, sink, time_provider):
        recorder = AnalyticsRecorder(
            sink=sink, config=AnalyticsConfig(enabled=False), time_provider=time_provider
        )

        recorder.record(_event(AnalyticsEventKind.START, 1000))
        await recorder.flush()

        assert sink.payloads == []
        assert len(recorder) == 1

    def test_record_without_event_loop(self, sink):
        """Test recording outside a running loop still appends."""
        recorder = AnalyticsRecorder(sink=sink)

        recorder.record(_event(AnalyticsEventKind.START, 1000))

        assert len(recorder) == 1


class TestHttpAnalyticsSink:
    """Test the HTTP sink."""

    @pytest.mark.asyncio
    async def test_posts_json(self, make_client):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(201)

        sink = HttpAnalyticsSink(make_client(handler), "https://api.example/analytics")

        await sink.send({"contentType": "channel", "contentId": 7, "event": "start"})

        assert received[0].method == "POST"
        assert json.loads(received[0].content) == {
            "contentType": "channel", "contentId": 7, "event": "start",
        }

    @pytest.mark.asyncio
    async def test_rejected(self, make_client):
        sink = HttpAnalyticsSink(
            make_client(lambda request: httpx.Response(500)), "https://api.example/analytics"
        )

        with pytest.raises(AnalyticsDeliveryError) as exc_info:
            await sink.send({"event": "start"})

        assert exc_info.value.http_status == 500

    @pytest.mark.asyncio
    async def test_transport_error(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        sink = HttpAnalyticsSink(make_client(handler), "https://api.example/analytics")

        with pytest.raises(AnalyticsDeliveryError):
            await sink.send({"event": "start"})

"""Pytest configuration and shared fixtures for stream delivery tests."""

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
import structlog


sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from stream_delivery.analytics import AnalyticsRecorder, AnalyticsSink
from stream_delivery.catalog import InMemoryCatalog
from stream_delivery.engine import PlaybackEngine
from stream_delivery.exceptions import PlaybackEngineError
from stream_delivery.quality import PlaybackTuning
from stream_delivery.sources import SourceSet
from stream_delivery.time_provider import SimulatedTimeProvider
from stream_delivery.types import ContentType


# ==================== Test Doubles ====================


class FakeEngine(PlaybackEngine):
    """Scripted playback engine.

    URLs in ``failing`` raise a fatal ``PlaybackEngineError`` on attach, URLs in
    ``non_fatal`` raise a recoverable one. Every attach is recorded.
    While ``detach_gate`` is set, ``detach`` waits on it.
    """

    def __init__(self, failing=(), non_fatal=()):
        self.failing = set(failing)
        self.non_fatal = set(non_fatal)
        self.attached: list[str] = []
        self.tunings: list[PlaybackTuning] = []
        self.detach_calls = 0
        self.current: str | None = None
        self.detach_gate: asyncio.Event | None = None

    async def attach(self, url: str, tuning: PlaybackTuning) -> None:
        self.attached.append(url)
        self.tunings.append(tuning)
        if url in self.failing:
            raise PlaybackEngineError("manifestLoadError", fatal=True, url=url)
        if url in self.non_fatal:
            raise PlaybackEngineError("fragLoadError", fatal=False, url=url)
        self.current = url

    async def detach(self) -> None:
        self.detach_calls += 1
        if self.detach_gate is not None:
            await self.detach_gate.wait()
        self.current = None


class CollectingSink(AnalyticsSink):
    """Analytics sink that keeps every payload; optionally fails."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.payloads: list[dict[str, Any]] = []

    async def send(self, payload: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.payloads.append(payload)


class SteppingClock:
    """Monotonic clock that advances by ``step`` seconds on every call."""

    def __init__(self, step: float, start: float = 0.0):
        self.step = step
        self.value = start

    def __call__(self) -> float:
        current = self.value
        self.value += self.step
        return current


# ==================== Pytest Configuration ====================


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Keep structlog context from leaking between tests."""
    yield
    structlog.contextvars.clear_contextvars()


# ==================== Time Fixtures ====================


@pytest.fixture
def time_provider() -> SimulatedTimeProvider:
    """Virtual clock starting at a fixed epoch."""
    return SimulatedTimeProvider(initial_time=1_700_000_000.0)


# ==================== HTTP Fixtures ====================


@pytest.fixture
def make_client() -> Callable[[Callable], httpx.AsyncClient]:
    """Factory for httpx clients backed by a MockTransport handler."""

    def _make(handler: Callable) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


# ==================== Component Fixtures ====================


@pytest.fixture
def engine() -> FakeEngine:
    """Engine that plays every URL."""
    return FakeEngine()


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def recorder(time_provider) -> AnalyticsRecorder:
    """Recorder without delivery."""
    return AnalyticsRecorder(time_provider=time_provider)


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@pytest.fixture
def three_sources() -> SourceSet:
    """Three HLS sources with distinct priorities."""
    return SourceSet.from_raw(
        [
            {"url": "https://cdn-c.example/live.m3u8", "priority": 3, "format": "hls"},
            {"url": "https://cdn-a.example/live.m3u8", "priority": 1, "format": "hls"},
            {"url": "https://cdn-b.example/live.m3u8", "priority": 2, "format": "hls"},
        ],
        (ContentType.CHANNEL, 7),
    )


@pytest.fixture
def make_clock() -> Callable[..., SteppingClock]:
    """Factory for stepping request clocks."""
    return SteppingClock

"""
Network prober.

Measures round-trip time with one HEAD request and throughput with a few
sequential timed downloads, then classifies the connection into a coarse
``QualityHint``. The prober absorbs every network failure: callers always get
``NetworkStats`` back. Only cancellation of the whole probe propagates.
"""

import asyncio
import time
from typing import Callable, Optional

import httpx

from .config import ProbeOptions
from .events import StreamEvents
from .log_config import get_context_logger
from .logging import get_logging_config
from .metrics import MetricLabels, MetricsCollector, NoOpMetrics, StreamMetrics
from .time_provider import RealtimeTimeProvider, TimeProvider
from .types import NetworkStats, QualityHint


NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}

HIGH_BANDWIDTH_KBPS = 5000
MEDIUM_BANDWIDTH_KBPS = 2000
HIGH_RTT_MS = 50
MEDIUM_RTT_MS = 200


def hint_from_bandwidth(bandwidth_kbps: float) -> QualityHint:
    """Classify measured throughput: >5000 high, >2000 medium, else low."""
    if bandwidth_kbps > HIGH_BANDWIDTH_KBPS:
        return QualityHint.HIGH
    if bandwidth_kbps > MEDIUM_BANDWIDTH_KBPS:
        return QualityHint.MEDIUM
    return QualityHint.LOW


def hint_from_rtt(rtt_ms: float) -> QualityHint:
    """Classify latency when no throughput sample succeeded."""
    if rtt_ms < HIGH_RTT_MS:
        return QualityHint.HIGH
    if rtt_ms < MEDIUM_RTT_MS:
        return QualityHint.MEDIUM
    return QualityHint.LOW


class NetworkProber:
    """
    Estimate bandwidth and latency toward the delivery network.

    Args:
        http_client: httpx client used for the RTT and sample requests
        options: Default probe options used when ``probe()`` gets none
        time_provider: Clock used for timestamps and the delay between samples
        metrics: Metrics collector
        clock: Monotonic clock used to time requests

    Examples:
        >>> prober = NetworkProber(
        ...     http_client=get_probe_http_client(),
        ...     options=ProbeOptions(rtt_url="https://cdn.example/ping",
        ...                          bandwidth_url="https://cdn.example/sample"),
        ... )
        >>> stats = await prober.probe()
        >>> stats.quality_hint
        <QualityHint.HIGH: 'high'>
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        options: Optional[ProbeOptions] = None,
        time_provider: Optional[TimeProvider] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.http_client = http_client
        self.options = options or ProbeOptions()
        self.time_provider = time_provider or RealtimeTimeProvider()
        self.metrics = metrics or NoOpMetrics()
        self._clock = clock
        self.last_stats: Optional[NetworkStats] = None
        self.logger = get_context_logger("network_prober")

    async def probe(self, options: Optional[ProbeOptions] = None) -> NetworkStats:
        """
        Run one probe.

        Returns the structured default (no bandwidth, no RTT, hint ``auto``)
        when the RTT request fails; otherwise a measurement whose hint comes
        from bandwidth, or from RTT when every sample failed.

        Raises:
            asyncio.CancelledError: Only if the caller cancels the probe
        """
        options = options or self.options
        self.logger.debug(
            StreamEvents.PROBE_STARTED,
            rtt_url=options.rtt_url,
            bandwidth_url=options.bandwidth_url,
            sample_size=options.sample_size,
        )

        rtt_ms = await self._measure_rtt(options)
        if rtt_ms is None:
            stats = NetworkStats(sampled_at=self.time_provider.now())
            self.metrics.increment(
                StreamMetrics.PROBER_RUNS_TOTAL, labels={MetricLabels.RESULT: "rtt_failed"}
            )
            self.last_stats = stats
            return stats

        samples: list[float] = []
        for attempt in range(options.sample_size):
            if attempt:
                await self.time_provider.sleep(options.sample_delay)
            kbps = await self._sample_bandwidth(options, attempt)
            if kbps is not None:
                samples.append(kbps)

        if samples:
            bandwidth = sum(samples) / len(samples)
            hint = hint_from_bandwidth(bandwidth)
        else:
            bandwidth = 0.0
            hint = hint_from_rtt(rtt_ms)

        stats = NetworkStats(
            bandwidth_kbps=round(bandwidth, 2),
            rtt_ms=round(rtt_ms, 2),
            sampled_at=self.time_provider.now(),
            quality_hint=hint,
            samples_ok=len(samples),
            samples_total=options.sample_size,
        )
        self.last_stats = stats

        if stats.degraded:
            self.logger.warning(
                StreamEvents.PROBE_DEGRADED,
                rtt_ms=stats.rtt_ms,
                quality_hint=hint.value,
                samples_total=stats.samples_total,
            )
            self.metrics.increment(StreamMetrics.PROBER_DEGRADED_TOTAL)
        else:
            self.metrics.histogram(StreamMetrics.PROBER_BANDWIDTH_KBPS, stats.bandwidth_kbps)

        self.metrics.increment(
            StreamMetrics.PROBER_RUNS_TOTAL, labels={MetricLabels.RESULT: "success"}
        )
        self.metrics.histogram(StreamMetrics.PROBER_RTT_MS, stats.rtt_ms)
        self.logger.info(
            StreamEvents.PROBE_COMPLETED,
            bandwidth_kbps=stats.bandwidth_kbps,
            rtt_ms=stats.rtt_ms,
            quality_hint=hint.value,
            samples_ok=stats.samples_ok,
            samples_total=stats.samples_total,
        )
        return stats

    async def _measure_rtt(self, options: ProbeOptions) -> Optional[float]:
        if not options.rtt_url:
            self.logger.warning(StreamEvents.PROBE_RTT_FAILED, error="no rtt_url configured")
            return None

        start = self._clock()
        try:
            await asyncio.wait_for(
                self.http_client.head(options.rtt_url, headers=NO_CACHE_HEADERS),
                timeout=options.sample_timeout,
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                StreamEvents.PROBE_RTT_FAILED,
                url=options.rtt_url,
                error="timeout",
                timeout=options.sample_timeout,
            )
            return None
        except Exception as e:
            self.logger.warning(
                StreamEvents.PROBE_RTT_FAILED,
                url=options.rtt_url,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        return (self._clock() - start) * 1000

    async def _sample_bandwidth(self, options: ProbeOptions, attempt: int) -> Optional[float]:
        """Download one payload and return KB/s, or None if the sample failed."""
        params = {
            "bytes": options.payload_bytes,
            "ts": f"{int(self.time_provider.now() * 1000)}-{attempt}",
        }
        start = self._clock()
        try:
            response = await asyncio.wait_for(
                self.http_client.get(
                    options.bandwidth_url, params=params, headers=NO_CACHE_HEADERS
                ),
                timeout=options.sample_timeout,
            )
        except asyncio.TimeoutError:
            self._sample_failed(options, attempt, "timeout")
            return None
        except Exception as e:
            self._sample_failed(options, attempt, str(e) or type(e).__name__)
            return None

        elapsed = self._clock() - start
        if not response.is_success:
            self._sample_failed(options, attempt, f"HTTP {response.status_code}")
            return None

        size_kb = len(response.content) / 1024
        if size_kb <= 0:
            self._sample_failed(options, attempt, "empty body")
            return None

        kbps = size_kb / max(elapsed, 1e-6)
        if get_logging_config().should_log_debug("bandwidth_sample"):
            self.logger.debug(
                StreamEvents.PROBE_SAMPLE,
                attempt=attempt,
                size_kb=round(size_kb, 1),
                seconds=round(elapsed, 4),
                kbps=round(kbps, 1),
            )
        return kbps

    def _sample_failed(self, options: ProbeOptions, attempt: int, error: str) -> None:
        self.metrics.increment(StreamMetrics.PROBER_SAMPLES_FAILED)
        self.logger.debug(
            StreamEvents.PROBE_SAMPLE_FAILED,
            url=options.bandwidth_url,
            attempt=attempt,
            error=error,
        )


__all__ = [
    "NetworkProber",
    "hint_from_bandwidth",
    "hint_from_rtt",
    "NO_CACHE_HEADERS",
]

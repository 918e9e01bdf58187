"""
Abstract base class for metrics collection.

Components take a ``MetricsCollector`` and default to ``NoOpMetrics`` so that
metrics never sit on the playback or monitoring control path.
"""

from abc import ABC, abstractmethod


class MetricsCollector(ABC):
    """
    Abstract base class for metrics collection.

    Implementations must be safe to call from any coroutine and must not raise
    into the caller.
    """

    @abstractmethod
    def increment(
        self, metric: str, value: int = 1, labels: dict[str, str] | None = None
    ) -> None:
        """
        Increment a counter metric.

        Args:
            metric: Metric name (e.g., 'stream.monitor.probes.total')
            value: Amount to increment (default: 1)
            labels: Optional labels (e.g., {'format': 'hls', 'result': 'online'})
        """
        pass

    @abstractmethod
    def histogram(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        """
        Record a histogram/timing metric.

        Args:
            metric: Metric name (e.g., 'stream.monitor.cycle.duration')
            value: Value to record
            labels: Optional labels
        """
        pass

    @abstractmethod
    def gauge(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        """
        Adjust a gauge metric.

        Args:
            metric: Metric name (e.g., 'stream.session.active')
            value: Positive to increase, negative to decrease
            labels: Optional labels
        """
        pass

    def timing(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        """Record a duration in milliseconds (wrapper for histogram)."""
        self.histogram(metric, value, labels)


class NoOpMetrics(MetricsCollector):
    """No-operation metrics collector (default)."""

    def increment(
        self, metric: str, value: int = 1, labels: dict[str, str] | None = None
    ) -> None:
        """No-op increment."""
        pass

    def histogram(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        """No-op histogram."""
        pass

    def gauge(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        """No-op gauge."""
        pass


__all__ = ["MetricsCollector", "NoOpMetrics"]

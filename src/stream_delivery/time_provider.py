"""
Time Provider Abstraction

Pluggable clock used by playback sessions, the health monitor and its
scheduler. Production code runs on ``RealtimeTimeProvider``; tests drive
``SimulatedTimeProvider`` so batch delays and monitor intervals complete
instantly while still being observable.
"""

import asyncio
import time
from abc import ABC, abstractmethod

from .log_config import get_context_logger


class TimeProvider(ABC):
    """
    Abstract base class for time providers.

    ``now()`` returns seconds since the Unix epoch (real or virtual) and is
    used to stamp analytics events and health checks. ``sleep()`` is the only
    way components wait.
    """

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Sleep for the given duration.

        Args:
            seconds: Duration to sleep (wall-clock for real, virtual for simulated)
        """
        pass

    def elapsed_time(self, start_time: float) -> float:
        """Seconds elapsed since ``start_time`` (an earlier ``now()`` value)."""
        return self.now() - start_time

    @abstractmethod
    def get_mode(self) -> str:
        """Get time provider mode identifier."""
        pass


class RealtimeTimeProvider(TimeProvider):
    """
    Wall-clock time provider.

    Examples:
        >>> provider = RealtimeTimeProvider()
        >>> start = provider.now()
        >>> await provider.sleep(1.0)
        >>> assert 0.95 < provider.elapsed_time(start) < 1.1
    """

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def get_mode(self) -> str:
        return "realtime"


class SimulatedTimeProvider(TimeProvider):
    """
    Virtual clock for deterministic tests.

    ``sleep()`` advances virtual time by ``seconds * speed`` and yields to the
    event loop once instead of waiting. Every requested sleep is recorded in
    ``sleeps`` so tests can assert on batch delays and intervals.

    Examples:
        >>> provider = SimulatedTimeProvider(initial_time=1_700_000_000.0)
        >>> await provider.sleep(300)
        >>> provider.now()
        1700000300.0
        >>> provider.sleeps
        [300]
    """

    def __init__(self, speed: float = 1.0, initial_time: float = 0.0):
        """
        Initialize simulated time provider.

        Args:
            speed: Speed multiplier for virtual time (1.0 = normal)
            initial_time: Starting virtual time

        Raises:
            ValueError: If speed <= 0
        """
        if speed <= 0:
            raise ValueError(f"Speed must be positive, got {speed}")

        self.speed = speed
        self.virtual_time = initial_time
        self.sleeps: list[float] = []
        self.logger = get_context_logger("simulated_time_provider")

    def now(self) -> float:
        return self.virtual_time

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.virtual_time += seconds * self.speed
        # Yield so other tasks (batch members, cancellations) get to run
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        """Move virtual time forward without sleeping."""
        self.virtual_time += seconds

    def get_mode(self) -> str:
        return "simulated"

    def set_speed(self, speed: float) -> None:
        """Change simulation speed.

        Raises:
            ValueError: If speed <= 0
        """
        if speed <= 0:
            raise ValueError(f"Speed must be positive, got {speed}")
        self.speed = speed
        self.logger.debug("Simulation speed changed", speed=speed)


def create_time_provider(mode: str = "real", **kwargs) -> TimeProvider:
    """
    Factory function to create a time provider.

    Args:
        mode: 'real' or 'simulated'
        **kwargs: Passed to SimulatedTimeProvider

    Examples:
        >>> provider = create_time_provider("simulated", initial_time=0.0)
    """
    if mode == "simulated":
        return SimulatedTimeProvider(**kwargs)
    return RealtimeTimeProvider()


__all__ = [
    "TimeProvider",
    "RealtimeTimeProvider",
    "SimulatedTimeProvider",
    "create_time_provider",
]

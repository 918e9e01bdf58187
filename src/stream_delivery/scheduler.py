"""
Recurring task scheduler.

A ``RecurringScheduler`` owns one asyncio task that runs a coroutine function
every ``interval`` seconds, starting immediately. It is an ordinary object
handed to whoever needs it, so several schedulers (and monitors) can coexist
in one process and tests can drive them with a simulated clock.
"""

import asyncio
import contextlib
from typing import Any, Awaitable, Callable, Optional

from .events import StreamEvents
from .log_config import get_context_logger
from .time_provider import RealtimeTimeProvider, TimeProvider


class RecurringScheduler:
    """
    Run a coroutine function on a fixed interval.

    Runs are spaced start-to-start: a run that takes ``d`` seconds is followed
    by a pause of ``max(0, interval - d)``. An exception raised by a run is
    logged and the schedule continues.

    Examples:
        >>> scheduler = RecurringScheduler(interval=300, name="health_monitor")
        >>> scheduler.start(monitor.run_cycle)
        >>> ...
        >>> await scheduler.stop()
    """

    def __init__(
        self,
        interval: float,
        time_provider: Optional[TimeProvider] = None,
        name: str = "scheduler",
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.time_provider = time_provider or RealtimeTimeProvider()
        self.name = name
        self.runs = 0
        self.failures = 0
        self.last_error: Optional[BaseException] = None
        self._task: Optional[asyncio.Task] = None
        self._stop_requested = False
        self.logger = get_context_logger(f"scheduler.{name}")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, func: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """
        Start the schedule; the first run happens immediately.

        Raises:
            RuntimeError: If the scheduler is already running
        """
        if self.running:
            raise RuntimeError(f"Scheduler {self.name} is already running")
        self._stop_requested = False
        self._task = asyncio.create_task(self._loop(func), name=f"scheduler:{self.name}")
        return self._task

    def request_stop(self) -> None:
        """Finish the current run, then exit the loop."""
        self._stop_requested = True

    async def stop(self) -> None:
        """Cancel the schedule and wait for the task to finish."""
        self._stop_requested = True
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _loop(self, func: Callable[[], Awaitable[Any]]) -> None:
        while not self._stop_requested:
            started = self.time_provider.now()
            try:
                await func()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failures += 1
                self.last_error = e
                self.logger.exception(
                    StreamEvents.MONITOR_CYCLE_FAILED,
                    scheduler=self.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            self.runs += 1

            if self._stop_requested:
                break
            elapsed = self.time_provider.elapsed_time(started)
            await self.time_provider.sleep(max(0.0, self.interval - elapsed))


__all__ = ["RecurringScheduler"]

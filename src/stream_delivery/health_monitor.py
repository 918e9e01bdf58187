"""
Source health monitor.

Periodically walks the whole catalog and records, per content item, whether
at least one of its sources is reachable. Items are checked in fixed-size
batches: members of a batch run concurrently, batches run one after another
with a short pause between them to spread load on upstream servers.

Each item writes only its own health row, so batch members share no state.
Failures are contained at three levels: a failed probe marks one source
unreachable, a failed item is logged and counted without affecting the rest
of its batch, and a failed cycle is logged by the scheduler, which still runs
the next one.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from .catalog import CatalogService
from .config import HealthMonitorConfig
from .events import StreamEvents
from .exceptions import ProbeError
from .log_config import get_context_logger
from .logging import LoggingContext, get_logging_config
from .metrics import MetricLabels, MetricsCollector, NoOpMetrics, StreamMetrics
from .probes import ProbeRegistry
from .scheduler import RecurringScheduler
from .sources import SourceSet
from .time_provider import RealtimeTimeProvider, TimeProvider
from .types import ChannelHealth, ContentItem, HealthStatus, StreamSource


@dataclass
class CycleReport:
    """Outcome of one monitor cycle."""

    started_at: float
    finished_at: Optional[float] = None
    batches: int = 0
    items_checked: int = 0
    online: int = 0
    offline: int = 0
    errors: int = 0
    failed_items: list[dict[str, Any]] = field(default_factory=list)

    @property
    def duration(self) -> float:
        if self.finished_at is None:
            return 0.0
        return self.finished_at - self.started_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration": self.duration,
            "batches": self.batches,
            "items_checked": self.items_checked,
            "online": self.online,
            "offline": self.offline,
            "errors": self.errors,
            "failed_items": list(self.failed_items),
        }


class HealthMonitor:
    """
    Recurring reachability check over every catalog item.

    Args:
        catalog: Source of content items and sink for health rows
        http_client: Client used by the format probes
        config: Interval, batching and timeout settings
        registry: Format probe registry (built from ``config`` when omitted)
        scheduler: Scheduler that drives ``run_cycle``; a new one is created
            per monitor when omitted
        time_provider: Clock for timestamps and the pause between batches
        metrics: Metrics collector

    Examples:
        >>> monitor = HealthMonitor(catalog, http_client=get_probe_http_client())
        >>> await monitor.start()          # first cycle runs immediately
        >>> report = await monitor.run_cycle()   # or drive cycles by hand
        >>> report.online, report.offline
        (41, 3)
        >>> await monitor.stop()
    """

    def __init__(
        self,
        catalog: CatalogService,
        http_client: httpx.AsyncClient,
        config: Optional[HealthMonitorConfig] = None,
        registry: Optional[ProbeRegistry] = None,
        scheduler: Optional[RecurringScheduler] = None,
        time_provider: Optional[TimeProvider] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.catalog = catalog
        self.http_client = http_client
        self.config = config or HealthMonitorConfig()
        self.registry = registry or ProbeRegistry.default(
            timeout=self.config.probe_timeout,
            require_range_support=self.config.require_range_support,
        )
        self.time_provider = time_provider or RealtimeTimeProvider()
        self.scheduler = scheduler or RecurringScheduler(
            self.config.interval, time_provider=self.time_provider, name="health_monitor"
        )
        self.metrics = metrics or NoOpMetrics()
        self.last_report: Optional[CycleReport] = None
        self.logger = get_context_logger("health_monitor")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    async def start(self) -> None:
        """Start the recurring schedule. The first cycle runs immediately."""
        if not self.config.enabled:
            self.logger.info(StreamEvents.MONITOR_STOPPED, reason="disabled by configuration")
            return
        self.scheduler.start(self.run_cycle)
        self.logger.info(
            StreamEvents.MONITOR_STARTED,
            interval=self.scheduler.interval,
            batch_size=self.config.batch_size,
            batch_delay=self.config.batch_delay,
        )

    async def stop(self) -> None:
        await self.scheduler.stop()
        self.logger.info(StreamEvents.MONITOR_STOPPED)

    async def run_cycle(self) -> CycleReport:
        """
        Check every catalog item once.

        Returns:
            CycleReport with per-status counts

        Raises:
            Exception: Whatever ``catalog.list_content()`` raises; the scheduler
                logs it and keeps the schedule alive
        """
        async with LoggingContext(operation="health_cycle") as ctx:
            report = CycleReport(started_at=self.time_provider.now())
            try:
                items = await self.catalog.list_content()
            except Exception:
                self.metrics.increment(StreamMetrics.MONITOR_CYCLES_FAILED)
                raise
            batch_size = self.config.batch_size
            batches = [items[i:i + batch_size] for i in range(0, len(items), batch_size)]

            self.logger.info(
                StreamEvents.MONITOR_CYCLE_STARTED,
                items=len(items),
                batches=len(batches),
            )

            for index, batch in enumerate(batches):
                results = await asyncio.gather(
                    *(self.check_item(item) for item in batch),
                    return_exceptions=True,
                )
                report.batches += 1

                for item, result in zip(batch, results):
                    report.items_checked += 1
                    if isinstance(result, BaseException):
                        self._record_item_failure(report, item, result)
                    elif result.status is HealthStatus.ONLINE:
                        report.online += 1
                    else:
                        report.offline += 1

                if index < len(batches) - 1:
                    await self.time_provider.sleep(self.config.batch_delay)

            report.finished_at = self.time_provider.now()
            ctx.set_namespace(
                "result",
                online=report.online,
                offline=report.offline,
                errors=report.errors,
            )

        self.last_report = report
        self.metrics.increment(StreamMetrics.MONITOR_CYCLES_TOTAL)
        self.metrics.histogram(StreamMetrics.MONITOR_CYCLE_DURATION_MS, report.duration * 1000)
        self.logger.info(
            StreamEvents.MONITOR_CYCLE_COMPLETED,
            request_id=ctx.request_id,
            **report.to_dict(),
        )
        return report

    async def check_item(self, item: ContentItem) -> ChannelHealth:
        """
        Probe an item's sources in priority order and upsert its health row.

        The first reachable source marks the item online. Malformed or empty
        source data marks it offline.
        """
        content = f"{item.content_type.value}:{item.content_id}"
        with LoggingContext(operation="check_item", probe={"content": content}):
            sources = SourceSet.from_raw(item.sources, item.ref)

            status = HealthStatus.OFFLINE
            reachable_url = None
            for source in sources:
                if await self.probe_source(source):
                    status = HealthStatus.ONLINE
                    reachable_url = source.url
                    break

            health = await self.catalog.upsert_health(
                item.content_type, item.content_id, status, self.time_provider.now()
            )
            self.metrics.increment(
                StreamMetrics.MONITOR_ITEMS_CHECKED,
                labels={
                    MetricLabels.CONTENT_TYPE: item.content_type.value,
                    MetricLabels.RESULT: status.value,
                },
            )
            self.logger.info(
                StreamEvents.MONITOR_ITEM_CHECKED,
                content=content,
                status=status.value,
                sources=len(sources),
                reachable_url=reachable_url,
            )
            return health

    async def probe_source(self, source: StreamSource) -> bool:
        """Run the format probe for one source; any failure means unreachable."""
        strategy = self.registry.get(source.format)
        labels = {MetricLabels.FORMAT: source.format}
        self.metrics.increment(StreamMetrics.MONITOR_PROBES_TOTAL, labels=labels)

        if get_logging_config().should_log_debug("probe_source"):
            self.logger.debug(
                StreamEvents.MONITOR_SOURCE_PROBING,
                url=source.url,
                strategy=strategy.get_identifier(),
            )

        try:
            await strategy.run(self.http_client, source.url)
        except ProbeError as e:
            self.metrics.increment(StreamMetrics.MONITOR_PROBES_FAILED, labels=labels)
            self.logger.debug(
                StreamEvents.MONITOR_SOURCE_UNREACHABLE,
                url=source.url,
                format=source.format,
                error=str(e),
            )
            return False
        except Exception as e:
            self.metrics.increment(StreamMetrics.MONITOR_PROBES_FAILED, labels=labels)
            self.logger.warning(
                StreamEvents.MONITOR_SOURCE_UNREACHABLE,
                url=source.url,
                format=source.format,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True

    def _record_item_failure(
        self, report: CycleReport, item: ContentItem, error: BaseException
    ) -> None:
        report.errors += 1
        report.failed_items.append({
            "content_type": item.content_type.value,
            "content_id": item.content_id,
            "error": str(error),
            "error_type": type(error).__name__,
        })
        self.metrics.increment(
            StreamMetrics.MONITOR_ITEM_ERRORS,
            labels={MetricLabels.ERROR_TYPE: type(error).__name__},
        )
        self.logger.error(
            StreamEvents.MONITOR_ITEM_FAILED,
            content_type=item.content_type.value,
            content_id=item.content_id,
            error=str(error),
            error_type=type(error).__name__,
        )


__all__ = ["HealthMonitor", "CycleReport"]

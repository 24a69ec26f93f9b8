"""Periodic scrape cycle: discover agents, fetch their targets, publish health."""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..collectors.agent_directory import AgentDirectoryClient
from ..collectors.base import DiscoveryError
from ..collectors.target_fetcher import TargetFetcher
from ..config.models import SchedulerConfig
from ..utils.metrics import HealthSeriesKey
from .aggregator import HealthAggregator
from .exporter import ExporterMetrics
from .health_registry import HealthRegistry

JOB_ID = "scrape_cycle"


class CycleState(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    AGGREGATING = "aggregating"


@dataclass
class CycleReport:
    """Summary of one run_cycle() call."""

    result: str  # "completed", "skipped" or "discovery_failed"
    agents: int = 0
    succeeded: int = 0
    failed: int = 0
    series_updated: int = 0
    skipped_targets: int = 0
    duration_seconds: float = 0.0
    error: Optional[str] = None


def agent_host(address: str) -> str:
    """Strip the port from host:port or [v6]:port."""
    host = address.rsplit(":", 1)[0]
    return host.strip("[]")


class ScrapeScheduler:
    """
    Runs the discovery, fetch and aggregate cycle on a fixed interval.

    At most one cycle is in flight. A call to run_cycle() while another is
    running returns a "skipped" report without touching the registry, and
    the periodic job is registered with max_instances=1 as well.

    Example:
        scheduler = ScrapeScheduler(directory, fetcher, aggregator, registry, config)
        await scheduler.run_cycle()   # drive one cycle directly
        scheduler.start()             # or run every interval_seconds
    """

    def __init__(
        self,
        directory: AgentDirectoryClient,
        fetcher: TargetFetcher,
        aggregator: HealthAggregator,
        registry: HealthRegistry,
        config: SchedulerConfig,
        logger: logging.Logger = None,
        metrics: Optional[ExporterMetrics] = None,
        clock: Callable[[], float] = time.time,
        agent_id: str = "host"
    ):
        """
        Initialize scrape scheduler.

        Args:
            directory: Agent directory client
            fetcher: Target fetcher
            aggregator: Health aggregator
            registry: Registry this scheduler publishes to
            config: Scheduling configuration
            logger: Optional logger instance
            metrics: Optional exporter self-metrics to update
            clock: Wall clock used to timestamp published snapshots
            agent_id: "host" or "address", the form of the agent label
        """
        self.directory = directory
        self.fetcher = fetcher
        self.aggregator = aggregator
        self.registry = registry
        self.config = config
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)
        self.metrics = metrics
        self.clock = clock
        self.agent_id = agent_id

        self.state = CycleState.IDLE
        self._cycle_lock = asyncio.Lock()
        self._scheduler: Optional[AsyncIOScheduler] = None

    def _agent_label(self, address: str) -> str:
        return agent_host(address) if self.agent_id == "host" else address

    async def run_cycle(self) -> CycleReport:
        """
        Execute one complete scrape cycle unless one is already running.

        Returns:
            CycleReport: Outcome of this call
        """
        if self._cycle_lock.locked():
            self.logger.warning(
                f"Previous scrape cycle still {self.state.value}, skipping this tick"
            )
            self._record("skipped")
            return CycleReport(result="skipped")

        async with self._cycle_lock:
            try:
                return await self._run_cycle()
            except Exception as e:
                self.logger.error(
                    "Scrape cycle failed",
                    exc_info=True,
                    extra={"error_type": type(e).__name__, "error_message": str(e)}
                )
                raise
            finally:
                self.state = CycleState.IDLE

    async def _run_cycle(self) -> CycleReport:
        start_time = time.monotonic()

        self.state = CycleState.RESOLVING
        try:
            addresses = await self.directory.resolve()
        except DiscoveryError as e:
            self.logger.error(f"Agent discovery failed, skipping cycle: {e}")
            self._record("discovery_failed")
            return CycleReport(
                result="discovery_failed",
                duration_seconds=time.monotonic() - start_time,
                error=str(e)
            )

        if self.metrics:
            self.metrics.set_agents_discovered(len(addresses))

        if not addresses:
            duration = time.monotonic() - start_time
            self.logger.info("No agents discovered, registry left unchanged")
            self._record("completed")
            if self.metrics:
                self.metrics.set_last_cycle(duration, self.clock())
            return CycleReport(result="completed", duration_seconds=duration)

        self.state = CycleState.FETCHING
        results = await self.fetcher.fetch_all(addresses)

        self.state = CycleState.AGGREGATING
        report = CycleReport(result="completed", agents=len(addresses))
        upserts: List[Tuple[HealthSeriesKey, float]] = []
        for fetch in results:
            agent = self._agent_label(fetch.address)
            if not fetch.ok:
                report.failed += 1
                if self.metrics:
                    self.metrics.record_fetch_failure(agent)
                continue

            aggregated = self.aggregator.apply(agent, fetch.document)
            upserts.extend(aggregated.upserts)
            report.succeeded += 1
            report.skipped_targets += aggregated.skipped

        now = self.clock()
        snapshot = self.registry.publish(upserts, now=now)

        report.series_updated = len(upserts)
        report.duration_seconds = time.monotonic() - start_time

        self.logger.info(
            f"Scrape cycle {snapshot.cycle} completed in {report.duration_seconds:.1f}s: "
            f"{report.succeeded}/{report.agents} agents ok, "
            f"{report.series_updated} series updated, {len(snapshot)} published"
        )
        if report.failed:
            self.logger.warning(f"{report.failed} agents failed this cycle")

        self._record("completed")
        if self.metrics:
            self.metrics.record_skipped_targets(report.skipped_targets)
            self.metrics.set_last_cycle(report.duration_seconds, now)
        return report

    def _record(self, result: str) -> None:
        if self.metrics:
            self.metrics.record_cycle(result)

    def start(self) -> None:
        """
        Schedule run_cycle() every interval_seconds, first run immediately.

        Must be called with the asyncio event loop running.
        """
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_cycle,
            trigger=IntervalTrigger(seconds=self.config.interval_seconds),
            id=JOB_ID,
            name='Agent target health scrape',
            max_instances=1,  # Prevent overlapping executions
            coalesce=True,
            next_run_time=datetime.now()
        )
        self._scheduler.start()
        self.logger.info(f"Scheduler started, interval {self.config.interval_seconds:.0f}s")

    def shutdown(self) -> None:
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            self.logger.info("Scheduler stopped")

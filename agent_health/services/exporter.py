"""Prometheus exposition of the health registry and exporter self-metrics."""

import logging
from typing import Iterator, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest, start_http_server
from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from ..config.models import ExporterConfig
from .health_registry import HealthRegistry


class HealthSeriesCollector(Collector):
    """Renders the latest registry snapshot on every scrape."""

    def __init__(self, registry: HealthRegistry):
        self.registry = registry

    def collect(self) -> Iterator[Metric]:
        snapshot = self.registry.snapshot()

        health = GaugeMetricFamily(
            "agent_target_health",
            "Health of each target as reported by its agent (1 = up, 0 = not up).",
            labels=["agent", "instance"],
        )
        stale = GaugeMetricFamily(
            "agent_target_health_stale",
            "Whether the series was not refreshed by the latest scrape cycle.",
            labels=["agent", "instance"],
        )
        for key in sorted(snapshot.series):
            labels = [key.agent, key.instance]
            health.add_metric(labels, snapshot.series[key].value)
            stale.add_metric(labels, 1.0 if snapshot.is_stale(key) else 0.0)

        yield health
        yield stale


class ExporterMetrics:
    """Operational metrics about the scrape cycles themselves."""

    def __init__(self, registry: CollectorRegistry):
        self.cycles = Counter(
            "agent_health_cycles_total",
            "Scrape cycles by outcome",
            ["result"],  # "completed", "skipped" or "discovery_failed"
            registry=registry,
        )
        self.fetch_failures = Counter(
            "agent_health_fetch_failures_total",
            "Failed target fetches per agent",
            ["agent"],
            registry=registry,
        )
        self.skipped_targets = Counter(
            "agent_health_skipped_targets_total",
            "Active targets skipped for lacking an instance label",
            registry=registry,
        )
        self.agents_discovered = Gauge(
            "agent_health_agents_discovered",
            "Agents returned by the latest successful discovery",
            registry=registry,
        )
        self.last_cycle_duration = Gauge(
            "agent_health_last_cycle_duration_seconds",
            "Duration of the latest completed scrape cycle",
            registry=registry,
        )
        self.last_cycle_timestamp = Gauge(
            "agent_health_last_cycle_timestamp_seconds",
            "Completion time of the latest completed scrape cycle",
            registry=registry,
        )

    def record_cycle(self, result: str) -> None:
        self.cycles.labels(result=result).inc()

    def record_fetch_failure(self, agent: str) -> None:
        self.fetch_failures.labels(agent=agent).inc()

    def record_skipped_targets(self, count: int) -> None:
        if count:
            self.skipped_targets.inc(count)

    def set_agents_discovered(self, count: int) -> None:
        self.agents_discovered.set(count)

    def set_last_cycle(self, duration_seconds: float, timestamp: float) -> None:
        self.last_cycle_duration.set(duration_seconds)
        self.last_cycle_timestamp.set(timestamp)


class MetricsExporter:
    """
    Serves the health registry at /metrics.

    Uses a dedicated CollectorRegistry so only this exporter's series are
    exposed. The HTTP server runs on its own daemon thread and only reads
    registry snapshots; it never waits for or starts a scrape cycle.
    """

    def __init__(
        self,
        config: ExporterConfig,
        registry: HealthRegistry,
        logger: logging.Logger = None,
        prometheus_registry: Optional[CollectorRegistry] = None
    ):
        """
        Initialize metrics exporter.

        Args:
            config: Listen address configuration
            registry: Health registry to expose
            logger: Optional logger instance
            prometheus_registry: Registry to expose; a new one if omitted
        """
        self.config = config
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)
        self.prometheus_registry = prometheus_registry or CollectorRegistry()
        self.prometheus_registry.register(HealthSeriesCollector(registry))
        self.metrics = ExporterMetrics(self.prometheus_registry)
        self._server = None
        self._thread = None

    def start(self) -> None:
        """
        Start the HTTP server.

        Raises:
            OSError: If the listen address cannot be bound
        """
        self._server, self._thread = start_http_server(
            self.config.listen_port,
            addr=self.config.listen_host,
            registry=self.prometheus_registry
        )
        self.logger.info(
            f"Serving /metrics on {self.config.listen_host}:{self.config.listen_port}"
        )

    def render(self) -> str:
        """Render the current exposition text."""
        return generate_latest(self.prometheus_registry).decode("utf-8")

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
            self.logger.info("Metrics server stopped")

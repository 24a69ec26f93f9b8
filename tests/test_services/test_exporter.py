"""Tests for the /metrics exporter."""

import socket

import httpx
import pytest
from prometheus_client import CollectorRegistry

from agent_health.config.models import ExporterConfig
from agent_health.services.exporter import MetricsExporter
from agent_health.services.health_registry import HealthRegistry
from agent_health.utils.metrics import HealthSeriesKey


@pytest.fixture
def registry(logger):
    return HealthRegistry(stale_ttl_seconds=0, logger=logger)


def make_exporter(registry, logger, host="127.0.0.1", port=8080):
    return MetricsExporter(
        ExporterConfig(listen_host=host, listen_port=port),
        registry,
        logger,
        prometheus_registry=CollectorRegistry()
    )


def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_render_empty_registry(registry, logger):
    text = make_exporter(registry, logger).render()

    assert "# TYPE agent_target_health gauge" in text
    assert "# TYPE agent_target_health_stale gauge" in text
    assert "agent_target_health{" not in text


def test_render_series_sorted_with_labels(registry, logger):
    registry.publish([
        (HealthSeriesKey("a2", "10.0.0.2:9100"), 0.0),
        (HealthSeriesKey("a1", "10.0.0.1:9100"), 1.0),
    ], now=1000.0)

    lines = [
        line for line in make_exporter(registry, logger).render().splitlines()
        if line.startswith("agent_target_health{")
    ]

    assert lines == [
        'agent_target_health{agent="a1",instance="10.0.0.1:9100"} 1.0',
        'agent_target_health{agent="a2",instance="10.0.0.2:9100"} 0.0',
    ]


def test_render_reads_latest_snapshot(registry, logger):
    """Test each scrape reflects the most recent publish without re-registering."""
    exporter = make_exporter(registry, logger)
    key = HealthSeriesKey("a1", "10.0.0.1:9100")

    registry.publish([(key, 1.0)], now=1000.0)
    first = exporter.render()
    registry.publish([(key, 0.0)], now=1180.0)
    second = exporter.render()

    assert 'agent_target_health{agent="a1",instance="10.0.0.1:9100"} 1.0' in first
    assert 'agent_target_health{agent="a1",instance="10.0.0.1:9100"} 0.0' in second


def test_label_values_are_escaped(registry, logger):
    registry.publish([(HealthSeriesKey("a1", 'weird"host'), 1.0)], now=1000.0)

    text = make_exporter(registry, logger).render()

    assert 'instance="weird\\"host"' in text


def test_self_metrics_registered(registry, logger):
    exporter = make_exporter(registry, logger)
    exporter.metrics.record_cycle("completed")
    exporter.metrics.record_skipped_targets(3)
    exporter.metrics.set_agents_discovered(4)

    text = exporter.render()

    assert 'agent_health_cycles_total{result="completed"} 1.0' in text
    assert "agent_health_skipped_targets_total 3.0" in text
    assert "agent_health_agents_discovered 4.0" in text


def test_serves_metrics_over_http(registry, logger):
    registry.publish([(HealthSeriesKey("a1", "10.0.0.1:9100"), 1.0)], now=1000.0)
    port = free_port()
    exporter = make_exporter(registry, logger, port=port)

    exporter.start()
    try:
        response = httpx.get(f"http://127.0.0.1:{port}/metrics", timeout=5.0)
    finally:
        exporter.stop()

    assert response.status_code == 200
    assert 'agent_target_health{agent="a1",instance="10.0.0.1:9100"} 1.0' in response.text


def test_bind_failure_raises(registry, logger):
    """Test an occupied listen port surfaces as OSError at startup."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        port = sock.getsockname()[1]

        with pytest.raises(OSError):
            make_exporter(registry, logger, port=port).start()

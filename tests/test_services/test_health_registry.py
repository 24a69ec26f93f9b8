"""Tests for HealthRegistry snapshots and staleness."""

import pytest

from agent_health.services.health_registry import HealthRegistry
from agent_health.utils.metrics import HealthSeriesKey

A1 = HealthSeriesKey("a1", "10.0.0.1:9100")
A2 = HealthSeriesKey("a2", "10.0.0.2:9100")


@pytest.fixture
def registry(logger):
    return HealthRegistry(stale_ttl_seconds=600, logger=logger)


class TestPublish:
    def test_starts_empty(self, registry):
        snapshot = registry.snapshot()

        assert len(snapshot) == 0
        assert snapshot.cycle == 0
        assert snapshot.published_at is None

    def test_publish_upserts(self, registry):
        snapshot = registry.publish([(A1, 1.0), (A2, 0.0)], now=1000.0)

        assert snapshot.values() == {A1: 1.0, A2: 0.0}
        assert snapshot.cycle == 1
        assert registry.snapshot() is snapshot

    def test_later_upsert_wins(self, registry):
        registry.publish([(A1, 1.0)], now=1000.0)
        snapshot = registry.publish([(A1, 0.0)], now=1180.0)

        assert snapshot.values() == {A1: 0.0}
        assert snapshot.series[A1].refreshed_at == 1180.0

    def test_publishing_same_upserts_twice_is_idempotent(self, registry):
        upserts = [(A1, 1.0), (A2, 0.0)]

        first = registry.publish(upserts, now=1000.0).values()
        second = registry.publish(upserts, now=1000.0).values()

        assert first == second

    def test_empty_publish_keeps_values(self, registry):
        before = registry.publish([(A1, 1.0), (A2, 0.0)], now=1000.0).values()

        after = registry.publish([], now=1180.0).values()

        assert after == before


class TestSnapshotIsolation:
    def test_snapshot_is_read_only(self, registry):
        snapshot = registry.publish([(A1, 1.0)], now=1000.0)

        with pytest.raises(TypeError):
            snapshot.series[A2] = object()

    def test_held_snapshot_unaffected_by_later_publish(self, registry):
        """Test a reader's snapshot never mixes in a later cycle."""
        old = registry.publish([(A1, 1.0), (A2, 1.0)], now=1000.0)

        registry.publish([(A1, 0.0)], now=1180.0)

        assert old.values() == {A1: 1.0, A2: 1.0}
        assert old.cycle == 1


class TestStaleness:
    def test_unrefreshed_series_is_stale(self, registry):
        registry.publish([(A1, 1.0), (A2, 1.0)], now=1000.0)

        snapshot = registry.publish([(A1, 1.0)], now=1180.0)

        assert not snapshot.is_stale(A1)
        assert snapshot.is_stale(A2)
        assert snapshot.values()[A2] == 1.0

    def test_refresh_clears_stale(self, registry):
        registry.publish([(A1, 1.0), (A2, 1.0)], now=1000.0)
        registry.publish([(A1, 1.0)], now=1180.0)

        snapshot = registry.publish([(A1, 1.0), (A2, 0.0)], now=1360.0)

        assert not snapshot.is_stale(A2)
        assert snapshot.values()[A2] == 0.0

    def test_stale_series_evicted_after_ttl(self, registry):
        registry.publish([(A1, 1.0), (A2, 1.0)], now=1000.0)

        kept = registry.publish([(A1, 1.0)], now=1600.0)
        evicted = registry.publish([(A1, 1.0)], now=1601.0)

        assert A2 in kept.series
        assert A2 not in evicted.series
        assert A1 in evicted.series

    def test_zero_ttl_keeps_stale_series(self, logger):
        registry = HealthRegistry(stale_ttl_seconds=0, logger=logger)
        registry.publish([(A1, 1.0)], now=1000.0)

        snapshot = registry.publish([], now=1000.0 + 86400 * 30)

        assert snapshot.values() == {A1: 1.0}
        assert snapshot.is_stale(A1)

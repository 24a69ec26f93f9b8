"""In-memory health series registry with atomic snapshot publication."""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

from ..utils.metrics import HealthSeriesKey


@dataclass(frozen=True)
class SeriesEntry:
    """Last published state of one series."""

    value: float
    refreshed_at: float
    refreshed_cycle: int


@dataclass(frozen=True)
class RegistrySnapshot:
    """Immutable view of the registry as of one completed cycle."""

    cycle: int
    published_at: Optional[float]
    series: Mapping[HealthSeriesKey, SeriesEntry]

    def __len__(self) -> int:
        return len(self.series)

    def values(self) -> Dict[HealthSeriesKey, float]:
        """Series key to health value."""
        return {key: entry.value for key, entry in self.series.items()}

    def is_stale(self, key: HealthSeriesKey) -> bool:
        """True if the series was not refreshed by the latest cycle."""
        return self.series[key].refreshed_cycle < self.cycle


class HealthRegistry:
    """
    Registry of health series shared between the scheduler and the exporter.

    The scheduler is the only writer. Each cycle's results are merged into
    a fresh mapping and published by replacing a single reference, so
    readers always see the complete state of some finished cycle and never
    take a lock.

    Staleness: a series not refreshed by the latest cycle keeps its
    last-known value and reports as stale. Once it has gone
    ``stale_ttl_seconds`` without a refresh it is evicted. A TTL of 0
    keeps stale series indefinitely.
    """

    def __init__(self, stale_ttl_seconds: float = 0.0, logger: logging.Logger = None):
        """
        Initialize an empty registry.

        Args:
            stale_ttl_seconds: Age after which unrefreshed series are evicted
            logger: Optional logger instance
        """
        self.stale_ttl_seconds = stale_ttl_seconds
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)
        self._snapshot = RegistrySnapshot(
            cycle=0,
            published_at=None,
            series=MappingProxyType({})
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def snapshot(self) -> RegistrySnapshot:
        """Return the most recently published snapshot."""
        return self._snapshot

    def publish(
        self,
        upserts: Iterable[Tuple[HealthSeriesKey, float]],
        now: float
    ) -> RegistrySnapshot:
        """
        Merge one cycle's upserts and publish the result.

        Args:
            upserts: (series key, value) pairs from every successful agent
            now: Cycle completion time in seconds since the epoch

        Returns:
            RegistrySnapshot: The newly published snapshot
        """
        current = self._snapshot
        cycle = current.cycle + 1

        series = dict(current.series)
        for key, value in upserts:
            series[key] = SeriesEntry(value=value, refreshed_at=now, refreshed_cycle=cycle)

        evicted = self._evict_expired(series, now)
        if evicted:
            self.logger.info(
                f"Evicted {evicted} series not refreshed for {self.stale_ttl_seconds:.0f}s"
            )

        snapshot = RegistrySnapshot(
            cycle=cycle,
            published_at=now,
            series=MappingProxyType(series)
        )
        self._snapshot = snapshot
        return snapshot

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _evict_expired(self, series: Dict[HealthSeriesKey, SeriesEntry], now: float) -> int:
        if self.stale_ttl_seconds <= 0:
            return 0
        expired = [
            key for key, entry in series.items()
            if now - entry.refreshed_at > self.stale_ttl_seconds
        ]
        for key in expired:
            del series[key]
        return len(expired)

"""Mapping of agent target documents to health series upserts."""

import logging

from ..utils.metrics import AggregationResult, HealthSeriesKey, TargetStatusDocument


class HealthAggregator:
    """
    Derive per-series health values from one agent's targets document.

    Only active targets are considered. A target without an ``instance``
    label is skipped and counted; the rest of the document is unaffected.
    The mapping is pure, so applying the same document twice produces the
    same upserts.
    """

    def __init__(self, logger: logging.Logger = None):
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)

    def apply(self, agent_id: str, document: TargetStatusDocument) -> AggregationResult:
        """
        Build upserts for every active target in a document.

        Args:
            agent_id: Value of the agent label for these series
            document: Decoded targets payload from that agent

        Returns:
            AggregationResult: Upserts in document order plus skipped count
        """
        result = AggregationResult(agent=agent_id)

        for target in document.data.active_targets:
            instance = target.instance
            if instance is None:
                result.skipped += 1
                continue
            key = HealthSeriesKey(agent=agent_id, instance=instance)
            result.upserts.append((key, target.target_health.to_value()))

        if result.skipped:
            self.logger.warning(
                f"Skipped {result.skipped} targets without instance label from {agent_id}",
                extra={"agent": agent_id, "skipped": result.skipped}
            )
        return result

"""Target health enumeration."""

from enum import Enum


class TargetHealth(Enum):
    """Health of a single scrape target as reported by an agent."""

    UP = "up"
    DOWN = "down"
    UNKNOWN = "unknown"

    @classmethod
    def from_text(cls, text: str) -> "TargetHealth":
        """
        Parse the agent-defined health string.

        Only the exact string "up" is healthy. Agents may report values
        other than "up"/"down"; those map to UNKNOWN.

        Args:
            text: Raw health value from the targets payload

        Returns:
            TargetHealth: Parsed health
        """
        if text == cls.UP.value:
            return cls.UP
        if text == cls.DOWN.value:
            return cls.DOWN
        return cls.UNKNOWN

    def to_value(self) -> float:
        """
        Convert health to the published gauge value.

        Returns:
            float: 1.0 for UP, 0.0 for everything else
        """
        return 1.0 if self is TargetHealth.UP else 0.0

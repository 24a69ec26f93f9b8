"""Data structures for agent payloads, fetch results and health series."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional, Tuple, Union
import time

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .status import TargetHealth


class RawTarget(BaseModel):
    """One entry from an agent's activeTargets list."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    labels: Dict[str, str] = Field(default_factory=dict)
    health: str = ""
    # Scrape metadata, informational only
    last_scrape: Optional[Union[str, float]] = Field(default=None, alias="lastScrape")
    last_scrape_duration: Optional[float] = Field(default=None, alias="lastScrapeDuration")
    scrape_pool: Optional[str] = Field(default=None, alias="scrapePool")
    scrape_url: Optional[str] = Field(default=None, alias="scrapeUrl")

    @field_validator("labels", mode="before")
    @classmethod
    def null_labels(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def instance(self) -> Optional[str]:
        """Value of the instance label, None if absent or empty."""
        return self.labels.get("instance") or None

    @property
    def target_health(self) -> TargetHealth:
        return TargetHealth.from_text(self.health)


class TargetStatusData(BaseModel):
    """The data section of a targets payload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    active_targets: List[RawTarget] = Field(default_factory=list, alias="activeTargets")
    # Dropped targets carry discoveredLabels rather than labels; kept raw
    dropped_targets: List[Dict[str, Any]] = Field(default_factory=list, alias="droppedTargets")

    @field_validator("active_targets", "dropped_targets", mode="before")
    @classmethod
    def null_lists(cls, v: Any) -> Any:
        """Agents written in Go serialize empty slices as null."""
        return [] if v is None else v


class TargetStatusDocument(BaseModel):
    """Decoded body of GET /api/v1/targets."""

    model_config = ConfigDict(extra="ignore")

    status: str
    data: TargetStatusData = Field(default_factory=TargetStatusData)

    @property
    def is_success(self) -> bool:
        return self.status == "success"


class HealthSeriesKey(NamedTuple):
    """Identity of one published series."""

    agent: str
    instance: str


@dataclass
class FetchResult:
    """Outcome of fetching one agent's targets payload."""

    address: str
    document: Optional[TargetStatusDocument] = None
    error: Optional[Exception] = None
    duration_seconds: float = 0.0
    timestamp: Optional[float] = None

    def __post_init__(self):
        """Set timestamp if not provided."""
        if self.timestamp is None:
            self.timestamp = time.time()

    @property
    def ok(self) -> bool:
        return self.error is None and self.document is not None


@dataclass
class AggregationResult:
    """Upserts derived from one agent's document."""

    agent: str
    upserts: List[Tuple[HealthSeriesKey, float]] = field(default_factory=list)
    skipped: int = 0

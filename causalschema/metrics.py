"""Per-round observability records for the merger."""

from enum import Enum

from pydantic import BaseModel, Field


class RoundPhase(str, Enum):
    LINK = "link"
    ANNEAL = "anneal"


class MetricStats(BaseModel):
    """Order statistics of one quantity across the nodes of a round."""

    model_config = {"frozen": True}

    min: float = 0.0
    p50: float = 0.0
    p90: float = 0.0
    max: float = 0.0


class RoundMetrics(BaseModel):
    """Counts and statistics recorded at the end of a round.

    Contains no wall-clock values, so two runs over the same input produce
    identical metrics.
    """

    model_config = {"frozen": True}

    round: int = Field(ge=1, le=3)
    phase: RoundPhase
    label: str
    counts: dict[str, int] = Field(default_factory=dict)
    stats: dict[str, MetricStats] = Field(default_factory=dict)

"""
Readiness Schemas
=================
Readiness score, its per-component breakdown, and the request/response
shapes of the readiness endpoint.

Component weights sum to 1.0 across the full set. When a component is
missing its weight is redistributed proportionally over the components
that are present; a missing component never counts as a neutral score.
"""

from __future__ import annotations

import math
import uuid
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pulse.models.metrics import MetricsSnapshot


def round_score(value: float) -> int:
    """Round half up, so 80.5 scores 81 rather than banker's 80."""
    return int(math.floor(value + 0.5))


class ReadinessConfidence(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    LIMITED = "limited"


def confidence_for_count(available: int, full_count: int = 4) -> ReadinessConfidence:
    """full when everything is present, partial for 2+, limited otherwise."""
    if available >= full_count:
        return ReadinessConfidence.FULL
    if available >= 2:
        return ReadinessConfidence.PARTIAL
    return ReadinessConfidence.LIMITED


class ReadinessComponent(str, Enum):
    HRV = "hrv"
    RESTING_HEART_RATE = "resting_heart_rate"
    SLEEP = "sleep"
    ENERGY = "energy"


COMPONENT_WEIGHTS: dict[ReadinessComponent, float] = {
    ReadinessComponent.HRV: 0.30,
    ReadinessComponent.RESTING_HEART_RATE: 0.20,
    ReadinessComponent.SLEEP: 0.25,
    ReadinessComponent.ENERGY: 0.25,
}


class ReadinessBreakdown(BaseModel):
    """Per-component scores (0-100); ``None`` where the input was missing."""

    model_config = ConfigDict(frozen=True)

    hrv: Optional[int] = Field(default=None, ge=0, le=100)
    resting_heart_rate: Optional[int] = Field(default=None, ge=0, le=100)
    sleep: Optional[int] = Field(default=None, ge=0, le=100)
    energy: Optional[int] = Field(default=None, ge=0, le=100)

    @property
    def component_scores(self) -> dict[ReadinessComponent, int]:
        return {
            component: getattr(self, component.value)
            for component in ReadinessComponent
            if getattr(self, component.value) is not None
        }

    @property
    def available_components(self) -> list[ReadinessComponent]:
        return list(self.component_scores)

    @property
    def component_count(self) -> int:
        return len(self.component_scores)

    def weighted_score(self) -> Optional[float]:
        """Weighted mean over present components, or None when empty."""
        scores = self.component_scores
        total_weight = sum(COMPONENT_WEIGHTS[c] for c in scores)
        if total_weight == 0:
            return None
        return sum(score * COMPONENT_WEIGHTS[c] for c, score in scores.items()) / total_weight


class ReadinessScore(BaseModel):
    """A computed readiness score for one day."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    date: date
    score: int
    breakdown: ReadinessBreakdown
    confidence: ReadinessConfidence
    health_metrics: Optional[MetricsSnapshot] = None
    user_energy_level: Optional[int] = None

    @field_validator("score")
    @classmethod
    def _clamp_score(cls, v: int) -> int:
        return max(0, min(100, v))


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class ReadinessRequest(BaseModel):
    """Morning check-in: today's metrics plus the self-reported energy level."""

    metrics: MetricsSnapshot
    energy_level: Optional[int] = Field(
        default=None,
        ge=1,
        le=5,
        description="Self-reported energy. 1 = exhausted, 5 = fully charged.",
    )

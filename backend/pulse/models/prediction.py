"""
Prediction Schemas
==================
A prediction of tomorrow's readiness, made in the evening from the day's
data, and the accuracy statistics derived from resolved predictions.

Lifecycle: a prediction is created unresolved. Once the target day's
actual readiness is known it is resolved exactly once via
:meth:`Prediction.resolved`, which returns a new record with the same id.
Records are frozen and never edited in place.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pulse.models.metrics import MetricsSnapshot
from pulse.models.readiness import ReadinessConfidence


class PredictionSource(str, Enum):
    RULES = "rules"
    BLENDED = "blended"
    ML = "ml"


class Prediction(BaseModel):
    """A readiness prediction for ``target_date``."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    target_date: date
    predicted_score: int
    confidence: ReadinessConfidence
    source: PredictionSource = PredictionSource.RULES

    # What the prediction was based on
    input_metrics: Optional[MetricsSnapshot] = None
    input_energy_level: Optional[int] = None

    # Accuracy tracking
    actual_score: Optional[int] = None
    actual_score_recorded_at: Optional[datetime] = None

    @field_validator("predicted_score")
    @classmethod
    def _clamp_score(cls, v: int) -> int:
        return max(0, min(100, v))

    # ------------------------------------------------------------------
    # Accuracy
    # ------------------------------------------------------------------

    @property
    def is_resolved(self) -> bool:
        return self.actual_score is not None

    @property
    def absolute_error(self) -> Optional[int]:
        if self.actual_score is None:
            return None
        return abs(self.predicted_score - self.actual_score)

    @property
    def signed_error(self) -> Optional[int]:
        """Positive when the prediction was too optimistic."""
        if self.actual_score is None:
            return None
        return self.predicted_score - self.actual_score

    @property
    def accuracy_percentage(self) -> Optional[float]:
        error = self.absolute_error
        if error is None:
            return None
        return max(0.0, 100.0 - error)

    @property
    def accuracy_description(self) -> Optional[str]:
        error = self.absolute_error
        if error is None:
            return None
        if error <= 5:
            return "Excellent"
        if error <= 10:
            return "Good"
        if error <= 15:
            return "Fair"
        if error <= 25:
            return "Poor"
        return "Very Poor"

    @property
    def score_description(self) -> str:
        if self.predicted_score <= 40:
            return "Poor"
        if self.predicted_score <= 60:
            return "Moderate"
        if self.predicted_score <= 80:
            return "Good"
        return "Excellent"

    def resolved(self, actual_score: int, recorded_at: datetime | None = None) -> Prediction:
        """Return a copy carrying the actual outcome. ``self`` is unchanged."""
        return self.model_copy(update={
            "actual_score": actual_score,
            "actual_score_recorded_at": recorded_at or datetime.now(timezone.utc),
        })

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_row(self, user_id: str) -> dict:
        return {"user_id": user_id, **self.model_dump(mode="json")}


# ---------------------------------------------------------------------------
# Accuracy statistics
# ---------------------------------------------------------------------------

class PredictionAccuracyStats(BaseModel):
    """Aggregate accuracy over a user's resolved predictions."""

    total_predictions: int
    average_error: float
    average_accuracy: float
    excellent_count: int = Field(..., description="Within 5 points.")
    good_count: int = Field(..., description="Off by 6-10 points.")
    fair_count: int = Field(..., description="Off by 11-15 points.")
    poor_count: int = Field(..., description="Off by more than 15 points.")
    recent_trend: Optional[float] = Field(
        default=None,
        description="Older mean error minus recent mean error. Positive = improving.",
    )

    @property
    def success_rate(self) -> float:
        if self.total_predictions == 0:
            return 0.0
        return (self.excellent_count + self.good_count) / self.total_predictions * 100


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class PredictionRequest(BaseModel):
    """Evening check-in used to predict tomorrow."""

    metrics: Optional[MetricsSnapshot] = None
    energy_level: Optional[int] = Field(default=None, ge=1, le=5)

"""
Training Example
================
A labeled day for the personalized model: the features observed on the
input day and the readiness score that actually followed.

The raw snapshot is kept next to the features. Sleep normalization
depends on how many examples the model has seen, so features are
re-derived from the snapshot whenever the model is refitted.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from pulse.ml.features import FeatureExtractor, FeatureVector
from pulse.models.metrics import MetricsSnapshot


@dataclass(frozen=True)
class TrainingExample:
    features: FeatureVector
    label: float
    date: datetime
    metrics: Optional[MetricsSnapshot] = None

    def reextracted(self, extractor: FeatureExtractor) -> TrainingExample:
        """Copy with features recomputed from the stored snapshot."""
        if self.metrics is None:
            return self
        return replace(self, features=extractor.extract_features(self.metrics))

    def to_row(self, user_id: str) -> dict:
        return {
            "user_id": user_id,
            "date": self.date.isoformat(),
            "label": float(self.label),
            "input_metrics": None if self.metrics is None else self.metrics.model_dump(mode="json"),
            **{f"feature_{name}": value for name, value in self.features.to_dict().items()},
        }

    @classmethod
    def from_row(cls, row: dict) -> TrainingExample:
        features = FeatureVector.from_dict({
            "hrv": row.get("feature_hrv"),
            "rhr": row.get("feature_rhr"),
            "sleep": row.get("feature_sleep"),
            "day_of_week": row["feature_day_of_week"],
        })
        raw = row.get("input_metrics")
        return cls(
            features=features,
            label=float(row["label"]),
            date=datetime.fromisoformat(row["date"]),
            metrics=None if raw is None else MetricsSnapshot.model_validate(raw),
        )

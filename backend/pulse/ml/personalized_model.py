"""
Personalized Readiness Model
============================
A per-person linear model that learns what "readiness" means for one
individual from their own resolved days.

Algorithm: ridge regression on ``[1, hrv, rhr, sleep, day_of_week]``,
solved in closed form via the normal equations

    w = (XᵀX + λI')⁻¹ Xᵀy

where I' is the identity with the bias entry zeroed (the bias is not
regularized). Missing features are filled with 0.5 before fitting and
before predicting. A linear model is enough to capture personal patterns
from a handful of examples and trains in well under a millisecond.

Gating:
- Training needs at least 3 examples; fewer leaves the model as it was.
- Prediction needs at least one biometric feature besides day_of_week.
- Predictions are clamped to 20-100. The learned path is never trusted to
  call a catastrophic day; only the rules path can go below 20.

Examples that carry their raw snapshot are re-extracted on every fit, so
the sleep feature is normalized the same way in training and prediction
once the model crosses 30 examples.

Parameters live in one frozen ``ModelParameters`` record. Training builds
a complete new record and swaps the reference, so a concurrent predict
sees either the old or the new parameters, never a mix.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence

import numpy as np
from scipy.linalg import LinAlgError, solve

from pulse.ml.features import FEATURE_COUNT, FeatureExtractor
from pulse.ml.training_example import TrainingExample
from pulse.models.metrics import MetricsSnapshot
from pulse.models.readiness import round_score

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_TRAINING_EXAMPLES = 3
RIDGE_LAMBDA = 0.1
MIN_PREDICTION_SCORE = 20
MAX_PREDICTION_SCORE = 100
MIN_AVAILABLE_FEATURES = 2


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

class ModelStatus(str, Enum):
    NOT_TRAINED = "not_trained"
    TRAINED = "trained"


class PredictionOutcome(str, Enum):
    SUCCESS = "success"
    MODEL_NOT_TRAINED = "model_not_trained"
    INSUFFICIENT_DATA = "insufficient_data"


@dataclass(frozen=True)
class ModelPredictionResult:
    outcome: PredictionOutcome
    score: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.outcome is PredictionOutcome.SUCCESS

    @classmethod
    def success(cls, score: int) -> ModelPredictionResult:
        return cls(PredictionOutcome.SUCCESS, score)

    @classmethod
    def model_not_trained(cls) -> ModelPredictionResult:
        return cls(PredictionOutcome.MODEL_NOT_TRAINED)

    @classmethod
    def insufficient_data(cls) -> ModelPredictionResult:
        return cls(PredictionOutcome.INSUFFICIENT_DATA)


@dataclass(frozen=True)
class ModelParameters:
    """Fitted coefficients plus the metadata of the fit that produced them."""

    bias: float
    weights: tuple[float, ...]  # hrv, rhr, sleep, day_of_week
    training_example_count: int
    trained_at: datetime

    def apply(self, x: Sequence[float]) -> float:
        return self.bias + float(np.dot(self.weights, x))


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

class PersonalizedReadinessModel:
    """Online-trainable readiness regressor for a single person."""

    def __init__(self) -> None:
        self._params: ModelParameters | None = None
        self._lock = threading.Lock()

    @property
    def parameters(self) -> ModelParameters | None:
        return self._params

    @property
    def status(self) -> ModelStatus:
        return ModelStatus.NOT_TRAINED if self._params is None else ModelStatus.TRAINED

    @property
    def training_example_count(self) -> int:
        params = self._params
        return 0 if params is None else params.training_example_count

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(self, examples: Sequence[TrainingExample]) -> bool:
        """Fit the model on *examples*, replacing any previous fit.

        Returns False, leaving the current parameters in place, when there
        are fewer than three examples or the normal equations are singular.
        """
        if len(examples) < MIN_TRAINING_EXAMPLES:
            logger.debug(
                "Not training: %d examples < %d minimum",
                len(examples), MIN_TRAINING_EXAMPLES,
            )
            return False

        # Features follow the sleep strategy this fit will predict with.
        extractor = FeatureExtractor(training_example_count=len(examples))
        examples = [ex.reextracted(extractor) for ex in examples]

        X = np.array([[1.0, *ex.features.to_array()] for ex in examples])
        y = np.array([ex.label for ex in examples], dtype=float)

        penalty = np.eye(FEATURE_COUNT + 1) * RIDGE_LAMBDA
        penalty[0, 0] = 0.0  # bias is not regularized

        try:
            w = solve(X.T @ X + penalty, X.T @ y, assume_a="pos")
        except (LinAlgError, ValueError):
            logger.warning("Ridge solve failed for %d examples; keeping previous fit", len(examples))
            return False

        if not np.all(np.isfinite(w)):
            logger.warning("Ridge solve produced non-finite weights; keeping previous fit")
            return False

        params = ModelParameters(
            bias=float(w[0]),
            weights=tuple(float(v) for v in w[1:]),
            training_example_count=len(examples),
            trained_at=datetime.now(timezone.utc),
        )
        self._swap(params)

        logger.info("Trained personalized model on %d examples", len(examples))
        return True

    def reset(self) -> None:
        self._swap(None)

    def _swap(self, params: ModelParameters | None) -> None:
        with self._lock:
            self._params = params

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def predict(self, snapshot: MetricsSnapshot | None) -> ModelPredictionResult:
        params = self._params  # single read; see module docstring
        if params is None:
            return ModelPredictionResult.model_not_trained()

        extractor = FeatureExtractor(training_example_count=params.training_example_count)
        features = extractor.extract_features(snapshot)

        if features.available_feature_count < MIN_AVAILABLE_FEATURES:
            return ModelPredictionResult.insufficient_data()

        raw = params.apply(features.to_array())
        score = max(MIN_PREDICTION_SCORE, min(MAX_PREDICTION_SCORE, round_score(raw)))
        return ModelPredictionResult.success(score)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_row(self, user_id: str) -> dict | None:
        params = self._params
        if params is None:
            return None
        return {
            "user_id": user_id,
            "bias": params.bias,
            "weights": list(params.weights),
            "training_example_count": params.training_example_count,
            "trained_at": params.trained_at.isoformat(),
        }

    def load_row(self, row: dict) -> bool:
        """Restore a previously persisted fit. Returns False for malformed rows."""
        weights = row.get("weights") or []
        if len(weights) != FEATURE_COUNT:
            logger.warning("Ignoring stored model with %d weights", len(weights))
            return False

        self._swap(ModelParameters(
            bias=float(row["bias"]),
            weights=tuple(float(v) for v in weights),
            training_example_count=int(row["training_example_count"]),
            trained_at=datetime.fromisoformat(row["trained_at"]),
        ))
        return True

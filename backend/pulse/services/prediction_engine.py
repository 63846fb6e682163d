"""
Prediction Engine
=================
Predicts tomorrow's readiness from today's data, scores today with the
same rules/model blend, and turns resolved predictions into training
examples.

Decision logic:
    1. Always compute the rules-based score for the input day.
    2. Ask the personalized model. If it is untrained or lacks features,
       the score is rules-only.
    3. Otherwise blend: the model's weight grows linearly with its
       training example count, reaching 1.0 at 30 examples. Below 30 the
       source is ``blended``; at 30 and above it is ``ml``.
    4. Confidence reflects how many of the four features were available.

The engine is synchronous and does no I/O; persistence belongs to
:mod:`pulse.services.prediction_service`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from pulse.ml.features import MATURE_EXAMPLE_THRESHOLD, FEATURE_COUNT, FeatureExtractor
from pulse.ml.personalized_model import MIN_AVAILABLE_FEATURES, PersonalizedReadinessModel
from pulse.ml.training_example import TrainingExample
from pulse.models.metrics import MetricsSnapshot
from pulse.models.prediction import Prediction, PredictionSource
from pulse.models.readiness import ReadinessScore, confidence_for_count, round_score
from pulse.services.readiness_calculator import ReadinessCalculator

logger = logging.getLogger(__name__)

# Rules fallback when neither metrics nor an energy report are available
NEUTRAL_BASELINE_SCORE = 65


# ---------------------------------------------------------------------------
# Blending
# ---------------------------------------------------------------------------

def model_weight(training_example_count: int) -> float:
    """Share of the blended score given to the personalized model."""
    return max(0.0, min(1.0, training_example_count / MATURE_EXAMPLE_THRESHOLD))


def blend(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Weighted mean of two ``(value, weight)`` pairs."""
    (value_a, weight_a), (value_b, weight_b) = a, b
    total = weight_a + weight_b
    if total <= 0:
        raise ValueError("blend needs a positive total weight")
    return (value_a * weight_a + value_b * weight_b) / total


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class PredictionEngine:
    """Rules + personalized-model prediction for one person."""

    def __init__(
        self,
        model: PersonalizedReadinessModel | None = None,
        calculator: ReadinessCalculator | None = None,
        use_model: bool = True,
    ) -> None:
        self.model = model or PersonalizedReadinessModel()
        self.calculator = calculator or ReadinessCalculator()
        self.use_model = use_model

    def rules_score(self, metrics: MetricsSnapshot | None, energy_level: Optional[int]) -> int:
        readiness = self.calculator.calculate(metrics, energy_level)
        if readiness is None:
            return NEUTRAL_BASELINE_SCORE
        return readiness.score

    def _blend_with_model(
        self,
        rules: int,
        metrics: MetricsSnapshot | None,
    ) -> tuple[int, PredictionSource]:
        """Mix the model's score into *rules*, or return rules unchanged."""
        if not self.use_model:
            return rules, PredictionSource.RULES

        result = self.model.predict(metrics)
        if not result.is_success:
            logger.debug("Model unavailable (%s); using rules score %d", result.outcome.value, rules)
            return rules, PredictionSource.RULES

        count = self.model.training_example_count
        weight = model_weight(count)
        score = round_score(blend((rules, 1.0 - weight), (result.score, weight)))
        logger.debug(
            "Blended rules=%d model=%d weight=%.2f -> %d",
            rules, result.score, weight, score,
        )
        source = (
            PredictionSource.ML if count >= MATURE_EXAMPLE_THRESHOLD
            else PredictionSource.BLENDED
        )
        return score, source

    def score_today(
        self,
        metrics: MetricsSnapshot | None,
        energy_level: Optional[int],
    ) -> ReadinessScore | None:
        """Today's readiness: the rules score blended with the model's.

        The breakdown and confidence always come from the rules path.
        Returns None when the calculator has nothing to score.
        """
        readiness = self.calculator.calculate(metrics, energy_level)
        if readiness is None:
            return None

        score, _ = self._blend_with_model(readiness.score, metrics)
        if score == readiness.score:
            return readiness
        return readiness.model_copy(update={"score": score})

    def predict(
        self,
        metrics: MetricsSnapshot | None,
        energy_level: Optional[int],
        now: datetime | None = None,
    ) -> Prediction:
        """Predict readiness for the day after *now*."""
        now = now or datetime.now(timezone.utc)
        rules = self.rules_score(metrics, energy_level)

        features = FeatureExtractor(
            training_example_count=self.model.training_example_count,
        ).extract_features(metrics)
        confidence = confidence_for_count(features.available_feature_count, full_count=FEATURE_COUNT)

        score, source = self._blend_with_model(rules, metrics)

        return Prediction(
            created_at=now,
            target_date=now.date() + timedelta(days=1),
            predicted_score=score,
            confidence=confidence,
            source=source,
            input_metrics=metrics,
            input_energy_level=energy_level,
        )

    def resolve(
        self,
        prediction: Prediction,
        actual_score: int,
        now: datetime | None = None,
    ) -> tuple[Prediction, TrainingExample | None]:
        """Attach the actual outcome and derive a training example.

        Predictions without input metrics, or whose metrics give fewer than
        two features, resolve normally but yield no example.
        """
        resolved = prediction.resolved(actual_score, recorded_at=now or datetime.now(timezone.utc))

        if prediction.input_metrics is None:
            return resolved, None

        extractor = FeatureExtractor(training_example_count=self.model.training_example_count)
        features = extractor.extract_features(prediction.input_metrics)
        if features.available_feature_count < MIN_AVAILABLE_FEATURES:
            logger.debug(
                "Prediction %s has %d features; no training example",
                prediction.id, features.available_feature_count,
            )
            return resolved, None

        example = TrainingExample(
            features=features,
            label=float(actual_score),
            date=prediction.created_at,
            metrics=prediction.input_metrics,
        )
        return resolved, example

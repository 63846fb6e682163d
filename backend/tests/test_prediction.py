"""
Tests for Prediction and accuracy statistics
============================================
Covers:
- resolved() keeps every original field and the id, sets only the actual
  score fields, and leaves the original untouched
- Error metrics: absolute, signed, accuracy percentage, descriptions
- Predicted score clamped to 0-100
- compute_accuracy_stats: empty input, buckets, averages, trend

Run: pytest tests/test_prediction.py -v
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from pulse.models.metrics import MetricsSnapshot
from pulse.models.prediction import Prediction, PredictionSource
from pulse.models.readiness import ReadinessConfidence
from pulse.services.accuracy import compute_accuracy_stats

CREATED = datetime(2026, 2, 23, 21, 0, tzinfo=timezone.utc)


def _prediction(score: int = 70, **kwargs) -> Prediction:
    defaults = dict(
        created_at=CREATED,
        target_date=date(2026, 2, 24),
        predicted_score=score,
        confidence=ReadinessConfidence.PARTIAL,
        source=PredictionSource.BLENDED,
        input_metrics=MetricsSnapshot(date=date(2026, 2, 23), hrv=55, sleep_duration=7 * 3600),
        input_energy_level=4,
    )
    defaults.update(kwargs)
    return Prediction(**defaults)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

class TestResolved:

    def test_preserves_fields(self):
        original = _prediction()
        resolved = original.resolved(64)

        for field in (
            "id", "created_at", "target_date", "predicted_score", "confidence",
            "source", "input_metrics", "input_energy_level",
        ):
            assert getattr(resolved, field) == getattr(original, field)

        assert resolved.actual_score == 64
        assert resolved.actual_score_recorded_at is not None

    def test_is_resolved_flips_once(self):
        original = _prediction()
        assert original.is_resolved is False

        resolved = original.resolved(64)
        assert resolved.is_resolved is True
        assert original.is_resolved is False
        assert original.actual_score is None

    def test_recorded_at_override(self):
        at = datetime(2026, 2, 24, 8, 0, tzinfo=timezone.utc)
        assert _prediction().resolved(50, recorded_at=at).actual_score_recorded_at == at


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TestErrors:

    def test_unresolved_has_no_errors(self):
        p = _prediction()
        assert p.absolute_error is None
        assert p.signed_error is None
        assert p.accuracy_percentage is None
        assert p.accuracy_description is None

    def test_overprediction(self):
        p = _prediction(80).resolved(70)
        assert p.absolute_error == 10
        assert p.signed_error == 10
        assert p.accuracy_percentage == 90.0
        assert p.accuracy_description == "Good"

    def test_underprediction(self):
        p = _prediction(60).resolved(63)
        assert p.absolute_error == 3
        assert p.signed_error == -3
        assert p.accuracy_description == "Excellent"

    @pytest.mark.parametrize("actual, label", [(55, "Fair"), (50, "Poor"), (20, "Very Poor")])
    def test_descriptions(self, actual, label):
        assert _prediction(70).resolved(actual).accuracy_description == label

    def test_accuracy_never_negative(self):
        assert _prediction(100).resolved(0).accuracy_percentage == 0.0

    def test_predicted_score_clamped(self):
        assert _prediction(130).predicted_score == 100
        assert _prediction(-5).predicted_score == 0

    @pytest.mark.parametrize("score, label", [(40, "Poor"), (60, "Moderate"), (75, "Good"), (81, "Excellent")])
    def test_score_description(self, score, label):
        assert _prediction(score).score_description == label


# ---------------------------------------------------------------------------
# Accuracy stats
# ---------------------------------------------------------------------------

def _resolved_series(errors: list[int]) -> list[Prediction]:
    """errors[0] is the newest prediction."""
    out = []
    for i, err in enumerate(errors):
        target = date(2026, 2, 24) - timedelta(days=i)
        out.append(_prediction(70, target_date=target).resolved(70 - err))
    return out


class TestAccuracyStats:

    def test_empty(self):
        stats = compute_accuracy_stats([])
        assert stats.total_predictions == 0
        assert stats.average_error == 0.0
        assert stats.recent_trend is None
        assert stats.success_rate == 0.0

    def test_ignores_unresolved(self):
        stats = compute_accuracy_stats([_prediction(), _prediction().resolved(66)])
        assert stats.total_predictions == 1
        assert stats.average_error == 4.0

    def test_buckets(self):
        stats = compute_accuracy_stats(_resolved_series([0, 5, 6, 10, 11, 15, 16, 40]))
        assert stats.excellent_count == 2
        assert stats.good_count == 2
        assert stats.fair_count == 2
        assert stats.poor_count == 2
        assert stats.success_rate == 50.0

    def test_averages(self):
        stats = compute_accuracy_stats(_resolved_series([2, 4, 6]))
        assert stats.average_error == pytest.approx(4.0)
        assert stats.average_accuracy == pytest.approx(96.0)

    def test_no_trend_below_ten(self):
        assert compute_accuracy_stats(_resolved_series([1] * 9)).recent_trend is None

    def test_improving_trend(self):
        # newest five average 2, the five before average 12
        stats = compute_accuracy_stats(_resolved_series([2] * 5 + [12] * 5))
        assert stats.recent_trend == pytest.approx(10.0)

    def test_trend_uses_target_date_order(self):
        series = _resolved_series([2] * 5 + [12] * 5)
        stats = compute_accuracy_stats(list(reversed(series)))
        assert stats.recent_trend == pytest.approx(10.0)

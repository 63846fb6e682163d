"""
Prediction Accuracy
===================
Aggregates resolved predictions into accuracy statistics for the history
screen: mean error, error buckets, and whether recent predictions are
getting better than older ones.
"""

from __future__ import annotations

import logging
from typing import Iterable

import pandas as pd

from pulse.models.prediction import Prediction, PredictionAccuracyStats

logger = logging.getLogger(__name__)

TREND_WINDOW = 5
MIN_PREDICTIONS_FOR_TREND = 2 * TREND_WINDOW

# Upper bounds (inclusive) of the error buckets
_BUCKET_EDGES = [-1, 5, 10, 15, float("inf")]
_BUCKET_LABELS = ["excellent", "good", "fair", "poor"]


def compute_accuracy_stats(predictions: Iterable[Prediction]) -> PredictionAccuracyStats:
    """Summarize accuracy over the resolved subset of *predictions*."""
    rows = [
        {"target_date": p.target_date, "error": p.absolute_error}
        for p in predictions
        if p.is_resolved
    ]

    if not rows:
        return PredictionAccuracyStats(
            total_predictions=0,
            average_error=0.0,
            average_accuracy=0.0,
            excellent_count=0,
            good_count=0,
            fair_count=0,
            poor_count=0,
            recent_trend=None,
        )

    df = pd.DataFrame(rows).sort_values("target_date", ascending=False, kind="stable")

    buckets = pd.cut(df["error"], bins=_BUCKET_EDGES, labels=_BUCKET_LABELS)
    counts = buckets.value_counts()

    average_error = float(df["error"].mean())

    recent_trend = None
    if len(df) >= MIN_PREDICTIONS_FOR_TREND:
        recent = df["error"].iloc[:TREND_WINDOW].mean()
        older = df["error"].iloc[TREND_WINDOW:2 * TREND_WINDOW].mean()
        recent_trend = float(older - recent)

    logger.debug("Accuracy over %d resolved predictions: mean error %.1f", len(df), average_error)

    return PredictionAccuracyStats(
        total_predictions=len(df),
        average_error=average_error,
        average_accuracy=max(0.0, 100.0 - average_error),
        excellent_count=int(counts.get("excellent", 0)),
        good_count=int(counts.get("good", 0)),
        fair_count=int(counts.get("fair", 0)),
        poor_count=int(counts.get("poor", 0)),
        recent_trend=recent_trend,
    )

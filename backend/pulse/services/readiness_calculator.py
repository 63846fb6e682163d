"""
Readiness Calculator
====================
Rules-based readiness scoring from population norms. Independent of the
personalized model: this is the path every user gets from day one.

Each available metric is scored 0-100 on its own natural range:
- HRV: higher is better (parasympathetic recovery)
- Resting HR: lower is better, though below 40 bpm is capped at 85
- Sleep: 8-9 h is best; both short and very long nights score lower
- Energy: the 1-5 self-report times 20

The overall score is the weighted mean of the components that are
present (see ``COMPONENT_WEIGHTS``). Pure computation, no I/O.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from pulse.models.metrics import MetricsSnapshot
from pulse.models.readiness import (
    ReadinessBreakdown,
    ReadinessScore,
    confidence_for_count,
    round_score,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Component scoring
# ---------------------------------------------------------------------------

def score_hrv(hrv: float) -> int:
    if hrv < 20:
        return int(10 + (hrv / 20) * 20)
    if hrv < 40:
        return int(30 + ((hrv - 20) / 20) * 20)
    if hrv < 60:
        return int(50 + ((hrv - 40) / 20) * 20)
    if hrv < 100:
        return int(70 + ((hrv - 60) / 40) * 20)
    return min(100, int(90 + ((hrv - 100) / 50) * 10))


def score_resting_heart_rate(rhr: float) -> int:
    if rhr >= 90:
        return max(10, int(30 - ((rhr - 90) / 20) * 20))
    if rhr >= 80:
        return int(50 - ((rhr - 80) / 10) * 20)
    if rhr >= 70:
        return int(65 - ((rhr - 70) / 10) * 15)
    if rhr >= 60:
        return int(80 - ((rhr - 60) / 10) * 15)
    if rhr >= 50:
        return int(95 - ((rhr - 50) / 10) * 15)
    if rhr >= 40:
        # athlete range
        return int(90 + ((50 - rhr) / 10) * 10)
    return 85


def score_sleep(duration_seconds: float) -> int:
    hours = duration_seconds / 3600
    if hours < 4:
        return int(10 + (hours / 4) * 15)
    if hours < 5:
        return int(25 + (hours - 4) * 15)
    if hours < 6:
        return int(40 + (hours - 5) * 20)
    if hours < 7:
        return int(60 + (hours - 6) * 20)
    if hours < 8:
        return int(80 + (hours - 7) * 15)
    if hours < 9:
        return int(95 + (hours - 8) * 5)
    if hours < 10:
        return int(95 - (hours - 9) * 5)
    return max(70, int(90 - ((hours - 10) / 2) * 10))


def score_energy(level: int) -> int:
    # Input is validated upstream; only the component output is bounded.
    return max(0, min(100, level * 20))


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

class ReadinessCalculator:
    """Combines component scores into one readiness score with confidence."""

    def breakdown(
        self,
        metrics: MetricsSnapshot | None,
        energy_level: Optional[int],
    ) -> ReadinessBreakdown:
        return ReadinessBreakdown(
            hrv=None if metrics is None or metrics.hrv is None else score_hrv(metrics.hrv),
            resting_heart_rate=(
                None if metrics is None or metrics.resting_heart_rate is None
                else score_resting_heart_rate(metrics.resting_heart_rate)
            ),
            sleep=(
                None if metrics is None or metrics.sleep_duration is None
                else score_sleep(metrics.sleep_duration)
            ),
            energy=None if energy_level is None else score_energy(energy_level),
        )

    def calculate(
        self,
        metrics: MetricsSnapshot | None,
        energy_level: Optional[int],
    ) -> ReadinessScore | None:
        """Score a day. Returns None when not a single component is available."""
        breakdown = self.breakdown(metrics, energy_level)
        weighted = breakdown.weighted_score()
        if weighted is None:
            logger.debug("No readiness components available; skipping score")
            return None

        return ReadinessScore(
            date=metrics.date if metrics is not None else date.today(),
            score=round_score(weighted),
            breakdown=breakdown,
            confidence=confidence_for_count(breakdown.component_count),
            health_metrics=metrics,
            user_energy_level=energy_level,
        )

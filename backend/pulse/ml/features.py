"""
Feature Extraction
==================
Turns a MetricsSnapshot into the four-component feature vector the
personalized model regresses on:

    hrv          HRV normalized over 20-100 ms (higher is better)
    rhr          resting HR normalized over 40-90 bpm, inverted
    sleep        sleep duration, strategy depends on model maturity
    day_of_week  Sunday = 0.0 ... Saturday = 1.0

Sleep has two normalization strategies:

- OPINIONATED (fewer than 30 training examples): 7-9 h is the optimal
  band peaking at 8 h. Under-sleep is penalized more steeply than
  over-sleep. Gives a young model a sensible prior.
- LINEAR (30+ examples): plain 4-12 h ramp, so the model can learn this
  person's own optimum.

The cutover is hard; there is no blending between strategies.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from pulse.models.metrics import MetricsSnapshot

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MATURE_EXAMPLE_THRESHOLD = 30
DEFAULT_FEATURE_VALUE = 0.5
FEATURE_COUNT = 4

HRV_MIN_MS = 20.0
HRV_MAX_MS = 100.0

RHR_MIN_BPM = 40.0  # athlete
RHR_MAX_BPM = 90.0  # elevated

SLEEP_MIN_HOURS = 4.0
SLEEP_MAX_HOURS = 12.0
SLEEP_OPTIMAL_MIN_HOURS = 7.0
SLEEP_OPTIMAL_MAX_HOURS = 9.0


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


# ---------------------------------------------------------------------------
# Sleep normalization strategies
# ---------------------------------------------------------------------------

class SleepNormalization(str, Enum):
    OPINIONATED = "opinionated"
    LINEAR = "linear"


def select_sleep_normalization(training_example_count: int) -> SleepNormalization:
    if training_example_count >= MATURE_EXAMPLE_THRESHOLD:
        return SleepNormalization.LINEAR
    return SleepNormalization.OPINIONATED


def normalize_sleep(hours: float, strategy: SleepNormalization) -> float:
    if strategy is SleepNormalization.LINEAR:
        clamped = _clamp(hours, SLEEP_MIN_HOURS, SLEEP_MAX_HOURS)
        return (clamped - SLEEP_MIN_HOURS) / (SLEEP_MAX_HOURS - SLEEP_MIN_HOURS)

    # Optimal band: 0.8 at the edges, 1.0 at 8 h
    if SLEEP_OPTIMAL_MIN_HOURS <= hours <= SLEEP_OPTIMAL_MAX_HOURS:
        position = (hours - SLEEP_OPTIMAL_MIN_HOURS) / (SLEEP_OPTIMAL_MAX_HOURS - SLEEP_OPTIMAL_MIN_HOURS)
        distance_from_middle = abs(position - 0.5) * 2
        return 1.0 - distance_from_middle * 0.2

    # Under-sleep: 0.2 at 4 h (and below) up to 0.8 at 7 h
    if hours < SLEEP_OPTIMAL_MIN_HOURS:
        span = SLEEP_OPTIMAL_MIN_HOURS - SLEEP_MIN_HOURS
        position = max(0.0, hours - SLEEP_MIN_HOURS) / span
        return 0.2 + position * 0.6

    # Over-sleep: 0.8 at 9 h down to 0.5 at 12 h (and above)
    span = SLEEP_MAX_HOURS - SLEEP_OPTIMAL_MAX_HOURS
    position = min(hours - SLEEP_OPTIMAL_MAX_HOURS, span) / span
    return 0.8 - position * 0.3


# ---------------------------------------------------------------------------
# Feature vector
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FeatureVector:
    """Normalized model input. ``None`` marks a missing reading."""

    hrv: Optional[float]
    rhr: Optional[float]
    sleep: Optional[float]
    day_of_week: float

    @property
    def available_feature_count(self) -> int:
        present = sum(v is not None for v in (self.hrv, self.rhr, self.sleep))
        return present + 1  # day_of_week is always known

    def to_array(self, default_value: float = DEFAULT_FEATURE_VALUE) -> list[float]:
        return [
            self.hrv if self.hrv is not None else default_value,
            self.rhr if self.rhr is not None else default_value,
            self.sleep if self.sleep is not None else default_value,
            self.day_of_week,
        ]

    def to_dict(self) -> dict:
        return {
            "hrv": self.hrv,
            "rhr": self.rhr,
            "sleep": self.sleep,
            "day_of_week": self.day_of_week,
        }

    @classmethod
    def from_dict(cls, data: dict) -> FeatureVector:
        return cls(
            hrv=data.get("hrv"),
            rhr=data.get("rhr"),
            sleep=data.get("sleep"),
            day_of_week=float(data["day_of_week"]),
        )


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class FeatureExtractor:
    """Normalizes health metrics for the personalized readiness model."""

    def __init__(self, training_example_count: int = 0) -> None:
        self.sleep_strategy = select_sleep_normalization(training_example_count)

    def extract_features(self, snapshot: MetricsSnapshot | None) -> FeatureVector:
        if snapshot is None:
            return FeatureVector(
                hrv=None,
                rhr=None,
                sleep=None,
                day_of_week=normalize_day_of_week(date.today()),
            )

        return FeatureVector(
            hrv=None if snapshot.hrv is None else normalize_hrv(snapshot.hrv),
            rhr=None if snapshot.resting_heart_rate is None else normalize_rhr(snapshot.resting_heart_rate),
            sleep=(
                None if snapshot.sleep_hours is None
                else normalize_sleep(snapshot.sleep_hours, self.sleep_strategy)
            ),
            day_of_week=normalize_day_of_week(snapshot.date),
        )


def normalize_hrv(hrv: float) -> float:
    return (_clamp(hrv, HRV_MIN_MS, HRV_MAX_MS) - HRV_MIN_MS) / (HRV_MAX_MS - HRV_MIN_MS)


def normalize_rhr(rhr: float) -> float:
    """Inverted so that a lower resting HR gives a higher value."""
    clamped = _clamp(rhr, RHR_MIN_BPM, RHR_MAX_BPM)
    return 1.0 - (clamped - RHR_MIN_BPM) / (RHR_MAX_BPM - RHR_MIN_BPM)


def normalize_day_of_week(day: date) -> float:
    # isoweekday: Monday=1 ... Sunday=7 -> Sunday=0 ... Saturday=6
    return (day.isoweekday() % 7) / 6.0

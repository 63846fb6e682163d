"""
Health Metrics Snapshot
=======================
One day of biometric readings. Every reading is optional: a day with no
watch data is a valid snapshot with all fields ``None``.

Merge semantics (two syncs for the same day):
- Recovery fields (resting HR, HRV, sleep) are fixed once recorded in the
  morning, so the first non-null value wins.
- Activity fields (steps, active calories) accumulate through the day, so
  the larger value wins.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

_RECOVERY_FIELDS = ("resting_heart_rate", "hrv", "sleep_duration")
_ACTIVITY_FIELDS = ("steps", "active_calories")


def _max_optional(a, b):
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


class MetricsSnapshot(BaseModel):
    """Immutable, date-stamped set of optional health readings."""

    model_config = ConfigDict(frozen=True)

    date: date
    resting_heart_rate: Optional[float] = Field(default=None, ge=0, description="Resting heart rate in bpm.")
    hrv: Optional[float] = Field(default=None, ge=0, description="Heart-rate variability (SDNN) in ms.")
    sleep_duration: Optional[float] = Field(default=None, ge=0, description="Sleep duration in seconds.")
    steps: Optional[int] = Field(default=None, ge=0)
    active_calories: Optional[float] = Field(default=None, ge=0, description="Active energy in kcal.")

    @property
    def has_any_data(self) -> bool:
        return any(
            getattr(self, name) is not None
            for name in _RECOVERY_FIELDS + _ACTIVITY_FIELDS
        )

    @property
    def sleep_hours(self) -> Optional[float]:
        if self.sleep_duration is None:
            return None
        return self.sleep_duration / 3600

    def merge(self, other: MetricsSnapshot) -> tuple[MetricsSnapshot, bool]:
        """Merge a fresher sync of the same day into this snapshot.

        Returns ``(merged, did_change)``. ``did_change`` is False when the
        merge would produce a snapshot equal to ``self``.
        """
        updates = {}
        for name in _RECOVERY_FIELDS:
            if getattr(self, name) is None and getattr(other, name) is not None:
                updates[name] = getattr(other, name)
        updates.update(self._activity_updates(other))
        return self._apply(updates)

    def merge_activity_only(self, other: MetricsSnapshot) -> tuple[MetricsSnapshot, bool]:
        """Like :meth:`merge` but never touches the recovery fields."""
        return self._apply(self._activity_updates(other))

    def _activity_updates(self, other: MetricsSnapshot) -> dict:
        updates = {}
        for name in _ACTIVITY_FIELDS:
            current = getattr(self, name)
            merged = _max_optional(current, getattr(other, name))
            if merged != current:
                updates[name] = merged
        return updates

    def _apply(self, updates: dict) -> tuple[MetricsSnapshot, bool]:
        if not updates:
            return self, False
        return self.model_copy(update=updates), True

"""Per-metric aggregates shared by scorers, insights, summary and stats.

Each helper returns None when the snapshot has no data for that metric, so
callers can apply their own no-data policy.
"""

from __future__ import annotations

import math
import statistics
from datetime import datetime
from typing import Iterable

from healthlens.domains.health.domain_logic.insight_models import (
    ExerciseEntry,
    HealthDataSnapshot,
)

SECONDS_PER_DAY = 86400


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def round_1dp(value: float) -> float:
    """Round to one decimal place, half up."""
    return math.floor(value * 10 + 0.5) / 10


def format_1dp(value: float) -> str:
    """One-decimal display string using the same half-up rounding as round_1dp."""
    return f"{round_1dp(value):.1f}"


def average_blood_pressure(snapshot: HealthDataSnapshot) -> tuple[float, float] | None:
    """Mean (systolic, diastolic) over all paired readings."""
    readings = snapshot.blood_pressure_readings()
    if not readings:
        return None
    return (
        statistics.fmean(r.systolic for r in readings),
        statistics.fmean(r.diastolic for r in readings),
    )


def average_heart_rate(snapshot: HealthDataSnapshot) -> float | None:
    readings = snapshot.heart_rate_readings()
    if not readings:
        return None
    return statistics.fmean(r.bpm for r in readings)


def average_sleep_hours(snapshot: HealthDataSnapshot) -> float | None:
    if not snapshot.sleep:
        return None
    return statistics.fmean(s.duration_hours for s in snapshot.sleep)


def average_stress_level(snapshot: HealthDataSnapshot) -> float | None:
    if not snapshot.stress:
        return None
    return statistics.fmean(s.level for s in snapshot.stress)


def days_covered(timestamps: Iterable[datetime]) -> float:
    """Fractional day span between the first and last timestamp, plus one."""
    stamps = list(timestamps)
    if not stamps:
        return 1.0
    span = (max(stamps) - min(stamps)).total_seconds() / SECONDS_PER_DAY
    return max(1.0, span + 1)


def weekly_exercise_minutes_for(entries: Iterable[ExerciseEntry]) -> float | None:
    """Total exercise minutes normalized to a weekly rate."""
    entries = list(entries)
    if not entries:
        return None
    total = sum(e.duration_minutes for e in entries)
    return total / days_covered(e.recorded_at for e in entries) * 7


def weekly_exercise_minutes(snapshot: HealthDataSnapshot) -> float | None:
    return weekly_exercise_minutes_for(snapshot.exercise)

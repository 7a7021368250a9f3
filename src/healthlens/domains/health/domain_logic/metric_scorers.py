"""Deterministic metric scoring: snapshot -> 0-100 sub-scores.

Each scorer takes a HealthDataSnapshot and returns an integer in [0, 100]
using banded step functions over the metric's window average. Band
comparisons are inclusive, so a value sitting on a boundary lands in the
better band. Missing data yields a fixed fallback rather than an error.
"""

from __future__ import annotations

from healthlens.domains.health.domain_logic.aggregates import (
    average_blood_pressure,
    average_heart_rate,
    average_sleep_hours,
    average_stress_level,
    weekly_exercise_minutes,
)
from healthlens.domains.health.domain_logic.insight_models import (
    FALLBACK_NO_DATA,
    FALLBACK_NO_EXERCISE,
    HealthDataSnapshot,
)


def _clamp(value: int, lo: int = 0, hi: int = 100) -> int:
    return max(lo, min(hi, value))


# (upper bound inclusive, penalty)
_SYSTOLIC_PENALTIES = [(120, 0), (130, 10), (140, 30), (160, 60)]
_DIASTOLIC_PENALTIES = [(80, 0), (85, 10), (90, 30), (100, 60)]
_MAX_PENALTY = 80


def _penalty(value: float, bands: list[tuple[float, int]]) -> int:
    for upper, penalty in bands:
        if value <= upper:
            return penalty
    return _MAX_PENALTY


def _banded(value: float, bands: list[tuple[float, float, int]], floor: int) -> int:
    """Score for the first (lo, hi) band containing ``value``."""
    for lo, hi, score in bands:
        if lo <= value <= hi:
            return score
    return floor


# ---------------------------------------------------------------------------
# Blood pressure
# ---------------------------------------------------------------------------

def blood_pressure_penalty_score(avg_systolic: float, avg_diastolic: float) -> int:
    """Start at 100 and subtract independent systolic and diastolic penalties.

    Systolic:  <=120: 0, <=130: -10, <=140: -30, <=160: -60, else -80
    Diastolic: <=80:  0, <=85:  -10, <=90:  -30, <=100: -60, else -80
    """
    score = 100
    score -= _penalty(avg_systolic, _SYSTOLIC_PENALTIES)
    score -= _penalty(avg_diastolic, _DIASTOLIC_PENALTIES)
    return _clamp(score)


def calculate_blood_pressure_score(snapshot: HealthDataSnapshot) -> int:
    averages = average_blood_pressure(snapshot)
    if averages is None:
        return FALLBACK_NO_DATA
    return blood_pressure_penalty_score(*averages)


# ---------------------------------------------------------------------------
# Heart rate
# ---------------------------------------------------------------------------

_HEART_RATE_BANDS = [(60, 80, 100), (50, 90, 80), (40, 100, 60), (35, 110, 40)]


def heart_rate_band_score(avg_bpm: float) -> int:
    """100 for 60-80 bpm, widening bands down to 20 outside 35-110."""
    return _banded(avg_bpm, _HEART_RATE_BANDS, floor=20)


def calculate_heart_rate_score(snapshot: HealthDataSnapshot) -> int:
    avg = average_heart_rate(snapshot)
    if avg is None:
        return FALLBACK_NO_DATA
    return heart_rate_band_score(avg)


# ---------------------------------------------------------------------------
# Sleep
# ---------------------------------------------------------------------------

_SLEEP_BANDS = [(7, 9, 100), (6, 10, 80), (5, 11, 60), (4, 12, 40)]


def sleep_band_score(avg_hours: float) -> int:
    return _banded(avg_hours, _SLEEP_BANDS, floor=20)


def calculate_sleep_score(snapshot: HealthDataSnapshot) -> int:
    avg = average_sleep_hours(snapshot)
    if avg is None:
        return FALLBACK_NO_DATA
    return sleep_band_score(avg)


# ---------------------------------------------------------------------------
# Exercise
# ---------------------------------------------------------------------------

_EXERCISE_THRESHOLDS = [(150, 100), (100, 80), (60, 60), (30, 40)]


def exercise_band_score(weekly_minutes: float) -> int:
    """100 at the 150 min/week guideline, stepping down to 20 below 30."""
    for minimum, score in _EXERCISE_THRESHOLDS:
        if weekly_minutes >= minimum:
            return score
    return 20


def calculate_exercise_score(snapshot: HealthDataSnapshot) -> int:
    """Score weekly exercise volume.

    No exercise entries scores 30, below the neutral 50 the other metrics
    use: an empty exercise log is itself evidence of inactivity.
    """
    weekly = weekly_exercise_minutes(snapshot)
    if weekly is None:
        return FALLBACK_NO_EXERCISE
    return exercise_band_score(weekly)


# ---------------------------------------------------------------------------
# Stress
# ---------------------------------------------------------------------------

_STRESS_THRESHOLDS = [(3, 100), (5, 70), (7, 40)]


def stress_band_score(avg_level: float) -> int:
    for upper, score in _STRESS_THRESHOLDS:
        if avg_level <= upper:
            return score
    return 10


def calculate_stress_score(snapshot: HealthDataSnapshot) -> int:
    avg = average_stress_level(snapshot)
    if avg is None:
        return FALLBACK_NO_DATA
    return stress_band_score(avg)


# Component name -> scorer, in the fixed evaluation order
SCORERS = {
    "bloodPressure": calculate_blood_pressure_score,
    "heartRate": calculate_heart_rate_score,
    "sleep": calculate_sleep_score,
    "exercise": calculate_exercise_score,
    "stress": calculate_stress_score,
}

"""Prose summary of the analysis window.

Re-evaluates the five metrics with coarser thresholds than the insight
generator and sorts the findings into positive and concerning lists. Missing
sleep or exercise data counts as concerning; missing blood pressure, heart
rate or stress data contributes nothing.
"""

from __future__ import annotations

from datetime import datetime

from healthlens.domains.health.domain_logic.aggregates import (
    average_blood_pressure,
    average_heart_rate,
    average_sleep_hours,
    average_stress_level,
    format_1dp,
    round_half_up,
    weekly_exercise_minutes,
)
from healthlens.domains.health.domain_logic.insight_models import (
    HealthDataSnapshot,
    Summary,
)

SUMMARY_PERIOD = "last 7 days"

# (minimum data points, confidence), highest first
_CONFIDENCE_STEPS = [(20, 0.9), (10, 0.7), (5, 0.5)]
_MIN_CONFIDENCE = 0.3


def _blood_pressure_findings(snapshot, positive, concerning):
    averages = average_blood_pressure(snapshot)
    if averages is None:
        return
    systolic, diastolic = averages
    reading = f"{round_half_up(systolic)}/{round_half_up(diastolic)} mmHg"
    if systolic <= 120 and diastolic <= 80:
        positive.append(f"blood pressure is in the normal range ({reading})")
    elif systolic > 140 or diastolic > 90:
        concerning.append(f"blood pressure is high ({reading}) and worth discussing with a doctor")
    else:
        concerning.append(f"blood pressure is slightly elevated ({reading})")


def _heart_rate_findings(snapshot, positive, concerning):
    avg = average_heart_rate(snapshot)
    if avg is None:
        return
    bpm = round_half_up(avg)
    if 60 <= avg <= 80:
        positive.append(f"heart rate is in the ideal range ({bpm} bpm)")
    elif avg > 100 or avg < 50:
        concerning.append(f"heart rate is outside the normal range ({bpm} bpm)")


def _sleep_findings(snapshot, positive, concerning):
    avg = average_sleep_hours(snapshot)
    if avg is None:
        concerning.append("no sleep data recorded")
        return
    if 7 <= avg <= 9:
        positive.append(f"you are getting enough sleep ({format_1dp(avg)} hours on average)")
    elif avg < 6:
        concerning.append(f"you are not getting enough sleep ({format_1dp(avg)} hours on average)")
    elif avg > 10:
        concerning.append(f"you are sleeping too much ({format_1dp(avg)} hours on average)")


def _exercise_findings(snapshot, positive, concerning):
    weekly = weekly_exercise_minutes(snapshot)
    if weekly is None:
        concerning.append("no exercise recorded")
        return
    minutes = round_half_up(weekly)
    if weekly >= 150:
        positive.append(f"you exercise regularly ({minutes} min/week)")
    else:
        concerning.append(f"you are not exercising enough ({minutes} min/week, 150 recommended)")


def _stress_findings(snapshot, positive, concerning):
    avg = average_stress_level(snapshot)
    if avg is None:
        return
    level = f"{format_1dp(avg)}/10"
    if avg <= 3:
        positive.append(f"stress is well managed (level {level})")
    elif avg > 7:
        concerning.append(f"stress is high (level {level})")
    elif avg > 5:
        concerning.append(f"stress needs managing (level {level})")


_FINDINGS = [
    _blood_pressure_findings,
    _heart_rate_findings,
    _sleep_findings,
    _exercise_findings,
    _stress_findings,
]


def overall_status(positive_count: int, concerning_count: int) -> str:
    if positive_count > concerning_count * 2:
        return "very good"
    if positive_count > concerning_count:
        return "good"
    if positive_count == concerning_count:
        return "fair"
    return "needs attention"


def confidence_for(data_points: int) -> float:
    for minimum, confidence in _CONFIDENCE_STEPS:
        if data_points >= minimum:
            return confidence
    return _MIN_CONFIDENCE


def compose_summary(snapshot: HealthDataSnapshot, now: datetime) -> Summary:
    positive: list[str] = []
    concerning: list[str] = []
    for collect in _FINDINGS:
        collect(snapshot, positive, concerning)

    status = overall_status(len(positive), len(concerning))
    parts = [f"Based on your health data from the {SUMMARY_PERIOD}, your overall health is {status}."]
    if positive:
        parts.append(f"On the positive side, {', '.join(positive[:2])}.")
    if concerning:
        parts.append(f"Areas to improve: {', '.join(concerning[:2])}.")
    parts.append("Keep up steady habits to stay in good health.")

    return Summary(
        text=" ".join(parts),
        period=SUMMARY_PERIOD,
        last_updated=now,
        confidence=confidence_for(snapshot.data_point_count()),
        positive=positive,
        concerning=concerning,
    )

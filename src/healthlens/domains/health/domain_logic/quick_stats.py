"""Headline averages for the short quick-stats window."""

from __future__ import annotations

from healthlens.domains.health.domain_logic.aggregates import (
    average_blood_pressure,
    average_heart_rate,
    average_sleep_hours,
    round_1dp,
    round_half_up,
    weekly_exercise_minutes,
)
from healthlens.domains.health.domain_logic.insight_models import (
    HealthDataSnapshot,
    QuickStats,
)

NO_DATA_LABEL = "no data"


def compute_quick_stats(snapshot: HealthDataSnapshot) -> QuickStats:
    """Unmeasured numeric stats are reported as 0."""
    bp = average_blood_pressure(snapshot)
    heart_rate = average_heart_rate(snapshot)
    sleep = average_sleep_hours(snapshot)
    exercise = weekly_exercise_minutes(snapshot)

    return QuickStats(
        blood_pressure=(
            f"{round_half_up(bp[0])}/{round_half_up(bp[1])}" if bp else NO_DATA_LABEL
        ),
        heart_rate=round_half_up(heart_rate) if heart_rate is not None else 0,
        sleep=round_1dp(sleep) if sleep is not None else 0.0,
        exercise=round_half_up(exercise) if exercise is not None else 0,
    )


def empty_quick_stats() -> QuickStats:
    return QuickStats(blood_pressure=NO_DATA_LABEL, heart_rate=0, sleep=0.0, exercise=0)

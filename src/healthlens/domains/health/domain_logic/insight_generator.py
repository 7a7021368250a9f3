"""Rule-based insight generation.

Each analyzer looks at one metric's window average (not its 0-100 score),
walks an ordered list of rule branches and emits at most one insight. The
combined list is stably sorted by priority, so within a priority the fixed
metric order (blood pressure, heart rate, sleep, exercise, stress) holds.
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
    METRIC_BLOOD_PRESSURE,
    METRIC_EXERCISE,
    METRIC_HEART_RATE,
    METRIC_SLEEP,
    METRIC_STRESS,
    PRIORITY_RANK,
    HealthDataSnapshot,
    Insight,
    InsightPriority,
    InsightType,
)

RECOMMENDED_WEEKLY_EXERCISE_MINUTES = 150


def _epoch_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def _insight(
    key: str,
    now: datetime,
    *,
    type: InsightType,
    priority: InsightPriority,
    icon: str,
    title: str,
    description: str,
    action_text: str,
    action_link: str,
    metric: str,
) -> Insight:
    return Insight(
        id=f"{key}-{_epoch_ms(now)}",
        type=type,
        priority=priority,
        icon=icon,
        title=title,
        description=description,
        action_text=action_text,
        action_link=action_link,
        related_metrics=(metric,),
        generated_at=now,
    )


def analyze_blood_pressure(snapshot: HealthDataSnapshot, now: datetime) -> list[Insight]:
    averages = average_blood_pressure(snapshot)
    if averages is None:
        return []
    systolic, diastolic = averages
    reading = f"{round_half_up(systolic)}/{round_half_up(diastolic)} mmHg"

    if systolic > 140 or diastolic > 90:
        return [_insight(
            "bp-alert", now,
            type="alert", priority="high", icon="⚠️",
            title="Your blood pressure is high",
            description=(
                f"Your average blood pressure is {reading}, above the normal range "
                "(120/80). Please talk to your doctor."
            ),
            action_text="Review medical records",
            action_link="/health/medical-records",
            metric=METRIC_BLOOD_PRESSURE,
        )]
    if systolic > 130 or diastolic > 85:
        return [_insight(
            "bp-warning", now,
            type="warning", priority="medium", icon="⚡",
            title="Your blood pressure needs attention",
            description=(
                f"Your average blood pressure is {reading}, slightly elevated. "
                "Lifestyle changes are recommended."
            ),
            action_text="See health tips",
            action_link="/health/tips",
            metric=METRIC_BLOOD_PRESSURE,
        )]
    if systolic <= 120 and diastolic <= 80:
        return [_insight(
            "bp-positive", now,
            type="positive", priority="low", icon="✅",
            title="Your blood pressure is in the normal range",
            description=f"An average of {reading} shows you are keeping it healthy.",
            action_text="View trends",
            action_link="/health/trends",
            metric=METRIC_BLOOD_PRESSURE,
        )]
    return []


def analyze_heart_rate(snapshot: HealthDataSnapshot, now: datetime) -> list[Insight]:
    avg = average_heart_rate(snapshot)
    if avg is None:
        return []
    bpm = round_half_up(avg)

    if avg > 100:
        return [_insight(
            "hr-alert", now,
            type="alert", priority="high", icon="💓",
            title="Your heart rate is high",
            description=(
                f"Your average heart rate is {bpm} bpm, above the normal range (60-100). "
                "Cut back on stress and caffeine and see a doctor if it persists."
            ),
            action_text="Check vital signs",
            action_link="/health/vital-signs",
            metric=METRIC_HEART_RATE,
        )]
    if avg < 50:
        return [_insight(
            "hr-alert-low", now,
            type="alert", priority="high", icon="💓",
            title="Your heart rate is low",
            description=(
                f"Your average heart rate is {bpm} bpm, below the normal range (60-100). "
                "Unless you are a trained athlete, please see a doctor."
            ),
            action_text="Check vital signs",
            action_link="/health/vital-signs",
            metric=METRIC_HEART_RATE,
        )]
    if 60 <= avg <= 80:
        return [_insight(
            "hr-positive", now,
            type="positive", priority="low", icon="❤️",
            title="Your heart rate is ideal",
            description=f"An average of {bpm} bpm points to a healthy cardiovascular state.",
            action_text="View trends",
            action_link="/health/trends",
            metric=METRIC_HEART_RATE,
        )]
    return []


def analyze_sleep(snapshot: HealthDataSnapshot, now: datetime) -> list[Insight]:
    avg = average_sleep_hours(snapshot)
    if avg is None:
        return []
    hours = format_1dp(avg)

    if avg < 6:
        return [_insight(
            "sleep-warning", now,
            type="warning", priority="medium", icon="😴",
            title="You are not getting enough sleep",
            description=(
                f"You average {hours} hours of sleep, short of the recommended 7-9 hours. "
                "Enough sleep is essential to staying healthy."
            ),
            action_text="Sleep tips",
            action_link="/health/tips",
            metric=METRIC_SLEEP,
        )]
    if avg > 10:
        return [_insight(
            "sleep-warning-excess", now,
            type="warning", priority="medium", icon="😴",
            title="You are sleeping too much",
            description=(
                f"You average {hours} hours of sleep, more than the recommended 7-9 hours. "
                "Oversleeping can leave you feeling tired."
            ),
            action_text="Check sleep patterns",
            action_link="/health/sleep",
            metric=METRIC_SLEEP,
        )]
    if 7 <= avg <= 9:
        return [_insight(
            "sleep-positive", now,
            type="positive", priority="low", icon="🌙",
            title="Your sleep pattern is excellent",
            description=f"Averaging {hours} hours, you are keeping an ideal sleep pattern.",
            action_text="View sleep log",
            action_link="/health/sleep",
            metric=METRIC_SLEEP,
        )]
    return []


def analyze_exercise(snapshot: HealthDataSnapshot, now: datetime) -> list[Insight]:
    weekly = weekly_exercise_minutes(snapshot)
    if weekly is None:
        return [_insight(
            "exercise-warning-none", now,
            type="warning", priority="medium", icon="🏃",
            title="No exercise records",
            description=(
                "There are no recent exercise records. At least 150 minutes of "
                "moderate exercise per week is recommended."
            ),
            action_text="Plan your workouts",
            action_link="/health/exercise",
            metric=METRIC_EXERCISE,
        )]

    minutes = round_half_up(weekly)
    if weekly < RECOMMENDED_WEEKLY_EXERCISE_MINUTES:
        return [_insight(
            "exercise-warning", now,
            type="warning", priority="medium", icon="🏃",
            title="You are not exercising enough",
            description=(
                f"You exercise about {minutes} minutes per week, short of the recommended "
                "150 minutes. Try building a regular routine."
            ),
            action_text="Plan your workouts",
            action_link="/health/exercise",
            metric=METRIC_EXERCISE,
        )]
    return [_insight(
        "exercise-positive", now,
        type="positive", priority="low", icon="💪",
        title="You are exercising consistently",
        description=(
            f"About {minutes} minutes of exercise per week keeps your lifestyle healthy. "
            "Keep it up!"
        ),
        action_text="View exercise log",
        action_link="/health/exercise",
        metric=METRIC_EXERCISE,
    )]


def analyze_stress(snapshot: HealthDataSnapshot, now: datetime) -> list[Insight]:
    avg = average_stress_level(snapshot)
    if avg is None:
        return []
    level = f"{format_1dp(avg)}/10"

    if avg > 7:
        return [_insight(
            "stress-alert", now,
            type="alert", priority="high", icon="😰",
            title="Your stress level is high",
            description=(
                f"Your average stress level is {level}. Consider meditation, yoga "
                "or talking to a professional."
            ),
            action_text="Stress management tips",
            action_link="/health/tips",
            metric=METRIC_STRESS,
        )]
    if avg > 5:
        return [_insight(
            "stress-warning", now,
            type="warning", priority="medium", icon="😓",
            title="Your stress needs managing",
            description=f"Your average stress level is {level}. Make more room for rest and relaxation.",
            action_text="Stress management tips",
            action_link="/health/tips",
            metric=METRIC_STRESS,
        )]
    return [_insight(
        "stress-positive", now,
        type="positive", priority="low", icon="😊",
        title="You are managing stress well",
        description=f"An average stress level of {level} reflects a healthy state of mind.",
        action_text="View stress log",
        action_link="/health/stress",
        metric=METRIC_STRESS,
    )]


_ANALYZERS = [
    analyze_blood_pressure,
    analyze_heart_rate,
    analyze_sleep,
    analyze_exercise,
    analyze_stress,
]


def generate_insights(snapshot: HealthDataSnapshot, now: datetime) -> list[Insight]:
    """Evaluate every metric and return insights ordered high -> low priority."""
    insights: list[Insight] = []
    for analyze in _ANALYZERS:
        insights.extend(analyze(snapshot, now))
    # sorted() is stable: equal priorities keep metric order
    return sorted(insights, key=lambda i: PRIORITY_RANK[i.priority])

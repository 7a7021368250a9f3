"""Recommendation generation from insights and data gaps.

Produces between one and five action items. Priorities are assigned as a
running counter in the order items are added, so the final sort keeps
high-priority insight follow-ups first.
"""

from __future__ import annotations

from dataclasses import dataclass

from healthlens.domains.health.domain_logic.aggregates import (
    average_sleep_hours,
    round_half_up,
    weekly_exercise_minutes,
)
from healthlens.domains.health.domain_logic.insight_models import (
    METRIC_BLOOD_PRESSURE,
    METRIC_HEART_RATE,
    METRIC_STRESS,
    HealthDataSnapshot,
    Insight,
    Recommendation,
)

MAX_RECOMMENDATIONS = 5
TARGET_SLEEP_HOURS = 7
TARGET_WEEKLY_EXERCISE_MINUTES = 150


@dataclass(frozen=True)
class _Template:
    key: str
    icon: str
    title: str
    description: str
    category: str


# Follow-ups for high-priority insights, keyed by related metric
_INSIGHT_FOLLOW_UPS = [
    (METRIC_BLOOD_PRESSURE, _Template(
        "bp", "🩺", "Manage your blood pressure",
        "Keep to a low-salt diet and do regular aerobic exercise. Measure your "
        "blood pressure at the same time every day to track changes.",
        "nutrition",
    )),
    (METRIC_HEART_RATE, _Template(
        "hr", "💓", "Steady your heart rate",
        "Cut back on caffeine and drink enough water. Try meditation or deep "
        "breathing exercises to manage stress.",
        "stress",
    )),
    (METRIC_STRESS, _Template(
        "stress", "🧘", "Manage your stress",
        "Practice 10-15 minutes of meditation or yoga every day. Make time for "
        "rest and hobbies.",
        "stress",
    )),
]

_SLEEP_IMPROVE = _Template(
    "sleep", "🌙", "Improve your sleep",
    "Go to bed and wake up at the same time every day. Avoid screens for an "
    "hour before bed and keep your bedroom comfortable.",
    "sleep",
)
_SLEEP_TRACK = _Template(
    "sleep-track", "📊", "Start tracking your sleep",
    "Log how long you sleep each night to understand your sleep pattern. "
    "Regular sleep habits are the foundation of good health.",
    "sleep",
)
_EXERCISE_START = _Template(
    "exercise-start", "🏃", "Start exercising",
    "Begin with a 30-minute walk each day. Build up gradually toward 150 "
    "minutes of moderate exercise across five days a week.",
    "exercise",
)
_EXERCISE_INCREASE = _Template(
    "exercise-increase", "💪", "Exercise a little more",
    "You currently exercise {minutes} minutes per week. Add 10 minutes a day "
    "to reach the 150-minute goal. Taking the stairs or stretching helps too.",
    "exercise",
)
_HYDRATION = _Template(
    "hydration", "💧", "Stay hydrated",
    "Drink 8 glasses (about 2 liters) of water a day. Start the morning with "
    "a glass of water and drink before and after meals.",
    "hydration",
)
_NUTRITION = _Template(
    "nutrition", "🥗", "Eat a balanced diet",
    "Eat vegetables and fruit in a variety of colors. Cut down on processed "
    "food and sugar, and get enough whole grains and protein.",
    "nutrition",
)

# Used only when there is not enough data to analyze
DATA_ENTRY = _Template(
    "data-entry", "📝", "Start logging your health data",
    "Record your blood pressure, heart rate, sleep and exercise regularly so "
    "your health can be analyzed.",
    "exercise",
)


class _RecommendationList:
    """Appends recommendations with a running 1-based priority."""

    def __init__(self) -> None:
        self.items: list[Recommendation] = []
        self._next_priority = 1

    def add(self, template: _Template, **fields: object) -> None:
        priority = self._next_priority
        self._next_priority += 1
        self.items.append(Recommendation(
            id=f"rec-{template.key}-{priority}",
            icon=template.icon,
            title=template.title,
            description=template.description.format(**fields),
            category=template.category,
            priority=priority,
        ))

    def __len__(self) -> int:
        return len(self.items)


def data_entry_recommendation() -> Recommendation:
    return Recommendation(
        id=f"rec-{DATA_ENTRY.key}",
        icon=DATA_ENTRY.icon,
        title=DATA_ENTRY.title,
        description=DATA_ENTRY.description,
        category=DATA_ENTRY.category,
        priority=1,
    )


def generate_recommendations(
    insights: list[Insight],
    snapshot: HealthDataSnapshot,
) -> list[Recommendation]:
    """Derive up to five recommendations, sorted by priority.

    Args:
        insights: Insights for the same snapshot, in generation order.
        snapshot: The analysis window.
    """
    recs = _RecommendationList()

    for insight in insights:
        if insight.priority != "high":
            continue
        for metric, template in _INSIGHT_FOLLOW_UPS:
            if metric in insight.related_metrics:
                recs.add(template)

    avg_sleep = average_sleep_hours(snapshot)
    if avg_sleep is None:
        recs.add(_SLEEP_TRACK)
    elif avg_sleep < TARGET_SLEEP_HOURS:
        recs.add(_SLEEP_IMPROVE)

    weekly = weekly_exercise_minutes(snapshot)
    if weekly is None:
        recs.add(_EXERCISE_START)
    elif weekly < TARGET_WEEKLY_EXERCISE_MINUTES:
        recs.add(_EXERCISE_INCREASE, minutes=round_half_up(weekly))

    for filler in (_HYDRATION, _NUTRITION):
        if len(recs) < MAX_RECOMMENDATIONS:
            recs.add(filler)

    return sorted(recs.items, key=lambda r: r.priority)[:MAX_RECOMMENDATIONS]

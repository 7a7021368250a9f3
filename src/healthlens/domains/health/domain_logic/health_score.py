"""Composite health score: weighted sub-scores, category and period delta."""

from __future__ import annotations

from healthlens.domains.health.domain_logic.aggregates import round_half_up
from healthlens.domains.health.domain_logic.insight_models import (
    HEALTH_WEIGHTS,
    ChangeDirection,
    HealthDataSnapshot,
    HealthScoreResult,
    MetricScore,
    ScoreCategory,
)
from healthlens.domains.health.domain_logic.metric_scorers import SCORERS

# (minimum score, category, label), best first
_CATEGORY_BANDS: list[tuple[int, ScoreCategory, str]] = [
    (81, "excellent", "Excellent"),
    (61, "good", "Good"),
    (41, "fair", "Fair"),
]
_POOR = ("poor", "Needs attention")

# Score deltas within +/- this many points count as stable
CHANGE_TOLERANCE = 2


def score_components(snapshot: HealthDataSnapshot) -> dict[str, MetricScore]:
    """Run all five scorers and attach their fixed weights."""
    return {
        name: MetricScore(score=scorer(snapshot), weight=HEALTH_WEIGHTS[name])
        for name, scorer in SCORERS.items()
    }


def composite_score(components: dict[str, MetricScore]) -> int:
    """round(sum(score * weight)); always in [0, 100] since weights sum to 1."""
    return round_half_up(sum(c.score * c.weight for c in components.values()))


def categorize(score: int) -> tuple[ScoreCategory, str]:
    for minimum, category, label in _CATEGORY_BANDS:
        if score >= minimum:
            return category, label
    return _POOR  # type: ignore[return-value]


def change_direction(change: int) -> ChangeDirection:
    if change > CHANGE_TOLERANCE:
        return "up"
    if change < -CHANGE_TOLERANCE:
        return "down"
    return "stable"


def calculate_health_score(
    current: HealthDataSnapshot,
    previous: HealthDataSnapshot,
) -> HealthScoreResult:
    """Aggregate the current window and compare against a shifted window.

    Args:
        current: The analysis window snapshot.
        previous: The comparison window (the week before the last week).
    """
    components = score_components(current)
    score = composite_score(components)
    previous_score = composite_score(score_components(previous))
    change = score - previous_score
    category, label = categorize(score)

    return HealthScoreResult(
        score=score,
        category=category,
        category_label=label,
        previous_score=previous_score,
        change=change,
        change_direction=change_direction(change),
        components=components,
    )

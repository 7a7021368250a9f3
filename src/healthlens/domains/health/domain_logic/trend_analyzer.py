"""Period-over-period trend analysis.

Compares a current window against the equal-length window right before it,
per metric, and classifies direction and whether the metric is improving.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Iterable

from healthlens.domains.health.domain_logic.aggregates import (
    average_blood_pressure,
    average_heart_rate,
    average_sleep_hours,
    average_stress_level,
    format_1dp,
    round_1dp,
    round_half_up,
)
from healthlens.domains.health.domain_logic.insight_models import (
    METRIC_BLOOD_PRESSURE,
    METRIC_EXERCISE,
    METRIC_HEART_RATE,
    METRIC_HYDRATION,
    METRIC_SLEEP,
    METRIC_STRESS,
    ChangeDirection,
    HealthDataSnapshot,
    Trend,
    TrendPoint,
)

if TYPE_CHECKING:
    from healthlens.domains.health.connectors import HealthDataSource

logger = logging.getLogger(__name__)

MAX_DATA_POINTS = 10
NO_DATA_LABEL = "no data"

# Percent change that must be exceeded before a metric counts as moving
SENSITIVITY = {
    METRIC_BLOOD_PRESSURE: 2.0,
    METRIC_HEART_RATE: 2.0,
    METRIC_SLEEP: 5.0,
    METRIC_EXERCISE: 10.0,
    METRIC_STRESS: 10.0,
}

IDEAL_MEAN_ARTERIAL = 105.0   # mean of a 130/80-ish reading
IDEAL_HEART_RATE = 70.0
IDEAL_SLEEP_HOURS = 8.0


def percent_change(current: float, previous: float) -> float:
    if previous <= 0:
        return 0.0
    return (current - previous) / previous * 100


def direction_for(change: float, threshold: float) -> ChangeDirection:
    if abs(change) <= threshold:
        return "stable"
    return "up" if change > 0 else "down"


def _closer(current: float, previous: float, ideal: float) -> bool:
    return abs(current - ideal) < abs(previous - ideal)


def _day(at: datetime) -> str:
    return at.date().isoformat()


def _recent_points(pairs: Iterable[tuple[datetime, float]]) -> list[TrendPoint]:
    points = [TrendPoint(date=_day(at), value=value) for at, value in pairs]
    return points[-MAX_DATA_POINTS:]


def _trend(
    metric: str,
    label: str,
    current: float,
    previous: float,
    *,
    current_value: str,
    previous_value: str,
    is_improving: bool,
    data_points: list[TrendPoint],
) -> Trend:
    change = percent_change(current, previous)
    return Trend(
        metric=metric,
        label=label,
        current_value=current_value,
        previous_value=previous_value,
        change=round_1dp(change),
        change_direction=direction_for(change, SENSITIVITY[metric]),
        is_improving=is_improving,
        data_points=data_points,
    )


# ---------------------------------------------------------------------------
# Per-metric trends
# ---------------------------------------------------------------------------

def blood_pressure_trend(current: HealthDataSnapshot, previous: HealthDataSnapshot) -> Trend | None:
    """Trend of the (systolic + diastolic) / 2 mean point.

    Improving means the mean point moved toward 105 without the current
    averages dropping below 90/60.
    """
    now_avg = average_blood_pressure(current)
    if now_avg is None:
        return None
    prev_avg = average_blood_pressure(previous) or now_avg

    cur_sys, cur_dia = now_avg
    prev_sys, prev_dia = prev_avg
    cur_mean = (cur_sys + cur_dia) / 2
    prev_mean = (prev_sys + prev_dia) / 2

    return _trend(
        METRIC_BLOOD_PRESSURE, "Blood pressure", cur_mean, prev_mean,
        current_value=f"{round_half_up(cur_sys)}/{round_half_up(cur_dia)} mmHg",
        previous_value=f"{round_half_up(prev_sys)}/{round_half_up(prev_dia)} mmHg",
        is_improving=(
            _closer(cur_mean, prev_mean, IDEAL_MEAN_ARTERIAL)
            and cur_sys >= 90
            and cur_dia >= 60
        ),
        data_points=_recent_points(
            (r.recorded_at, (r.systolic + r.diastolic) / 2)
            for r in current.blood_pressure_readings()
        ),
    )


def heart_rate_trend(current: HealthDataSnapshot, previous: HealthDataSnapshot) -> Trend | None:
    cur = average_heart_rate(current)
    if cur is None:
        return None
    prev = average_heart_rate(previous)
    if prev is None:
        prev = cur

    return _trend(
        METRIC_HEART_RATE, "Heart rate", cur, prev,
        current_value=f"{round_half_up(cur)} bpm",
        previous_value=f"{round_half_up(prev)} bpm",
        is_improving=_closer(cur, prev, IDEAL_HEART_RATE),
        data_points=_recent_points((r.recorded_at, r.bpm) for r in current.heart_rate_readings()),
    )


def sleep_trend(current: HealthDataSnapshot, previous: HealthDataSnapshot) -> Trend | None:
    cur = average_sleep_hours(current)
    if cur is None:
        return None
    prev = average_sleep_hours(previous)
    if prev is None:
        prev = cur

    return _trend(
        METRIC_SLEEP, "Sleep duration", cur, prev,
        current_value=f"{format_1dp(cur)} h",
        previous_value=f"{format_1dp(prev)} h",
        is_improving=_closer(cur, prev, IDEAL_SLEEP_HOURS),
        data_points=_recent_points((s.recorded_at, s.duration_hours) for s in current.sleep),
    )


def exercise_trend(current: HealthDataSnapshot, previous: HealthDataSnapshot) -> Trend | None:
    """Compares window totals; chart points are per-day totals."""
    if not current.exercise:
        return None
    cur_total = sum(e.duration_minutes for e in current.exercise)
    prev_total = sum(e.duration_minutes for e in previous.exercise)

    daily: dict[str, float] = {}
    for entry in current.exercise:
        day = _day(entry.recorded_at)
        daily[day] = daily.get(day, 0.0) + entry.duration_minutes

    return _trend(
        METRIC_EXERCISE, "Exercise time", cur_total, prev_total,
        current_value=f"{round_half_up(cur_total)} min",
        previous_value=f"{round_half_up(prev_total)} min",
        is_improving=cur_total > prev_total,
        data_points=[TrendPoint(date=d, value=v) for d, v in daily.items()][-MAX_DATA_POINTS:],
    )


def stress_trend(current: HealthDataSnapshot, previous: HealthDataSnapshot) -> Trend | None:
    cur = average_stress_level(current)
    if cur is None:
        return None
    prev = average_stress_level(previous)
    if prev is None:
        prev = cur

    return _trend(
        METRIC_STRESS, "Stress level", cur, prev,
        current_value=f"{format_1dp(cur)}/10",
        previous_value=f"{format_1dp(prev)}/10",
        is_improving=cur < prev,
        data_points=_recent_points((s.recorded_at, s.level) for s in current.stress),
    )


def hydration_placeholder() -> Trend:
    """Hydration is not tracked yet; always reported as a stable no-data trend."""
    return Trend(
        metric=METRIC_HYDRATION,
        label="Hydration",
        current_value=NO_DATA_LABEL,
        previous_value=NO_DATA_LABEL,
        change=0.0,
        change_direction="stable",
        is_improving=True,
        data_points=[],
    )


_METRIC_TRENDS: list[Callable[[HealthDataSnapshot, HealthDataSnapshot], Trend | None]] = [
    blood_pressure_trend,
    heart_rate_trend,
    sleep_trend,
    exercise_trend,
    stress_trend,
]


def compare_windows(current: HealthDataSnapshot, previous: HealthDataSnapshot) -> list[Trend]:
    """All metric trends with current data, followed by the hydration placeholder."""
    trends = [t for t in (fn(current, previous) for fn in _METRIC_TRENDS) if t is not None]
    trends.append(hydration_placeholder())
    return trends


class TrendAnalyzer:
    """Fetches a current and a previous window and compares them.

    Usage::

        analyzer = TrendAnalyzer(data_source)
        trends = await analyzer.analyze("local", period=30, now=now)
    """

    def __init__(self, data_source: HealthDataSource) -> None:
        self._source = data_source

    async def analyze(self, user_id: str, *, period: int, now: datetime) -> list[Trend]:
        """Compare ``[now - period, now]`` with ``[now - 2*period, now - period)``.

        Args:
            user_id: Whose records to analyze.
            period: Window length in days.
            now: Reference instant for both windows.
        """
        span = timedelta(days=period)
        current = await self._source.fetch_window(user_id, now - span, now)
        previous = await self._source.fetch_window(
            user_id, now - 2 * span, now - span, include_end=False,
        )
        trends = compare_windows(current, previous)
        logger.debug(
            "Trends for period=%d: %d metrics (current=%d points, previous=%d points)",
            period, len(trends) - 1, current.data_point_count(), previous.data_point_count(),
        )
        return trends

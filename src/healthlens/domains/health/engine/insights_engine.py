"""Health insights orchestration.

Sequences cache lookup, data fetch, the concurrent sub-computations,
recommendation generation, assembly and cache write for one user.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

from healthlens.core.config.settings import Settings
from healthlens.domains.health.connectors.repository_source import utc_now
from healthlens.domains.health.domain_logic.health_score import calculate_health_score
from healthlens.domains.health.domain_logic.insight_generator import generate_insights
from healthlens.domains.health.domain_logic.insight_models import (
    COMPONENT_NAMES,
    HEALTH_WEIGHTS,
    CacheStats,
    HealthDataSnapshot,
    HealthScoreResult,
    Insight,
    InsightsMetadata,
    InsightsSnapshot,
    MetricScore,
    PhaseTimings,
    QuickStats,
    Summary,
    Trend,
)
from healthlens.domains.health.domain_logic.quick_stats import (
    compute_quick_stats,
    empty_quick_stats,
)
from healthlens.domains.health.domain_logic.recommendations import (
    data_entry_recommendation,
    generate_recommendations,
)
from healthlens.domains.health.domain_logic.summary_composer import (
    SUMMARY_PERIOD,
    compose_summary,
)
from healthlens.domains.health.domain_logic.trend_analyzer import TrendAnalyzer
from healthlens.domains.health.engine.cache import CacheMetrics, SnapshotCache
from healthlens.domains.health.engine.errors import (
    InsightGenerationError,
    InvalidPeriodError,
)

if TYPE_CHECKING:
    from healthlens.core.audit.logger import AuditLogger
    from healthlens.domains.health.connectors import HealthDataSource

logger = logging.getLogger(__name__)

TREND_PERIODS = (7, 30, 90, 365)

# Health score compares against the week that ended a week ago
PREVIOUS_SCORE_OFFSET_DAYS = 7
PREVIOUS_SCORE_SPAN_DAYS = 7

# Generation slower than this is logged as a warning
SLOW_GENERATION_MS = 5000.0

# Analysis period reported by the insufficient-data response
INSUFFICIENT_DATA_PERIOD_DAYS = 7


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def insufficient_data_snapshot(
    user_id: str,
    data_points: int,
    *,
    min_data_points: int,
    now: datetime,
    ttl_seconds: int,
) -> InsightsSnapshot:
    """Fixed response for users without enough records to analyze."""
    return InsightsSnapshot(
        summary=Summary(
            text=(
                "There is not enough health data for a detailed analysis yet. "
                "Log more health data to receive personalized insights."
            ),
            period=SUMMARY_PERIOD,
            last_updated=now,
            confidence=0.0,
            positive=[],
            concerning=["Analysis is limited by insufficient data"],
        ),
        insights=[Insight(
            id="insufficient-data",
            type="info",
            priority="high",
            icon="info",
            title="More data needed",
            description=(
                f"You currently have {data_points} data points. Log at least "
                f"{min_data_points} health records to receive insights."
            ),
            action_text="Log health data",
            action_link="/health/records",
            related_metrics=(),
            generated_at=now,
        )],
        health_score=HealthScoreResult(
            score=0,
            category="poor",
            category_label="Insufficient data",
            previous_score=0,
            change=0,
            change_direction="stable",
            components={
                name: MetricScore(score=0, weight=HEALTH_WEIGHTS[name])
                for name in COMPONENT_NAMES
            },
        ),
        quick_stats=empty_quick_stats(),
        recommendations=[data_entry_recommendation()],
        trends=[],
        metadata=InsightsMetadata(
            user_id=user_id,
            generated_at=now,
            data_points_analyzed=data_points,
            analysis_period=INSUFFICIENT_DATA_PERIOD_DAYS,
            cache_expiry=now + timedelta(seconds=ttl_seconds),
        ),
    )


class HealthInsightsEngine:
    """Computes and caches per-user insights snapshots.

    Usage::

        engine = HealthInsightsEngine(source, cache, settings)
        snapshot = await engine.get_insights("local")
        engine.get_cache_stats()
    """

    def __init__(
        self,
        data_source: HealthDataSource,
        cache: SnapshotCache,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = utc_now,
        audit_logger: AuditLogger | None = None,
        metrics: CacheMetrics | None = None,
    ) -> None:
        self._source = data_source
        self._cache = cache
        self._settings = settings
        self._clock = clock
        self._audit = audit_logger
        self._metrics = metrics or CacheMetrics()
        self._trends = TrendAnalyzer(data_source)

    # ------------------------------------------------------------------
    # Produced interface
    # ------------------------------------------------------------------

    async def get_insights(self, user_id: str) -> InsightsSnapshot:
        """Return the cached snapshot for ``user_id`` or compute a fresh one.

        Raises:
            InsightGenerationError: Fetching or processing failed.
        """
        cached = self._cache.get(user_id)
        if cached is not None:
            self._metrics.record_hit()
            logger.debug("Insights cache hit")
            return cached

        self._metrics.record_miss()
        return await self._generate(user_id)

    async def refresh_insights(self, user_id: str) -> InsightsSnapshot:
        """Drop the user's cached snapshot and compute a new one."""
        self.clear_cache(user_id)
        return await self.get_insights(user_id)

    def clear_cache(self, user_id: str) -> int:
        """Remove the user's cached snapshots.

        Raises:
            CacheClearError: The cache store could not be cleared.
        """
        try:
            removed = self._cache.clear(user_id)
        except Exception as exc:
            if self._audit is not None:
                self._audit.log_cache_clear(
                    user_id, status="failure", error_type=type(exc.__cause__ or exc).__name__,
                )
            raise
        if self._audit is not None:
            self._audit.log_cache_clear(user_id, entries_removed=removed)
        return removed

    def get_cache_stats(self) -> CacheStats:
        return self._metrics.snapshot()

    def reset_cache_stats(self) -> None:
        self._metrics.reset()

    async def analyze_trends(self, user_id: str, period: int) -> list[Trend]:
        """Uncached trend comparison for one of the supported periods (days).

        Raises:
            InvalidPeriodError: ``period`` is not 7, 30, 90 or 365.
        """
        if period not in TREND_PERIODS:
            raise InvalidPeriodError(
                f"Unsupported trend period {period}; expected one of {list(TREND_PERIODS)}"
            )
        return await self._trends.analyze(user_id, period=period, now=self._clock())

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def _generate(self, user_id: str) -> InsightsSnapshot:
        timings = PhaseTimings()
        started = time.perf_counter()
        now = self._clock()
        period = self._settings.analysis_period_days
        data_points = 0

        try:
            phase = time.perf_counter()
            snapshot = await self._source.fetch_health_window(user_id, period, now=now)
            timings.fetch_ms = _elapsed_ms(phase)
            data_points = snapshot.data_point_count()

            if data_points < self._settings.min_data_points:
                logger.info(
                    "Insufficient data for insights (%d/%d data points)",
                    data_points, self._settings.min_data_points,
                )
                return insufficient_data_snapshot(
                    user_id,
                    data_points,
                    min_data_points=self._settings.min_data_points,
                    now=now,
                    ttl_seconds=self._settings.cache_ttl_seconds,
                )

            phase = time.perf_counter()
            summary, insights, health_score, quick_stats, trends = await asyncio.gather(
                self._summary(snapshot, now),
                self._insights(snapshot, now),
                self._health_score(user_id, snapshot, now),
                self._quick_stats(user_id, now),
                self._trends.analyze(user_id, period=period, now=now),
            )
            recommendations = generate_recommendations(insights, snapshot)
            timings.process_ms = _elapsed_ms(phase)
        except Exception as exc:
            timings.total_ms = _elapsed_ms(started)
            logger.exception("Insight generation failed after %.1f ms", timings.total_ms)
            if self._audit is not None:
                self._audit.log_insight_generation(
                    user_id,
                    duration_ms=timings.total_ms,
                    phase_timings=timings.as_metadata(),
                    data_points=data_points,
                    status="failure",
                    error_type=type(exc).__name__,
                )
            raise InsightGenerationError() from exc

        expires_at = now + timedelta(seconds=self._settings.cache_ttl_seconds)
        result = InsightsSnapshot(
            summary=summary,
            insights=insights,
            health_score=health_score,
            quick_stats=quick_stats,
            recommendations=recommendations,
            trends=trends,
            metadata=InsightsMetadata(
                user_id=user_id,
                generated_at=now,
                data_points_analyzed=data_points,
                analysis_period=period,
                cache_expiry=expires_at,
            ),
        )

        phase = time.perf_counter()
        self._cache.put(user_id, result, expires_at=expires_at)
        timings.cache_write_ms = _elapsed_ms(phase)
        timings.total_ms = _elapsed_ms(started)

        self._record_timings(user_id, timings, data_points)
        return result

    def _record_timings(self, user_id: str, timings: PhaseTimings, data_points: int) -> None:
        logger.info(
            "Insights generated: %d data points in %.1f ms "
            "(fetch=%.1f ms, process=%.1f ms, cache_write=%.1f ms)",
            data_points, timings.total_ms,
            timings.fetch_ms, timings.process_ms, timings.cache_write_ms,
        )
        if timings.total_ms > SLOW_GENERATION_MS:
            logger.warning("Slow insight generation: %.1f ms", timings.total_ms)
        if self._audit is not None:
            self._audit.log_insight_generation(
                user_id,
                duration_ms=timings.total_ms,
                phase_timings=timings.as_metadata(),
                data_points=data_points,
            )

    # Sub-computations, each awaitable so they can be gathered

    async def _summary(self, snapshot: HealthDataSnapshot, now: datetime) -> Summary:
        return compose_summary(snapshot, now)

    async def _insights(self, snapshot: HealthDataSnapshot, now: datetime) -> list[Insight]:
        return generate_insights(snapshot, now)

    async def _health_score(
        self,
        user_id: str,
        snapshot: HealthDataSnapshot,
        now: datetime,
    ) -> HealthScoreResult:
        end = now - timedelta(days=PREVIOUS_SCORE_OFFSET_DAYS)
        start = end - timedelta(days=PREVIOUS_SCORE_SPAN_DAYS)
        previous = await self._source.fetch_window(user_id, start, end, include_end=False)
        return calculate_health_score(snapshot, previous)

    async def _quick_stats(self, user_id: str, now: datetime) -> QuickStats:
        recent = await self._source.fetch_health_window(
            user_id, self._settings.quick_stats_period_days, now=now,
        )
        return compute_quick_stats(recent)

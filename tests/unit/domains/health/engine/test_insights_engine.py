"""Tests for HealthInsightsEngine orchestration, caching and failure handling."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from healthlens.core.audit.logger import ACTION_CACHE_CLEAR, ACTION_INSIGHTS_GENERATED
from healthlens.domains.health.connectors.repository_source import RepositoryDataSource
from healthlens.domains.health.engine.errors import (
    CacheClearError,
    InsightGenerationError,
    InvalidPeriodError,
)
from healthlens.domains.health.engine.insights_engine import HealthInsightsEngine


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class CountingSource:
    """Wraps a data source and counts analysis-window fetches."""

    def __init__(self, inner, fail: bool = False) -> None:
        self._inner = inner
        self._fail = fail
        self.health_window_calls: list[int] = []

    async def fetch_window(self, user_id, start, end, *, include_end=True):
        return await self._inner.fetch_window(user_id, start, end, include_end=include_end)

    async def fetch_health_window(self, user_id, window_days, *, now=None):
        self.health_window_calls.append(window_days)
        if self._fail:
            raise RuntimeError("source unavailable")
        return await self._inner.fetch_health_window(user_id, window_days, now=now)


class _FailingClearCache:
    def get(self, user_id):
        return None

    def put(self, user_id, snapshot, *, expires_at):
        return True

    def clear(self, user_id):
        raise CacheClearError("failed to clear insights cache") from OSError("locked")


def _seed_healthy(records):
    for day in range(1, 6):
        records.blood_pressure(118, 76, days_ago=day)
        records.vital("heart_rate", 72, days_ago=day)
        records.journal(
            days_ago=day,
            sleep={"duration": 8},
            exercise=[{"type": "walking", "duration": 30}],
            stress={"level": 2},
        )


@pytest.fixture
def counting_engine(data_source, snapshot_cache, settings, clock, audit_logger):
    source = CountingSource(data_source)
    engine = HealthInsightsEngine(
        source, snapshot_cache, settings, clock=clock, audit_logger=audit_logger,
    )
    return engine, source


class TestGetInsights:
    def test_full_snapshot(self, insights_engine, records, clock):
        _seed_healthy(records)
        snapshot = _run(insights_engine.get_insights("user-1"))

        assert snapshot.health_score.score == 100
        assert snapshot.health_score.category == "excellent"
        assert snapshot.metadata.analysis_period == 30
        # 5 days x (bp, hr, health record, sleep, exercise, stress)
        assert snapshot.metadata.data_points_analyzed == 30
        assert snapshot.metadata.generated_at == clock()
        assert snapshot.quick_stats.blood_pressure == "118/76"
        assert snapshot.quick_stats.heart_rate == 72
        assert all(i.type == "positive" for i in snapshot.insights)
        assert 1 <= len(snapshot.recommendations) <= 5
        assert snapshot.trends[-1].metric == "hydration"
        assert snapshot.summary.confidence == 0.9

    def test_second_call_is_served_from_cache(self, counting_engine, records, clock):
        engine, source = counting_engine
        _seed_healthy(records)

        first = _run(engine.get_insights("user-1"))
        fetches = len(source.health_window_calls)
        clock.advance(minutes=5)
        second = _run(engine.get_insights("user-1"))

        assert len(source.health_window_calls) == fetches
        assert second.metadata.generated_at == first.metadata.generated_at
        assert second == first
        stats = engine.get_cache_stats()
        assert (stats.hits, stats.misses) == (1, 1)

    def test_cache_expires_after_ttl(self, counting_engine, records, clock, settings):
        engine, source = counting_engine
        _seed_healthy(records)

        _run(engine.get_insights("user-1"))
        clock.advance(seconds=settings.cache_ttl_seconds)
        refreshed = _run(engine.get_insights("user-1"))

        assert refreshed.metadata.generated_at == clock()
        assert engine.get_cache_stats().misses == 2

    def test_windows_follow_engine_clock(
        self, health_repository, snapshot_cache, settings, clock, records,
    ):
        _seed_healthy(records)
        drifted = RepositoryDataSource(
            health_repository, clock=lambda: clock() + timedelta(days=60),
        )
        engine = HealthInsightsEngine(drifted, snapshot_cache, settings, clock=clock)

        snapshot = _run(engine.get_insights("user-1"))
        assert snapshot.metadata.data_points_analyzed == 30
        assert snapshot.quick_stats.heart_rate == 72

    def test_previous_score_uses_week_before_last(self, insights_engine, records):
        _seed_healthy(records)
        records.blood_pressure(150, 95, days_ago=10)
        score = _run(insights_engine.get_insights("user-1")).health_score

        # previous window holds only the high reading: 0 for blood pressure,
        # fallbacks elsewhere
        assert score.previous_score == 34
        assert score.change_direction == "up"

    def test_quick_stats_use_short_window(self, insights_engine, records):
        _seed_healthy(records)
        records.vital("heart_rate", 100, days_ago=20)
        snapshot = _run(insights_engine.get_insights("user-1"))
        assert snapshot.quick_stats.heart_rate == 72


class TestInsufficientData:
    def test_fixed_response(self, insights_engine, records, clock):
        records.vital("heart_rate", 70, days_ago=1)
        records.vital("heart_rate", 71, days_ago=2)
        snapshot = _run(insights_engine.get_insights("user-1"))

        assert snapshot.health_score.score == 0
        assert snapshot.health_score.category == "poor"
        assert snapshot.health_score.category_label == "Insufficient data"
        assert [i.id for i in snapshot.insights] == ["insufficient-data"]
        assert [r.id for r in snapshot.recommendations] == ["rec-data-entry"]
        assert snapshot.metadata.analysis_period == 7
        assert snapshot.metadata.data_points_analyzed == 2
        assert snapshot.summary.confidence == 0.0
        assert snapshot.trends == []
        assert all(c.score == 0 for c in snapshot.health_score.components.values())

    def test_not_cached(self, insights_engine, records, health_repository):
        records.vital("heart_rate", 70)
        _run(insights_engine.get_insights("user-1"))
        _run(insights_engine.get_insights("user-1"))

        assert health_repository.count_cache_entries() == 0
        assert insights_engine.get_cache_stats().misses == 2

    def test_threshold_is_inclusive(self, insights_engine, records):
        for day in (1, 2, 3):
            records.vital("heart_rate", 70, days_ago=day)
        snapshot = _run(insights_engine.get_insights("user-1"))
        assert snapshot.metadata.analysis_period == 30


class TestFailures:
    def test_fetch_failure_wrapped(self, data_source, snapshot_cache, settings, clock, audit_logger):
        engine = HealthInsightsEngine(
            CountingSource(data_source, fail=True), snapshot_cache, settings,
            clock=clock, audit_logger=audit_logger,
        )
        with pytest.raises(InsightGenerationError) as exc_info:
            _run(engine.get_insights("user-1"))

        assert str(exc_info.value) == "insight generation failed"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        [event] = audit_logger.get_events(action=ACTION_INSIGHTS_GENERATED)
        assert event["status"] == "failure"
        assert event["error_type"] == "RuntimeError"

    def test_clear_failure_audited_and_raised(self, data_source, settings, clock, audit_logger):
        engine = HealthInsightsEngine(
            data_source, _FailingClearCache(), settings, clock=clock, audit_logger=audit_logger,
        )
        with pytest.raises(CacheClearError):
            engine.clear_cache("user-1")
        [event] = audit_logger.get_events(action=ACTION_CACHE_CLEAR)
        assert event["status"] == "failure"
        assert event["error_type"] == "OSError"


class TestRefreshAndClear:
    def test_refresh_recomputes(self, insights_engine, records, clock, audit_logger):
        _seed_healthy(records)
        first = _run(insights_engine.get_insights("user-1"))
        clock.advance(minutes=10)
        refreshed = _run(insights_engine.refresh_insights("user-1"))

        assert refreshed.metadata.generated_at > first.metadata.generated_at
        [clear] = audit_logger.get_events(action=ACTION_CACHE_CLEAR)
        assert clear["metadata"] == {"entries_removed": 1}

    def test_clear_cache_counts(self, insights_engine, records):
        _seed_healthy(records)
        _run(insights_engine.get_insights("user-1"))
        assert insights_engine.clear_cache("user-1") == 1
        assert insights_engine.clear_cache("user-1") == 0

    def test_reset_stats(self, insights_engine, records):
        _seed_healthy(records)
        _run(insights_engine.get_insights("user-1"))
        insights_engine.reset_cache_stats()
        assert insights_engine.get_cache_stats().total == 0


class TestAudit:
    def test_success_records_phase_timings(self, insights_engine, records, audit_logger):
        _seed_healthy(records)
        _run(insights_engine.get_insights("user-1"))

        [event] = audit_logger.get_events(action=ACTION_INSIGHTS_GENERATED)
        assert event["status"] == "success"
        assert event["metadata"]["data_points_analyzed"] == 30
        assert {"fetch_ms", "process_ms", "cache_write_ms"} <= set(event["metadata"])
        assert event["duration_ms"] >= 0


class TestAnalyzeTrends:
    @pytest.mark.parametrize("period", [0, 14, 31, -7])
    def test_invalid_period(self, insights_engine, period):
        with pytest.raises(InvalidPeriodError):
            _run(insights_engine.analyze_trends("user-1", period))

    def test_invalid_period_is_value_error(self, insights_engine):
        with pytest.raises(ValueError):
            _run(insights_engine.analyze_trends("user-1", 10))

    def test_not_cached(self, insights_engine, records):
        records.vital("heart_rate", 72, days_ago=1)
        records.vital("heart_rate", 80, days_ago=10)
        trends = _run(insights_engine.analyze_trends("user-1", 7))

        assert [t.metric for t in trends] == ["heart_rate", "hydration"]
        assert trends[0].change == -10.0
        assert insights_engine.get_cache_stats().total == 0


def test_slow_generation_logged(insights_engine, records, monkeypatch, caplog):
    from healthlens.domains.health.engine import insights_engine as engine_module

    monkeypatch.setattr(engine_module, "SLOW_GENERATION_MS", -1.0)
    _seed_healthy(records)
    with caplog.at_level("WARNING", logger=engine_module.__name__):
        _run(insights_engine.get_insights("user-1"))
    assert "Slow insight generation" in caplog.text

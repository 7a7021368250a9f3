"""Tests for the rule-based insight generator."""

from __future__ import annotations

from datetime import datetime, timezone

from healthlens.domains.health.domain_logic.insight_generator import (
    analyze_blood_pressure,
    analyze_exercise,
    analyze_heart_rate,
    analyze_sleep,
    analyze_stress,
    generate_insights,
)
from healthlens.domains.health.domain_logic.quick_stats import compute_quick_stats

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
EPOCH_MS = int(NOW.timestamp() * 1000)


def _keys(insights):
    return [i.id.rsplit("-", 1)[0] for i in insights]


class TestBloodPressure:
    def test_normal(self, make_snapshot):
        [insight] = analyze_blood_pressure(make_snapshot(bp=[(118, 76)]), NOW)
        assert insight.id == f"bp-positive-{EPOCH_MS}"
        assert insight.type == "positive"
        assert insight.priority == "low"
        assert "118/76 mmHg" in insight.description
        assert insight.related_metrics == ("blood_pressure",)
        assert insight.generated_at == NOW

    def test_high(self, make_snapshot):
        [insight] = analyze_blood_pressure(make_snapshot(bp=[(150, 95)]), NOW)
        assert (insight.type, insight.priority) == ("alert", "high")
        assert insight.action_link == "/health/medical-records"

    def test_elevated(self, make_snapshot):
        [insight] = analyze_blood_pressure(make_snapshot(bp=[(135, 84)]), NOW)
        assert (insight.type, insight.priority) == ("warning", "medium")

    def test_between_normal_and_elevated(self, make_snapshot):
        assert analyze_blood_pressure(make_snapshot(bp=[(125, 82)]), NOW) == []

    def test_no_data(self, make_snapshot):
        assert analyze_blood_pressure(make_snapshot(), NOW) == []


class TestHeartRate:
    def test_branches(self, make_snapshot):
        assert _keys(analyze_heart_rate(make_snapshot(hr=[72]), NOW)) == ["hr-positive"]
        assert _keys(analyze_heart_rate(make_snapshot(hr=[105]), NOW)) == ["hr-alert"]
        assert _keys(analyze_heart_rate(make_snapshot(hr=[45]), NOW)) == ["hr-alert-low"]
        assert analyze_heart_rate(make_snapshot(hr=[55]), NOW) == []
        assert analyze_heart_rate(make_snapshot(hr=[90]), NOW) == []


class TestSleep:
    def test_branches(self, make_snapshot):
        assert _keys(analyze_sleep(make_snapshot(sleep=[8]), NOW)) == ["sleep-positive"]
        assert _keys(analyze_sleep(make_snapshot(sleep=[5]), NOW)) == ["sleep-warning"]
        assert _keys(analyze_sleep(make_snapshot(sleep=[11]), NOW)) == ["sleep-warning-excess"]
        assert analyze_sleep(make_snapshot(sleep=[6.5]), NOW) == []

    def test_description_formats_hours(self, make_snapshot):
        # 5.25 rounds half up, as in the quick stats
        [insight] = analyze_sleep(make_snapshot(sleep=[5, 5.5]), NOW)
        assert "5.3 hours" in insight.description

    def test_hours_agree_with_quick_stats(self, make_snapshot):
        snapshot = make_snapshot(sleep=[7.0, 7.5])
        [insight] = analyze_sleep(snapshot, NOW)
        stats = compute_quick_stats(snapshot)
        assert stats.sleep == 7.3
        assert f"Averaging {stats.sleep} hours" in insight.description


class TestExercise:
    def test_no_records(self, make_snapshot):
        [insight] = analyze_exercise(make_snapshot(), NOW)
        assert insight.title == "No exercise records"
        assert (insight.type, insight.priority) == ("warning", "medium")

    def test_below_guideline(self, make_snapshot):
        [insight] = analyze_exercise(make_snapshot(exercise=[(0, 30), (6, 30)]), NOW)
        assert _keys([insight]) == ["exercise-warning"]
        assert "60 minutes" in insight.description

    def test_meets_guideline(self, make_snapshot):
        [insight] = analyze_exercise(make_snapshot(exercise=[(0, 75), (6, 75)]), NOW)
        assert _keys([insight]) == ["exercise-positive"]


class TestStress:
    def test_branches(self, make_snapshot):
        assert _keys(analyze_stress(make_snapshot(stress=[8]), NOW)) == ["stress-alert"]
        assert _keys(analyze_stress(make_snapshot(stress=[6]), NOW)) == ["stress-warning"]
        assert _keys(analyze_stress(make_snapshot(stress=[4]), NOW)) == ["stress-positive"]
        assert analyze_stress(make_snapshot(), NOW) == []


class TestGenerateInsights:
    def test_sorted_by_priority_then_metric_order(self, make_snapshot):
        snapshot = make_snapshot(bp=[(150, 95)], hr=[72], sleep=[5], stress=[8])
        insights = generate_insights(snapshot, NOW)
        assert _keys(insights) == [
            "bp-alert",
            "stress-alert",
            "sleep-warning",
            "exercise-warning-none",
            "hr-positive",
        ]

    def test_at_most_one_per_metric(self, make_snapshot):
        snapshot = make_snapshot(
            bp=[(118, 76)], hr=[72], sleep=[8], stress=[2], exercise=[(0, 75), (6, 75)],
        )
        insights = generate_insights(snapshot, NOW)
        assert len(insights) == 5
        assert {i.type for i in insights} == {"positive"}

    def test_empty_snapshot_only_flags_exercise(self, make_snapshot):
        assert _keys(generate_insights(make_snapshot(), NOW)) == ["exercise-warning-none"]

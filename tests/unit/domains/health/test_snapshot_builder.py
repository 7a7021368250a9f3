"""Tests for demultiplexing stored records into a HealthDataSnapshot."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from healthlens.core.storage.models import StoredHealthRecord
from healthlens.domains.health.domain_logic.insight_models import (
    BloodPressureReading,
    HeartRateReading,
    OxygenSaturationReading,
    TemperatureReading,
)
from healthlens.domains.health.domain_logic.snapshot_builder import (
    build_snapshot,
    parse_vital_sign,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
START = NOW - timedelta(days=30)


def _record(rid: str, record_type: str, data: dict, days_ago: float = 1) -> StoredHealthRecord:
    return StoredHealthRecord(
        id=rid,
        user_id="user-1",
        record_type=record_type,
        recorded_at=(NOW - timedelta(days=days_ago)).isoformat(),
        data=data,
    )


def _build(records):
    return build_snapshot("user-1", records, window_start=START, window_end=NOW)


class TestVitalSigns:
    def test_blood_pressure(self):
        vital = parse_vital_sign(_record(
            "r1", "vital_sign",
            {"type": "blood_pressure", "value": {"systolic": 118, "diastolic": 76}},
        ))
        assert isinstance(vital, BloodPressureReading)
        assert (vital.systolic, vital.diastolic) == (118.0, 76.0)
        assert vital.recorded_at == NOW - timedelta(days=1)

    def test_scalar_variants(self):
        cases = [
            ("heart_rate", HeartRateReading, "bpm"),
            ("temperature", TemperatureReading, "celsius"),
            ("oxygen_saturation", OxygenSaturationReading, "percent"),
        ]
        for vital_type, cls, attr in cases:
            vital = parse_vital_sign(_record("r", "vital_sign", {"type": vital_type, "value": "36.6"}))
            assert isinstance(vital, cls)
            assert getattr(vital, attr) == 36.6

    def test_malformed_vitals_skipped(self):
        snapshot = _build([
            _record("r1", "vital_sign", {"type": "blood_pressure", "value": {"systolic": 120}}),
            _record("r2", "vital_sign", {"type": "heart_rate", "value": "fast"}),
            _record("r3", "vital_sign", {"type": "glucose", "value": 90}),
            _record("r4", "vital_sign", {"type": "heart_rate", "value": True}),
            _record("r5", "vital_sign", {"type": "heart_rate", "value": 70}),
        ])
        assert [v.record_id for v in snapshot.vital_signs] == ["r5"]


class TestJournal:
    def test_fan_out(self):
        snapshot = _build([_record("j1", "health_journal", {
            "sleep": {"duration": 7.5, "quality": "good"},
            "exercise": [
                {"type": "walking", "duration": 30, "calories": 120},
                {"type": "yoga", "duration": "20"},
            ],
            "stress": {"level": 4, "triggers": ["work"]},
            "weight": 70.2,
            "bloodGlucose": 95,
        })])
        assert snapshot.sleep[0].duration_hours == 7.5
        assert snapshot.sleep[0].quality == "good"
        assert [e.entry_id for e in snapshot.exercise] == ["j1_walking", "j1_yoga"]
        assert snapshot.exercise[1].duration_minutes == 20.0
        assert snapshot.exercise[0].calories_burned == 120.0
        assert snapshot.stress[0].triggers == ("work",)
        assert snapshot.health_records[0].weight == 70.2
        assert snapshot.health_records[0].blood_glucose == 95.0
        assert snapshot.data_point_count() == 5

    def test_journal_without_channels(self):
        snapshot = _build([_record("j1", "health_journal", {"notes": "rest day"})])
        assert snapshot.sleep == ()
        assert snapshot.exercise == ()
        assert snapshot.stress == ()
        assert snapshot.health_records[0].notes == "rest day"

    def test_missing_values_default_to_zero(self):
        snapshot = _build([_record("j1", "health_journal", {
            "sleep": {"quality": "poor"},
            "exercise": [{"type": "run"}, "not-a-dict"],
            "stress": {"triggers": "deadline"},
        })])
        assert snapshot.sleep[0].duration_hours == 0.0
        assert len(snapshot.exercise) == 1
        assert snapshot.exercise[0].duration_minutes == 0.0
        assert snapshot.stress[0].level == 0.0
        assert snapshot.stress[0].triggers == ("deadline",)

    def test_empty_channel_objects_still_count(self):
        snapshot = _build([_record("j1", "health_journal", {"sleep": {}, "stress": {}})])
        assert snapshot.sleep[0].duration_hours == 0.0
        assert snapshot.stress[0].level == 0.0
        assert snapshot.stress[0].triggers == ()

    @pytest.mark.parametrize("triggers", [5, 2.5, {"work": True}, None, True])
    def test_odd_triggers_ignored(self, triggers):
        snapshot = _build([_record("j1", "health_journal", {
            "stress": {"level": 4, "triggers": triggers},
        })])
        assert snapshot.stress[0].level == 4.0
        assert snapshot.stress[0].triggers == ()


class TestSnapshot:
    def test_order_and_window_kept(self):
        snapshot = _build([
            _record("a", "vital_sign", {"type": "heart_rate", "value": 60}, days_ago=3),
            _record("b", "vital_sign", {"type": "heart_rate", "value": 70}, days_ago=2),
        ])
        assert [v.record_id for v in snapshot.heart_rate_readings()] == ["a", "b"]
        assert snapshot.window_start == START
        assert snapshot.window_end == NOW

    def test_unknown_record_type_skipped(self):
        snapshot = _build([_record("x", "medication", {"name": "aspirin"})])
        assert snapshot.data_point_count() == 0

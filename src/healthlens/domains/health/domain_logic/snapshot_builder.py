"""Raw record demultiplexing: stored records -> HealthDataSnapshot.

Vital-sign records carry a ``type`` discriminant and are mapped onto one of
the five VitalSign variants. Journal records fan out into sleep, exercise
(one entry per logged activity) and stress channels, plus one generic
health record per journal entry. Anything that doesn't match a known shape
is skipped.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Iterable

from healthlens.core.storage.models import (
    RECORD_TYPE_HEALTH_JOURNAL,
    RECORD_TYPE_VITAL_SIGN,
    StoredHealthRecord,
)
from healthlens.core.storage.repository import parse_utc_iso
from healthlens.domains.health.domain_logic.insight_models import (
    BloodPressureReading,
    ExerciseEntry,
    HealthDataSnapshot,
    HealthRecordEntry,
    HeartRateReading,
    OxygenSaturationReading,
    RespiratoryRateReading,
    SleepEntry,
    StressEntry,
    TemperatureReading,
    VitalSign,
)

logger = logging.getLogger(__name__)


def _num(val: Any) -> float | None:
    """Convert to float, returning None for missing or non-numeric values."""
    if val is None or isinstance(val, bool):
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def _num_or_zero(val: Any) -> float:
    num = _num(val)
    return num if num is not None else 0.0


def _text(val: Any) -> str | None:
    return str(val) if val not in (None, "") else None


# ---------------------------------------------------------------------------
# Vital signs
# ---------------------------------------------------------------------------

def _blood_pressure(rid: str, at: datetime, value: Any) -> VitalSign | None:
    if not isinstance(value, dict):
        return None
    systolic = _num(value.get("systolic"))
    diastolic = _num(value.get("diastolic"))
    if systolic is None or diastolic is None:
        return None
    return BloodPressureReading(rid, at, systolic, diastolic)


def _scalar(factory: Callable[[str, datetime, float], VitalSign]):
    def build(rid: str, at: datetime, value: Any) -> VitalSign | None:
        num = _num(value)
        return factory(rid, at, num) if num is not None else None
    return build


_VITAL_BUILDERS: dict[str, Callable[[str, datetime, Any], VitalSign | None]] = {
    "blood_pressure": _blood_pressure,
    "heart_rate": _scalar(HeartRateReading),
    "temperature": _scalar(TemperatureReading),
    "respiratory_rate": _scalar(RespiratoryRateReading),
    "oxygen_saturation": _scalar(OxygenSaturationReading),
}


def parse_vital_sign(record: StoredHealthRecord) -> VitalSign | None:
    """Map a ``vital_sign`` record onto its VitalSign variant, or None."""
    data = record.data or {}
    builder = _VITAL_BUILDERS.get(data.get("type"))
    if builder is None:
        return None
    return builder(record.id, parse_utc_iso(record.recorded_at), data.get("value"))


# ---------------------------------------------------------------------------
# Journal entries
# ---------------------------------------------------------------------------

def _sleep_entry(record: StoredHealthRecord, at: datetime) -> SleepEntry | None:
    sleep = record.data.get("sleep")
    if not isinstance(sleep, dict):
        return None
    return SleepEntry(
        record_id=record.id,
        recorded_at=at,
        duration_hours=_num_or_zero(sleep.get("duration")),
        quality=_text(sleep.get("quality")),
        notes=_text(sleep.get("notes")),
    )


def _exercise_entries(record: StoredHealthRecord, at: datetime) -> list[ExerciseEntry]:
    activities = record.data.get("exercise")
    if not isinstance(activities, list):
        return []
    entries = []
    for activity in activities:
        if not isinstance(activity, dict):
            continue
        exercise_type = _text(activity.get("type")) or "unknown"
        entries.append(ExerciseEntry(
            entry_id=f"{record.id}_{exercise_type}",
            recorded_at=at,
            exercise_type=exercise_type,
            duration_minutes=_num_or_zero(activity.get("duration")),
            intensity=_text(activity.get("intensity")),
            calories_burned=_num(activity.get("calories")),
            notes=_text(activity.get("notes")),
        ))
    return entries


def _stress_entry(record: StoredHealthRecord, at: datetime) -> StressEntry | None:
    stress = record.data.get("stress")
    if not isinstance(stress, dict):
        return None
    triggers = stress.get("triggers")
    if isinstance(triggers, str):
        triggers = (triggers,)
    elif not isinstance(triggers, (list, tuple)):
        triggers = ()
    return StressEntry(
        record_id=record.id,
        recorded_at=at,
        level=_num_or_zero(stress.get("level")),
        triggers=tuple(str(t) for t in triggers),
        notes=_text(stress.get("notes")),
    )


def _health_record_entry(record: StoredHealthRecord, at: datetime) -> HealthRecordEntry:
    data = record.data
    return HealthRecordEntry(
        record_id=record.id,
        recorded_at=at,
        weight=_num(data.get("weight")),
        height=_num(data.get("height")),
        bmi=_num(data.get("bmi")),
        blood_glucose=_num(data.get("bloodGlucose", data.get("blood_glucose"))),
        notes=_text(data.get("notes")),
    )


# ---------------------------------------------------------------------------
# Public builder
# ---------------------------------------------------------------------------

def build_snapshot(
    user_id: str,
    records: Iterable[StoredHealthRecord],
    *,
    window_start: datetime,
    window_end: datetime,
) -> HealthDataSnapshot:
    """Demultiplex raw records into an immutable HealthDataSnapshot.

    Args:
        user_id: Owner of the records.
        records: Records already restricted to the window, oldest first.
        window_start: Start of the window the records were fetched for.
        window_end: End of that window.
    """
    vitals: list[VitalSign] = []
    health_records: list[HealthRecordEntry] = []
    sleep: list[SleepEntry] = []
    exercise: list[ExerciseEntry] = []
    stress: list[StressEntry] = []
    skipped = 0

    for record in records:
        if record.record_type == RECORD_TYPE_VITAL_SIGN:
            vital = parse_vital_sign(record)
            if vital is None:
                skipped += 1
            else:
                vitals.append(vital)
        elif record.record_type == RECORD_TYPE_HEALTH_JOURNAL:
            at = parse_utc_iso(record.recorded_at)
            health_records.append(_health_record_entry(record, at))
            sleep_entry = _sleep_entry(record, at)
            if sleep_entry is not None:
                sleep.append(sleep_entry)
            exercise.extend(_exercise_entries(record, at))
            stress_entry = _stress_entry(record, at)
            if stress_entry is not None:
                stress.append(stress_entry)
        else:
            skipped += 1

    if skipped:
        logger.debug("Skipped %d records with unrecognized shape", skipped)

    return HealthDataSnapshot(
        user_id=user_id,
        window_start=window_start,
        window_end=window_end,
        vital_signs=tuple(vitals),
        health_records=tuple(health_records),
        sleep=tuple(sleep),
        exercise=tuple(exercise),
        stress=tuple(stress),
    )

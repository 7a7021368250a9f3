"""MCP tools for recording raw health data.

Vital signs and daily journal entries are persisted to the encrypted
health data bank, where the insights engine reads them back per window.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from fastmcp import Context, FastMCP

from healthlens.core.storage.models import (
    RECORD_TYPE_HEALTH_JOURNAL,
    RECORD_TYPE_VITAL_SIGN,
    StoredHealthRecord,
)
from healthlens.core.storage.repository import RepositoryError, parse_utc_iso

if TYPE_CHECKING:
    from healthlens.core.storage.repository import HealthRepository

logger = logging.getLogger(__name__)

VITAL_TYPES = (
    "blood_pressure",
    "heart_rate",
    "temperature",
    "respiratory_rate",
    "oxygen_saturation",
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def register_record_entry_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    *,
    default_user_id: str,
    clock: Callable[[], datetime] = _utc_now,
) -> None:
    """Register vital sign and journal entry tools on the MCP server."""

    def _resolve_timestamp(recorded_at: str) -> datetime:
        if not recorded_at:
            return clock()
        return parse_utc_iso(recorded_at)

    @mcp.tool
    async def record_vital_sign(
        ctx: Context,
        vital_type: str,
        value: float | None = None,
        systolic: float | None = None,
        diastolic: float | None = None,
        recorded_at: str = "",
        user_id: str = "",
    ) -> str:
        """Record one vital sign reading.

        Args:
            vital_type: One of 'blood_pressure', 'heart_rate', 'temperature',
                'respiratory_rate', 'oxygen_saturation'.
            value: Reading for single-value vitals (bpm, Celsius, breaths/min, %).
            systolic: Systolic pressure (blood_pressure only).
            diastolic: Diastolic pressure (blood_pressure only).
            recorded_at: When the reading was taken (ISO 8601). Defaults to now.
            user_id: Owner of the reading. Defaults to the local user.
        """
        if vital_type not in VITAL_TYPES:
            return json.dumps({
                "status": "error",
                "message": f"Unknown vital type {vital_type!r}; expected one of {list(VITAL_TYPES)}",
            })

        reading: Any
        if vital_type == "blood_pressure":
            if systolic is None or diastolic is None:
                return json.dumps({
                    "status": "error",
                    "message": "blood_pressure requires both systolic and diastolic",
                })
            reading = {"systolic": systolic, "diastolic": diastolic}
        else:
            if value is None:
                return json.dumps({"status": "error", "message": f"{vital_type} requires a value"})
            reading = value

        try:
            at = _resolve_timestamp(recorded_at)
        except ValueError:
            return json.dumps({"status": "error", "message": f"Invalid timestamp: {recorded_at!r}"})

        record = StoredHealthRecord(
            id="",
            user_id=user_id or default_user_id,
            record_type=RECORD_TYPE_VITAL_SIGN,
            recorded_at=at.isoformat(),
            data={"type": vital_type, "value": reading},
        )
        try:
            rid = repository.save_record(record)
        except RepositoryError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        logger.info("Vital sign recorded: %s (record %s)", vital_type, rid)
        return json.dumps({
            "status": "saved",
            "record_id": rid,
            "vital_type": vital_type,
            "value": reading,
            "recorded_at": at.isoformat(),
        })

    @mcp.tool
    async def record_journal_entry(
        ctx: Context,
        sleep_hours: float | None = None,
        sleep_quality: str = "",
        exercise: list[dict[str, Any]] | None = None,
        stress_level: float | None = None,
        stress_triggers: list[str] | None = None,
        weight: float | None = None,
        height: float | None = None,
        bmi: float | None = None,
        blood_glucose: float | None = None,
        notes: str = "",
        recorded_at: str = "",
        user_id: str = "",
    ) -> str:
        """Record a daily health journal entry.

        Args:
            sleep_hours: Hours slept the previous night.
            sleep_quality: Free-form quality label (e.g., 'good', 'poor').
            exercise: Activities, each like {"type": "walking", "duration": 30,
                "intensity": "moderate", "calories": 120}. Duration is minutes.
            stress_level: Self-reported stress from 0 (none) to 10 (extreme).
            stress_triggers: What caused the stress.
            weight: Body weight in kg.
            height: Height in cm.
            bmi: Body mass index.
            blood_glucose: Blood glucose in mg/dL.
            notes: Free-form notes.
            recorded_at: Date of the entry (ISO 8601). Defaults to now.
            user_id: Owner of the entry. Defaults to the local user.
        """
        if stress_level is not None and not 0 <= stress_level <= 10:
            return json.dumps({"status": "error", "message": "stress_level must be between 0 and 10"})

        data: dict[str, Any] = {}
        if sleep_hours is not None:
            data["sleep"] = {"duration": sleep_hours}
            if sleep_quality:
                data["sleep"]["quality"] = sleep_quality
        if exercise:
            data["exercise"] = exercise
        if stress_level is not None:
            data["stress"] = {"level": stress_level, "triggers": stress_triggers or []}
        for key, val in (
            ("weight", weight),
            ("height", height),
            ("bmi", bmi),
            ("bloodGlucose", blood_glucose),
        ):
            if val is not None:
                data[key] = val
        if notes:
            data["notes"] = notes

        if not data:
            return json.dumps({"status": "error", "message": "No journal data provided"})

        try:
            at = _resolve_timestamp(recorded_at)
        except ValueError:
            return json.dumps({"status": "error", "message": f"Invalid timestamp: {recorded_at!r}"})

        record = StoredHealthRecord(
            id="",
            user_id=user_id or default_user_id,
            record_type=RECORD_TYPE_HEALTH_JOURNAL,
            recorded_at=at.isoformat(),
            data=data,
        )
        try:
            rid = repository.save_record(record)
        except RepositoryError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        logger.info("Journal entry recorded: %s (record %s)", sorted(data), rid)
        return json.dumps({
            "status": "saved",
            "record_id": rid,
            "recorded_fields": sorted(data),
            "recorded_at": at.isoformat(),
        })

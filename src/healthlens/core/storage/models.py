"""Data models for the health persistence layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Record types written by the entry tools and read by the snapshot builder
RECORD_TYPE_VITAL_SIGN = "vital_sign"
RECORD_TYPE_HEALTH_JOURNAL = "health_journal"

RECORD_TYPES = {RECORD_TYPE_VITAL_SIGN, RECORD_TYPE_HEALTH_JOURNAL}


@dataclass
class StoredHealthRecord:
    """A single raw health record as kept in the data bank.

    ``data`` is stored encrypted. For vital signs it looks like
    ``{"type": "blood_pressure", "value": {"systolic": 118, "diastolic": 76}}``;
    journal entries hold optional ``sleep``, ``exercise`` (a list), ``stress``
    and body measurement keys.
    """

    id: str
    user_id: str
    record_type: str  # 'vital_sign' | 'health_journal'
    recorded_at: str  # ISO 8601, UTC
    data: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""


@dataclass
class StoredCacheEntry:
    """One cached insights snapshot row.

    ``snapshot`` is the camelCase JSON document produced by
    ``InsightsSnapshot.to_dict()``.
    """

    id: str
    user_id: str
    snapshot: dict[str, Any]
    generated_at: str  # ISO 8601, UTC
    expires_at: str  # ISO 8601, UTC
    created_at: str = ""

"""Audit trail for insight generations, cache clears and tool calls.

Rows carry no health values and no raw user ids:

* ``user_id_hash``: SHA-256 of the user id.
* ``duration_ms``: wall-clock time of the whole operation.
* ``metadata``: advisory telemetry such as per-phase durations and the
  number of data points analyzed.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from healthlens.core.storage.database import HealthDatabase

logger = logging.getLogger(__name__)

ACTION_INSIGHTS_GENERATED = "insights_generated"
ACTION_CACHE_CLEAR = "cache_clear"
ACTION_TOOL_INVOCATION = "tool_invocation"

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"

_INSERT = (
    "INSERT INTO audit_log (id, timestamp, action, user_id_hash, tool_name,"
    " duration_ms, status, error_type, metadata_json)"
    " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)"
)


def hash_user_id(user_id: str) -> str:
    """SHA-256 hex digest of a user id ("" for an empty id)."""
    return hashlib.sha256(user_id.encode("utf-8")).hexdigest() if user_id else ""


@dataclass
class AuditEvent:
    action: str
    user_id_hash: str = ""
    tool_name: str = ""
    duration_ms: float | None = None
    status: str = STATUS_SUCCESS
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def as_row(self, event_id: str, timestamp: str) -> tuple:
        encoded = (
            json.dumps(self.metadata, separators=(",", ":"), sort_keys=True)
            if self.metadata else None
        )
        return (
            event_id, timestamp, self.action, self.user_id_hash or None,
            self.tool_name or None, self.duration_ms, self.status, self.error_type, encoded,
        )


def _where(**filters: Any) -> tuple[str, list[Any]]:
    """SQL WHERE clause for the non-empty filters (``since`` is a lower bound)."""
    clauses: list[str] = []
    params: list[Any] = []
    for column, value in filters.items():
        if not value:
            continue
        if column == "since":
            clauses.append("timestamp >= ?")
        else:
            clauses.append(f"{column} = ?")
        params.append(value)
    return (" WHERE " + " AND ".join(clauses)) if clauses else "", params


class AuditLogger:
    """Appends audit events to the ``audit_log`` table.

    A failed write is logged and dropped; it never reaches the operation
    being audited.

    Usage::

        audit = AuditLogger(health_db)
        audit.log_insight_generation(
            "local",
            duration_ms=42.0,
            phase_timings={"fetch_ms": 10.0, "process_ms": 30.0, "cache_write_ms": 2.0},
            data_points=18,
        )
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    def log_event(self, event: AuditEvent) -> str:
        """Store ``event`` and return its id, or "" when the write failed."""
        event_id = str(uuid.uuid4())
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            conn = self._db.connection
            conn.execute(_INSERT, event.as_row(event_id, timestamp))
            conn.commit()
        except Exception:
            logger.exception("Audit write failed for %s; event dropped", event.action)
            return ""
        return event_id

    def log_insight_generation(
        self,
        user_id: str,
        *,
        duration_ms: float,
        phase_timings: dict[str, float] | None = None,
        data_points: int = 0,
        status: str = STATUS_SUCCESS,
        error_type: str | None = None,
    ) -> str:
        """Record one insights computation.

        Args:
            user_id: Whose snapshot was computed. Only its hash is stored.
            duration_ms: Total generation time.
            phase_timings: Fetch / process / cache-write durations in ms.
            data_points: Entries in the analysis window.
            status: 'success' or 'failure'.
            error_type: Exception class name on failure.
        """
        metadata: dict[str, Any] = {"data_points_analyzed": data_points}
        for phase, ms in (phase_timings or {}).items():
            metadata[phase] = round(ms, 3)
        return self.log_event(AuditEvent(
            action=ACTION_INSIGHTS_GENERATED,
            user_id_hash=hash_user_id(user_id),
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata,
        ))

    def log_cache_clear(
        self,
        user_id: str,
        *,
        entries_removed: int = 0,
        status: str = STATUS_SUCCESS,
        error_type: str | None = None,
    ) -> str:
        return self.log_event(AuditEvent(
            action=ACTION_CACHE_CLEAR,
            user_id_hash=hash_user_id(user_id),
            status=status,
            error_type=error_type,
            metadata={"entries_removed": entries_removed},
        ))

    def log_tool_call(
        self,
        tool_name: str,
        *,
        user_id: str = "",
        duration_ms: float | None = None,
        status: str = STATUS_SUCCESS,
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Record one MCP tool invocation."""
        return self.log_event(AuditEvent(
            action=ACTION_TOOL_INVOCATION,
            user_id_hash=hash_user_id(user_id),
            tool_name=tool_name,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=dict(metadata or {}),
        ))

    def get_events(
        self,
        *,
        action: str | None = None,
        tool_name: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Newest-first events matching the filters.

        Each event's ``metadata_json`` column comes back decoded as ``metadata``.
        """
        where, params = _where(action=action, tool_name=tool_name, since=since)
        rows = self._db.connection.execute(
            f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?",
            [*params, limit],
        ).fetchall()

        events = []
        for row in rows:
            event = dict(row)
            encoded = event.pop("metadata_json", None)
            event["metadata"] = json.loads(encoded) if encoded else {}
            events.append(event)
        return events

    def count_events(
        self,
        *,
        action: str | None = None,
        tool_name: str | None = None,
        since: str | None = None,
    ) -> int:
        where, params = _where(action=action, tool_name=tool_name, since=since)
        return self._db.connection.execute(
            f"SELECT COUNT(*) FROM audit_log{where}", params
        ).fetchone()[0]

"""MCP tools for managing stored health data (deletion and cache purge).

Deletions are permanent and audit-logged. Removing a single record leaves
any cached insights in place until they expire or are refreshed; deleting
all of a user's data also drops their cached snapshots.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from healthlens.core.audit.logger import AuditLogger
    from healthlens.core.storage.repository import HealthRepository

logger = logging.getLogger(__name__)

DELETE_ALL_CONFIRMATION = "DELETE_ALL"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def register_data_management_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    *,
    default_user_id: str,
    audit_logger: AuditLogger | None = None,
    clock: Callable[[], datetime] = _utc_now,
) -> None:
    """Register record deletion and cache purge tools on the MCP server."""

    def _audit(tool_name: str, user_id: str, started: float, **metadata) -> None:
        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name,
                user_id=user_id,
                duration_ms=(time.monotonic() - started) * 1000,
                metadata=metadata,
            )

    @mcp.tool
    async def delete_health_record(ctx: Context, record_id: str, user_id: str = "") -> str:
        """Permanently delete one stored vital sign or journal entry.

        Args:
            record_id: ID returned when the record was saved.
            user_id: Owner of the record. Defaults to the local user.
        """
        user_id = user_id or default_user_id
        started = time.monotonic()
        deleted = repository.delete_record(record_id, user_id=user_id)
        _audit("delete_health_record", user_id, started, records_deleted=int(deleted))

        if not deleted:
            return json.dumps({
                "status": "not_found",
                "record_id": record_id,
                "message": "No record with that ID for this user.",
            })
        return json.dumps({"status": "deleted", "record_id": record_id})

    @mcp.tool
    async def delete_all_health_data(ctx: Context, confirm: str = "", user_id: str = "") -> str:
        """Permanently delete every record and cached insight for a user.

        This cannot be undone.

        Args:
            confirm: Must be exactly 'DELETE_ALL' to proceed.
            user_id: Whose data to delete. Defaults to the local user.
        """
        if confirm != DELETE_ALL_CONFIRMATION:
            return json.dumps({
                "status": "cancelled",
                "message": (
                    f"To delete all health data, call this tool with confirm={DELETE_ALL_CONFIRMATION!r}. "
                    "This action cannot be undone."
                ),
            })

        user_id = user_id or default_user_id
        started = time.monotonic()
        records = repository.delete_user_records(user_id)
        cached = repository.delete_cache_entries(user_id)
        _audit(
            "delete_all_health_data", user_id, started,
            records_deleted=records, cache_entries_deleted=cached,
        )
        return json.dumps({
            "status": "all_deleted",
            "records_deleted": records,
            "cache_entries_deleted": cached,
        })

    @mcp.tool
    async def purge_expired_insights(ctx: Context) -> str:
        """Remove expired insight snapshots from the cache table for all users."""
        started = time.monotonic()
        purged = repository.purge_expired_cache(now=clock())
        _audit("purge_expired_insights", "", started, cache_entries_deleted=purged)
        return json.dumps({"status": "purged", "cache_entries_deleted": purged})

"""MCP tool for reviewing the audit trail.

Audit rows hold timings, tool names and hashed user ids, never health
values, so they can be shown back to the user as they are.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from healthlens.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)

RECENT_EVENT_LIMIT = 20

_DISPLAY_FIELDS = ("timestamp", "action", "tool_name", "status", "error_type", "duration_ms", "metadata")


def register_audit_tools(mcp: FastMCP, audit_logger: AuditLogger) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(ctx: Context, days: int = 30, action: str = "") -> str:
        """View recent insight generations, cache clears and tool calls.

        Args:
            days: Number of days to look back (default: 30).
            action: Optional filter: 'insights_generated', 'cache_clear' or
                'tool_invocation'.
        """
        if days < 1:
            return json.dumps({"status": "error", "message": "days must be at least 1"})

        # audit rows are stamped with wall-clock UTC
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        total = audit_logger.count_events(action=action or None, since=since)
        recent = audit_logger.get_events(action=action or None, since=since, limit=RECENT_EVENT_LIMIT)

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "total_events": total,
            "recent_events": [{key: event.get(key) for key in _DISPLAY_FIELDS} for event in recent],
        }, indent=2)

"""MCP tools exposing the health insights engine.

Every tool returns a JSON string. Engine failures come back as
``{"status": "error", "message": ...}`` rather than raising through MCP.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from healthlens.domains.health.engine.errors import InsightsError

if TYPE_CHECKING:
    from healthlens.core.audit.logger import AuditLogger
    from healthlens.domains.health.engine.insights_engine import HealthInsightsEngine

logger = logging.getLogger(__name__)


def _error(exc: Exception) -> str:
    return json.dumps({"status": "error", "message": str(exc)})


def register_insights_tools(
    mcp: FastMCP,
    engine: HealthInsightsEngine,
    *,
    default_user_id: str,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register insights, score, trend and cache tools on the MCP server."""

    def _audit(tool_name: str, user_id: str, started: float, error: Exception | None = None,
               metadata: dict[str, Any] | None = None) -> None:
        if audit_logger is None:
            return
        audit_logger.log_tool_call(
            tool_name,
            user_id=user_id,
            duration_ms=(time.monotonic() - started) * 1000,
            status="failure" if error else "success",
            error_type=type(error).__name__ if error else None,
            metadata=metadata,
        )

    @mcp.tool
    async def health_insights(ctx: Context, user_id: str = "") -> str:
        """Get the full health insights snapshot: summary, insights, score,
        quick stats, recommendations and trends.

        Results are cached per user for the configured TTL.

        Args:
            user_id: Whose data to analyze. Defaults to the local user.
        """
        user_id = user_id or default_user_id
        started = time.monotonic()
        try:
            snapshot = await engine.get_insights(user_id)
        except InsightsError as exc:
            _audit("health_insights", user_id, started, exc)
            return _error(exc)
        _audit("health_insights", user_id, started)
        return json.dumps(snapshot.to_dict())

    @mcp.tool
    async def health_insights_summary(ctx: Context, user_id: str = "") -> str:
        """Get a compact view: health score, summary text and top three insights.

        Args:
            user_id: Whose data to analyze. Defaults to the local user.
        """
        user_id = user_id or default_user_id
        started = time.monotonic()
        try:
            snapshot = await engine.get_insights(user_id)
        except InsightsError as exc:
            _audit("health_insights_summary", user_id, started, exc)
            return _error(exc)
        _audit("health_insights_summary", user_id, started)
        return json.dumps({
            "healthScore": snapshot.health_score.score,
            "category": snapshot.health_score.category,
            "categoryLabel": snapshot.health_score.category_label,
            "summary": snapshot.summary.text,
            "topInsights": [i.to_dict() for i in snapshot.insights[:3]],
            "generatedAt": snapshot.metadata.generated_at.isoformat(),
        })

    @mcp.tool
    async def health_score(ctx: Context, user_id: str = "") -> str:
        """Get the composite 0-100 health score with its component breakdown.

        Args:
            user_id: Whose data to score. Defaults to the local user.
        """
        user_id = user_id or default_user_id
        started = time.monotonic()
        try:
            snapshot = await engine.get_insights(user_id)
        except InsightsError as exc:
            _audit("health_score", user_id, started, exc)
            return _error(exc)
        _audit("health_score", user_id, started)
        return json.dumps(snapshot.health_score.to_dict())

    @mcp.tool
    async def health_trends(ctx: Context, period: int = 30, user_id: str = "") -> str:
        """Compare each metric against the preceding period of equal length.

        Not cached: every call reads the data bank.

        Args:
            period: Window length in days; one of 7, 30, 90, 365.
            user_id: Whose data to analyze. Defaults to the local user.
        """
        user_id = user_id or default_user_id
        started = time.monotonic()
        try:
            trends = await engine.analyze_trends(user_id, period)
        except InsightsError as exc:
            _audit("health_trends", user_id, started, exc)
            return _error(exc)
        _audit("health_trends", user_id, started, metadata={"period": period})
        return json.dumps({
            "period": period,
            "trends": [t.to_dict() for t in trends],
        })

    @mcp.tool
    async def refresh_health_insights(ctx: Context, user_id: str = "") -> str:
        """Discard the cached snapshot and recompute insights now.

        Args:
            user_id: Whose data to analyze. Defaults to the local user.
        """
        user_id = user_id or default_user_id
        started = time.monotonic()
        try:
            snapshot = await engine.refresh_insights(user_id)
        except InsightsError as exc:
            _audit("refresh_health_insights", user_id, started, exc)
            return _error(exc)
        _audit("refresh_health_insights", user_id, started)
        logger.info("Insights refreshed on request")
        return json.dumps(snapshot.to_dict())

    @mcp.tool
    async def insights_cache_stats(ctx: Context) -> str:
        """Show insights cache hits, misses and hit rate since the last reset."""
        return json.dumps(engine.get_cache_stats().to_dict())

    @mcp.tool
    async def reset_insights_cache_stats(ctx: Context) -> str:
        """Reset the insights cache hit/miss counters to zero."""
        engine.reset_cache_stats()
        return json.dumps({"status": "reset"})

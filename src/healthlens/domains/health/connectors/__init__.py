"""Health data sources: the read contract the insights engine consumes."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from healthlens.domains.health.domain_logic.insight_models import HealthDataSnapshot


@runtime_checkable
class HealthDataSource(Protocol):
    """Abstract interface for windowed health data retrieval.

    Every channel of a returned snapshot is an empty tuple rather than None
    when there is no data. Storage failures propagate to the caller.
    """

    async def fetch_window(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        *,
        include_end: bool = True,
    ) -> HealthDataSnapshot:
        """Records with ``start <= recorded_at <= end`` (``< end`` when not include_end)."""
        ...

    async def fetch_health_window(
        self,
        user_id: str,
        window_days: int,
        *,
        now: datetime | None = None,
    ) -> HealthDataSnapshot:
        """The ``window_days`` days ending at ``now`` (the source's clock when omitted)."""
        ...

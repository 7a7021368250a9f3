"""Data source backed by the encrypted health data bank (SQLite).

Users enter vitals and journal entries via MCP tools; this source reads
them back per window and demultiplexes them into snapshots.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from healthlens.core.storage.repository import HealthRepository
from healthlens.domains.health.domain_logic.insight_models import HealthDataSnapshot
from healthlens.domains.health.domain_logic.snapshot_builder import build_snapshot

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RepositoryDataSource:
    """HealthDataSource over a HealthRepository.

    Reads are synchronous sqlite calls wrapped in coroutines, so concurrent
    windows for one request run back to back on the event loop.
    """

    def __init__(
        self,
        repository: HealthRepository,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self._clock = clock

    async def fetch_window(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        *,
        include_end: bool = True,
    ) -> HealthDataSnapshot:
        records = self._repo.get_records(
            user_id, since=start, until=end, include_until=include_end,
        )
        logger.debug("Fetched %d records for window %s .. %s", len(records), start, end)
        return build_snapshot(user_id, records, window_start=start, window_end=end)

    async def fetch_health_window(
        self,
        user_id: str,
        window_days: int,
        *,
        now: datetime | None = None,
    ) -> HealthDataSnapshot:
        end = now if now is not None else self._clock()
        return await self.fetch_window(user_id, end - timedelta(days=window_days), end)

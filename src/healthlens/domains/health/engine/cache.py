"""Per-user snapshot cache over the health data bank, plus hit/miss metrics."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable

from healthlens.core.storage.repository import HealthRepository
from healthlens.domains.health.domain_logic.insight_models import (
    CacheStats,
    InsightsSnapshot,
)
from healthlens.domains.health.engine.errors import CacheClearError

logger = logging.getLogger(__name__)

# Log the running hit rate once per this many lookups
HIT_RATE_LOG_INTERVAL = 100


class CacheMetrics:
    """Hit/miss counters shared by every request an engine serves."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def record_hit(self) -> None:
        self._record(hit=True)

    def record_miss(self) -> None:
        self._record(hit=False)

    def _record(self, *, hit: bool) -> None:
        with self._lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1
            total = self._hits + self._misses
            hits = self._hits
        if total % HIT_RATE_LOG_INTERVAL == 0:
            logger.info(
                "Insights cache hit rate: %.2f%% (%d/%d)", hits / total * 100, hits, total,
            )

    def snapshot(self) -> CacheStats:
        with self._lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        return CacheStats(
            hits=hits,
            misses=misses,
            hit_rate=round(hits / total * 100, 2) if total else 0.0,
            total=total,
        )

    def reset(self) -> None:
        with self._lock:
            self._hits = 0
            self._misses = 0
        logger.info("Insights cache metrics reset")


class SnapshotCache:
    """TTL-bound cache holding at most one live snapshot per user.

    Reads and writes never raise: a failed read is a miss and a failed
    write leaves the caller with an uncached (but valid) snapshot. Explicit
    clears do raise, wrapped in CacheClearError.
    """

    def __init__(self, repository: HealthRepository, clock: Callable[[], datetime]) -> None:
        self._repo = repository
        self._clock = clock

    def get(self, user_id: str) -> InsightsSnapshot | None:
        try:
            entry = self._repo.get_cache_entry(user_id, now=self._clock())
            if entry is None:
                return None
            return InsightsSnapshot.from_dict(entry.snapshot)
        except Exception:
            logger.exception("Insights cache read failed; treating as a miss")
            return None

    def put(self, user_id: str, snapshot: InsightsSnapshot, *, expires_at: datetime) -> bool:
        """Replace the user's entry. Returns False if the write failed."""
        try:
            self._repo.replace_cache_entry(
                user_id,
                snapshot.to_dict(),
                generated_at=snapshot.metadata.generated_at,
                expires_at=expires_at,
            )
            return True
        except Exception:
            logger.exception("Insights cache write failed; snapshot not cached")
            return False

    def clear(self, user_id: str) -> int:
        """Remove every entry for the user and return how many were removed."""
        try:
            removed = self._repo.delete_cache_entries(user_id)
        except Exception as exc:
            logger.error("Insights cache clear failed: %s", exc)
            raise CacheClearError("failed to clear insights cache") from exc
        logger.info("Cleared %d insights cache entries", removed)
        return removed

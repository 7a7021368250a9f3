"""Health data repository: raw records and the per-user insights cache.

The repository mediates between the storage models and the SQLite database,
using FieldEncryptor to encrypt/decrypt record payloads and cached snapshots.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from healthlens.core.storage.database import HealthDatabase
from healthlens.core.storage.encryption import FieldEncryptor
from healthlens.core.storage.models import (
    RECORD_TYPES,
    StoredCacheEntry,
    StoredHealthRecord,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


def to_utc_iso(value: datetime) -> str:
    """Normalize a datetime to a sortable UTC ISO 8601 string.

    Naive datetimes are taken to be UTC. A fixed microsecond precision keeps
    lexicographic order identical to chronological order in SQLite.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_utc_iso(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, assuming UTC when no offset is present."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class HealthRepository:
    """CRUD repository for encrypted health records and cached insights.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        repo = HealthRepository(db, FieldEncryptor(key))

        repo.save_record(record)
        records = repo.get_records("user-1", since=start, until=end)
    """

    def __init__(self, database: HealthDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return to_utc_iso(datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Raw health records
    # ------------------------------------------------------------------

    def save_record(self, record: StoredHealthRecord) -> str:
        """Persist a raw health record with an encrypted payload.

        Args:
            record: The record to save. If ``record.id`` is empty, a UUID
                will be generated. ``recorded_at`` is normalized to UTC.

        Returns:
            The record ID.

        Raises:
            RepositoryError: If the record type is unknown.
        """
        if record.record_type not in RECORD_TYPES:
            raise RepositoryError(
                f"Invalid record type: {record.record_type!r}. Valid: {sorted(RECORD_TYPES)}"
            )

        rid = record.id or self._new_id()
        recorded_at = to_utc_iso(parse_utc_iso(record.recorded_at))

        conn = self._db.connection
        conn.execute(
            """INSERT INTO health_records (id, user_id, record_type, recorded_at, data_enc, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                rid,
                record.user_id,
                record.record_type,
                recorded_at,
                self._enc.encrypt(record.data),
                record.created_at or self._now_iso(),
            ),
        )
        conn.commit()
        logger.info("Saved %s record %s (recorded_at=%s)", record.record_type, rid, recorded_at)
        return rid

    def get_records(
        self,
        user_id: str,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
        include_until: bool = True,
    ) -> list[StoredHealthRecord]:
        """Query a user's records within a time window.

        Args:
            user_id: Owner of the records.
            since: Inclusive lower bound on ``recorded_at``.
            until: Upper bound on ``recorded_at``.
            include_until: Whether ``until`` itself is part of the window.
                Shifted comparison windows use a half-open range so adjacent
                windows never share a record.

        Returns:
            Decrypted records, oldest first.
        """
        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]

        if since is not None:
            conditions.append("recorded_at >= ?")
            params.append(to_utc_iso(since))
        if until is not None:
            conditions.append("recorded_at <= ?" if include_until else "recorded_at < ?")
            params.append(to_utc_iso(until))

        query = (
            "SELECT * FROM health_records WHERE "
            + " AND ".join(conditions)
            + " ORDER BY recorded_at ASC, created_at ASC"
        )
        rows = self._db.connection.execute(query, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def count_records(self, user_id: str | None = None) -> int:
        """Return the number of stored records, optionally for one user."""
        conn = self._db.connection
        if user_id is None:
            row = conn.execute("SELECT COUNT(*) FROM health_records").fetchone()
        else:
            row = conn.execute(
                "SELECT COUNT(*) FROM health_records WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row[0]

    def delete_record(self, record_id: str, *, user_id: str) -> bool:
        """Delete one of ``user_id``'s records. Returns True if a row was removed."""
        conn = self._db.connection
        cursor = conn.execute(
            "DELETE FROM health_records WHERE id = ? AND user_id = ?", (record_id, user_id)
        )
        conn.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted record %s", record_id)
        return deleted

    def delete_user_records(self, user_id: str) -> int:
        """Delete every record owned by ``user_id`` and return the count."""
        conn = self._db.connection
        cursor = conn.execute("DELETE FROM health_records WHERE user_id = ?", (user_id,))
        conn.commit()
        logger.warning("Deleted %d health records for one user", cursor.rowcount)
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Insights cache
    # ------------------------------------------------------------------

    def get_cache_entry(self, user_id: str, *, now: datetime) -> StoredCacheEntry | None:
        """Return the newest non-expired cache entry for a user.

        Only entries with ``expires_at > now`` qualify; if more than one
        exists the most recently generated wins.
        """
        row = self._db.connection.execute(
            """SELECT * FROM insight_cache
               WHERE user_id = ? AND expires_at > ?
               ORDER BY generated_at DESC LIMIT 1""",
            (user_id, to_utc_iso(now)),
        ).fetchone()
        if row is None:
            return None
        return StoredCacheEntry(
            id=row["id"],
            user_id=row["user_id"],
            snapshot=self._enc.decrypt(row["snapshot_enc"]) or {},
            generated_at=row["generated_at"],
            expires_at=row["expires_at"],
            created_at=row["created_at"],
        )

    def replace_cache_entry(
        self,
        user_id: str,
        snapshot: dict[str, Any],
        *,
        generated_at: datetime,
        expires_at: datetime,
    ) -> str:
        """Supersede a user's cache with a new entry.

        Deletes every existing entry for the user, then inserts the new one.
        The two steps commit separately: a failure in between leaves the user
        without a cache entry, which the next read treats as a miss.

        Returns:
            The new cache entry ID.
        """
        self.delete_cache_entries(user_id)

        entry_id = self._new_id()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO insight_cache (id, user_id, snapshot_enc, generated_at, expires_at, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                entry_id,
                user_id,
                self._enc.encrypt(snapshot),
                to_utc_iso(generated_at),
                to_utc_iso(expires_at),
                self._now_iso(),
            ),
        )
        conn.commit()
        return entry_id

    def delete_cache_entries(self, user_id: str) -> int:
        """Remove all cache entries for a user and return how many went."""
        conn = self._db.connection
        cursor = conn.execute("DELETE FROM insight_cache WHERE user_id = ?", (user_id,))
        conn.commit()
        return cursor.rowcount

    def count_cache_entries(self, user_id: str | None = None) -> int:
        """Count cache rows, expired or not."""
        conn = self._db.connection
        if user_id is None:
            row = conn.execute("SELECT COUNT(*) FROM insight_cache").fetchone()
        else:
            row = conn.execute(
                "SELECT COUNT(*) FROM insight_cache WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row[0]

    def purge_expired_cache(self, *, now: datetime) -> int:
        """Delete cache entries whose ``expires_at`` is at or before ``now``."""
        conn = self._db.connection
        cursor = conn.execute(
            "DELETE FROM insight_cache WHERE expires_at <= ?", (to_utc_iso(now),)
        )
        conn.commit()
        if cursor.rowcount:
            logger.info("Purged %d expired insight cache entries", cursor.rowcount)
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_record(self, row: Any) -> StoredHealthRecord:
        """Convert a database row to a StoredHealthRecord with decrypted data."""
        data = self._enc.decrypt(row["data_enc"] or "")
        return StoredHealthRecord(
            id=row["id"],
            user_id=row["user_id"],
            record_type=row["record_type"],
            recorded_at=row["recorded_at"],
            data=data if isinstance(data, dict) else {},
            created_at=row["created_at"],
        )

"""SQLite connection and schema for the HealthLens data bank.

The bank holds three kinds of rows: raw health records, the per-user
insights cache and the audit trail. Schema changes are expressed as an
ordered list of migrations; each one applied is recorded in
``schema_version``.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

# Records and insights cache
_RECORDS_AND_CACHE = """
CREATE TABLE IF NOT EXISTS health_records (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    record_type  TEXT NOT NULL,          -- 'vital_sign' | 'health_journal'
    recorded_at  TEXT NOT NULL,          -- UTC ISO 8601, fixed precision
    data_enc     TEXT,                   -- Fernet token of the JSON payload
    created_at   TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS insight_cache (
    id            TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    snapshot_enc  TEXT NOT NULL,
    generated_at  TEXT NOT NULL,
    expires_at    TEXT NOT NULL,
    created_at    TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_records_user_time ON health_records(user_id, recorded_at);
CREATE INDEX IF NOT EXISTS idx_records_type      ON health_records(record_type);
CREATE INDEX IF NOT EXISTS idx_cache_user        ON insight_cache(user_id);
CREATE INDEX IF NOT EXISTS idx_cache_expires     ON insight_cache(expires_at);
"""

# Audit trail: generations, cache clears, tool calls
_AUDIT_LOG = """
CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
    action          TEXT NOT NULL,
    user_id_hash    TEXT,
    tool_name       TEXT,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
"""

_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""

# (version, DDL) in application order
_MIGRATIONS: list[tuple[int, str]] = [
    (1, _RECORDS_AND_CACHE),
    (2, _AUDIT_LOG),
]

SCHEMA_VERSION = _MIGRATIONS[-1][0]


class DatabaseError(Exception):
    """Raised when the data bank is used before it is opened."""


class HealthDatabase:
    """Owns the single SQLite connection of the data bank.

    ``":memory:"`` gives a throwaway database (tests); any other path is
    expanded and its parent directory created on first open.

    Usage::

        with HealthDatabase("~/.healthlens/health.db") as db:
            db.connection.execute(...)
    """

    def __init__(self, db_path: str = MEMORY_PATH) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """The open connection.

        Raises:
            DatabaseError: ``initialize()`` has not been called.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    def _connect(self) -> sqlite3.Connection:
        if self._db_path == MEMORY_PATH:
            return sqlite3.connect(MEMORY_PATH)
        db_file = Path(self._db_path).expanduser()
        db_file.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(str(db_file))

    def initialize(self) -> None:
        """Open the connection and bring the schema up to date. Idempotent."""
        if self._conn is not None:
            return

        conn = self._connect()
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        self._conn = conn

        self._migrate()
        logger.info("Health database initialized: %s", self._db_path)

    def _migrate(self) -> None:
        conn = self.connection
        conn.executescript(_VERSION_TABLE)
        current = self.get_schema_version()

        pending = [(v, ddl) for v, ddl in _MIGRATIONS if v > current]
        for version, ddl in pending:
            conn.executescript(ddl)
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
            conn.commit()
            logger.info("Applied schema migration v%d", version)

        if pending:
            logger.info("Schema at version %d (was %d)", SCHEMA_VERSION, current)

    def get_schema_version(self) -> int:
        """Highest applied migration, 0 for a fresh file."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] or 0

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.info("Health database closed")

    def __enter__(self) -> HealthDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()

"""Shared test fixtures for HealthLens tests."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "3600")
    monkeypatch.setenv("MIN_DATA_POINTS", "3")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from healthlens.core.storage.models import (  # noqa: E402
    RECORD_TYPE_HEALTH_JOURNAL,
    RECORD_TYPE_VITAL_SIGN,
    StoredHealthRecord,
)

# Fixed reference instant for every time-dependent test
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic, manually advanced clock."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordWriter:
    """Writes raw vital-sign and journal records relative to a clock."""

    def __init__(self, repository, clock: FakeClock, user_id: str = "user-1") -> None:
        self._repo = repository
        self._clock = clock
        self.user_id = user_id

    def _save(self, record_type: str, data: dict, days_ago: float, user_id: str | None) -> str:
        at = self._clock() - timedelta(days=days_ago)
        return self._repo.save_record(StoredHealthRecord(
            id="",
            user_id=user_id or self.user_id,
            record_type=record_type,
            recorded_at=at.isoformat(),
            data=data,
        ))

    def blood_pressure(self, systolic: float, diastolic: float, *, days_ago: float = 1,
                       user_id: str | None = None) -> str:
        return self._save(
            RECORD_TYPE_VITAL_SIGN,
            {"type": "blood_pressure", "value": {"systolic": systolic, "diastolic": diastolic}},
            days_ago, user_id,
        )

    def vital(self, vital_type: str, value: float, *, days_ago: float = 1,
              user_id: str | None = None) -> str:
        return self._save(
            RECORD_TYPE_VITAL_SIGN, {"type": vital_type, "value": value}, days_ago, user_id,
        )

    def journal(self, *, days_ago: float = 1, user_id: str | None = None, **data) -> str:
        return self._save(RECORD_TYPE_HEALTH_JOURNAL, data, days_ago, user_id)


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def health_db():
    """Create an in-memory HealthDatabase for testing."""
    from healthlens.core.storage.database import HealthDatabase

    db = HealthDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from healthlens.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def health_repository(health_db, field_encryptor):
    """Create a HealthRepository backed by in-memory SQLite."""
    from healthlens.core.storage.repository import HealthRepository

    return HealthRepository(health_db, field_encryptor)


@pytest.fixture
def audit_logger(health_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from healthlens.core.audit.logger import AuditLogger

    return AuditLogger(health_db)


# ---------------------------------------------------------------------------
# Insights engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def records(health_repository, clock) -> RecordWriter:
    """Helper for seeding raw records for ``user-1``."""
    return RecordWriter(health_repository, clock)


@pytest.fixture
def settings():
    from healthlens.core.config.settings import Settings

    return Settings(_env_file=None)


@pytest.fixture
def data_source(health_repository, clock):
    from healthlens.domains.health.connectors.repository_source import RepositoryDataSource

    return RepositoryDataSource(health_repository, clock=clock)


@pytest.fixture
def snapshot_cache(health_repository, clock):
    from healthlens.domains.health.engine.cache import SnapshotCache

    return SnapshotCache(health_repository, clock)


@pytest.fixture
def insights_engine(data_source, snapshot_cache, settings, clock, audit_logger):
    from healthlens.domains.health.engine.insights_engine import HealthInsightsEngine

    return HealthInsightsEngine(
        data_source, snapshot_cache, settings, clock=clock, audit_logger=audit_logger,
    )


# ---------------------------------------------------------------------------
# Domain snapshot fixtures
# ---------------------------------------------------------------------------

def build_test_snapshot(
    *,
    bp: list[tuple[float, float]] = (),
    hr: list[float] = (),
    sleep: list[float] = (),
    stress: list[float] = (),
    exercise: list[tuple[float, float]] = (),
    now: datetime = NOW,
    window_days: int = 30,
):
    """Snapshot from plain values; reading ``i`` of a channel is ``i`` days old.

    ``exercise`` takes ``(days_ago, minutes)`` pairs since weekly volume
    depends on how the sessions are spread.
    """
    from healthlens.domains.health.domain_logic.insight_models import (
        BloodPressureReading,
        ExerciseEntry,
        HealthDataSnapshot,
        HeartRateReading,
        SleepEntry,
        StressEntry,
    )

    def at(days_ago: float) -> datetime:
        return now - timedelta(days=days_ago)

    vitals = [BloodPressureReading(f"bp{i}", at(i), s, d) for i, (s, d) in enumerate(bp)]
    vitals += [HeartRateReading(f"hr{i}", at(i), v) for i, v in enumerate(hr)]
    return HealthDataSnapshot(
        user_id="user-1",
        window_start=now - timedelta(days=window_days),
        window_end=now,
        vital_signs=tuple(sorted(vitals, key=lambda v: v.recorded_at)),
        sleep=tuple(SleepEntry(f"s{i}", at(i), v) for i, v in reversed(list(enumerate(sleep)))),
        stress=tuple(StressEntry(f"t{i}", at(i), v) for i, v in reversed(list(enumerate(stress)))),
        exercise=tuple(
            ExerciseEntry(f"e{i}_walk", at(days_ago), "walk", minutes)
            for i, (days_ago, minutes) in enumerate(sorted(exercise, key=lambda e: -e[0]))
        ),
    )


@pytest.fixture
def make_snapshot():
    """Factory fixture around :func:`build_test_snapshot`."""
    return build_test_snapshot

"""
Pytest configuration and fixtures

Engine tests run against FakeTrainingStore, an in-memory implementation of
the TrainingDataStore protocol. SQL store tests get a fresh in-memory
SQLite database per test, so nothing leaks between tests.
"""
import pytest
import sys
import os
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.exceptions import DeloadAlreadyActive
from services.training_logic.types import (
    DeloadRecord,
    ExerciseDefaultRecord,
    FatigueLogRecord,
    RecoveryLogRecord,
    SessionSetRecord,
)

AS_OF = date(2026, 3, 2)
USER = "user-1"


@dataclass
class FakeTrainingStore:
    """In-memory TrainingDataStore. Enforces one active deload per user."""
    sets: Dict[str, List[SessionSetRecord]] = field(default_factory=dict)
    recovery: Dict[str, List[RecoveryLogRecord]] = field(default_factory=dict)
    deloads: Dict[str, List[DeloadRecord]] = field(default_factory=dict)
    defaults: Dict[tuple, ExerciseDefaultRecord] = field(default_factory=dict)
    targets: Dict[str, int] = field(default_factory=dict)
    fatigue: Dict[str, Dict[date, FatigueLogRecord]] = field(default_factory=dict)

    # --- helpers for tests ---

    def log_set(self, user_id, day, exercise_id, weight, reps, rpe=None, sets=1, is_warmup=False):
        rows = self.sets.setdefault(user_id, [])
        for n in range(1, sets + 1):
            rows.append(SessionSetRecord(day, exercise_id, n, weight, reps, rpe, is_warmup))

    def log_recovery(self, user_id, day, sleep=None, energy=None, soreness=None, stress=None):
        self.recovery.setdefault(user_id, []).append(
            RecoveryLogRecord(day, sleep, energy, soreness, stress)
        )

    def add_deload(self, user_id, record: DeloadRecord):
        record = replace(record, id=record.id or str(uuid.uuid4()))
        self.deloads.setdefault(user_id, []).append(record)
        return record.id

    # --- TrainingDataStore ---

    def get_session_sets(self, user_id, start, end, exercise_id=None):
        return [
            s for s in self.sets.get(user_id, [])
            if start <= s.date <= end and (exercise_id is None or s.exercise_id == exercise_id)
        ]

    def get_recovery_logs(self, user_id, start, end):
        return [r for r in self.recovery.get(user_id, []) if start <= r.date <= end]

    def get_first_session_date(self, user_id):
        dates = [s.date for s in self.sets.get(user_id, [])]
        return min(dates) if dates else None

    def get_target_sessions_per_week(self, user_id):
        return self.targets.get(user_id)

    def get_exercise_default(self, user_id, exercise_id):
        return self.defaults.get((user_id, exercise_id))

    def get_active_deload(self, user_id):
        for record in self.deloads.get(user_id, []):
            if record.is_active:
                return record
        return None

    def get_deload_history(self, user_id, limit=5):
        records = sorted(self.deloads.get(user_id, []), key=lambda r: r.start_date, reverse=True)
        return records[:limit]

    def create_deload(self, user_id, record):
        existing = self.get_active_deload(user_id)
        if existing is not None:
            raise DeloadAlreadyActive(user_id, deload_id=existing.id)
        return self.add_deload(user_id, replace(record, is_active=True))

    def close_active_deload(self, user_id, completed_at):
        closed = False
        records = self.deloads.get(user_id, [])
        for i, record in enumerate(records):
            if record.is_active:
                records[i] = replace(record, is_active=False, completed_at=completed_at)
                closed = True
        return closed

    def record_fatigue(self, user_id, entry):
        self.fatigue.setdefault(user_id, {})[entry.date] = entry

    def get_fatigue_history(self, user_id, start, end):
        entries = self.fatigue.get(user_id, {})
        return [entries[d] for d in sorted(entries) if start <= d <= end]


def build_volume_spike_history(store: FakeTrainingStore, user_id: str = USER, as_of: date = AS_OF):
    """
    Four steady baseline weeks (3 sessions of 3x10 @ 100) followed by a
    current week at 150% of that volume (3 sessions of 3x10 @ 150).

    Sessions fall on alternate days so no training streak builds up.
    """
    for week in range(4):
        for offset in (7, 9, 11):
            store.log_set(user_id, as_of - timedelta(days=offset + 7 * week), "squat", 100.0, 10, sets=3)
    for offset in (2, 4, 6):
        store.log_set(user_id, as_of - timedelta(days=offset), "squat", 150.0, 10, sets=3)


@pytest.fixture
def store():
    return FakeTrainingStore()


@pytest.fixture
def spike_store():
    s = FakeTrainingStore()
    build_volume_spike_history(s)
    return s


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh in-memory SQLite database with the full schema.

    StaticPool keeps the single in-memory connection alive for the whole test.
    BEGIN is emitted by SQLAlchemy rather than pysqlite so savepoints
    (Session.begin_nested) behave as they do on Postgres.
    """
    from sqlalchemy import create_engine, event
    from sqlalchemy.orm import sessionmaker
    from sqlalchemy.pool import StaticPool

    from core.database import Base
    import models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()

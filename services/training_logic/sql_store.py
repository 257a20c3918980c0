"""
SQLAlchemy implementation of TrainingDataStore.

Reads and writes go through the Session handed in by the caller; this
class flushes but never commits. Wrap mutations in core.database
session_scope() (or commit yourself) so start/end deload is one
transaction.

SQLAlchemy errors surface as DataUnavailable. A unique violation on the
one-active-deload index surfaces as DeloadAlreadyActive.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import DataUnavailable, DeloadAlreadyActive
from models import DeloadPeriod, ExerciseDefault, FatigueLog, RecoveryLog, TrainingProfile, WorkoutSet
from services.training_logic.constants import DeloadType, FatigueLevel
from services.training_logic.types import (
    DeloadRecord,
    ExerciseDefaultRecord,
    FatigueLogRecord,
    RecoveryLogRecord,
    SessionSetRecord,
)

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(source: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Training store error ({source}): {e}")
        raise DataUnavailable(str(e.__class__.__name__), source=source) from e


def _deload_record(row: DeloadPeriod) -> DeloadRecord:
    return DeloadRecord(
        id=str(row.id),
        start_date=row.start_date,
        duration_days=row.duration_days,
        deload_type=DeloadType(row.deload_type),
        volume_modifier=row.volume_modifier,
        intensity_modifier=row.intensity_modifier,
        trigger_reason=row.trigger_reason,
        fatigue_score_at_trigger=row.fatigue_score_at_trigger,
        is_active=row.is_active,
        completed_at=row.completed_at,
    )


class SqlTrainingDataStore:
    """TrainingDataStore backed by the tables in models.py."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_session_sets(
        self,
        user_id: str,
        start: date,
        end: date,
        exercise_id: Optional[str] = None,
    ) -> List[SessionSetRecord]:
        with _translate_errors("session_sets"):
            query = self.db.query(WorkoutSet).filter(
                WorkoutSet.user_id == user_id,
                WorkoutSet.session_date >= start,
                WorkoutSet.session_date <= end,
            )
            if exercise_id is not None:
                query = query.filter(WorkoutSet.exercise_id == exercise_id)
            rows = query.order_by(WorkoutSet.session_date, WorkoutSet.set_number).all()

        return [
            SessionSetRecord(
                date=row.session_date,
                exercise_id=row.exercise_id,
                set_number=row.set_number,
                weight=row.weight,
                reps=row.reps,
                rpe=row.rpe,
                is_warmup=row.is_warmup,
            )
            for row in rows
        ]

    def get_recovery_logs(self, user_id: str, start: date, end: date) -> List[RecoveryLogRecord]:
        with _translate_errors("recovery_logs"):
            rows = (
                self.db.query(RecoveryLog)
                .filter(
                    RecoveryLog.user_id == user_id,
                    RecoveryLog.date >= start,
                    RecoveryLog.date <= end,
                )
                .order_by(RecoveryLog.date)
                .all()
            )
        return [
            RecoveryLogRecord(
                date=row.date,
                sleep_quality=row.sleep_quality,
                energy_level=row.energy_level,
                overall_soreness=row.overall_soreness,
                stress_level=row.stress_level,
            )
            for row in rows
        ]

    def get_first_session_date(self, user_id: str) -> Optional[date]:
        with _translate_errors("first_session"):
            return (
                self.db.query(func.min(WorkoutSet.session_date))
                .filter(WorkoutSet.user_id == user_id)
                .scalar()
            )

    def get_target_sessions_per_week(self, user_id: str) -> Optional[int]:
        with _translate_errors("training_profile"):
            profile = self.db.query(TrainingProfile).filter(TrainingProfile.user_id == user_id).first()
        return profile.target_sessions_per_week if profile else None

    def get_exercise_default(self, user_id: str, exercise_id: str) -> Optional[ExerciseDefaultRecord]:
        with _translate_errors("exercise_defaults"):
            row = (
                self.db.query(ExerciseDefault)
                .filter(ExerciseDefault.user_id == user_id, ExerciseDefault.exercise_id == exercise_id)
                .first()
            )
        if row is None:
            return None
        return ExerciseDefaultRecord(
            exercise_id=row.exercise_id,
            last_weight=row.last_weight,
            last_reps=row.last_reps,
            last_rpe=row.last_rpe,
        )

    def get_active_deload(self, user_id: str) -> Optional[DeloadRecord]:
        with _translate_errors("deload"):
            row = (
                self.db.query(DeloadPeriod)
                .filter(DeloadPeriod.user_id == user_id, DeloadPeriod.is_active.is_(True))
                .first()
            )
        return _deload_record(row) if row else None

    def get_deload_history(self, user_id: str, limit: int = 5) -> List[DeloadRecord]:
        with _translate_errors("deload_history"):
            rows = (
                self.db.query(DeloadPeriod)
                .filter(DeloadPeriod.user_id == user_id)
                .order_by(DeloadPeriod.start_date.desc(), DeloadPeriod.created_at.desc())
                .limit(limit)
                .all()
            )
        return [_deload_record(row) for row in rows]

    def get_fatigue_history(self, user_id: str, start: date, end: date) -> List[FatigueLogRecord]:
        with _translate_errors("fatigue_log"):
            rows = (
                self.db.query(FatigueLog)
                .filter(FatigueLog.user_id == user_id, FatigueLog.date >= start, FatigueLog.date <= end)
                .order_by(FatigueLog.date)
                .all()
            )
        return [FatigueLogRecord(date=row.date, score=row.score, level=FatigueLevel(row.level)) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_deload(self, user_id: str, record: DeloadRecord) -> str:
        row = DeloadPeriod(
            user_id=user_id,
            start_date=record.start_date,
            duration_days=record.duration_days,
            deload_type=DeloadType(record.deload_type).value,
            volume_modifier=record.volume_modifier,
            intensity_modifier=record.intensity_modifier,
            trigger_reason=record.trigger_reason,
            fatigue_score_at_trigger=record.fatigue_score_at_trigger,
            is_active=True,
        )
        try:
            # Savepoint: a conflict undoes this insert only, not the caller's transaction
            with self.db.begin_nested():
                self.db.add(row)
                self.db.flush()
        except IntegrityError as e:
            # Lost the race against another start for the same user
            logger.warning(f"Concurrent deload start rejected for {user_id}")
            raise DeloadAlreadyActive(user_id) from e
        except SQLAlchemyError as e:
            raise DataUnavailable(str(e.__class__.__name__), source="deload") from e
        return str(row.id)

    def close_active_deload(self, user_id: str, completed_at: datetime) -> bool:
        with _translate_errors("deload"):
            rows = (
                self.db.query(DeloadPeriod)
                .filter(DeloadPeriod.user_id == user_id, DeloadPeriod.is_active.is_(True))
                .all()
            )
            for row in rows:
                row.is_active = False
                row.completed_at = completed_at
            self.db.flush()
        return bool(rows)

    def record_fatigue(self, user_id: str, entry: FatigueLogRecord) -> None:
        with _translate_errors("fatigue_log"):
            row = (
                self.db.query(FatigueLog)
                .filter(FatigueLog.user_id == user_id, FatigueLog.date == entry.date)
                .first()
            )
            if row is None:
                row = FatigueLog(user_id=user_id, date=entry.date)
                self.db.add(row)
            row.score = entry.score
            row.level = FatigueLevel(entry.level).value
            self.db.flush()

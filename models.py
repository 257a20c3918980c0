from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Float, Date, DateTime, Text, String, Index, UniqueConstraint, text
from sqlalchemy.sql import func
from core.database import Base
import uuid


def _uuid() -> str:
    return str(uuid.uuid4())


class WorkoutSet(Base):
    """
    One logged set.

    Warmup sets are stored but excluded from volume, progression and
    performance comparisons.
    """
    __tablename__ = "workout_set"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    session_date = Column(Date, nullable=False)
    exercise_id = Column(String(64), nullable=False)
    set_number = Column(Integer, nullable=False)
    weight = Column(Float, nullable=False)          # Unit is whatever the user logs in
    reps = Column(Integer, nullable=False)
    rpe = Column(Float, nullable=True)              # 1-10
    is_warmup = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("weight >= 0", name="ck_workout_set_weight_nonnegative"),
        CheckConstraint("reps >= 0", name="ck_workout_set_reps_nonnegative"),
        Index("ix_workout_set_user_date", "user_id", "session_date"),
        Index("ix_workout_set_user_exercise_date", "user_id", "exercise_id", "session_date"),
    )


class RecoveryLog(Base):
    """Daily recovery check-in. Every metric is 1-5; one row per user per day."""
    __tablename__ = "recovery_log"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False)
    sleep_quality = Column(Integer, nullable=True)
    energy_level = Column(Integer, nullable=True)
    overall_soreness = Column(Integer, nullable=True)
    stress_level = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_recovery_log_user_date"),
    )


class DeloadPeriod(Base):
    """
    A deload, active or finished.

    At most one active row per user, enforced by a partial unique index so
    two concurrent starts cannot both succeed.
    """
    __tablename__ = "deload_period"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    duration_days = Column(Integer, nullable=False)
    deload_type = Column(Text, nullable=False)              # 'volume' | 'intensity' | 'full_rest'
    volume_modifier = Column(Float, nullable=False)
    intensity_modifier = Column(Float, nullable=False)
    trigger_reason = Column(Text, nullable=False)
    fatigue_score_at_trigger = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("duration_days > 0", name="ck_deload_period_duration_positive"),
        Index(
            "uq_deload_period_one_active",
            "user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_deload_period_user_start", "user_id", "start_date"),
    )


class ExerciseDefault(Base):
    """Last-used values per user per exercise."""
    __tablename__ = "exercise_default"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False)
    exercise_id = Column(String(64), nullable=False)
    last_weight = Column(Float, nullable=True)
    last_reps = Column(Integer, nullable=True)
    last_rpe = Column(Float, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "exercise_id", name="uq_exercise_default_user_exercise"),
    )


class TrainingProfile(Base):
    """Per-user training preferences read by the engines."""
    __tablename__ = "training_profile"

    user_id = Column(String(64), primary_key=True)
    target_sessions_per_week = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class FatigueLog(Base):
    """Daily fatigue score for trend tracking. One row per user per day."""
    __tablename__ = "fatigue_log"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False)
    score = Column(Float, nullable=False)           # 0-10
    level = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_fatigue_log_user_date"),
    )

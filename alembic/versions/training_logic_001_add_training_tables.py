"""Add training adaptation tables

Revision ID: training_logic_001
Revises: None
Create Date: 2026-10-19

Creates the tables read and written by the SQL training data store:
- workout_set: logged sets (source of volume, frequency, RPE, e1RM)
- recovery_log: daily 1-5 recovery check-ins
- deload_period: deload history, at most one active row per user
- exercise_default: last-used weight/reps/RPE per exercise
- training_profile: per-user target sessions per week
- fatigue_log: one fatigue score per user per day
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'training_logic_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'workout_set',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('session_date', sa.Date(), nullable=False),
        sa.Column('exercise_id', sa.String(64), nullable=False),
        sa.Column('set_number', sa.Integer(), nullable=False),
        sa.Column('weight', sa.Float(), nullable=False),
        sa.Column('reps', sa.Integer(), nullable=False),
        sa.Column('rpe', sa.Float(), nullable=True),
        sa.Column('is_warmup', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('weight >= 0', name='ck_workout_set_weight_nonnegative'),
        sa.CheckConstraint('reps >= 0', name='ck_workout_set_reps_nonnegative'),
    )
    op.create_index('ix_workout_set_user_id', 'workout_set', ['user_id'])
    op.create_index('ix_workout_set_user_date', 'workout_set', ['user_id', 'session_date'])
    op.create_index(
        'ix_workout_set_user_exercise_date', 'workout_set', ['user_id', 'exercise_id', 'session_date']
    )

    op.create_table(
        'recovery_log',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('sleep_quality', sa.Integer(), nullable=True),
        sa.Column('energy_level', sa.Integer(), nullable=True),
        sa.Column('overall_soreness', sa.Integer(), nullable=True),
        sa.Column('stress_level', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'date', name='uq_recovery_log_user_date'),
    )
    op.create_index('ix_recovery_log_user_id', 'recovery_log', ['user_id'])

    op.create_table(
        'deload_period',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('deload_type', sa.Text(), nullable=False),
        sa.Column('volume_modifier', sa.Float(), nullable=False),
        sa.Column('intensity_modifier', sa.Float(), nullable=False),
        sa.Column('trigger_reason', sa.Text(), nullable=False),
        sa.Column('fatigue_score_at_trigger', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('duration_days > 0', name='ck_deload_period_duration_positive'),
    )
    op.create_index('ix_deload_period_user_id', 'deload_period', ['user_id'])
    op.create_index('ix_deload_period_user_start', 'deload_period', ['user_id', 'start_date'])
    # One active deload per user
    op.create_index(
        'uq_deload_period_one_active',
        'deload_period',
        ['user_id'],
        unique=True,
        postgresql_where=sa.text('is_active'),
        sqlite_where=sa.text('is_active = 1'),
    )

    op.create_table(
        'exercise_default',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('exercise_id', sa.String(64), nullable=False),
        sa.Column('last_weight', sa.Float(), nullable=True),
        sa.Column('last_reps', sa.Integer(), nullable=True),
        sa.Column('last_rpe', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'exercise_id', name='uq_exercise_default_user_exercise'),
    )

    op.create_table(
        'training_profile',
        sa.Column('user_id', sa.String(64), primary_key=True),
        sa.Column('target_sessions_per_week', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'fatigue_log',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('level', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'date', name='uq_fatigue_log_user_date'),
    )
    op.create_index('ix_fatigue_log_user_id', 'fatigue_log', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_fatigue_log_user_id', table_name='fatigue_log')
    op.drop_table('fatigue_log')
    op.drop_table('training_profile')
    op.drop_table('exercise_default')
    op.drop_index('uq_deload_period_one_active', table_name='deload_period')
    op.drop_index('ix_deload_period_user_start', table_name='deload_period')
    op.drop_index('ix_deload_period_user_id', table_name='deload_period')
    op.drop_table('deload_period')
    op.drop_index('ix_recovery_log_user_id', table_name='recovery_log')
    op.drop_table('recovery_log')
    op.drop_index('ix_workout_set_user_exercise_date', table_name='workout_set')
    op.drop_index('ix_workout_set_user_date', table_name='workout_set')
    op.drop_index('ix_workout_set_user_id', table_name='workout_set')
    op.drop_table('workout_set')

"""
Recovery & Load Aggregator

Reduces raw history (logged sets, recovery check-ins, deload history) to the
normalized TrainingSignal the fatigue scorer consumes. Pure aggregation, no
policy, no writes.

Windows (relative to as_of, inclusive):
    current     as_of-6 .. as_of           volume numerator, frequency, RPE
    baseline    28 days before current      weekly volume denominator
    comparison  21 days before current      strength (e1RM) comparison
    recovery    as_of-6 .. as_of           check-in averages

Sparse data is not an error: no rows produce neutral defaults
(volume_trend 1.0, recovery 3.0, no decline). A failing store is an error
and surfaces as DataUnavailable.
"""

import logging
import math
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from core.exceptions import DataUnavailable, TrainingLogicError
from services.training_logic.config import AggregatorConfig
from services.training_logic.store import TrainingDataStore
from services.training_logic.types import (
    RecoveryBreakdown,
    RecoveryLogRecord,
    SessionSetRecord,
    TrainingSignal,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RECOVERY_METRICS = ("sleep_quality", "energy_level", "overall_soreness", "stress_level")
# Higher soreness/stress means worse recovery
INVERTED_METRICS = {"overall_soreness", "stress_level"}


def estimate_one_rep_max(weight: float, reps: int) -> float:
    """Epley estimate. A single rep is the 1RM itself."""
    if reps <= 0 or weight <= 0:
        return 0.0
    if reps == 1:
        return float(weight)
    return float(weight) * (1 + reps / 30.0)


def fetch(source: str, call: Callable[[], T]) -> T:
    """
    Run a store call, normalizing failures to DataUnavailable.

    Taxonomy errors pass through untouched; anything else the store raises
    is wrapped so callers only ever see typed failures.
    """
    try:
        result = call()
    except TrainingLogicError:
        raise
    except Exception as e:
        raise DataUnavailable(str(e) or e.__class__.__name__, source=source) from e
    return result


def as_date(value) -> date:
    """Calendar day of a date or datetime."""
    return value.date() if isinstance(value, datetime) else value


def require_list(source: str, rows) -> list:
    if rows is None or not isinstance(rows, (list, tuple)):
        raise DataUnavailable(f"expected a list, got {type(rows).__name__}", source=source)
    return list(rows)


def _mean(values: Iterable[float]) -> Optional[float]:
    values = list(values)
    if not values:
        return None
    return sum(values) / len(values)


def consecutive_training_days(training_dates: Iterable[date], as_of: date) -> int:
    """
    Unbroken run of training dates ending today or yesterday.

    A streak whose last day is before yesterday has already been broken
    by a rest day.
    """
    days = {d for d in training_dates if d <= as_of}
    if not days:
        return 0
    latest = max(days)
    if latest < as_of - timedelta(days=1):
        return 0
    streak = 0
    cursor = latest
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


class SignalAggregator:
    """
    Build a TrainingSignal for one user.

    Stateless: holds only the store handle and config.
    """

    def __init__(self, store: TrainingDataStore, config: Optional[AggregatorConfig] = None):
        self.store = store
        self.config = config or AggregatorConfig()

    def aggregate_signals(self, user_id: str, as_of: Optional[date] = None) -> TrainingSignal:
        as_of = as_of or date.today()
        cfg = self.config

        current_start = as_of - timedelta(days=cfg.current_window_days - 1)
        baseline_end = current_start - timedelta(days=1)
        baseline_start = current_start - timedelta(days=cfg.baseline_window_days)
        comparison_start = current_start - timedelta(days=cfg.performance_window_days)
        history_start = min(baseline_start, comparison_start)

        sets = require_list(
            "session_sets",
            fetch("session_sets", lambda: self.store.get_session_sets(user_id, history_start, as_of)),
        )
        self._validate_sets(sets)

        signal = TrainingSignal(
            user_id=user_id,
            as_of=as_of,
            recovery_average=cfg.neutral_recovery,
            target_sessions_per_week=self._target_sessions(user_id),
        )
        signal.has_training_history = bool(sets)

        working = [s for s in sets if not s.is_warmup and s.reps > 0]
        current = [s for s in working if s.date >= current_start]
        baseline = [s for s in working if baseline_start <= s.date <= baseline_end]

        # --- Volume trend ---
        signal.current_week_volume = round(sum(s.volume for s in current), 2)
        baseline_volume = sum(s.volume for s in baseline)
        baseline_weeks = {(baseline_end - s.date).days // 7 for s in baseline}
        if baseline_weeks and baseline_volume > 0:
            signal.baseline_weekly_volume = round(baseline_volume / len(baseline_weeks), 2)
            signal.volume_trend = round(signal.current_week_volume / signal.baseline_weekly_volume, 3)
        else:
            signal.volume_trend = 1.0

        # --- Frequency and streak ---
        training_dates = {s.date for s in sets}
        signal.sessions_last_7_days = len({d for d in training_dates if d >= current_start})
        signal.session_frequency = round(
            signal.sessions_last_7_days / signal.target_sessions_per_week, 3
        )
        signal.consecutive_training_days = consecutive_training_days(training_dates, as_of)

        # --- RPE trend ---
        avg_rpe = _mean(float(s.rpe) for s in current if s.rpe is not None)
        prev_rpe = _mean(float(s.rpe) for s in baseline if s.rpe is not None)
        signal.average_rpe = round(avg_rpe, 2) if avg_rpe is not None else None
        signal.previous_average_rpe = round(prev_rpe, 2) if prev_rpe is not None else None

        # --- Performance decline ---
        comparison = [s for s in working if comparison_start <= s.date <= baseline_end]
        signal.declining_exercises = self._declining_exercises(current, comparison)
        comparable = len(self._best_e1rm(current).keys() & self._best_e1rm(comparison).keys())
        if comparable:
            needed = max(1, math.ceil(comparable * cfg.performance_decline_share))
            signal.performance_decline = len(signal.declining_exercises) >= needed

        # --- Recovery ---
        self._apply_recovery(signal, user_id, as_of)

        # --- Deload cadence ---
        self._apply_deload_cadence(signal, user_id, as_of)

        logger.debug(
            f"Signals {user_id} on {as_of}: volume_trend={signal.volume_trend}, "
            f"recovery={signal.recovery_average}, decline={signal.performance_decline}, "
            f"frequency={signal.session_frequency}, streak={signal.consecutive_training_days}"
        )
        return signal

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_sets(sets: List[SessionSetRecord]) -> None:
        for s in sets:
            if s.reps is None or s.weight is None or s.reps < 0 or s.weight < 0:
                raise DataUnavailable(
                    f"malformed set row for exercise {s.exercise_id} on {s.date}",
                    source="session_sets",
                )
            if s.rpe is not None and not 1 <= s.rpe <= 10:
                raise DataUnavailable(
                    f"rpe={s.rpe} outside 1-10 for exercise {s.exercise_id} on {s.date}",
                    source="session_sets",
                )

    def _target_sessions(self, user_id: str) -> int:
        target = fetch(
            "training_profile",
            lambda: self.store.get_target_sessions_per_week(user_id),
        )
        if not target or target < 1:
            return self.config.target_sessions_per_week
        return int(target)

    @staticmethod
    def _best_e1rm(sets: List[SessionSetRecord]) -> Dict[str, float]:
        best: Dict[str, float] = defaultdict(float)
        for s in sets:
            best[s.exercise_id] = max(best[s.exercise_id], estimate_one_rep_max(s.weight, s.reps))
        return {k: v for k, v in best.items() if v > 0}

    def _declining_exercises(
        self, current: List[SessionSetRecord], prior: List[SessionSetRecord]
    ) -> List[str]:
        current_best = self._best_e1rm(current)
        prior_best = self._best_e1rm(prior)
        threshold = 1.0 - self.config.performance_decline_threshold
        return sorted(
            ex for ex in current_best.keys() & prior_best.keys()
            if current_best[ex] < prior_best[ex] * threshold
        )

    def _apply_recovery(self, signal: TrainingSignal, user_id: str, as_of: date) -> None:
        cfg = self.config
        start = as_of - timedelta(days=cfg.recovery_window_days - 1)
        logs: List[RecoveryLogRecord] = require_list(
            "recovery_logs",
            fetch("recovery_logs", lambda: self.store.get_recovery_logs(user_id, start, as_of)),
        )

        breakdown = RecoveryBreakdown(logs=len(logs))
        adjusted: List[float] = []
        for metric in RECOVERY_METRICS:
            values = []
            for log in logs:
                value = getattr(log, metric)
                if value is None:
                    continue
                if not 1 <= value <= 5:
                    raise DataUnavailable(
                        f"{metric}={value} outside 1-5 on {log.date}", source="recovery_logs"
                    )
                values.append(float(value))
            avg = _mean(values)
            if avg is None:
                continue
            setattr(breakdown, metric, round(avg, 2))
            adjusted.append(6.0 - avg if metric in INVERTED_METRICS else avg)

        signal.recovery = breakdown
        if adjusted:
            signal.has_recovery_data = True
            signal.recovery_average = round(sum(adjusted) / len(adjusted), 2)
        signal.injury_risk = (
            breakdown.overall_soreness is not None
            and breakdown.overall_soreness >= cfg.injury_soreness_threshold
        )

    def _apply_deload_cadence(self, signal: TrainingSignal, user_id: str, as_of: date) -> None:
        history = require_list(
            "deload_history",
            fetch("deload_history", lambda: self.store.get_deload_history(user_id, 1)),
        )
        if history:
            last = history[0]
            ended = last.end_date
            if last.completed_at is not None:
                ended = min(ended, as_date(last.completed_at))
            signal.has_deload_history = True
            signal.days_since_last_deload = max(0, (as_of - ended).days)
            return

        # No deload yet: count from the start of training
        first = fetch("first_session", lambda: self.store.get_first_session_date(user_id))
        if first is not None:
            signal.days_since_last_deload = max(0, (as_of - first).days)

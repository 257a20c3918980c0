"""
Data contracts for the training logic engines.

Two groups:
  - Records read from the persistence collaborator (SessionSetRecord,
    RecoveryLogRecord, DeloadRecord, ExerciseDefaultRecord, FatigueLogRecord)
  - Results computed by the engines (TrainingSignal, FatigueAssessment,
    DeloadDecision, ActiveDeload, WeightSuggestion, ...)

Results are computed on demand and never persisted by the engines.
to_dict() returns plain JSON-ready data.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from services.training_logic.constants import (
    Confidence,
    DeloadType,
    FatigueLevel,
    ProgressionStatus,
    SetDirective,
    SuggestionBasis,
)


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if is_dataclass(value):
        return {f.name: _serialize(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {_serialize(k): _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


class Serializable:
    def to_dict(self) -> Dict[str, Any]:
        return _serialize(self)


# ---------------------------------------------------------------------------
# Collaborator records
# ---------------------------------------------------------------------------


@dataclass
class SessionSetRecord(Serializable):
    """One logged set."""
    date: date
    exercise_id: str
    set_number: int
    weight: float
    reps: int
    rpe: Optional[float] = None
    is_warmup: bool = False

    @property
    def volume(self) -> float:
        return float(self.weight) * int(self.reps)


@dataclass
class RecoveryLogRecord(Serializable):
    """Daily recovery check-in. Every metric is 1-5, higher = more of it."""
    date: date
    sleep_quality: Optional[int] = None
    energy_level: Optional[int] = None
    overall_soreness: Optional[int] = None
    stress_level: Optional[int] = None


@dataclass
class DeloadRecord(Serializable):
    """Deload period as stored by the collaborator."""
    start_date: date
    duration_days: int
    deload_type: DeloadType
    volume_modifier: float
    intensity_modifier: float
    trigger_reason: str
    id: Optional[str] = None
    fatigue_score_at_trigger: Optional[float] = None
    is_active: bool = True
    completed_at: Optional[datetime] = None

    @property
    def end_date(self) -> date:
        return self.start_date + timedelta(days=self.duration_days)


@dataclass
class ExerciseDefaultRecord(Serializable):
    """Last-used values for an exercise."""
    exercise_id: str
    last_weight: Optional[float] = None
    last_reps: Optional[int] = None
    last_rpe: Optional[float] = None


@dataclass
class FatigueLogRecord(Serializable):
    date: date
    score: float
    level: FatigueLevel


# ---------------------------------------------------------------------------
# Aggregator output
# ---------------------------------------------------------------------------


@dataclass
class RecoveryBreakdown(Serializable):
    """Per-metric recovery averages over the lookback (raw, not inverted)."""
    sleep_quality: Optional[float] = None
    energy_level: Optional[float] = None
    overall_soreness: Optional[float] = None
    stress_level: Optional[float] = None
    logs: int = 0


@dataclass
class TrainingSignal(Serializable):
    user_id: str
    as_of: date
    volume_trend: float = 1.0
    recovery_average: float = 3.0
    performance_decline: bool = False
    session_frequency: float = 0.0
    consecutive_training_days: int = 0

    # Supporting detail
    current_week_volume: float = 0.0
    baseline_weekly_volume: float = 0.0
    sessions_last_7_days: int = 0
    target_sessions_per_week: int = 4
    average_rpe: Optional[float] = None
    previous_average_rpe: Optional[float] = None
    declining_exercises: List[str] = field(default_factory=list)
    injury_risk: bool = False
    days_since_last_deload: Optional[int] = None
    has_deload_history: bool = False
    recovery: RecoveryBreakdown = field(default_factory=RecoveryBreakdown)
    has_training_history: bool = False
    has_recovery_data: bool = False


# ---------------------------------------------------------------------------
# Fatigue
# ---------------------------------------------------------------------------


@dataclass
class FatigueStatus(Serializable):
    level: FatigueLevel
    color: str
    message: str
    action: str


@dataclass
class FatigueFactor(Serializable):
    """One signal's share of the fatigue score."""
    name: str
    partial_score: float       # 0-10 before weighting, or penalty points
    weight: float              # 0 for additive penalties
    contribution: float        # points added to the final score
    flagged: bool
    detail: str


@dataclass
class FatigueAssessment(Serializable):
    user_id: str
    as_of: date
    score: float
    level: FatigueLevel
    status: FatigueStatus
    factors: List[FatigueFactor] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    signal: Optional[TrainingSignal] = None

    def factor(self, name: str) -> Optional[FatigueFactor]:
        for f in self.factors:
            if f.name == name:
                return f
        return None


# ---------------------------------------------------------------------------
# Deload
# ---------------------------------------------------------------------------


@dataclass
class DeloadDecision(Serializable):
    should_deload: bool
    reason: str
    deload_type: Optional[DeloadType] = None
    duration_days: int = 0
    volume_modifier: float = 1.0
    intensity_modifier: float = 1.0
    rule: str = "none"
    triggering_score: Optional[float] = None


@dataclass
class ActiveDeload(Serializable):
    id: str
    start_date: date
    end_date: date
    duration_days: int
    deload_type: DeloadType
    volume_modifier: float
    intensity_modifier: float
    trigger_reason: str
    days_remaining: int
    fatigue_score_at_trigger: Optional[float] = None

    @property
    def is_expired(self) -> bool:
        return self.days_remaining <= 0

    def to_dict(self) -> Dict[str, Any]:
        data = _serialize(self)
        data["is_expired"] = self.is_expired
        return data


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------


@dataclass
class WeightSuggestion(Serializable):
    suggested_weight: float
    suggested_reps: int
    confidence: Confidence
    basis: SuggestionBasis
    message: str
    rep_range: Optional[Tuple[int, int]] = None
    is_deload: bool = False
    original_weight: Optional[float] = None
    volume_modifier: float = 1.0
    intensity_modifier: float = 1.0


@dataclass
class SetFeedbackSuggestion(Serializable):
    directive: SetDirective
    magnitude_percent: float
    message: Optional[str]
    is_final_set: bool
    # Final-set feedback feeds the next session only
    informational_only: bool
    stop_suggested: bool = False
    bonus_set_suggested: bool = False


@dataclass
class WarmupSet(Serializable):
    set_number: int
    weight: float
    reps: int
    percentage: int


@dataclass
class RestTimerConfig(Serializable):
    seconds: int
    auto_start: bool = True
    alert_at: List[int] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Progression
# ---------------------------------------------------------------------------


@dataclass
class ExercisePerformance(Serializable):
    """Heaviest working set of one session for one exercise."""
    exercise_id: str
    session_date: date
    weight: float
    reps: int
    rpe: Optional[float]
    sets: int


@dataclass
class ProgressionRecommendation(Serializable):
    status: ProgressionStatus
    current_weight: float
    suggested_weight: float
    message: str
    sessions_at_weight: int


@dataclass
class ProgressionGate(Serializable):
    can_progress: bool
    reason: str
    suggested_action: str
    blocked_by: Optional[str] = None  # "fatigue" | "performance" | "rpe" | "recovery"

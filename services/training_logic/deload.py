"""
Deload Policy Engine

Decides whether a user should deload, of what type and for how long, and
manages the lifecycle of the active deload.

Rule priority (first match wins):
    1. emergency            score >= 9 or injury risk       → full_rest
    2. cooldown             recent deload                    → no deload
    3. sustained_critical   >= 2 of last 7 logged days >= 8  → full_rest
    4. high_fatigue         score >= 8                       → by driver
    5. prolonged_elevated   >= 5 of last 7 logged days >= 6  → volume
    6. elevated_overdue     score >= 6 and overdue           → by driver
    7. scheduled            fixed interval (off by default)  → volume
    8. none

Driver:
    volume spike dominates          → volume
    performance decline, stable vol → intensity
    anything else                   → volume

State machine: none → recommended → active → none. Nothing starts a deload
implicitly; the caller must call start_deload with a decision. Expiry is
pull-based: an expired deload stays active until end_deload.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import List, Optional, Union

from core.exceptions import DeloadAlreadyActive, InvalidInput
from services.training_logic.aggregator import fetch, require_list
from services.training_logic.config import DeloadConfig
from services.training_logic.constants import DeloadState, DeloadType
from services.training_logic.fatigue import FatigueScorer
from services.training_logic.types import (
    ActiveDeload,
    DeloadDecision,
    DeloadRecord,
    FatigueAssessment,
    FatigueLogRecord,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


def no_deload(reason: str, rule: str = "none", score: Optional[float] = None) -> DeloadDecision:
    return DeloadDecision(should_deload=False, reason=reason, rule=rule, triggering_score=score)


def build_deload_decision(
    deload_type: DeloadType,
    reason: str,
    rule: str = "manual",
    score: Optional[float] = None,
    config: Optional[DeloadConfig] = None,
) -> DeloadDecision:
    """Decision for a deload type, prescribed from the defaults table."""
    cfg = config or DeloadConfig()
    try:
        deload_type = DeloadType(deload_type)
    except ValueError:
        raise InvalidInput(f"Unknown deload type: {deload_type}", field="deload_type")

    prescription = cfg.defaults[deload_type]
    volume_modifier = float(prescription["volume_modifier"])
    if deload_type == DeloadType.FULL_REST:
        volume_modifier = 0.0

    return DeloadDecision(
        should_deload=True,
        reason=reason,
        deload_type=deload_type,
        duration_days=int(prescription["duration_days"]),
        volume_modifier=volume_modifier,
        intensity_modifier=float(prescription["intensity_modifier"]),
        rule=rule,
        triggering_score=score,
    )


def deload_driver(assessment: FatigueAssessment, spike_threshold: float = 1.2) -> DeloadType:
    """Pick volume or intensity from what is driving the fatigue."""
    signal = assessment.signal
    if signal is None:
        return DeloadType.VOLUME

    volume = assessment.factor("volume")
    top_weighted = max(
        (f for f in assessment.factors if f.weight > 0),
        key=lambda f: f.contribution,
        default=None,
    )
    if (
        signal.volume_trend > spike_threshold
        and volume is not None
        and top_weighted is not None
        and top_weighted.name == "volume"
    ):
        return DeloadType.VOLUME

    if signal.performance_decline and signal.volume_trend <= spike_threshold:
        return DeloadType.INTENSITY

    return DeloadType.VOLUME


def evaluate_deload_rules(
    assessment: FatigueAssessment,
    fatigue_history: Optional[List[FatigueLogRecord]] = None,
    config: Optional[DeloadConfig] = None,
    spike_threshold: float = 1.2,
) -> DeloadDecision:
    """
    Pure rule evaluation over a fatigue assessment.

    fatigue_history is the logged scores for the prolonged-fatigue rule;
    an empty history simply never fires it.
    """
    cfg = config or DeloadConfig()
    score = assessment.score
    signal = assessment.signal
    injury_risk = bool(signal and signal.injury_risk)
    days_since = signal.days_since_last_deload if signal else None
    has_deloaded = bool(signal and signal.has_deload_history)

    def decide(deload_type: DeloadType, reason: str, rule: str) -> DeloadDecision:
        return build_deload_decision(deload_type, reason, rule=rule, score=score, config=cfg)

    # 1. Emergency overrides cooldown
    if score >= cfg.emergency_score:
        return decide(
            DeloadType.FULL_REST,
            f"Fatigue critical ({score:.1f}/10) - take full rest days",
            "emergency",
        )
    if injury_risk:
        return decide(
            DeloadType.FULL_REST,
            "Soreness is very high - rest to avoid injury",
            "emergency",
        )

    # 2. Cooldown
    if has_deloaded and days_since is not None and days_since < cfg.cooldown_days:
        return no_deload(
            f"Deloaded {days_since} days ago - too soon for another",
            "cooldown",
            score,
        )

    # 3. Critical fatigue sustained across the logged trend
    high_days = sum(1 for entry in fatigue_history or [] if entry.score >= cfg.high_score)
    if cfg.sustained_high_days is not None and high_days >= cfg.sustained_high_days:
        return decide(
            DeloadType.FULL_REST,
            f"Fatigue high on {high_days} of the last {cfg.prolonged_lookback_days} days - take full rest days",
            "sustained_critical",
        )

    # 4. High fatigue
    if score >= cfg.high_score:
        deload_type = deload_driver(assessment, spike_threshold)
        return decide(
            deload_type,
            f"High fatigue ({score:.1f}/10) - {deload_type.value} deload recommended",
            "high_fatigue",
        )

    # 5. Sustained elevation in the logged trend
    elevated_days = sum(1 for entry in fatigue_history or [] if entry.score >= cfg.elevated_score)
    if elevated_days >= cfg.prolonged_elevated_days:
        return decide(
            DeloadType.VOLUME,
            f"Fatigue elevated on {elevated_days} of the last {cfg.prolonged_lookback_days} days",
            "prolonged_elevated",
        )

    # 6. Elevated and overdue
    if score >= cfg.elevated_score and days_since is not None and days_since >= cfg.overdue_after_days:
        deload_type = deload_driver(assessment, spike_threshold)
        return decide(
            deload_type,
            f"Fatigue elevated ({score:.1f}/10) and {days_since} days since last deload",
            "elevated_overdue",
        )

    # 7. Fixed schedule
    if (
        cfg.scheduled_interval_days is not None
        and days_since is not None
        and days_since >= cfg.scheduled_interval_days
    ):
        return decide(
            DeloadType.VOLUME,
            f"Scheduled deload - {days_since} days since the last one",
            "scheduled",
        )

    return no_deload(f"Fatigue manageable ({score:.1f}/10) - no deload needed", "none", score)


def validate_decision(decision: DeloadDecision) -> None:
    if decision is None or not decision.should_deload:
        raise InvalidInput("Decision does not call for a deload", field="decision")
    if decision.deload_type is None:
        raise InvalidInput("Decision is missing a deload type", field="deload_type")
    try:
        DeloadType(decision.deload_type)
    except ValueError:
        raise InvalidInput(f"Unknown deload type: {decision.deload_type}", field="deload_type")
    if decision.duration_days is None or decision.duration_days < 1:
        raise InvalidInput("Deload duration must be at least one day", field="duration_days")
    for name in ("volume_modifier", "intensity_modifier"):
        value = getattr(decision, name)
        if value is None or not 0.0 <= value <= 1.0:
            raise InvalidInput(f"{name} must be between 0 and 1, got {value}", field=name)
    if decision.deload_type == DeloadType.FULL_REST and decision.volume_modifier != 0.0:
        raise InvalidInput("Full rest deloads must have a volume modifier of 0", field="volume_modifier")


def to_active_deload(record: DeloadRecord, as_of: date) -> ActiveDeload:
    end = record.end_date
    return ActiveDeload(
        id=str(record.id),
        start_date=record.start_date,
        end_date=end,
        duration_days=record.duration_days,
        deload_type=DeloadType(record.deload_type),
        volume_modifier=record.volume_modifier,
        intensity_modifier=record.intensity_modifier,
        trigger_reason=record.trigger_reason,
        days_remaining=max(0, (end - as_of).days),
        fatigue_score_at_trigger=record.fatigue_score_at_trigger,
    )


def apply_deload_modifiers(
    deload: Optional[ActiveDeload],
    original_sets: int,
    original_weight: float,
    rounding_increment: float = 5.0,
) -> dict:
    """
    Scale a prescribed block of sets and load by the deload modifiers.

    Sets never drop below one unless the deload is full rest.
    """
    if deload is None or deload.is_expired:
        return {"sets": original_sets, "weight": original_weight, "modified": False}

    if deload.deload_type == DeloadType.FULL_REST:
        return {"sets": 0, "weight": 0.0, "modified": True}

    sets = max(1, round(original_sets * deload.volume_modifier))
    weight = original_weight * deload.intensity_modifier
    if rounding_increment > 0:
        weight = round(weight / rounding_increment) * rounding_increment
    return {"sets": int(sets), "weight": float(weight), "modified": True}


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class DeloadPolicyEngine:
    """
    Deload decisions plus the active-deload lifecycle.

    check_deload_needed never writes; start_deload and end_deload are the
    only mutations and go through the store.
    """

    def __init__(self, scorer: FatigueScorer, config: Optional[DeloadConfig] = None):
        self.scorer = scorer
        self.store = scorer.store
        self.config = config or DeloadConfig()

    def check_deload_needed(self, user_id: str, as_of: Optional[date] = None) -> DeloadDecision:
        as_of = as_of or date.today()

        active = self.get_active_deload(user_id, as_of)
        if active is not None and not active.is_expired:
            return no_deload(
                f"Deload in progress - {active.days_remaining} days remaining",
                "active",
            )

        assessment = self.scorer.calculate_fatigue(user_id, as_of)
        history = self.scorer.get_fatigue_history(
            user_id, days=self.config.prolonged_lookback_days, as_of=as_of
        )
        decision = evaluate_deload_rules(
            assessment,
            history,
            self.config,
            spike_threshold=self.scorer.config.volume_spike_threshold,
        )

        logger.info(
            f"Deload check {user_id} on {as_of}: should_deload={decision.should_deload}, "
            f"rule={decision.rule}, type={decision.deload_type.value if decision.deload_type else None}"
        )
        return decision

    def get_active_deload(self, user_id: str, as_of: Optional[date] = None) -> Optional[ActiveDeload]:
        as_of = as_of or date.today()
        record = fetch("deload", lambda: self.store.get_active_deload(user_id))
        if record is None:
            return None
        return to_active_deload(record, as_of)

    def start_deload(
        self,
        user_id: str,
        decision: DeloadDecision,
        triggering_score: Optional[float] = None,
        as_of: Optional[date] = None,
    ) -> str:
        validate_decision(decision)
        as_of = as_of or date.today()

        existing = fetch("deload", lambda: self.store.get_active_deload(user_id))
        if existing is not None:
            raise DeloadAlreadyActive(user_id, deload_id=existing.id)

        if triggering_score is None:
            triggering_score = decision.triggering_score

        record = DeloadRecord(
            start_date=as_of,
            duration_days=decision.duration_days,
            deload_type=DeloadType(decision.deload_type),
            volume_modifier=decision.volume_modifier,
            intensity_modifier=decision.intensity_modifier,
            trigger_reason=decision.reason,
            fatigue_score_at_trigger=triggering_score,
        )
        # The store re-checks atomically; a lost race raises DeloadAlreadyActive
        deload_id = fetch("deload", lambda: self.store.create_deload(user_id, record))

        logger.info(
            f"Deload started {user_id}: id={deload_id}, type={record.deload_type.value}, "
            f"days={record.duration_days}, rule={decision.rule}"
        )
        return str(deload_id)

    def end_deload(self, user_id: str, as_of: Optional[Union[date, datetime]] = None) -> None:
        """Close the active deload. A plain date completes it at the start of that day."""
        completed_at = as_of or datetime.now(timezone.utc)
        if not isinstance(completed_at, datetime):
            completed_at = datetime.combine(completed_at, time.min, tzinfo=timezone.utc)
        closed = fetch("deload", lambda: self.store.close_active_deload(user_id, completed_at))
        if closed:
            logger.info(f"Deload ended {user_id} at {completed_at.isoformat()}")
        else:
            logger.debug(f"No active deload to end for {user_id}")

    def get_deload_state(self, user_id: str, as_of: Optional[date] = None) -> DeloadState:
        as_of = as_of or date.today()
        active = self.get_active_deload(user_id, as_of)
        if active is not None and not active.is_expired:
            return DeloadState.ACTIVE
        if self.check_deload_needed(user_id, as_of).should_deload:
            return DeloadState.RECOMMENDED
        return DeloadState.NONE

    def get_deload_history(self, user_id: str, limit: int = 5) -> List[DeloadRecord]:
        if limit < 1:
            raise InvalidInput(f"limit must be positive, got {limit}", field="limit")
        return require_list(
            "deload_history",
            fetch("deload_history", lambda: self.store.get_deload_history(user_id, limit)),
        )

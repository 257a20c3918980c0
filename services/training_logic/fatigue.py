"""
Fatigue Scorer

Turns a TrainingSignal into a bounded fatigue score (0-10, higher = more
fatigued), a categorical level, the factors behind it, and recommendations.

Architecture:
    TrainingSignal (aggregator)
             ↓
    Partial scores, each 0-10          weighted average
      volume     0.50  spike ramps faster than drop
      recovery   0.30  inverse of the 1-5 recovery average
      frequency  0.10  sessions above target
      rpe        0.10  average RPE above 7, plus RPE creep
             ↓
    Step penalties                     added after averaging
      performance decline   +2.0
      training streak       +0.75/day from day 6, capped at 3.0
             ↓
    clamp [0, 10] → level → status text

Weights and ramps are tunable (FatigueConfig) and were chosen to satisfy the
directional rules, not fitted to recorded outputs.
"""

import logging
import math
from datetime import date, timedelta
from typing import List, Optional, Tuple

from core.exceptions import InvalidInput
from services.training_logic.aggregator import SignalAggregator, fetch, require_list
from services.training_logic.config import FatigueConfig
from services.training_logic.constants import FATIGUE_STATUS_TEXT, FatigueLevel
from services.training_logic.types import (
    FatigueAssessment,
    FatigueFactor,
    FatigueLogRecord,
    FatigueStatus,
    TrainingSignal,
)

logger = logging.getLogger(__name__)

SCORE_MIN = 0.0
SCORE_MAX = 10.0


def _clamp(value: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Score → level → status (the only place this mapping lives)
# ---------------------------------------------------------------------------


def get_fatigue_level(score: float, config: Optional[FatigueConfig] = None) -> FatigueLevel:
    """
    Map a score to its level. Boundaries are half-open: [4, 6) is manageable.
    """
    if score is None or not math.isfinite(score):
        raise InvalidInput(f"Fatigue score must be a finite number, got {score}", field="score")
    thresholds = (config or FatigueConfig()).level_thresholds
    score = _clamp(score)
    for lower_bound, level in thresholds:
        if score >= lower_bound:
            return level
    return thresholds[-1][1]


def get_fatigue_status(score: float, config: Optional[FatigueConfig] = None) -> FatigueStatus:
    level = get_fatigue_level(score, config)
    text = FATIGUE_STATUS_TEXT[level]
    return FatigueStatus(
        level=level,
        color=text["color"],
        message=text["message"],
        action=text["action"],
    )


# ---------------------------------------------------------------------------
# Partial scores
# ---------------------------------------------------------------------------


def _volume_partial(signal: TrainingSignal, cfg: FatigueConfig) -> FatigueFactor:
    trend = signal.volume_trend
    if trend >= 1.0:
        partial = _clamp((trend - 1.0) / cfg.volume_ramp * 10.0)
        flagged = trend > cfg.volume_spike_threshold
        detail = f"Volume at {trend:.0%} of baseline"
        if flagged:
            detail += " (spike)"
    else:
        partial = _clamp((1.0 - trend) / cfg.volume_ramp * 10.0) * cfg.volume_drop_factor
        flagged = trend < cfg.volume_drop_threshold
        detail = f"Volume at {trend:.0%} of baseline"
        if flagged:
            detail += " (drop)"
    return FatigueFactor("volume", round(partial, 2), cfg.weights["volume"], 0.0, flagged, detail)


def _recovery_partial(signal: TrainingSignal, cfg: FatigueConfig) -> FatigueFactor:
    partial = _clamp((5.0 - signal.recovery_average) / 4.0 * 10.0)
    flagged = signal.has_recovery_data and partial >= cfg.recovery_flag_partial
    if signal.has_recovery_data:
        detail = f"Recovery average {signal.recovery_average:.1f}/5"
    else:
        detail = "No recovery check-ins, assuming neutral recovery"
    return FatigueFactor("recovery", round(partial, 2), cfg.weights["recovery"], 0.0, flagged, detail)


def _frequency_partial(signal: TrainingSignal, cfg: FatigueConfig) -> FatigueFactor:
    ratio = signal.session_frequency
    partial = _clamp((ratio - 1.0) / cfg.frequency_ramp * 10.0) if ratio > 1.0 else 0.0
    detail = (
        f"{signal.sessions_last_7_days} sessions in 7 days "
        f"(target {signal.target_sessions_per_week})"
    )
    return FatigueFactor("frequency", round(partial, 2), cfg.weights["frequency"], 0.0, ratio > 1.0, detail)


def _rpe_creeping(signal: TrainingSignal, cfg: FatigueConfig) -> bool:
    return (
        signal.average_rpe is not None
        and signal.previous_average_rpe is not None
        and signal.average_rpe - signal.previous_average_rpe >= cfg.rpe_creep_delta
    )


def _rpe_partial(signal: TrainingSignal, cfg: FatigueConfig) -> FatigueFactor:
    if signal.average_rpe is None:
        return FatigueFactor("rpe", 0.0, cfg.weights["rpe"], 0.0, False, "No RPE logged")

    partial = _clamp((signal.average_rpe - cfg.rpe_baseline) / cfg.rpe_ramp * 10.0)
    creeping = _rpe_creeping(signal, cfg)
    detail = f"Average RPE {signal.average_rpe:.1f}"
    if creeping:
        partial = _clamp(partial + cfg.rpe_creep_bonus)
        detail += f" (up from {signal.previous_average_rpe:.1f})"
    flagged = creeping or partial >= cfg.rpe_flag_partial
    return FatigueFactor("rpe", round(partial, 2), cfg.weights["rpe"], 0.0, flagged, detail)


def _performance_penalty(signal: TrainingSignal, cfg: FatigueConfig) -> FatigueFactor:
    if not signal.performance_decline:
        return FatigueFactor("performance_decline", 0.0, 0.0, 0.0, False, "Strength stable")
    exercises = ", ".join(signal.declining_exercises)
    penalty = cfg.performance_decline_penalty
    return FatigueFactor(
        "performance_decline", penalty, 0.0, penalty, True,
        f"Estimated 1RM down on {exercises}",
    )


def _streak_penalty(signal: TrainingSignal, cfg: FatigueConfig) -> FatigueFactor:
    days = signal.consecutive_training_days
    if days < cfg.streak_threshold_days:
        return FatigueFactor("streak", 0.0, 0.0, 0.0, False, f"{days} consecutive training days")
    penalty = min(
        cfg.streak_penalty_cap,
        cfg.streak_penalty_per_day * (days - cfg.streak_threshold_days + 1),
    )
    return FatigueFactor(
        "streak", round(penalty, 2), 0.0, round(penalty, 2), True,
        f"{days} consecutive training days without rest",
    )


def score_signal(
    signal: TrainingSignal, config: Optional[FatigueConfig] = None
) -> Tuple[float, List[FatigueFactor]]:
    """
    Pure scoring: signal in, (clamped score, factors by contribution) out.
    """
    cfg = config or FatigueConfig()

    weighted = [
        _volume_partial(signal, cfg),
        _recovery_partial(signal, cfg),
        _frequency_partial(signal, cfg),
        _rpe_partial(signal, cfg),
    ]
    total_weight = sum(f.weight for f in weighted)
    base = 0.0
    for f in weighted:
        f.contribution = round(f.weight * f.partial_score / total_weight, 3) if total_weight > 0 else 0.0
        base += f.contribution

    penalties = [_performance_penalty(signal, cfg), _streak_penalty(signal, cfg)]
    raw = base + sum(p.contribution for p in penalties)
    score = round(_clamp(raw), 2)

    factors = sorted(weighted + penalties, key=lambda f: f.contribution, reverse=True)
    return score, factors


def build_recommendations(
    signal: TrainingSignal,
    factors: List[FatigueFactor],
    config: Optional[FatigueConfig] = None,
) -> List[str]:
    """Recommendations for flagged factors, strongest first."""
    cfg = config or FatigueConfig()
    recommendations: List[str] = []
    for f in factors:
        if not f.flagged:
            continue
        if f.name == "volume":
            if signal.volume_trend > 1.0:
                recommendations.append("Volume spike detected - reduce volume to avoid overreaching")
            else:
                recommendations.append("Volume well below baseline - check for injury or missed sessions")
        elif f.name == "recovery":
            recommendations.extend(_recovery_recommendations(signal))
        elif f.name == "frequency":
            recommendations.append("Training more often than planned - schedule a rest day")
        elif f.name == "rpe":
            if _rpe_creeping(signal, cfg):
                recommendations.append("RPE trending up - consider reducing intensity")
            else:
                recommendations.append("Workouts are very demanding - keep RPE in check")
        elif f.name == "performance_decline":
            recommendations.append("Strength is dropping - reduce intensity and prioritize recovery")
        elif f.name == "streak":
            recommendations.append(
                f"{signal.consecutive_training_days} consecutive training days - schedule rest"
            )
    return recommendations


def _recovery_recommendations(signal: TrainingSignal) -> List[str]:
    r = signal.recovery
    specific = []
    if r.sleep_quality is not None and r.sleep_quality <= 2.5:
        specific.append("Prioritize sleep - aim for 7+ hours")
    if r.energy_level is not None and r.energy_level <= 2.5:
        specific.append("Low energy levels - consider a rest day")
    if r.overall_soreness is not None and r.overall_soreness >= 4:
        specific.append("High muscle soreness - allow recovery")
    if r.stress_level is not None and r.stress_level >= 4:
        specific.append("High stress - keep sessions short and easy")
    return specific or ["Poor recovery - prioritize sleep and rest"]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class FatigueScorer:
    """
    Compute fatigue for a user.

    The assessment is computed fresh on every call; logging it for trend
    charts is the caller's choice (log_fatigue).
    """

    def __init__(self, aggregator: SignalAggregator, config: Optional[FatigueConfig] = None):
        self.aggregator = aggregator
        self.store = aggregator.store
        self.config = config or FatigueConfig()

    def calculate_fatigue(self, user_id: str, as_of: Optional[date] = None) -> FatigueAssessment:
        # DataUnavailable from the aggregator propagates; no guessed score
        signal = self.aggregator.aggregate_signals(user_id, as_of)
        return self.assess(signal)

    def assess(self, signal: TrainingSignal) -> FatigueAssessment:
        score, factors = score_signal(signal, self.config)
        status = get_fatigue_status(score, self.config)
        recommendations = build_recommendations(signal, factors, self.config)

        logger.info(
            f"Fatigue {signal.user_id} on {signal.as_of}: score={score:.2f}, "
            f"level={status.level.value}, "
            f"factors={[(f.name, f.contribution) for f in factors if f.contribution]}"
        )

        return FatigueAssessment(
            user_id=signal.user_id,
            as_of=signal.as_of,
            score=score,
            level=status.level,
            status=status,
            factors=factors,
            recommendations=recommendations,
            signal=signal,
        )

    def log_fatigue(self, user_id: str, assessment: FatigueAssessment) -> None:
        """Persist today's score for trend tracking (one row per day)."""
        entry = FatigueLogRecord(date=assessment.as_of, score=assessment.score, level=assessment.level)
        fetch("fatigue_log", lambda: self.store.record_fatigue(user_id, entry))

    def get_fatigue_history(
        self, user_id: str, days: int = 7, as_of: Optional[date] = None
    ) -> List[FatigueLogRecord]:
        as_of = as_of or date.today()
        start = as_of - timedelta(days=days - 1)
        return require_list(
            "fatigue_log",
            fetch("fatigue_log", lambda: self.store.get_fatigue_history(user_id, start, as_of)),
        )

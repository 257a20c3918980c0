"""
Suggestion Engine

Per-set load and rep recommendations.

suggest_weight precedence:
    1. Working weight from history
         none              → category starting weight   (first_time)
         regress status    → drop back                  (previous_performance)
         met target        → + max(2.5%, increment)     (progressive_overload)
         fell short        → - 5%                       (previous_performance)
         otherwise         → hold                       (previous_performance)
    2. Active deload       → intensity x weight, volume x reps (deload_adjusted)
       else fatigue >= 6   → x0.9 (x0.85 at >= 8)
    3. Warm-up sets ramp off the resulting working weight (warmup_ramp),
       except during full rest

"History" is sessions strictly before as_of, so sets logged earlier in
today's session never compound the progression.

get_suggestion_after_set, get_warmup_sets and get_rest_timer_config are
pure functions and share no state with suggest_weight.
"""

import logging
import math
from datetime import date, timedelta
from typing import List, Optional

from core.exceptions import InvalidInput
from services.training_logic.aggregator import fetch
from services.training_logic.config import SuggestionConfig
from services.training_logic.constants import (
    Confidence,
    DeloadType,
    ExerciseCategory,
    ProgressionStatus,
    SetDirective,
    SlotType,
    SuggestionBasis,
)
from services.training_logic.deload import DeloadPolicyEngine
from services.training_logic.progression import (
    ProgressionService,
    parse_category,
    recommend_progression,
)
from services.training_logic.types import (
    ActiveDeload,
    RestTimerConfig,
    SetFeedbackSuggestion,
    WarmupSet,
    WeightSuggestion,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def round_to_nearest(value: float, nearest: float) -> float:
    """Round half up to a multiple of nearest."""
    if nearest <= 0:
        return float(value)
    return float(math.floor(value / nearest + 0.5) * nearest)


def _check_finite(value, name: str) -> float:
    if value is None or isinstance(value, bool):
        raise InvalidInput(f"{name} is required", field=name)
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be a number, got {value!r}", field=name)
    if not math.isfinite(value):
        raise InvalidInput(f"{name} must be finite, got {value}", field=name)
    return value


def _check_rpe(value, name: str) -> float:
    value = _check_finite(value, name)
    if not 1.0 <= value <= 10.0:
        raise InvalidInput(f"{name} must be between 1 and 10, got {value:g}", field=name)
    return value


def _check_positive_int(value, name: str, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer, got {value!r}", field=name)
    if value < minimum:
        raise InvalidInput(f"{name} must be at least {minimum}, got {value}", field=name)
    return value


def confidence_for(prior_sessions: int, config: Optional[SuggestionConfig] = None) -> Confidence:
    cfg = config or SuggestionConfig()
    if prior_sessions <= 0:
        return Confidence.LOW
    if prior_sessions >= cfg.high_confidence_sessions:
        return Confidence.HIGH
    return Confidence.MEDIUM


def progression_increase(
    weight: float, category: Optional[ExerciseCategory], config: Optional[SuggestionConfig] = None
) -> float:
    """max(2.5% of weight, category increment), rounded up to the increment."""
    cfg = config or SuggestionConfig()
    increment = weight_increment(category, cfg)
    step = max(weight * cfg.increase_pct, increment)
    return math.ceil(step / increment - 1e-9) * increment


def weight_increment(category: Optional[ExerciseCategory], config: Optional[SuggestionConfig] = None) -> float:
    cfg = config or SuggestionConfig()
    if category in cfg.weight_increments:
        return cfg.weight_increments[category]
    return cfg.rounding_increment


def starting_weight(category: Optional[ExerciseCategory], config: Optional[SuggestionConfig] = None) -> float:
    cfg = config or SuggestionConfig()
    if category is None:
        return cfg.starting_weight_unknown
    return cfg.starting_weights.get(category, cfg.starting_weight_unknown)


# ---------------------------------------------------------------------------
# Intra-session auto-regulation
# ---------------------------------------------------------------------------


def get_suggestion_after_set(
    set_number: int,
    total_sets: int,
    completed_reps: int,
    target_reps: int,
    rpe: float,
    target_rpe: float,
) -> SetFeedbackSuggestion:
    """
    Directive for the next set from how the last one went.

    decrease    RPE 2+ over target, or reps under 80% of target
                (10% when both, or reps under 70%; else 5%)
    hold        RPE 1+ over target, or reps short
    increase    RPE 2+ under target with reps met (5%), or
                RPE 1+ under target with 2+ extra reps (2.5%)
    hold        otherwise

    The final set still gets a directive, flagged informational: it only
    informs the next session.
    """
    _check_positive_int(set_number, "set_number")
    _check_positive_int(total_sets, "total_sets")
    if set_number > total_sets:
        raise InvalidInput(
            f"set_number {set_number} exceeds total_sets {total_sets}", field="set_number"
        )
    _check_positive_int(completed_reps, "completed_reps", minimum=0)
    _check_positive_int(target_reps, "target_reps")
    rpe = _check_rpe(rpe, "rpe")
    target_rpe = _check_rpe(target_rpe, "target_rpe")

    rpe_diff = rpe - target_rpe
    rep_ratio = completed_reps / target_reps
    reps_met = completed_reps >= target_reps
    is_final = set_number == total_sets

    def result(directive, magnitude, message, stop=False, bonus=False):
        return SetFeedbackSuggestion(
            directive=directive,
            magnitude_percent=magnitude,
            message=message,
            is_final_set=is_final,
            informational_only=is_final,
            stop_suggested=stop,
            bonus_set_suggested=bonus,
        )

    too_hard = rpe_diff >= 2
    too_few = rep_ratio < 0.8
    if too_hard or too_few:
        severe = (too_hard and too_few) or rep_ratio < 0.7
        magnitude = 10.0 if severe else 5.0
        # Grinding near the end of the exercise
        stop = too_hard and set_number >= total_sets - 1
        if stop:
            message = "Consider ending here - very high RPE"
        elif too_few:
            message = f"Missed reps ({completed_reps}/{target_reps}) - reduce weight by {magnitude:g}%"
        else:
            message = f"Much harder than target - reduce weight by {magnitude:g}%"
        return result(SetDirective.DECREASE, magnitude, message, stop=stop)

    if rpe_diff >= 1:
        return result(SetDirective.HOLD, 0.0, "Harder than target - maintain weight next set")
    if not reps_met:
        return result(SetDirective.HOLD, 0.0, "Just short of target reps - maintain weight")

    if rpe_diff <= -2:
        if is_final:
            return result(
                SetDirective.INCREASE, 5.0,
                "Feeling strong? Add a bonus set, or add weight next time",
                bonus=True,
            )
        return result(SetDirective.INCREASE, 5.0, "Much easier than target - add 5%")

    if rpe_diff <= -1 and completed_reps >= target_reps + 2:
        if is_final:
            return result(
                SetDirective.INCREASE, 2.5, "Good session - consider adding weight next time"
            )
        return result(SetDirective.INCREASE, 2.5, "Easier than target - add a little weight")

    return result(SetDirective.HOLD, 0.0, None)


# ---------------------------------------------------------------------------
# Warm-ups
# ---------------------------------------------------------------------------


def _check_working_weight(working_weight) -> float:
    working_weight = _check_finite(working_weight, "working_weight")
    if working_weight < 0:
        raise InvalidInput(
            f"working_weight cannot be negative, got {working_weight:g}", field="working_weight"
        )
    return working_weight


def get_warmup_progression(
    working_weight: float, set_number: int, config: Optional[SuggestionConfig] = None
) -> WarmupSet:
    """One warm-up set. Sets past the end of the ramp repeat its last step."""
    cfg = config or SuggestionConfig()
    working_weight = _check_working_weight(working_weight)
    _check_positive_int(set_number, "set_number")

    fraction, reps = cfg.warmup_ramp[min(set_number, len(cfg.warmup_ramp)) - 1]
    return WarmupSet(
        set_number=set_number,
        weight=round_to_nearest(working_weight * fraction, cfg.rounding_increment),
        reps=reps,
        percentage=int(round(fraction * 100)),
    )


def get_warmup_sets(working_weight: float, config: Optional[SuggestionConfig] = None) -> List[WarmupSet]:
    cfg = config or SuggestionConfig()
    working_weight = _check_working_weight(working_weight)
    if working_weight == 0:
        return []

    steps = len(cfg.warmup_ramp)
    # Light loads only need one warm-up
    if working_weight < cfg.light_warmup_threshold:
        steps = 1
    return [get_warmup_progression(working_weight, n, cfg) for n in range(1, steps + 1)]


# ---------------------------------------------------------------------------
# Rest timer
# ---------------------------------------------------------------------------


def get_rest_timer_config(
    slot_type,
    exercise_category,
    last_rpe: Optional[float] = None,
    config: Optional[SuggestionConfig] = None,
) -> RestTimerConfig:
    cfg = config or SuggestionConfig()
    try:
        slot = SlotType(slot_type)
    except ValueError:
        raise InvalidInput(f"Unknown slot type: {slot_type}", field="slot_type")
    category = parse_category(exercise_category)
    if category is None:
        raise InvalidInput("exercise_category is required", field="exercise_category")
    if last_rpe is not None:
        last_rpe = _check_rpe(last_rpe, "last_rpe")

    seconds = cfg.rest_timer_seconds[slot][category]
    if (
        slot == SlotType.PRIMARY
        and category == ExerciseCategory.COMPOUND
        and last_rpe is not None
        and last_rpe >= cfg.extended_rest_rpe
    ):
        seconds = cfg.extended_rest_seconds

    alert_at = [30, 10] if seconds >= 120 else [15]
    return RestTimerConfig(seconds=seconds, auto_start=True, alert_at=alert_at)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class SuggestionEngine:
    """Weight and rep suggestions for the next set of an exercise."""

    def __init__(
        self,
        deload_engine: DeloadPolicyEngine,
        progression: ProgressionService,
        config: Optional[SuggestionConfig] = None,
    ):
        self.deload_engine = deload_engine
        self.progression = progression
        self.scorer = deload_engine.scorer
        self.store = deload_engine.store
        self.config = config or SuggestionConfig()

    def suggest_weight(
        self,
        user_id: str,
        exercise_id: str,
        set_number: int,
        is_warmup: bool = False,
        *,
        target_reps: Optional[int] = None,
        target_rpe: Optional[float] = None,
        exercise_category=None,
        as_of: Optional[date] = None,
    ) -> WeightSuggestion:
        cfg = self.config
        _check_positive_int(set_number, "set_number")
        target_reps = cfg.default_target_reps if target_reps is None else target_reps
        _check_positive_int(target_reps, "target_reps")
        target_rpe = _check_rpe(
            cfg.default_target_rpe if target_rpe is None else target_rpe, "target_rpe"
        )
        category = parse_category(exercise_category)
        as_of = as_of or date.today()

        history = self.progression.get_exercise_performance(
            user_id, exercise_id, cfg.history_sessions, as_of - timedelta(days=1)
        )
        confidence = confidence_for(len(history), cfg)

        if history:
            last = history[0]
            last_weight, last_reps, last_rpe = last.weight, last.reps, last.rpe
        else:
            default = fetch(
                "exercise_defaults", lambda: self.store.get_exercise_default(user_id, exercise_id)
            )
            if default is not None and default.last_weight is not None:
                last_weight, last_reps, last_rpe = default.last_weight, default.last_reps, default.last_rpe
            else:
                last_weight = last_reps = last_rpe = None

        active = self.deload_engine.get_active_deload(user_id, as_of)
        if active is not None and active.is_expired:
            active = None

        fatigue_multiplier = 1.0
        if active is None and last_weight is not None and cfg.apply_fatigue_adjustment:
            fatigue_multiplier = self._fatigue_multiplier(user_id, as_of)

        # --- Working weight ---
        if last_weight is None:
            weight = starting_weight(category, cfg)
            basis = SuggestionBasis.FIRST_TIME
            message = "No history - starting weight"
        else:
            weight, basis, message = self._from_history(
                history, float(last_weight), last_reps, last_rpe,
                target_reps, target_rpe, category,
                allow_overload=fatigue_multiplier == 1.0,
            )

        if fatigue_multiplier < 1.0:
            weight = round_to_nearest(weight * fatigue_multiplier, weight_increment(category, cfg))
            message += f" (reduced to {fatigue_multiplier:.0%} for fatigue)"

        reps = target_reps
        suggestion = WeightSuggestion(
            suggested_weight=weight,
            suggested_reps=reps,
            confidence=confidence,
            basis=basis,
            message=message,
            rep_range=(max(1, reps - 2), reps + 2),
        )

        if active is not None:
            suggestion = self._apply_deload(suggestion, active, category)

        # Full rest means no sets at all, warm-ups included
        full_rest = active is not None and active.deload_type == DeloadType.FULL_REST
        if is_warmup and not full_rest:
            suggestion = self._warmup(suggestion, set_number)

        logger.debug(
            f"Suggest {user_id}/{exercise_id} set {set_number}: weight={suggestion.suggested_weight}, "
            f"reps={suggestion.suggested_reps}, basis={suggestion.basis.value}, "
            f"confidence={suggestion.confidence.value}"
        )
        return suggestion

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _fatigue_multiplier(self, user_id: str, as_of: date) -> float:
        cfg = self.config
        score = self.scorer.calculate_fatigue(user_id, as_of).score
        if score >= cfg.fatigue_adjust_high_score:
            return cfg.fatigue_adjust_high_multiplier
        if score >= cfg.fatigue_adjust_score:
            return cfg.fatigue_adjust_multiplier
        return 1.0

    def _from_history(
        self,
        history,
        last_weight: float,
        last_reps: Optional[int],
        last_rpe: Optional[float],
        target_reps: int,
        target_rpe: float,
        category: Optional[ExerciseCategory],
        allow_overload: bool,
    ):
        cfg = self.config
        rec = recommend_progression(history, category, cfg) if history else None
        status = rec.status if rec else None

        if status == ProgressionStatus.REGRESS:
            return rec.suggested_weight, SuggestionBasis.PREVIOUS_PERFORMANCE, rec.message

        met_target = (
            last_reps is not None
            and last_reps >= target_reps
            and (last_rpe is None or last_rpe <= target_rpe)
        )
        fell_short = (
            last_reps is not None and last_reps < target_reps - cfg.rep_shortfall_tolerance
        ) or (
            last_rpe is not None and last_rpe >= target_rpe + cfg.rpe_overshoot_tolerance
        )

        if met_target and allow_overload and status != ProgressionStatus.PLATEAU:
            increase = progression_increase(last_weight, category, cfg)
            return (
                last_weight + increase,
                SuggestionBasis.PROGRESSIVE_OVERLOAD,
                f"Hit {last_reps} reps at {last_weight:g} last time - add {increase:g}",
            )

        if fell_short:
            weight = round_to_nearest(
                last_weight * (1 - cfg.decrease_pct), weight_increment(category, cfg)
            )
            return (
                weight,
                SuggestionBasis.PREVIOUS_PERFORMANCE,
                f"Last session was a struggle at {last_weight:g} - back off {cfg.decrease_pct:.0%}",
            )

        if status == ProgressionStatus.PLATEAU:
            message = f"Plateaued at {last_weight:g} - hold and try a plateau strategy"
        else:
            message = f"Based on last session: {last_weight:g}"
        return last_weight, SuggestionBasis.PREVIOUS_PERFORMANCE, message

    def _apply_deload(
        self,
        suggestion: WeightSuggestion,
        deload: ActiveDeload,
        category: Optional[ExerciseCategory],
    ) -> WeightSuggestion:
        original = suggestion.suggested_weight
        if deload.deload_type == DeloadType.FULL_REST:
            weight, reps = 0.0, 0
            message = "Full rest deload - skip training today"
            rep_range = None
        else:
            weight = round_to_nearest(
                original * deload.intensity_modifier, weight_increment(category, self.config)
            )
            reps = max(1, int(round(suggestion.suggested_reps * deload.volume_modifier)))
            message = (
                f"Deload: {deload.intensity_modifier:.0%} load, "
                f"{deload.volume_modifier:.0%} volume"
            )
            rep_range = (max(1, reps - 2), reps + 2)

        return WeightSuggestion(
            suggested_weight=weight,
            suggested_reps=reps,
            confidence=suggestion.confidence,
            basis=SuggestionBasis.DELOAD_ADJUSTED,
            message=message,
            rep_range=rep_range,
            is_deload=True,
            original_weight=original,
            volume_modifier=deload.volume_modifier,
            intensity_modifier=deload.intensity_modifier,
        )

    def _warmup(self, suggestion: WeightSuggestion, set_number: int) -> WeightSuggestion:
        warmup = get_warmup_progression(suggestion.suggested_weight, set_number, self.config)
        return WeightSuggestion(
            suggested_weight=warmup.weight,
            suggested_reps=warmup.reps,
            confidence=suggestion.confidence,
            basis=SuggestionBasis.WARMUP_RAMP,
            message=f"Warmup set {set_number}: {warmup.percentage}% of working weight",
            rep_range=None,
            is_deload=suggestion.is_deload,
            original_weight=suggestion.suggested_weight,
            volume_modifier=suggestion.volume_modifier,
            intensity_modifier=suggestion.intensity_modifier,
        )

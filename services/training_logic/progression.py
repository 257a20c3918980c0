"""
Multi-session progression gates and plateau detection.

Looks at the heaviest working set of each recent session for an exercise
and classifies where the lifter stands:

    ready     target reps at or under target RPE for enough sessions
    regress   the last two sessions averaged RPE > 9.5
    plateau   stuck at the same weight for plateau_sessions sessions
    maintain  everything else

Checked in that order, first match wins.

Compound and isolation lifts have separate rules (PROGRESSION_RULES);
unknown or conditioning categories use the isolation rule.
"""

import copy
import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional

from core.exceptions import InvalidInput
from services.training_logic.aggregator import fetch, require_list
from services.training_logic.config import SuggestionConfig
from services.training_logic.constants import (
    PLATEAU_STRATEGIES,
    ExerciseCategory,
    ProgressionStatus,
)
from services.training_logic.fatigue import FatigueScorer
from services.training_logic.types import (
    ExercisePerformance,
    ProgressionGate,
    ProgressionRecommendation,
    SessionSetRecord,
)

logger = logging.getLogger(__name__)


def parse_category(value) -> Optional[ExerciseCategory]:
    if value is None:
        return None
    try:
        return ExerciseCategory(value)
    except ValueError:
        raise InvalidInput(f"Unknown exercise category: {value}", field="exercise_category")


def progression_rule(
    category: Optional[ExerciseCategory], config: Optional[SuggestionConfig] = None
) -> Dict[str, float]:
    rules = (config or SuggestionConfig()).progression_rules
    if category == ExerciseCategory.COMPOUND:
        return rules[ExerciseCategory.COMPOUND]
    return rules[ExerciseCategory.ISOLATION]


def summarize_sessions(
    sets: List[SessionSetRecord], exercise_id: str, limit: int
) -> List[ExercisePerformance]:
    """Heaviest working set per session date, most recent first."""
    by_date: Dict[date, List[SessionSetRecord]] = defaultdict(list)
    for s in sets:
        if s.exercise_id != exercise_id or s.is_warmup or not s.weight or not s.reps:
            continue
        by_date[s.date].append(s)

    performance = []
    for session_date in sorted(by_date, reverse=True)[:limit]:
        working = by_date[session_date]
        best = max(working, key=lambda s: s.weight)
        performance.append(
            ExercisePerformance(
                exercise_id=exercise_id,
                session_date=session_date,
                weight=float(best.weight),
                reps=int(best.reps),
                rpe=float(best.rpe) if best.rpe is not None else None,
                sets=len(working),
            )
        )
    return performance


def _sessions_at_weight(performance: List[ExercisePerformance]) -> int:
    current = performance[0].weight
    count = 0
    for p in performance:
        if p.weight != current:
            break
        count += 1
    return count


def recommend_progression(
    performance: List[ExercisePerformance],
    category: Optional[ExerciseCategory] = None,
    config: Optional[SuggestionConfig] = None,
) -> ProgressionRecommendation:
    """Pure classification of recent sessions (most recent first)."""
    cfg = config or SuggestionConfig()
    if not performance:
        return ProgressionRecommendation(
            status=ProgressionStatus.MAINTAIN,
            current_weight=0.0,
            suggested_weight=0.0,
            message="No history for this exercise",
            sessions_at_weight=0,
        )

    rule = progression_rule(category, cfg)
    increment = float(rule["weight_increment"])
    current = performance[0].weight
    at_weight = _sessions_at_weight(performance)

    required = int(rule["sessions_required"])
    qualifying = [
        p for p in performance[:required]
        if p.weight == current
        and p.reps >= rule["min_reps_for_progress"]
        and (p.rpe is None or p.rpe <= rule["max_rpe_for_progress"])
    ]
    if len(qualifying) >= required:
        return ProgressionRecommendation(
            status=ProgressionStatus.READY,
            current_weight=current,
            suggested_weight=current + increment,
            message=f"Add {increment:g} next session",
            sessions_at_weight=at_weight,
        )

    recent_rpe = [p.rpe for p in performance[:2] if p.rpe is not None]
    if recent_rpe and sum(recent_rpe) / len(recent_rpe) > cfg.regress_rpe:
        return ProgressionRecommendation(
            status=ProgressionStatus.REGRESS,
            current_weight=current,
            suggested_weight=max(current - increment * 2, 0.0),
            message="Weight too heavy - drop back and rebuild",
            sessions_at_weight=at_weight,
        )

    if at_weight >= cfg.plateau_sessions:
        return ProgressionRecommendation(
            status=ProgressionStatus.PLATEAU,
            current_weight=current,
            suggested_weight=current,
            message=f"Plateaued at {current:g} for {at_weight} sessions",
            sessions_at_weight=at_weight,
        )

    return ProgressionRecommendation(
        status=ProgressionStatus.MAINTAIN,
        current_weight=current,
        suggested_weight=current,
        message="Keep current weight until you hit targets",
        sessions_at_weight=at_weight,
    )


def get_plateau_strategies() -> List[Dict[str, str]]:
    return copy.deepcopy(PLATEAU_STRATEGIES)


class ProgressionService:
    """Progression status and gates for one exercise, read through the store."""

    def __init__(self, scorer: FatigueScorer, config: Optional[SuggestionConfig] = None):
        self.scorer = scorer
        self.store = scorer.store
        self.config = config or SuggestionConfig()

    def get_exercise_performance(
        self,
        user_id: str,
        exercise_id: str,
        limit: int = 5,
        as_of: Optional[date] = None,
    ) -> List[ExercisePerformance]:
        """Per-session summaries within the lookback, ending on as_of."""
        if limit < 1:
            raise InvalidInput(f"limit must be positive, got {limit}", field="limit")
        as_of = as_of or date.today()
        start = as_of - timedelta(days=self.config.history_lookback_days)
        sets = require_list(
            "session_sets",
            fetch(
                "session_sets",
                lambda: self.store.get_session_sets(user_id, start, as_of, exercise_id),
            ),
        )
        return summarize_sessions(sets, exercise_id, limit)

    def get_progression_recommendation(
        self,
        user_id: str,
        exercise_id: str,
        exercise_category=None,
        as_of: Optional[date] = None,
    ) -> ProgressionRecommendation:
        category = parse_category(exercise_category)
        performance = self.get_exercise_performance(
            user_id, exercise_id, self.config.history_sessions, as_of
        )
        recommendation = recommend_progression(performance, category, self.config)
        logger.debug(
            f"Progression {user_id}/{exercise_id}: status={recommendation.status.value}, "
            f"weight={recommendation.current_weight}, sessions_at_weight={recommendation.sessions_at_weight}"
        )
        return recommendation

    def check_progression_gates(
        self,
        user_id: str,
        exercise_id: str,
        exercise_category=None,
        as_of: Optional[date] = None,
    ) -> ProgressionGate:
        """Every gate must pass before adding load. First failing gate wins."""
        category = parse_category(exercise_category)
        cfg = self.config
        assessment = self.scorer.calculate_fatigue(user_id, as_of)

        if assessment.score >= cfg.progression_block_score:
            return ProgressionGate(
                can_progress=False,
                reason="High fatigue detected",
                suggested_action="Maintain current weight or reduce slightly",
                blocked_by="fatigue",
            )

        recent = self.get_exercise_performance(user_id, exercise_id, 3, as_of)
        if not recent:
            return ProgressionGate(
                can_progress=True,
                reason="No history - start conservatively",
                suggested_action="Begin with moderate weight and assess",
            )

        rule = progression_rule(category, cfg)
        min_reps = int(rule["min_reps_for_progress"])
        if any(p.reps < min_reps for p in recent):
            return ProgressionGate(
                can_progress=False,
                reason=f"Didn't hit target reps ({min_reps}+) in recent sessions",
                suggested_action="Keep weight until you hit all reps",
                blocked_by="performance",
            )

        rpes = [p.rpe for p in recent if p.rpe is not None]
        max_rpe = rule["max_rpe_for_progress"]
        if rpes:
            avg_rpe = sum(rpes) / len(rpes)
            if avg_rpe > max_rpe + 0.5:
                return ProgressionGate(
                    can_progress=False,
                    reason=f"RPE too high ({avg_rpe:.1f} avg) - need more margin",
                    suggested_action=f"Get RPE under {max_rpe:g} before adding weight",
                    blocked_by="rpe",
                )

        recovery = assessment.factor("recovery")
        if recovery is not None and recovery.flagged:
            return ProgressionGate(
                can_progress=False,
                reason="Recovery metrics suboptimal",
                suggested_action="Focus on recovery before progressing",
                blocked_by="recovery",
            )

        return ProgressionGate(
            can_progress=True,
            reason="Ready to progress",
            suggested_action=f"Add {rule['weight_increment']:g} next session",
        )

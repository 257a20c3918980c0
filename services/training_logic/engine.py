"""
TrainingAdaptationEngine: one entry point over the four components.

    aggregator → fatigue scorer → deload policy → suggestions
                                      ↑
                               progression gates

Wires the components over a single store and config. Holds no per-user
state, so one instance can serve any number of users.
"""

import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Union

from services.training_logic import suggestions
from services.training_logic.aggregator import SignalAggregator
from services.training_logic.config import TrainingLogicConfig
from services.training_logic.constants import DeloadState, DeloadType
from services.training_logic.deload import DeloadPolicyEngine, build_deload_decision
from services.training_logic.fatigue import FatigueScorer
from services.training_logic.progression import ProgressionService, get_plateau_strategies
from services.training_logic.store import TrainingDataStore
from services.training_logic.suggestions import SuggestionEngine
from services.training_logic.types import (
    ActiveDeload,
    DeloadDecision,
    DeloadRecord,
    FatigueAssessment,
    FatigueLogRecord,
    ProgressionGate,
    ProgressionRecommendation,
    RestTimerConfig,
    SetFeedbackSuggestion,
    TrainingSignal,
    WarmupSet,
    WeightSuggestion,
)

logger = logging.getLogger(__name__)


class TrainingAdaptationEngine:

    def __init__(self, store: TrainingDataStore, config: Optional[TrainingLogicConfig] = None):
        self.store = store
        self.config = config or TrainingLogicConfig()

        self.aggregator = SignalAggregator(store, self.config.aggregator)
        self.scorer = FatigueScorer(self.aggregator, self.config.fatigue)
        self.deload = DeloadPolicyEngine(self.scorer, self.config.deload)
        self.progression = ProgressionService(self.scorer, self.config.suggestion)
        self.suggestions = SuggestionEngine(self.deload, self.progression, self.config.suggestion)

    @classmethod
    def from_settings(cls, store: TrainingDataStore, settings=None) -> "TrainingAdaptationEngine":
        return cls(store, TrainingLogicConfig.from_settings(settings))

    # --- Signals and fatigue ---

    def aggregate_signals(self, user_id: str, as_of: Optional[date] = None) -> TrainingSignal:
        return self.aggregator.aggregate_signals(user_id, as_of)

    def calculate_fatigue(self, user_id: str, as_of: Optional[date] = None) -> FatigueAssessment:
        return self.scorer.calculate_fatigue(user_id, as_of)

    def log_fatigue(self, user_id: str, as_of: Optional[date] = None) -> FatigueAssessment:
        """Compute today's fatigue and persist it for the trend."""
        assessment = self.scorer.calculate_fatigue(user_id, as_of)
        self.scorer.log_fatigue(user_id, assessment)
        return assessment

    def get_fatigue_history(
        self, user_id: str, days: int = 7, as_of: Optional[date] = None
    ) -> List[FatigueLogRecord]:
        return self.scorer.get_fatigue_history(user_id, days, as_of)

    # --- Deload ---

    def check_deload_needed(self, user_id: str, as_of: Optional[date] = None) -> DeloadDecision:
        return self.deload.check_deload_needed(user_id, as_of)

    def get_active_deload(self, user_id: str, as_of: Optional[date] = None) -> Optional[ActiveDeload]:
        return self.deload.get_active_deload(user_id, as_of)

    def start_deload(
        self,
        user_id: str,
        decision: DeloadDecision,
        triggering_score: Optional[float] = None,
        as_of: Optional[date] = None,
    ) -> str:
        return self.deload.start_deload(user_id, decision, triggering_score, as_of)

    def start_manual_deload(
        self,
        user_id: str,
        deload_type: DeloadType,
        reason: str = "Manual deload",
        as_of: Optional[date] = None,
    ) -> str:
        decision = build_deload_decision(deload_type, reason, config=self.config.deload)
        return self.deload.start_deload(user_id, decision, as_of=as_of)

    def end_deload(self, user_id: str, as_of: Optional[Union[date, datetime]] = None) -> None:
        self.deload.end_deload(user_id, as_of)

    def get_deload_state(self, user_id: str, as_of: Optional[date] = None) -> DeloadState:
        return self.deload.get_deload_state(user_id, as_of)

    def get_deload_history(self, user_id: str, limit: int = 5) -> List[DeloadRecord]:
        return self.deload.get_deload_history(user_id, limit)

    # --- Suggestions ---

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
        return self.suggestions.suggest_weight(
            user_id,
            exercise_id,
            set_number,
            is_warmup,
            target_reps=target_reps,
            target_rpe=target_rpe,
            exercise_category=exercise_category,
            as_of=as_of,
        )

    def get_suggestion_after_set(
        self,
        set_number: int,
        total_sets: int,
        completed_reps: int,
        target_reps: int,
        rpe: float,
        target_rpe: float,
    ) -> SetFeedbackSuggestion:
        return suggestions.get_suggestion_after_set(
            set_number, total_sets, completed_reps, target_reps, rpe, target_rpe
        )

    def get_warmup_sets(self, working_weight: float) -> List[WarmupSet]:
        return suggestions.get_warmup_sets(working_weight, self.config.suggestion)

    def get_warmup_progression(self, working_weight: float, set_number: int) -> WarmupSet:
        return suggestions.get_warmup_progression(working_weight, set_number, self.config.suggestion)

    def get_rest_timer_config(
        self, slot_type, exercise_category, last_rpe: Optional[float] = None
    ) -> RestTimerConfig:
        return suggestions.get_rest_timer_config(
            slot_type, exercise_category, last_rpe, self.config.suggestion
        )

    # --- Progression ---

    def get_progression_recommendation(
        self, user_id: str, exercise_id: str, exercise_category=None, as_of: Optional[date] = None
    ) -> ProgressionRecommendation:
        return self.progression.get_progression_recommendation(
            user_id, exercise_id, exercise_category, as_of
        )

    def check_progression_gates(
        self, user_id: str, exercise_id: str, exercise_category=None, as_of: Optional[date] = None
    ) -> ProgressionGate:
        return self.progression.check_progression_gates(user_id, exercise_id, exercise_category, as_of)

    def get_plateau_strategies(self) -> List[Dict[str, str]]:
        return get_plateau_strategies()

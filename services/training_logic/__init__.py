# Training Adaptation Engine
#
# Decides how fatigued a lifter is, whether to deload, and what to load
# on the next set.
#
# Architecture (leaves first):
# - SignalAggregator: raw history -> TrainingSignal
# - FatigueScorer: TrainingSignal -> 0-10 score, level, factors
# - DeloadPolicyEngine: fatigue + deload cadence -> decision, lifecycle
# - SuggestionEngine: history + deload/fatigue context -> next load
#
# The SQL-backed store lives in sql_store and is imported explicitly so
# the engines stay usable without a database.

from .aggregator import SignalAggregator
from .fatigue import FatigueScorer, get_fatigue_level, get_fatigue_status
from .deload import DeloadPolicyEngine, apply_deload_modifiers, build_deload_decision
from .progression import ProgressionService, get_plateau_strategies
from .suggestions import (
    SuggestionEngine,
    get_rest_timer_config,
    get_suggestion_after_set,
    get_warmup_progression,
    get_warmup_sets,
)
from .engine import TrainingAdaptationEngine
from .config import TrainingLogicConfig
from .constants import DeloadState, DeloadType, FatigueLevel, SetDirective, SuggestionBasis

__all__ = [
    # Facade
    'TrainingAdaptationEngine',
    'TrainingLogicConfig',

    # Components
    'SignalAggregator',
    'FatigueScorer',
    'DeloadPolicyEngine',
    'ProgressionService',
    'SuggestionEngine',

    # Pure functions
    'get_fatigue_level',
    'get_fatigue_status',
    'apply_deload_modifiers',
    'build_deload_decision',
    'get_plateau_strategies',
    'get_rest_timer_config',
    'get_suggestion_after_set',
    'get_warmup_progression',
    'get_warmup_sets',

    # Constants
    'DeloadState',
    'DeloadType',
    'FatigueLevel',
    'SetDirective',
    'SuggestionBasis',
]

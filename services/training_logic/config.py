"""
Injectable configuration for the training logic engines.

Every threshold the engines use lives here as data. Defaults mirror
constants.py; callers (and tests) pass a modified copy instead of
patching module globals.
"""

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from services.training_logic.constants import (
    DELOAD_DEFAULTS,
    FATIGUE_LEVEL_THRESHOLDS,
    PROGRESSION_RULES,
    REST_TIMER_SECONDS,
    STARTING_WEIGHT_UNKNOWN_CATEGORY,
    STARTING_WEIGHTS,
    WARMUP_RAMP,
    WEIGHT_INCREMENTS,
    DeloadType,
    ExerciseCategory,
    FatigueLevel,
    SlotType,
)


@dataclass
class AggregatorConfig:
    current_window_days: int = 7
    baseline_window_days: int = 28
    recovery_window_days: int = 7
    # Prior window for the strength comparison (immediately before current)
    performance_window_days: int = 21
    performance_decline_threshold: float = 0.05   # 5% drop in best e1RM
    performance_decline_share: float = 0.5        # of comparable exercises
    target_sessions_per_week: int = 4
    injury_soreness_threshold: float = 4.5        # avg soreness on 1-5 scale
    neutral_recovery: float = 3.0


@dataclass
class FatigueConfig:
    """
    Fatigue weighting. The four partial scores are each 0-10 and combined
    as a weighted average; the two penalties are added afterwards.
    """
    weights: Dict[str, float] = field(default_factory=lambda: {
        "volume": 0.50,
        "recovery": 0.30,
        "frequency": 0.10,
        "rpe": 0.10,
    })
    volume_spike_threshold: float = 1.2     # flagged above 120% of baseline
    volume_drop_threshold: float = 0.8      # flagged below 80% of baseline
    volume_ramp: float = 0.4                # trend delta that maps to 10
    volume_drop_factor: float = 0.5         # drops weigh half as much as spikes
    frequency_ramp: float = 0.5             # ratio above target that maps to 10
    rpe_baseline: float = 7.0
    rpe_ramp: float = 2.0
    rpe_creep_delta: float = 0.5
    rpe_creep_bonus: float = 2.0
    performance_decline_penalty: float = 2.0
    streak_threshold_days: int = 6
    streak_penalty_per_day: float = 0.75
    streak_penalty_cap: float = 3.0
    # Partial scores at or above these flag the factor (and earn a recommendation)
    recovery_flag_partial: float = 6.0
    rpe_flag_partial: float = 5.0
    level_thresholds: List[Tuple[float, FatigueLevel]] = field(
        default_factory=lambda: list(FATIGUE_LEVEL_THRESHOLDS)
    )


@dataclass
class DeloadConfig:
    emergency_score: float = 9.0
    high_score: float = 8.0
    elevated_score: float = 6.0
    cooldown_days: int = 14
    overdue_after_days: int = 28
    scheduled_interval_days: Optional[int] = None
    # Logged days at or above high_score that force full rest; None disables
    sustained_high_days: Optional[int] = 2
    prolonged_elevated_days: int = 5
    prolonged_lookback_days: int = 7
    defaults: Dict[DeloadType, Dict[str, float]] = field(
        default_factory=lambda: copy.deepcopy(DELOAD_DEFAULTS)
    )


@dataclass
class SuggestionConfig:
    default_target_reps: int = 10
    default_target_rpe: float = 8.0
    increase_pct: float = 0.025
    decrease_pct: float = 0.05
    rep_shortfall_tolerance: int = 2
    rpe_overshoot_tolerance: float = 1.5
    high_confidence_sessions: int = 3
    history_lookback_days: int = 60
    history_sessions: int = 5
    apply_fatigue_adjustment: bool = True
    fatigue_adjust_score: float = 6.0
    fatigue_adjust_high_score: float = 8.0
    fatigue_adjust_multiplier: float = 0.9
    fatigue_adjust_high_multiplier: float = 0.85
    rounding_increment: float = 5.0
    light_warmup_threshold: float = 50.0
    extended_rest_rpe: float = 9.0
    extended_rest_seconds: int = 240
    starting_weights: Dict[ExerciseCategory, float] = field(
        default_factory=lambda: dict(STARTING_WEIGHTS)
    )
    starting_weight_unknown: float = STARTING_WEIGHT_UNKNOWN_CATEGORY
    weight_increments: Dict[ExerciseCategory, float] = field(
        default_factory=lambda: dict(WEIGHT_INCREMENTS)
    )
    warmup_ramp: List[Tuple[float, int]] = field(default_factory=lambda: list(WARMUP_RAMP))
    rest_timer_seconds: Dict[SlotType, Dict[ExerciseCategory, int]] = field(
        default_factory=lambda: copy.deepcopy(REST_TIMER_SECONDS)
    )
    progression_rules: Dict[ExerciseCategory, Dict[str, float]] = field(
        default_factory=lambda: copy.deepcopy(PROGRESSION_RULES)
    )
    plateau_sessions: int = 4
    regress_rpe: float = 9.5
    progression_block_score: float = 7.0


@dataclass
class TrainingLogicConfig:
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)
    fatigue: FatigueConfig = field(default_factory=FatigueConfig)
    deload: DeloadConfig = field(default_factory=DeloadConfig)
    suggestion: SuggestionConfig = field(default_factory=SuggestionConfig)

    @classmethod
    def from_settings(cls, settings=None) -> "TrainingLogicConfig":
        """Seed engine config from environment-level Settings."""
        if settings is None:
            from core.config import settings

        config = cls()
        config.aggregator.target_sessions_per_week = settings.TRAINING_TARGET_SESSIONS_PER_WEEK
        config.deload.cooldown_days = settings.DELOAD_COOLDOWN_DAYS
        config.deload.overdue_after_days = settings.DELOAD_OVERDUE_AFTER_DAYS
        config.deload.scheduled_interval_days = settings.DELOAD_SCHEDULED_INTERVAL_DAYS
        config.suggestion.apply_fatigue_adjustment = settings.FATIGUE_ADJUSTMENT_ENABLED
        return config

"""
Constants for training adaptation.

These are DEFAULTS that can be overridden through TrainingLogicConfig.
They exist here for type safety and documentation.
"""

from enum import Enum
from typing import Dict, List, Tuple


class FatigueLevel(str, Enum):
    """Categorical fatigue status, derived only from the score."""
    FRESH = "fresh"                  # score < 4
    MANAGEABLE = "manageable"        # 4 <= score < 6
    ACCUMULATING = "accumulating"    # 6 <= score < 8
    HIGH = "high"                    # score >= 8


class DeloadType(str, Enum):
    VOLUME = "volume"          # Fewer sets/reps, same load
    INTENSITY = "intensity"    # Lighter load, same sets/reps
    FULL_REST = "full_rest"    # No training


class DeloadState(str, Enum):
    NONE = "none"
    RECOMMENDED = "recommended"
    ACTIVE = "active"


class SuggestionBasis(str, Enum):
    """Which rule produced a weight suggestion."""
    FIRST_TIME = "first_time"
    PREVIOUS_PERFORMANCE = "previous_performance"
    PROGRESSIVE_OVERLOAD = "progressive_overload"
    DELOAD_ADJUSTED = "deload_adjusted"
    WARMUP_RAMP = "warmup_ramp"


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SetDirective(str, Enum):
    """Next-set directive from intra-session auto-regulation."""
    INCREASE = "increase"
    HOLD = "hold"
    DECREASE = "decrease"


class ProgressionStatus(str, Enum):
    READY = "ready"
    MAINTAIN = "maintain"
    PLATEAU = "plateau"
    REGRESS = "regress"


class SlotType(str, Enum):
    """Position of an exercise within a session template."""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    ACCESSORY = "accessory"
    OPTIONAL = "optional"


class ExerciseCategory(str, Enum):
    COMPOUND = "compound"
    ISOLATION = "isolation"
    CARDIO = "cardio"
    MOBILITY = "mobility"


# Fatigue level lower bounds, checked from the top down.
# Half-open intervals: 4.0 is MANAGEABLE, 6.0 ACCUMULATING, 8.0 HIGH.
FATIGUE_LEVEL_THRESHOLDS: List[Tuple[float, FatigueLevel]] = [
    (8.0, FatigueLevel.HIGH),
    (6.0, FatigueLevel.ACCUMULATING),
    (4.0, FatigueLevel.MANAGEABLE),
    (0.0, FatigueLevel.FRESH),
]

FATIGUE_STATUS_TEXT: Dict[FatigueLevel, Dict[str, str]] = {
    FatigueLevel.FRESH: {
        "color": "green",
        "message": "Well recovered",
        "action": "Train normally, consider pushing intensity",
    },
    FatigueLevel.MANAGEABLE: {
        "color": "yellow",
        "message": "Normal training fatigue",
        "action": "Continue as planned",
    },
    FatigueLevel.ACCUMULATING: {
        "color": "orange",
        "message": "Fatigue accumulating",
        "action": "Monitor closely, prioritize recovery",
    },
    FatigueLevel.HIGH: {
        "color": "red",
        "message": "High fatigue - deload recommended",
        "action": "Take a deload or reduce volume 40%",
    },
}

# Deload prescriptions by type: duration and the modifiers applied afterwards
DELOAD_DEFAULTS: Dict[DeloadType, Dict[str, float]] = {
    DeloadType.VOLUME: {
        "duration_days": 7,
        "volume_modifier": 0.6,
        "intensity_modifier": 1.0,
    },
    DeloadType.INTENSITY: {
        "duration_days": 5,
        "volume_modifier": 1.0,
        "intensity_modifier": 0.85,
    },
    DeloadType.FULL_REST: {
        "duration_days": 3,
        "volume_modifier": 0.0,
        "intensity_modifier": 0.0,
    },
}

# Starting loads when there is no history (unit passes through untouched)
STARTING_WEIGHTS: Dict[ExerciseCategory, float] = {
    ExerciseCategory.COMPOUND: 95.0,   # Bar + 25s each side
    ExerciseCategory.ISOLATION: 20.0,  # Light dumbbells
    ExerciseCategory.CARDIO: 0.0,
    ExerciseCategory.MOBILITY: 0.0,
}
STARTING_WEIGHT_UNKNOWN_CATEGORY = 45.0

# Smallest practical load jump per category
WEIGHT_INCREMENTS: Dict[ExerciseCategory, float] = {
    ExerciseCategory.COMPOUND: 5.0,
    ExerciseCategory.ISOLATION: 2.5,
    ExerciseCategory.CARDIO: 2.5,
    ExerciseCategory.MOBILITY: 2.5,
}

# (fraction of working weight, reps)
WARMUP_RAMP: List[Tuple[float, int]] = [
    (0.50, 10),
    (0.70, 6),
    (0.85, 3),
]

# Rest seconds by slot x category. Compound primary is the longest.
REST_TIMER_SECONDS: Dict[SlotType, Dict[ExerciseCategory, int]] = {
    SlotType.PRIMARY: {
        ExerciseCategory.COMPOUND: 180,
        ExerciseCategory.ISOLATION: 90,
        ExerciseCategory.CARDIO: 60,
        ExerciseCategory.MOBILITY: 45,
    },
    SlotType.SECONDARY: {
        ExerciseCategory.COMPOUND: 120,
        ExerciseCategory.ISOLATION: 90,
        ExerciseCategory.CARDIO: 60,
        ExerciseCategory.MOBILITY: 45,
    },
    SlotType.ACCESSORY: {
        ExerciseCategory.COMPOUND: 90,
        ExerciseCategory.ISOLATION: 60,
        ExerciseCategory.CARDIO: 45,
        ExerciseCategory.MOBILITY: 30,
    },
    SlotType.OPTIONAL: {
        ExerciseCategory.COMPOUND: 90,
        ExerciseCategory.ISOLATION: 60,
        ExerciseCategory.CARDIO: 45,
        ExerciseCategory.MOBILITY: 30,
    },
}

# Progression gates by exercise type (from multi-session history)
PROGRESSION_RULES: Dict[ExerciseCategory, Dict[str, float]] = {
    ExerciseCategory.COMPOUND: {
        "min_reps_for_progress": 8,
        "max_rpe_for_progress": 8.0,
        "weight_increment": 5.0,
        "sessions_required": 2,
    },
    ExerciseCategory.ISOLATION: {
        "min_reps_for_progress": 10,
        "max_rpe_for_progress": 7.0,
        "weight_increment": 2.5,
        "sessions_required": 1,
    },
}

PLATEAU_STRATEGIES: List[Dict[str, str]] = [
    {
        "strategy": "rep_range_shift",
        "description": "Try 6-8 reps instead of 8-12 to build strength",
        "duration": "2-3 weeks",
    },
    {
        "strategy": "variation_swap",
        "description": "Switch to a similar exercise (e.g., incline instead of flat)",
        "duration": "4 weeks",
    },
    {
        "strategy": "volume_increase",
        "description": "Add 1-2 sets per session for this exercise",
        "duration": "2 weeks",
    },
    {
        "strategy": "deload_then_push",
        "description": "Take a deload week, then come back at 90% and rebuild",
        "duration": "2 weeks",
    },
]

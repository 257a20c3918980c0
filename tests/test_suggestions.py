"""
Tests for the Suggestion Engine

Covers:
  1. suggest_weight: first time, progressive overload, back-off, hold,
     progression status, fatigue adjustment, deload modifiers, warm-ups
  2. get_suggestion_after_set: decrease / hold / increase bands
  3. get_warmup_sets and get_warmup_progression
  4. get_rest_timer_config over the full slot x category table
"""

import math
import pytest
from datetime import timedelta

from core.exceptions import InvalidInput
from services.training_logic.aggregator import SignalAggregator
from services.training_logic.config import SuggestionConfig
from services.training_logic.constants import (
    Confidence,
    DeloadType,
    ExerciseCategory,
    SetDirective,
    SlotType,
    SuggestionBasis,
)
from services.training_logic.deload import DeloadPolicyEngine, build_deload_decision
from services.training_logic.fatigue import FatigueScorer
from services.training_logic.progression import ProgressionService
from services.training_logic.suggestions import (
    SuggestionEngine,
    get_rest_timer_config,
    get_suggestion_after_set,
    get_warmup_progression,
    get_warmup_sets,
    round_to_nearest,
)
from services.training_logic.types import ExerciseDefaultRecord

from conftest import AS_OF, USER


def _engine(store, config=None) -> SuggestionEngine:
    config = config or SuggestionConfig()
    scorer = FatigueScorer(SignalAggregator(store))
    deload = DeloadPolicyEngine(scorer)
    return SuggestionEngine(deload, ProgressionService(scorer, config), config)


def _suggest(store, exercise_id="bench", set_number=1, is_warmup=False, config=None, **kwargs):
    kwargs.setdefault("exercise_category", "compound")
    kwargs.setdefault("as_of", AS_OF)
    return _engine(store, config).suggest_weight(USER, exercise_id, set_number, is_warmup, **kwargs)


def _log_bench(store, *offsets, weight=100.0, reps=10, rpe=8.0):
    for offset in offsets:
        store.log_set(USER, AS_OF - timedelta(days=offset), "bench", weight, reps, rpe=rpe, sets=3)


class TestFirstTime:

    @pytest.mark.parametrize("category,weight", [
        ("compound", 95.0),
        ("isolation", 20.0),
        ("cardio", 0.0),
        (None, 45.0),
    ])
    def test_starting_weight_by_category(self, store, category, weight):
        suggestion = _suggest(store, exercise_category=category)
        assert suggestion.suggested_weight == weight
        assert suggestion.basis == SuggestionBasis.FIRST_TIME
        assert suggestion.confidence == Confidence.LOW
        assert suggestion.suggested_reps == 10


class TestFromHistory:

    def test_progressive_overload(self, store):
        _log_bench(store, 2)
        suggestion = _suggest(store, target_reps=10, target_rpe=8.0)
        assert suggestion.suggested_weight == 105.0
        assert suggestion.basis == SuggestionBasis.PROGRESSIVE_OVERLOAD
        assert suggestion.confidence == Confidence.MEDIUM
        assert suggestion.is_deload is False

    def test_increase_is_percentage_for_heavy_loads(self, store):
        _log_bench(store, 2, weight=300.0)
        # 2.5% of 300 = 7.5, rounded up to the 5 increment
        assert _suggest(store).suggested_weight == 310.0

    def test_three_sessions_is_high_confidence(self, store):
        _log_bench(store, 2, 4, 6)
        suggestion = _suggest(store)
        assert suggestion.confidence == Confidence.HIGH
        assert suggestion.suggested_weight == 105.0

    def test_todays_sets_do_not_compound(self, store):
        _log_bench(store, 2)
        store.log_set(USER, AS_OF, "bench", 105.0, 10, rpe=7.0)
        assert _suggest(store).suggested_weight == 105.0

    def test_missed_reps_backs_off(self, store):
        _log_bench(store, 2, reps=6, rpe=9.5)
        suggestion = _suggest(store)
        assert suggestion.suggested_weight == 95.0
        assert suggestion.basis == SuggestionBasis.PREVIOUS_PERFORMANCE

    def test_near_miss_holds(self, store):
        _log_bench(store, 2, reps=9, rpe=8.5)
        suggestion = _suggest(store)
        assert suggestion.suggested_weight == 100.0
        assert suggestion.basis == SuggestionBasis.PREVIOUS_PERFORMANCE

    def test_exercise_default_used_without_sessions(self, store):
        store.defaults[(USER, "curl")] = ExerciseDefaultRecord("curl", 30.0, 12, 7.0)
        suggestion = _suggest(store, exercise_id="curl", exercise_category="isolation")
        assert suggestion.suggested_weight == 32.5
        assert suggestion.confidence == Confidence.LOW

    def test_regress_status_drops_back(self, store):
        _log_bench(store, 2, 4, reps=5, rpe=10.0)
        suggestion = _suggest(store)
        assert suggestion.suggested_weight == 90.0
        assert suggestion.basis == SuggestionBasis.PREVIOUS_PERFORMANCE

    def test_plateau_holds_instead_of_progressing(self, store):
        _log_bench(store, 1, 2, 4, 6, reps=7, rpe=8.5)
        suggestion = _suggest(store, target_reps=6, target_rpe=9.0)
        assert suggestion.suggested_weight == 100.0
        assert "Plateau" in suggestion.message


class TestFatigueAdjustment:

    def test_elevated_fatigue_reduces_load(self, spike_store):
        suggestion = _suggest(spike_store, exercise_id="squat")
        # Held at 150 (no progression while fatigued), then x0.9
        assert suggestion.suggested_weight == 135.0
        assert "fatigue" in suggestion.message

    def test_adjustment_can_be_disabled(self, spike_store):
        config = SuggestionConfig(apply_fatigue_adjustment=False)
        suggestion = _suggest(spike_store, exercise_id="squat", config=config)
        assert suggestion.suggested_weight == 155.0
        assert suggestion.basis == SuggestionBasis.PROGRESSIVE_OVERLOAD


class TestDeloadAdjusted:

    def _start(self, store, deload_type, as_of=AS_OF):
        scorer = FatigueScorer(SignalAggregator(store))
        DeloadPolicyEngine(scorer).start_deload(
            USER, build_deload_decision(deload_type, "test"), as_of=as_of
        )

    def test_volume_deload_scales_reps(self, spike_store):
        self._start(spike_store, DeloadType.VOLUME)
        suggestion = _suggest(spike_store, exercise_id="squat")
        assert suggestion.is_deload is True
        assert suggestion.basis == SuggestionBasis.DELOAD_ADJUSTED
        assert suggestion.volume_modifier == 0.6
        assert suggestion.suggested_reps == 6
        assert suggestion.suggested_weight == suggestion.original_weight

    def test_intensity_deload_scales_weight(self, store):
        _log_bench(store, 2)
        self._start(store, DeloadType.INTENSITY)
        suggestion = _suggest(store)
        assert suggestion.original_weight == 105.0
        assert suggestion.suggested_weight == 90.0
        assert suggestion.suggested_reps == 10
        assert suggestion.intensity_modifier == 0.85

    def test_full_rest_suggests_nothing(self, store):
        _log_bench(store, 2)
        self._start(store, DeloadType.FULL_REST)
        suggestion = _suggest(store)
        assert suggestion.suggested_weight == 0.0
        assert suggestion.suggested_reps == 0

    def test_full_rest_has_no_warmups(self, store):
        _log_bench(store, 2, rpe=7.0)
        self._start(store, DeloadType.FULL_REST)
        suggestion = _suggest(store, set_number=1, is_warmup=True)
        assert suggestion.suggested_weight == 0.0
        assert suggestion.suggested_reps == 0
        assert suggestion.basis == SuggestionBasis.DELOAD_ADJUSTED

    def test_expired_deload_ignored(self, store):
        _log_bench(store, 2)
        self._start(store, DeloadType.INTENSITY, as_of=AS_OF - timedelta(days=10))
        suggestion = _suggest(store)
        assert suggestion.is_deload is False
        assert suggestion.suggested_weight == 105.0

    def test_to_dict(self, store):
        _log_bench(store, 2)
        self._start(store, DeloadType.VOLUME)
        data = _suggest(store).to_dict()
        assert data["basis"] == "deload_adjusted"
        assert data["is_deload"] is True
        assert data["rep_range"] == [4, 8]


class TestWarmupSuggestion:

    def test_warmup_ramps_off_working_weight(self, store):
        _log_bench(store, 2)
        suggestion = _suggest(store, set_number=2, is_warmup=True)
        assert suggestion.basis == SuggestionBasis.WARMUP_RAMP
        assert suggestion.suggested_weight == 75.0
        assert suggestion.suggested_reps == 6
        assert suggestion.original_weight == 105.0


class TestSuggestWeightValidation:

    def test_set_number_must_be_positive(self, store):
        with pytest.raises(InvalidInput):
            _suggest(store, set_number=0)

    def test_unknown_category(self, store):
        with pytest.raises(InvalidInput) as exc:
            _suggest(store, exercise_category="yoga")
        assert exc.value.error_code == "INVALID_INPUT_EXERCISE_CATEGORY"

    def test_target_rpe_range(self, store):
        with pytest.raises(InvalidInput):
            _suggest(store, target_rpe=11)


class TestSuggestionAfterSet:

    def test_badly_missed_set_decreases(self):
        result = get_suggestion_after_set(1, 3, 6, 10, 9.5, 8)
        assert result.directive == SetDirective.DECREASE
        assert result.magnitude_percent == 10.0
        assert result.is_final_set is False
        assert result.informational_only is False

    def test_rpe_overshoot_decreases_five(self):
        result = get_suggestion_after_set(1, 3, 10, 10, 10, 8)
        assert result.directive == SetDirective.DECREASE
        assert result.magnitude_percent == 5.0
        assert result.stop_suggested is False

    def test_grinding_near_the_end_suggests_stop(self):
        result = get_suggestion_after_set(2, 3, 10, 10, 10, 8)
        assert result.directive == SetDirective.DECREASE
        assert result.stop_suggested is True

    def test_reps_at_80_percent_hold(self):
        result = get_suggestion_after_set(1, 3, 8, 10, 8, 8)
        assert result.directive == SetDirective.HOLD

    def test_moderately_hard_holds(self):
        result = get_suggestion_after_set(1, 3, 10, 10, 9, 8)
        assert result.directive == SetDirective.HOLD
        assert result.magnitude_percent == 0.0

    def test_much_easier_increases_five(self):
        result = get_suggestion_after_set(1, 3, 10, 10, 6, 8)
        assert result.directive == SetDirective.INCREASE
        assert result.magnitude_percent == 5.0

    def test_easier_with_extra_reps_increases_small(self):
        result = get_suggestion_after_set(1, 3, 12, 10, 7, 8)
        assert result.directive == SetDirective.INCREASE
        assert result.magnitude_percent == 2.5

    def test_slightly_easier_holds(self):
        result = get_suggestion_after_set(1, 3, 11, 10, 7, 8)
        assert result.directive == SetDirective.HOLD
        assert result.message is None

    def test_final_set_is_informational(self):
        result = get_suggestion_after_set(3, 3, 10, 10, 6, 8)
        assert result.directive == SetDirective.INCREASE
        assert result.is_final_set is True
        assert result.informational_only is True
        assert result.bonus_set_suggested is True

    @pytest.mark.parametrize("args,field", [
        ((0, 3, 10, 10, 8, 8), "SET_NUMBER"),
        ((4, 3, 10, 10, 8, 8), "SET_NUMBER"),
        ((1, 0, 10, 10, 8, 8), "TOTAL_SETS"),
        ((1, 3, -1, 10, 8, 8), "COMPLETED_REPS"),
        ((1, 3, 10, 0, 8, 8), "TARGET_REPS"),
        ((1, 3, 10, 10, 0, 8), "RPE"),
        ((1, 3, 10, 10, 8, 11), "TARGET_RPE"),
        ((1, 3, 10, 10, math.nan, 8), "RPE"),
    ])
    def test_invalid_inputs(self, args, field):
        with pytest.raises(InvalidInput) as exc:
            get_suggestion_after_set(*args)
        assert exc.value.error_code == f"INVALID_INPUT_{field}"


class TestWarmupSets:

    def test_zero_weight_has_no_warmups(self):
        assert get_warmup_sets(0) == []

    def test_standard_ramp(self):
        sets = get_warmup_sets(200)
        assert [(s.weight, s.reps, s.percentage) for s in sets] == [
            (100.0, 10, 50),
            (140.0, 6, 70),
            (170.0, 3, 85),
        ]
        assert [s.set_number for s in sets] == [1, 2, 3]

    def test_rounds_to_nearest_five(self):
        assert [s.weight for s in get_warmup_sets(135)] == [70.0, 95.0, 115.0]

    def test_light_weight_gets_one_set(self):
        sets = get_warmup_sets(40)
        assert len(sets) == 1
        assert sets[0].weight == 20.0

    def test_negative_weight_rejected(self):
        with pytest.raises(InvalidInput):
            get_warmup_sets(-5)

    def test_non_finite_weight_rejected(self):
        with pytest.raises(InvalidInput):
            get_warmup_sets(math.inf)

    def test_progression_past_ramp_repeats_last_step(self):
        warmup = get_warmup_progression(200, 5)
        assert warmup.set_number == 5
        assert warmup.weight == 170.0
        assert warmup.reps == 3

    def test_round_half_up(self):
        assert round_to_nearest(52.5, 5) == 55.0
        assert round_to_nearest(52.4, 5) == 50.0
        assert round_to_nearest(7.3, 0) == 7.3


class TestRestTimer:

    @pytest.mark.parametrize("slot", list(SlotType))
    @pytest.mark.parametrize("category", list(ExerciseCategory))
    def test_table_is_total(self, slot, category):
        config = get_rest_timer_config(slot, category)
        assert config.seconds > 0
        assert config.auto_start is True

    def test_primary_compound_is_longest(self):
        longest = max(
            get_rest_timer_config(s, c).seconds for s in SlotType for c in ExerciseCategory
        )
        assert get_rest_timer_config("primary", "compound").seconds == longest == 180

    def test_grinding_set_extends_rest(self):
        assert get_rest_timer_config("primary", "compound", last_rpe=9).seconds == 240
        assert get_rest_timer_config("primary", "compound", last_rpe=8.5).seconds == 180

    def test_extension_only_for_primary_compound(self):
        assert get_rest_timer_config("secondary", "compound", last_rpe=9.5).seconds == 120

    def test_alerts(self):
        assert get_rest_timer_config("primary", "compound").alert_at == [30, 10]
        assert get_rest_timer_config("accessory", "isolation").alert_at == [15]

    def test_unknown_slot(self):
        with pytest.raises(InvalidInput) as exc:
            get_rest_timer_config("finisher", "compound")
        assert exc.value.error_code == "INVALID_INPUT_SLOT_TYPE"

    def test_unknown_category(self):
        with pytest.raises(InvalidInput):
            get_rest_timer_config("primary", "plyometric")

    def test_rpe_out_of_range(self):
        with pytest.raises(InvalidInput):
            get_rest_timer_config("primary", "compound", last_rpe=12)

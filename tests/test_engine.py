"""
End-to-end tests through TrainingAdaptationEngine
"""

import pytest
from datetime import datetime, timedelta

from core.config import Settings
from core.exceptions import DeloadAlreadyActive, InvalidInput
from services.training_logic import TrainingAdaptationEngine, TrainingLogicConfig
from services.training_logic.constants import (
    DeloadState,
    DeloadType,
    FatigueLevel,
    SetDirective,
    SuggestionBasis,
)

from conftest import AS_OF, USER


class TestDeloadCycle:

    def test_check_start_suggest_end(self, spike_store):
        engine = TrainingAdaptationEngine(spike_store)

        assessment = engine.calculate_fatigue(USER, AS_OF)
        assert assessment.level == FatigueLevel.ACCUMULATING

        decision = engine.check_deload_needed(USER, AS_OF)
        assert decision.should_deload is True
        assert decision.rule == "elevated_overdue"
        assert engine.get_deload_state(USER, AS_OF) == DeloadState.RECOMMENDED

        deload_id = engine.start_deload(USER, decision, as_of=AS_OF)
        assert engine.get_deload_state(USER, AS_OF) == DeloadState.ACTIVE
        assert engine.get_active_deload(USER, AS_OF).id == deload_id

        suggestion = engine.suggest_weight(USER, "squat", 1, exercise_category="compound", as_of=AS_OF)
        assert suggestion.basis == SuggestionBasis.DELOAD_ADJUSTED
        assert suggestion.suggested_reps == 6

        engine.end_deload(USER, datetime.combine(AS_OF, datetime.min.time()))
        assert engine.get_active_deload(USER, AS_OF) is None

        # Just finished a deload: cooldown holds off another one
        after = engine.check_deload_needed(USER, AS_OF)
        assert after.should_deload is False
        assert after.rule == "cooldown"
        assert engine.get_deload_state(USER, AS_OF) == DeloadState.NONE
        assert len(engine.get_deload_history(USER)) == 1

    def test_manual_deload(self, store):
        engine = TrainingAdaptationEngine(store)
        engine.start_manual_deload(USER, DeloadType.INTENSITY, "Travel week", as_of=AS_OF)
        active = engine.get_active_deload(USER, AS_OF)
        assert active.deload_type == DeloadType.INTENSITY
        assert active.intensity_modifier == 0.85
        assert active.duration_days == 5
        assert active.trigger_reason == "Travel week"

        with pytest.raises(DeloadAlreadyActive):
            engine.start_manual_deload(USER, DeloadType.VOLUME, as_of=AS_OF)

    def test_manual_deload_unknown_type(self, store):
        with pytest.raises(InvalidInput):
            TrainingAdaptationEngine(store).start_manual_deload(USER, "sabbatical", as_of=AS_OF)

    def test_end_deload_with_plain_date(self, store):
        engine = TrainingAdaptationEngine(store)
        engine.start_manual_deload(USER, DeloadType.VOLUME, as_of=AS_OF)
        engine.end_deload(USER, AS_OF + timedelta(days=2))

        completed_at = engine.get_deload_history(USER)[0].completed_at
        assert isinstance(completed_at, datetime)
        assert completed_at.date() == AS_OF + timedelta(days=2)

        later = AS_OF + timedelta(days=3)
        assert engine.aggregate_signals(USER, later).days_since_last_deload == 1
        assert engine.calculate_fatigue(USER, later).score == 1.5


class TestFatigueTrend:

    def test_log_fatigue_feeds_history(self, spike_store):
        engine = TrainingAdaptationEngine(spike_store)
        for offset in range(3):
            engine.log_fatigue(USER, AS_OF - timedelta(days=offset))
        history = engine.get_fatigue_history(USER, days=7, as_of=AS_OF)
        assert len(history) == 3
        assert history[-1].date == AS_OF
        assert history[-1].score == 6.5

    def test_signal_passthrough(self, spike_store):
        signal = TrainingAdaptationEngine(spike_store).aggregate_signals(USER, AS_OF)
        assert signal.volume_trend == pytest.approx(1.5)


class TestConfiguration:

    def test_from_settings(self, store, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        settings = Settings(_env_file=None, FATIGUE_ADJUSTMENT_ENABLED=False)
        engine = TrainingAdaptationEngine.from_settings(store, settings)
        assert engine.config.suggestion.apply_fatigue_adjustment is False
        assert engine.suggestions.config is engine.config.suggestion

    def test_custom_config_reaches_components(self, spike_store):
        config = TrainingLogicConfig()
        config.deload.overdue_after_days = 60
        engine = TrainingAdaptationEngine(spike_store, config)
        decision = engine.check_deload_needed(USER, AS_OF)
        assert decision.should_deload is False
        assert decision.rule == "none"


class TestPassthroughs:

    def test_pure_helpers(self, store):
        engine = TrainingAdaptationEngine(store)
        assert engine.get_suggestion_after_set(1, 3, 6, 10, 9.5, 8).directive == SetDirective.DECREASE
        assert [w.weight for w in engine.get_warmup_sets(200)] == [100.0, 140.0, 170.0]
        assert engine.get_warmup_progression(200, 1).reps == 10
        assert engine.get_rest_timer_config("primary", "compound").seconds == 180
        assert len(engine.get_plateau_strategies()) == 4

    def test_progression(self, store):
        for offset in (1, 3):
            store.log_set(USER, AS_OF - timedelta(days=offset), "bench", 100.0, 8, rpe=8.0, sets=3)
        engine = TrainingAdaptationEngine(store)
        rec = engine.get_progression_recommendation(USER, "bench", "compound", AS_OF)
        assert rec.suggested_weight == 105.0
        assert engine.check_progression_gates(USER, "bench", "compound", AS_OF).can_progress is True

"""
Tests for the adaptive test session lifecycle: initialize, select, score,
terminate, finalize.
"""

import math
import random

import pytest

from adaptive_cat.engine import (
    CATResult,
    CATSessionManager,
    finalize,
    initialize_session,
    mark_pool_exhausted,
    process_response,
)
from adaptive_cat.exceptions import ConfigurationError, ItemPoolError
from adaptive_cat.item_selection import select_next_item
from adaptive_cat.models import IRTModel
from adaptive_cat.settings import CATSettings
from adaptive_cat.stopping_rules import (
    REASON_MAX_ITEMS,
    REASON_POOL_EXHAUSTED,
    evaluate_session,
    should_terminate,
)
from tests.helpers import build_item_bank, make_item


def _run_session(pool, settings, answer, rng=None):
    """Drive a session with the module-level functions.

    ``answer`` maps (item, state) to a bool response.
    """
    items = {item.id: item for item in pool}
    state = initialize_session(settings)
    while not should_terminate(state, settings):
        item_id = select_next_item(
            pool, state.administered_item_ids, state.theta, settings, rng=rng
        )
        if item_id is None:
            state = mark_pool_exhausted(state)
            continue
        state = process_response(state, items[item_id], answer(items[item_id], state), settings)
    return state


class TestThreeItemScenario:
    def test_first_selection_and_update(self, three_item_pool):
        settings = CATSettings(model="twoPL", theta_start=0.0)
        state = initialize_session(settings)

        item_id = select_next_item(three_item_pool, [], state.theta, settings)
        assert item_id == 2

        state = process_response(state, three_item_pool[1], True, settings)
        assert state.theta > 0.0
        assert state.administered_item_ids == (2,)
        assert state.item_count == 1
        assert math.isfinite(state.standard_error)

    def test_incorrect_moves_theta_down(self, three_item_pool):
        settings = CATSettings()
        state = process_response(
            initialize_session(settings), three_item_pool[1], False, settings
        )
        assert state.theta < 0.0

    def test_input_state_unchanged(self, three_item_pool):
        settings = CATSettings()
        before = initialize_session(settings)
        after = process_response(before, three_item_pool[0], True, settings)
        assert before.theta == 0.0
        assert before.administered_item_ids == ()
        assert before.response_history == ()
        assert after is not before

    def test_duplicate_item_rejected(self, three_item_pool):
        settings = CATSettings()
        state = process_response(
            initialize_session(settings), three_item_pool[0], True, settings
        )
        with pytest.raises(ValueError, match="already administered"):
            process_response(state, three_item_pool[0], False, settings)

    def test_response_past_max_items_rejected(self, three_item_pool):
        settings = CATSettings(min_items=1, max_items=2)
        state = initialize_session(settings)
        for item in three_item_pool[:2]:
            state = process_response(state, item, True, settings)

        with pytest.raises(ValueError, match="max_items"):
            process_response(state, three_item_pool[2], False, settings)
        assert state.item_count == 2

    def test_module_functions_accept_mapping_settings(self, three_item_pool):
        options = {"minItems": 1, "maxItems": 2, "estimator": "eap"}
        state = initialize_session(options)
        state = process_response(state, three_item_pool[0], True, options)
        assert should_terminate(state, options) is False

        state = process_response(state, three_item_pool[2], False, options)
        assert should_terminate(state, options) is True
        result = finalize(state, options)
        assert result.items_administered == 2
        assert result.report.stop_reason == REASON_MAX_ITEMS

    def test_invalid_mapping_settings_rejected(self, three_item_pool):
        state = initialize_session(CATSettings())
        with pytest.raises(ConfigurationError):
            process_response(state, three_item_pool[0], True, {"maxItems": 0})


class TestSessionLength:
    def test_fixed_length_session(self, item_bank):
        settings = CATSettings(min_items=5, max_items=5)
        selections = []

        def answer(item, state):
            selections.append(item.id)
            return len(selections) % 2 == 0

        state = _run_session(item_bank, settings, answer)
        assert len(selections) == 5
        assert state.item_count == 5
        assert should_terminate(state, settings) is True
        assert evaluate_session(state, settings).reason == REASON_MAX_ITEMS

    def test_never_exceeds_max_items(self, item_bank):
        settings = CATSettings(min_items=0, max_items=7, standard_error_target=0.01)
        rng = random.Random(9)
        state = _run_session(item_bank, settings, lambda item, s: rng.random() < 0.5)
        assert state.item_count == 7

    def test_no_item_administered_twice(self, item_bank):
        settings = CATSettings(min_items=20, max_items=30, exposure_control=True)
        rng = random.Random(1)
        state = _run_session(
            item_bank, settings, lambda item, s: rng.random() < 0.5, rng=rng
        )
        assert len(set(state.administered_item_ids)) == state.item_count

    def test_history_parallel_to_ids(self, item_bank, settings):
        rng = random.Random(2)
        state = _run_session(item_bank, settings, lambda item, s: rng.random() < 0.6)
        assert [r.item_id for r in state.response_history] == list(
            state.administered_item_ids
        )
        assert len(state.theta_history) == state.item_count + 1


class TestThetaClamping:
    @pytest.mark.parametrize("model", list(IRTModel))
    def test_all_correct_reaches_theta_max(self, item_bank, model):
        settings = CATSettings(model=model, min_items=6, max_items=6)
        state = _run_session(item_bank, settings, lambda item, s: True)
        assert state.theta == settings.theta_max
        assert all(r.theta_after == settings.theta_max for r in state.response_history)

    def test_all_incorrect_reaches_theta_min(self, item_bank):
        settings = CATSettings(min_items=6, max_items=6)
        state = _run_session(item_bank, settings, lambda item, s: False)
        assert state.theta == settings.theta_min

    def test_random_responses_stay_in_bounds(self, item_bank):
        settings = CATSettings(theta_min=-2.0, theta_max=2.0, min_items=10, max_items=25)
        rng = random.Random(13)
        state = _run_session(item_bank, settings, lambda item, s: rng.random() < 0.5)
        for theta in state.theta_history:
            assert settings.theta_min <= theta <= settings.theta_max


class TestEstimators:
    def test_eap_gives_finite_estimate_for_all_correct(self, three_item_pool):
        settings = CATSettings(estimator="eap")
        state = process_response(
            initialize_session(settings), three_item_pool[1], True, settings
        )
        assert 0.0 < state.theta < settings.theta_max

    @pytest.mark.parametrize("model", list(IRTModel))
    def test_full_session_for_every_model(self, model):
        pool = build_item_bank(60)
        settings = CATSettings(model=model, min_items=5, max_items=15)
        rng = random.Random(21)
        state = _run_session(pool, settings, lambda item, s: rng.random() < 0.5)
        assert settings.min_items <= state.item_count <= settings.max_items
        assert settings.theta_min <= state.theta <= settings.theta_max


class TestPoolExhaustion:
    def test_small_pool_stops_with_exhaustion(self):
        pool = [make_item(1, -0.5), make_item(2, 0.5)]
        settings = CATSettings(min_items=5, max_items=10)
        state = _run_session(pool, settings, lambda item, s: item.id == 1)
        assert state.item_count == 2
        assert state.pool_exhausted is True
        assert finalize(state, settings).report.stop_reason == REASON_POOL_EXHAUSTED

    def test_recording_a_response_clears_exhaustion(self, three_item_pool):
        settings = CATSettings()
        state = mark_pool_exhausted(initialize_session(settings))
        state = process_response(state, three_item_pool[0], True, settings)
        assert state.pool_exhausted is False


class TestFinalize:
    def test_report_contents(self):
        pool = [
            make_item(1, -1.0, category="algebra"),
            make_item(2, 0.0, category="algebra"),
            make_item(3, 1.0, category="geometry"),
        ]
        settings = CATSettings(min_items=1, max_items=3)
        state = initialize_session(settings)
        for item, correct in zip(pool, [True, False, True]):
            state = process_response(state, item, correct, settings)

        result = finalize(state, settings)
        report = result.report

        assert isinstance(result, CATResult)
        assert result.final_theta == state.theta
        assert result.final_standard_error == state.standard_error
        assert result.items_administered == 3
        assert [i.item_id for i in report.items] == [1, 2, 3]
        assert report.items[1].is_correct is False
        assert report.theta_trajectory == state.theta_history
        assert report.correct_count == 2
        assert report.accuracy == pytest.approx(0.667)
        assert report.stop_reason == REASON_MAX_ITEMS
        assert report.scoring_method == "theta"
        assert report.final_score == round(state.theta, 2)
        assert report.category_breakdown == {
            "algebra": {"items_administered": 2, "correct_count": 1, "accuracy": 0.5},
            "geometry": {"items_administered": 1, "correct_count": 1, "accuracy": 1.0},
        }
        low, high = report.confidence_interval
        assert low <= state.theta <= high

    def test_finalize_fresh_session(self):
        settings = CATSettings()
        result = finalize(initialize_session(settings), settings)
        assert result.items_administered == 0
        assert math.isinf(result.final_standard_error)
        assert result.report.accuracy == 0.0
        assert result.report.stop_reason is None
        assert result.report.confidence_interval == (settings.theta_min, settings.theta_max)
        assert result.report.percentile == 50.0
        assert result.report.performance_level == "Average"

    @pytest.mark.parametrize(
        "scoring_method, expected", [("scaled", 500), ("percent", 50), ("theta", 0.0)]
    )
    def test_scoring_methods_at_average_ability(self, scoring_method, expected):
        settings = CATSettings(scoring_method=scoring_method)
        result = finalize(initialize_session(settings), settings)
        assert result.report.final_score == expected
        assert result.report.scoring_method == scoring_method

    def test_to_dict_replaces_infinite_se(self):
        settings = CATSettings()
        data = finalize(initialize_session(settings), settings).to_dict()
        assert data["final_standard_error"] is None
        assert data["report"]["items"] == []
        assert data["report"]["theta_trajectory"] == [0.0]
        assert data["report"]["confidence_interval"] == [-4.0, 4.0]

    def test_finalize_does_not_modify_state(self, three_item_pool):
        settings = CATSettings()
        state = process_response(
            initialize_session(settings), three_item_pool[1], True, settings
        )
        finalize(state, settings)
        assert state.item_count == 1


class TestSessionManager:
    def test_full_session(self):
        pool = build_item_bank(50)
        manager = CATSessionManager(pool, {"minItems": 5, "maxItems": 12})
        rng = random.Random(4)

        state = manager.initialize()
        while not manager.should_terminate(state):
            state, item_id = manager.next_item(state)
            if item_id is None:
                continue
            state = manager.record_response(state, item_id, rng.random() < 0.5)

        result = manager.finalize(state)
        assert 5 <= result.items_administered <= 12

    def test_accepts_raw_pool_records(self):
        records = [
            {"id": "q1", "irtParameters": {"difficulty": -0.5}},
            {"id": "q2", "irtParameters": {"difficulty": 0.1, "discrimination": 1.4}},
        ]
        manager = CATSessionManager(records, CATSettings())
        state, item_id = manager.next_item(manager.initialize())
        assert item_id == "q2"

    def test_exhaustion_marks_state(self):
        manager = CATSessionManager([make_item(1)], CATSettings(min_items=3, max_items=5))
        state, item_id = manager.next_item(manager.initialize())
        state = manager.record_response(state, item_id, True)
        state, item_id = manager.next_item(state)
        assert item_id is None
        assert state.pool_exhausted is True
        assert manager.should_terminate(state) is True

    def test_unknown_item_rejected(self, three_item_pool):
        manager = CATSessionManager(three_item_pool, CATSettings())
        with pytest.raises(ValueError, match="not in the item pool"):
            manager.record_response(manager.initialize(), 99, True)

    def test_content_balancing_requires_policy(self, three_item_pool):
        with pytest.raises(ConfigurationError):
            CATSessionManager(three_item_pool, CATSettings(content_balancing=True))

    def test_invalid_settings_rejected(self, three_item_pool):
        with pytest.raises(ConfigurationError):
            CATSessionManager(three_item_pool, {"minItems": 9, "maxItems": 3})

    def test_invalid_pool_rejected(self):
        with pytest.raises(ItemPoolError):
            CATSessionManager([make_item(1), make_item(1)], CATSettings())

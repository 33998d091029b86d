"""Tests for batched and single-shot plan generation."""
from __future__ import annotations

import json

import pytest

from fakes import (
    DEFAULT_TYPES,
    NOW,
    WEEK_START,
    ScriptedAi,
    batch_json,
    batched_script,
    day_payload,
    full_plan_json,
    outline_json,
    sample_profile,
)
from fitplan.core.errors import AiError, AiErrorKind
from fitplan.services.plan_generator import GenerationState, PlanGenerator


def _generate(ai: ScriptedAi, strategy: str = "batched"):
    return PlanGenerator(ai, strategy=strategy).generate(
        user_id="user-1",
        profile=sample_profile(),
        plan_id="plan_1",
        week_start=WEEK_START,
        created_at=NOW,
    )


def test_batched_generation_makes_four_calls_and_valid_plan() -> None:
    ai = ScriptedAi(batched_script())

    outcome = _generate(ai)

    plan = outcome.plan
    assert outcome.ai_calls == 4
    assert ai.operations[0] == "plan.generate.outline"
    assert [day.day_index for day in plan.days] == list(range(7))
    assert [day.date.isoformat() for day in plan.days][0] == "2026-10-19"
    assert plan.days[6].date.isoformat() == "2026-10-25"
    assert plan.days[6].is_rest_day
    assert plan.days[6].exercises == []
    assert [day.workout.type for day in plan.days] == list(DEFAULT_TYPES)
    assert plan.id == "plan_1"
    assert plan.is_active


def test_state_sequence_for_batched_run() -> None:
    outcome = _generate(ScriptedAi(batched_script()))

    assert outcome.states == [
        GenerationState.IDLE,
        GenerationState.OUTLINE_REQUESTED,
        GenerationState.OUTLINE_VALIDATED,
        GenerationState.BATCH_1_REQUESTED,
        GenerationState.BATCH_2_REQUESTED,
        GenerationState.BATCH_3_REQUESTED,
        GenerationState.DAYS_ASSEMBLED,
        GenerationState.PLAN_VALIDATED,
    ]


def test_generated_ids_are_unique_within_each_day() -> None:
    plan = _generate(ScriptedAi(batched_script())).plan

    for day in plan.days:
        meal_ids = [meal.id for meal in day.meals]
        exercise_ids = [exercise.id for exercise in day.exercises]
        assert len(set(meal_ids)) == len(meal_ids)
        assert len(set(exercise_ids)) == len(exercise_ids)
    assert plan.days[0].meals[0].id == "plan_1_d0_meal0"


def test_later_batches_see_earlier_day_summaries() -> None:
    ai = ScriptedAi(batched_script())

    _generate(ai)

    assert "Strength Session" in ai.prompts[2]
    assert "Monday (dayIndex 0)" in ai.prompts[3]


def test_rest_day_mismatch_aborts_generation() -> None:
    script = batched_script()
    script[3] = json.dumps({"days": [day_payload(6, "cardio")]})
    ai = ScriptedAi(script)

    with pytest.raises(AiError) as excinfo:
        _generate(ai)

    assert excinfo.value.kind is AiErrorKind.INVALID_RESPONSE
    assert "rest day" in excinfo.value.message


def test_missing_rest_workout_is_filled_in() -> None:
    script = batched_script()
    payload = day_payload(6, "rest")
    payload["workout"] = None
    script[3] = json.dumps({"days": [payload]})

    plan = _generate(ScriptedAi(script)).plan

    assert plan.days[6].workout.type == "rest"
    assert plan.days[6].is_rest_day


def test_workout_type_must_match_outline() -> None:
    script = batched_script()
    script[1] = json.dumps({"days": [day_payload(0, "cardio"), day_payload(1, "cardio"), day_payload(2, "strength")]})

    with pytest.raises(AiError) as excinfo:
        _generate(ScriptedAi(script))

    assert excinfo.value.kind is AiErrorKind.INVALID_RESPONSE


def test_day_outside_batch_range_rejected() -> None:
    script = batched_script()
    script[1] = batch_json([0, 1, 3])

    with pytest.raises(AiError) as excinfo:
        _generate(ScriptedAi(script))

    assert "outside batch range" in excinfo.value.message


def test_duplicate_day_within_batch_rejected() -> None:
    script = batched_script()
    script[2] = json.dumps({"days": [day_payload(3, "flexibility"), day_payload(3, "flexibility")]})

    with pytest.raises(AiError) as excinfo:
        _generate(ScriptedAi(script))

    assert excinfo.value.kind is AiErrorKind.INVALID_RESPONSE


def test_empty_batch_aborts_generation() -> None:
    script = batched_script()
    script[1] = json.dumps({"days": []})
    ai = ScriptedAi(script)

    with pytest.raises(AiError) as excinfo:
        _generate(ai)

    assert excinfo.value.kind is AiErrorKind.INVALID_RESPONSE
    assert len(ai.prompts) == 2


def test_incomplete_batch_leaves_missing_days() -> None:
    script = batched_script()
    script[2] = batch_json([3, 4])

    with pytest.raises(AiError) as excinfo:
        _generate(ScriptedAi(script))

    assert "[5]" in excinfo.value.message


def test_ai_failure_mid_run_propagates_without_partial_plan() -> None:
    script: list = batched_script()[:2] + [AiError(AiErrorKind.TIMEOUT, "timed out")]
    ai = ScriptedAi(script)

    with pytest.raises(AiError) as excinfo:
        _generate(ai)

    assert excinfo.value.kind is AiErrorKind.TIMEOUT
    assert len(ai.prompts) == 3


def test_outline_parse_error_stops_before_batches() -> None:
    ai = ScriptedAi(["not json at all"])

    with pytest.raises(AiError) as excinfo:
        _generate(ai)

    assert excinfo.value.kind is AiErrorKind.PARSE_ERROR
    assert len(ai.prompts) == 1


def test_single_shot_strategy_uses_one_call() -> None:
    ai = ScriptedAi([full_plan_json()])

    outcome = _generate(ai, strategy="single_shot")

    assert outcome.ai_calls == 1
    assert GenerationState.FULL_PLAN_REQUESTED in outcome.states
    assert outcome.plan.days[3].date.isoformat() == "2026-10-22"


def test_outline_plan_id_is_not_trusted() -> None:
    script = batched_script()
    script[0] = outline_json(plan_id="something_else")

    assert _generate(ScriptedAi(script)).plan.id == "plan_1"


def test_unknown_strategy_rejected() -> None:
    with pytest.raises(ValueError):
        PlanGenerator(ScriptedAi(), strategy="parallel")

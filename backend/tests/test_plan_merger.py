"""Tests for merging partial modifications into an existing plan."""
from __future__ import annotations

import pytest

from fakes import ScriptedAi, day_payload, make_plan, modification_json
from fitplan.core.errors import AiError, AiErrorKind
from fitplan.services.ai.response_validator import validate_modification
from fitplan.services.ai.schemas import ModificationType
from fitplan.services.plan_merger import PlanModifier, merge_modification


def test_only_listed_days_change() -> None:
    plan = make_plan()
    response = validate_modification(modification_json("workoutUpdate", [day_payload(2, "flexibility", tag=" v2")]))

    merged = merge_modification(plan, response)

    assert merged.days[2].workout.type == "flexibility"
    assert merged.days[2].workout.name == "Flexibility Session v2"
    for index in (0, 1, 3, 4, 5, 6):
        assert merged.days[index] == plan.days[index]
    assert merged.id == plan.id
    assert merged.created_at == plan.created_at


def test_replaced_day_keeps_prior_id_and_date() -> None:
    plan = make_plan()
    response = validate_modification(modification_json("dayReplacement", [day_payload(4, "cardio")]))

    merged = merge_modification(plan, response)

    assert merged.days[4].id == plan.days[4].id
    assert merged.days[4].date == plan.days[4].date


def test_rejected_modification_raises_invalid_request_with_explanation() -> None:
    plan = make_plan()
    response = validate_modification(modification_json("rejected", [], "That would be unsafe."))

    with pytest.raises(AiError) as excinfo:
        merge_modification(plan, response)

    assert excinfo.value.kind is AiErrorKind.INVALID_REQUEST
    assert excinfo.value.explanation == "That would be unsafe."
    assert excinfo.value.user_message == "That would be unsafe."


def test_rest_workout_with_exercises_is_invalid_response() -> None:
    plan = make_plan()
    payload = day_payload(6, "rest")
    payload["workout"]["exercises"] = [{"name": "Burpees", "sets": 3, "reps": "10"}]
    response = validate_modification(modification_json("workoutUpdate", [payload]))

    with pytest.raises(AiError) as excinfo:
        merge_modification(plan, response)

    assert excinfo.value.kind is AiErrorKind.INVALID_RESPONSE


def test_modifier_runs_prompt_validate_merge() -> None:
    plan = make_plan()
    ai = ScriptedAi([modification_json("mealUpdate", [day_payload(1, "cardio", meals=3)], "Added a snack.")])

    outcome = PlanModifier(ai).modify(plan, "Add a snack on Tuesday")

    assert outcome.modification_type is ModificationType.MEAL_UPDATE
    assert outcome.changed_days == [1]
    assert len(outcome.plan.days[1].meals) == 3
    assert outcome.explanation == "Added a snack."
    assert "Add a snack on Tuesday" in ai.prompts[0]


def test_empty_request_never_reaches_the_ai() -> None:
    ai = ScriptedAi()

    with pytest.raises(AiError) as excinfo:
        PlanModifier(ai).modify(make_plan(), "   ")

    assert excinfo.value.kind is AiErrorKind.INVALID_REQUEST
    assert ai.prompts == []

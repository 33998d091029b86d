"""Batched weekly plan generation: outline call, three day-batches, assembly."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, List, Tuple

from pydantic import ValidationError

from fitplan.core.errors import AiError, AiErrorKind
from fitplan.domain.plan import DAYS_PER_PLAN, DayPlan, WeeklyPlan
from fitplan.domain.profile import UserProfileSnapshot
from fitplan.observability.metrics import timed
from fitplan.observability.tracing import trace
from fitplan.services.ai.client import AiClient
from fitplan.services.ai.prompt_builder import (
    DaySummary,
    build_batch_prompt,
    build_generation_prompt,
    build_outline_prompt,
)
from fitplan.services.ai.response_validator import validate_batch, validate_full_plan, validate_outline
from fitplan.services.ai.schemas import DayPayload, OutlineResponse, WorkoutPayload

logger = logging.getLogger(__name__)

DAY_BATCHES: Tuple[Tuple[int, int], ...] = ((0, 2), (3, 5), (6, 6))


class GenerationState(str, Enum):
    IDLE = "idle"
    OUTLINE_REQUESTED = "outlineRequested"
    OUTLINE_VALIDATED = "outlineValidated"
    BATCH_1_REQUESTED = "batch1Requested"
    BATCH_2_REQUESTED = "batch2Requested"
    BATCH_3_REQUESTED = "batch3Requested"
    FULL_PLAN_REQUESTED = "fullPlanRequested"
    DAYS_ASSEMBLED = "daysAssembled"
    PLAN_VALIDATED = "planValidated"
    FAILED = "failed"


_BATCH_STATES = (
    GenerationState.BATCH_1_REQUESTED,
    GenerationState.BATCH_2_REQUESTED,
    GenerationState.BATCH_3_REQUESTED,
)


@dataclass
class GenerationOutcome:
    plan: WeeklyPlan
    states: List[GenerationState]
    ai_calls: int


@dataclass
class _Run:
    plan_id: str
    states: List[GenerationState] = field(default_factory=lambda: [GenerationState.IDLE])
    ai_calls: int = 0

    def advance(self, state: GenerationState) -> None:
        logger.debug("Plan %s generation: %s -> %s", self.plan_id, self.states[-1].value, state.value)
        self.states.append(state)


def _invalid(message: str) -> AiError:
    return AiError(AiErrorKind.INVALID_RESPONSE, message)


class PlanGenerator:
    """Drive the AI through an outline and sequential day-batches.

    Any AI failure or schema violation aborts the whole run with a single
    ``AiError``; no partial plan is ever returned. ``strategy="single_shot"``
    asks for all seven days in one call instead.
    """

    def __init__(self, ai_client: AiClient, *, strategy: str = "batched") -> None:
        if strategy not in {"batched", "single_shot"}:
            raise ValueError(f"Unknown generation strategy {strategy!r}")
        self.ai_client = ai_client
        self.strategy = strategy

    def generate(
        self,
        *,
        user_id: str,
        profile: UserProfileSnapshot,
        plan_id: str,
        week_start: date,
        created_at: datetime,
    ) -> GenerationOutcome:
        run = _Run(plan_id=plan_id)
        metadata = {"plan_id": plan_id, "strategy": self.strategy}
        with trace("plan.generate", metadata=metadata, user_id=user_id), timed("plan.generate", metadata):
            try:
                if self.strategy == "single_shot":
                    days = self._single_shot(run, profile, week_start)
                else:
                    days = self._batched(run, profile, week_start)
                run.advance(GenerationState.DAYS_ASSEMBLED)
                plan = self._build_plan(
                    plan_id=plan_id,
                    user_id=user_id,
                    profile=profile,
                    week_start=week_start,
                    created_at=created_at,
                    days=days,
                )
                run.advance(GenerationState.PLAN_VALIDATED)
            except AiError as exc:
                run.advance(GenerationState.FAILED)
                logger.warning(
                    "Plan generation %s failed after %s AI calls (%s): %s",
                    plan_id,
                    run.ai_calls,
                    exc.kind.value,
                    exc.message,
                )
                raise

        logger.info("Plan %s generated for user %s with %s AI calls", plan_id, user_id, run.ai_calls)
        return GenerationOutcome(plan=plan, states=list(run.states), ai_calls=run.ai_calls)

    def _batched(self, run: _Run, profile: UserProfileSnapshot, week_start: date) -> List[DayPlan]:
        run.advance(GenerationState.OUTLINE_REQUESTED)
        run.ai_calls += 1
        raw_outline = self.ai_client.generate(
            build_outline_prompt(profile, plan_id=run.plan_id, week_start=week_start),
            operation="plan.generate.outline",
        )
        outline = validate_outline(raw_outline)
        run.advance(GenerationState.OUTLINE_VALIDATED)

        assembled: Dict[int, DayPlan] = {}
        summaries: List[DaySummary] = []
        for batch_state, (start_index, end_index) in zip(_BATCH_STATES, DAY_BATCHES):
            run.advance(batch_state)
            run.ai_calls += 1
            prompt = build_batch_prompt(
                profile,
                outline,
                summaries,
                start_index=start_index,
                end_index=end_index,
                week_start=week_start,
            )
            batch = validate_batch(self.ai_client.generate(prompt, operation=f"plan.generate.{batch_state.value}"))
            for payload in batch.days:
                index = payload.day_index
                if not start_index <= index <= end_index:
                    raise _invalid(f"dayIndex {index} outside batch range {start_index}-{end_index}")
                if index in assembled:
                    raise _invalid(f"duplicate dayIndex {index} across batches")
                day = self._day_against_outline(payload, outline, run.plan_id, week_start)
                assembled[index] = day
                summaries.append(DaySummary.from_day(day, outline.day_outline[index].intensity))

        missing = sorted(set(range(DAYS_PER_PLAN)) - set(assembled))
        if missing:
            raise _invalid(f"generation finished without days {missing}")
        return [assembled[index] for index in range(DAYS_PER_PLAN)]

    def _single_shot(self, run: _Run, profile: UserProfileSnapshot, week_start: date) -> List[DayPlan]:
        run.advance(GenerationState.FULL_PLAN_REQUESTED)
        run.ai_calls += 1
        raw = self.ai_client.generate(
            build_generation_prompt(profile, plan_id=run.plan_id, week_start=week_start),
            operation="plan.generate.full",
        )
        response = validate_full_plan(raw)
        return [
            _to_domain(payload, run.plan_id, week_start + timedelta(days=payload.day_index))
            for payload in response.days
        ]

    @staticmethod
    def _day_against_outline(
        payload: DayPayload,
        outline: OutlineResponse,
        plan_id: str,
        week_start: date,
    ) -> DayPlan:
        index = payload.day_index
        declared = outline.type_for(index)
        workout = payload.workout
        if declared == "rest":
            if workout is None:
                payload = payload.model_copy(update={"workout": WorkoutPayload(type="rest", name="Rest Day")})
            elif workout.type != "rest":
                raise _invalid(f"day {index} is a rest day in the outline but returned a {workout.type} workout")
            elif workout.exercises:
                raise _invalid(f"rest day {index} returned {len(workout.exercises)} exercises")
        else:
            if workout is None:
                raise _invalid(f"day {index} is missing its {declared} workout")
            if workout.type != declared:
                raise _invalid(f"day {index} workout type {workout.type} does not match outline type {declared}")
        return _to_domain(payload, plan_id, week_start + timedelta(days=index))

    @staticmethod
    def _build_plan(
        *,
        plan_id: str,
        user_id: str,
        profile: UserProfileSnapshot,
        week_start: date,
        created_at: datetime,
        days: List[DayPlan],
    ) -> WeeklyPlan:
        try:
            return WeeklyPlan(
                id=plan_id,
                user_id=user_id,
                created_at=created_at,
                start_date=week_start,
                days=days,
                profile_snapshot=profile,
                is_active=True,
            )
        except ValidationError as exc:
            raise _invalid(f"assembled plan failed validation: {exc.errors()[0].get('msg')}") from exc


def _to_domain(payload: DayPayload, plan_id: str, day_date: date) -> DayPlan:
    try:
        return payload.to_domain(plan_id=plan_id, day_date=day_date)
    except ValidationError as exc:
        raise _invalid(f"day {payload.day_index} failed validation: {exc.errors()[0].get('msg')}") from exc

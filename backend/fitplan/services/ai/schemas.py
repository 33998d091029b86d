"""Typed schemas for the four AI response kinds.

Every AI payload is validated against one of these models before anything is
turned into a domain object. Payload ids are optional here; missing or
clashing ids are filled in deterministically by ``DayPayload.to_domain``.
"""
from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from fitplan.domain.plan import DAYS_PER_PLAN, DayPlan, Exercise, Meal, MealType, Workout, WorkoutType

MAX_DAYS_PER_BATCH = 3


class ResponseKind(str, Enum):
    OUTLINE = "outline"
    BATCH = "batch"
    FULL_PLAN = "fullPlan"
    PARTIAL_MODIFICATION = "partialModification"


class ModificationType(str, Enum):
    DAY_REPLACEMENT = "dayReplacement"
    WORKOUT_UPDATE = "workoutUpdate"
    MEAL_UPDATE = "mealUpdate"
    REJECTED = "rejected"


class AiPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _lowercase(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _round_number(value: Any) -> Any:
    if isinstance(value, float):
        return int(round(value))
    return value


def _ensure_distinct_indices(days: List["DayPayload"]) -> None:
    seen: Set[int] = set()
    for day in days:
        if day.day_index in seen:
            raise ValueError(f"duplicate dayIndex {day.day_index}")
        seen.add(day.day_index)


class OutlineDay(AiPayload):
    day_index: int = Field(..., ge=0, le=DAYS_PER_PLAN - 1)
    workout_type: WorkoutType
    intensity: str = Field(..., min_length=1)
    focus: Optional[str] = None

    _normalize_type = field_validator("workout_type", "intensity", mode="before")(_lowercase)


class OutlineResponse(AiPayload):
    plan_id: str = Field(..., min_length=1)
    week_start_date: Optional[str] = None
    day_outline: List[OutlineDay] = Field(..., min_length=DAYS_PER_PLAN, max_length=DAYS_PER_PLAN)

    @model_validator(mode="after")
    def _covers_every_day(self) -> "OutlineResponse":
        indices = sorted(entry.day_index for entry in self.day_outline)
        if indices != list(range(DAYS_PER_PLAN)):
            raise ValueError(f"dayOutline must cover dayIndex 0-6 exactly once, got {indices}")
        self.day_outline.sort(key=lambda entry: entry.day_index)
        return self

    def type_for(self, day_index: int) -> str:
        return self.day_outline[day_index].workout_type


class ExercisePayload(AiPayload):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    sets: int = Field(..., ge=0)
    reps: str
    rest_seconds: int = Field(default=60, ge=0)
    notes: Optional[str] = None
    equipment_required: List[str] = Field(default_factory=list)

    _round_ints = field_validator("sets", "rest_seconds", mode="before")(_round_number)

    @field_validator("reps", mode="before")
    @classmethod
    def _reps_as_text(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value)) if float(value).is_integer() else str(value)
        return value


class WorkoutPayload(AiPayload):
    id: Optional[str] = None
    name: str = ""
    type: WorkoutType
    duration_minutes: int = Field(default=0, ge=0)
    exercises: List[ExercisePayload] = Field(default_factory=list)

    _normalize_type = field_validator("type", mode="before")(_lowercase)
    _round_duration = field_validator("duration_minutes", mode="before")(_round_number)


class MealPayload(AiPayload):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    type: Optional[MealType] = None
    calories: int = Field(default=0, ge=0)
    protein: int = Field(default=0, ge=0)
    carbs: int = Field(default=0, ge=0)
    fat: int = Field(default=0, ge=0)
    ingredients: List[str] = Field(default_factory=list)
    instructions: Optional[str] = None

    _normalize_type = field_validator("type", mode="before")(_lowercase)
    _round_macros = field_validator("calories", "protein", "carbs", "fat", mode="before")(_round_number)


class DayPayload(AiPayload):
    id: Optional[str] = None
    day_index: int = Field(..., ge=0, le=DAYS_PER_PLAN - 1)
    workout: Optional[WorkoutPayload] = None
    meals: List[MealPayload] = Field(default_factory=list)

    def to_domain(self, *, plan_id: str, day_date: date, day_id: Optional[str] = None) -> DayPlan:
        """Build a ``DayPlan``; raises pydantic ``ValidationError`` on domain rule violations."""
        prefix = f"{plan_id}_d{self.day_index}"
        resolved_day_id = self.id or day_id or prefix

        workout = None
        if self.workout is not None:
            exercise_ids = _unique_ids([exercise.id for exercise in self.workout.exercises], f"{prefix}_ex")
            workout = Workout(
                id=self.workout.id or f"{prefix}_workout",
                name=self.workout.name,
                type=self.workout.type,
                duration_minutes=self.workout.duration_minutes,
                exercises=[
                    Exercise(id=exercise_id, **exercise.model_dump(exclude={"id"}))
                    for exercise_id, exercise in zip(exercise_ids, self.workout.exercises)
                ],
            )

        meal_ids = _unique_ids([meal.id for meal in self.meals], f"{prefix}_meal")
        meals = [
            Meal(id=meal_id, **meal.model_dump(exclude={"id"}))
            for meal_id, meal in zip(meal_ids, self.meals)
        ]
        return DayPlan(id=resolved_day_id, day_index=self.day_index, date=day_date, workout=workout, meals=meals)


def _unique_ids(candidates: List[Optional[str]], prefix: str) -> List[str]:
    """Keep AI-supplied ids unless missing or repeated; generate ``prefix{n}`` otherwise."""
    resolved: List[str] = []
    used: Set[str] = set()
    for position, candidate in enumerate(candidates):
        identifier = candidate.strip() if candidate else ""
        if not identifier or identifier in used:
            identifier = f"{prefix}{position}"
        used.add(identifier)
        resolved.append(identifier)
    return resolved


class BatchResponse(AiPayload):
    days: List[DayPayload] = Field(..., min_length=1, max_length=MAX_DAYS_PER_BATCH)

    @model_validator(mode="after")
    def _distinct(self) -> "BatchResponse":
        _ensure_distinct_indices(self.days)
        return self


class FullPlanResponse(AiPayload):
    id: str = Field(..., min_length=1)
    days: List[DayPayload] = Field(..., min_length=DAYS_PER_PLAN, max_length=DAYS_PER_PLAN)

    @model_validator(mode="after")
    def _distinct(self) -> "FullPlanResponse":
        _ensure_distinct_indices(self.days)
        self.days.sort(key=lambda day: day.day_index)
        return self


class PartialModificationResponse(AiPayload):
    modification_type: ModificationType
    modified_days: List[DayPayload] = Field(default_factory=list, max_length=DAYS_PER_PLAN)
    explanation: str = ""

    @model_validator(mode="after")
    def _days_match_type(self) -> "PartialModificationResponse":
        if self.modification_type is not ModificationType.REJECTED and not self.modified_days:
            raise ValueError("modifiedDays may only be empty when modificationType is 'rejected'")
        _ensure_distinct_indices(self.modified_days)
        return self

    @property
    def is_rejected(self) -> bool:
        return self.modification_type is ModificationType.REJECTED


SCHEMAS: Dict[ResponseKind, Type[AiPayload]] = {
    ResponseKind.OUTLINE: OutlineResponse,
    ResponseKind.BATCH: BatchResponse,
    ResponseKind.FULL_PLAN: FullPlanResponse,
    ResponseKind.PARTIAL_MODIFICATION: PartialModificationResponse,
}

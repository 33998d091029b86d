"""Weekly plan domain models."""
from __future__ import annotations

import datetime as dt
from datetime import date, datetime, timedelta
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import Field, field_validator, model_validator

from fitplan.domain.base import DomainModel
from fitplan.domain.profile import UserProfileSnapshot

DAYS_PER_PLAN = 7
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

WorkoutType = Literal["strength", "cardio", "flexibility", "rest"]
MealType = Literal["breakfast", "lunch", "dinner", "snack"]


class Exercise(DomainModel):
    id: str
    name: str
    sets: int = Field(..., ge=0)
    reps: str = Field(..., description="Range or duration, e.g. '10-12' or '30 seconds'.")
    rest_seconds: int = Field(default=60, ge=0)
    notes: Optional[str] = None
    equipment_required: List[str] = Field(default_factory=list)
    is_complete: bool = False

    @field_validator("reps", mode="before")
    @classmethod
    def _reps_as_text(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value)) if float(value).is_integer() else str(value)
        return value


class Workout(DomainModel):
    id: Optional[str] = None
    name: str = ""
    type: WorkoutType
    duration_minutes: int = Field(default=0, ge=0)
    exercises: List[Exercise] = Field(default_factory=list)

    @model_validator(mode="after")
    def _rest_has_no_exercises(self) -> "Workout":
        if self.type == "rest" and self.exercises:
            raise ValueError("rest workouts cannot contain exercises")
        return self


class Meal(DomainModel):
    id: str
    name: str
    type: Optional[MealType] = None
    calories: int = Field(default=0, ge=0)
    protein: int = Field(default=0, ge=0)
    carbs: int = Field(default=0, ge=0)
    fat: int = Field(default=0, ge=0)
    ingredients: List[str] = Field(default_factory=list)
    instructions: Optional[str] = None
    is_complete: bool = False


class DayPlan(DomainModel):
    id: str
    day_index: int = Field(..., ge=0, le=DAYS_PER_PLAN - 1)
    date: dt.date
    workout: Optional[Workout] = None
    meals: List[Meal] = Field(default_factory=list)

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_index]

    @property
    def is_rest_day(self) -> bool:
        return self.workout is None or self.workout.type == "rest"

    @property
    def exercises(self) -> List[Exercise]:
        if self.workout is None or self.is_rest_day:
            return []
        return self.workout.exercises

    @property
    def total_tasks(self) -> int:
        return len(self.meals) + len(self.exercises)

    @property
    def completed_tasks(self) -> int:
        return sum(1 for meal in self.meals if meal.is_complete) + sum(
            1 for exercise in self.exercises if exercise.is_complete
        )

    def meal_position(self, meal_id: str) -> Optional[int]:
        for position, meal in enumerate(self.meals):
            if meal.id == meal_id:
                return position
        return None

    def exercise_position(self, exercise_id: str) -> Optional[int]:
        for position, exercise in enumerate(self.exercises):
            if exercise.id == exercise_id:
                return position
        return None


class WeeklyPlan(DomainModel):
    """A 7-day plan; ``days[i].day_index == i`` always holds."""

    id: str
    user_id: str
    created_at: datetime
    start_date: date
    days: List[DayPlan]
    profile_snapshot: UserProfileSnapshot
    is_active: bool = True

    @model_validator(mode="after")
    def _seven_ordered_days(self) -> "WeeklyPlan":
        if len(self.days) != DAYS_PER_PLAN:
            raise ValueError(f"plan must contain exactly {DAYS_PER_PLAN} days, got {len(self.days)}")
        for position, day in enumerate(self.days):
            if day.day_index != position:
                raise ValueError(f"day at position {position} has dayIndex {day.day_index}")
            expected = self.start_date + timedelta(days=position)
            if day.date != expected:
                raise ValueError(f"day {position} is dated {day.date}, expected {expected}")
        return self

    @property
    def end_date(self) -> date:
        return self.start_date + timedelta(days=DAYS_PER_PLAN - 1)

    def day_for_date(self, target: date) -> Optional[DayPlan]:
        offset = (target - self.start_date).days
        if 0 <= offset < DAYS_PER_PLAN:
            return self.days[offset]
        return None

    def locate_meal(self, meal_id: str) -> Optional[Tuple[int, int]]:
        """Return ``(day_index, meal_position)`` for a meal id anywhere in the week."""
        for day in self.days:
            position = day.meal_position(meal_id)
            if position is not None:
                return day.day_index, position
        return None

    def locate_exercise(self, exercise_id: str) -> Optional[Tuple[int, int]]:
        for day in self.days:
            position = day.exercise_position(exercise_id)
            if position is not None:
                return day.day_index, position
        return None

    def with_days(self, replacements: Dict[int, DayPlan]) -> "WeeklyPlan":
        """Return a re-validated copy with the given day indices replaced."""
        days = [replacements.get(day.day_index, day) for day in self.days]
        return WeeklyPlan(
            id=self.id,
            user_id=self.user_id,
            created_at=self.created_at,
            start_date=self.start_date,
            days=days,
            profile_snapshot=self.profile_snapshot,
            is_active=self.is_active,
        )

    def with_meal_completion(self, day_index: int, meal_position: int, is_complete: bool) -> "WeeklyPlan":
        day = self.days[day_index]
        meals = list(day.meals)
        meals[meal_position] = meals[meal_position].model_copy(update={"is_complete": is_complete})
        return self.with_days({day_index: day.model_copy(update={"meals": meals})})

    def with_exercise_completion(self, day_index: int, exercise_position: int, is_complete: bool) -> "WeeklyPlan":
        day = self.days[day_index]
        workout = day.workout
        if workout is None:
            raise ValueError(f"day {day_index} has no workout")
        exercises = list(workout.exercises)
        exercises[exercise_position] = exercises[exercise_position].model_copy(update={"is_complete": is_complete})
        updated = workout.model_copy(update={"exercises": exercises})
        return self.with_days({day_index: day.model_copy(update={"workout": updated})})


def week_start_for(today: date) -> date:
    """Monday of the week containing ``today``."""
    return today - timedelta(days=today.weekday())

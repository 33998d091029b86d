"""Per-date completion record."""
from __future__ import annotations

from datetime import date, datetime
from typing import FrozenSet, Optional

from pydantic import ConfigDict, Field, field_serializer

from fitplan.domain.base import DomainModel


class DailyCompletion(DomainModel):
    """Which meal and exercise ids a user has marked done on one calendar date.

    The record knows nothing about plan shape; callers pass the day's totals
    when asking whether the day is complete. All mutators return a new record.
    """

    model_config = ConfigDict(frozen=True)

    date_key: date
    completed_meal_ids: FrozenSet[str] = Field(default_factory=frozenset)
    completed_exercise_ids: FrozenSet[str] = Field(default_factory=frozenset)
    updated_at: Optional[datetime] = None

    @classmethod
    def empty(cls, day: date) -> "DailyCompletion":
        return cls(date_key=day)

    @field_serializer("completed_meal_ids", "completed_exercise_ids")
    def _sorted_ids(self, ids: FrozenSet[str]) -> list[str]:
        return sorted(ids)

    def toggle_meal(self, meal_id: str) -> "DailyCompletion":
        if meal_id in self.completed_meal_ids:
            return self.mark_meal_incomplete(meal_id)
        return self.mark_meal_complete(meal_id)

    def toggle_exercise(self, exercise_id: str) -> "DailyCompletion":
        if exercise_id in self.completed_exercise_ids:
            return self.mark_exercise_incomplete(exercise_id)
        return self.mark_exercise_complete(exercise_id)

    def mark_meal_complete(self, meal_id: str) -> "DailyCompletion":
        if meal_id in self.completed_meal_ids:
            return self
        return self.model_copy(update={"completed_meal_ids": self.completed_meal_ids | {meal_id}})

    def mark_meal_incomplete(self, meal_id: str) -> "DailyCompletion":
        if meal_id not in self.completed_meal_ids:
            return self
        return self.model_copy(update={"completed_meal_ids": self.completed_meal_ids - {meal_id}})

    def mark_exercise_complete(self, exercise_id: str) -> "DailyCompletion":
        if exercise_id in self.completed_exercise_ids:
            return self
        return self.model_copy(update={"completed_exercise_ids": self.completed_exercise_ids | {exercise_id}})

    def mark_exercise_incomplete(self, exercise_id: str) -> "DailyCompletion":
        if exercise_id not in self.completed_exercise_ids:
            return self
        return self.model_copy(update={"completed_exercise_ids": self.completed_exercise_ids - {exercise_id}})

    def is_meal_complete(self, meal_id: str) -> bool:
        return meal_id in self.completed_meal_ids

    def is_exercise_complete(self, exercise_id: str) -> bool:
        return exercise_id in self.completed_exercise_ids

    @property
    def completed_count(self) -> int:
        return len(self.completed_meal_ids) + len(self.completed_exercise_ids)

    def completion_percentage(self, total_meals: int, total_exercises: int) -> float:
        total = total_meals + total_exercises
        if total <= 0:
            return 100.0
        done = min(len(self.completed_meal_ids), total_meals) + min(len(self.completed_exercise_ids), total_exercises)
        return done / total * 100

    def is_complete(self, total_meals: int, total_exercises: int) -> bool:
        return self.completion_percentage(total_meals, total_exercises) >= 100.0

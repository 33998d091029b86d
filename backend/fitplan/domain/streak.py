"""Consecutive-day streak state."""
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import ConfigDict, Field, model_validator

from fitplan.domain.base import DomainModel

STREAK_MILESTONES = (7, 14, 30, 50, 100, 365)


class StreakData(DomainModel):
    model_config = ConfigDict(frozen=True)

    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_completed_date: Optional[date] = None
    streak_start_date: Optional[date] = None

    @model_validator(mode="after")
    def _longest_covers_current(self) -> "StreakData":
        if self.longest_streak < self.current_streak:
            raise ValueError("longestStreak cannot be below currentStreak")
        return self

    @property
    def has_active_streak(self) -> bool:
        return self.current_streak > 0

    def completed_on(self, day: date) -> bool:
        return self.last_completed_date == day

    @property
    def next_milestone(self) -> Optional[int]:
        for milestone in STREAK_MILESTONES:
            if milestone > self.current_streak:
                return milestone
        return None

    @property
    def is_at_milestone(self) -> bool:
        return self.current_streak in STREAK_MILESTONES

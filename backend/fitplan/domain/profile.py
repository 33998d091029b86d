"""User profile snapshot captured at plan-creation time."""
from __future__ import annotations

from typing import List, Optional

from pydantic import ConfigDict, Field

from fitplan.domain.base import DomainModel


class UserProfileSnapshot(DomainModel):
    """Immutable copy of the onboarding answers embedded in every plan."""

    model_config = ConfigDict(frozen=True)

    age: int = Field(..., ge=13, le=100)
    weight_kg: float = Field(..., gt=0)
    height_cm: float = Field(..., gt=0)
    gender: Optional[str] = None
    goal: str = Field(..., min_length=1, description="e.g. muscle_gain, weight_loss, general_fitness")
    equipment: str = Field(default="bodyweight", description="bodyweight, home_gym, or full_gym")
    equipment_details: List[str] = Field(default_factory=list)
    dietary_restrictions: List[str] = Field(default_factory=list)
    dietary_notes: Optional[str] = None
    fitness_level: Optional[str] = None

    @property
    def bmi(self) -> float:
        height_m = self.height_cm / 100
        return round(self.weight_kg / (height_m * height_m), 1)

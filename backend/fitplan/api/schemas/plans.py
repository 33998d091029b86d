"""Schemas for plan generation, retrieval and modification."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from fitplan.domain.profile import UserProfileSnapshot


class GeneratePlanRequest(BaseModel):
    profile: UserProfileSnapshot


class ModifyPlanRequest(BaseModel):
    request: str = Field(..., min_length=1, max_length=2000)


class PlanResponse(BaseModel):
    plan: Dict[str, Any]
    request_id: str


class PlanHistoryItem(BaseModel):
    id: str
    start_date: date
    end_date: date
    created_at: datetime
    is_active: bool
    completed_tasks: int
    total_tasks: int


class PlanHistoryResponse(BaseModel):
    items: List[PlanHistoryItem]
    request_id: str

"""Streak endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from fitplan.api.deps import get_user_id
from fitplan.api.schemas.streak import StreakResponse
from fitplan.domain.streak import StreakData
from fitplan.observability.metrics import log_metric
from fitplan.observability.tracing import trace
from fitplan.services.factory import get_plan_repository
from fitplan.services.plan_repository import PlanRepository

router = APIRouter()


@router.get("/streak", response_model=StreakResponse, tags=["streak"])
def get_streak(
    request: Request,
    user_id: str = Depends(get_user_id),
    repository: PlanRepository = Depends(get_plan_repository),
) -> StreakResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("streak.get", metadata={"user_id": user_id}, user_id=user_id, request_id=request_id):
        streak = repository.get_streak(user_id)
    return _streak_response(streak, request_id)


@router.post("/streak/check-reset", response_model=StreakResponse, tags=["streak"])
def check_and_reset_streak(
    request: Request,
    user_id: str = Depends(get_user_id),
    repository: PlanRepository = Depends(get_plan_repository),
) -> StreakResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("streak.check_reset", metadata={"user_id": user_id}, user_id=user_id, request_id=request_id):
        streak = repository.check_and_reset_streak(user_id)
    log_metric("streak.current", streak.current_streak, metadata={"user_id": user_id})
    return _streak_response(streak, request_id)


def _streak_response(streak: StreakData, request_id: str | None) -> StreakResponse:
    return StreakResponse(
        streak=streak.to_document(),
        next_milestone=streak.next_milestone,
        is_at_milestone=streak.is_at_milestone,
        request_id=request_id or "",
    )

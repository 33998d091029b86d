"""Meal and exercise completion endpoints."""
from __future__ import annotations

from datetime import date
from time import perf_counter

from fastapi import APIRouter, Depends, Request

from fitplan.api.deps import get_user_id
from fitplan.api.schemas.completions import CompletionResponse, ToggleRequest, ToggleResponse
from fitplan.observability.metrics import log_metric
from fitplan.observability.tracing import trace
from fitplan.services.factory import get_plan_repository
from fitplan.services.plan_repository import PlanRepository

router = APIRouter()


@router.post("/completions/meals/toggle", response_model=ToggleResponse, tags=["completions"])
def toggle_meal(
    request: Request,
    payload: ToggleRequest,
    user_id: str = Depends(get_user_id),
    repository: PlanRepository = Depends(get_plan_repository),
) -> ToggleResponse:
    request_id = getattr(request.state, "request_id", None)
    metadata = {"user_id": user_id, "date": payload.date.isoformat(), "meal_id": payload.item_id}
    start = perf_counter()
    with trace("completions.toggle_meal", metadata=metadata, user_id=user_id, request_id=request_id):
        completion = repository.toggle_meal(user_id, payload.date, payload.item_id)
        streak = repository.get_streak(user_id)

    log_metric("completions.toggle_meal.latency_ms", (perf_counter() - start) * 1000, metadata={"user_id": user_id})
    return ToggleResponse(
        completion=completion.to_document(),
        completed_count=completion.completed_count,
        is_complete=completion.is_meal_complete(payload.item_id),
        streak=streak.to_document(),
        request_id=request_id or "",
    )


@router.post("/completions/exercises/toggle", response_model=ToggleResponse, tags=["completions"])
def toggle_exercise(
    request: Request,
    payload: ToggleRequest,
    user_id: str = Depends(get_user_id),
    repository: PlanRepository = Depends(get_plan_repository),
) -> ToggleResponse:
    request_id = getattr(request.state, "request_id", None)
    metadata = {"user_id": user_id, "date": payload.date.isoformat(), "exercise_id": payload.item_id}
    start = perf_counter()
    with trace("completions.toggle_exercise", metadata=metadata, user_id=user_id, request_id=request_id):
        completion = repository.toggle_exercise(user_id, payload.date, payload.item_id)
        streak = repository.get_streak(user_id)

    log_metric(
        "completions.toggle_exercise.latency_ms",
        (perf_counter() - start) * 1000,
        metadata={"user_id": user_id},
    )
    return ToggleResponse(
        completion=completion.to_document(),
        completed_count=completion.completed_count,
        is_complete=completion.is_exercise_complete(payload.item_id),
        streak=streak.to_document(),
        request_id=request_id or "",
    )


@router.get("/completions/{day}", response_model=CompletionResponse, tags=["completions"])
def get_completion(
    day: date,
    request: Request,
    user_id: str = Depends(get_user_id),
    repository: PlanRepository = Depends(get_plan_repository),
) -> CompletionResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("completions.get", metadata={"date": day.isoformat()}, user_id=user_id, request_id=request_id):
        completion = repository.get_completion(user_id, day)
    return CompletionResponse(
        completion=completion.to_document(),
        completed_count=completion.completed_count,
        request_id=request_id or "",
    )

"""Plan generation, retrieval and modification endpoints."""
from __future__ import annotations

from time import perf_counter

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from fitplan.api.deps import get_user_id, http_error_for
from fitplan.api.schemas.plans import (
    GeneratePlanRequest,
    ModifyPlanRequest,
    PlanHistoryItem,
    PlanHistoryResponse,
    PlanResponse,
)
from fitplan.domain.plan import WeeklyPlan
from fitplan.observability.metrics import log_metric
from fitplan.observability.tracing import trace
from fitplan.services.factory import get_plan_repository
from fitplan.services.plan_repository import PlanRepository

router = APIRouter()


@router.post("/plans/generate", response_model=PlanResponse, tags=["plans"])
def generate_plan(
    request: Request,
    payload: GeneratePlanRequest,
    user_id: str = Depends(get_user_id),
    repository: PlanRepository = Depends(get_plan_repository),
) -> PlanResponse:
    request_id = getattr(request.state, "request_id", None)
    metadata = {"user_id": user_id, "goal": payload.profile.goal, "request_id": request_id}
    start = perf_counter()
    with trace("plans.generate", metadata=metadata, user_id=user_id, request_id=request_id):
        result = repository.generate_plan(user_id, payload.profile)

    latency_ms = (perf_counter() - start) * 1000
    log_metric("plans.generate.latency_ms", latency_ms, metadata={"user_id": user_id})
    if not result.ok:
        log_metric("plans.generate.failure", 1, metadata={"user_id": user_id, "kind": result.error.kind.value})
        raise http_error_for(result.error)

    log_metric("plans.generate.success", 1, metadata={"user_id": user_id})
    return PlanResponse(plan=result.value.to_document(), request_id=request_id or "")


@router.get("/plans/current", response_model=PlanResponse, tags=["plans"])
def get_current_plan(
    request: Request,
    user_id: str = Depends(get_user_id),
    repository: PlanRepository = Depends(get_plan_repository),
) -> PlanResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("plans.current", metadata={"user_id": user_id}, user_id=user_id, request_id=request_id):
        plan = repository.get_current_plan(user_id)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active plan")
    return PlanResponse(plan=plan.to_document(), request_id=request_id or "")


@router.get("/plans/history", response_model=PlanHistoryResponse, tags=["plans"])
def get_plan_history(
    request: Request,
    limit: int = Query(10, ge=1, le=52),
    user_id: str = Depends(get_user_id),
    repository: PlanRepository = Depends(get_plan_repository),
) -> PlanHistoryResponse:
    request_id = getattr(request.state, "request_id", None)
    metadata = {"user_id": user_id, "limit": limit}
    with trace("plans.history", metadata=metadata, user_id=user_id, request_id=request_id):
        plans = repository.get_plan_history(user_id, limit=limit)
    log_metric("plans.history.count", len(plans), metadata={"user_id": user_id})
    return PlanHistoryResponse(items=[_history_item(plan) for plan in plans], request_id=request_id or "")


@router.post("/plans/modify", response_model=PlanResponse, tags=["plans"])
def modify_plan(
    request: Request,
    payload: ModifyPlanRequest,
    user_id: str = Depends(get_user_id),
    repository: PlanRepository = Depends(get_plan_repository),
) -> PlanResponse:
    request_id = getattr(request.state, "request_id", None)
    metadata = {"user_id": user_id, "request_chars": len(payload.request)}
    start = perf_counter()
    with trace("plans.modify", metadata=metadata, user_id=user_id, request_id=request_id):
        if not repository.has_active_plan(user_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active plan")
        result = repository.modify_plan(user_id, payload.request)

    latency_ms = (perf_counter() - start) * 1000
    log_metric("plans.modify.latency_ms", latency_ms, metadata={"user_id": user_id})
    if not result.ok:
        log_metric("plans.modify.failure", 1, metadata={"user_id": user_id, "kind": result.error.kind.value})
        raise http_error_for(result.error)

    log_metric("plans.modify.success", 1, metadata={"user_id": user_id})
    return PlanResponse(plan=result.value.to_document(), request_id=request_id or "")


def _history_item(plan: WeeklyPlan) -> PlanHistoryItem:
    return PlanHistoryItem(
        id=plan.id,
        start_date=plan.start_date,
        end_date=plan.end_date,
        created_at=plan.created_at,
        is_active=plan.is_active,
        completed_tasks=sum(day.completed_tasks for day in plan.days),
        total_tasks=sum(day.total_tasks for day in plan.days),
    )

"""Coaching chat endpoint."""
from __future__ import annotations

from time import perf_counter

from fastapi import APIRouter, Depends, Request

from fitplan.api.deps import get_user_id, http_error_for
from fitplan.api.schemas.chat import ChatRequest, ChatResponse
from fitplan.observability.metrics import log_metric
from fitplan.observability.tracing import trace
from fitplan.services.factory import get_plan_repository
from fitplan.services.plan_repository import PlanRepository

router = APIRouter()


@router.post("/chat", response_model=ChatResponse, tags=["chat"])
def send_chat_message(
    request: Request,
    payload: ChatRequest,
    user_id: str = Depends(get_user_id),
    repository: PlanRepository = Depends(get_plan_repository),
) -> ChatResponse:
    request_id = getattr(request.state, "request_id", None)
    start = perf_counter()
    with trace("chat.send", metadata={"message_chars": len(payload.message)}, user_id=user_id, request_id=request_id):
        result = repository.send_chat_message(user_id, payload.message)

    log_metric("chat.send.latency_ms", (perf_counter() - start) * 1000, metadata={"user_id": user_id})
    if not result.ok:
        raise http_error_for(result.error)
    return ChatResponse(reply=result.value, request_id=request_id or "")

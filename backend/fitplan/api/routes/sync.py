"""Operational endpoint for draining the sync outbox."""
from __future__ import annotations

from time import perf_counter

from fastapi import APIRouter, Depends, Request

from fitplan.api.schemas.sync import SyncFlushRequest, SyncFlushResponse
from fitplan.observability.metrics import log_metric
from fitplan.observability.tracing import trace
from fitplan.services.factory import get_sync_service
from fitplan.services.sync_service import SyncService

router = APIRouter()


@router.post("/sync/flush", response_model=SyncFlushResponse, tags=["sync"])
def flush_outbox(
    request: Request,
    payload: SyncFlushRequest | None = None,
    sync_service: SyncService = Depends(get_sync_service),
) -> SyncFlushResponse:
    request_id = getattr(request.state, "request_id", None)
    limit = payload.limit if payload else None
    start = perf_counter()
    with trace("sync.flush_now", metadata={"limit": limit}, request_id=request_id):
        result = sync_service.sync_pending_changes(limit)

    log_metric("sync.flush_now.latency_ms", (perf_counter() - start) * 1000)
    return SyncFlushResponse(
        success_count=result.success_count,
        failure_count=result.failure_count,
        dropped_count=result.dropped_count,
        skipped_count=result.skipped_count,
        is_complete=result.is_complete,
        pending=sync_service.outbox.size(),
        errors=result.errors,
        request_id=request_id or "",
    )

"""Schemas for outbox flush."""
from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field


class SyncFlushRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1, le=1000)


class SyncFlushResponse(BaseModel):
    success_count: int
    failure_count: int
    dropped_count: int
    skipped_count: int
    is_complete: bool
    pending: int
    errors: Dict[int, str]
    request_id: str

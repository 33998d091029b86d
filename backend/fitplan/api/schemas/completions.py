"""Schemas for meal and exercise completion toggles."""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict

from pydantic import BaseModel, Field


class ToggleRequest(BaseModel):
    date: dt.date
    item_id: str = Field(..., min_length=1, max_length=128)


class CompletionResponse(BaseModel):
    completion: Dict[str, Any]
    completed_count: int
    request_id: str


class ToggleResponse(CompletionResponse):
    is_complete: bool
    streak: Dict[str, Any]

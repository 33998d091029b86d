"""Schemas for streak endpoints."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel


class StreakResponse(BaseModel):
    streak: Dict[str, Any]
    next_milestone: Optional[int] = None
    is_at_milestone: bool
    request_id: str

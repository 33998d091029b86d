"""Per-date completion document ORM model."""
from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Index, String, func

from fitplan.db.base import Base
from fitplan.db.types import JSONBCompat, UTCDateTime


class CompletionDocument(Base):
    __tablename__ = "daily_completions"
    __table_args__ = (
        Index("ix_daily_completions_user_id", "user_id"),
    )

    user_id = Column(String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    # ISO date-only string, e.g. "2026-10-19".
    date_key = Column(String(10), primary_key=True)
    completed_meal_ids = Column(JSONBCompat, nullable=False, default=list)
    completed_exercise_ids = Column(JSONBCompat, nullable=False, default=list)
    updated_at = Column(UTCDateTime, nullable=False, server_default=func.now())

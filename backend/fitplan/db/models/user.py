"""User root record ORM model."""
from __future__ import annotations

from sqlalchemy import Column, Date, Integer, String, func, text as sa_text

from fitplan.db.base import Base
from fitplan.db.types import UTCDateTime


class User(Base):
    """Root record per authenticated user; streak fields live directly on it."""

    __tablename__ = "users"

    # Opaque identifier issued by the auth provider.
    id = Column(String(128), primary_key=True)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    current_streak = Column(Integer, nullable=False, server_default=sa_text("0"))
    longest_streak = Column(Integer, nullable=False, server_default=sa_text("0"))
    last_completed_date = Column(Date, nullable=True)
    streak_start_date = Column(Date, nullable=True)
    streak_updated_at = Column(UTCDateTime, nullable=True)
    last_active_at = Column(UTCDateTime, nullable=True)

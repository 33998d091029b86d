"""Weekly plan document ORM model."""
from __future__ import annotations

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, func, text as sa_text

from fitplan.db.base import Base
from fitplan.db.types import JSONBCompat, UTCDateTime


class PlanDocument(Base):
    __tablename__ = "weekly_plans"
    __table_args__ = (
        Index("ix_weekly_plans_user_id", "user_id"),
        Index("ix_weekly_plans_user_active_created", "user_id", "is_active", "created_at"),
    )

    id = Column(String(64), primary_key=True)
    user_id = Column(String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=sa_text("false"))
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    archived_at = Column(UTCDateTime, nullable=True)
    # Full serialized plan (camelCase keys); is_active above is authoritative.
    document = Column(JSONBCompat, nullable=False)

"""SQLite tables backing the local cache and the sync outbox."""
from __future__ import annotations

from sqlalchemy import Column, Integer, String, Text, create_engine, func
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from fitplan.db.types import JSONBCompat, UTCDateTime

# Kept apart from the remote schema so Alembic never manages these tables.
LocalBase = declarative_base()


class CacheEntry(LocalBase):
    __tablename__ = "cache_entries"

    key = Column(String(255), primary_key=True)
    value = Column(JSONBCompat, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False, server_default=func.now())


class OutboxEntry(LocalBase):
    __tablename__ = "sync_outbox"

    # Autoincrement id doubles as the FIFO order.
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False, index=True)
    operation = Column(String(64), nullable=False)
    payload = Column(JSONBCompat, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    last_attempt_at = Column(UTCDateTime, nullable=True)


def open_local_store(url: str) -> sessionmaker:
    """Create the local engine, provision tables, and return a session factory."""
    kwargs: dict = {"future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    LocalBase.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

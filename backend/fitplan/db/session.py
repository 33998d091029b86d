"""Engine and session factory for the remote store."""
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from fitplan.core.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    # Bound every remote call: connection setup and waiting on the pool.
    return {
        "pool_pre_ping": True,
        "pool_timeout": settings.remote_timeout_seconds,
        "connect_args": {"connect_timeout": settings.remote_timeout_seconds},
    }


engine = create_engine(settings.database_url, future=True, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

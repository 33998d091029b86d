"""Per-user key -> JSON blob cache with no network dependency.

Every failure here is logged and swallowed: the cache is a convenience copy
and callers must keep working when it is unavailable or corrupt.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import delete, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from fitplan.domain.completion import DailyCompletion
from fitplan.domain.plan import WeeklyPlan
from fitplan.domain.streak import StreakData
from fitplan.storage.local_models import CacheEntry

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def plan_key(user_id: str) -> str:
    return f"plan_{user_id}"


def completion_key(user_id: str, day: date) -> str:
    return f"completion_{user_id}_{day.isoformat()}"


def streak_key(user_id: str) -> str:
    return f"streak_{user_id}"


class LocalCache:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def read(self, key: str) -> Optional[Any]:
        return self._run(f"read {key}", lambda db: _value_of(db.get(CacheEntry, key)), default=None)

    def write(self, key: str, value: Any) -> bool:
        def _write(db: Session) -> bool:
            db.merge(CacheEntry(key=key, value=value, updated_at=datetime.now(timezone.utc)))
            db.commit()
            return True

        return self._run(f"write {key}", _write, default=False)

    def remove(self, key: str) -> bool:
        def _remove(db: Session) -> bool:
            entry = db.get(CacheEntry, key)
            if entry is None:
                return False
            db.delete(entry)
            db.commit()
            return True

        return self._run(f"remove {key}", _remove, default=False)

    def updated_at(self, key: str) -> Optional[datetime]:
        def _updated(db: Session) -> Optional[datetime]:
            entry = db.get(CacheEntry, key)
            return entry.updated_at if entry is not None else None

        return self._run(f"stat {key}", _updated, default=None)

    # Plans

    def get_plan(self, user_id: str) -> Optional[WeeklyPlan]:
        return self._read_model(plan_key(user_id), WeeklyPlan)

    def save_plan(self, plan: WeeklyPlan) -> bool:
        return self.write(plan_key(plan.user_id), plan.to_document())

    def delete_plan(self, user_id: str) -> bool:
        return self.remove(plan_key(user_id))

    def has_cached_plan(self, user_id: str) -> bool:
        return self.read(plan_key(user_id)) is not None

    def get_plan_metadata(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Light summary of the cached plan without validating the whole document."""
        document = self.read(plan_key(user_id))
        if not isinstance(document, dict):
            return None
        cached_at = self.updated_at(plan_key(user_id))
        return {
            "planId": document.get("id"),
            "startDate": document.get("startDate"),
            "createdAt": document.get("createdAt"),
            "cachedAt": cached_at.isoformat() if cached_at else None,
        }

    # Completions

    def get_completion(self, user_id: str, day: date) -> Optional[DailyCompletion]:
        return self._read_model(completion_key(user_id, day), DailyCompletion)

    def save_completion(self, user_id: str, completion: DailyCompletion) -> bool:
        return self.write(completion_key(user_id, completion.date_key), completion.to_document())

    # Streak

    def get_streak(self, user_id: str) -> Optional[StreakData]:
        return self._read_model(streak_key(user_id), StreakData)

    def save_streak(self, user_id: str, streak: StreakData) -> bool:
        return self.write(streak_key(user_id), streak.to_document())

    def clear_user(self, user_id: str) -> int:
        """Remove the plan, streak and every completion cached for ``user_id``."""

        def _clear(db: Session) -> int:
            removed = db.execute(
                delete(CacheEntry).where(
                    or_(
                        CacheEntry.key.in_([plan_key(user_id), streak_key(user_id)]),
                        CacheEntry.key.startswith(f"completion_{user_id}_", autoescape=True),
                    )
                )
            ).rowcount
            db.commit()
            return removed or 0

        return self._run(f"clear {user_id}", _clear, default=0)

    def _read_model(self, key: str, model: type[M]) -> Optional[M]:
        value = self.read(key)
        if value is None:
            return None
        try:
            return model.model_validate(value)
        except ValidationError as exc:
            logger.warning("Discarding corrupt local cache entry %s: %s", key, exc.errors()[0].get("msg"))
            self.remove(key)
            return None

    def _run(self, label: str, operation: Callable[[Session], Any], *, default: Any) -> Any:
        db = self._session_factory()
        try:
            return operation(db)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Local cache %s failed: %s", label, exc)
            return default
        finally:
            db.close()


def _value_of(entry: Optional[CacheEntry]) -> Optional[Any]:
    return entry.value if entry is not None else None

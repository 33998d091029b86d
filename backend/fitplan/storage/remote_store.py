"""Durable per-user store: plan documents, completion documents, streak fields.

Backed by SQLAlchemy (PostgreSQL in production). Database failures are mapped
to ``NetworkError`` / ``SyncError`` so callers can decide between falling back
to the local cache and queueing the write for later.
"""
from __future__ import annotations

import copy
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session, sessionmaker

from fitplan.core.errors import FitPlanError, NetworkError, NetworkErrorKind, SyncError, SyncErrorKind
from fitplan.db.models.completion_document import CompletionDocument
from fitplan.db.models.plan_document import PlanDocument
from fitplan.db.models.user import User
from fitplan.domain.completion import DailyCompletion
from fitplan.domain.plan import DayPlan, WeeklyPlan
from fitplan.domain.streak import StreakData

logger = logging.getLogger(__name__)

PlanListener = Callable[[Optional[WeeklyPlan]], None]

_PERMISSION_DENIED = "42501"
_QUERY_CANCELED = "57014"


def map_store_error(exc: SQLAlchemyError, operation: str) -> FitPlanError:
    """Translate a SQLAlchemy failure into the network/sync taxonomy."""
    pgcode = getattr(getattr(exc, "orig", None), "pgcode", None)
    message = f"Remote {operation} failed: {exc}"
    if isinstance(exc, PoolTimeoutError) or pgcode == _QUERY_CANCELED:
        return NetworkError(NetworkErrorKind.TIMEOUT, message)
    if pgcode == _PERMISSION_DENIED:
        return SyncError(SyncErrorKind.PERMISSION_DENIED, message)
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError)):
        return NetworkError(NetworkErrorKind.NO_CONNECTION, message)
    if isinstance(exc, IntegrityError):
        return SyncError(SyncErrorKind.SYNC_FAILED, message)
    if isinstance(exc, DBAPIError):
        return NetworkError(NetworkErrorKind.SERVER_ERROR, message)
    return SyncError(SyncErrorKind.SYNC_FAILED, message)


def set_field_path(document: Dict[str, Any], path: str, value: Any) -> None:
    """Set ``value`` at a dotted path such as ``days.2.meals.1.isComplete``."""
    parts = path.split(".")
    target: Any = document
    try:
        for part in parts[:-1]:
            target = target[int(part)] if isinstance(target, list) else target[part]
        last = parts[-1]
        if isinstance(target, list):
            target[int(last)] = value
        elif isinstance(target, dict):
            target[last] = value
        else:
            raise TypeError(f"cannot set {last!r} on {type(target).__name__}")
    except (KeyError, IndexError, ValueError, TypeError) as exc:
        raise SyncError(SyncErrorKind.SYNC_FAILED, f"Invalid field path {path!r}: {exc}") from exc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RemoteStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self._listeners: Dict[str, List[PlanListener]] = defaultdict(list)
        self._listeners_lock = threading.Lock()

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Remote %s failed: %s", operation, exc)
            raise map_store_error(exc, operation) from exc
        finally:
            db.close()

    @staticmethod
    def _ensure_user(db: Session, user_id: str) -> User:
        user = db.get(User, user_id)
        if user is None:
            user = User(id=user_id, created_at=_utcnow(), current_streak=0, longest_streak=0)
            db.add(user)
            db.flush()
        return user

    # Plans

    def save_plan(self, plan: WeeklyPlan) -> None:
        """Store ``plan`` as the user's active plan, archiving whichever plan was active."""
        now = _utcnow()
        with self._session("save_plan") as db:
            user = self._ensure_user(db, plan.user_id)
            superseded = db.scalars(
                select(PlanDocument).where(
                    PlanDocument.user_id == plan.user_id,
                    PlanDocument.is_active.is_(True),
                    PlanDocument.id != plan.id,
                )
            ).all()
            for previous in superseded:
                previous.is_active = False
                previous.archived_at = now
                previous.updated_at = now

            row = db.get(PlanDocument, plan.id)
            if row is None:
                row = PlanDocument(id=plan.id, user_id=plan.user_id, created_at=plan.created_at)
                db.add(row)
            elif row.user_id != plan.user_id:
                raise SyncError(SyncErrorKind.PERMISSION_DENIED, f"Plan {plan.id} belongs to another user")
            row.document = plan.to_document()
            row.is_active = True
            row.archived_at = None
            row.updated_at = now
            user.last_active_at = now
            db.commit()
        if superseded:
            logger.info("Archived %s previous plan(s) for user %s", len(superseded), plan.user_id)
        self._notify(plan.user_id)

    def get_active_plan(self, user_id: str) -> Optional[WeeklyPlan]:
        with self._session("get_active_plan") as db:
            row = db.scalars(
                select(PlanDocument)
                .where(PlanDocument.user_id == user_id, PlanDocument.is_active.is_(True))
                .order_by(PlanDocument.created_at.desc())
                .limit(1)
            ).first()
            return _to_plan(row) if row is not None else None

    def get_plan_by_id(self, user_id: str, plan_id: str) -> Optional[WeeklyPlan]:
        with self._session("get_plan_by_id") as db:
            row = db.get(PlanDocument, plan_id)
            if row is None or row.user_id != user_id:
                return None
            return _to_plan(row)

    def list_plans(self, user_id: str, limit: int = 10) -> List[WeeklyPlan]:
        """Active and archived plans, newest first."""
        with self._session("list_plans") as db:
            rows = db.scalars(
                select(PlanDocument)
                .where(PlanDocument.user_id == user_id)
                .order_by(PlanDocument.created_at.desc())
                .limit(limit)
            ).all()
            return [_to_plan(row) for row in rows]

    def update_plan_fields(self, user_id: str, plan_id: str, updates: Dict[str, Any]) -> None:
        """Partial update of individual field paths inside one plan document."""
        with self._session("update_plan_fields") as db:
            row = self._owned_plan_row(db, user_id, plan_id)
            document = copy.deepcopy(row.document)
            for path, value in updates.items():
                set_field_path(document, path, value)
            try:
                WeeklyPlan.model_validate(document)
            except ValidationError as exc:
                raise SyncError(SyncErrorKind.SYNC_FAILED, f"Update would corrupt plan {plan_id}: {exc}") from exc
            row.document = document
            row.updated_at = _utcnow()
            active = bool(row.is_active)
            db.commit()
        if active:
            self._notify(user_id)

    def update_days(self, user_id: str, plan_id: str, days: Dict[int, DayPlan]) -> None:
        self.update_plan_fields(
            user_id,
            plan_id,
            {f"days.{index}": day.to_document() for index, day in days.items()},
        )

    def archive_plan(self, user_id: str, plan_id: str) -> None:
        with self._session("archive_plan") as db:
            row = self._owned_plan_row(db, user_id, plan_id)
            now = _utcnow()
            row.is_active = False
            row.archived_at = now
            row.updated_at = now
            db.commit()
        self._notify(user_id)

    def delete_plan(self, user_id: str, plan_id: str) -> bool:
        with self._session("delete_plan") as db:
            row = db.get(PlanDocument, plan_id)
            if row is None or row.user_id != user_id:
                return False
            db.delete(row)
            db.commit()
        self._notify(user_id)
        return True

    @staticmethod
    def _owned_plan_row(db: Session, user_id: str, plan_id: str) -> PlanDocument:
        row = db.get(PlanDocument, plan_id)
        if row is None or row.user_id != user_id:
            raise NetworkError(NetworkErrorKind.NOT_FOUND, f"Plan {plan_id} not found for user {user_id}")
        return row

    # Live subscriptions

    def subscribe_active_plan(self, user_id: str, listener: PlanListener) -> Callable[[], None]:
        """Call ``listener`` with the active plan now and after every change to it.

        Returns a function that cancels the subscription.
        """
        with self._listeners_lock:
            self._listeners[user_id].append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                listeners = self._listeners.get(user_id)
                if listeners and listener in listeners:
                    listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(user_id, None)

        try:
            current = self.get_active_plan(user_id)
        except FitPlanError:
            unsubscribe()
            raise
        listener(current)
        return unsubscribe

    def _notify(self, user_id: str) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners.get(user_id, []))
        if not listeners:
            return
        plan = self.get_active_plan(user_id)
        for listener in listeners:
            try:
                listener(plan)
            except Exception:
                logger.exception("Active plan listener failed for user %s", user_id)

    # Completions

    def save_completion(self, user_id: str, completion: DailyCompletion, *, only_if_newer: bool = False) -> bool:
        """Upsert the completion document for ``completion.date_key``.

        With ``only_if_newer`` the write is skipped (returns False) when the
        stored document was updated after ``completion.updated_at``.
        """
        key = completion.date_key.isoformat()
        written_at = completion.updated_at or _utcnow()
        with self._session("save_completion") as db:
            self._ensure_user(db, user_id)
            row = db.get(CompletionDocument, (user_id, key))
            if row is None:
                row = CompletionDocument(user_id=user_id, date_key=key)
                db.add(row)
            elif only_if_newer and row.updated_at is not None and row.updated_at > written_at:
                logger.info("Skipping stale completion write for user %s on %s", user_id, key)
                return False
            row.completed_meal_ids = sorted(completion.completed_meal_ids)
            row.completed_exercise_ids = sorted(completion.completed_exercise_ids)
            row.updated_at = written_at
            db.commit()
        return True

    def get_completion(self, user_id: str, day: date) -> Optional[DailyCompletion]:
        with self._session("get_completion") as db:
            row = db.get(CompletionDocument, (user_id, day.isoformat()))
            return _to_completion(row) if row is not None else None

    def get_completions_between(self, user_id: str, start: date, end: date) -> List[DailyCompletion]:
        with self._session("get_completions_between") as db:
            rows = db.scalars(
                select(CompletionDocument)
                .where(
                    CompletionDocument.user_id == user_id,
                    CompletionDocument.date_key >= start.isoformat(),
                    CompletionDocument.date_key <= end.isoformat(),
                )
                .order_by(CompletionDocument.date_key)
            ).all()
            return [_to_completion(row) for row in rows]

    # Streak (stored on the user root record)

    def get_streak(self, user_id: str) -> Optional[StreakData]:
        with self._session("get_streak") as db:
            user = db.get(User, user_id)
            if user is None:
                return None
            return StreakData(
                current_streak=user.current_streak or 0,
                longest_streak=max(user.longest_streak or 0, user.current_streak or 0),
                last_completed_date=user.last_completed_date,
                streak_start_date=user.streak_start_date,
            )

    def save_streak(
        self,
        user_id: str,
        streak: StreakData,
        *,
        written_at: Optional[datetime] = None,
        only_if_newer: bool = False,
    ) -> bool:
        written_at = written_at or _utcnow()
        with self._session("save_streak") as db:
            user = self._ensure_user(db, user_id)
            if only_if_newer and user.streak_updated_at is not None and user.streak_updated_at > written_at:
                logger.info("Skipping stale streak write for user %s", user_id)
                return False
            user.current_streak = streak.current_streak
            user.longest_streak = streak.longest_streak
            user.last_completed_date = streak.last_completed_date
            user.streak_start_date = streak.streak_start_date
            user.streak_updated_at = written_at
            user.last_active_at = _utcnow()
            db.commit()
        return True


def _to_plan(row: PlanDocument) -> WeeklyPlan:
    document = dict(row.document or {})
    document["isActive"] = bool(row.is_active)
    try:
        return WeeklyPlan.model_validate(document)
    except ValidationError as exc:
        raise SyncError(SyncErrorKind.SYNC_FAILED, f"Stored plan {row.id} is invalid: {exc}") from exc


def _to_completion(row: CompletionDocument) -> DailyCompletion:
    return DailyCompletion(
        date_key=date.fromisoformat(row.date_key),
        completed_meal_ids=frozenset(row.completed_meal_ids or []),
        completed_exercise_ids=frozenset(row.completed_exercise_ids or []),
        updated_at=row.updated_at,
    )

"""Durable FIFO of remote writes that still need to reach the remote store."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from fitplan.core.errors import NetworkError, SyncError, SyncErrorKind
from fitplan.storage.local_models import OutboxEntry

logger = logging.getLogger(__name__)


class OutboxOperation:
    SAVE_PLAN = "save_plan"
    UPDATE_PLAN_FIELDS = "update_plan_fields"
    UPDATE_DAYS = "update_days"
    SAVE_COMPLETION = "save_completion"
    SAVE_STREAK = "save_streak"


@dataclass(frozen=True)
class PendingWrite:
    id: int
    user_id: str
    operation: str
    payload: Dict[str, Any]
    attempts: int
    created_at: datetime


class SyncOutbox:
    """Pending remote writes, replayed oldest first by ``SyncService``.

    Entries are dropped once they fail ``max_attempts`` times. ``enqueue``
    raises ``SyncError(queueFull)`` at capacity; storage failures are logged
    and reported through return values.
    """

    def __init__(self, session_factory: sessionmaker, *, max_size: int = 1000, max_attempts: int = 5) -> None:
        self._session_factory = session_factory
        self.max_size = max_size
        self.max_attempts = max_attempts

    def enqueue(self, user_id: str, operation: str, payload: Dict[str, Any]) -> Optional[int]:
        db = self._session_factory()
        try:
            size = db.scalar(select(func.count()).select_from(OutboxEntry)) or 0
            if size >= self.max_size:
                raise SyncError(SyncErrorKind.QUEUE_FULL, f"Sync outbox is at capacity ({self.max_size} entries)")
            entry = OutboxEntry(
                user_id=user_id,
                operation=operation,
                payload=payload,
                attempts=0,
                created_at=datetime.now(timezone.utc),
            )
            db.add(entry)
            db.commit()
            logger.info("Queued %s for user %s (outbox id=%s)", operation, user_id, entry.id)
            return entry.id
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Failed to queue %s for user %s: %s", operation, user_id, exc)
            return None
        finally:
            db.close()

    def write_or_enqueue(
        self,
        user_id: str,
        operation: str,
        payload: Dict[str, Any],
        remote_write: Callable[[], Any],
    ) -> bool:
        """Run ``remote_write`` now, or queue it. Returns True when the remote write succeeded.

        Writes for a user who already has queued entries go straight to the
        queue so they are replayed in order behind the earlier ones.
        """
        if self.size(user_id):
            logger.info("User %s has pending remote writes; queueing %s behind them", user_id, operation)
            self._enqueue_quietly(user_id, operation, payload)
            return False
        try:
            remote_write()
            return True
        except (NetworkError, SyncError) as exc:
            logger.warning("Remote %s failed for user %s (%s); queued for sync", operation, user_id, exc.kind.value)
            self._enqueue_quietly(user_id, operation, payload)
            return False

    def _enqueue_quietly(self, user_id: str, operation: str, payload: Dict[str, Any]) -> None:
        try:
            self.enqueue(user_id, operation, payload)
        except SyncError as exc:
            logger.error("Dropping %s for user %s: %s", operation, user_id, exc.message)

    def pending(self, limit: Optional[int] = None) -> List[PendingWrite]:
        db = self._session_factory()
        try:
            query = select(OutboxEntry).order_by(OutboxEntry.id)
            if limit is not None:
                query = query.limit(limit)
            return [_to_pending(entry) for entry in db.scalars(query)]
        except SQLAlchemyError as exc:
            logger.warning("Failed to read sync outbox: %s", exc)
            return []
        finally:
            db.close()

    def peek(self) -> Optional[PendingWrite]:
        entries = self.pending(limit=1)
        return entries[0] if entries else None

    def size(self, user_id: Optional[str] = None) -> int:
        db = self._session_factory()
        try:
            query = select(func.count()).select_from(OutboxEntry)
            if user_id is not None:
                query = query.where(OutboxEntry.user_id == user_id)
            return db.scalar(query) or 0
        except SQLAlchemyError as exc:
            logger.warning("Failed to count sync outbox: %s", exc)
            return 0
        finally:
            db.close()

    def is_empty(self) -> bool:
        return self.size() == 0

    def mark_completed(self, entry_id: int) -> bool:
        db = self._session_factory()
        try:
            entry = db.get(OutboxEntry, entry_id)
            if entry is None:
                return False
            db.delete(entry)
            db.commit()
            return True
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Failed to remove outbox entry %s: %s", entry_id, exc)
            return False
        finally:
            db.close()

    def mark_attempt_failed(self, entry_id: int, error: str) -> bool:
        """Record a failed attempt. Returns False when the entry was dropped (or is gone)."""
        db = self._session_factory()
        try:
            entry = db.get(OutboxEntry, entry_id)
            if entry is None:
                return False
            entry.attempts = (entry.attempts or 0) + 1
            entry.last_error = error[:2000]
            entry.last_attempt_at = datetime.now(timezone.utc)
            if entry.attempts >= self.max_attempts:
                logger.error(
                    "Dropping outbox entry %s (%s for user %s) after %s attempts: %s",
                    entry.id,
                    entry.operation,
                    entry.user_id,
                    entry.attempts,
                    error,
                )
                db.delete(entry)
                db.commit()
                return False
            db.commit()
            return True
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Failed to record outbox attempt for %s: %s", entry_id, exc)
            return True
        finally:
            db.close()

    def purge_user(self, user_id: str) -> int:
        """Drop every pending write for ``user_id`` (sign-out or account deletion)."""
        db = self._session_factory()
        try:
            removed = db.execute(delete(OutboxEntry).where(OutboxEntry.user_id == user_id)).rowcount or 0
            db.commit()
            if removed:
                logger.info("Purged %s pending outbox entries for user %s", removed, user_id)
            return removed
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Failed to purge outbox for user %s: %s", user_id, exc)
            return 0
        finally:
            db.close()


def _to_pending(entry: OutboxEntry) -> PendingWrite:
    return PendingWrite(
        id=entry.id,
        user_id=entry.user_id,
        operation=entry.operation,
        payload=dict(entry.payload or {}),
        attempts=entry.attempts or 0,
        created_at=entry.created_at,
    )

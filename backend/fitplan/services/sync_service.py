"""Drain the sync outbox into the remote store."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Set

from pydantic import ValidationError

from fitplan.core.errors import FitPlanError, SyncError, SyncErrorKind
from fitplan.domain.completion import DailyCompletion
from fitplan.domain.plan import DayPlan, WeeklyPlan
from fitplan.domain.streak import StreakData
from fitplan.observability.metrics import log_metric
from fitplan.observability.tracing import trace
from fitplan.storage.outbox import OutboxOperation, PendingWrite, SyncOutbox
from fitplan.storage.remote_store import RemoteStore

logger = logging.getLogger(__name__)


class MalformedEntryError(SyncError):
    """A queued payload that can never be replayed."""

    @property
    def is_retryable(self) -> bool:
        return False


@dataclass
class SyncResult:
    success_count: int = 0
    failure_count: int = 0
    dropped_count: int = 0
    skipped_count: int = 0
    is_complete: bool = True
    errors: Dict[int, str] = field(default_factory=dict)


class SyncService:
    """Replays queued writes oldest first.

    A retryable failure holds back the rest of that user's entries until the
    next flush; other users keep syncing. Entries that can never succeed
    (not found, permission denied, malformed) are dropped at once.

    Completion and streak writes only land if nothing newer reached the
    remote store in the meantime. A queued plan is not re-activated over a
    newer active plan.
    """

    def __init__(self, outbox: SyncOutbox, remote_store: RemoteStore) -> None:
        self.outbox = outbox
        self.remote_store = remote_store
        self._lock = threading.Lock()

    def sync_pending_changes(self, limit: Optional[int] = None) -> SyncResult:
        if not self._lock.acquire(blocking=False):
            logger.info("Outbox flush already in progress; skipping")
            return SyncResult(is_complete=False)
        try:
            return self._flush(limit)
        finally:
            self._lock.release()

    def _flush(self, limit: Optional[int]) -> SyncResult:
        result = SyncResult()
        entries = self.outbox.pending(limit)
        if not entries:
            return result

        # A user whose write failed keeps the rest of their entries queued, in order.
        blocked_users: Set[str] = set()
        with trace("sync.flush", metadata={"pending": len(entries)}):
            for entry in entries:
                if entry.user_id in blocked_users:
                    continue
                try:
                    applied = self._apply(entry)
                except FitPlanError as exc:
                    result.failure_count += 1
                    result.errors[entry.id] = f"{exc.kind.value}: {exc.message}"
                    if not exc.is_retryable:
                        self._drop(entry, exc)
                        result.dropped_count += 1
                        continue
                    if not self.outbox.mark_attempt_failed(entry.id, exc.message):
                        result.dropped_count += 1
                    blocked_users.add(entry.user_id)
                    logger.warning(
                        "Sync of outbox entry %s (%s) failed on attempt %s: %s",
                        entry.id,
                        entry.operation,
                        entry.attempts + 1,
                        exc.message,
                    )
                    continue
                self.outbox.mark_completed(entry.id)
                if applied:
                    result.success_count += 1
                else:
                    result.skipped_count += 1

        result.is_complete = self.outbox.is_empty()
        log_metric(
            "sync.flushed",
            result.success_count,
            {"failed": result.failure_count, "dropped": result.dropped_count},
        )
        logger.info(
            "Outbox flush: %s synced, %s skipped as stale, %s failed, %s dropped, complete=%s",
            result.success_count,
            result.skipped_count,
            result.failure_count,
            result.dropped_count,
            result.is_complete,
        )
        return result

    def _drop(self, entry: PendingWrite, exc: FitPlanError) -> None:
        logger.error(
            "Dropping outbox entry %s (%s for user %s); it cannot succeed: %s",
            entry.id,
            entry.operation,
            entry.user_id,
            exc,
        )
        self.outbox.mark_completed(entry.id)

    def _apply(self, entry: PendingWrite) -> bool:
        """Send one queued write. Returns False when it was skipped as stale."""
        payload = entry.payload
        try:
            if entry.operation == OutboxOperation.SAVE_PLAN:
                return self._replay_plan(WeeklyPlan.model_validate(payload["plan"]))
            if entry.operation == OutboxOperation.UPDATE_PLAN_FIELDS:
                self.remote_store.update_plan_fields(entry.user_id, payload["planId"], payload["updates"])
                return True
            if entry.operation == OutboxOperation.UPDATE_DAYS:
                days = {int(index): DayPlan.model_validate(day) for index, day in payload["days"].items()}
                self.remote_store.update_days(entry.user_id, payload["planId"], days)
                return True
            if entry.operation == OutboxOperation.SAVE_COMPLETION:
                completion = DailyCompletion.model_validate(payload["completion"])
                return self.remote_store.save_completion(entry.user_id, completion, only_if_newer=True)
            if entry.operation == OutboxOperation.SAVE_STREAK:
                return self.remote_store.save_streak(
                    entry.user_id,
                    StreakData.model_validate(payload["streak"]),
                    written_at=datetime.fromisoformat(payload["writtenAt"]),
                    only_if_newer=True,
                )
        except (KeyError, ValueError, ValidationError) as exc:
            raise MalformedEntryError(SyncErrorKind.SYNC_FAILED, f"Malformed outbox entry {entry.id}: {exc}") from exc
        raise MalformedEntryError(SyncErrorKind.SYNC_FAILED, f"Unknown outbox operation {entry.operation!r}")

    def _replay_plan(self, plan: WeeklyPlan) -> bool:
        active = self.remote_store.get_active_plan(plan.user_id)
        if active is not None and active.id != plan.id and active.created_at > plan.created_at:
            logger.info("Not re-activating plan %s; newer plan %s is active", plan.id, active.id)
            return False
        self.remote_store.save_plan(plan)
        return True

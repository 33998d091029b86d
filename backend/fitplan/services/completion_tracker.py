"""Per-date completion records, written locally first and mirrored remotely."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from fitplan.core.errors import FitPlanError
from fitplan.domain.completion import DailyCompletion
from fitplan.storage.local_cache import LocalCache
from fitplan.storage.outbox import OutboxOperation, SyncOutbox
from fitplan.storage.remote_store import RemoteStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CompletionTracker:
    def __init__(
        self,
        local_cache: LocalCache,
        remote_store: RemoteStore,
        outbox: SyncOutbox,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.local_cache = local_cache
        self.remote_store = remote_store
        self.outbox = outbox
        self._clock = clock

    def get_completion(self, user_id: str, day: date) -> DailyCompletion:
        """Local record, else the remote one (cached on the way back), else an empty record."""
        cached = self.local_cache.get_completion(user_id, day)
        if cached is not None:
            return cached
        try:
            remote = self.remote_store.get_completion(user_id, day)
        except FitPlanError as exc:
            logger.warning("Remote completion lookup failed for user %s on %s: %s", user_id, day, exc.message)
            return DailyCompletion.empty(day)
        if remote is None:
            return DailyCompletion.empty(day)
        self.local_cache.save_completion(user_id, remote)
        return remote

    def get_completion_range(self, user_id: str, start: date, end: date) -> List[DailyCompletion]:
        """Stored records for ``start``..``end`` inclusive; dates with no record are omitted."""
        by_date: Dict[date, DailyCompletion] = {}
        try:
            for record in self.remote_store.get_completions_between(user_id, start, end):
                by_date[record.date_key] = record
        except FitPlanError as exc:
            logger.warning("Remote completion range failed for user %s: %s", user_id, exc.message)

        day = start
        while day <= end:
            cached = self.local_cache.get_completion(user_id, day)
            if cached is not None and _is_newer(cached, by_date.get(day)):
                by_date[day] = cached
            day += timedelta(days=1)
        return [by_date[key] for key in sorted(by_date)]

    def toggle_meal(self, user_id: str, day: date, meal_id: str) -> DailyCompletion:
        return self._apply(user_id, day, lambda record: record.toggle_meal(meal_id))

    def toggle_exercise(self, user_id: str, day: date, exercise_id: str) -> DailyCompletion:
        return self._apply(user_id, day, lambda record: record.toggle_exercise(exercise_id))

    def mark_meal_complete(self, user_id: str, day: date, meal_id: str) -> DailyCompletion:
        return self._apply(user_id, day, lambda record: record.mark_meal_complete(meal_id))

    def mark_meal_incomplete(self, user_id: str, day: date, meal_id: str) -> DailyCompletion:
        return self._apply(user_id, day, lambda record: record.mark_meal_incomplete(meal_id))

    def mark_exercise_complete(self, user_id: str, day: date, exercise_id: str) -> DailyCompletion:
        return self._apply(user_id, day, lambda record: record.mark_exercise_complete(exercise_id))

    def mark_exercise_incomplete(self, user_id: str, day: date, exercise_id: str) -> DailyCompletion:
        return self._apply(user_id, day, lambda record: record.mark_exercise_incomplete(exercise_id))

    def _apply(
        self,
        user_id: str,
        day: date,
        change: Callable[[DailyCompletion], DailyCompletion],
    ) -> DailyCompletion:
        current = self.get_completion(user_id, day)
        updated = change(current)
        if updated is current:
            return current

        updated = updated.model_copy(update={"updated_at": self._clock()})
        self.local_cache.save_completion(user_id, updated)
        self.outbox.write_or_enqueue(
            user_id,
            OutboxOperation.SAVE_COMPLETION,
            {"completion": updated.to_document()},
            lambda: self.remote_store.save_completion(user_id, updated),
        )
        return updated


def _is_newer(candidate: DailyCompletion, existing: Optional[DailyCompletion]) -> bool:
    if existing is None:
        return True
    if candidate.updated_at is None:
        return False
    return existing.updated_at is None or candidate.updated_at > existing.updated_at

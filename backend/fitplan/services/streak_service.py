"""Streak reads and writes on top of the pure calculator."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, Iterable

from fitplan.core.errors import FitPlanError
from fitplan.domain.streak import StreakData
from fitplan.observability.metrics import log_metric
from fitplan.services.streak_calculator import (
    apply_lazy_reset,
    calculate_streak_after_completion,
    calculate_streak_from_history,
)
from fitplan.storage.local_cache import LocalCache
from fitplan.storage.outbox import OutboxOperation, SyncOutbox
from fitplan.storage.remote_store import RemoteStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StreakService:
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

    def today(self) -> date:
        return self._clock().date()

    def get_streak(self, user_id: str) -> StreakData:
        cached = self.local_cache.get_streak(user_id)
        if cached is not None:
            return cached
        try:
            remote = self.remote_store.get_streak(user_id)
        except FitPlanError as exc:
            logger.warning("Remote streak lookup failed for user %s: %s", user_id, exc.message)
            return StreakData()
        if remote is None:
            return StreakData()
        self.local_cache.save_streak(user_id, remote)
        return remote

    def record_day_completed(self, user_id: str, day: date) -> StreakData:
        """Advance the streak for a fully completed ``day``. Repeats for the same day are no-ops."""
        current = self.get_streak(user_id)
        if current.completed_on(day):
            return current
        updated = calculate_streak_after_completion(current, day)
        if updated == current:
            return current
        self._persist(user_id, updated)
        logger.info(
            "Streak for user %s is now %s (longest %s)",
            user_id,
            updated.current_streak,
            updated.longest_streak,
        )
        if updated.is_at_milestone:
            log_metric("streak.milestone", updated.current_streak, {"user_id": user_id})
        return updated

    def check_and_reset(self, user_id: str, today: date | None = None) -> StreakData:
        """Zero the current streak if the last completion is older than yesterday."""
        current = self.get_streak(user_id)
        updated = apply_lazy_reset(current, today or self.today())
        if updated != current:
            logger.info("Streak for user %s lapsed after %s days", user_id, current.current_streak)
            self._persist(user_id, updated)
        return updated

    def rebuild_from_history(self, user_id: str, completed_dates: Iterable[date], today: date | None = None) -> StreakData:
        """Recompute streak state from scratch, keeping the best longest streak seen so far."""
        rebuilt = calculate_streak_from_history(completed_dates, today or self.today())
        previous = self.get_streak(user_id)
        if previous.longest_streak > rebuilt.longest_streak:
            rebuilt = rebuilt.model_copy(update={"longest_streak": previous.longest_streak})
        if rebuilt != previous:
            self._persist(user_id, rebuilt)
        return rebuilt

    def _persist(self, user_id: str, streak: StreakData) -> None:
        written_at = self._clock()
        self.local_cache.save_streak(user_id, streak)
        self.outbox.write_or_enqueue(
            user_id,
            OutboxOperation.SAVE_STREAK,
            {"streak": streak.to_document(), "writtenAt": written_at.isoformat()},
            lambda: self.remote_store.save_streak(user_id, streak, written_at=written_at),
        )

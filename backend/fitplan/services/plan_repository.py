"""Single entry point for plan lifecycle operations.

Reads go to the local cache first and fall back to the remote store; writes
land in the local cache and are then mirrored remotely, queueing in the sync
outbox whenever the remote store is unreachable. AI-backed operations return
``OperationResult`` instead of raising.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from fitplan.core.errors import AiError, AiErrorKind, FitPlanError
from fitplan.core.result import OperationResult
from fitplan.domain.completion import DailyCompletion
from fitplan.domain.plan import WeeklyPlan, week_start_for
from fitplan.domain.profile import UserProfileSnapshot
from fitplan.domain.streak import StreakData
from fitplan.services.ai.client import AiClient
from fitplan.services.ai.prompt_builder import build_chat_prompt
from fitplan.services.completion_tracker import CompletionTracker
from fitplan.services.plan_generator import PlanGenerator
from fitplan.services.plan_merger import PlanModifier
from fitplan.services.streak_service import StreakService
from fitplan.storage.local_cache import LocalCache
from fitplan.storage.outbox import OutboxOperation, SyncOutbox
from fitplan.storage.remote_store import PlanListener, RemoteStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_plan_id(now: datetime) -> str:
    return f"plan_{int(now.timestamp() * 1000)}"


class PlanRepository:
    def __init__(
        self,
        *,
        ai_client: AiClient,
        generator: PlanGenerator,
        modifier: PlanModifier,
        local_cache: LocalCache,
        remote_store: RemoteStore,
        outbox: SyncOutbox,
        completions: CompletionTracker,
        streaks: StreakService,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.ai_client = ai_client
        self.generator = generator
        self.modifier = modifier
        self.local_cache = local_cache
        self.remote_store = remote_store
        self.outbox = outbox
        self.completions = completions
        self.streaks = streaks
        self._clock = clock

    # Plans

    def generate_plan(self, user_id: str, profile: UserProfileSnapshot) -> OperationResult[WeeklyPlan]:
        now = self._clock()
        plan_id = new_plan_id(now)
        try:
            outcome = self.generator.generate(
                user_id=user_id,
                profile=profile,
                plan_id=plan_id,
                week_start=week_start_for(now.date()),
                created_at=now,
            )
        except AiError as exc:
            return OperationResult.failure(exc)

        self._store_plan(outcome.plan)
        return OperationResult.success(outcome.plan)

    def get_current_plan(self, user_id: str) -> Optional[WeeklyPlan]:
        cached = self.local_cache.get_plan(user_id)
        if cached is not None:
            return cached
        try:
            remote = self.remote_store.get_active_plan(user_id)
        except FitPlanError as exc:
            logger.warning("Remote plan lookup failed for user %s: %s", user_id, exc.message)
            return None
        if remote is not None:
            self.local_cache.save_plan(remote)
        return remote

    def has_active_plan(self, user_id: str) -> bool:
        return self.get_current_plan(user_id) is not None

    def get_plan_history(self, user_id: str, limit: int = 10) -> List[WeeklyPlan]:
        """Newest first. Offline, only the cached current plan is known."""
        try:
            return self.remote_store.list_plans(user_id, limit=limit)
        except FitPlanError as exc:
            logger.warning("Remote plan history failed for user %s: %s", user_id, exc.message)
            cached = self.local_cache.get_plan(user_id)
            return [cached] if cached is not None else []

    def modify_plan(self, user_id: str, request: str) -> OperationResult[WeeklyPlan]:
        plan = self.get_current_plan(user_id)
        if plan is None:
            return OperationResult.failure(AiError(AiErrorKind.INVALID_REQUEST, "No active plan to modify"))
        try:
            outcome = self.modifier.modify(plan, request)
        except AiError as exc:
            return OperationResult.failure(exc)

        self.local_cache.save_plan(outcome.plan)
        changed = {index: outcome.plan.days[index] for index in outcome.changed_days}
        self.outbox.write_or_enqueue(
            user_id,
            OutboxOperation.UPDATE_DAYS,
            {"planId": plan.id, "days": {str(index): day.to_document() for index, day in changed.items()}},
            lambda: self.remote_store.update_days(user_id, plan.id, changed),
        )
        return OperationResult.success(outcome.plan)

    def sync_plan(self, user_id: str) -> bool:
        """Push the cached plan to the remote store. True when it arrived."""
        plan = self.local_cache.get_plan(user_id)
        if plan is None:
            return False
        return self.outbox.write_or_enqueue(
            user_id,
            OutboxOperation.SAVE_PLAN,
            {"plan": plan.to_document()},
            lambda: self.remote_store.save_plan(plan),
        )

    def delete_plan(self, user_id: str, plan_id: str) -> bool:
        """Delete remotely and drop the cached copy if it is that plan. Raises on remote failure."""
        deleted = self.remote_store.delete_plan(user_id, plan_id)
        cached = self.local_cache.get_plan(user_id)
        if cached is not None and cached.id == plan_id:
            self.local_cache.delete_plan(user_id)
        return deleted

    def subscribe_active_plan(self, user_id: str, listener: PlanListener) -> Callable[[], None]:
        """Live updates of the active plan; each update also refreshes the local cache."""

        def _on_change(plan: Optional[WeeklyPlan]) -> None:
            if plan is not None:
                self.local_cache.save_plan(plan)
            listener(plan)

        return self.remote_store.subscribe_active_plan(user_id, _on_change)

    def clear_local_data(self, user_id: str) -> None:
        """Forget everything held on this side for ``user_id``, including unsynced writes."""
        removed_cache = self.local_cache.clear_user(user_id)
        removed_pending = self.outbox.purge_user(user_id)
        logger.info(
            "Cleared local data for user %s (%s cache entries, %s pending writes)",
            user_id,
            removed_cache,
            removed_pending,
        )

    def _store_plan(self, plan: WeeklyPlan) -> None:
        self.local_cache.save_plan(plan)
        self.outbox.write_or_enqueue(
            plan.user_id,
            OutboxOperation.SAVE_PLAN,
            {"plan": plan.to_document()},
            lambda: self.remote_store.save_plan(plan),
        )

    # Completions

    def get_completion(self, user_id: str, day: date) -> DailyCompletion:
        return self.completions.get_completion(user_id, day)

    def get_completion_range(self, user_id: str, start: date, end: date) -> List[DailyCompletion]:
        return self.completions.get_completion_range(user_id, start, end)

    def toggle_meal(self, user_id: str, day: date, meal_id: str) -> DailyCompletion:
        completion = self.completions.toggle_meal(user_id, day, meal_id)
        plan = self.get_current_plan(user_id)
        if plan is not None:
            self._mirror_meal_flag(plan, day, meal_id, completion.is_meal_complete(meal_id))
            self._advance_streak(plan, day, completion)
        return completion

    def toggle_exercise(self, user_id: str, day: date, exercise_id: str) -> DailyCompletion:
        completion = self.completions.toggle_exercise(user_id, day, exercise_id)
        plan = self.get_current_plan(user_id)
        if plan is not None:
            self._mirror_exercise_flag(plan, day, exercise_id, completion.is_exercise_complete(exercise_id))
            self._advance_streak(plan, day, completion)
        return completion

    def _mirror_meal_flag(self, plan: WeeklyPlan, day: date, meal_id: str, is_complete: bool) -> None:
        day_plan = plan.day_for_date(day)
        position = day_plan.meal_position(meal_id) if day_plan is not None else None
        if day_plan is None or position is None:
            logger.debug("Meal %s is not in plan %s on %s; only the completion record changes", meal_id, plan.id, day)
            return
        if day_plan.meals[position].is_complete == is_complete:
            return
        updated = plan.with_meal_completion(day_plan.day_index, position, is_complete)
        self._write_plan_field(updated, f"days.{day_plan.day_index}.meals.{position}.isComplete", is_complete)

    def _mirror_exercise_flag(self, plan: WeeklyPlan, day: date, exercise_id: str, is_complete: bool) -> None:
        day_plan = plan.day_for_date(day)
        position = day_plan.exercise_position(exercise_id) if day_plan is not None else None
        if day_plan is None or position is None:
            logger.debug(
                "Exercise %s is not in plan %s on %s; only the completion record changes", exercise_id, plan.id, day
            )
            return
        if day_plan.exercises[position].is_complete == is_complete:
            return
        updated = plan.with_exercise_completion(day_plan.day_index, position, is_complete)
        path = f"days.{day_plan.day_index}.workout.exercises.{position}.isComplete"
        self._write_plan_field(updated, path, is_complete)

    def _write_plan_field(self, updated: WeeklyPlan, path: str, value: bool) -> None:
        self.local_cache.save_plan(updated)
        self.outbox.write_or_enqueue(
            updated.user_id,
            OutboxOperation.UPDATE_PLAN_FIELDS,
            {"planId": updated.id, "updates": {path: value}},
            lambda: self.remote_store.update_plan_fields(updated.user_id, updated.id, {path: value}),
        )

    def _advance_streak(self, plan: WeeklyPlan, day: date, completion: DailyCompletion) -> None:
        day_plan = plan.day_for_date(day)
        if day_plan is None:
            return
        if completion.is_complete(len(day_plan.meals), len(day_plan.exercises)):
            self.streaks.record_day_completed(plan.user_id, day)

    # Streak

    def get_streak(self, user_id: str) -> StreakData:
        return self.streaks.get_streak(user_id)

    def check_and_reset_streak(self, user_id: str) -> StreakData:
        return self.streaks.check_and_reset(user_id)

    def recalculate_streak(self, user_id: str) -> StreakData:
        """Rebuild the streak from the completion records of every known plan day."""
        plans = self.get_plan_history(user_id, limit=10)
        completed: List[date] = []
        for plan in plans:
            records = {
                record.date_key: record
                for record in self.completions.get_completion_range(user_id, plan.start_date, plan.end_date)
            }
            for day_plan in plan.days:
                record = records.get(day_plan.date)
                if record is not None and record.is_complete(len(day_plan.meals), len(day_plan.exercises)):
                    completed.append(day_plan.date)
        return self.streaks.rebuild_from_history(user_id, completed)

    # Chat

    def send_chat_message(self, user_id: str, message: str) -> OperationResult[str]:
        if not message or not message.strip():
            return OperationResult.failure(AiError(AiErrorKind.INVALID_REQUEST, "Message is empty"))
        plan = self.get_current_plan(user_id)
        try:
            reply = self.ai_client.chat(build_chat_prompt(message, plan), operation="chat")
        except AiError as exc:
            return OperationResult.failure(exc)
        return OperationResult.success(reply.strip())

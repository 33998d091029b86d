"""Shared builders and fakes for the test suite."""
from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fitplan.db.base import Base
from fitplan.db import models  # noqa: F401  ensure models are loaded
from fitplan.domain.plan import DayPlan, Meal, Exercise, WeeklyPlan, Workout
from fitplan.domain.profile import UserProfileSnapshot
from fitplan.services.completion_tracker import CompletionTracker
from fitplan.services.plan_generator import PlanGenerator
from fitplan.services.plan_merger import PlanModifier
from fitplan.services.plan_repository import PlanRepository
from fitplan.services.streak_service import StreakService
from fitplan.storage.local_cache import LocalCache
from fitplan.storage.local_models import open_local_store
from fitplan.storage.outbox import SyncOutbox
from fitplan.storage.remote_store import RemoteStore

WEEK_START = date(2026, 10, 19)  # a Monday
NOW = datetime(2026, 10, 21, 9, 30, tzinfo=timezone.utc)
DEFAULT_TYPES = ("strength", "cardio", "strength", "flexibility", "strength", "cardio", "rest")


def sample_profile(**overrides: Any) -> UserProfileSnapshot:
    values: Dict[str, Any] = {
        "age": 30,
        "weight_kg": 80,
        "height_cm": 180,
        "gender": "female",
        "goal": "muscle_gain",
        "equipment": "home_gym",
        "equipment_details": ["dumbbells", "bench"],
        "dietary_restrictions": ["vegetarian"],
        "fitness_level": "intermediate",
    }
    values.update(overrides)
    return UserProfileSnapshot(**values)


# AI payload builders (camelCase, as the model returns them)


def outline_json(types: Sequence[str] = DEFAULT_TYPES, plan_id: str = "ai_plan") -> str:
    return json.dumps(
        {
            "planId": plan_id,
            "weekStartDate": WEEK_START.isoformat(),
            "dayOutline": [
                {"dayIndex": index, "workoutType": kind, "intensity": "moderate"}
                for index, kind in enumerate(types)
            ],
        }
    )


def day_payload(index: int, kind: str, *, meals: int = 2, exercises: int = 2, tag: str = "") -> Dict[str, Any]:
    workout: Optional[Dict[str, Any]]
    if kind == "rest":
        workout = {"name": "Rest Day", "type": "rest", "durationMinutes": 0, "exercises": []}
    else:
        workout = {
            "name": f"{kind.title()} Session{tag}",
            "type": kind,
            "durationMinutes": 45,
            "exercises": [
                {"name": f"Exercise {index}.{n}{tag}", "sets": 3, "reps": "10-12", "restSeconds": 60}
                for n in range(exercises)
            ],
        }
    return {
        "dayIndex": index,
        "workout": workout,
        "meals": [
            {"name": f"Meal {index}.{n}{tag}", "type": "lunch", "calories": 500.4, "protein": 30, "carbs": 50, "fat": 15}
            for n in range(meals)
        ],
    }


def batch_json(indices: Iterable[int], types: Sequence[str] = DEFAULT_TYPES) -> str:
    return json.dumps({"days": [day_payload(index, types[index]) for index in indices]})


def batched_script(types: Sequence[str] = DEFAULT_TYPES) -> List[str]:
    """Outline plus the three batch replies for a successful batched generation."""
    return [
        outline_json(types),
        batch_json([0, 1, 2], types),
        batch_json([3, 4, 5], types),
        batch_json([6], types),
    ]


def full_plan_json(types: Sequence[str] = DEFAULT_TYPES) -> str:
    return json.dumps({"id": "ai_plan", "days": [day_payload(index, kind) for index, kind in enumerate(types)]})


def modification_json(modification_type: str, days: List[Dict[str, Any]], explanation: str = "") -> str:
    return json.dumps({"modificationType": modification_type, "modifiedDays": days, "explanation": explanation})


# Domain builders


def make_day(plan_id: str, index: int, kind: str, start: date = WEEK_START) -> DayPlan:
    prefix = f"{plan_id}_d{index}"
    exercises = [] if kind == "rest" else [
        Exercise(id=f"{prefix}_ex{n}", name=f"Exercise {n}", sets=3, reps="10") for n in range(2)
    ]
    return DayPlan(
        id=prefix,
        day_index=index,
        date=start + timedelta(days=index),
        workout=Workout(id=f"{prefix}_workout", name=kind.title(), type=kind, duration_minutes=30, exercises=exercises),
        meals=[Meal(id=f"{prefix}_meal{n}", name=f"Meal {n}", calories=400) for n in range(2)],
    )


def make_plan(
    user_id: str = "user-1",
    plan_id: str = "plan_1",
    *,
    start: date = WEEK_START,
    created_at: datetime = NOW,
    types: Sequence[str] = DEFAULT_TYPES,
) -> WeeklyPlan:
    return WeeklyPlan(
        id=plan_id,
        user_id=user_id,
        created_at=created_at,
        start_date=start,
        days=[make_day(plan_id, index, kind, start) for index, kind in enumerate(types)],
        profile_snapshot=sample_profile(),
    )


# Fakes


class ScriptedAi:
    """Stands in for ``AiClient``; replies (or raises) from a script in order."""

    def __init__(self, replies: Optional[List[Union[str, Exception]]] = None, chat_replies=None) -> None:
        self.replies = list(replies or [])
        self.chat_replies = list(chat_replies or [])
        self.prompts: List[str] = []
        self.operations: List[str] = []

    def generate(self, prompt: str, *, operation: str = "ai.generate") -> str:
        return self._next(self.replies, prompt, operation)

    def chat(self, prompt: str, *, operation: str = "ai.chat") -> str:
        return self._next(self.chat_replies, prompt, operation)

    def _next(self, queue: List[Union[str, Exception]], prompt: str, operation: str) -> str:
        self.prompts.append(prompt)
        self.operations.append(operation)
        if not queue:
            raise AssertionError(f"unexpected AI call for {operation}")
        reply = queue.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class SwitchableSessions:
    """Session factory for the remote store that can be taken offline."""

    def __init__(self, online_factory: sessionmaker) -> None:
        self.online = True
        self._online_factory = online_factory
        # sqlite cannot open a file in a missing directory: every query raises OperationalError.
        self._offline_factory = sessionmaker(
            bind=create_engine("sqlite:////nonexistent-fitplan-dir/remote.db", future=True),
            future=True,
        )

    def __call__(self):
        return self._online_factory() if self.online else self._offline_factory()


def remote_sessions() -> sessionmaker:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


class Stores:
    """In-memory local cache, outbox and a remote store that can go offline."""

    def __init__(self, *, max_outbox: int = 1000, max_attempts: int = 5) -> None:
        local_sessions = open_local_store("sqlite://")
        self.local_cache = LocalCache(local_sessions)
        self.outbox = SyncOutbox(local_sessions, max_size=max_outbox, max_attempts=max_attempts)
        self.remote_sessions = SwitchableSessions(remote_sessions())
        self.remote_store = RemoteStore(self.remote_sessions)

    def go_offline(self) -> None:
        self.remote_sessions.online = False

    def go_online(self) -> None:
        self.remote_sessions.online = True


def seed_plan(stores: Stores, plan: Optional[WeeklyPlan] = None) -> WeeklyPlan:
    """Put ``plan`` in both stores, as if it had been generated online."""
    plan = plan or make_plan()
    stores.remote_store.save_plan(plan)
    stores.local_cache.save_plan(plan)
    return plan


def build_repository(
    stores: Stores,
    ai: Optional[ScriptedAi] = None,
    clock: Optional[FakeClock] = None,
) -> PlanRepository:
    ai = ai or ScriptedAi()
    clock = clock or FakeClock()
    return PlanRepository(
        ai_client=ai,
        generator=PlanGenerator(ai),
        modifier=PlanModifier(ai),
        local_cache=stores.local_cache,
        remote_store=stores.remote_store,
        outbox=stores.outbox,
        completions=CompletionTracker(stores.local_cache, stores.remote_store, stores.outbox, clock=clock),
        streaks=StreakService(stores.local_cache, stores.remote_store, stores.outbox, clock=clock),
        clock=clock,
    )

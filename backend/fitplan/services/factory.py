"""Process-wide wiring of stores, AI client and repository.

Each getter is cached so every route and the worker share one rate limiter,
one local store and one sync lock per process.
"""
from __future__ import annotations

import logging
from functools import lru_cache

from openai import OpenAI

from fitplan.core.config import get_settings
from fitplan.services.ai.client import AiClient
from fitplan.services.ai.rate_limiter import RateLimiter
from fitplan.services.ai.retry import RetryPolicy
from fitplan.services.completion_tracker import CompletionTracker
from fitplan.services.plan_generator import PlanGenerator
from fitplan.services.plan_merger import PlanModifier
from fitplan.services.plan_repository import PlanRepository
from fitplan.services.streak_service import StreakService
from fitplan.services.sync_service import SyncService
from fitplan.storage.local_cache import LocalCache
from fitplan.storage.local_models import open_local_store
from fitplan.storage.outbox import SyncOutbox
from fitplan.storage.remote_store import RemoteStore

logger = logging.getLogger(__name__)


@lru_cache
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    return RateLimiter(settings.ai_rate_limit_max_requests, settings.ai_rate_limit_window_seconds)


@lru_cache
def get_ai_client() -> AiClient:
    settings = get_settings()
    openai_client = None
    if settings.openai_api_key:
        openai_client = OpenAI(api_key=settings.openai_api_key, max_retries=0)
    else:
        logger.warning("OPENAI_API_KEY is not set; AI calls will fail with invalidApiKey")
    return AiClient(
        openai_client,
        rate_limiter=get_rate_limiter(),
        retry_policy=RetryPolicy(
            max_attempts=settings.ai_retry_max_attempts,
            base_delay_seconds=settings.ai_retry_base_delay_seconds,
        ),
        model=settings.ai_model,
        temperature=settings.ai_temperature,
        max_output_tokens=settings.ai_max_output_tokens,
        generation_timeout=settings.ai_generation_timeout_seconds,
        chat_timeout=settings.ai_chat_timeout_seconds,
    )


@lru_cache
def _local_sessions():
    return open_local_store(get_settings().local_cache_url)


@lru_cache
def get_local_cache() -> LocalCache:
    return LocalCache(_local_sessions())


@lru_cache
def get_outbox() -> SyncOutbox:
    settings = get_settings()
    return SyncOutbox(
        _local_sessions(),
        max_size=settings.sync_outbox_max_size,
        max_attempts=settings.sync_max_attempts,
    )


@lru_cache
def get_remote_store() -> RemoteStore:
    from fitplan.db.session import SessionLocal

    return RemoteStore(SessionLocal)


@lru_cache
def get_plan_repository() -> PlanRepository:
    ai_client = get_ai_client()
    local_cache = get_local_cache()
    remote_store = get_remote_store()
    outbox = get_outbox()
    return PlanRepository(
        ai_client=ai_client,
        generator=PlanGenerator(ai_client, strategy=get_settings().generation_strategy),
        modifier=PlanModifier(ai_client),
        local_cache=local_cache,
        remote_store=remote_store,
        outbox=outbox,
        completions=CompletionTracker(local_cache, remote_store, outbox),
        streaks=StreakService(local_cache, remote_store, outbox),
    )


@lru_cache
def get_sync_service() -> SyncService:
    return SyncService(get_outbox(), get_remote_store())

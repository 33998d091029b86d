"""Application configuration managed via environment variables."""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "FitPlan Backend"
    debug: bool = False
    log_level: str = "INFO"

    # Remote store (source of truth) and on-device style local cache.
    database_url: str = "postgresql+psycopg2://fitplan@localhost:5432/fitplan"
    remote_timeout_seconds: int = 10
    local_cache_url: str = "sqlite:///./fitplan_cache.db"

    # AI provider
    openai_api_key: str | None = None
    ai_model: str = "gpt-4o"
    ai_temperature: float = 0.7
    ai_max_output_tokens: int = 8192
    ai_generation_timeout_seconds: float = 60.0
    ai_chat_timeout_seconds: float = 30.0
    ai_rate_limit_max_requests: int = 4
    ai_rate_limit_window_seconds: float = 60.0
    ai_retry_max_attempts: int = 3
    ai_retry_base_delay_seconds: float = 2.0
    generation_strategy: Literal["batched", "single_shot"] = "batched"

    # Outbox reconciliation
    sync_max_attempts: int = 5
    sync_outbox_max_size: int = 1000
    sync_batch_limit: int = 100

    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "fitplan"

    scheduler_enabled: bool = False
    scheduler_timezone: str = "UTC"
    sync_interval_minutes: int = 5
    jobs_run_on_startup: bool = False


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()

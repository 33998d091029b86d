"""Centralized logging configuration."""
from __future__ import annotations

import logging
from logging.config import dictConfig

from fitplan.core.context import get_request_id, get_user_id


class RequestContextFilter(logging.Filter):
    """Add request_id and user_id attributes to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        record.user_id = get_user_id() or "-"
        return True


def configure_logging(*, log_level: str = "INFO") -> None:
    """Configure application logging once at startup."""
    if getattr(configure_logging, "_configured", False):
        return

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(user_id)s | %(message)s",
                }
            },
            "filters": {
                "request_context": {
                    "()": "fitplan.core.logging.RequestContextFilter",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": log_level,
                    "filters": ["request_context"],
                }
            },
            "loggers": {
                # SDK request logs are noisy at INFO and duplicate our own AI call logs.
                "httpx": {"level": "WARNING"},
                "openai": {"level": "WARNING"},
                "apscheduler": {"level": "WARNING"},
            },
            "root": {
                "handlers": ["console"],
                "level": log_level,
            },
        }
    )

    logging.getLogger(__name__).debug("Logging configured at %s", log_level)
    setattr(configure_logging, "_configured", True)

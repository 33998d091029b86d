"""Process-wide Opik client used by tracing and metrics.

The API process initializes it on startup and the scheduler worker flushes it
on exit. Every helper is a no-op when the SDK is missing or tracing is off, so
plan generation and sync never depend on Opik being reachable.
"""
from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Optional

from fitplan.core.config import Settings, get_settings

try:
    from opik import Opik
except ImportError:  # pragma: no cover
    Opik = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

_client: Optional[Any] = None
_client_lock = Lock()
_init_attempted = False


def _build_client(config: Settings) -> Optional[Any]:
    if not config.opik_enabled:
        logger.debug("Opik tracing disabled; plan traces and sync metrics are dropped.")
        return None

    if not config.opik_api_key:
        logger.warning("OPIK_ENABLED is true but OPIK_API_KEY is missing; skipping Opik init.")
        return None

    try:
        client = Opik(project_name=config.opik_project, api_key=config.opik_api_key)
    except Exception as exc:  # pragma: no cover - SDK constructor may reach the network
        logger.warning("Failed to initialize Opik, tracing will be disabled: %s", exc)
        return None

    logger.info("Opik enabled (project=%s).", config.opik_project)
    return client


def init_opik(config: Optional[Settings] = None) -> Optional[Any]:
    """Initialize the Opik client once and return it.

    Only the first call in a process builds a client; later calls return
    whatever that attempt produced until ``shutdown_opik`` resets the state.
    """
    global _client, _init_attempted

    if Opik is None:
        return None

    with _client_lock:
        if _client is not None or _init_attempted:
            return _client
        _init_attempted = True
        _client = _build_client(config or get_settings())
        return _client


def get_opik_client() -> Optional[Any]:
    """Return the cached Opik client if tracing is enabled."""
    if _client is not None:
        return _client
    return init_opik()


def set_opik_client(client: Optional[Any]) -> None:
    """Install an already-built client, e.g. one shared with a worker."""
    global _client, _init_attempted

    with _client_lock:
        _client = client
        _init_attempted = True


def shutdown_opik() -> None:
    """Flush buffered traces and forget the client so it can be re-initialized."""
    global _client, _init_attempted

    with _client_lock:
        client = _client
        _client = None
        _init_attempted = False

    if client is None:
        return
    try:
        client.flush()
    except Exception:  # pragma: no cover - best effort on shutdown
        logger.debug("Opik flush on shutdown failed", exc_info=True)

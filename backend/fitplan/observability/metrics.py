"""Lightweight metrics helpers."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Dict, Iterator, Optional

from fitplan.observability.client import get_opik_client

logger = logging.getLogger(__name__)


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Log a metric to Opik if it is enabled."""
    client = get_opik_client()
    if not client:
        return

    payload: Dict[str, Any] = {"value": value}
    if metadata:
        payload.update(metadata)

    try:
        metric_trace = client.trace(name=f"metric:{name}", metadata=payload)
        metric_trace.end()
    except Exception as exc:  # pragma: no cover - metrics must not break callers
        logger.debug("Unable to record metric %s: %s", name, exc)


@contextmanager
def timed(name: str, metadata: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
    """Record ``<name>.latency_ms`` plus ``<name>.success`` or ``<name>.failure``.

    The yielded dict is merged into the metric metadata, so callers can attach
    values discovered while the block runs.
    """
    extra: Dict[str, Any] = dict(metadata or {})
    start = perf_counter()
    try:
        yield extra
    except Exception as exc:
        kind = getattr(exc, "kind", None)
        if kind is not None:
            extra.setdefault("error_kind", getattr(kind, "value", str(kind)))
        log_metric(f"{name}.failure", 1, metadata=extra)
        raise
    else:
        log_metric(f"{name}.success", 1, metadata=extra)
    finally:
        log_metric(f"{name}.latency_ms", (perf_counter() - start) * 1000, metadata=extra)

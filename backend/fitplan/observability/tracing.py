"""Tracing utilities wrapping Opik."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

from fitplan.core.context import get_request_id, get_user_id
from fitplan.observability.client import get_opik_client

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from opik.api_objects.trace.trace_client import Trace
else:  # pragma: no cover - typing helper
    Trace = object  # type: ignore[assignment]

logger = logging.getLogger(__name__)


@contextmanager
def trace(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Iterator[Optional["Trace"]]:
    """
    Create an Opik trace context manager.

    Request and user ids fall back to the ones bound to the current request
    context. When Opik is disabled or unavailable the context is a no-op.
    Errors carrying a ``kind`` (see ``fitplan.core.errors``) are tagged with it.
    """
    client = get_opik_client()
    opik_trace: Optional["Trace"] = None

    if client:
        trace_metadata = dict(metadata or {})
        user_id = user_id or get_user_id()
        request_id = request_id or get_request_id()
        if user_id:
            trace_metadata.setdefault("user_id", str(user_id))
        if request_id:
            trace_metadata.setdefault("request_id", request_id)
        try:
            opik_trace = client.trace(name=name, metadata=trace_metadata or None)
        except Exception as exc:  # pragma: no cover - tracing must not break callers
            logger.debug("Unable to start Opik trace %s: %s", name, exc)
            opik_trace = None

    try:
        yield opik_trace
    except Exception as exc:
        if opik_trace:
            error_info: Dict[str, Any] = {"message": str(exc), "exception_type": type(exc).__name__}
            kind = getattr(exc, "kind", None)
            if kind is not None:
                error_info["kind"] = getattr(kind, "value", str(kind))
            try:
                opik_trace.update(error_info=error_info)
            except Exception:  # pragma: no cover
                logger.debug("Failed to attach error info to Opik trace %s", name, exc_info=True)
        raise
    finally:
        if opik_trace:
            try:
                opik_trace.end()
            except Exception:  # pragma: no cover
                logger.debug("Failed to close Opik trace %s cleanly", name, exc_info=True)

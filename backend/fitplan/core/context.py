"""Per-request context utilities."""
from __future__ import annotations

from contextvars import ContextVar

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_ctx_var: ContextVar[str | None] = ContextVar("user_id", default=None)


def get_request_id() -> str | None:
    """Return the current request id if available."""
    return request_id_ctx_var.get()


def get_user_id() -> str | None:
    """Return the opaque authenticated user id bound to the current request."""
    return user_id_ctx_var.get()

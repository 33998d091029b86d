"""Custom FastAPI middleware."""
from __future__ import annotations

from typing import Callable
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from fitplan.core.context import request_id_ctx_var, user_id_ctx_var

USER_ID_HEADER = "X-User-Id"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request id and caller identity to request.state and the logging context."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Response]) -> Response:  # type: ignore[override]
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        user_id = request.headers.get(USER_ID_HEADER) or None
        request.state.request_id = request_id
        request.state.user_id = user_id
        request_token = request_id_ctx_var.set(request_id)
        user_token = user_id_ctx_var.set(user_id)

        try:
            response = await call_next(request)
        finally:
            user_id_ctx_var.reset(user_token)
            request_id_ctx_var.reset(request_token)

        response.headers["X-Request-Id"] = request_id
        return response

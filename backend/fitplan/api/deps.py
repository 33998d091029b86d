"""Request-scoped dependencies and error translation shared by the routers."""
from __future__ import annotations

from fastapi import HTTPException, Request, status

from fitplan.core.errors import AiError, AiErrorKind, FitPlanError, NetworkError, NetworkErrorKind, SyncError

_AI_STATUS = {
    AiErrorKind.INVALID_REQUEST: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AiErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    AiErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}


def get_user_id(request: Request) -> str:
    """Caller identity bound by ``RequestContextMiddleware`` from the ``X-User-Id`` header."""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return user_id


def http_error_for(exc: FitPlanError) -> HTTPException:
    if isinstance(exc, AiError):
        code = _AI_STATUS.get(exc.kind, status.HTTP_502_BAD_GATEWAY)
    elif isinstance(exc, NetworkError) and exc.kind == NetworkErrorKind.NOT_FOUND:
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (NetworkError, SyncError)):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=exc.to_dict())

"""Typed error taxonomy shared by the AI, storage, and sync layers."""
from __future__ import annotations

from enum import Enum
from typing import Optional


class FitPlanError(Exception):
    """Base class for errors that carry a kind and a user-facing message."""

    kind: Enum

    def __init__(self, kind: Enum, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def is_retryable(self) -> bool:
        return False

    @property
    def user_message(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "kind": self.kind.value,
            "message": self.user_message,
            "retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.kind.value}): {self.message}"


class AiErrorKind(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rateLimited"
    NETWORK_ERROR = "networkError"
    INVALID_API_KEY = "invalidApiKey"
    INVALID_RESPONSE = "invalidResponse"
    PARSE_ERROR = "parseError"
    CONTENT_FILTERED = "contentFiltered"
    INVALID_REQUEST = "invalidRequest"
    UNKNOWN = "unknown"


RETRYABLE_AI_KINDS = frozenset({AiErrorKind.TIMEOUT, AiErrorKind.RATE_LIMITED, AiErrorKind.NETWORK_ERROR})

_AI_USER_MESSAGES = {
    AiErrorKind.TIMEOUT: "The request timed out. Please try again.",
    AiErrorKind.RATE_LIMITED: "Our AI is taking a short break. Please wait a moment.",
    AiErrorKind.NETWORK_ERROR: "Connection lost. Please check your internet.",
    AiErrorKind.INVALID_API_KEY: "Configuration error. Please contact support.",
    AiErrorKind.INVALID_RESPONSE: "Unable to generate a valid plan. Please try again.",
    AiErrorKind.PARSE_ERROR: "Couldn't understand the AI response. Please try again.",
    AiErrorKind.CONTENT_FILTERED: "Unable to generate this content. Please try different parameters.",
    AiErrorKind.INVALID_REQUEST: (
        "This type of modification is not supported. Try changing specific days or meals instead."
    ),
    AiErrorKind.UNKNOWN: "Something went wrong with AI generation. Please try again.",
}


class AiError(FitPlanError):
    """Failure raised by the AI client, validator, orchestrator, or merger."""

    kind: AiErrorKind

    def __init__(self, kind: AiErrorKind, message: str, *, explanation: Optional[str] = None) -> None:
        super().__init__(kind, message)
        self.explanation = explanation

    @property
    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_AI_KINDS

    @property
    def user_message(self) -> str:
        # A rejected modification surfaces the AI's own explanation.
        if self.kind is AiErrorKind.INVALID_REQUEST and self.explanation:
            return self.explanation
        return _AI_USER_MESSAGES[self.kind]


class NetworkErrorKind(str, Enum):
    NO_CONNECTION = "noConnection"
    SERVER_ERROR = "serverError"
    TIMEOUT = "timeout"
    NOT_FOUND = "notFound"


_NETWORK_USER_MESSAGES = {
    NetworkErrorKind.NO_CONNECTION: "No connection to the server. Your changes are saved locally.",
    NetworkErrorKind.SERVER_ERROR: "Server error. Please try again later.",
    NetworkErrorKind.TIMEOUT: "Request timed out. Please try again.",
    NetworkErrorKind.NOT_FOUND: "Requested resource not found.",
}


class NetworkError(FitPlanError):
    """Remote store could not be reached or answered with a failure."""

    kind: NetworkErrorKind

    def __init__(self, kind: NetworkErrorKind, message: str) -> None:
        super().__init__(kind, message)

    @property
    def is_retryable(self) -> bool:
        return self.kind is not NetworkErrorKind.NOT_FOUND

    @property
    def user_message(self) -> str:
        return _NETWORK_USER_MESSAGES[self.kind]


class SyncErrorKind(str, Enum):
    PERMISSION_DENIED = "permissionDenied"
    SYNC_FAILED = "syncFailed"
    QUEUE_FULL = "queueFull"


_SYNC_USER_MESSAGES = {
    SyncErrorKind.PERMISSION_DENIED: "Permission denied. Please check your account.",
    SyncErrorKind.SYNC_FAILED: "Sync failed. Will retry when online.",
    SyncErrorKind.QUEUE_FULL: "Too many pending changes. Syncing...",
}


class SyncError(FitPlanError):
    """Remote store rejected a write or the outbox could not accept more work."""

    kind: SyncErrorKind

    def __init__(self, kind: SyncErrorKind, message: str) -> None:
        super().__init__(kind, message)

    @property
    def is_retryable(self) -> bool:
        return self.kind is not SyncErrorKind.PERMISSION_DENIED

    @property
    def user_message(self) -> str:
        return _SYNC_USER_MESSAGES[self.kind]

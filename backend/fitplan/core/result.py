"""Explicit success/failure results returned across service boundaries."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from fitplan.core.errors import AiError

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[AiError] = None

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AiError) -> "OperationResult[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

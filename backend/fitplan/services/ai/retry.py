"""Exponential-backoff retry policy for AI calls."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from fitplan.core.errors import AiError
from fitplan.observability.metrics import log_metric

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry retryable ``AiError`` kinds with delays of 0s, base, base*2, ...

    With the defaults an operation is attempted at most 3 times, waiting 2s
    before the second attempt and 4s before the third.
    """

    max_attempts: int = 3
    base_delay_seconds: float = 2.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait before ``attempt`` (1-indexed)."""
        if attempt <= 1:
            return 0.0
        return self.base_delay_seconds * (2 ** (attempt - 2))

    def run(self, operation: Callable[[], T], *, operation_name: str = "ai.call") -> T:
        last_error: Optional[AiError] = None
        for attempt in range(1, self.max_attempts + 1):
            delay = self.delay_for(attempt)
            if delay:
                logger.warning(
                    "Retrying %s (attempt %s/%s) in %.1fs after %s",
                    operation_name,
                    attempt,
                    self.max_attempts,
                    delay,
                    last_error.kind.value if last_error else "error",
                )
                log_metric("ai.retry", attempt, metadata={"operation": operation_name, "delay_s": delay})
                self.sleep(delay)
            try:
                return operation()
            except AiError as exc:
                last_error = exc
                if not exc.is_retryable:
                    raise
                if attempt == self.max_attempts:
                    logger.error(
                        "%s failed after %s attempts: %s",
                        operation_name,
                        attempt,
                        exc,
                    )
                    raise
        raise AssertionError("unreachable")  # pragma: no cover

"""Sliding-window limiter shared by every outbound AI call."""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque

logger = logging.getLogger(__name__)


class RateLimiter:
    """Allow at most ``max_requests`` acquisitions per rolling ``window_seconds``.

    ``acquire`` blocks until a slot frees up; it never fails. The lock is only
    held while the window is inspected, so other callers can query the limiter
    while one is waiting. The clock and sleep functions are injectable so tests
    can drive time explicitly.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: Deque[float] = deque()
        self._lock = threading.Lock()

    def acquire(self) -> float:
        """Take a slot, waiting if necessary. Returns the seconds spent waiting."""
        waited = 0.0
        while True:
            with self._lock:
                now = self._clock()
                self._evict(now)
                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(now)
                    break
                delay = self._timestamps[0] + self.window_seconds - now
            logger.debug(
                "AI rate limit reached (%s/%ss); waiting %.2fs",
                self.max_requests,
                self.window_seconds,
                delay,
            )
            # The lock is released while sleeping; the slot is re-checked after.
            self._sleep(delay)
            waited += delay
        if waited:
            logger.info("AI rate limit slot acquired after %.2fs", waited)
        return waited

    def remaining(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return self.max_requests - len(self._timestamps)

    def seconds_until_available(self) -> float:
        with self._lock:
            now = self._clock()
            self._evict(now)
            if len(self._timestamps) < self.max_requests:
                return 0.0
            return max(0.0, self._timestamps[0] + self.window_seconds - now)

    def reset(self) -> None:
        with self._lock:
            self._timestamps.clear()

    def _evict(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

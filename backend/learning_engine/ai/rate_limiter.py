"""
Adaptive Learning Engine - AI Rate Limiter
Sliding one-minute window guarding calls to the AI provider
"""
import time
from collections import deque
from typing import Callable

from learning_engine.core.errors import RateLimitedError


class SlidingWindowRateLimiter:
    """Allows at most `requests_per_minute` acquisitions in any 60 second window."""

    WINDOW_SECONDS = 60.0

    def __init__(self, requests_per_minute: int, clock: Callable[[], float] = time.monotonic):
        self.requests_per_minute = requests_per_minute
        self._clock = clock
        self._calls: deque[float] = deque()

    def _evict(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.WINDOW_SECONDS:
            self._calls.popleft()

    def remaining(self) -> int:
        self._evict(self._clock())
        return max(0, self.requests_per_minute - len(self._calls))

    def acquire(self) -> None:
        """Record a call, or raise RateLimitedError with the wait until a slot frees up."""
        now = self._clock()
        self._evict(now)
        if len(self._calls) >= self.requests_per_minute:
            oldest = self._calls[0] if self._calls else now
            retry_after = self.WINDOW_SECONDS - (now - oldest)
            raise RateLimitedError(
                f"AI request limit of {self.requests_per_minute}/min reached",
                retry_after=round(retry_after, 2),
            )
        self._calls.append(now)

from __future__ import annotations

import math
import time
from collections import defaultdict, deque


class SimpleRateLimiter:
    """Sliding-window attempt counter kept in process memory.

    Keys are caller-chosen strings (an IP, or IP plus login identifier).
    """

    def __init__(self, *, max_events: int, window_seconds: int, clock=time.monotonic) -> None:
        self.max_events = max_events
        self.window_seconds = window_seconds
        self._clock = clock
        self._attempts: dict[str, deque[float]] = defaultdict(deque)

    def _live(self, key: str, now: float) -> deque[float]:
        attempts = self._attempts[key]
        while attempts and attempts[0] <= now - self.window_seconds:
            attempts.popleft()
        return attempts

    def allow(self, key: str) -> bool:
        now = self._clock()
        attempts = self._live(key, now)
        if len(attempts) >= self.max_events:
            return False
        attempts.append(now)
        return True

    def retry_after(self, key: str) -> int:
        """Whole seconds until ``key`` may try again; 0 when it already may."""
        now = self._clock()
        attempts = self._live(key, now)
        if len(attempts) < self.max_events:
            return 0
        return max(1, math.ceil(attempts[0] + self.window_seconds - now))

    def reset(self) -> None:
        self._attempts.clear()

"""Rate limiting for progress emissions."""

from __future__ import annotations

import time
from typing import Callable, Optional


class ProgressThrottle:
    """Allow at most one emission per ``interval_seconds``; the first is always allowed."""

    def __init__(self, interval_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._last_emit: Optional[float] = None
        self.suppressed = 0

    def should_emit(self, *, force: bool = False) -> bool:
        now = self._clock()
        if force or self._last_emit is None or now - self._last_emit >= self.interval_seconds:
            self._last_emit = now
            return True
        self.suppressed += 1
        return False

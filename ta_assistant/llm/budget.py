"""Per-minute allowance for outbound analysis calls."""
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional

from ta_assistant.config import LLM_CALLS_PER_MIN

WINDOW_SECONDS = 60.0


class LLMBudget:
    """
    Rate limiter for analysis backend calls.

    Keeps the start time of every call in the last minute, so a burst at the
    end of one minute still counts against the start of the next. A refused
    caller can read ``retry_after`` to tell the user when to try again.
    """

    def __init__(self, calls_per_min: int, clock: Callable[[], float] = time.monotonic):
        self.calls_per_min = max(1, int(calls_per_min))
        self.clock = clock
        self.lock = threading.Lock()
        self.recent: Deque[float] = deque()
        self.refused = 0
        self.last_error: Optional[str] = None

    def _expire(self, now: float):
        while self.recent and now - self.recent[0] >= WINDOW_SECONDS:
            self.recent.popleft()

    def acquire(self) -> bool:
        """True and one call recorded, or False when the minute is used up."""
        with self.lock:
            now = self.clock()
            self._expire(now)
            if len(self.recent) >= self.calls_per_min:
                self.refused += 1
                return False
            self.recent.append(now)
            return True

    def retry_after(self) -> float:
        """Seconds until the next call would be allowed (0 when one is free)."""
        with self.lock:
            now = self.clock()
            self._expire(now)
            if len(self.recent) < self.calls_per_min:
                return 0.0
            return max(0.0, WINDOW_SECONDS - (now - self.recent[0]))

    def stats(self) -> Dict[str, Any]:
        retry = self.retry_after()
        with self.lock:
            return {
                "calls_used": len(self.recent),
                "calls_budget": self.calls_per_min,
                "calls_refused": self.refused,
                "retry_after": round(retry, 1),
                "last_error": self.last_error,
            }


LLM_BUDGET = LLMBudget(LLM_CALLS_PER_MIN)

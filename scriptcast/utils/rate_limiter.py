"""Rate Limiter - throttles stock-footage API calls to stay within provider limits."""

import time
from collections import defaultdict
from threading import Lock
from typing import Optional


class RateLimiter:
    """Thread-safe sliding-window rate limiter."""

    def __init__(
        self,
        max_calls: int = 200,
        time_window: float = 3600.0,
    ):
        """
        Initialize rate limiter.

        Args:
            max_calls: Maximum number of calls allowed in time_window
            time_window: Time window in seconds (default: one hour)
        """
        self.max_calls = max_calls
        self.time_window = time_window
        self.calls = defaultdict(list)
        self.lock = Lock()

    def wait_if_needed(self, endpoint: str = "default") -> float:
        """
        Block until a call to ``endpoint`` is allowed, then record it.

        Args:
            endpoint: Endpoint identifier (for per-endpoint limiting)

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        with self.lock:
            now = time.time()
            calls = self.calls[endpoint]
            calls[:] = [call_time for call_time in calls if now - call_time < self.time_window]

            if len(calls) >= self.max_calls:
                wait_time = (calls[0] + self.time_window) - now
                if wait_time > 0:
                    time.sleep(wait_time)
                    waited = wait_time
                    now = time.time()
                    calls[:] = [call_time for call_time in calls if now - call_time < self.time_window]

            calls.append(now)
        return waited

    def can_proceed(self, endpoint: str = "default") -> bool:
        """Check if a call can proceed without waiting."""
        with self.lock:
            now = time.time()
            calls = self.calls[endpoint]
            calls[:] = [call_time for call_time in calls if now - call_time < self.time_window]
            return len(calls) < self.max_calls


_pexels_limiter: Optional[RateLimiter] = None


def get_pexels_limiter(max_calls: int = 200, time_window: float = 3600.0) -> RateLimiter:
    """Get or create the Pexels rate limiter."""
    global _pexels_limiter
    if _pexels_limiter is None:
        _pexels_limiter = RateLimiter(max_calls=max_calls, time_window=time_window)
    return _pexels_limiter

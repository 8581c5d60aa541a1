from __future__ import annotations

import threading
import time


class RateLimiter:
    """Thread-safe fixed-interval gate based on requests per minute.

    Calling acquire() blocks the current thread until at least
    60 / max_requests_per_minute seconds have passed since the previous
    call through this limiter, whichever worker made it. No bursts."""

    def __init__(self, max_requests_per_minute: int) -> None:
        if max_requests_per_minute < 1:
            raise ValueError("max_requests_per_minute must be at least 1")
        self._interval = 60.0 / max_requests_per_minute
        self._lock = threading.Lock()
        self._last_call: float | None = None

    @property
    def min_interval(self) -> float:
        return self._interval

    def acquire(self) -> None:
        """Block until the next call is permitted under the per-minute limit."""
        with self._lock:
            now = time.monotonic()
            if self._last_call is not None:
                elapsed = now - self._last_call
                if elapsed < self._interval:
                    time.sleep(self._interval - elapsed)
            self._last_call = time.monotonic()

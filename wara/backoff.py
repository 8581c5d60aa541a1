from __future__ import annotations

import random


class BackoffStrategy:
    """Exponential backoff with jitter for retry delays.

    The first wait is the initial delay; each following wait is
    previous * 2 plus a random jitter, capped at a configurable maximum.
    All values are in seconds."""

    def __init__(
        self,
        max_seconds: float = 30.0,
        jitter_min_seconds: float = 0.5,
        jitter_max_seconds: float = 1.0,
    ) -> None:
        if jitter_min_seconds < 0 or jitter_max_seconds < jitter_min_seconds:
            raise ValueError("jitter range must satisfy 0 <= min <= max")
        self._max = max_seconds
        self._jitter_min = jitter_min_seconds
        self._jitter_max = jitter_max_seconds

    def next_delay(self, current: float) -> float:
        """Calculate the wait that follows a wait of ``current`` seconds."""
        jitter = random.uniform(self._jitter_min, self._jitter_max)
        return min(current * 2 + jitter, self._max)

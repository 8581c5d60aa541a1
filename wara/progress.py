from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class ProgressCounts:
    total: int
    processed: int
    succeeded: int
    failed: int


class ProgressTracker:
    """Processed/succeeded/failed counters shared by all workers.

    Every update happens under one lock; the optional callback receives a
    consistent copy of the counters and runs outside the lock."""

    def __init__(self, total: int, on_update: Optional[Callable[[ProgressCounts], None]] = None) -> None:
        self._lock = threading.Lock()
        self._total = total
        self._processed = 0
        self._succeeded = 0
        self._failed = 0
        self._on_update = on_update

    def record(self, succeeded: bool) -> ProgressCounts:
        with self._lock:
            self._processed += 1
            if succeeded:
                self._succeeded += 1
            else:
                self._failed += 1
            counts = ProgressCounts(self._total, self._processed, self._succeeded, self._failed)
        if self._on_update:
            self._on_update(counts)
        return counts

    def counts(self) -> ProgressCounts:
        with self._lock:
            return ProgressCounts(self._total, self._processed, self._succeeded, self._failed)

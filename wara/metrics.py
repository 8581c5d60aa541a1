from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Deque, List, Optional

from .models import CallEvent, MetricsSnapshot


class MetricsCollector:
    """Thread-safe collector for outbound call metrics.

    Records one CallEvent per call attempt and produces aggregated
    MetricsSnapshot objects over a sliding time window."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._events: Deque[tuple[float, CallEvent]] = deque(maxlen=10000)

    def record_event(self, event: CallEvent) -> None:
        """Record a call attempt with the current timestamp."""
        with self._lock:
            self._events.append((time.time(), event))

    def snapshot(self, window_secs: Optional[int] = None) -> MetricsSnapshot:
        """Return aggregated metrics for the last window_secs seconds (all events if None)."""
        now = time.time()
        cutoff = now - window_secs if window_secs is not None else float("-inf")
        with self._lock:
            events: List[CallEvent] = [e for ts, e in self._events if ts >= cutoff]
        total = len(events)
        success_count = sum(1 for e in events if e.success)
        transient_count = sum(1 for e in events if not e.success and e.transient)
        fatal_count = sum(1 for e in events if not e.success and not e.transient)
        http_429_count = sum(1 for e in events if e.status_code == 429)
        timeout_count = sum(1 for e in events if e.error_type is not None and "Timeout" in e.error_type)
        avg_latency_ms = (sum(e.latency_ms for e in events) / total) if total else 0.0

        return MetricsSnapshot(
            window_secs=window_secs if window_secs is not None else 0,
            total_calls=total,
            success_count=success_count,
            transient_error_count=transient_count,
            fatal_error_count=fatal_count,
            http_429_count=http_429_count,
            timeout_count=timeout_count,
            avg_latency_ms=avg_latency_ms,
            timestamp=now,
        )

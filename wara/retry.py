from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

import requests

from .backoff import BackoffStrategy
from .errors import FatalCallError, RetryExhaustedError, TransientCallError, UnitTimeoutError
from .metrics import MetricsCollector
from .models import CallEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """Return True for throttling, server-side and timeout failures.

    Authorization, validation and not-found failures are fatal, as is
    anything not recognised here.
    """
    if isinstance(exc, FatalCallError):
        return False
    if isinstance(exc, TransientCallError):
        return True
    if isinstance(exc, (TimeoutError, requests.Timeout)):
        return True
    status = _status_code(exc)
    if status is not None:
        return status == 429 or 500 <= status < 600
    return False


def _status_code(exc: BaseException) -> Optional[int]:
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(exc, "status_code", None)
    return int(status) if isinstance(status, int) else None


class RetryPolicy:
    """Runs a callable, retrying transient failures with exponential backoff.

    Retry state (attempt count and next delay) lives in a single execute()
    call, so one policy can be shared by every worker.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay_ms: int = 1000,
        backoff: Optional[BackoffStrategy] = None,
        metrics: Optional[MetricsCollector] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._max_attempts = max_attempts
        self._initial_delay_ms = initial_delay_ms
        self._backoff = backoff or BackoffStrategy()
        self._metrics = metrics
        self._sleep = sleep

    def execute(
        self,
        fn: Callable[[], T],
        max_attempts: Optional[int] = None,
        initial_delay_ms: Optional[int] = None,
        deadline: Optional[float] = None,
        unit_id: str = "",
    ) -> T:
        """Call ``fn`` until it succeeds, fails fatally, or attempts run out.

        ``deadline`` is a ``time.monotonic()`` value; a backoff wait that
        would pass it raises UnitTimeoutError instead of sleeping.
        """
        max_attempts = max_attempts or self._max_attempts
        delay = (initial_delay_ms if initial_delay_ms is not None else self._initial_delay_ms) / 1000.0
        attempt = 0
        while True:
            attempt += 1
            start = time.monotonic()
            try:
                result = fn()
            except Exception as exc:  # noqa: BLE001
                transient = is_transient(exc)
                self._record(unit_id, attempt, start, exc, transient)
                if not transient:
                    raise
                if attempt >= max_attempts:
                    raise RetryExhaustedError(attempt, exc) from exc

                wait = delay
                retry_after = getattr(exc, "retry_after", None)
                if isinstance(retry_after, (int, float)) and retry_after > wait:
                    wait = retry_after
                if deadline is not None and time.monotonic() + wait > deadline:
                    raise UnitTimeoutError(
                        f"deadline reached while backing off after attempt {attempt}: {exc}"
                    ) from exc

                logger.info(
                    "unit %s attempt %d/%d failed with %s, retrying in %.2fs",
                    unit_id or "-", attempt, max_attempts, type(exc).__name__, wait,
                )
                self._sleep(wait)
                delay = self._backoff.next_delay(delay)
                continue

            self._record(unit_id, attempt, start, None, False)
            return result

    def _record(
        self,
        unit_id: str,
        attempt: int,
        start: float,
        exc: Optional[BaseException],
        transient: bool,
    ) -> None:
        if not self._metrics:
            return
        self._metrics.record_event(
            CallEvent(
                unit_id=unit_id,
                attempt=attempt,
                success=exc is None,
                transient=transient,
                status_code=_status_code(exc) if exc is not None else None,
                latency_ms=int((time.monotonic() - start) * 1000),
                error_type=type(exc).__name__ if exc is not None else None,
            )
        )

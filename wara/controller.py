from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from .models import JobResult, JobStatus, Unit
from .progress import ProgressCounts, ProgressTracker

logger = logging.getLogger(__name__)

UnitWork = Callable[[Unit], Optional[str]]


class UnitScheduler:
    """Runs one job per unit on a bounded pool of worker threads.

    Workers claim units in order from a shared cursor; completion order is
    not guaranteed, but results come back in the order the units were given.
    A failing unit is recorded as Failed and never stops its siblings.
    """

    def __init__(
        self,
        max_parallelism: int = 1,
        parallel_enabled: bool = True,
        delay_between_units_ms: int = 0,
        on_progress: Optional[Callable[[ProgressCounts], None]] = None,
        on_result: Optional[Callable[[JobResult], None]] = None,
    ) -> None:
        self._max_parallelism = max(1, int(max_parallelism))
        self._parallel_enabled = parallel_enabled
        self._delay = max(0, delay_between_units_ms) / 1000.0
        self._on_progress = on_progress
        self._on_result = on_result

        self._lock = threading.Lock()
        self._cv = threading.Condition(self._lock)
        self._cancelled = threading.Event()
        self._running = 0
        self._peak_running = 0
        self._next_index = 0

    def cancel(self) -> None:
        """Stop claiming new units; units already running finish normally."""
        self._cancelled.set()
        with self._cv:
            self._cv.notify_all()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def running(self) -> int:
        with self._cv:
            return self._running

    @property
    def peak_running(self) -> int:
        with self._cv:
            return self._peak_running

    def run(self, units: Sequence[Unit], work: UnitWork) -> List[JobResult]:
        """Process ``units`` and return one JobResult per started unit, in input order."""
        units = list(units)
        results: List[Optional[JobResult]] = [None] * len(units)
        progress = ProgressTracker(len(units), self._on_progress)
        with self._cv:
            self._next_index = 0

        workers = self.worker_count(len(units))
        if workers <= 1:
            logger.info("processing %d units sequentially", len(units))
            self._worker(units, results, work, progress)
        else:
            logger.info("processing %d units with %d workers", len(units), workers)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="wara-unit") as executor:
                futures = [
                    executor.submit(self._worker, units, results, work, progress)
                    for _ in range(workers)
                ]
                for fut in futures:
                    fut.result()

        started = [r for r in results if r is not None]
        if len(started) < len(units):
            logger.warning("run cancelled: %d of %d units were not started", len(units) - len(started), len(units))
        return started

    def worker_count(self, unit_count: int) -> int:
        if not self._parallel_enabled or self._max_parallelism <= 1 or unit_count <= 1:
            return 1
        return min(self._max_parallelism, unit_count)

    def _claim(self, count: int) -> Optional[int]:
        with self._cv:
            if self._cancelled.is_set() or self._next_index >= count:
                return None
            index = self._next_index
            self._next_index += 1
            return index

    def _has_unclaimed(self, count: int) -> bool:
        with self._cv:
            return self._next_index < count

    def _worker(
        self,
        units: List[Unit],
        results: List[Optional[JobResult]],
        work: UnitWork,
        progress: ProgressTracker,
    ) -> None:
        while True:
            index = self._claim(len(units))
            if index is None:
                return
            results[index] = self._process(units[index], work, progress)

            if self._delay > 0 and self._has_unclaimed(len(units)):
                # Returns early when the run is cancelled.
                self._cancelled.wait(self._delay)

    def _process(self, unit: Unit, work: UnitWork, progress: ProgressTracker) -> JobResult:
        result = JobResult.for_unit(unit)
        with self._cv:
            result.mark_running()
            self._running += 1
            self._peak_running = max(self._peak_running, self._running)

        try:
            output = work(unit)
        except Exception as exc:  # noqa: BLE001
            result.mark_failed(f"{type(exc).__name__}: {exc}")
            logger.debug("unit %s failed", unit.unit_id, exc_info=True)
        else:
            result.mark_succeeded(output)
        finally:
            with self._cv:
                self._running = max(0, self._running - 1)
                self._cv.notify_all()

        counts = progress.record(result.status is JobStatus.SUCCEEDED)
        logger.info(
            json.dumps(
                {
                    "unit_id": result.unit_id,
                    "unit_name": result.unit_name,
                    "status": result.status.value,
                    "duration_seconds": result.duration_seconds,
                    "error": result.error_detail,
                    "processed": counts.processed,
                    "total": counts.total,
                },
                ensure_ascii=False,
            )
        )
        if self._on_result:
            self._on_result(result)
        return result

"""Tenant-wide assessment run.

Enumerates the tenant's units, keeps the ones in scope, drops the ones an
interrupted run already covered, collects each remaining unit on a bounded
worker pool (every call rate-limited and retried) and writes one run
summary. Only enumeration and configuration errors abort the run.
"""
from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import asdict
from typing import Callable, Iterator, List, Optional

from .aggregator import aggregate
from .backoff import BackoffStrategy
from .base import BaseCollector
from .config import AssessmentConfig
from .controller import UnitScheduler
from .errors import AggregationError, UnitTimeoutError
from .filters import select_units
from .metrics import MetricsCollector
from .models import Unit, RunSummary
from .progress import ProgressCounts
from .rate_limiter import RateLimiter
from .resume import apply_resume
from .retry import RetryPolicy
from .storage import JsonlStorage, JsonSummaryStorage

logger = logging.getLogger(__name__)

JOURNAL_FILENAME = "unit_results.jsonl"


@contextlib.contextmanager
def derived_unit_config(unit: Unit, config: AssessmentConfig) -> Iterator[str]:
    """Write a temporary collector input scoped to ``unit``; removed on exit."""
    fd, path = tempfile.mkstemp(prefix=f"wara_{unit.unit_id}_", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "tenantId": config.tenant_id,
                    "unitId": unit.unit_id,
                    "unitName": unit.name,
                    "tags": unit.tags,
                    "outputDirectory": config.output_directory,
                },
                f,
            )
        yield path
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.remove(path)


def unique_units(units: List[Unit]) -> List[Unit]:
    """Keep the first occurrence of each unit id, ignoring case."""
    seen = set()
    unique: List[Unit] = []
    for unit in units:
        key = unit.unit_id.casefold()
        if key in seen:
            logger.warning("duplicate unit id %s (%s) ignored", unit.unit_id, unit.name)
            continue
        seen.add(key)
        unique.append(unit)
    return unique


class AssessmentOrchestrator:
    """Runs one assessment over every in-scope unit of a tenant."""

    def __init__(
        self,
        config: AssessmentConfig,
        collector: BaseCollector,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        metrics: Optional[MetricsCollector] = None,
        summary_storage: Optional[JsonSummaryStorage] = None,
        on_progress: Optional[Callable[[ProgressCounts], None]] = None,
    ) -> None:
        self._config = config
        self._collector = collector
        self._metrics = metrics or MetricsCollector()
        self._rate_limiter = rate_limiter or RateLimiter(config.rate_limiting.max_requests_per_minute)
        self._retry = retry_policy or RetryPolicy(
            max_attempts=config.retry.max_attempts,
            initial_delay_ms=config.retry.initial_delay_ms,
            backoff=BackoffStrategy(
                max_seconds=config.retry.max_delay_ms / 1000.0,
                jitter_min_seconds=config.retry.jitter_min_ms / 1000.0,
                jitter_max_seconds=config.retry.jitter_max_ms / 1000.0,
            ),
            metrics=self._metrics,
        )
        self._summary_storage = summary_storage or JsonSummaryStorage(config.output_directory)
        self._on_progress = on_progress
        self._scheduler: Optional[UnitScheduler] = None
        self._cancel_requested = False

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def scheduler(self) -> Optional[UnitScheduler]:
        return self._scheduler

    def cancel(self) -> None:
        """Stop starting new units; running units finish and are reported."""
        self._cancel_requested = True
        if self._scheduler is not None:
            self._scheduler.cancel()

    def plan(self, resume_from: Optional[str] = None) -> List[Unit]:
        """Enumerate, filter and apply the resume point; raises on enumeration errors."""
        units = unique_units(list(self._collector.list_units(self._config.tenant_id)))
        selected = select_units(units, self._config.filter_criteria)
        logger.info("%d of %d units are in scope", len(selected), len(units))
        return apply_resume(selected, resume_from)

    def run(self, resume_from: Optional[str] = None) -> RunSummary:
        os.makedirs(self._config.output_directory, exist_ok=True)
        units = self.plan(resume_from)

        parallelism = self._config.parallelism
        journal = JsonlStorage(os.path.join(self._config.output_directory, JOURNAL_FILENAME))
        self._scheduler = UnitScheduler(
            max_parallelism=parallelism.max_degree_of_parallelism,
            parallel_enabled=parallelism.enabled,
            delay_between_units_ms=self._config.rate_limiting.delay_between_units_ms,
            on_progress=self._on_progress,
            on_result=journal.write,
        )
        if self._cancel_requested:
            self._scheduler.cancel()

        try:
            results = self._scheduler.run(units, self._process_unit)
        finally:
            journal.close()

        summary = aggregate(results, units)
        try:
            path = self._summary_storage.write(summary)
            logger.info("run summary written to %s", path)
        except AggregationError as exc:
            logger.error("%s", exc)

        logger.info(
            "run finished: %d units, %d succeeded, %d failed",
            summary.total_units, summary.succeeded_count, summary.failed_count,
        )
        logger.info("call metrics: %s", json.dumps(asdict(self._metrics.snapshot())))
        return summary

    def _process_unit(self, unit: Unit) -> Optional[str]:
        timeout = self._config.unit_timeout
        deadline = time.monotonic() + timeout if timeout is not None else None

        with derived_unit_config(unit, self._config) as derived_path:

            def attempt() -> str:
                self._rate_limiter.acquire()
                return self._call(unit, derived_path, deadline)

            return self._retry.execute(
                attempt,
                max_attempts=self._config.retry.max_attempts,
                initial_delay_ms=self._config.retry.initial_delay_ms,
                deadline=deadline,
                unit_id=unit.unit_id,
            )

    def _call(self, unit: Unit, derived_path: str, deadline: Optional[float]) -> str:
        if deadline is None:
            return self._collector.collect_unit(unit, derived_path)

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise UnitTimeoutError(f"unit {unit.unit_id} exceeded its {self._config.unit_timeout:g}s deadline")
        # Each attempt gets its own daemon thread, so a call abandoned at its
        # deadline never holds capacity other units wait on.
        call = _AttemptThread(self._collector.collect_unit, unit, derived_path)
        call.start()
        call.join(timeout=remaining)
        if call.is_alive():
            logger.warning("unit %s: abandoning call still running at its deadline", unit.unit_id)
            raise UnitTimeoutError(f"unit {unit.unit_id} exceeded its {self._config.unit_timeout:g}s deadline")
        if call.error is not None:
            raise call.error
        return call.result


class _AttemptThread(threading.Thread):
    """Runs one collector call, keeping its return value or exception."""

    def __init__(self, fn: Callable[..., str], *args) -> None:
        super().__init__(name="wara-call", daemon=True)
        self._fn = fn
        self._args = args
        self.result: Optional[str] = None
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            self.result = self._fn(*self._args)
        except BaseException as exc:  # noqa: BLE001
            self.error = exc

"""Tests for the UnitScheduler class."""

import threading
import time
import unittest

from wara.controller import UnitScheduler
from wara.errors import FatalCallError
from wara.models import JobStatus, Unit


def _units(n):
    return [Unit(unit_id=f"u{i}", name=f"unit-{i}") for i in range(n)]


class ConcurrencyProbe:
    """Work function that tracks how many calls overlap."""

    def __init__(self, duration=0.02, fail_ids=()):
        self.duration = duration
        self.fail_ids = set(fail_ids)
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0
        self.order = []

    def __call__(self, unit):
        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.order.append(unit.unit_id)
        try:
            time.sleep(self.duration)
            if unit.unit_id in self.fail_ids:
                raise FatalCallError(f"{unit.unit_id} is broken")
            return f"out/{unit.unit_id}.json"
        finally:
            with self.lock:
                self.active -= 1


class TestSequential(unittest.TestCase):

    def test_disabled_parallelism_runs_in_order(self):
        probe = ConcurrencyProbe(duration=0)
        scheduler = UnitScheduler(max_parallelism=5, parallel_enabled=False)
        results = scheduler.run(_units(4), probe)
        self.assertEqual(probe.order, ["u0", "u1", "u2", "u3"])
        self.assertEqual(probe.peak, 1)
        self.assertTrue(all(r.status is JobStatus.SUCCEEDED for r in results))

    def test_worker_count(self):
        self.assertEqual(UnitScheduler(max_parallelism=1).worker_count(10), 1)
        self.assertEqual(UnitScheduler(max_parallelism=4).worker_count(1), 1)
        self.assertEqual(UnitScheduler(max_parallelism=4, parallel_enabled=False).worker_count(10), 1)
        self.assertEqual(UnitScheduler(max_parallelism=4).worker_count(10), 4)
        self.assertEqual(UnitScheduler(max_parallelism=8).worker_count(3), 3)


class TestParallel(unittest.TestCase):

    def test_never_more_than_max_parallelism_running(self):
        """With parallelism 3 and 10 units, at most 3 jobs are Running at once."""
        probe = ConcurrencyProbe(duration=0.03)
        scheduler = UnitScheduler(max_parallelism=3)
        results = scheduler.run(_units(10), probe)
        self.assertEqual(len(results), 10)
        self.assertLessEqual(probe.peak, 3)
        self.assertLessEqual(scheduler.peak_running, 3)
        self.assertGreater(scheduler.peak_running, 1)
        self.assertEqual(scheduler.running, 0)

    def test_results_follow_input_order(self):
        probe = ConcurrencyProbe(duration=0.01)
        results = UnitScheduler(max_parallelism=4).run(_units(8), probe)
        self.assertEqual([r.unit_id for r in results], [f"u{i}" for i in range(8)])

    def test_failures_are_isolated(self):
        """A failing unit does not stop its siblings."""
        probe = ConcurrencyProbe(duration=0.01, fail_ids={"u2", "u5"})
        results = UnitScheduler(max_parallelism=3).run(_units(6), probe)
        by_id = {r.unit_id: r for r in results}
        self.assertEqual(by_id["u2"].status, JobStatus.FAILED)
        self.assertIn("FatalCallError: u2 is broken", by_id["u2"].error_detail)
        self.assertEqual(by_id["u5"].status, JobStatus.FAILED)
        succeeded = [r for r in results if r.status is JobStatus.SUCCEEDED]
        self.assertEqual(len(succeeded), 4)
        self.assertEqual(by_id["u0"].output_reference, "out/u0.json")

    def test_progress_and_result_callbacks(self):
        updates = []
        finished = []
        scheduler = UnitScheduler(
            max_parallelism=2,
            on_progress=updates.append,
            on_result=finished.append,
        )
        scheduler.run(_units(5), ConcurrencyProbe(duration=0.005, fail_ids={"u1"}))
        self.assertEqual(len(updates), 5)
        self.assertEqual(max(u.processed for u in updates), 5)
        final = max(updates, key=lambda u: u.processed)
        self.assertEqual((final.succeeded, final.failed), (4, 1))
        self.assertEqual(len(finished), 5)
        self.assertTrue(all(r.status.is_terminal for r in finished))


class TestPacingAndCancellation(unittest.TestCase):

    def test_delay_between_units(self):
        scheduler = UnitScheduler(max_parallelism=1, delay_between_units_ms=50)
        start = time.monotonic()
        scheduler.run(_units(3), ConcurrencyProbe(duration=0))
        # Two pauses: no pause is needed after the last unit.
        self.assertGreaterEqual(time.monotonic() - start, 0.09)

    def test_cancel_stops_claiming_new_units(self):
        scheduler = UnitScheduler(max_parallelism=2)
        started = []

        def work(unit):
            started.append(unit.unit_id)
            if len(started) == 2:
                scheduler.cancel()
            time.sleep(0.02)
            return "ok"

        results = scheduler.run(_units(10), work)
        self.assertTrue(scheduler.cancelled)
        self.assertLess(len(results), 10)
        # Units already running when cancel arrived still finish and are reported.
        self.assertEqual(sorted(r.unit_id for r in results), sorted(started))
        self.assertTrue(all(r.status is JobStatus.SUCCEEDED for r in results))

    def test_cancel_interrupts_pacing_delay(self):
        scheduler = UnitScheduler(max_parallelism=1, delay_between_units_ms=5000)

        def work(unit):
            scheduler.cancel()
            return "ok"

        start = time.monotonic()
        results = scheduler.run(_units(3), work)
        self.assertLess(time.monotonic() - start, 1.0)
        self.assertEqual(len(results), 1)


if __name__ == "__main__":
    unittest.main()

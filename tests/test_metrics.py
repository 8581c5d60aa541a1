"""Tests for the MetricsCollector class."""

import unittest

from wara.metrics import MetricsCollector
from wara.models import CallEvent


def _make_event(**overrides) -> CallEvent:
    """Helper to build a CallEvent with sensible defaults."""
    defaults = dict(
        unit_id="sub-1",
        attempt=1,
        success=True,
        transient=False,
        status_code=None,
        latency_ms=100,
        error_type=None,
    )
    defaults.update(overrides)
    return CallEvent(**defaults)


class TestMetricsCollector(unittest.TestCase):
    """Verify metrics recording and snapshot aggregation."""

    def test_empty_snapshot(self):
        """Snapshot with no events should have all zeros."""
        metrics = MetricsCollector()
        snap = metrics.snapshot(window_secs=30)
        self.assertEqual(snap.total_calls, 0)
        self.assertEqual(snap.success_count, 0)
        self.assertEqual(snap.avg_latency_ms, 0.0)

    def test_records_success(self):
        metrics = MetricsCollector()
        metrics.record_event(_make_event())
        metrics.record_event(_make_event(attempt=2))
        snap = metrics.snapshot(window_secs=30)
        self.assertEqual(snap.total_calls, 2)
        self.assertEqual(snap.success_count, 2)

    def test_records_errors(self):
        """Error events should be categorized correctly."""
        metrics = MetricsCollector()
        metrics.record_event(_make_event(success=False, transient=True, status_code=429, error_type="TransientCallError"))
        metrics.record_event(_make_event(success=False, transient=True, error_type="Timeout"))
        metrics.record_event(_make_event(success=False, transient=False, status_code=403, error_type="FatalCallError"))
        snap = metrics.snapshot()
        self.assertEqual(snap.total_calls, 3)
        self.assertEqual(snap.http_429_count, 1)
        self.assertEqual(snap.timeout_count, 1)
        self.assertEqual(snap.transient_error_count, 2)
        self.assertEqual(snap.fatal_error_count, 1)

    def test_average_latency(self):
        metrics = MetricsCollector()
        metrics.record_event(_make_event(latency_ms=100))
        metrics.record_event(_make_event(latency_ms=200))
        snap = metrics.snapshot(window_secs=30)
        self.assertAlmostEqual(snap.avg_latency_ms, 150.0)


if __name__ == "__main__":
    unittest.main()

"""Tests for the RateLimiter class."""

import threading
import time
import unittest

from wara.rate_limiter import RateLimiter

# Scheduler slack when comparing timestamps taken after acquire() returns.
TOLERANCE = 0.005


class TestRateLimiter(unittest.TestCase):
    """Verify that the rate limiter spaces calls correctly."""

    def test_interval_derived_from_requests_per_minute(self):
        self.assertAlmostEqual(RateLimiter(max_requests_per_minute=60).min_interval, 1.0)
        self.assertAlmostEqual(RateLimiter(max_requests_per_minute=600).min_interval, 0.1)

    def test_acquire_does_not_block_first_call(self):
        """The first acquire() call should return almost immediately."""
        limiter = RateLimiter(max_requests_per_minute=1)
        start = time.monotonic()
        limiter.acquire()
        elapsed = time.monotonic() - start
        self.assertLess(elapsed, 0.05)

    def test_consecutive_calls_are_spaced(self):
        """Five or more sequential calls are never closer than 60/R seconds."""
        limiter = RateLimiter(max_requests_per_minute=1200)  # 50ms
        stamps = []
        for _ in range(6):
            limiter.acquire()
            stamps.append(time.monotonic())
        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        for gap in gaps:
            self.assertGreaterEqual(gap, limiter.min_interval - TOLERANCE)

    def test_spacing_holds_across_threads(self):
        """Calls from different workers share one gate."""
        limiter = RateLimiter(max_requests_per_minute=1200)  # 50ms
        stamps = []
        stamps_lock = threading.Lock()

        def worker():
            for _ in range(2):
                limiter.acquire()
                with stamps_lock:
                    stamps.append(time.monotonic())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stamps.sort()
        self.assertEqual(len(stamps), 8)
        for a, b in zip(stamps, stamps[1:]):
            self.assertGreaterEqual(b - a, limiter.min_interval - TOLERANCE)

    def test_rejects_zero_requests_per_minute(self):
        with self.assertRaises(ValueError):
            RateLimiter(max_requests_per_minute=0)


if __name__ == "__main__":
    unittest.main()

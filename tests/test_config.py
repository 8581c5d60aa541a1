"""Tests for configuration loading and validation."""

import json
import os
import tempfile
import unittest

from wara.config import AssessmentConfig, ParallelismConfig, RateLimitingConfig, load_config
from wara.errors import ConfigError, FilterConfigError

FULL_CONFIG = {
    "tenantId": "00000000-0000-0000-0000-000000000001",
    "outputDirectory": "out",
    "filterCriteria": {
        "includedUnits": [],
        "excludedUnits": ["legacy-sub"],
        "includedTags": {"env": "prod"},
        "excludedTags": {},
    },
    "parallelism": {"enabled": True, "maxDegreeOfParallelism": 8},
    "rateLimiting": {"delayBetweenUnitsMs": 250, "maxRequestsPerMinute": 120},
    "retry": {"maxAttempts": 5, "initialDelayMs": 200},
    "unitTimeoutSeconds": 0,
}


class TestAssessmentConfig(unittest.TestCase):

    def test_from_dict(self):
        config = AssessmentConfig.from_dict(FULL_CONFIG)
        self.assertEqual(config.tenant_id, "00000000-0000-0000-0000-000000000001")
        self.assertEqual(config.output_directory, "out")
        self.assertEqual(config.filter_criteria.excluded_units, frozenset({"legacy-sub"}))
        self.assertEqual(config.filter_criteria.included_tags, {"env": "prod"})
        self.assertEqual(config.parallelism.max_degree_of_parallelism, 8)
        self.assertEqual(config.rate_limiting.delay_between_units_ms, 250)
        self.assertEqual(config.rate_limiting.max_requests_per_minute, 120)
        self.assertEqual(config.retry.max_attempts, 5)
        self.assertEqual(config.retry.initial_delay_ms, 200)
        self.assertEqual(config.retry.max_delay_ms, 30000)
        self.assertIsNone(config.unit_timeout)

    def test_defaults(self):
        config = AssessmentConfig.from_dict({"tenantId": "t"})
        self.assertTrue(config.parallelism.enabled)
        self.assertEqual(config.rate_limiting.max_requests_per_minute, 60)
        self.assertEqual(config.unit_timeout, 3600.0)

    def test_tenant_is_required(self):
        with self.assertRaises(ConfigError):
            AssessmentConfig.from_dict({"outputDirectory": "out"})

    def test_parallelism_bounds(self):
        for bad in (0, 21, "4", True):
            with self.assertRaises(ConfigError):
                ParallelismConfig(max_degree_of_parallelism=bad)
        self.assertEqual(ParallelismConfig(max_degree_of_parallelism=20).max_degree_of_parallelism, 20)

    def test_rate_limiting_bounds(self):
        with self.assertRaises(ConfigError):
            RateLimitingConfig(max_requests_per_minute=0)
        with self.assertRaises(ConfigError):
            RateLimitingConfig(delay_between_units_ms=-1)

    def test_bad_filter_criteria(self):
        data = dict(FULL_CONFIG, filterCriteria={"includedTags": ["env"]})
        with self.assertRaises(FilterConfigError):
            AssessmentConfig.from_dict(data)

    def test_throttle_override(self):
        config = AssessmentConfig.from_dict(FULL_CONFIG).with_overrides(throttle_limit=2)
        self.assertEqual(config.parallelism.max_degree_of_parallelism, 2)
        with self.assertRaises(ConfigError):
            AssessmentConfig.from_dict(FULL_CONFIG).with_overrides(throttle_limit=50)


class TestLoadConfig(unittest.TestCase):

    def test_load_from_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump(FULL_CONFIG, f)
            self.assertEqual(load_config(path).parallelism.max_degree_of_parallelism, 8)

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            load_config("/nonexistent/config.json")

    def test_invalid_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            with open(path, "w", encoding="utf-8") as f:
                f.write("{not json")
            with self.assertRaises(ConfigError):
                load_config(path)


if __name__ == "__main__":
    unittest.main()

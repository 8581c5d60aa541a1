"""Run configuration with validation.

The configuration file is JSON with camelCase keys::

    {
      "tenantId": "...",
      "outputDirectory": "./output",
      "filterCriteria": {"includedUnits": [], "excludedUnits": [],
                         "includedTags": {}, "excludedTags": {}},
      "parallelism": {"enabled": true, "maxDegreeOfParallelism": 4},
      "rateLimiting": {"delayBetweenUnitsMs": 0, "maxRequestsPerMinute": 60},
      "retry": {"maxAttempts": 3, "initialDelayMs": 1000, "maxDelayMs": 30000,
                "jitterMinMs": 500, "jitterMaxMs": 1000},
      "unitTimeoutSeconds": 3600
    }
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from .errors import ConfigError
from .filters import criteria_from_dict
from .models import FilterCriteria

MAX_PARALLELISM = 20


@dataclass(frozen=True)
class ParallelismConfig:
    enabled: bool = True
    max_degree_of_parallelism: int = 4

    def __post_init__(self) -> None:
        if not isinstance(self.enabled, bool):
            raise ConfigError("parallelism.enabled must be true or false")
        if not _is_int(self.max_degree_of_parallelism) or not 1 <= self.max_degree_of_parallelism <= MAX_PARALLELISM:
            raise ConfigError(f"parallelism.maxDegreeOfParallelism must be between 1 and {MAX_PARALLELISM}")


@dataclass(frozen=True)
class RateLimitingConfig:
    delay_between_units_ms: int = 0
    max_requests_per_minute: int = 60

    def __post_init__(self) -> None:
        if not _is_int(self.delay_between_units_ms) or self.delay_between_units_ms < 0:
            raise ConfigError("rateLimiting.delayBetweenUnitsMs must be a non-negative integer")
        if not _is_int(self.max_requests_per_minute) or self.max_requests_per_minute < 1:
            raise ConfigError("rateLimiting.maxRequestsPerMinute must be at least 1")


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 30000
    jitter_min_ms: int = 500
    jitter_max_ms: int = 1000

    def __post_init__(self) -> None:
        if not _is_int(self.max_attempts) or self.max_attempts < 1:
            raise ConfigError("retry.maxAttempts must be at least 1")
        for name in ("initial_delay_ms", "max_delay_ms", "jitter_min_ms", "jitter_max_ms"):
            value = getattr(self, name)
            if not _is_int(value) or value < 0:
                raise ConfigError(f"retry.{name} must be a non-negative integer")
        if self.jitter_max_ms < self.jitter_min_ms:
            raise ConfigError("retry.jitterMaxMs must not be below retry.jitterMinMs")


@dataclass(frozen=True)
class AssessmentConfig:
    """Everything the orchestrator needs for one tenant-wide run."""

    tenant_id: str
    output_directory: str = "output"
    filter_criteria: FilterCriteria = field(default_factory=FilterCriteria)
    parallelism: ParallelismConfig = field(default_factory=ParallelismConfig)
    rate_limiting: RateLimitingConfig = field(default_factory=RateLimitingConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    # 0 disables the per-unit deadline.
    unit_timeout_seconds: float = 3600

    def __post_init__(self) -> None:
        if not isinstance(self.tenant_id, str) or not self.tenant_id.strip():
            raise ConfigError("tenantId is required")
        if not isinstance(self.output_directory, str) or not self.output_directory.strip():
            raise ConfigError("outputDirectory must be a non-empty path")
        if not isinstance(self.unit_timeout_seconds, (int, float)) or self.unit_timeout_seconds < 0:
            raise ConfigError("unitTimeoutSeconds must be a non-negative number")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssessmentConfig":
        """Create configuration from the parsed camelCase JSON document."""
        if not isinstance(data, dict):
            raise ConfigError("configuration must be a JSON object")

        parallelism = _section(data, "parallelism")
        rate_limiting = _section(data, "rateLimiting")
        retry = _section(data, "retry")

        kwargs: Dict[str, Any] = {
            "tenant_id": data.get("tenantId", ""),
            "filter_criteria": criteria_from_dict(data.get("filterCriteria")),
            "parallelism": ParallelismConfig(
                enabled=parallelism.get("enabled", True),
                max_degree_of_parallelism=parallelism.get("maxDegreeOfParallelism", 4),
            ),
            "rate_limiting": RateLimitingConfig(
                delay_between_units_ms=rate_limiting.get("delayBetweenUnitsMs", 0),
                max_requests_per_minute=rate_limiting.get("maxRequestsPerMinute", 60),
            ),
            "retry": RetryConfig(
                max_attempts=retry.get("maxAttempts", 3),
                initial_delay_ms=retry.get("initialDelayMs", 1000),
                max_delay_ms=retry.get("maxDelayMs", 30000),
                jitter_min_ms=retry.get("jitterMinMs", 500),
                jitter_max_ms=retry.get("jitterMaxMs", 1000),
            ),
        }
        if "outputDirectory" in data:
            kwargs["output_directory"] = data["outputDirectory"]
        if "unitTimeoutSeconds" in data:
            kwargs["unit_timeout_seconds"] = data["unitTimeoutSeconds"]
        return cls(**kwargs)

    def with_overrides(
        self,
        throttle_limit: Optional[int] = None,
        output_directory: Optional[str] = None,
    ) -> "AssessmentConfig":
        """Return a copy with command-line overrides applied."""
        config = self
        if throttle_limit is not None:
            config = replace(
                config,
                parallelism=replace(config.parallelism, max_degree_of_parallelism=throttle_limit),
            )
        if output_directory is not None:
            config = replace(config, output_directory=output_directory)
        return config

    @property
    def unit_timeout(self) -> Optional[float]:
        return float(self.unit_timeout_seconds) if self.unit_timeout_seconds else None


def load_config(path: str) -> AssessmentConfig:
    """Load and validate configuration from a JSON file."""
    if not os.path.exists(path):
        raise ConfigError(f"configuration file {path} does not exist")
    try:
        with open(path, "r", encoding="utf-8") as fp:
            data = json.load(fp)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON in configuration file {path}: {e}") from e
    return AssessmentConfig.from_dict(data)


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be an object")
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)

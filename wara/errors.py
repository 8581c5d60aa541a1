from __future__ import annotations

from typing import Optional


class WaraError(Exception):
    """Base class for all assessment errors."""


class ConfigError(WaraError):
    """Configuration values are missing or out of range."""


class FilterConfigError(ConfigError):
    """Filter criteria are malformed (wrong types, non-string tags)."""


class AuthError(WaraError):
    """Enumeration was rejected by the API (401/403) or no credential is available."""


class NetworkError(WaraError):
    """Enumeration could not reach the API or got an unexpected response."""


class TransientCallError(WaraError):
    """A per-unit call failed in a way that is worth retrying (429, 5xx, timeout)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class FatalCallError(WaraError):
    """A per-unit call failed permanently; never retried."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnitTimeoutError(FatalCallError):
    """The per-unit deadline elapsed before the unit finished."""


class RetryExhaustedError(WaraError):
    """Raised after the last allowed attempt still failed transiently."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"gave up after {attempts} attempts: {type(last_error).__name__}: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class AggregationError(WaraError):
    """The run summary could not be written to durable storage."""


class InvalidTransitionError(WaraError):
    """A JobResult was asked to move backwards or out of a terminal status."""

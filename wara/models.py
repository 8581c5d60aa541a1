from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional

from .errors import InvalidTransitionError


@dataclass(frozen=True)
class Unit:
    unit_id: str
    name: str
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FilterCriteria:
    included_units: FrozenSet[str] = frozenset()
    excluded_units: FrozenSet[str] = frozenset()
    # A None or "" value means "tag key present, any value".
    included_tags: Dict[str, Optional[str]] = field(default_factory=dict)
    excluded_tags: Dict[str, Optional[str]] = field(default_factory=dict)


class JobStatus(str, enum.Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


_NEXT_STATUS = {
    JobStatus.PENDING: {JobStatus.RUNNING},
    JobStatus.RUNNING: {JobStatus.SUCCEEDED, JobStatus.FAILED},
    JobStatus.SUCCEEDED: set(),
    JobStatus.FAILED: set(),
}


@dataclass
class JobResult:
    """Outcome of processing one unit.

    Owned by the worker processing the unit until it reaches a terminal
    status; status only moves Pending -> Running -> Succeeded/Failed.
    """

    unit_id: str
    unit_name: str
    status: JobStatus = JobStatus.PENDING
    output_reference: Optional[str] = None
    error_detail: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @classmethod
    def for_unit(cls, unit: Unit) -> "JobResult":
        return cls(unit_id=unit.unit_id, unit_name=unit.name)

    def mark_running(self) -> None:
        self._move_to(JobStatus.RUNNING)
        self.start_time = datetime.now().astimezone()

    def mark_succeeded(self, output_reference: Optional[str]) -> None:
        self._move_to(JobStatus.SUCCEEDED)
        self.output_reference = output_reference
        self.end_time = datetime.now().astimezone()

    def mark_failed(self, error_detail: str) -> None:
        self._move_to(JobStatus.FAILED)
        self.error_detail = error_detail
        self.end_time = datetime.now().astimezone()

    def _move_to(self, new_status: JobStatus) -> None:
        if new_status not in _NEXT_STATUS[self.status]:
            raise InvalidTransitionError(
                f"unit {self.unit_id}: cannot move from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return round((self.end_time - self.start_time).total_seconds(), 3)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unitId": self.unit_id,
            "unitName": self.unit_name,
            "status": self.status.value,
            "outputReference": self.output_reference,
            "durationSeconds": self.duration_seconds,
            "error": self.error_detail,
        }


@dataclass(frozen=True)
class RunSummary:
    timestamp: datetime
    total_units: int
    succeeded_count: int
    failed_count: int
    results: List[JobResult]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "totalUnits": self.total_units,
            "succeededCount": self.succeeded_count,
            "failedCount": self.failed_count,
            "units": [r.to_dict() for r in self.results],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)


@dataclass(frozen=True)
class CallEvent:
    unit_id: str
    attempt: int
    success: bool
    transient: bool
    status_code: Optional[int]
    latency_ms: int
    error_type: Optional[str]


@dataclass(frozen=True)
class MetricsSnapshot:
    window_secs: int
    total_calls: int
    success_count: int
    transient_error_count: int
    fatal_error_count: int
    http_429_count: int
    timeout_count: int
    avg_latency_ms: float
    timestamp: float

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from .models import JobResult, JobStatus, RunSummary, Unit


def aggregate(
    results: Iterable[JobResult],
    unit_order: Sequence[Unit],
    timestamp: Optional[datetime] = None,
) -> RunSummary:
    """Merge per-unit results into a RunSummary.

    Results are ordered by ``unit_order`` (enumeration order), never by
    completion order; results for units missing from ``unit_order`` go last,
    sorted by unit id.
    """
    position: Dict[str, int] = {unit.unit_id: i for i, unit in enumerate(unit_order)}
    ordered: List[JobResult] = sorted(
        results,
        key=lambda r: (position.get(r.unit_id, len(position)), r.unit_id),
    )
    succeeded = sum(1 for r in ordered if r.status is JobStatus.SUCCEEDED)
    failed = sum(1 for r in ordered if r.status is JobStatus.FAILED)
    return RunSummary(
        timestamp=timestamp or datetime.now(timezone.utc),
        total_units=len(ordered),
        succeeded_count=succeeded,
        failed_count=failed,
        results=ordered,
    )

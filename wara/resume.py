from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from .models import Unit

logger = logging.getLogger(__name__)


def should_skip(unit: Unit, resume_from_id: Optional[str], found: bool) -> Tuple[bool, bool]:
    """Decide whether ``unit`` was already covered by an interrupted run.

    Returns ``(skip, found)``. Every unit before ``resume_from_id`` is skipped;
    the matching unit (ids compare case-insensitively) flips ``found`` and is
    processed, as is everything after.
    """
    if not resume_from_id or found:
        return False, found
    if unit.unit_id.casefold() == resume_from_id.casefold():
        return False, True
    return True, False


def apply_resume(units: Iterable[Unit], resume_from_id: Optional[str]) -> List[Unit]:
    """Drop the units preceding the resume point, keeping order.

    A resume id that matches none of ``units`` leaves nothing to process.
    """
    remaining: List[Unit] = []
    found = False
    skipped = 0
    for unit in units:
        skip, found = should_skip(unit, resume_from_id, found)
        if skip:
            skipped += 1
            continue
        remaining.append(unit)

    if resume_from_id:
        if found:
            logger.info("resuming from unit %s, skipped %d earlier units", resume_from_id, skipped)
        else:
            logger.warning(
                "resume unit %s is not among the %d selected units; nothing will be processed",
                resume_from_id,
                skipped,
            )
    return remaining

"""Scope decisions for enumerated units.

Unit ids, names and tag keys compare case-insensitively; tag values compare
exactly. A configured tag value of None or "" matches any value.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import FilterConfigError
from .models import FilterCriteria, Unit

logger = logging.getLogger(__name__)


def is_in_scope(unit: Unit, criteria: FilterCriteria) -> bool:
    """Return True if ``unit`` should be assessed under ``criteria``."""
    names = {unit.unit_id.casefold(), unit.name.casefold()}
    excluded = {u.casefold() for u in criteria.excluded_units}
    if names & excluded:
        return False

    if criteria.included_units:
        included = {u.casefold() for u in criteria.included_units}
        if not names & included:
            return False

    tags = {k.casefold(): v for k, v in unit.tags.items()}

    if criteria.included_tags:
        for key, value in criteria.included_tags.items():
            if not _tag_matches(tags, key, value):
                return False

    if criteria.excluded_tags:
        for key, value in criteria.excluded_tags.items():
            if _tag_matches(tags, key, value):
                return False

    return True


def _tag_matches(tags: Dict[str, str], key: str, value: Optional[str]) -> bool:
    folded = key.casefold()
    if folded not in tags:
        return False
    if value is None or value == "":
        return True
    return tags[folded] == value


def select_units(units: Iterable[Unit], criteria: FilterCriteria) -> List[Unit]:
    """Filter ``units`` keeping enumeration order."""
    selected: List[Unit] = []
    for unit in units:
        if is_in_scope(unit, criteria):
            selected.append(unit)
        else:
            logger.debug("unit %s (%s) is out of scope", unit.unit_id, unit.name)
    return selected


def criteria_from_dict(data: Optional[Mapping[str, Any]]) -> FilterCriteria:
    """Build FilterCriteria from the camelCase ``filterCriteria`` config block."""
    if data is None:
        return FilterCriteria()
    if not isinstance(data, Mapping):
        raise FilterConfigError("filterCriteria must be an object")

    unknown = set(data) - {"includedUnits", "excludedUnits", "includedTags", "excludedTags"}
    if unknown:
        raise FilterConfigError(f"unknown filterCriteria keys: {sorted(unknown)}")

    return FilterCriteria(
        included_units=_unit_set(data.get("includedUnits"), "includedUnits"),
        excluded_units=_unit_set(data.get("excludedUnits"), "excludedUnits"),
        included_tags=_tag_map(data.get("includedTags"), "includedTags"),
        excluded_tags=_tag_map(data.get("excludedTags"), "excludedTags"),
    )


def _unit_set(value: Any, name: str) -> frozenset:
    if value is None:
        return frozenset()
    if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
        raise FilterConfigError(f"{name} must be a list of strings")
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise FilterConfigError(f"{name} entries must be non-empty strings, got {item!r}")
    return frozenset(item.strip() for item in value)


def _tag_map(value: Any, name: str) -> Dict[str, Optional[str]]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise FilterConfigError(f"{name} must be an object of tag name to value")
    tags: Dict[str, Optional[str]] = {}
    seen = set()
    for key, tag_value in value.items():
        if not isinstance(key, str) or not key.strip():
            raise FilterConfigError(f"{name} keys must be non-empty strings, got {key!r}")
        if tag_value is not None and not isinstance(tag_value, str):
            raise FilterConfigError(f"{name}[{key!r}] must be a string or null, got {type(tag_value).__name__}")
        if key.casefold() in seen:
            raise FilterConfigError(f"{name} has duplicate tag key {key!r}")
        seen.add(key.casefold())
        tags[key] = tag_value
    return tags

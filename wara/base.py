from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from .errors import FatalCallError
from .models import Unit


class BaseCollector(ABC):
    """Abstract base class defining the per-unit collection pipeline.

    collect_unit() reads the derived per-unit input, validates it, fetches
    the unit's data and stores it, returning an opaque output reference.
    Subclasses raise TransientCallError for retryable failures and
    FatalCallError for everything else.
    """

    @abstractmethod
    def list_units(self, tenant_id: str) -> List[Unit]:
        """Enumerate candidate units; raises AuthError or NetworkError."""

    def collect_unit(self, unit: Unit, derived_config_path: str) -> str:
        config = self.load_derived_config(derived_config_path)
        self.validate(unit, config)
        payload = self.fetch(unit, config)
        return self.store(unit, payload, config)

    def load_derived_config(self, path: str) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise FatalCallError(f"cannot read derived config {path}: {exc}") from exc

    def validate(self, unit: Unit, config: Dict[str, Any]) -> None:
        if config.get("unitId") != unit.unit_id:
            raise FatalCallError(f"derived config is for {config.get('unitId')!r}, not {unit.unit_id!r}")
        if not config.get("outputDirectory"):
            raise FatalCallError("derived config has no outputDirectory")

    @abstractmethod
    def fetch(self, unit: Unit, config: Dict[str, Any]) -> Any:
        ...

    def store(self, unit: Unit, payload: Any, config: Dict[str, Any]) -> str:
        out_dir = os.path.join(config["outputDirectory"], "units")
        os.makedirs(out_dir, exist_ok=True)
        path = os.path.join(out_dir, f"{unit.unit_id}.json")
        document = {
            "unitId": unit.unit_id,
            "unitName": unit.name,
            "tenantId": config.get("tenantId"),
            "resources": payload,
        }
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
        except OSError as exc:
            raise FatalCallError(f"cannot write collection output {path}: {exc}") from exc
        return path

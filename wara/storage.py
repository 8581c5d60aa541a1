from __future__ import annotations

import json
import logging
import os
import queue
import threading
import time
from pathlib import Path
from typing import Optional

from .errors import AggregationError
from .models import JobResult, RunSummary

logger = logging.getLogger(__name__)


class JsonlStorage:
    """Journals finished unit results as JSON Lines using a background writer thread."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._queue: queue.Queue[Optional[JobResult]] = queue.Queue()
        self._thread = threading.Thread(target=self._writer, name="wara-journal", daemon=True)
        self._thread.start()

    @property
    def path(self) -> str:
        return self._path

    def write(self, result: JobResult) -> None:
        """Enqueue a finished unit result for background writing."""
        self._queue.put(result)

    def close(self) -> None:
        """Signal the writer thread to flush and stop."""
        self._queue.put(None)
        self._thread.join(timeout=5)

    def _writer(self) -> None:
        with open(self._path, "a", encoding="utf-8") as f:
            while True:
                item = self._queue.get()
                if item is None:
                    break
                record = {"timestamp": time.time(), **item.to_dict()}
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
                f.flush()


def last_unit_id(path: str) -> Optional[str]:
    """Return the id of the last unit recorded in a journal, if any."""
    if not os.path.exists(path):
        return None
    last: Optional[str] = None
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                last = json.loads(line).get("unitId") or last
            except json.JSONDecodeError:
                logger.warning("skipping malformed journal line in %s", path)
    return last


class JsonSummaryStorage:
    """Writes a RunSummary as a JSON document into the output directory."""

    def __init__(self, output_dir: str) -> None:
        self._output_dir = Path(output_dir)

    def write(self, summary: RunSummary) -> str:
        stamp = summary.timestamp.strftime("%Y%m%d_%H%M%S_%f")
        path = self._output_dir / f"run_summary_{stamp}.json"
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(summary.to_json())
            os.replace(tmp_path, path)
        except OSError as exc:
            raise AggregationError(f"failed to write run summary to {path}: {exc}") from exc
        return str(path)

"""JsonLinesObserver — JSON-lines progress log for offline use.

Writes one JSON record per notification to ``observations.jsonl`` inside a
run directory.  This observer requires **no external dependencies** and is
the natural companion of the checkpoint directory of a run.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List

from itersolve.observers.interface import Observer
from itersolve.optim.state import StateSnapshot


def _jsonable(value: Any) -> Any:
    """Best-effort conversion of parameters to JSON-compatible values."""
    if hasattr(value, "tolist"):
        return value.tolist()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return repr(value)


class JsonLinesObserver(Observer):
    """Observer that persists progress records to the local file system.

    Attributes:
        run_dir: Directory where the records file is stored.
        include_params: Also write ``param`` / ``best_param``.
    """

    def __init__(self, run_dir: str = "artifacts/logs", include_params: bool = True) -> None:
        """Initialise the observer, creating *run_dir* if needed.

        Args:
            run_dir: Target directory for the records file.
            include_params: Whether to serialise parameter values.
        """
        os.makedirs(run_dir, exist_ok=True)
        self.run_dir = run_dir
        self.include_params = include_params
        self._path = os.path.join(run_dir, "observations.jsonl")

    @property
    def path(self) -> str:
        return self._path

    def observe(self, snapshot: StateSnapshot, is_final: bool) -> None:
        """Append a record as a JSON line."""
        record: Dict[str, Any] = snapshot.metrics()
        record["final"] = is_final
        record["termination_reason"] = snapshot.termination_reason.kind.value
        if self.include_params:
            record["param"] = _jsonable(snapshot.param)
            record["best_param"] = _jsonable(snapshot.best_param)
        with open(self._path, "a", encoding="utf-8") as fh:
            fh.write(json.dumps(record) + "\n")

    def read_records(self) -> List[Dict[str, Any]]:
        """Read all records written so far.

        Returns:
            List of records (dicts).
        """
        if not os.path.isfile(self._path):
            return []
        records = []
        with open(self._path, "r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if line:
                    records.append(json.loads(line))
        return records

"""Append-only outcome log file.

One JSON object per line, written as each outcome is recorded.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path

from fleetkeeper.models.outcomes import ActionOutcome


class OutcomeLog:
    """Appends ActionOutcomes to *path*; usable as a RunAggregator sink."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def __call__(self, run_id: str, outcome: ActionOutcome) -> None:
        self.append(run_id, outcome)

    def append(self, run_id: str, outcome: ActionOutcome) -> None:
        record = {
            "ts": outcome.recorded_at.isoformat(),
            "run_id": run_id,
            "target": outcome.target,
            "resource": outcome.resource,
            "action": outcome.action,
            "status": outcome.status.value,
            "error": outcome.error,
        }
        line = json.dumps(record, separators=(",", ":"))
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")

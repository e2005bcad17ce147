"""Run telemetry: per-node outcomes for post-run analysis."""

from __future__ import annotations

import json
import os
import time
import uuid
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config


def _ts() -> str:
    return time.strftime("%Y%m%d_%H%M%S")


class RunTelemetry:
    """Collect failure entries and status counts for one scrape run.

    Successful leaves are only counted; the records themselves live in the
    checkpoint artifacts.
    """

    def __init__(self, mode: str, runs_dir: Optional[Path] = None) -> None:
        self.run_id = f"{_ts()}_{uuid.uuid4().hex[:8]}"
        self.mode = mode
        self.runs_dir = Path(runs_dir or config.RUNS_DIR)
        self.started_at = time.time()
        self.entries: List[Dict[str, Any]] = []
        self.summary: Dict[str, Any] = defaultdict(int)

    def add(self, status: str, reason: str, meta: Dict[str, Any]) -> None:
        self.summary[f"count_{status}"] += 1
        if status == "success":
            return
        self.entries.append(
            {
                "status": status,
                "reason": reason,
                **meta,
            }
        )

    def finalize(self, extra: Optional[Dict[str, Any]] = None) -> str:
        os.makedirs(self.runs_dir, exist_ok=True)
        payload = {
            "run_id": self.run_id,
            "mode": self.mode,
            "started_at": self.started_at,
            "ended_at": time.time(),
            "summary": dict(self.summary),
            "entries": self.entries,
            **(extra or {}),
        }
        path = os.path.join(self.runs_dir, f"run_{self.run_id}.json")
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
        return path


__all__ = ["RunTelemetry"]

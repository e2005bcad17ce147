"""Periodic full-snapshot persistence of the record set."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from . import config
from .logging_utils import EventSink, _scraper_event
from .records import BranchRecord, RunState, load_records_json, write_records_csv, write_records_json
from .utils import load_json_file, log_line, now_iso, save_json_file


class Checkpointer:
    """Rewrite the complete record set as JSON + CSV under a progress tag.

    There is no append log: every flush replaces the artifact wholesale. With
    the default cadence at most ``every - 1`` successful records (plus the
    in-flight leaf) are lost on a crash.
    """

    def __init__(
        self,
        output_dir: Optional[Path] = None,
        *,
        every: Optional[int] = None,
        progress_path: Optional[Path] = None,
        observer: EventSink = _scraper_event,
    ) -> None:
        self.output_dir = Path(output_dir or config.OUTPUT_DIR)
        self.every = max(1, every or config.CHECKPOINT_EVERY)
        self.progress_path = Path(progress_path or config.PROGRESS_FILE)
        self.observer = observer
        self.flush_count = 0
        self.completed_banks = 0
        self.total_banks = 0

    def flush(self, records: Sequence[BranchRecord], tag: str) -> Optional[Path]:
        if not records:
            return None

        json_path = self.output_dir / f"{tag}.json"
        csv_path = self.output_dir / f"{tag}.csv"
        write_records_json(json_path, records)
        write_records_csv(csv_path, records)
        self.flush_count += 1

        save_json_file(
            self.progress_path,
            {
                "tag": tag,
                "record_count": len(records),
                "json_path": str(json_path),
                "csv_path": str(csv_path),
                "completed_banks": self.completed_banks,
                "total_banks": self.total_banks,
                "saved_at": now_iso(),
            },
        )
        self.observer("checkpoint", tag=tag, records=len(records), path=str(json_path))
        return json_path

    def on_success(self, state: RunState) -> Optional[Path]:
        if state.success_count and state.success_count % self.every == 0:
            return self.flush(state.records, f"backup_{state.success_count}_records")
        return None

    def on_bank_complete(self, state: RunState, bank_index: int, total_banks: int) -> Optional[Path]:
        """Flush after bank ``bank_index`` (1-based) of ``total_banks`` is done."""

        self.completed_banks = bank_index
        self.total_banks = total_banks
        return self.flush(state.records, f"progress_bank_{bank_index}_of_{total_banks}")

    def final(self, state: RunState) -> Optional[Path]:
        return self.flush(state.records, config.FINAL_TAG)

    def emergency(self, state: RunState) -> Optional[Path]:
        try:
            path = self.flush(state.records, config.EMERGENCY_TAG)
        except OSError as exc:
            log_line(f"[CHECKPOINT] Emergency save failed: {exc}")
            return None
        if path is not None:
            log_line(f"[CHECKPOINT] Emergency save: {len(state.records)} records preserved")
        return path

    def load_resume_point(
        self, *, max_age_hours: Optional[int] = None
    ) -> Optional[Tuple[List[BranchRecord], int]]:
        """Return ``(records, completed_banks)`` from a fresh progress snapshot."""

        snapshot = load_json_file(self.progress_path)
        if not isinstance(snapshot, dict):
            return None

        max_age = config.RESUME_MAX_AGE_HOURS if max_age_hours is None else max_age_hours
        saved_raw = snapshot.get("saved_at")
        if not saved_raw:
            return None
        try:
            saved = datetime.fromisoformat(str(saved_raw).replace("Z", "+00:00"))
        except ValueError:
            return None
        if datetime.utcnow() - saved.replace(tzinfo=None) > timedelta(hours=max_age):
            log_line("[CHECKPOINT] Progress snapshot is too old to resume from.")
            return None

        json_path = snapshot.get("json_path")
        if not json_path:
            return None
        try:
            records = load_records_json(Path(json_path))
        except (OSError, ValueError) as exc:
            log_line(f"[CHECKPOINT] Failed to read checkpoint artifact: {exc}")
            return None

        try:
            completed = int(snapshot.get("completed_banks") or 0)
        except (TypeError, ValueError):
            completed = 0
        self.completed_banks = completed
        self.total_banks = int(snapshot.get("total_banks") or 0)
        return records, completed


__all__ = ["Checkpointer"]

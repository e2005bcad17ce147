from __future__ import annotations

import json
from datetime import datetime, timedelta

from app.scraper import config
from app.scraper.checkpoint import Checkpointer
from app.scraper.records import BranchDetail, BranchRecord, RunState


def _record(n: int) -> BranchRecord:
    return BranchRecord.create(
        bank_name="State Bank of India",
        state="Kerala",
        district="Ernakulam",
        branch_name=f"Branch {n}",
        detail=BranchDetail(ifsc_code=f"SBIN{n:07d}"),
    )


def _quiet(*_args, **_kwargs) -> None:
    return None


def test_backup_every_fifty_records(data_dirs) -> None:
    checkpointer = Checkpointer(observer=_quiet)
    state = RunState()
    written = []
    for n in range(1, 121):
        state.add_record(_record(n))
        path = checkpointer.on_success(state)
        if path is not None:
            written.append(path.name)

    assert written == ["backup_50_records.json", "backup_100_records.json"]
    assert checkpointer.flush_count == 2
    backup = json.loads((config.OUTPUT_DIR / "backup_100_records.json").read_text(encoding="utf-8"))
    assert len(backup) == 100
    assert (config.OUTPUT_DIR / "backup_100_records.csv").exists()


def test_bank_flush_tag_and_progress_snapshot(data_dirs) -> None:
    checkpointer = Checkpointer(observer=_quiet)
    state = RunState().add_record(_record(1))

    path = checkpointer.on_bank_complete(state, 2, 5)

    assert path == config.OUTPUT_DIR / "progress_bank_2_of_5.json"
    snapshot = json.loads(config.PROGRESS_FILE.read_text(encoding="utf-8"))
    assert snapshot["completed_banks"] == 2
    assert snapshot["total_banks"] == 5
    assert snapshot["record_count"] == 1


def test_empty_flush_writes_nothing(data_dirs) -> None:
    checkpointer = Checkpointer(observer=_quiet)

    assert checkpointer.final(RunState()) is None
    assert checkpointer.flush_count == 0
    assert not config.PROGRESS_FILE.exists()


def test_emergency_flush_preserves_records(data_dirs) -> None:
    checkpointer = Checkpointer(observer=_quiet)
    state = RunState().add_record(_record(1)).add_record(_record(2))

    path = checkpointer.emergency(state)

    assert path is not None
    assert path.name == f"{config.EMERGENCY_TAG}.json"
    assert len(json.loads(path.read_text(encoding="utf-8"))) == 2


def test_resume_point_round_trip(data_dirs) -> None:
    writer = Checkpointer(observer=_quiet)
    state = RunState().add_record(_record(1)).add_record(_record(2))
    writer.on_bank_complete(state, 3, 7)

    reader = Checkpointer(observer=_quiet)
    point = reader.load_resume_point()

    assert point is not None
    records, completed = point
    assert completed == 3
    assert [record.ifsc_code for record in records] == ["SBIN0000001", "SBIN0000002"]
    assert reader.total_banks == 7


def test_stale_snapshot_is_ignored(data_dirs) -> None:
    writer = Checkpointer(observer=_quiet)
    writer.on_bank_complete(RunState().add_record(_record(1)), 1, 2)
    snapshot = json.loads(config.PROGRESS_FILE.read_text(encoding="utf-8"))
    snapshot["saved_at"] = (datetime.utcnow() - timedelta(hours=100)).isoformat() + "Z"
    config.PROGRESS_FILE.write_text(json.dumps(snapshot), encoding="utf-8")

    assert Checkpointer(observer=_quiet).load_resume_point(max_age_hours=72) is None


def test_missing_snapshot_means_no_resume(data_dirs) -> None:
    assert Checkpointer(observer=_quiet).load_resume_point() is None

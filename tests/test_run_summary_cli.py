import json
from pathlib import Path

import pytest

from app.scraper import config, run_summary_cli
from app.scraper.records import BranchDetail, BranchRecord, write_records_json


def _write_artifact(path: Path) -> Path:
    write_records_json(
        path,
        [
            BranchRecord.create(
                bank_name=bank,
                state="Goa",
                district="North Goa",
                branch_name=branch,
                detail=BranchDetail(ifsc_code=ifsc),
            )
            for bank, branch, ifsc in (
                ("Alpha Bank", "Panaji", "ALPH0000001"),
                ("Alpha Bank", "Mapusa", "ALPH0000002"),
                ("Beta Bank", "Panaji", "BETA0000001"),
            )
        ],
    )
    return path


def test_summary_for_explicit_records(data_dirs, capsys: pytest.CaptureFixture) -> None:
    path = _write_artifact(data_dirs / "records.json")

    exit_code = run_summary_cli.main(["--records", str(path)])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Records: 3" in out
    assert "Alpha Bank: 2" in out
    assert "Beta Bank: 1" in out


def test_latest_uses_last_summary(data_dirs, capsys: pytest.CaptureFixture) -> None:
    path = _write_artifact(data_dirs / "output" / "FINAL_ALL_BANKS_DATA.json")
    config.SUMMARY_FILE.write_text(
        json.dumps({"output": str(path), "total_records": 3, "failed_records": 1, "success_rate": 75.0}),
        encoding="utf-8",
    )

    assert run_summary_cli.main(["--latest"]) == 0

    out = capsys.readouterr().out
    assert "Records: 3" in out
    assert "success rate 75.0%" in out


def test_requires_a_source(data_dirs, capsys: pytest.CaptureFixture) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_summary_cli.main([])

    assert excinfo.value.code == 2
    assert "--records or --latest" in capsys.readouterr().err


def test_missing_artifact_is_an_argument_error(data_dirs) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_summary_cli.main(["--records", str(data_dirs / "missing.json")])

    assert excinfo.value.code == 2

from __future__ import annotations

from pathlib import Path

import pytest

from app.scraper import config


def _configure_temp_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "DATA_DIR", tmp_path)
    monkeypatch.setattr(config, "OUTPUT_DIR", tmp_path / "output")
    monkeypatch.setattr(config, "LOG_DIR", tmp_path / "logs")
    monkeypatch.setattr(config, "LOG_FILE", tmp_path / "logs" / "latest.log")
    monkeypatch.setattr(config, "PROGRESS_FILE", tmp_path / "progress.json")
    monkeypatch.setattr(config, "SUMMARY_FILE", tmp_path / "last_summary.json")
    monkeypatch.setattr(config, "RUNS_DIR", tmp_path / "runs")
    monkeypatch.setattr(config, "EXPORTS_DIR", tmp_path / "exports")
    monkeypatch.delenv("IFSC_RECORDS_FILE", raising=False)


@pytest.fixture
def data_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every data path at ``tmp_path`` for the duration of a test."""

    _configure_temp_paths(tmp_path, monkeypatch)
    return tmp_path

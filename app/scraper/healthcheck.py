from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from . import config
from .config_validation import validate_runtime_config
from .logging_utils import _scraper_event
from .lookup import load_lookup_records
from .utils import ensure_dirs, log_line


@dataclass
class HealthResult:
    ok: bool
    records: int
    checks: dict[str, dict[str, Any]]


def run_health_checks(entrypoint: str = "cli") -> HealthResult:
    checks: dict[str, dict[str, Any]] = {}

    try:
        validate_runtime_config(entrypoint or "cli")
        checks["config"] = {"ok": True}
    except ValueError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}

    try:
        ensure_dirs()
        checks["filesystem"] = {"ok": True, "data_dir": str(config.DATA_DIR)}
    except OSError as exc:
        checks["filesystem"] = {"ok": False, "error": str(exc)}

    records = 0
    records_path = config.records_file()
    try:
        records = len(load_lookup_records(records_path))
        checks["records"] = {"ok": True, "path": str(records_path), "count": records}
    except (OSError, ValueError) as exc:
        checks["records"] = {"ok": False, "path": str(records_path), "error": str(exc)}

    overall_ok = all(check.get("ok", False) for check in checks.values())

    _scraper_event(
        "state" if overall_ok else "error",
        phase="health",
        context="healthcheck",
        ok=overall_ok,
        records=records,
    )

    return HealthResult(ok=overall_ok, records=records, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks(entrypoint="cli")
    for name, info in result.checks.items():
        status = "OK" if info.get("ok") else "FAIL"
        log_line(f"[HEALTH] {name}: {status} {info}")
    raise SystemExit(0 if result.ok else 1)

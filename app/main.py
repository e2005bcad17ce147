from __future__ import annotations

import os
import threading
import time
from typing import Any, Dict, Generator

from flask import Flask, Response, jsonify, request, send_file

from app.scraper import config
from app.scraper.config_validation import validate_runtime_config
from app.scraper.export_excel import export_records_to_excel
from app.scraper.healthcheck import run_health_checks
from app.scraper.logging_utils import _scraper_event
from app.scraper.lookup import find_by_ifsc, load_lookup_records
from app.scraper.run import run_scrape
from app.scraper.utils import ensure_dirs, get_current_log_path, load_json_file, log_line

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-change-me")

# WSGI entrypoints import this module directly, so the data directories must
# exist before the first request.
ensure_dirs()

_SCRAPE_LOCK = threading.Lock()


def _read_last_log_lines(limit: int = 150) -> list[str]:
    """Return the trailing ``limit`` log lines."""

    path = get_current_log_path()
    if not path.exists():
        return []

    with path.open("r", encoding="utf-8", errors="ignore") as handle:
        lines = handle.readlines()[-limit:]
    return [line.rstrip("\n") for line in lines]


def _tail_log_generator() -> Generator[str, None, None]:
    """Yield Server-Sent Event messages for appended log lines."""

    ensure_dirs()
    current_path = get_current_log_path()
    current_path.parent.mkdir(parents=True, exist_ok=True)
    current_path.touch(exist_ok=True)

    handle = current_path.open("r", encoding="utf-8", errors="ignore")
    handle.seek(0, os.SEEK_END)

    try:
        while True:
            latest_path = get_current_log_path()
            if latest_path != current_path:
                handle.close()
                current_path = latest_path
                current_path.parent.mkdir(parents=True, exist_ok=True)
                current_path.touch(exist_ok=True)
                handle = current_path.open("r", encoding="utf-8", errors="ignore")
                handle.seek(0, os.SEEK_END)

            line = handle.readline()
            if line:
                yield f"data: {line.rstrip()}\n\n"
            else:
                time.sleep(1)
                yield ": heartbeat\n\n"
    finally:
        handle.close()


def _lookup_response(code: str | None) -> Response:
    """Shared body of both IFSC lookup routes."""

    if not (code or "").strip():
        return jsonify({"error": "Please enter an IFSC Code."}), 400

    records_path = config.records_file()
    try:
        records = load_lookup_records(records_path)
    except (OSError, ValueError) as exc:
        _scraper_event(
            "error", phase="lookup", context="load_records", path=str(records_path), error=str(exc)
        )
        return jsonify({"error": "Error loading data."}), 500

    results = find_by_ifsc(records, code or "")
    _scraper_event("state", phase="lookup", code=(code or "").strip().upper(), found=len(results))
    if not results:
        return jsonify({"error": "No bank found with that IFSC Code.", "results": []}), 404
    return jsonify({"results": results})


def _parse_optional_int(value: Any) -> int | None:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


@app.get("/api/ifsc")
def api_ifsc_query() -> Response:
    """Look up branches by ``?code=`` query parameter."""

    return _lookup_response(request.args.get("code"))


@app.get("/api/ifsc/<code>")
def api_ifsc_path(code: str) -> Response:
    return _lookup_response(code)


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration, filesystem, and records."""

    result = run_health_checks(entrypoint="ui")
    status = 200 if result.ok else 503
    return jsonify({"ok": result.ok, "records": result.records, "checks": result.checks}), status


@app.post("/api/scrape")
def api_start_scrape() -> Response:
    """Start a scrape in a background thread."""

    payload: Dict[str, Any] = request.get_json(silent=True) or request.form.to_dict()
    base_url = str(payload.get("base_url") or config.DEFAULT_BASE_URL).strip()
    bank_limit = _parse_optional_int(payload.get("bank_limit"))
    resume = str(payload.get("resume", "")).strip().lower() in {"1", "true", "yes", "on"}

    try:
        validate_runtime_config("ui")
    except ValueError as exc:
        return jsonify({"ok": False, "error": "config_invalid", "details": str(exc)}), 500

    if not _SCRAPE_LOCK.acquire(blocking=False):
        return jsonify({"ok": False, "error": "scrape_running"}), 409

    app.config["LAST_PARAMS"] = {"base_url": base_url, "bank_limit": bank_limit, "resume": resume}

    def _run() -> None:
        try:
            summary = run_scrape(base_url=base_url, bank_limit=bank_limit, resume=resume)
            app.config["LAST_SUMMARY"] = summary
        except Exception as exc:  # noqa: BLE001
            log_line(f"Scrape thread failed: {exc}")
        finally:
            _SCRAPE_LOCK.release()

    threading.Thread(target=_run, daemon=True).start()
    return jsonify({"ok": True, "started": True, "params": app.config["LAST_PARAMS"]}), 202


@app.get("/api/runs/latest")
def api_runs_latest() -> Response:
    """Return the summary written by the last completed run."""

    summary = load_json_file(config.SUMMARY_FILE) or app.config.get("LAST_SUMMARY")
    if not summary:
        return jsonify({"ok": False, "error": "no runs"}), 404
    return jsonify({"ok": True, "run": summary, "running": _SCRAPE_LOCK.locked()})


@app.get("/api/exports/latest.xlsx")
def api_export_latest_xlsx() -> Response:
    records_path = config.records_file()
    if not records_path.exists():
        return jsonify({"ok": False, "error": "no records"}), 404
    path = export_records_to_excel(records_path)
    return send_file(path, as_attachment=True, download_name=os.path.basename(path))


@app.get("/logs/recent")
def logs_recent() -> Response:
    return jsonify({"lines": _read_last_log_lines(), "log_file": get_current_log_path().name})


@app.get("/logs/stream")
def logs_stream() -> Response:
    """Stream log updates to the browser using SSE."""

    response = Response(_tail_log_generator(), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8080)

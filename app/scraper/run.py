"""Playwright-driven scraper for the bank branch IFSC directory.

Workflow:

- Open the lookup page and read the bank dropdown once.
- For every bank, reload the page, select it and read the states it offers.
- For every state, reload, reselect the bank, select the state, read districts.
- For every district, reload, reselect bank + state, select it, read branches.
- For every branch, reload, reselect bank + state + district, select the
  branch and parse the detail container into a ``BranchRecord``.

The page forgets every selection on navigation and has no way back up the
tree, so each node costs a fresh load plus one selection per ancestor.
Failures are isolated to the node they happen on; only a dead browser ends the
run early, and then the records gathered so far are flushed one last time.

This is wired to ``python -m app.scraper.run`` via ``_cli_entrypoint()``.
"""

from __future__ import annotations

import argparse
import time
from pathlib import Path
from typing import Any, Callable, ContextManager, Dict, List, Optional, Sequence, Set

from . import config
from .checkpoint import Checkpointer
from .config_validation import validate_runtime_config
from .error_codes import ErrorCode
from .extractor import Extractor
from .logging_utils import EventSink, _scraper_event
from .navigation import NavigationController, NavigationError
from .page_driver import BrowserCrashedError, PageDriver, launch_driver
from .records import BranchRecord, LeafKey, RunState
from .selection import LEVELS, Level, Option, SelectionEngine, SelectionError
from .telemetry import RunTelemetry
from .utils import ensure_dirs, log_line, save_json_file, setup_run_logger

DriverFactory = Callable[..., ContextManager[PageDriver]]


def _short_error_message(exc: BaseException, max_length: int = 200) -> str:
    message = f"{type(exc).__name__}: {exc}"
    if len(message) > max_length:
        return message[: max_length - 3] + "..."
    return message


def _error_code_for(exc: BaseException) -> str:
    if isinstance(exc, NavigationError):
        return ErrorCode.NAVIGATION
    if isinstance(exc, SelectionError):
        return ErrorCode.SELECTION
    if isinstance(exc, BrowserCrashedError):
        return ErrorCode.BROWSER_CRASHED
    return ErrorCode.INTERNAL


class Orchestrator:
    """Walk the bank -> state -> district -> branch tree one leaf at a time."""

    def __init__(
        self,
        driver: PageDriver,
        *,
        base_url: Optional[str] = None,
        navigator: Optional[NavigationController] = None,
        engine: Optional[SelectionEngine] = None,
        extractor: Optional[Extractor] = None,
        checkpointer: Optional[Checkpointer] = None,
        observer: EventSink = _scraper_event,
        telemetry: Optional[RunTelemetry] = None,
        bank_limit: Optional[int] = None,
        reload_settle_seconds: Optional[float] = None,
    ) -> None:
        self.driver = driver
        self.base_url = (base_url or config.DEFAULT_BASE_URL).strip()
        self.observer = observer
        self.navigator = navigator or NavigationController(driver, observer=observer)
        self.engine = engine or SelectionEngine(driver, observer=observer)
        self.extractor = extractor or Extractor(driver, observer=observer)
        self.checkpointer = checkpointer or Checkpointer(observer=observer)
        self.telemetry = telemetry
        self.bank_limit = bank_limit
        self.reload_settle_seconds = (
            config.RELOAD_SETTLE_SECONDS
            if reload_settle_seconds is None
            else reload_settle_seconds
        )

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _fail(
        self,
        state: RunState,
        path: Sequence[Option],
        *,
        error_code: str,
        error: Optional[str] = None,
    ) -> None:
        state.add_failure()
        labels = [option.label for option in path]
        self.observer(
            "error",
            phase="traverse",
            level=LEVELS[len(path) - 1].value,
            path=labels,
            error_code=error_code,
            error=error,
            failed=state.failure_count,
        )
        if self.telemetry is not None:
            self.telemetry.add("failed", error_code, {"path": labels, "error": error})

    def _save_bank_list(self, banks: Sequence[Option]) -> None:
        save_json_file(
            self.checkpointer.output_dir / config.BANK_LIST_FILE,
            [{"code": bank.code, "label": bank.label} for bank in banks],
        )

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _fresh_path(self, path: Sequence[Option]) -> None:
        """Reload the page and reselect every option of ``path`` in order."""

        self.navigator.load(self.base_url)
        self.driver.sleep(self.reload_settle_seconds)
        self.engine.reselect_path(path)

    def _children(
        self, state: RunState, path: Sequence[Option], child_level: Level
    ) -> List[Option]:
        try:
            self._fresh_path(path)
            options = self.engine.read_options(child_level)
        except BrowserCrashedError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._fail(state, path, error_code=_error_code_for(exc), error=_short_error_message(exc))
            return []

        self.observer(
            "table",
            path=[option.label for option in path],
            level=child_level.value,
            found=len(options),
        )
        if not options:
            self.observer(
                "state",
                phase="traverse",
                kind="no_children",
                path=[option.label for option in path],
                level=child_level.value,
                error_code=ErrorCode.DROPDOWN_EMPTY,
            )
        return options

    def _process_branch(
        self, state: RunState, path: Sequence[Option], done: Set[LeafKey]
    ) -> None:
        bank, region, district, branch = path
        key: LeafKey = (bank.label, region.label, district.label, branch.label)
        if key in done:
            self.observer("state", phase="traverse", kind="already_captured", path=list(key))
            return

        try:
            self._fresh_path(path)
            detail = self.extractor.extract()
        except BrowserCrashedError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._fail(state, path, error_code=_error_code_for(exc), error=_short_error_message(exc))
            return

        if detail is None:
            self._fail(state, path, error_code=ErrorCode.EXTRACTION_NO_IFSC)
            return

        record = BranchRecord.create(
            bank_name=bank.label,
            state=region.label,
            district=district.label,
            branch_name=branch.label,
            detail=detail,
        )
        state.add_record(record)
        done.add(key)
        self.observer(
            "record",
            count=state.success_count,
            ifsc=record.ifsc_code,
            branch=record.branch_name,
        )
        if self.telemetry is not None:
            self.telemetry.add("success", "", {})
        try:
            self.checkpointer.on_success(state)
        except OSError as exc:
            # The record stays in memory; the next flush rewrites the full set.
            self.observer(
                "error",
                phase="checkpoint",
                records=len(state.records),
                error=_short_error_message(exc),
            )

    def _process_bank(self, state: RunState, bank: Option, done: Set[LeafKey]) -> None:
        for region in self._children(state, [bank], Level.STATE):
            for district in self._children(state, [bank, region], Level.DISTRICT):
                for branch in self._children(state, [bank, region, district], Level.BRANCH):
                    self._process_branch(state, [bank, region, district, branch], done)

    def run(self, state: Optional[RunState] = None, *, completed_banks: int = 0) -> RunState:
        """Traverse every bank and return the (mutated) run state."""

        state = state if state is not None else RunState()
        done = state.leaf_keys()

        self.navigator.load(self.base_url)
        banks = self.engine.read_options(Level.BANK)
        self._save_bank_list(banks)
        if self.bank_limit:
            banks = banks[: self.bank_limit]
        total = len(banks)
        self.observer("plan", banks=total, resumed_records=len(done), skip_banks=completed_banks)

        for index, bank in enumerate(banks, start=1):
            if index <= completed_banks:
                self.observer("state", phase="traverse", kind="bank_skipped", bank=bank.label, index=index)
                continue

            self.observer("bank", index=index, total=total, bank=bank.label)
            try:
                self._process_bank(state, bank, done)
            except BrowserCrashedError:
                raise
            except Exception as exc:  # noqa: BLE001
                self._fail(state, [bank], error_code=_error_code_for(exc), error=_short_error_message(exc))

            if state.records:
                self.checkpointer.on_bank_complete(state, index, total)

        return state


# ---------------------------------------------------------------------------
# Main entrypoint
# ---------------------------------------------------------------------------


def run_scrape(
    base_url: Optional[str] = None,
    *,
    bank_limit: Optional[int] = None,
    headless: Optional[bool] = None,
    resume: bool = False,
    output_dir: Optional[Path] = None,
    checkpoint_every: Optional[int] = None,
    driver_factory: DriverFactory = launch_driver,
    observer: EventSink = _scraper_event,
) -> Dict[str, Any]:
    """Run a full traversal and return the summary written to SUMMARY_FILE."""

    ensure_dirs()
    log_path = setup_run_logger()

    checkpointer = Checkpointer(output_dir, every=checkpoint_every, observer=observer)
    state = RunState()
    completed_banks = 0
    if resume:
        point = checkpointer.load_resume_point()
        if point is not None:
            records, completed_banks = point
            state = RunState(records=list(records), success_count=len(records))
            log_line(
                f"[RUN] Resuming with {len(records)} records; {completed_banks} bank(s) already complete."
            )
        else:
            log_line("[RUN] No usable progress snapshot; starting from the beginning.")

    telemetry = RunTelemetry("resume" if resume else "full")
    started = time.time()

    try:
        with driver_factory(headless=headless) as driver:
            orchestrator = Orchestrator(
                driver,
                base_url=base_url,
                checkpointer=checkpointer,
                observer=observer,
                telemetry=telemetry,
                bank_limit=bank_limit,
            )
            orchestrator.run(state, completed_banks=completed_banks)
    except Exception as exc:  # noqa: BLE001
        observer(
            "error",
            context="run",
            error_code=_error_code_for(exc),
            error=_short_error_message(exc),
            records=len(state.records),
        )
        checkpointer.emergency(state)
        telemetry.finalize(extra={"error": _short_error_message(exc)})
        raise

    final_path = checkpointer.final(state)
    summary: Dict[str, Any] = {
        "total_records": state.success_count,
        "failed_records": state.failure_count,
        "success_rate": state.success_rate,
        "output": str(final_path) if final_path else None,
        "flushes": checkpointer.flush_count,
        "duration_seconds": round(time.time() - started, 1),
        "log_path": str(log_path),
    }
    try:
        save_json_file(config.SUMMARY_FILE, summary)
    except OSError as exc:
        log_line(f"[RUN][WARN] Unable to write summary: {exc}")
    summary["telemetry_path"] = telemetry.finalize(extra=summary)

    log_line(f"[RUN] Total records scraped: {state.success_count}")
    log_line(f"[RUN] Failed records: {state.failure_count}")
    log_line(f"[RUN] Success rate: {state.success_rate:.2f}%")
    return summary


def _cli_entrypoint(argv: Optional[List[str]] = None) -> None:  # pragma: no cover
    parser = argparse.ArgumentParser(description="Scrape the IFSC branch directory")
    parser.add_argument("--base-url", default=None)
    parser.add_argument(
        "--bank-limit",
        type=int,
        default=None,
        help="Only process the first N banks (all of their branches).",
    )
    parser.add_argument("--headed", action="store_true", help="Show the browser window.")
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Continue from the last progress snapshot if it is recent enough.",
    )
    parser.add_argument("--output-dir", type=Path, default=None)
    parser.add_argument("--checkpoint-every", type=int, default=None)
    args = parser.parse_args(argv)

    ensure_dirs()
    validate_runtime_config("cli")

    run_scrape(
        base_url=args.base_url,
        bank_limit=args.bank_limit,
        headless=False if args.headed else None,
        resume=args.resume,
        output_dir=args.output_dir,
        checkpoint_every=args.checkpoint_every,
    )


if __name__ == "__main__":  # pragma: no cover
    _cli_entrypoint()

__all__ = ["Orchestrator", "run_scrape", "_cli_entrypoint"]

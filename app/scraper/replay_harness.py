"""Offline replay of the lookup page from a JSON fixture.

``FixturePageDriver`` imitates the live page closely enough for the real
orchestrator to run against it: every load clears all four dropdowns, and a
selection populates only the next level down. It never sleeps.

Fixture shape::

    {"banks": [{"code": "..", "label": "..", "states": [
        {"code": "..", "label": "..", "districts": [
            {"code": "..", "label": "..", "branches": [
                {"code": "..", "label": "..", "detail": "IFSC Code: ..."}]}]}]}]}
"""
from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import (
    Any,
    Callable,
    ContextManager,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from .config_validation import validate_runtime_config
from .logging_utils import _scraper_event
from .page_driver import BrowserCrashedError, RawOption
from .run import run_scrape
from .site_selectors import SITE_SELECTORS, SiteSelectors
from .utils import log_line

_CHILD_KEYS = ("states", "districts", "branches")
_PLACEHOLDERS = ("Select Bank", "State", "District", "Branch")


class FixturePageDriver:
    """PageDriver backed by an in-memory option tree."""

    def __init__(
        self,
        fixture: Dict[str, Any],
        selectors: SiteSelectors = SITE_SELECTORS,
        *,
        fail_selects: Iterable[Tuple[str, str]] = (),
        crash_on: Iterable[Tuple[str, str]] = (),
        load_failures: int = 0,
        fail_loads: Iterable[int] = (),
    ) -> None:
        self.fixture = fixture
        self.selectors = selectors
        self._levels = (
            ("bank", selectors.bank_select),
            ("state", selectors.state_select),
            ("district", selectors.district_select),
            ("branch", selectors.branch_select),
        )
        self.fail_selects: Set[Tuple[str, str]] = set(fail_selects)
        self.crash_on: Set[Tuple[str, str]] = set(crash_on)
        self.load_failures = load_failures
        # 1-based load numbers that fail, to target the reload of one node.
        self.fail_loads: Set[int] = set(fail_loads)
        self.selected: List[Dict[str, Any]] = []
        self.loads = 0
        self.select_calls: List[Tuple[str, str]] = []
        self.slept = 0.0

    def _level_index(self, selector: str) -> int:
        for index, (_, level_selector) in enumerate(self._levels):
            if level_selector == selector:
                return index
        raise ValueError(f"Unknown selector {selector!r}")

    def _nodes_at(self, index: int) -> List[Dict[str, Any]]:
        if index == 0:
            return list(self.fixture.get("banks") or [])
        if len(self.selected) < index:
            return []
        return list(self.selected[index - 1].get(_CHILD_KEYS[index - 1]) or [])

    def _choose(self, selector: str, value: str, *, allow_label: bool) -> bool:
        index = self._level_index(selector)
        level_name = self._levels[index][0]
        self.select_calls.append((level_name, value))
        if (level_name, value) in self.crash_on:
            raise BrowserCrashedError("Target crashed")
        if (level_name, value) in self.fail_selects:
            return False
        for node in self._nodes_at(index):
            code = str(node.get("code", ""))
            label = str(node.get("label", ""))
            if code == value or (allow_label and value in label):
                self.selected = self.selected[:index] + [node]
                return True
        return False

    # PageDriver -------------------------------------------------------

    def load(self, url: str, *, timeout_seconds: float) -> None:
        self.loads += 1
        if self.load_failures > 0:
            self.load_failures -= 1
            raise RuntimeError(f"net::ERR_TIMED_OUT at {url}")
        if self.loads in self.fail_loads:
            raise RuntimeError(f"net::ERR_CONNECTION_RESET at {url}")
        self.selected = []

    def wait_for_selector(self, selector: str, *, timeout_seconds: float) -> bool:
        return any(selector == level_selector for _, level_selector in self._levels)

    def read_options(self, selector: str) -> List[RawOption]:
        index = self._level_index(selector)
        options: List[RawOption] = [("", _PLACEHOLDERS[index])]
        options.extend(
            (str(node.get("code", "")), str(node.get("label", "")))
            for node in self._nodes_at(index)
        )
        return options

    def select_value(self, selector: str, value: str) -> bool:
        return self._choose(selector, value, allow_label=False)

    def set_matching_option(self, selector: str, value: str) -> bool:
        return self._choose(selector, value, allow_label=True)

    def click_option(self, selector: str, value: str) -> None:
        if not self._choose(selector, value, allow_label=False):
            raise RuntimeError(f"No option {value!r} to click")

    def wait_for_option_count(
        self, selector: str, minimum: int, *, timeout_seconds: float
    ) -> bool:
        return len(self.read_options(selector)) > minimum

    def read_container(self, candidates: Sequence[str]) -> Optional[Tuple[str, str]]:
        if len(self.selected) < len(self._levels):
            return ("", "")
        branch = self.selected[-1]
        return str(branch.get("detail", "")), str(branch.get("html", ""))

    def sleep(self, seconds: float) -> None:
        self.slept += max(0.0, seconds or 0.0)


def load_fixture(path: Path) -> Dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict) or not isinstance(payload.get("banks"), list):
        raise ValueError(f"{path} is not a bank tree fixture")
    return payload


def fixture_driver_factory(
    driver: FixturePageDriver,
) -> Callable[..., ContextManager[FixturePageDriver]]:
    """Adapt ``driver`` to the ``driver_factory`` hook of ``run_scrape``."""

    @contextmanager
    def _factory(**_kwargs: Any) -> Iterator[FixturePageDriver]:
        yield driver

    return _factory


@dataclass
class ReplayConfig:
    fixtures_path: Path
    output_dir: Optional[Path] = None
    bank_limit: Optional[int] = None


def run_replay(config_obj: ReplayConfig) -> Dict[str, Any]:
    validate_runtime_config("replay")
    fixture = load_fixture(config_obj.fixtures_path)
    driver = FixturePageDriver(fixture)

    _scraper_event("replay", phase="start", fixtures=str(config_obj.fixtures_path))
    summary = run_scrape(
        "https://fixture.invalid/",
        bank_limit=config_obj.bank_limit,
        output_dir=config_obj.output_dir,
        driver_factory=fixture_driver_factory(driver),
    )
    summary["page_loads"] = driver.loads
    _scraper_event("replay", phase="end", fixtures=str(config_obj.fixtures_path))
    log_line(f"[REPLAY] {summary['total_records']} records from {driver.loads} page loads")
    return summary


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Replay a bank tree fixture offline.")
    parser.add_argument("fixtures", help="Path to a bank tree JSON fixture")
    parser.add_argument("--output-dir", type=Path, default=None)
    parser.add_argument("--bank-limit", type=int, default=None)
    args = parser.parse_args()

    run_replay(
        ReplayConfig(
            fixtures_path=Path(args.fixtures),
            output_dir=args.output_dir,
            bank_limit=args.bank_limit,
        )
    )

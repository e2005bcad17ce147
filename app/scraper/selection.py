"""Cascading dropdown selection.

The four dropdowns are strictly ordered: picking a bank repopulates states,
a state repopulates districts, and a district repopulates branches. The page
has no "back" control, so option sets read here are only valid until the next
page load.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from . import config
from .error_codes import ErrorCode
from .logging_utils import EventSink, _scraper_event
from .page_driver import BrowserCrashedError, PageDriver, RawOption
from .retry_policy import compute_backoff_seconds, decide_retry
from .site_selectors import SITE_SELECTORS, SiteSelectors


class Level(Enum):
    BANK = "bank"
    STATE = "state"
    DISTRICT = "district"
    BRANCH = "branch"

    @property
    def child(self) -> Optional["Level"]:
        index = LEVELS.index(self)
        return LEVELS[index + 1] if index + 1 < len(LEVELS) else None


LEVELS: Tuple[Level, ...] = (Level.BANK, Level.STATE, Level.DISTRICT, Level.BRANCH)


@dataclass(frozen=True)
class Option:
    code: str
    label: str


class SelectionError(RuntimeError):
    """Raised when no selection strategy could set ``value`` on ``level``."""

    def __init__(self, level: Level, value: str, reason: str) -> None:
        super().__init__(f"Could not select {value!r} on {level.value} dropdown: {reason}")
        self.level = level
        self.value = value
        self.reason = reason


def is_placeholder(label: str, selectors: SiteSelectors = SITE_SELECTORS) -> bool:
    lowered = label.lower()
    if any(fragment in lowered for fragment in selectors.placeholder_fragments):
        return True
    return label in selectors.placeholder_labels


def filter_options(
    raw: Iterable[RawOption], selectors: SiteSelectors = SITE_SELECTORS
) -> List[Option]:
    """Drop blank and placeholder entries, keeping page order."""

    options: List[Option] = []
    for value, text in raw:
        code = (value or "").strip()
        label = (text or "").strip()
        if not code or is_placeholder(label, selectors):
            continue
        options.append(Option(code=code, label=label))
    return options


class SelectionEngine:
    """Drive one dropdown at a time to a target option.

    Strategies are tried in order until one reports success:

    1. ``value``: native select-by-value.
    2. ``match``: find an option whose value equals, or whose label contains,
       the requested value; assign it and dispatch ``change``.
    3. ``click``: open the dropdown and click the option element.
    """

    def __init__(
        self,
        driver: PageDriver,
        selectors: SiteSelectors = SITE_SELECTORS,
        *,
        observer: EventSink = _scraper_event,
        sleep: Optional[Callable[[float], None]] = None,
        settle_seconds: Optional[float] = None,
        child_wait_seconds: Optional[Dict[Level, float]] = None,
        option_wait_seconds: Optional[float] = None,
    ) -> None:
        self.driver = driver
        self.selectors = selectors
        self.observer = observer
        self.sleep = sleep or driver.sleep
        self.settle_seconds = (
            config.SELECT_SETTLE_SECONDS if settle_seconds is None else settle_seconds
        )
        self.child_wait_seconds = child_wait_seconds or {
            Level.BANK: config.BANK_CHILD_WAIT_SECONDS,
            Level.STATE: config.LEVEL_CHILD_WAIT_SECONDS,
            Level.DISTRICT: config.LEVEL_CHILD_WAIT_SECONDS,
        }
        self.option_wait_seconds = option_wait_seconds or config.OPTION_WAIT_SECONDS

    def selector_for(self, level: Level) -> str:
        return {
            Level.BANK: self.selectors.bank_select,
            Level.STATE: self.selectors.state_select,
            Level.DISTRICT: self.selectors.district_select,
            Level.BRANCH: self.selectors.branch_select,
        }[level]

    def read_options(self, level: Level) -> List[Option]:
        """Return the real options currently offered at ``level``."""

        selector = self.selector_for(level)
        if not self.driver.wait_for_selector(selector, timeout_seconds=self.option_wait_seconds):
            self.observer(
                "state",
                phase="options",
                level=level.value,
                kind="dropdown_missing",
                error_code=ErrorCode.NO_OPTIONS,
            )
            return []
        return filter_options(self.driver.read_options(selector), self.selectors)

    def _strategies(self) -> Sequence[Tuple[str, Callable[[str, str], bool]]]:
        def _click(selector: str, value: str) -> bool:
            self.driver.click_option(selector, value)
            return True

        return (
            ("value", self.driver.select_value),
            ("match", self.driver.set_matching_option),
            ("click", _click),
        )

    def select(self, level: Level, option: Option) -> None:
        selector = self.selector_for(level)
        if not self.driver.wait_for_selector(selector, timeout_seconds=self.option_wait_seconds):
            raise SelectionError(level, option.code, "dropdown not present")

        chosen: Optional[str] = None
        for name, strategy in self._strategies():
            try:
                if strategy(selector, option.code):
                    chosen = name
                    break
                self.observer(
                    "select", level=level.value, value=option.code, method=name, ok=False
                )
            except BrowserCrashedError:
                raise
            except Exception as exc:  # noqa: BLE001
                self.observer(
                    "select",
                    level=level.value,
                    value=option.code,
                    method=name,
                    ok=False,
                    error=str(exc),
                )

        if chosen is None:
            raise SelectionError(level, option.code, "all selection methods failed")

        self.observer("select", level=level.value, value=option.code, method=chosen, ok=True)
        self.sleep(self.settle_seconds)
        self._wait_for_children(level)

    def _wait_for_children(self, level: Level) -> bool:
        child = level.child
        if child is None:
            return True
        populated = self.driver.wait_for_option_count(
            self.selector_for(child),
            1,
            timeout_seconds=self.child_wait_seconds.get(level, config.LEVEL_CHILD_WAIT_SECONDS),
        )
        if not populated:
            # Some leaves legitimately have nothing below them.
            self.observer(
                "state",
                phase="select",
                kind="children_missing",
                level=level.value,
                child=child.value,
                error_code=ErrorCode.DROPDOWN_EMPTY,
            )
        return populated

    def select_with_retry(
        self, level: Level, option: Option, *, max_attempts: Optional[int] = None
    ) -> None:
        """Run :meth:`select` with a fixed delay between attempts."""

        attempts = max_attempts or config.SELECTION_MAX_RETRIES
        attempt = 0
        while True:
            attempt += 1
            try:
                self.select(level, option)
                return
            except SelectionError as exc:
                if not decide_retry(attempt, attempts, exc, error_code=ErrorCode.SELECTION):
                    raise
                self.observer(
                    "select",
                    level=level.value,
                    value=option.code,
                    kind="retry",
                    attempt=attempt,
                    max_attempts=attempts,
                )
                self.sleep(compute_backoff_seconds(ErrorCode.SELECTION))

    def reselect_path(self, path: Sequence[Option]) -> None:
        """Select each option of ``path`` at successive levels, from the bank down."""

        for level, option in zip(LEVELS, path):
            self.select_with_retry(level, option)


__all__ = [
    "Level",
    "LEVELS",
    "Option",
    "SelectionEngine",
    "SelectionError",
    "filter_options",
    "is_placeholder",
]

from __future__ import annotations

import pytest

from app.scraper import retry_policy
from app.scraper.error_codes import ErrorCode
from app.scraper.page_driver import BrowserCrashedError
from app.scraper.selection import (
    Level,
    Option,
    SelectionEngine,
    SelectionError,
    filter_options,
    is_placeholder,
)


class _FakeDriver:
    """Records which strategy was used; outcomes are scripted per strategy."""

    def __init__(self, *, value=True, match=True, click=None, children=True):
        self.outcomes = {"value": value, "match": match, "click": click}
        self.children = children
        self.calls: list[tuple[str, str, str]] = []
        self.slept: list[float] = []
        self.present = True

    def _run(self, name, selector, value):
        self.calls.append((name, selector, value))
        outcome = self.outcomes[name]
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome()
        return outcome

    def wait_for_selector(self, selector, *, timeout_seconds):
        return self.present

    def read_options(self, selector):
        return [("", "Select Bank"), ("HDFC", "HDFC Bank"), ("SBI", "State Bank of India")]

    def select_value(self, selector, value):
        return self._run("value", selector, value)

    def set_matching_option(self, selector, value):
        return self._run("match", selector, value)

    def click_option(self, selector, value):
        self._run("click", selector, value)

    def wait_for_option_count(self, selector, minimum, *, timeout_seconds):
        return self.children

    def sleep(self, seconds):
        self.slept.append(seconds)


@pytest.fixture
def events() -> list[tuple[str, dict]]:
    return []


def _engine(driver, events, **kwargs) -> SelectionEngine:
    return SelectionEngine(
        driver,
        observer=lambda label, **fields: events.append((label, fields)),
        settle_seconds=4.0,
        **kwargs,
    )


@pytest.fixture(autouse=True)
def quiet_retry_events(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(retry_policy, "_scraper_event", lambda *args, **kwargs: None)


@pytest.mark.parametrize(
    "label, expected",
    [
        ("Select Bank", True),
        ("-- Choose District --", True),
        ("See all branches", True),
        ("State", True),
        ("Branch", True),
        ("Andhra Pradesh", False),
        ("Main Branch", False),
    ],
)
def test_placeholder_detection(label: str, expected: bool) -> None:
    assert is_placeholder(label) is expected


def test_filter_options_keeps_page_order() -> None:
    raw = [("", "Select State"), ("KA", " Karnataka "), ("", "Goa"), ("KL", "Kerala"), ("X", "District")]

    assert filter_options(raw) == [Option("KA", "Karnataka"), Option("KL", "Kerala")]


def test_read_options_filters_placeholders(events) -> None:
    engine = _engine(_FakeDriver(), events)

    assert [option.code for option in engine.read_options(Level.BANK)] == ["HDFC", "SBI"]


def test_read_options_missing_dropdown(events) -> None:
    driver = _FakeDriver()
    driver.present = False

    assert _engine(driver, events).read_options(Level.STATE) == []
    assert events[-1][1]["error_code"] == ErrorCode.NO_OPTIONS


def test_value_strategy_first(events) -> None:
    driver = _FakeDriver()

    _engine(driver, events).select(Level.BANK, Option("HDFC", "HDFC Bank"))

    assert [name for name, _, _ in driver.calls] == ["value"]
    assert driver.slept == [4.0]
    assert events[-1] == ("select", {"level": "bank", "value": "HDFC", "method": "value", "ok": True})


def test_falls_back_to_match_then_click(events) -> None:
    driver = _FakeDriver(value=False, match=RuntimeError("detached"))

    _engine(driver, events).select(Level.STATE, Option("KA", "Karnataka"))

    assert [name for name, _, _ in driver.calls] == ["value", "match", "click"]
    ok_events = [fields for label, fields in events if label == "select" and fields.get("ok")]
    assert ok_events[-1]["method"] == "click"


def test_all_strategies_failing_raises(events) -> None:
    driver = _FakeDriver(value=False, match=False, click=RuntimeError("not visible"))

    with pytest.raises(SelectionError) as excinfo:
        _engine(driver, events).select(Level.DISTRICT, Option("PUN", "Pune"))

    assert excinfo.value.level is Level.DISTRICT
    assert driver.slept == []


def test_browser_crash_is_not_swallowed(events) -> None:
    driver = _FakeDriver(value=BrowserCrashedError("Target closed"))

    with pytest.raises(BrowserCrashedError):
        _engine(driver, events).select(Level.BANK, Option("HDFC", "HDFC Bank"))


def test_missing_children_is_soft(events) -> None:
    driver = _FakeDriver(children=False)

    _engine(driver, events).select(Level.DISTRICT, Option("PUN", "Pune"))

    kinds = [fields.get("kind") for _, fields in events]
    assert "children_missing" in kinds


def test_branch_level_does_not_wait_for_children(events) -> None:
    driver = _FakeDriver(children=False)

    _engine(driver, events).select(Level.BRANCH, Option("B1", "Camp"))

    assert "children_missing" not in [fields.get("kind") for _, fields in events]


def test_select_with_retry_recovers(events) -> None:
    outcomes = iter([False, True])
    driver = _FakeDriver(value=lambda: next(outcomes), match=False, click=RuntimeError("nope"))

    _engine(driver, events).select_with_retry(Level.BANK, Option("SBI", "State Bank of India"), max_attempts=3)

    retries = [fields for label, fields in events if fields.get("kind") == "retry"]
    assert len(retries) == 1


def test_select_with_retry_gives_up(events) -> None:
    driver = _FakeDriver(value=False, match=False, click=RuntimeError("nope"))

    with pytest.raises(SelectionError):
        _engine(driver, events).select_with_retry(Level.BANK, Option("SBI", "SBI"), max_attempts=3)

    assert sum(1 for name, _, _ in driver.calls if name == "value") == 3


def test_reselect_path_walks_levels_in_order(events) -> None:
    driver = _FakeDriver()
    path = [Option("HDFC", "HDFC Bank"), Option("KA", "Karnataka"), Option("BLR", "Bengaluru")]

    _engine(driver, events).reselect_path(path)

    assert [value for _, _, value in driver.calls] == ["HDFC", "KA", "BLR"]
    engine = _engine(driver, events)
    assert [selector for _, selector, _ in driver.calls] == [
        engine.selector_for(Level.BANK),
        engine.selector_for(Level.STATE),
        engine.selector_for(Level.DISTRICT),
    ]

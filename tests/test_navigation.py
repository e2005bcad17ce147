from __future__ import annotations

import pytest

from app.scraper import retry_policy
from app.scraper.navigation import NavigationController, NavigationError
from app.scraper.page_driver import BrowserCrashedError


class _FlakyDriver:
    def __init__(self, failures: list[BaseException]):
        self.failures = list(failures)
        self.loads: list[tuple[str, float]] = []
        self.slept: list[float] = []

    def load(self, url, *, timeout_seconds):
        self.loads.append((url, timeout_seconds))
        if self.failures:
            raise self.failures.pop(0)

    def sleep(self, seconds):
        self.slept.append(seconds)


@pytest.fixture
def retry_events(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    recorded: list[dict] = []
    monkeypatch.setattr(
        retry_policy, "_scraper_event", lambda label, **fields: recorded.append(fields)
    )
    return recorded


def _controller(driver, **kwargs) -> NavigationController:
    return NavigationController(
        driver,
        max_attempts=3,
        timeout_seconds=120,
        settle_seconds=2.0,
        observer=lambda *args, **kwargs: None,
        **kwargs,
    )


def test_first_attempt_succeeds(retry_events) -> None:
    driver = _FlakyDriver([])

    _controller(driver).load("https://example.test/")

    assert driver.loads == [("https://example.test/", 120)]
    assert driver.slept == [2.0]
    assert retry_events == []


def test_retries_then_succeeds(retry_events, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(retry_policy.config, "NAV_RETRY_DELAY_SECONDS", 3.0)
    driver = _FlakyDriver([TimeoutError("slow"), TimeoutError("slow")])

    _controller(driver).load("https://example.test/")

    assert len(driver.loads) == 3
    assert driver.slept == [3.0, 3.0, 2.0]
    assert [event["kind"] for event in retry_events] == ["retryable", "retryable"]


def test_exhausted_attempts_raise_navigation_error(retry_events) -> None:
    driver = _FlakyDriver([TimeoutError("down")] * 3)

    with pytest.raises(NavigationError) as excinfo:
        _controller(driver).load("https://example.test/")

    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.cause, TimeoutError)
    assert len(driver.loads) == 3
    assert retry_events[-1]["kind"] == "capped"


def test_browser_crash_propagates_immediately(retry_events) -> None:
    driver = _FlakyDriver([BrowserCrashedError("Target page, context or browser has been closed")])

    with pytest.raises(BrowserCrashedError):
        _controller(driver).load("https://example.test/")

    assert len(driver.loads) == 1
    assert retry_events == []

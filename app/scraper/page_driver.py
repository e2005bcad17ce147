"""Browser page abstraction used by every scraper component.

Only :class:`PageDriver` is referenced by the navigation, selection and
extraction code; :class:`PlaywrightPageDriver` is the live implementation and
``replay_harness.FixturePageDriver`` is the offline one.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Optional, Protocol, Sequence, Tuple

from playwright.sync_api import (
    Error as PWError,
    Page,
    Route,
    TimeoutError as PWTimeout,
    sync_playwright,
)

from . import config
from .utils import log_line

RawOption = Tuple[str, str]


class BrowserCrashedError(RuntimeError):
    """Raised when the browser page or process is gone."""


class PageDriver(Protocol):
    def load(self, url: str, *, timeout_seconds: float) -> None: ...

    def wait_for_selector(self, selector: str, *, timeout_seconds: float) -> bool: ...

    def read_options(self, selector: str) -> List[RawOption]: ...

    def select_value(self, selector: str, value: str) -> bool: ...

    def set_matching_option(self, selector: str, value: str) -> bool: ...

    def click_option(self, selector: str, value: str) -> None: ...

    def wait_for_option_count(
        self, selector: str, minimum: int, *, timeout_seconds: float
    ) -> bool: ...

    def read_container(self, candidates: Sequence[str]) -> Optional[Tuple[str, str]]: ...

    def sleep(self, seconds: float) -> None: ...


def is_target_closed_error(exc: BaseException) -> bool:
    """Return ``True`` if *exc* indicates the Playwright target is gone."""

    message = str(exc)
    return any(
        marker in message
        for marker in (
            "Target closed",
            "Target crashed",
            "has been closed",
            "Browser closed",
        )
    )


@contextmanager
def _crash_guard() -> Iterator[None]:
    try:
        yield
    except PWError as exc:
        if is_target_closed_error(exc):
            raise BrowserCrashedError(str(exc)) from exc
        raise


_READ_OPTIONS_JS = """
(sel) => {
    const select = document.querySelector(sel);
    if (!select) return [];
    return Array.from(select.querySelectorAll('option')).map((option) => [
        option.value,
        (option.textContent || '').trim(),
    ]);
}
"""

# Assigning .value alone does not trigger the page's AJAX refresh; the change
# event has to be dispatched explicitly.
_SET_MATCHING_JS = """
([sel, val]) => {
    const select = document.querySelector(sel);
    if (!select) return false;
    for (const option of select.options) {
        if (option.value === val || (option.textContent || '').trim().includes(val)) {
            select.value = option.value;
            select.dispatchEvent(new Event('change', { bubbles: true }));
            return true;
        }
    }
    return false;
}
"""

_OPTION_COUNT_JS = """
([sel, minimum]) => {
    const select = document.querySelector(sel);
    return !!select && select.options.length > minimum;
}
"""

_READ_CONTAINER_JS = """
(candidates) => {
    for (const sel of candidates) {
        const node = document.querySelector(sel);
        if (node) {
            return [node.textContent || node.innerText || '', node.innerHTML || ''];
        }
    }
    return null;
}
"""


class PlaywrightPageDriver:
    """PageDriver over a single Playwright ``Page``."""

    def __init__(self, page: Page) -> None:
        self.page = page

    def load(self, url: str, *, timeout_seconds: float) -> None:
        with _crash_guard():
            self.page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=int(timeout_seconds * 1000),
            )

    def wait_for_selector(self, selector: str, *, timeout_seconds: float) -> bool:
        with _crash_guard():
            try:
                self.page.wait_for_selector(selector, timeout=int(timeout_seconds * 1000))
                return True
            except PWTimeout:
                return False

    def read_options(self, selector: str) -> List[RawOption]:
        with _crash_guard():
            raw = self.page.evaluate(_READ_OPTIONS_JS, selector) or []
        return [(str(value), str(text)) for value, text in raw]

    def select_value(self, selector: str, value: str) -> bool:
        with _crash_guard():
            selected = self.page.select_option(
                selector,
                value=value,
                timeout=config.SELECT_ACTION_TIMEOUT_SECONDS * 1000,
            )
        return bool(selected)

    def set_matching_option(self, selector: str, value: str) -> bool:
        with _crash_guard():
            return bool(self.page.evaluate(_SET_MATCHING_JS, [selector, value]))

    def click_option(self, selector: str, value: str) -> None:
        with _crash_guard():
            timeout = config.SELECT_ACTION_TIMEOUT_SECONDS * 1000
            self.page.click(selector, timeout=timeout)
            self.sleep(config.CLICK_OPEN_DELAY_SECONDS)
            self.page.click(f'{selector} option[value="{value}"]', timeout=timeout)

    def wait_for_option_count(
        self, selector: str, minimum: int, *, timeout_seconds: float
    ) -> bool:
        with _crash_guard():
            try:
                self.page.wait_for_function(
                    _OPTION_COUNT_JS,
                    arg=[selector, minimum],
                    timeout=int(timeout_seconds * 1000),
                )
                return True
            except PWTimeout:
                return False

    def read_container(self, candidates: Sequence[str]) -> Optional[Tuple[str, str]]:
        with _crash_guard():
            found = self.page.evaluate(_READ_CONTAINER_JS, list(candidates))
        if not found:
            return None
        text, html = found
        return str(text or ""), str(html or "")

    def sleep(self, seconds: float) -> None:
        """Wait safely for ``seconds`` only if the page remains open."""

        if seconds is None or seconds <= 0:
            return
        if self.page.is_closed():
            raise BrowserCrashedError("Page has been closed")
        with _crash_guard():
            self.page.wait_for_timeout(int(seconds * 1000))


def _block_images(route: Route) -> None:
    if route.request.resource_type == "image":
        route.abort()
    else:
        route.continue_()


@contextmanager
def launch_driver(
    *, headless: Optional[bool] = None, block_images: Optional[bool] = None
) -> Iterator[PlaywrightPageDriver]:
    """Launch Chromium and yield a driver bound to a fresh page."""

    headless = config.HEADLESS if headless is None else headless
    block_images = config.BLOCK_IMAGES if block_images is None else block_images

    with sync_playwright() as pw:
        log_line(f"[BROWSER] Launching chromium (headless={headless})")
        browser = pw.chromium.launch(headless=headless, args=list(config.BROWSER_ARGS))
        context = browser.new_context(user_agent=config.USER_AGENT, locale="en-US")
        if block_images:
            try:
                context.route("**/*", _block_images)
            except PWError as exc:
                log_line(f"[BROWSER] Request interception unavailable, continuing: {exc}")
        page = context.new_page()
        page.set_default_timeout(config.NAV_TIMEOUT_SECONDS * 1000)
        page.set_default_navigation_timeout(config.NAV_TIMEOUT_SECONDS * 1000)
        try:
            yield PlaywrightPageDriver(page)
        finally:
            for closer in (context.close, browser.close):
                try:
                    closer()
                except PWError as exc:
                    log_line(f"[BROWSER] Close failed: {exc}")
            log_line("[BROWSER] Browser closed")


__all__ = [
    "PageDriver",
    "PlaywrightPageDriver",
    "BrowserCrashedError",
    "RawOption",
    "is_target_closed_error",
    "launch_driver",
]

from __future__ import annotations

from typing import Callable, Optional

from . import config
from .error_codes import ErrorCode
from .logging_utils import EventSink, _scraper_event
from .page_driver import BrowserCrashedError, PageDriver
from .retry_policy import compute_backoff_seconds, decide_retry


class NavigationError(RuntimeError):
    """Raised when the base page cannot be loaded within the retry budget."""

    def __init__(self, url: str, attempts: int, cause: Optional[BaseException]) -> None:
        super().__init__(f"Navigation to {url} failed after {attempts} attempt(s): {cause}")
        self.url = url
        self.attempts = attempts
        self.cause = cause


class NavigationController:
    """Load (and reload) the base page with bounded retry.

    Each attempt waits only for ``domcontentloaded`` and then a short settle
    delay; full network idle is never awaited because the page keeps a few
    slow third-party requests open.
    """

    def __init__(
        self,
        driver: PageDriver,
        *,
        max_attempts: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        settle_seconds: Optional[float] = None,
        observer: EventSink = _scraper_event,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.driver = driver
        self.max_attempts = max_attempts or config.NAV_MAX_ATTEMPTS
        self.timeout_seconds = timeout_seconds or config.NAV_TIMEOUT_SECONDS
        self.settle_seconds = (
            config.NAV_SETTLE_SECONDS if settle_seconds is None else settle_seconds
        )
        self.observer = observer
        self.sleep = sleep or driver.sleep

    def load(self, url: str) -> None:
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            self.observer("nav", step="goto", url=url, attempt=attempt, max_attempts=self.max_attempts)
            try:
                self.driver.load(url, timeout_seconds=self.timeout_seconds)
                self.sleep(self.settle_seconds)
                return
            except BrowserCrashedError:
                raise
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                self.observer(
                    "error",
                    phase="nav",
                    step="goto_failed",
                    url=url,
                    attempt=attempt,
                    error=str(exc),
                )
                if not decide_retry(
                    attempt, self.max_attempts, exc, error_code=ErrorCode.NAVIGATION
                ):
                    break
                self.sleep(compute_backoff_seconds(ErrorCode.NAVIGATION))

        raise NavigationError(url, self.max_attempts, last_error)


__all__ = ["NavigationController", "NavigationError"]

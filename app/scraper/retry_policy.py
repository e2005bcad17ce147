from __future__ import annotations

from typing import Optional

from . import config
from .error_codes import ErrorCode
from .logging_utils import _scraper_event

RETRYABLE_ERROR_CODES = {
    ErrorCode.NAVIGATION,
    ErrorCode.SELECTION,
}

NON_RETRYABLE_ERROR_CODES = {
    # The browser process is gone; nothing local can recover it.
    ErrorCode.BROWSER_CRASHED,
    # Soft, per-record outcomes are counted, never retried.
    ErrorCode.EXTRACTION_NO_IFSC,
    ErrorCode.DROPDOWN_EMPTY,
    ErrorCode.NO_OPTIONS,
}


def compute_backoff_seconds(error_code: Optional[str] = None) -> float:
    """Return the fixed delay applied between attempts for ``error_code``."""

    if error_code == ErrorCode.NAVIGATION:
        return float(config.NAV_RETRY_DELAY_SECONDS)
    return float(config.SELECTION_RETRY_DELAY_SECONDS)


def decide_retry(
    attempt_index: int,
    max_attempts: int,
    error: BaseException | None = None,
    *,
    error_code: Optional[str] = None,
) -> bool:
    """Decide whether a failed attempt (1-based) should be retried."""

    code = (error_code or "").strip()

    if attempt_index >= max_attempts:
        _scraper_event(
            "state",
            phase="retry_decision",
            kind="capped",
            attempt=attempt_index,
            max_attempts=max_attempts,
            error_code=code or None,
            will_retry=False,
        )
        return False

    if code in NON_RETRYABLE_ERROR_CODES:
        _scraper_event(
            "state",
            phase="retry_decision",
            kind="non_retryable",
            error_code=code,
            attempt=attempt_index,
            max_attempts=max_attempts,
            will_retry=False,
        )
        return False

    if code in RETRYABLE_ERROR_CODES:
        _scraper_event(
            "state",
            phase="retry_decision",
            kind="retryable",
            error_code=code,
            attempt=attempt_index,
            max_attempts=max_attempts,
            will_retry=True,
        )
        return True

    _scraper_event(
        "state",
        phase="retry_decision",
        kind="unknown" if code else "missing_error_code",
        error_code=code or None,
        attempt=attempt_index,
        max_attempts=max_attempts,
        will_retry=False,
        error_repr=repr(error) if error is not None else None,
    )
    return False


__all__ = [
    "decide_retry",
    "compute_backoff_seconds",
    "RETRYABLE_ERROR_CODES",
    "NON_RETRYABLE_ERROR_CODES",
]

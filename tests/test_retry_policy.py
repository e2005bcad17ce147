from __future__ import annotations

import pytest

from app.scraper import config, retry_policy
from app.scraper.error_codes import ErrorCode


@pytest.fixture
def event_recorder(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, dict]]:
    events: list[tuple[str, dict]] = []

    def _record(event_phase: str, **fields: object) -> None:
        events.append((event_phase, fields))

    monkeypatch.setattr(retry_policy, "_scraper_event", _record)
    return events


@pytest.mark.parametrize(
    "attempt, expected, kind",
    [
        (1, True, "retryable"),
        (2, True, "retryable"),
        (3, False, "capped"),
        (5, False, "capped"),
    ],
)
def test_navigation_retry_limits(
    attempt: int, expected: bool, kind: str, event_recorder: list[tuple[str, dict]]
) -> None:
    result = retry_policy.decide_retry(attempt, 3, error_code=ErrorCode.NAVIGATION)
    assert result is expected
    assert len(event_recorder) == 1
    phase, fields = event_recorder[0]
    assert phase == "state"
    assert fields["phase"] == "retry_decision"
    assert fields["error_code"] == ErrorCode.NAVIGATION
    assert fields["attempt"] == attempt
    assert fields["max_attempts"] == 3
    assert fields["will_retry"] is expected
    assert fields["kind"] == kind


@pytest.mark.parametrize(
    "error_code",
    [
        ErrorCode.BROWSER_CRASHED,
        ErrorCode.EXTRACTION_NO_IFSC,
        ErrorCode.DROPDOWN_EMPTY,
        ErrorCode.NO_OPTIONS,
    ],
)
def test_non_retryable_error_codes(error_code: str, event_recorder: list[tuple[str, dict]]) -> None:
    assert error_code in retry_policy.NON_RETRYABLE_ERROR_CODES
    result = retry_policy.decide_retry(1, 3, error_code=error_code)
    assert result is False
    _, fields = event_recorder[0]
    assert fields["kind"] == "non_retryable"
    assert fields["will_retry"] is False


def test_unknown_and_missing_codes_do_not_retry(event_recorder: list[tuple[str, dict]]) -> None:
    assert retry_policy.decide_retry(1, 3, RuntimeError("boom"), error_code="mystery") is False
    assert retry_policy.decide_retry(1, 3) is False

    kinds = [fields["kind"] for _, fields in event_recorder]
    assert kinds == ["unknown", "missing_error_code"]
    assert event_recorder[0][1]["error_repr"] == "RuntimeError('boom')"


def test_backoff_uses_per_concern_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "NAV_RETRY_DELAY_SECONDS", 3.0)
    monkeypatch.setattr(config, "SELECTION_RETRY_DELAY_SECONDS", 2.0)

    assert retry_policy.compute_backoff_seconds(ErrorCode.NAVIGATION) == 3.0
    assert retry_policy.compute_backoff_seconds(ErrorCode.SELECTION) == 2.0

from __future__ import annotations

from typing import Literal

from . import config
from .logging_utils import _scraper_event
from .utils import log_line

Entrypoint = Literal["ui", "cli", "replay", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _scraper_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def validate_runtime_config(entrypoint: Entrypoint) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Negative settle delays are clamped to zero and logged.
    """

    timeout_fields = [
        ("NAV_TIMEOUT_SECONDS", config.NAV_TIMEOUT_SECONDS),
        ("OPTION_WAIT_SECONDS", config.OPTION_WAIT_SECONDS),
        ("SELECT_ACTION_TIMEOUT_SECONDS", config.SELECT_ACTION_TIMEOUT_SECONDS),
        ("BANK_CHILD_WAIT_SECONDS", config.BANK_CHILD_WAIT_SECONDS),
        ("LEVEL_CHILD_WAIT_SECONDS", config.LEVEL_CHILD_WAIT_SECONDS),
    ]
    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
            )

    for field_name, value in (
        ("NAV_MAX_ATTEMPTS", config.NAV_MAX_ATTEMPTS),
        ("SELECTION_MAX_RETRIES", config.SELECTION_MAX_RETRIES),
    ):
        if value < 1:
            _raise_config_error(
                f"{field_name} must be at least 1.",
                entrypoint=entrypoint,
                error="invalid_attempts",
            )

    if config.CHECKPOINT_EVERY < 1:
        _raise_config_error(
            "CHECKPOINT_EVERY must be at least 1.",
            entrypoint=entrypoint,
            error="invalid_checkpoint_cadence",
        )

    for field_name in (
        "NAV_SETTLE_SECONDS",
        "NAV_RETRY_DELAY_SECONDS",
        "RELOAD_SETTLE_SECONDS",
        "SELECTION_RETRY_DELAY_SECONDS",
        "SELECT_SETTLE_SECONDS",
        "EXTRACT_SETTLE_SECONDS",
    ):
        value = getattr(config, field_name)
        if value < 0:
            _scraper_event(
                "state",
                phase="config",
                context="runtime_validation",
                kind="config_adjustment",
                field=field_name,
                value=value,
                adjusted=0.0,
                entrypoint=entrypoint,
            )
            log_line(f"[CONFIG] {field_name} < 0; clamping to 0.")
            setattr(config, field_name, 0.0)


__all__ = ["validate_runtime_config", "Entrypoint"]

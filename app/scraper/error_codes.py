from __future__ import annotations

"""Failure taxonomy for the IFSC scraper.

These codes are included in structured logs and run telemetry so that a run
summary can explain why a node of the bank/state/district/branch tree was
skipped. Keep them stable; downstream reports group on them.
"""


class ErrorCode:
    NAVIGATION = "navigation_failed"
    SELECTION = "selection_failed"
    NO_OPTIONS = "no_options"
    DROPDOWN_EMPTY = "dropdown_empty"
    EXTRACTION_NO_IFSC = "extraction_no_ifsc"
    BROWSER_CRASHED = "browser_crashed"
    INTERNAL = "internal_error"


__all__ = ["ErrorCode"]

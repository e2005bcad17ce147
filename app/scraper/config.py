"""Configuration constants for the IFSC directory scraper."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("IFSC_DATA_DIR", "data"))
OUTPUT_DIR: Path = DATA_DIR / "output"
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
PROGRESS_FILE: Path = DATA_DIR / "progress.json"
SUMMARY_FILE: Path = DATA_DIR / "last_summary.json"
RUNS_DIR: Path = DATA_DIR / "runs"
EXPORTS_DIR: Path = DATA_DIR / "exports"

DEFAULT_BASE_URL: str = os.getenv("IFSC_BASE_URL", "https://bankifsccode.com/")

FINAL_TAG: str = "FINAL_ALL_BANKS_DATA"
EMERGENCY_TAG: str = "ERROR_RECOVERY_DATA"
BANK_LIST_FILE: str = "bank_list.json"


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


def _parse_flag(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


# Navigation (page.goto) controls
NAV_MAX_ATTEMPTS: int = _parse_timeout_seconds("IFSC_NAV_MAX_ATTEMPTS", 3)
NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds("IFSC_NAV_TIMEOUT_SECONDS", 120)
NAV_SETTLE_SECONDS: float = float(os.getenv("IFSC_NAV_SETTLE_SECONDS", "2.0"))
NAV_RETRY_DELAY_SECONDS: float = float(os.getenv("IFSC_NAV_RETRY_DELAY_SECONDS", "3.0"))
# Pause after every fresh load inside the traversal, before reselecting ancestors.
RELOAD_SETTLE_SECONDS: float = float(os.getenv("IFSC_RELOAD_SETTLE_SECONDS", "1.0"))

# Dropdown selection controls
SELECTION_MAX_RETRIES: int = _parse_timeout_seconds("IFSC_SELECTION_MAX_RETRIES", 3)
SELECTION_RETRY_DELAY_SECONDS: float = float(
    os.getenv("IFSC_SELECTION_RETRY_DELAY_SECONDS", "2.0")
)
SELECT_SETTLE_SECONDS: float = float(os.getenv("IFSC_SELECT_SETTLE_SECONDS", "4.0"))
CLICK_OPEN_DELAY_SECONDS: float = float(os.getenv("IFSC_CLICK_OPEN_DELAY_SECONDS", "0.5"))
# Wait for a <select> to be attached before reading its options.
OPTION_WAIT_SECONDS: int = _parse_timeout_seconds("IFSC_OPTION_WAIT_SECONDS", 15)
# Playwright action timeout for select_option and the click fallback.
SELECT_ACTION_TIMEOUT_SECONDS: int = _parse_timeout_seconds("IFSC_SELECT_ACTION_TIMEOUT_SECONDS", 5)
# Wait for the next dropdown to populate after a selection.
BANK_CHILD_WAIT_SECONDS: int = _parse_timeout_seconds("IFSC_BANK_CHILD_WAIT_SECONDS", 15)
LEVEL_CHILD_WAIT_SECONDS: int = _parse_timeout_seconds("IFSC_LEVEL_CHILD_WAIT_SECONDS", 12)

# Detail extraction
EXTRACT_SETTLE_SECONDS: float = float(os.getenv("IFSC_EXTRACT_SETTLE_SECONDS", "4.0"))

# Checkpointing
CHECKPOINT_EVERY: int = int(os.getenv("IFSC_CHECKPOINT_EVERY", "50"))
RESUME_MAX_AGE_HOURS: int = int(os.getenv("IFSC_RESUME_MAX_AGE_HOURS", "72"))

# Browser
HEADLESS: bool = _parse_flag("IFSC_HEADLESS", True)
BLOCK_IMAGES: bool = _parse_flag("IFSC_BLOCK_IMAGES", True)
USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
BROWSER_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--disable-extensions",
)


def records_file() -> Path:
    """Return the record artifact served by the lookup app."""

    override = os.getenv("IFSC_RECORDS_FILE")
    if override:
        return Path(override)
    return OUTPUT_DIR / f"{FINAL_TAG}.json"

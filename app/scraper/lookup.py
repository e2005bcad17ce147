"""IFSC lookup over a static record artifact."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Sequence

from .utils import load_json_file


def load_lookup_records(path: Path) -> List[Dict[str, Any]]:
    """Return the raw record dicts stored at ``path``.

    Raises ``ValueError`` when the file is missing or not a JSON array.
    """

    payload = load_json_file(path)
    if not isinstance(payload, list):
        raise ValueError(f"No record array at {path}")
    return [item for item in payload if isinstance(item, dict)]


def find_by_ifsc(records: Sequence[Dict[str, Any]], code: str) -> List[Dict[str, Any]]:
    """Return every record whose ``ifscCode`` equals ``code``, ignoring case."""

    wanted = (code or "").strip().upper()
    if not wanted:
        raise ValueError("Please enter an IFSC Code.")
    return [
        record
        for record in records
        if str(record.get("ifscCode") or "").strip().upper() == wanted
    ]


__all__ = ["find_by_ifsc", "load_lookup_records"]

from __future__ import annotations

"""CLI helper for printing what a record artifact contains."""

import argparse
from collections import Counter
from pathlib import Path
from typing import Sequence

from . import config
from .records import load_records_json
from .utils import load_json_file


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the summary CLI."""

    parser = argparse.ArgumentParser(
        description="Show branch counts for a scraped record artifact.",
    )
    parser.add_argument(
        "--records",
        type=Path,
        help="Record JSON artifact to summarise.",
    )
    parser.add_argument(
        "--latest",
        action="store_true",
        help="Summarise the artifact written by the last run.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the summary CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    records_path = args.records
    last_summary = load_json_file(config.SUMMARY_FILE, default={}) or {}
    if args.latest and records_path is None and last_summary.get("output"):
        records_path = Path(last_summary["output"])
    if records_path is None:
        parser.error("You must provide --records or --latest")

    try:
        records = load_records_json(records_path)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    print(f"Records: {len(records)} ({records_path})")
    by_bank = Counter(record.bank_name for record in records)
    for bank, count in sorted(by_bank.items()):
        print(f"  {bank}: {count}")

    if args.latest and last_summary:
        print(
            f"\nLast run: {last_summary.get('total_records', 0)} ok, "
            f"{last_summary.get('failed_records', 0)} failed, "
            f"success rate {last_summary.get('success_rate', 0.0)}%"
        )

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())

"""Excel export helpers for scraped branch records."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import pandas as pd

from . import config
from .records import CSV_FIELDS, load_records_json


def export_records_to_excel(records_json: Path, dest_path: Optional[Path] = None) -> Path:
    """Create an Excel workbook from a record artifact.

    Sheets: ``All`` (one row per branch), ``Summary_Bank`` and
    ``Summary_State`` (branch counts, largest first).
    """

    records = load_records_json(records_json)
    df = pd.DataFrame([record.to_dict() for record in records], columns=list(CSV_FIELDS))

    def safe_pivot(frame, by):
        if frame.empty:
            return pd.DataFrame(columns=[*by, "count"])
        return frame.groupby(by).size().reset_index(name="count").sort_values("count", ascending=False)

    summary_bank = safe_pivot(df, ["bankName"])
    summary_state = safe_pivot(df, ["bankName", "state"])

    if dest_path is None:
        os.makedirs(config.EXPORTS_DIR, exist_ok=True)
        dest_path = config.EXPORTS_DIR / f"{Path(records_json).stem}.xlsx"
    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="All")
        summary_bank.to_excel(writer, index=False, sheet_name="Summary_Bank")
        summary_state.to_excel(writer, index=False, sheet_name="Summary_State")

    return dest_path


__all__ = ["export_records_to_excel"]


if __name__ == "__main__":  # pragma: no cover
    import argparse

    parser = argparse.ArgumentParser(description="Export a record artifact to Excel.")
    parser.add_argument("records", type=Path)
    parser.add_argument("--dest", type=Path, default=None)
    args = parser.parse_args()
    print(export_records_to_excel(args.records, args.dest))

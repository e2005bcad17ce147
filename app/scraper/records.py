"""Branch records, the run-state value and the JSON/CSV artifact codec."""
from __future__ import annotations

import csv
import io
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .utils import atomic_write_text, log_line, now_iso

# Four letters, then either seven digits or the reserved "0" plus six
# alphanumerics.
IFSC_PATTERN = re.compile(r"[A-Z]{4}(?:[0-9]{7}|0[A-Z0-9]{6})", re.IGNORECASE)

MICR_MISSING = "Not Available"

CSV_FIELDS: Tuple[str, ...] = (
    "bankName",
    "state",
    "district",
    "branchName",
    "ifscCode",
    "micrCode",
    "address",
    "contact",
    "branchDetails",
    "scrapedAt",
)

_ATTRS: Tuple[str, ...] = (
    "bank_name",
    "state",
    "district",
    "branch_name",
    "ifsc_code",
    "micr_code",
    "address",
    "contact",
    "branch_details",
    "scraped_at",
)

LeafKey = Tuple[str, str, str, str]


def is_valid_ifsc(value: Optional[str]) -> bool:
    if not value:
        return False
    return IFSC_PATTERN.fullmatch(value.strip()) is not None


@dataclass(frozen=True)
class BranchDetail:
    """Fields read from the detail container for one branch."""

    ifsc_code: str
    micr_code: str = ""
    address: str = ""
    contact: str = ""
    branch_details: str = ""


@dataclass(frozen=True)
class BranchRecord:
    bank_name: str
    state: str
    district: str
    branch_name: str
    ifsc_code: str
    micr_code: str
    address: str
    contact: str
    branch_details: str
    scraped_at: str

    @classmethod
    def create(
        cls,
        *,
        bank_name: str,
        state: str,
        district: str,
        branch_name: str,
        detail: BranchDetail,
        scraped_at: Optional[str] = None,
    ) -> "BranchRecord":
        """Build a record, refusing anything without a valid IFSC code."""

        if not is_valid_ifsc(detail.ifsc_code):
            raise ValueError(f"Invalid IFSC code: {detail.ifsc_code!r}")
        return cls(
            bank_name=bank_name,
            state=state,
            district=district,
            branch_name=branch_name,
            ifsc_code=detail.ifsc_code.strip().upper(),
            micr_code=detail.micr_code or MICR_MISSING,
            address=detail.address,
            contact=detail.contact,
            branch_details=detail.branch_details,
            scraped_at=scraped_at or now_iso(),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BranchRecord":
        values = {attr: str(data.get(key) or "") for key, attr in zip(CSV_FIELDS, _ATTRS)}
        if not is_valid_ifsc(values["ifsc_code"]):
            raise ValueError(f"Invalid IFSC code: {values['ifsc_code']!r}")
        return cls(**values)

    def to_dict(self) -> Dict[str, str]:
        return {key: getattr(self, attr) for key, attr in zip(CSV_FIELDS, _ATTRS)}

    @property
    def leaf_key(self) -> LeafKey:
        return (self.bank_name, self.state, self.district, self.branch_name)


@dataclass
class RunState:
    """Accumulated outcome of a traversal, passed explicitly through the run.

    Records are only ever appended.
    """

    records: List[BranchRecord] = field(default_factory=list)
    success_count: int = 0
    failure_count: int = 0

    def add_record(self, record: BranchRecord) -> "RunState":
        self.records.append(record)
        self.success_count += 1
        return self

    def add_failure(self, count: int = 1) -> "RunState":
        self.failure_count += count
        return self

    @property
    def success_rate(self) -> float:
        attempted = self.success_count + self.failure_count
        if not attempted:
            return 0.0
        return round(self.success_count * 100.0 / attempted, 2)

    def leaf_keys(self) -> set[LeafKey]:
        return {record.leaf_key for record in self.records}


def _clean_csv_value(value: Any) -> str:
    return str(value or "").replace("\r", "").replace("\n", " ")


def records_to_csv(records: Iterable[BranchRecord]) -> str:
    """Render records with every value quoted and line breaks flattened."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_FIELDS)
    for record in records:
        row = record.to_dict()
        writer.writerow([_clean_csv_value(row[key]) for key in CSV_FIELDS])
    return buffer.getvalue()


def records_from_csv(text: str) -> List[Dict[str, str]]:
    reader = csv.DictReader(io.StringIO(text))
    return [{key: row.get(key, "") or "" for key in CSV_FIELDS} for row in reader]


def write_records_json(path: Path, records: Iterable[BranchRecord]) -> None:
    payload = [record.to_dict() for record in records]
    atomic_write_text(Path(path), json.dumps(payload, ensure_ascii=False, indent=2))


def write_records_csv(path: Path, records: Iterable[BranchRecord]) -> None:
    atomic_write_text(Path(path), records_to_csv(records))


def load_records_json(path: Path) -> List[BranchRecord]:
    """Load a record artifact, skipping entries that fail validation."""

    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, list):
        raise ValueError(f"{path} does not contain a JSON array")

    records: List[BranchRecord] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        try:
            records.append(BranchRecord.from_dict(item))
        except ValueError as exc:
            log_line(f"[RECORDS] Skipping invalid entry in {path}: {exc}")
    return records


__all__ = [
    "IFSC_PATTERN",
    "CSV_FIELDS",
    "MICR_MISSING",
    "BranchDetail",
    "BranchRecord",
    "RunState",
    "LeafKey",
    "is_valid_ifsc",
    "records_to_csv",
    "records_from_csv",
    "write_records_json",
    "write_records_csv",
    "load_records_json",
]

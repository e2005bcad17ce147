"""Branch detail extraction from the lookup page's result container.

Every field has an ordered tuple of parsers. A parser is a pure
``text -> Optional[str]`` callable and the first non-empty result wins, so
each field's policy can be read (and tested) on its own.
"""
from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from . import config
from .error_codes import ErrorCode
from .logging_utils import EventSink, _scraper_event
from .page_driver import PageDriver
from .records import BranchDetail, is_valid_ifsc
from .site_selectors import SITE_SELECTORS, SiteSelectors

FieldParser = Callable[[str], Optional[str]]

_IFSC = r"([A-Z]{4}(?:[0-9]{7}|0[A-Z0-9]{6}))(?![A-Z0-9])"
_LABELS = r"(?:Contact|Phone|Mobile|Tel|State|District|Branch|IFSC|MICR|Address)"
_END = rf"(?=\s*\b{_LABELS}\b(?:\s*(?:Code|Name|No\.?))?\s*:|\n|$)"

_LEADING_LABEL = re.compile(r"^\s*[A-Za-z][A-Za-z .]{0,24}:\s*")
_LEADING_PUNCT = re.compile(r"^\s*[-:]\s*")
_TRAILING_JUNK = re.compile(r"(?:\s*(?:\.{2,}|…|[|:;,\-]))+\s*$")
_WHITESPACE = re.compile(r"\s+")


def pattern_parser(pattern: str, flags: int = re.IGNORECASE) -> FieldParser:
    """Return a parser yielding group 1 of ``pattern`` when it is non-blank."""

    compiled = re.compile(pattern, flags)

    def _parse(text: str) -> Optional[str]:
        match = compiled.search(text or "")
        if match and match.group(1) and match.group(1).strip():
            return match.group(1).strip()
        return None

    return _parse


IFSC_PARSERS: Tuple[FieldParser, ...] = (
    pattern_parser(rf"IFSC\s*Code[:\s]*{_IFSC}"),
    pattern_parser(rf"IFSC[:\s]*{_IFSC}"),
    pattern_parser(rf"Code[:\s]*{_IFSC}"),
    pattern_parser(rf"(?<![A-Z0-9]){_IFSC}"),
)

MICR_PARSERS: Tuple[FieldParser, ...] = (
    pattern_parser(r"MICR\s*Code[:\s]*([0-9]{9})(?![0-9])"),
    pattern_parser(r"MICR[:\s]*([0-9]{9})(?![0-9])"),
    pattern_parser(r"(?<![0-9])([0-9]{9})(?![0-9])"),
)

ADDRESS_PARSERS: Tuple[FieldParser, ...] = (
    pattern_parser(rf"Address\s*:?\s*(.+?){_END}"),
    pattern_parser(r"Address[:\s]*(.+?)(?=\b(?:Contact|Phone)\b|\n|$)"),
    pattern_parser(r"Address[:\s]*(.{10,200}?)(?=\b(?:Contact|Phone)\b|\n)"),
)

CONTACT_PARSERS: Tuple[FieldParser, ...] = (
    pattern_parser(rf"Contact\s*:?\s*(.+?){_END}"),
    pattern_parser(rf"Phone\s*:?\s*(.+?){_END}"),
    pattern_parser(rf"Mobile\s*:?\s*(.+?){_END}"),
    pattern_parser(rf"\bTel\s*:?\s*(.+?){_END}"),
    pattern_parser(r"(?<![0-9])([0-9]{10,12})(?![0-9])"),
    pattern_parser(r"(\+?[0-9]{2,5}[-\s][0-9]{6,8})(?![0-9])"),
)

BRANCH_PARSERS: Tuple[FieldParser, ...] = (
    pattern_parser(rf"Branch\s*Name\s*:?\s*(.+?){_END}"),
    pattern_parser(rf"Branch\s*:\s*(.+?){_END}"),
    pattern_parser(rf"Office\s*:?\s*(.+?){_END}"),
)

FIELD_PARSERS: Dict[str, Tuple[FieldParser, ...]] = {
    "ifsc_code": IFSC_PARSERS,
    "micr_code": MICR_PARSERS,
    "address": ADDRESS_PARSERS,
    "contact": CONTACT_PARSERS,
    "branch_details": BRANCH_PARSERS,
}


def first_match(text: str, parsers: Iterable[FieldParser]) -> str:
    for parser in parsers:
        value = parser(text)
        if value:
            return value
    return ""


def clean_text(value: Optional[str]) -> str:
    """Strip a leading label, collapse whitespace and drop dangling separators."""

    if not value:
        return ""
    cleaned = _WHITESPACE.sub(" ", value)
    cleaned = _LEADING_LABEL.sub("", cleaned, count=1)
    cleaned = _LEADING_PUNCT.sub("", cleaned, count=1)
    cleaned = _TRAILING_JUNK.sub("", cleaned)
    return cleaned.strip()


def _row_texts(html: Optional[str], text: str) -> List[str]:
    if html:
        soup = BeautifulSoup(html, "html5lib")
        rows = [node.get_text(" ", strip=True) for node in soup.find_all(["tr", "p", "div"])]
        return [row for row in rows if row]
    return [line.strip() for line in text.splitlines() if line.strip()]


def _scan_rows(rows: Sequence[str], found: Dict[str, str]) -> None:
    """Loose keyword-anchored pass over individual rows for missing fields."""

    for row in rows:
        lowered = row.lower()
        if not found["address"] and "address" in lowered:
            match = re.search(r"(?:Address[:\s]*)?(.{20,200})", row, re.IGNORECASE)
            if match:
                found["address"] = re.sub(r"Address[:\s]*", "", match.group(1), flags=re.IGNORECASE)
        if not found["contact"] and any(word in row for word in ("Contact", "Phone", "Mobile")):
            match = re.search(r"(?:Contact|Phone|Mobile)[:\s]*([^\n\r]{5,50})", row, re.IGNORECASE)
            if match:
                found["contact"] = match.group(1)
        if not found["branch_details"] and "Branch" in row:
            match = re.search(r"(?:Branch[:\s]*)?([^\n\r]{5,100})", row, re.IGNORECASE)
            if match:
                found["branch_details"] = re.sub(r"Branch[:\s]*", "", match.group(1), flags=re.IGNORECASE)


def parse_detail(text: str, html: Optional[str] = None) -> Optional[BranchDetail]:
    """Parse container text into a :class:`BranchDetail`.

    Returns ``None`` when no IFSC-shaped code can be found.
    """

    text = text or ""
    ifsc = clean_text(first_match(text, IFSC_PARSERS)).upper()
    if not is_valid_ifsc(ifsc):
        return None

    found = {
        name: first_match(text, parsers)
        for name, parsers in FIELD_PARSERS.items()
        if name != "ifsc_code"
    }
    if not (found["address"] and found["contact"] and found["branch_details"]):
        _scan_rows(_row_texts(html, text), found)

    return BranchDetail(
        ifsc_code=ifsc,
        micr_code=clean_text(found["micr_code"]),
        address=clean_text(found["address"]),
        contact=clean_text(found["contact"]),
        branch_details=clean_text(found["branch_details"]),
    )


class Extractor:
    """Read the detail container from the page and parse it."""

    def __init__(
        self,
        driver: PageDriver,
        selectors: SiteSelectors = SITE_SELECTORS,
        *,
        observer: EventSink = _scraper_event,
        settle_seconds: Optional[float] = None,
    ) -> None:
        self.driver = driver
        self.selectors = selectors
        self.observer = observer
        self.settle_seconds = (
            config.EXTRACT_SETTLE_SECONDS if settle_seconds is None else settle_seconds
        )

    def extract(self) -> Optional[BranchDetail]:
        self.driver.sleep(self.settle_seconds)
        found = self.driver.read_container(self.selectors.detail_containers)
        if found is None:
            self.observer("extract", ok=False, reason="container_missing")
            return None

        text, html = found
        detail = parse_detail(text, html)
        if detail is None:
            self.observer(
                "extract",
                ok=False,
                error_code=ErrorCode.EXTRACTION_NO_IFSC,
                sample=text[:120],
            )
            return None

        self.observer(
            "extract",
            ok=True,
            ifsc=detail.ifsc_code,
            micr=detail.micr_code or None,
            has_address=bool(detail.address),
            has_contact=bool(detail.contact),
        )
        return detail


__all__ = [
    "Extractor",
    "FieldParser",
    "FIELD_PARSERS",
    "IFSC_PARSERS",
    "clean_text",
    "first_match",
    "parse_detail",
    "pattern_parser",
]

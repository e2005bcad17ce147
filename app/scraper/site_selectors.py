from __future__ import annotations

"""Locator hints for the IFSC lookup page.

The page is a legacy table layout with four sibling forms, one ``<select>``
per form, addressed by position. Nothing on the page carries stable ids, so
the locators below are positional and the detail container has several
candidates that are tried in order.
"""

from dataclasses import dataclass
from typing import Tuple

_FORM_ROOT = (
    "body > table.main > tbody > tr:nth-child(9) > td.main > table > tbody > tr"
    " > td:nth-child(1) > div"
)


@dataclass(frozen=True)
class SiteSelectors:
    """Selector hints for the bank/state/district/branch form."""

    bank_select: str = f"{_FORM_ROOT} > form:nth-child(3) > div > select"
    state_select: str = f"{_FORM_ROOT} > form:nth-child(4) > div > select"
    district_select: str = f"{_FORM_ROOT} > form:nth-child(5) > div > select"
    branch_select: str = f"{_FORM_ROOT} > form:nth-child(6) > div > select"
    detail_containers: Tuple[str, ...] = (
        _FORM_ROOT,
        ".main table tbody tr td div",
        "table.main td.main div",
        "body table tbody tr td div",
    )
    # Placeholder entries are matched case-insensitively as substrings ...
    placeholder_fragments: Tuple[str, ...] = ("select", "choose", "see")
    # ... or exactly, for the bare level captions.
    placeholder_labels: Tuple[str, ...] = ("State", "District", "Branch")


SITE_SELECTORS = SiteSelectors()

__all__ = ["SiteSelectors", "SITE_SELECTORS"]

"""
Header matching for loosely structured budget spreadsheets.

Project sheets arrive with whatever headers the site office typed, e.g.
``"專案名稱"``, ``"原編預算(萬)"`` or ``"Paid to date"``. Each target field
owns an ordered tuple of label fragments; :func:`resolve` picks the first
column whose label contains any of them.
"""

from __future__ import annotations

from typing import Dict, Mapping, Sequence, Tuple

# Keep tuple structure to preserve priority order
FIELD_CANDIDATES: Dict[str, Tuple[str, ...]] = {
    "name": ("專案", "案名", "工程", "名稱"),
    "area": ("建坪", "面積", "Area"),
    "original_budget": ("原編", "Original"),
    "exec_budget": ("執行", "Execution"),
    "paid": ("請款", "已請", "Paid"),
}


def resolve(row: Mapping[object, object], candidates: Sequence[str]) -> object:
    """
    Return the value of the first column whose label contains a candidate.

    Columns are scanned in the row's own order and, for each column, every
    candidate is tried case-insensitively. The first matching *column* wins,
    so with columns ``["原編造價", "原編預算"]`` and candidates ``["原編"]``
    the value under ``"原編造價"`` is returned. Returns ``""`` when nothing
    matches.
    """

    needles = [candidate.lower() for candidate in candidates]
    for label, value in row.items():
        haystack = str(label).lower()
        for needle in needles:
            if needle in haystack:
                return value
    return ""


def expected_fragments() -> Tuple[str, ...]:
    """Primary fragment per field, used in user-facing diagnostics."""

    return tuple(fragments[0] for fragments in FIELD_CANDIDATES.values())


__all__ = ["FIELD_CANDIDATES", "resolve", "expected_fragments"]

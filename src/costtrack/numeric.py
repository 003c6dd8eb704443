"""Coercion of dirty spreadsheet cells into finite numbers."""
from __future__ import annotations

import math
import re

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def normalize(raw: object) -> float:
    """Return ``raw`` as a finite float, falling back to ``0.0``.

    Commas are stripped before parsing so ``"1,234.5"`` becomes ``1234.5``.
    As with a lenient ``parseFloat``, text trailing a leading number is
    ignored (``"12.5萬"`` -> ``12.5``). Negative values pass through.
    """

    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else 0.0
    text = str(raw).replace(",", "")
    match = _LEADING_NUMBER.match(text)
    if not match:
        return 0.0
    value = float(match.group(0))
    return value if math.isfinite(value) else 0.0


__all__ = ["normalize"]

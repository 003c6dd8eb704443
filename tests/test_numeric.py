from __future__ import annotations

import math

import pytest

from costtrack.numeric import normalize


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1,234.5", 1234.5),
        ("abc", 0.0),
        ("", 0.0),
        (None, 0.0),
        (42, 42.0),
        (-100.5, -100.5),
        ("-1,000", -1000.0),
        ("  3 ", 3.0),
        ("12.5萬", 12.5),
        ("1e3", 1000.0),
    ],
)
def test_normalize_values(raw, expected) -> None:
    assert normalize(raw) == expected


def test_normalize_never_returns_non_finite() -> None:
    assert normalize(float("nan")) == 0.0
    assert normalize(float("inf")) == 0.0
    assert normalize("1e999") == 0.0
    assert normalize(True) == 0.0
    assert math.isfinite(normalize("NaN"))

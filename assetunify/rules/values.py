"""Value stringification shared by rule normalization and evaluation."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any

_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def scalar_text(value: Any) -> str:
    """Default string conversion for a single value (None -> "")."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def stringify_value(value: Any) -> str:
    """Stringify a row value for comparison.

    Lists and tuples join their elements with ", ", mappings join their values
    the same way, everything else uses ``scalar_text``.
    """
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(scalar_text(entry) for entry in value)
    if isinstance(value, Mapping):
        return ", ".join(scalar_text(entry) for entry in value.values())
    return scalar_text(value)


def to_number(value: Any) -> float | None:
    """Parse a plain decimal number, or None when the text is not numeric.

    Digit separators, ``inf`` and ``nan`` are not numbers here.
    """
    text = scalar_text(value).strip()
    if not _NUMBER.fullmatch(text):
        return None
    number = float(text)
    return number if math.isfinite(number) else None

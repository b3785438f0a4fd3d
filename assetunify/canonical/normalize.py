"""Merge key selection and normalization for record clustering."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Mapping, Sequence
from typing import Any

from assetunify.config import DEFAULT_MERGE_KEY_CANDIDATES

_WHITESPACE = re.compile(r"\s+")
_DIGITS = re.compile(r"(\d+)")


def normalize_merge_key(value: Any) -> str:
    """Trim, lowercase and collapse internal whitespace runs to one space."""
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value).strip().lower())


def pick_merge_key(
    fields: Mapping[str, Any],
    candidates: Sequence[str] = DEFAULT_MERGE_KEY_CANDIDATES,
) -> Any | None:
    """Pick the identifying value of a record.

    Checks the candidate column names in order (case-insensitive, first column
    with that name only), then falls back to the first non-blank string value.

    Returns:
        The raw value, or None when the record is unkeyed
    """
    for candidate in candidates:
        match = next((key for key in fields if key.lower() == candidate.lower()), None)
        if match is not None and fields[match]:
            return fields[match]

    for value in fields.values():
        if isinstance(value, str) and value.strip():
            return value
    return None


def canonical_merge_key(
    fields: Mapping[str, Any],
    candidates: Sequence[str] = DEFAULT_MERGE_KEY_CANDIDATES,
) -> str | None:
    """Normalized merge key, or None for unkeyed records."""
    raw = pick_merge_key(fields, candidates)
    if not raw:
        return None
    return normalize_merge_key(raw) or None


def slugify(text: str | None) -> str:
    """Lowercase ASCII slug with hyphen separators."""
    if not text:
        return ""
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def natural_key(text: str) -> list[Any]:
    """Case-insensitive sort key that orders embedded numbers numerically."""
    return [
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in _DIGITS.split(text.casefold())
        if part
    ]

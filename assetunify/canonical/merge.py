"""First-non-empty-wins field merging.

Shared by the unified asset rebuild and the asset pool projection so both
resolve competing values with the same tie-break: the first entry (in input
order) that carries a value wins, later entries never overwrite it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple


class FieldEntry(NamedTuple):
    field: str
    value: Any
    has_value: bool


def has_value(value: Any) -> bool:
    """True unless the value is None or the empty string; whitespace counts."""
    return value is not None and value != ""


def entry(field: str, value: Any) -> FieldEntry:
    return FieldEntry(field, value, has_value(value))


def merge_first_non_empty(
    entries: Iterable[FieldEntry],
    initial: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Reduce ordered entries into one field map.

    Args:
        entries: (field, value, has_value) triples in precedence order
        initial: Placeholder values for fields that may stay unresolved

    Returns:
        ``initial`` overlaid with the first valued entry per field
    """
    merged = dict(initial or {})
    resolved: set[str] = set()
    for field, value, present in entries:
        if not present or field in resolved:
            continue
        merged[field] = value
        resolved.add(field)
    return merged

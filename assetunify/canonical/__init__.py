"""Canonical key and field merge helpers."""

from assetunify.canonical.merge import FieldEntry, entry, has_value, merge_first_non_empty
from assetunify.canonical.normalize import (
    canonical_merge_key,
    natural_key,
    normalize_merge_key,
    pick_merge_key,
    slugify,
)

__all__ = [
    "FieldEntry",
    "canonical_merge_key",
    "entry",
    "has_value",
    "merge_first_non_empty",
    "natural_key",
    "normalize_merge_key",
    "pick_merge_key",
    "slugify",
]

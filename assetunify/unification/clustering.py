"""Greedy fuzzy clustering of normalized source records.

Clustering is order-dependent by construction: each record joins the first
existing keyed cluster within the edit-distance threshold. Re-running with the
same input in the same order always yields the same clusters.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from rapidfuzz.distance import Levenshtein

from assetunify.canonical.merge import entry, merge_first_non_empty
from assetunify.canonical.normalize import canonical_merge_key
from assetunify.config import DEFAULT_MERGE_KEY_CANDIDATES


@dataclass(slots=True)
class NormalizedRecord:
    """A source row translated into the unified column space."""

    source_id: int
    fields: dict[str, Any]
    canonical: str | None = None

    @property
    def is_keyed(self) -> bool:
        return bool(self.canonical)


@dataclass(slots=True)
class Cluster:
    canonical: str | None
    items: list[NormalizedRecord] = field(default_factory=list)

    def merged_fields(self) -> dict[str, Any]:
        """Per field, the first value supplied by any item in insertion order."""
        return merge_first_non_empty(
            entry(name, value) for item in self.items for name, value in item.fields.items()
        )

    def source_ids(self) -> list[int]:
        return list(dict.fromkeys(item.source_id for item in self.items))


def normalize_record(
    source_id: int,
    data: Mapping[str, Any],
    column_map: Mapping[str, str],
    schema_columns: Sequence[str],
    candidates: Sequence[str] = DEFAULT_MERGE_KEY_CANDIDATES,
) -> NormalizedRecord:
    """Translate one source row through its column map.

    Unmapped source columns are dropped; declared schema columns missing from
    the result are set to None so every record shares the schema's key set.
    """
    fields: dict[str, Any] = {}
    for source_col, value in data.items():
        unified_col = column_map.get(source_col)
        if unified_col:
            fields[unified_col] = value

    for column in schema_columns:
        fields.setdefault(column, None)

    return NormalizedRecord(
        source_id=source_id,
        fields=fields,
        canonical=canonical_merge_key(fields, candidates),
    )


def within_distance(left: str, right: str, threshold: int) -> bool:
    if left == right:
        return True
    return Levenshtein.distance(left, right, score_cutoff=threshold) <= threshold


def cluster_records(
    records: Iterable[NormalizedRecord],
    threshold: int = 2,
) -> list[Cluster]:
    """Group records whose merge keys are within ``threshold`` edits.

    Unkeyed records always form singleton clusters. When a record joins a
    cluster with a shorter key, that key becomes the cluster's comparison key.
    """
    clusters: list[Cluster] = []

    for record in records:
        if not record.is_keyed:
            clusters.append(Cluster(canonical=None, items=[record]))
            continue

        key = record.canonical or ""
        existing = next(
            (
                cluster
                for cluster in clusters
                if cluster.canonical and within_distance(cluster.canonical, key, threshold)
            ),
            None,
        )

        if existing is None:
            clusters.append(Cluster(canonical=key, items=[record]))
            continue

        existing.items.append(record)
        if not existing.canonical or len(key) < len(existing.canonical):
            existing.canonical = key

    return clusters

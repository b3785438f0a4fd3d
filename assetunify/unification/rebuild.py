"""Unified asset rebuild.

Coordinates source rows → column mapping → merge key → clustering → field
merge → full replacement of the ``unified_assets`` table.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from assetunify.config import get_config
from assetunify.models import ColumnMapping, SourceRow, UnifiedAsset, utcnow
from assetunify.repository.base import Repository, TableData, TableMeta
from assetunify.unification.clustering import (
    Cluster,
    NormalizedRecord,
    cluster_records,
    normalize_record,
)

logger = logging.getLogger(__name__)


class SchemaMapper:
    """Builds canonical unified assets from every uploaded source."""

    def __init__(
        self,
        repo: Repository,
        distance_threshold: int | None = None,
        merge_key_candidates: tuple[str, ...] | None = None,
    ):
        """Initialize mapper.

        Args:
            repo: Table repository
            distance_threshold: Max edit distance for clustering (config default)
            merge_key_candidates: Identifying column names (config default)
        """
        self.repo = repo
        if distance_threshold is None or merge_key_candidates is None:
            unification = get_config().unification
            if distance_threshold is None:
                distance_threshold = unification.distance_threshold
            if merge_key_candidates is None:
                merge_key_candidates = unification.merge_key_candidates
        self.distance_threshold = distance_threshold
        self.merge_key_candidates = merge_key_candidates

    async def normalized_records(self) -> list[NormalizedRecord]:
        """Translate every source row into the unified column space."""
        sources = (await self.repo.get("sources")).rows
        schema_columns = [row["col_name"] for row in (await self.repo.get("schema")).rows]
        mappings = [
            ColumnMapping.model_validate(row) for row in (await self.repo.get("mappings")).rows
        ]
        source_rows = [
            SourceRow.model_validate(row) for row in (await self.repo.get("source_rows")).rows
        ]

        logger.debug(
            "Loaded data for rebuild: %d sources, %d schema columns, %d mappings",
            len(sources),
            len(schema_columns),
            len(mappings),
        )

        column_maps: dict[int, dict[str, str]] = defaultdict(dict)
        for mapping in mappings:
            column_maps[mapping.source_id][mapping.source_col] = mapping.unified_col

        rows_by_source: dict[int, list[SourceRow]] = defaultdict(list)
        for row in source_rows:
            rows_by_source[row.source_id].append(row)

        records: list[NormalizedRecord] = []
        for source in sources:
            source_id = source["id"]
            rows = sorted(rows_by_source.get(source_id, []), key=lambda row: row.row_index)
            logger.debug("Processing %d rows of source %s", len(rows), source_id)
            column_map = column_maps.get(source_id, {})
            for row in rows:
                records.append(
                    normalize_record(
                        source_id,
                        row.data,
                        column_map,
                        schema_columns,
                        self.merge_key_candidates,
                    )
                )
        return records

    async def rebuild(self) -> list[UnifiedAsset]:
        """Fully replace the unified asset table from current source data.

        The whole pass runs in memory; the table is written once at the end,
        so an exception leaves the previous table untouched.

        Returns:
            The freshly written unified assets, ids starting at 1
        """
        logger.info("Rebuilding unified assets")

        records = await self.normalized_records()
        clusters = cluster_records(records, self.distance_threshold)

        timestamp = utcnow().isoformat()
        rows = [_cluster_row(cluster, timestamp) for cluster in clusters]
        stored = await self.repo.set("unified_assets", TableData(rows=rows, meta=TableMeta(seq=0)))

        assets = [UnifiedAsset.model_validate(row) for row in stored.rows]
        logger.info(
            "Unified assets rebuilt: %d assets from %d records", len(assets), len(records)
        )
        return assets


def _cluster_row(cluster: Cluster, timestamp: str) -> dict:
    return {
        "canonical_name": cluster.canonical,
        "fields": cluster.merged_fields(),
        "source_ids": cluster.source_ids(),
        "created_at": timestamp,
        "updated_at": timestamp,
    }


async def rebuild_unified(repo: Repository) -> list[UnifiedAsset]:
    """Convenience function: rebuild with configured thresholds."""
    return await SchemaMapper(repo).rebuild()

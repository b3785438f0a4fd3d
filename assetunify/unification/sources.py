"""Source uploads, their rows and column mappings."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from assetunify.errors import NotFoundError, ValidationError
from assetunify.models import ColumnMapping, Source, utcnow
from assetunify.repository.base import Repository, TableData

logger = logging.getLogger(__name__)


async def get_source(repo: Repository, source_id: int) -> Source:
    """Fetch a source.

    Raises:
        NotFoundError: If the source does not exist
    """
    rows = (await repo.get("sources")).rows
    row = next((entry for entry in rows if entry["id"] == source_id), None)
    if row is None:
        raise NotFoundError(f"Source {source_id} was not found.")
    return Source.model_validate(row)


async def create_source(
    repo: Repository, name: str, rows: Sequence[Mapping[str, Any]]
) -> Source:
    """Store a source and its rows, indexed in input order.

    Raises:
        ValidationError: If the name is blank
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Source name is required.")

    created_at = utcnow()
    source_id = await repo.insert("sources", {"name": name, "created_at": created_at.isoformat()})
    for index, data in enumerate(rows):
        await repo.insert(
            "source_rows",
            {"source_id": source_id, "row_index": index, "data": dict(data)},
        )

    logger.info("Source created: id=%s name=%r rows=%d", source_id, name, len(rows))
    return Source(id=source_id, name=name, created_at=created_at)


async def remove_source(repo: Repository, source_id: int) -> None:
    """Delete a source together with its rows and column mappings.

    Raises:
        NotFoundError: If the source does not exist
    """
    await get_source(repo, source_id)

    for table in ("source_rows", "mappings"):
        data = await repo.get(table)
        kept = [row for row in data.rows if row.get("source_id") != source_id]
        if len(kept) != len(data.rows):
            await repo.set(table, TableData(rows=kept, meta=data.meta))

    await repo.remove("sources", source_id)
    logger.info("Source removed: id=%s", source_id)


async def upsert_schema_column(repo: Repository, col_name: str) -> None:
    """Declare a unified schema column if it is not declared yet."""
    rows = (await repo.get("schema")).rows
    if not any(row.get("col_name") == col_name for row in rows):
        await repo.insert("schema", {"col_name": col_name})


async def list_schema_columns(repo: Repository) -> list[str]:
    return [row["col_name"] for row in (await repo.get("schema")).rows]


async def list_mappings(repo: Repository, source_id: int) -> list[ColumnMapping]:
    rows = (await repo.get("mappings")).rows
    return [ColumnMapping.model_validate(row) for row in rows if row.get("source_id") == source_id]


async def save_mappings(
    repo: Repository, source_id: int, pairs: Iterable[Mapping[str, Any]]
) -> list[ColumnMapping]:
    """Replace a source's column mappings.

    Pairs with a blank source or unified column are ignored. Every unified
    column is declared in the schema.

    Raises:
        NotFoundError: If the source does not exist
    """
    await get_source(repo, source_id)

    cleaned: dict[str, str] = {}
    for pair in pairs:
        source_col = str(pair.get("source_col") or pair.get("sourceCol") or "").strip()
        unified_col = str(pair.get("unified_col") or pair.get("unifiedCol") or "").strip()
        if source_col and unified_col:
            cleaned[source_col] = unified_col

    data = await repo.get("mappings")
    kept = [row for row in data.rows if row.get("source_id") != source_id]
    await repo.set("mappings", TableData(rows=kept, meta=data.meta))

    for source_col, unified_col in cleaned.items():
        await repo.insert(
            "mappings",
            {"source_id": source_id, "source_col": source_col, "unified_col": unified_col},
        )
        await upsert_schema_column(repo, unified_col)

    logger.info("Mappings saved for source %s: %d columns", source_id, len(cleaned))
    return await list_mappings(repo, source_id)

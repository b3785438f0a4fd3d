"""Raw table import, re-mapping and archival.

Spreadsheet parsing happens upstream; this module receives headers plus cell
rows and turns them into raw tables with stable row keys.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, Field

from assetunify.errors import ConflictError, NotFoundError, ValidationError
from assetunify.models import DuplicatePolicy, MappingPair, RawRow, RawTable, utcnow
from assetunify.repository.base import Repository

logger = logging.getLogger(__name__)


class RawTableSummary(BaseModel):
    id: int
    title: str
    source_file_name: str | None = None
    uploaded_at: Any = None
    archived: bool = False
    row_count: int = 0


class RawTableDetail(BaseModel):
    table: RawTable
    rows: list[RawRow] = Field(default_factory=list)
    mapping: list[MappingPair] = Field(default_factory=list)


def sanitize_header(value: Any, index: int) -> str:
    """Blank headers become ``Column N`` (1-based)."""
    text = "" if value is None else str(value).strip()
    return text or f"Column {index + 1}"


def validate_headers(headers: Sequence[str]) -> None:
    """Raise on empty or case-insensitively duplicated headers."""
    if not headers:
        raise ValidationError("Worksheet has no headers.")

    seen: set[str] = set()
    for header in headers:
        key = header.lower()
        if key in seen:
            raise ConflictError(
                f'Duplicate header detected: "{header}". Please rename columns to be unique.'
            )
        seen.add(key)


def build_records(
    headers: Sequence[str], rows: Iterable[Sequence[Any] | Mapping[str, Any]]
) -> list[dict[str, Any]]:
    """Key each row's cells by header; missing cells become ""."""
    records: list[dict[str, Any]] = []
    for cells in rows:
        if isinstance(cells, Mapping):
            records.append({header: cells.get(header, "") for header in headers})
            continue
        record = {}
        for index, header in enumerate(headers):
            value = cells[index] if index < len(cells) else ""
            record[header] = "" if value is None else value
        records.append(record)
    return records


def normalize_policy(value: Any) -> DuplicatePolicy:
    return DuplicatePolicy.FIRST if value in ("first", DuplicatePolicy.FIRST) else DuplicatePolicy.ERROR


def process_rows(
    records: Sequence[dict[str, Any]],
    id_column: str | None,
    policy: DuplicatePolicy,
) -> list[dict[str, Any]]:
    """Assign row keys; the id column's value when given, else the row index.

    Every row must carry an id when an id column is set; a blank id would fall
    back to the row index and could collide with a numeric id of another row.

    Raises:
        ValidationError: On rows with a blank id cell
        ConflictError: On repeated keys under the ``error`` policy
    """
    processed: list[dict[str, Any]] = []
    seen: set[str] = set()
    duplicates: list[str] = []
    missing: list[str] = []

    for index, record in enumerate(records):
        key: str | int = index
        if id_column:
            raw = record.get(id_column)
            key = "" if raw is None else str(raw)
            if not key.strip():
                missing.append(str(index + 1))
                continue
            if key in seen:
                if policy is DuplicatePolicy.ERROR and key not in duplicates:
                    duplicates.append(key)
                continue
            seen.add(key)
        processed.append({"row_index": index, "row_key": key, "data": record})

    if missing:
        raise ValidationError(
            f'Rows without a value in ID column "{id_column}": {", ".join(missing)}.'
        )
    if duplicates:
        raise ConflictError(f"Duplicate IDs found: {', '.join(duplicates)}.")
    return processed


def clean_pairs(pairs: Iterable[Any] | None) -> list[MappingPair]:
    """Trim mapping pairs and drop those missing either side."""
    cleaned: list[MappingPair] = []
    for pair in pairs or []:
        if isinstance(pair, MappingPair):
            raw_header, asset_field = pair.raw_header, pair.asset_field
        elif isinstance(pair, Mapping):
            raw_header = pair.get("rawHeader", pair.get("raw_header"))
            asset_field = pair.get("assetField", pair.get("asset_field"))
        else:
            continue
        raw_header = str(raw_header or "").strip()
        asset_field = str(asset_field or "").strip()
        if raw_header and asset_field:
            cleaned.append(MappingPair(raw_header=raw_header, asset_field=asset_field))
    return cleaned


def _dump_pairs(pairs: Sequence[MappingPair]) -> list[dict[str, str]]:
    return [pair.model_dump(by_alias=True) for pair in pairs]


async def import_raw_table(
    repo: Repository,
    title: str,
    headers: Sequence[Any],
    rows: Iterable[Sequence[Any] | Mapping[str, Any]],
    mappings: Iterable[Any],
    id_column: str | None = None,
    duplicate_policy: str = "error",
    source_file_name: str | None = None,
) -> RawTable:
    """Import one raw table with its initial header→field mapping.

    Raises:
        ValidationError: Missing title, unknown id column or no usable mapping
        ConflictError: Duplicate headers, or duplicate row keys under ``error``
    """
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required.")

    sanitized = [sanitize_header(value, index) for index, value in enumerate(headers)]
    validate_headers(sanitized)

    id_column = (id_column or "").strip() or None
    if id_column and id_column not in sanitized:
        raise ValidationError(f'ID column "{id_column}" not found in headers.')

    policy = normalize_policy(duplicate_policy)
    processed = process_rows(build_records(sanitized, rows), id_column, policy)

    pairs = clean_pairs(mappings)
    if not pairs:
        raise ValidationError("Please map at least one column.")
    valid_pairs = [pair for pair in pairs if pair.raw_header in sanitized]
    if not valid_pairs:
        raise ValidationError("Mappings reference unknown headers.")

    uploaded_at = utcnow()
    table_id = await repo.insert(
        "raw_tables",
        {
            "title": title,
            "source_file_name": source_file_name,
            "uploaded_at": uploaded_at.isoformat(),
            "headers": sanitized,
            "id_column": id_column,
            "duplicate_policy": policy.value,
            "archived": False,
        },
    )
    for row in processed:
        await repo.insert("raw_rows", {"raw_table_id": table_id, **row})
    await repo.insert("raw_mappings", {"raw_table_id": table_id, "pairs": _dump_pairs(valid_pairs)})

    logger.info("Raw table imported: id=%s title=%r rows=%d", table_id, title, len(processed))
    return RawTable(
        id=table_id,
        title=title,
        headers=sanitized,
        id_column=id_column,
        duplicate_policy=policy,
        source_file_name=source_file_name,
        uploaded_at=uploaded_at,
    )


async def get_raw_table_record(repo: Repository, table_id: int) -> RawTable:
    """Raises NotFoundError when the table does not exist."""
    row = next(
        (entry for entry in (await repo.get("raw_tables")).rows if entry["id"] == table_id),
        None,
    )
    if row is None:
        raise NotFoundError("Raw table not found.")
    return RawTable.model_validate(row)


async def update_raw_mapping(repo: Repository, table_id: int, pairs: Iterable[Any]) -> list[MappingPair]:
    """Replace a raw table's mapping.

    Raises:
        NotFoundError: Unknown table
        ValidationError: No usable pair, or pairs referencing unknown headers
    """
    table = await get_raw_table_record(repo, table_id)

    cleaned = clean_pairs(pairs)
    if not cleaned:
        raise ValidationError("Please map at least one column.")
    if any(pair.raw_header not in table.headers for pair in cleaned):
        raise ValidationError("Mappings reference unknown headers.")

    existing = next(
        (
            row
            for row in (await repo.get("raw_mappings")).rows
            if row.get("raw_table_id") == table_id
        ),
        None,
    )
    if existing is not None:
        await repo.update("raw_mappings", existing["id"], {"pairs": _dump_pairs(cleaned)})
    else:
        await repo.insert("raw_mappings", {"raw_table_id": table_id, "pairs": _dump_pairs(cleaned)})

    logger.info("Raw table mapping updated: id=%s pairs=%d", table_id, len(cleaned))
    return cleaned


async def archive_raw_table(repo: Repository, table_id: int) -> RawTable:
    """Soft-delete a raw table; its rows drop out of the asset pool."""
    table = await get_raw_table_record(repo, table_id)
    if not table.archived:
        archived_at = utcnow()
        await repo.update(
            "raw_tables", table_id, {"archived": True, "archived_at": archived_at.isoformat()}
        )
        table = table.model_copy(update={"archived": True, "archived_at": archived_at})
        logger.info("Raw table archived: id=%s", table_id)
    return table


async def list_raw_tables(repo: Repository, include_archived: bool = True) -> list[RawTableSummary]:
    counts: dict[int, int] = {}
    for row in (await repo.get("raw_rows")).rows:
        counts[row["raw_table_id"]] = counts.get(row["raw_table_id"], 0) + 1

    summaries = []
    for row in (await repo.get("raw_tables")).rows:
        table = RawTable.model_validate(row)
        if table.archived and not include_archived:
            continue
        summaries.append(
            RawTableSummary(
                id=table.id,
                title=table.title,
                source_file_name=table.source_file_name,
                uploaded_at=table.uploaded_at,
                archived=table.archived,
                row_count=counts.get(table.id, 0),
            )
        )
    return summaries


async def get_raw_table(repo: Repository, table_id: int) -> RawTableDetail:
    table = await get_raw_table_record(repo, table_id)
    rows = sorted(
        (
            RawRow.model_validate(row)
            for row in (await repo.get("raw_rows")).rows
            if row.get("raw_table_id") == table_id
        ),
        key=lambda row: row.row_index,
    )
    mapping_row = next(
        (
            row
            for row in (await repo.get("raw_mappings")).rows
            if row.get("raw_table_id") == table_id
        ),
        None,
    )
    mapping = clean_pairs(mapping_row.get("pairs")) if mapping_row else []
    return RawTableDetail(table=table, rows=rows, mapping=mapping)

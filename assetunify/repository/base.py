"""Key/row repository contract shared by every AssetUnify service.

The repository is the only owner of per-table id sequences. Services read
copies of table data and mutate storage exclusively through the CRUD calls.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

TABLES: tuple[str, ...] = (
    "sources",
    "source_rows",
    "schema",
    "mappings",
    "unified_assets",
    "raw_tables",
    "raw_rows",
    "raw_mappings",
    "asset_pool_fields",
    "asset_pool_cells",
    "manipulators",
    "group_asset_selectors",
    "groups",
    "reports",
)

Row = dict[str, Any]


@dataclass
class TableMeta:
    """Sequence bookkeeping for one table."""

    seq: int = 0
    updated_at: str | None = None


@dataclass
class TableData:
    """Snapshot of a table: its rows plus sequence metadata."""

    rows: list[Row] = field(default_factory=list)
    meta: TableMeta = field(default_factory=TableMeta)


def check_table(table: str) -> str:
    """Reject table names outside the known set.

    Raises:
        ValueError: If the table is unknown
    """
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table!r}")
    return table


def assign_missing_ids(data: TableData) -> TableData:
    """Allocate ids for rows that lack one and keep ``meta.seq`` monotonic."""
    seq = data.meta.seq
    for row in data.rows:
        row_id = row.get("id")
        if isinstance(row_id, int) and row_id > seq:
            seq = row_id
    for row in data.rows:
        if not isinstance(row.get("id"), int):
            seq += 1
            row["id"] = seq
    data.meta.seq = seq
    return data


@runtime_checkable
class Repository(Protocol):
    """Async CRUD over named tables."""

    async def get(self, table: str) -> TableData: ...

    async def set(self, table: str, data: TableData) -> TableData: ...

    async def insert(self, table: str, row: Row) -> int: ...

    async def update(self, table: str, row_id: int, patch: Row) -> bool: ...

    async def remove(self, table: str, row_id: int) -> bool: ...


class TableLocks:
    """One asyncio lock per table; serializes writers to the same table."""

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def __call__(self, table: str) -> asyncio.Lock:
        return self._locks[check_table(table)]

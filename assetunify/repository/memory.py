from __future__ import annotations

import copy
from datetime import datetime, timezone

from assetunify.repository.base import (
    TABLES,
    Row,
    TableData,
    TableLocks,
    TableMeta,
    assign_missing_ids,
    check_table,
)


class InMemoryRepository:
    """Dictionary-backed repository for tests and embedded use.

    Every read hands out a deep copy, so callers cannot mutate stored state.
    """

    def __init__(self) -> None:
        self._tables: dict[str, TableData] = {name: TableData() for name in TABLES}
        self._locks = TableLocks()

    async def get(self, table: str) -> TableData:
        return copy.deepcopy(self._tables[check_table(table)])

    async def set(self, table: str, data: TableData) -> TableData:
        async with self._locks(table):
            payload = assign_missing_ids(
                TableData(
                    rows=copy.deepcopy(list(data.rows)),
                    meta=TableMeta(seq=data.meta.seq),
                )
            )
            payload.meta.updated_at = _now()
            self._tables[table] = payload
            return copy.deepcopy(payload)

    async def insert(self, table: str, row: Row) -> int:
        async with self._locks(table):
            data = self._tables[table]
            row_id = data.meta.seq + 1
            data.meta.seq = row_id
            data.meta.updated_at = _now()
            stored = copy.deepcopy(dict(row))
            stored.pop("id", None)
            data.rows.append({"id": row_id, **stored})
            return row_id

    async def update(self, table: str, row_id: int, patch: Row) -> bool:
        async with self._locks(table):
            data = self._tables[table]
            for index, entry in enumerate(data.rows):
                if entry.get("id") == row_id:
                    merged = {**entry, **copy.deepcopy(dict(patch))}
                    merged["id"] = row_id
                    data.rows[index] = merged
                    data.meta.updated_at = _now()
                    return True
            return False

    async def remove(self, table: str, row_id: int) -> bool:
        async with self._locks(table):
            data = self._tables[table]
            remaining = [entry for entry in data.rows if entry.get("id") != row_id]
            if len(remaining) == len(data.rows):
                return False
            data.rows = remaining
            data.meta.updated_at = _now()
            return True


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

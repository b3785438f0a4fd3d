"""SQLAlchemy-backed repository.

Rows are persisted as JSON documents in ``table_rows``; ``table_sequences``
holds the per-table id counter. Each call runs in its own transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assetunify.db.models import TableRowModel, TableSequenceModel
from assetunify.repository.base import (
    Row,
    TableData,
    TableLocks,
    TableMeta,
    assign_missing_ids,
    check_table,
)


class SqlRepository:
    """Repository over an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize repository.

        Args:
            session_factory: Factory producing AsyncSession instances
        """
        self._session_factory = session_factory
        self._locks = TableLocks()

    async def get(self, table: str) -> TableData:
        check_table(table)
        async with self._session_factory() as session:
            rows = await session.execute(
                select(TableRowModel)
                .where(TableRowModel.table_name == table)
                .order_by(TableRowModel.row_id.asc())
            )
            sequence = await session.get(TableSequenceModel, table)
            return TableData(
                rows=[_to_row(model) for model in rows.scalars().all()],
                meta=TableMeta(
                    seq=sequence.seq if sequence else 0,
                    updated_at=_iso(sequence.updated_at) if sequence else None,
                ),
            )

    async def set(self, table: str, data: TableData) -> TableData:
        async with self._locks(table):
            payload = assign_missing_ids(
                TableData(
                    rows=[dict(row) for row in data.rows],
                    meta=TableMeta(seq=data.meta.seq),
                )
            )
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    delete(TableRowModel).where(TableRowModel.table_name == table)
                )
                for row in payload.rows:
                    session.add(
                        TableRowModel(
                            table_name=table,
                            row_id=row["id"],
                            data=_without_id(row),
                        )
                    )
                sequence = await self._sequence(session, table)
                sequence.seq = payload.meta.seq
            payload.meta.updated_at = datetime.now(timezone.utc).isoformat()
            return payload

    async def insert(self, table: str, row: Row) -> int:
        async with self._locks(table):
            async with self._session_factory() as session, session.begin():
                sequence = await self._sequence(session, table)
                sequence.seq += 1
                row_id = sequence.seq
                session.add(
                    TableRowModel(table_name=table, row_id=row_id, data=_without_id(row))
                )
            return row_id

    async def update(self, table: str, row_id: int, patch: Row) -> bool:
        async with self._locks(table):
            async with self._session_factory() as session, session.begin():
                model = await session.get(TableRowModel, (table, row_id))
                if model is None:
                    return False
                # Reassign so the JSON column is flagged dirty
                model.data = {**(model.data or {}), **_without_id(patch)}
            return True

    async def remove(self, table: str, row_id: int) -> bool:
        async with self._locks(table):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(TableRowModel).where(
                        TableRowModel.table_name == table,
                        TableRowModel.row_id == row_id,
                    )
                )
            return bool(result.rowcount)

    async def _sequence(self, session: AsyncSession, table: str) -> TableSequenceModel:
        sequence = await session.get(TableSequenceModel, table)
        if sequence is None:
            sequence = TableSequenceModel(table_name=table, seq=0)
            session.add(sequence)
            await session.flush()
        return sequence


def _to_row(model: TableRowModel) -> Row:
    return {"id": model.row_id, **(model.data or {})}


def _without_id(row: Row) -> Row:
    return {key: value for key, value in dict(row).items() if key != "id"}


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None

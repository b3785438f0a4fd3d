"""Pytest configuration and fixtures for AssetUnify tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from assetunify.config import reset_config
from assetunify.pool.raw_tables import import_raw_table
from assetunify.repository import InMemoryRepository, TableData


class CountingRepository(InMemoryRepository):
    """In-memory repository that records every write per table."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: dict[str, int] = {}

    def _count(self, table: str) -> None:
        self.writes[table] = self.writes.get(table, 0) + 1

    def reset_writes(self) -> None:
        self.writes.clear()

    async def set(self, table: str, data: TableData) -> TableData:
        self._count(table)
        return await super().set(table, data)

    async def insert(self, table: str, row: dict) -> int:
        self._count(table)
        return await super().insert(table, row)

    async def update(self, table: str, row_id: int, patch: dict) -> bool:
        self._count(table)
        return await super().update(table, row_id, patch)

    async def remove(self, table: str, row_id: int) -> bool:
        self._count(table)
        return await super().remove(table, row_id)


@pytest.fixture
def repo() -> CountingRepository:
    """Empty in-memory repository."""
    return CountingRepository()


@pytest.fixture
def server_headers() -> list[str]:
    return ["Asset Tag", "Hostname", "Role", "CPU"]


@pytest.fixture
def server_rows() -> list[list[object]]:
    """Raw inventory rows keyed by asset tag."""
    return [
        ["A-1", "web-01", "web", 8],
        ["A-2", "web-02", "web", 4],
        ["A-3", "db-01", "database", 32],
        ["A-4", "cache-01", "", 2],
    ]


@pytest_asyncio.fixture
async def server_pool(repo, server_headers, server_rows) -> int:
    """Import the server inventory as raw table; returns its id."""
    table = await import_raw_table(
        repo,
        title="Servers",
        headers=server_headers,
        rows=server_rows,
        mappings=[
            {"rawHeader": "Hostname", "assetField": "hostname"},
            {"rawHeader": "Role", "assetField": "role"},
            {"rawHeader": "CPU", "assetField": "cpu"},
        ],
        id_column="Asset Tag",
    )
    return table.id


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.delenv("MERGE_DISTANCE_THRESHOLD", raising=False)
    monkeypatch.delenv("MERGE_KEY_CANDIDATES", raising=False)
    reset_config()
    yield
    reset_config()

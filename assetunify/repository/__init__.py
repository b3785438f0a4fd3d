"""Table repository implementations for AssetUnify."""

from assetunify.repository.base import TABLES, Repository, Row, TableData, TableMeta
from assetunify.repository.memory import InMemoryRepository
from assetunify.repository.sql import SqlRepository

__all__ = [
    "TABLES",
    "InMemoryRepository",
    "Repository",
    "Row",
    "SqlRepository",
    "TableData",
    "TableMeta",
]

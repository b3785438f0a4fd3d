"""Database layer for AssetUnify with async SQLAlchemy."""

from assetunify.db.connection import build_engine, close_db, get_session_factory, init_db
from assetunify.db.models import Base, TableRowModel, TableSequenceModel

__all__ = [
    "Base",
    "TableRowModel",
    "TableSequenceModel",
    "build_engine",
    "close_db",
    "get_session_factory",
    "init_db",
]

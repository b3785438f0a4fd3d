"""Database connection and session management for AssetUnify.

Provides async SQLAlchemy session management with connection pooling.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from assetunify.config import get_config
from assetunify.db.models import Base

# Global engine instance
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(url: str, echo: bool = False, **pool_kwargs) -> AsyncEngine:
    """Create an async engine, dropping pool options SQLite does not accept."""
    engine_kwargs: dict = {"echo": echo}
    if "sqlite" not in url.lower():
        engine_kwargs.update(pool_kwargs)
        engine_kwargs["pool_pre_ping"] = True  # Verify connections before using
    return create_async_engine(url, **engine_kwargs)


def get_engine() -> AsyncEngine:
    """Get or create singleton async engine.

    Returns:
        AsyncEngine: SQLAlchemy async engine
    """
    global _engine

    if _engine is None:
        db_config = get_config().db
        _engine = build_engine(
            db_config.url,
            echo=db_config.echo,
            pool_size=db_config.pool_size,
            max_overflow=db_config.pool_max_overflow,
            pool_timeout=db_config.pool_timeout,
            pool_recycle=3600,  # Recycle connections after 1 hour
        )

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create session factory.

    Returns:
        async_sessionmaker: Session factory for creating AsyncSession instances
    """
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,  # Don't expire objects after commit
        )

    return _session_factory


async def init_db(drop: bool = False) -> None:
    """Initialize database (create all tables).

    Args:
        drop: Drop existing tables first
    """
    engine = get_engine()

    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database engine and dispose connections.

    Call this on application shutdown.
    """
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None

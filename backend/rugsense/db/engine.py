"""
PURPOSE: Async SQLAlchemy engine and session factory construction.

Engines are built on demand from a URL rather than at import time so that
several stores (for example one per test) never share a connection pool.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from rugsense.db.base import Base
from rugsense.utils.logger import get_logger

logger = get_logger("db.engine")


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    PURPOSE: Create an async engine for the given URL.

    In-memory SQLite shares one connection across sessions so every
    session sees the same database.

    Args:
        database_url: Async SQLAlchemy URL (postgresql+asyncpg, sqlite+aiosqlite).
        echo: Log emitted SQL.

    Returns:
        AsyncEngine: The configured engine.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            kwargs["poolclass"] = StaticPool
        return create_async_engine(database_url, echo=echo, **kwargs)

    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=20,
        max_overflow=0,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the async session factory used by the relational store."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    PURPOSE: Create all tables that do not exist yet.

    CALLED BY: storage/sql.py -> SqlStore.initialize()
    """
    # import models so they register on Base.metadata
    from rugsense import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_tables_ensured", tables=sorted(Base.metadata.tables))

"""
PURPOSE: Storage backends for the Q-learning engine.

Exports:
    - QStore: Async storage contract
    - MemoryStore: Dict-backed backend
    - SqlStore: Async SQLAlchemy backend
    - create_store: Backend factory driven by STORAGE_BACKEND
"""

from rugsense.config.settings import Settings
from rugsense.db.engine import build_engine, build_session_factory
from rugsense.storage.base import QStore, RecordNotFoundError, StorageError
from rugsense.storage.memory import MemoryStore
from rugsense.storage.sql import SqlStore
from rugsense.utils.logger import get_logger

logger = get_logger("storage")


async def create_store(settings: Settings) -> QStore:
    """
    PURPOSE: Build and initialize the configured storage backend.

    Args:
        settings: Application settings; STORAGE_BACKEND selects the backend.

    Returns:
        QStore: Ready-to-use store.

    Raises:
        ValueError: If STORAGE_BACKEND names an unknown backend.
    """
    backend = settings.storage_backend()
    if backend == "memory":
        logger.info("storage_backend_selected", backend=backend)
        return MemoryStore()

    if backend == "sql":
        engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
        store = SqlStore(engine, build_session_factory(engine))
        await store.initialize()
        logger.info("storage_backend_selected", backend=backend)
        return store

    raise ValueError(f"Unknown STORAGE_BACKEND '{settings.STORAGE_BACKEND}'")


__all__ = [
    "QStore",
    "MemoryStore",
    "SqlStore",
    "StorageError",
    "RecordNotFoundError",
    "create_store",
]

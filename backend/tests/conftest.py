"""
PURPOSE: Pytest fixtures for RugSense tests.

Provides shared test objects including:
- Isolated Settings with test values
- In-memory storage backend
- In-memory SQLite storage backend (async SQLAlchemy + aiosqlite)
- Initialized DecisionService with deterministic randomness and clock
- Game state builders
"""

import random

import pytest
import pytest_asyncio

from rugsense.config.settings import Settings
from rugsense.db.engine import build_engine, build_session_factory
from rugsense.schemas.game import GameState
from rugsense.services.decision_service import DecisionService
from rugsense.storage.memory import MemoryStore
from rugsense.storage.sql import SqlStore


class FakeClock:
    """Millisecond clock advanced manually by tests."""

    def __init__(self, start: float = 1_700_000_000_000.0, step: float = 250.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@pytest.fixture
def test_settings():
    """
    PURPOSE: Settings override with test values.

    Provides a Settings object with:
    - In-memory storage backend
    - Training enabled with the default hyperparameters
    - Test database URL for the SQL backend

    Returns:
        Settings: Configuration object with test values.
    """
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        STORAGE_BACKEND="memory",
        APP_ENV="test",
        LOG_LEVEL="WARNING",
        TRAINING_ENABLED=True,
        LEARNING_RATE=0.1,
        DISCOUNT_FACTOR=0.95,
        EXPLORATION_RATE=0.15,
        EXPLORATION_DECAY=0.995,
        MIN_EXPLORATION=0.05,
    )


@pytest.fixture
def memory_store():
    """Fresh dict-backed store per test."""
    return MemoryStore()


@pytest_asyncio.fixture
async def sql_store():
    """
    PURPOSE: In-memory SQLite store for testing.

    Creates a fresh database with all tables for each test and disposes
    the engine afterwards.

    Returns:
        SqlStore: Relational store on sqlite+aiosqlite.
    """
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    store = SqlStore(engine, build_session_factory(engine))
    await store.initialize()

    yield store

    await store.close()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request):
    """Each storage backend in turn."""
    if request.param == "memory":
        yield MemoryStore()
        return

    engine = build_engine("sqlite+aiosqlite:///:memory:")
    sql = SqlStore(engine, build_session_factory(engine))
    await sql.initialize()
    yield sql
    await sql.close()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest_asyncio.fixture
async def service(memory_store, test_settings, fake_clock):
    """
    PURPOSE: Initialized DecisionService over the memory store.

    Randomness is seeded so exploration draws are reproducible.
    """
    svc = DecisionService(
        memory_store,
        test_settings,
        rng=random.Random(42),
        clock=fake_clock,
    )
    await svc.initialize()
    return svc


@pytest.fixture
def make_game_state():
    """Factory for GameState objects with sensible defaults."""

    def _make(
        tick: int = 0,
        price: float = 1.0,
        peak: float = 1.0,
        game_id: str = "game-1",
        timestamp=None,
    ) -> GameState:
        return GameState(
            tick_count=tick,
            price=price,
            peak_price=peak,
            game_id=game_id,
            timestamp=timestamp,
        )

    return _make

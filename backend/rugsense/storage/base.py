"""
PURPOSE: Storage contract for the Q-learning engine.

Defines the async QStore interface implemented by the in-memory and the
relational backends, plus the storage error hierarchy. Every method may
raise; callers let storage failures propagate.

CALLED BY:
    - brain/learner.py
    - services/decision_service.py
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from rugsense.brain.encoder import GameStateFeatures
from rugsense.config.constants import ActionType, MetricType, Q_LEARNING_MODEL_TYPE
from rugsense.schemas.records import (
    EpisodeCreate,
    EpisodeRecord,
    ModelParameterRecord,
    PerformanceMetricCreate,
    PerformanceMetricRecord,
    QActionRecord,
    QStateRecord,
    QValueRecord,
    SideBetCreate,
    SideBetRecord,
    SideBetUpdate,
)
from rugsense.utils.locks import KeyedLocks


class StorageError(Exception):
    """Base class for storage failures."""


class RecordNotFoundError(StorageError):
    """An update addressed a record that does not exist."""


class QStore(ABC):
    """
    PURPOSE: Persisted Q-table, episode history, model parameters and side bets.

    get_or_create_q_state() and update_q_value() must be atomic per key.
    Backends serialize them with keyed in-process locks; the learner also
    holds q_lock() across its read-modify-write of a single Q-value.
    """

    def __init__(self) -> None:
        self._state_locks = KeyedLocks()
        self._q_locks = KeyedLocks()

    def q_lock(self, state_id: str, action_id: str) -> asyncio.Lock:
        """Lock guarding the Q-value of one (state, action) pair."""
        return self._q_locks.get((state_id, action_id))

    def state_lock(self, state_hash: str) -> asyncio.Lock:
        """Lock guarding get-or-create of one state hash."""
        return self._state_locks.get(state_hash)

    # ------------------------------------------------------------------ #
    #  Q-states
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_or_create_q_state(self, features: GameStateFeatures) -> QStateRecord:
        """Return the row for `features`, creating it or incrementing its visit count."""

    @abstractmethod
    async def get_q_states(self, limit: int = 1000) -> list[QStateRecord]:
        ...

    # ------------------------------------------------------------------ #
    #  Q-actions
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_q_actions(self) -> list[QActionRecord]:
        """All actions in declaration (seed) order."""

    @abstractmethod
    async def create_q_action(
        self,
        action_type: ActionType,
        bet_size_multiplier: float,
        description: Optional[str] = None,
    ) -> QActionRecord:
        """Create an action, returning the existing row if the type is already seeded."""

    # ------------------------------------------------------------------ #
    #  Q-values
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_q_value(self, state_id: str, action_id: str) -> Optional[QValueRecord]:
        ...

    @abstractmethod
    async def update_q_value(
        self,
        state_id: str,
        action_id: str,
        new_value: float,
        reward: Optional[float] = None,
    ) -> QValueRecord:
        """Upsert a Q-value, incrementing its visit count."""

    @abstractmethod
    async def get_top_q_values(self, state_id: str, limit: int = 10) -> list[QValueRecord]:
        ...

    @abstractmethod
    async def count_q_values(self) -> int:
        ...

    # ------------------------------------------------------------------ #
    #  Episodes and parameters
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def save_training_episode(self, episode: EpisodeCreate) -> EpisodeRecord:
        ...

    @abstractmethod
    async def get_training_episodes(self, limit: int = 100) -> list[EpisodeRecord]:
        """Most recent episodes, oldest first."""

    @abstractmethod
    async def get_model_parameter(self, name: str) -> Optional[ModelParameterRecord]:
        ...

    @abstractmethod
    async def set_model_parameter(
        self,
        name: str,
        value: float,
        model_type: str = Q_LEARNING_MODEL_TYPE,
        description: Optional[str] = None,
    ) -> ModelParameterRecord:
        ...

    @abstractmethod
    async def get_all_model_parameters(self) -> list[ModelParameterRecord]:
        ...

    # ------------------------------------------------------------------ #
    #  Side bets and metrics
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def save_side_bet(self, bet: SideBetCreate) -> SideBetRecord:
        ...

    @abstractmethod
    async def update_side_bet(self, bet_id: str, update: SideBetUpdate) -> SideBetRecord:
        """Apply resolution fields; raises RecordNotFoundError for unknown ids."""

    @abstractmethod
    async def get_side_bets(
        self,
        game_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[SideBetRecord]:
        """Side bets in placement order, optionally filtered by game, last `limit` only."""

    @abstractmethod
    async def save_performance_metric(self, metric: PerformanceMetricCreate) -> PerformanceMetricRecord:
        ...

    @abstractmethod
    async def get_performance_metrics(
        self,
        metric_type: MetricType | str,
        limit: int = 10,
    ) -> list[PerformanceMetricRecord]:
        """Most recent metrics of a type, newest first."""

    async def close(self) -> None:
        """Release backend resources."""
        return None

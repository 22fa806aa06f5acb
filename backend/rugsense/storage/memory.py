"""
PURPOSE: In-memory QStore backend.

Dict-backed implementation of the storage contract for tests and
single-process deployments. State lives for the lifetime of the instance;
separate instances never share data.

CALLED BY: storage/__init__.py -> create_store() when STORAGE_BACKEND=memory
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from rugsense.brain.encoder import GameStateFeatures, state_hash
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
from rugsense.storage.base import QStore, RecordNotFoundError
from rugsense.utils.logger import get_logger

logger = get_logger("storage.memory")


def _new_id() -> str:
    return str(uuid4())


class MemoryStore(QStore):
    """
    PURPOSE: QStore keeping every table in instance dictionaries.

    Attributes:
        _states: state id -> QStateRecord
        _state_ids_by_hash: state hash -> state id (identity index)
        _actions: action id -> QActionRecord, insertion ordered
        _q_values: (state id, action id) -> QValueRecord
        _episodes: Append-only list of closed episodes
        _parameters: parameter name -> ModelParameterRecord
        _side_bets: bet id -> SideBetRecord, insertion ordered
        _metrics: Append-only list of performance metrics
    """

    def __init__(self) -> None:
        super().__init__()
        self._states: dict[str, QStateRecord] = {}
        self._state_ids_by_hash: dict[str, str] = {}
        self._actions: dict[str, QActionRecord] = {}
        self._q_values: dict[tuple[str, str], QValueRecord] = {}
        self._episodes: list[EpisodeRecord] = []
        self._parameters: dict[str, ModelParameterRecord] = {}
        self._side_bets: dict[str, SideBetRecord] = {}
        self._metrics: list[PerformanceMetricRecord] = []

    async def get_or_create_q_state(self, features: GameStateFeatures) -> QStateRecord:
        key = state_hash(features)
        async with self.state_lock(key):
            now = datetime.utcnow()
            state_id = self._state_ids_by_hash.get(key)
            if state_id is None:
                record = QStateRecord(
                    id=_new_id(),
                    state_hash=key,
                    features=features.canonical(),
                    visit_count=1,
                    last_seen=now,
                )
                self._state_ids_by_hash[key] = record.id
                logger.debug("q_state_created", state_id=record.id, state_hash=key)
            else:
                current = self._states[state_id]
                record = current.model_copy(
                    update={"visit_count": current.visit_count + 1, "last_seen": now}
                )
            self._states[record.id] = record
            return record

    async def get_q_states(self, limit: int = 1000) -> list[QStateRecord]:
        return list(self._states.values())[:limit]

    async def get_q_actions(self) -> list[QActionRecord]:
        return list(self._actions.values())

    async def create_q_action(
        self,
        action_type: ActionType,
        bet_size_multiplier: float,
        description: Optional[str] = None,
    ) -> QActionRecord:
        for existing in self._actions.values():
            if existing.action_type == action_type:
                return existing
        record = QActionRecord(
            id=_new_id(),
            action_type=action_type,
            bet_size_multiplier=bet_size_multiplier,
            description=description,
        )
        self._actions[record.id] = record
        return record

    async def get_q_value(self, state_id: str, action_id: str) -> Optional[QValueRecord]:
        return self._q_values.get((state_id, action_id))

    async def update_q_value(
        self,
        state_id: str,
        action_id: str,
        new_value: float,
        reward: Optional[float] = None,
    ) -> QValueRecord:
        if state_id not in self._states:
            raise RecordNotFoundError(f"Q-state '{state_id}' not found")
        if action_id not in self._actions:
            raise RecordNotFoundError(f"Q-action '{action_id}' not found")

        key = (state_id, action_id)
        current = self._q_values.get(key)
        now = datetime.utcnow()
        if current is None:
            record = QValueRecord(
                id=_new_id(),
                state_id=state_id,
                action_id=action_id,
                q_value=new_value,
                visit_count=1,
                last_reward=reward,
                updated_at=now,
            )
        else:
            record = current.model_copy(
                update={
                    "q_value": new_value,
                    "visit_count": current.visit_count + 1,
                    "last_reward": reward,
                    "updated_at": now,
                }
            )
        self._q_values[key] = record
        return record

    async def get_top_q_values(self, state_id: str, limit: int = 10) -> list[QValueRecord]:
        rows = [v for (s, _), v in self._q_values.items() if s == state_id]
        rows.sort(key=lambda v: v.q_value, reverse=True)
        return rows[:limit]

    async def count_q_values(self) -> int:
        return len(self._q_values)

    async def save_training_episode(self, episode: EpisodeCreate) -> EpisodeRecord:
        record = EpisodeRecord(**episode.model_dump(), id=_new_id(), created_at=datetime.utcnow())
        self._episodes.append(record)
        return record

    async def get_training_episodes(self, limit: int = 100) -> list[EpisodeRecord]:
        return self._episodes[-limit:] if limit > 0 else []

    async def get_model_parameter(self, name: str) -> Optional[ModelParameterRecord]:
        return self._parameters.get(name)

    async def set_model_parameter(
        self,
        name: str,
        value: float,
        model_type: str = Q_LEARNING_MODEL_TYPE,
        description: Optional[str] = None,
    ) -> ModelParameterRecord:
        current = self._parameters.get(name)
        record = ModelParameterRecord(
            id=current.id if current else _new_id(),
            parameter_name=name,
            parameter_value=value,
            model_type=model_type,
            description=description if description is not None else (current.description if current else None),
            updated_at=datetime.utcnow(),
        )
        self._parameters[name] = record
        return record

    async def get_all_model_parameters(self) -> list[ModelParameterRecord]:
        return list(self._parameters.values())

    async def save_side_bet(self, bet: SideBetCreate) -> SideBetRecord:
        record = SideBetRecord(**bet.model_dump(), id=_new_id(), created_at=datetime.utcnow())
        self._side_bets[record.id] = record
        return record

    async def update_side_bet(self, bet_id: str, update: SideBetUpdate) -> SideBetRecord:
        current = self._side_bets.get(bet_id)
        if current is None:
            raise RecordNotFoundError(f"Side bet '{bet_id}' not found")
        record = current.model_copy(update=update.model_dump(exclude_none=True))
        self._side_bets[bet_id] = record
        return record

    async def get_side_bets(
        self,
        game_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[SideBetRecord]:
        bets = [b for b in self._side_bets.values() if game_id is None or b.game_id == game_id]
        if limit is not None:
            bets = bets[-limit:] if limit > 0 else []
        return bets

    async def save_performance_metric(self, metric: PerformanceMetricCreate) -> PerformanceMetricRecord:
        record = PerformanceMetricRecord(**metric.model_dump(), id=_new_id(), created_at=datetime.utcnow())
        self._metrics.append(record)
        return record

    async def get_performance_metrics(
        self,
        metric_type: MetricType | str,
        limit: int = 10,
    ) -> list[PerformanceMetricRecord]:
        wanted = MetricType(metric_type).value
        rows = [m for m in reversed(self._metrics) if m.metric_type == wanted]
        return rows[:limit]

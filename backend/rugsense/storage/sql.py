"""
PURPOSE: Relational QStore backend on async SQLAlchemy.

Each operation opens a short-lived session from the injected session
factory, commits, and converts ORM rows into storage records. Database
errors are logged and re-raised unchanged.

CALLED BY: storage/__init__.py -> create_store() when STORAGE_BACKEND=sql
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from rugsense.brain.encoder import GameStateFeatures, state_hash
from rugsense.config.constants import ActionType, MetricType, Q_LEARNING_MODEL_TYPE
from rugsense.db.engine import init_db
from rugsense.models import (
    ModelParameter,
    PerformanceMetric,
    QAction,
    QState,
    QValue,
    SideBet,
    TrainingEpisode,
)
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

logger = get_logger("storage.sql")


class SqlStore(QStore):
    """
    PURPOSE: QStore persisting to a relational database.

    Attributes:
        _engine: Async engine owning the connection pool
        _session_factory: Factory producing AsyncSession instances
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        super().__init__()
        self._engine = engine
        self._session_factory = session_factory

    async def initialize(self) -> None:
        """Create missing tables."""
        await init_db(self._engine)

    async def close(self) -> None:
        await self._engine.dispose()

    async def _next_seq(self, session: AsyncSession, column) -> int:
        result = await session.execute(select(func.coalesce(func.max(column), 0)))
        return int(result.scalar_one()) + 1

    # ------------------------------------------------------------------ #
    #  Q-states
    # ------------------------------------------------------------------ #

    async def get_or_create_q_state(self, features: GameStateFeatures) -> QStateRecord:
        key = state_hash(features)
        async with self.state_lock(key):
            async with self._session_factory() as session:
                try:
                    result = await session.execute(select(QState).where(QState.state_hash == key))
                    row = result.scalar_one_or_none()
                    now = datetime.utcnow()
                    if row is None:
                        row = QState(
                            state_hash=key,
                            features=features.canonical(),
                            visit_count=1,
                            last_seen=now,
                        )
                        session.add(row)
                    else:
                        row.visit_count += 1
                        row.last_seen = now
                    await session.commit()
                    await session.refresh(row)
                    return QStateRecord.model_validate(row)
                except Exception as e:
                    await session.rollback()
                    logger.error("get_or_create_q_state_error", state_hash=key, error=str(e))
                    raise

    async def get_q_states(self, limit: int = 1000) -> list[QStateRecord]:
        async with self._session_factory() as session:
            result = await session.execute(select(QState).order_by(QState.last_seen).limit(limit))
            return [QStateRecord.model_validate(r) for r in result.scalars().all()]

    # ------------------------------------------------------------------ #
    #  Q-actions
    # ------------------------------------------------------------------ #

    async def get_q_actions(self) -> list[QActionRecord]:
        async with self._session_factory() as session:
            result = await session.execute(select(QAction).order_by(QAction.seq))
            return [QActionRecord.model_validate(r) for r in result.scalars().all()]

    async def create_q_action(
        self,
        action_type: ActionType,
        bet_size_multiplier: float,
        description: Optional[str] = None,
    ) -> QActionRecord:
        action_name = ActionType(action_type).value
        async with self.state_lock("q_actions"):
            async with self._session_factory() as session:
                result = await session.execute(select(QAction).where(QAction.action_type == action_name))
                row = result.scalar_one_or_none()
                if row is None:
                    row = QAction(
                        seq=await self._next_seq(session, QAction.seq),
                        action_type=action_name,
                        bet_size_multiplier=bet_size_multiplier,
                        description=description,
                    )
                    session.add(row)
                    await session.commit()
                    await session.refresh(row)
                    logger.info("q_action_created", action_type=action_name)
                return QActionRecord.model_validate(row)

    # ------------------------------------------------------------------ #
    #  Q-values
    # ------------------------------------------------------------------ #

    async def get_q_value(self, state_id: str, action_id: str) -> Optional[QValueRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(QValue).where(QValue.state_id == state_id, QValue.action_id == action_id)
            )
            row = result.scalar_one_or_none()
            return QValueRecord.model_validate(row) if row else None

    async def update_q_value(
        self,
        state_id: str,
        action_id: str,
        new_value: float,
        reward: Optional[float] = None,
    ) -> QValueRecord:
        async with self._session_factory() as session:
            try:
                if await session.get(QState, state_id) is None:
                    raise RecordNotFoundError(f"Q-state '{state_id}' not found")
                if await session.get(QAction, action_id) is None:
                    raise RecordNotFoundError(f"Q-action '{action_id}' not found")

                result = await session.execute(
                    select(QValue)
                    .where(QValue.state_id == state_id, QValue.action_id == action_id)
                    .with_for_update()
                )
                row = result.scalar_one_or_none()
                if row is None:
                    row = QValue(
                        state_id=state_id,
                        action_id=action_id,
                        q_value=new_value,
                        visit_count=1,
                        last_reward=reward,
                    )
                    session.add(row)
                else:
                    row.q_value = new_value
                    row.visit_count += 1
                    row.last_reward = reward
                await session.commit()
                await session.refresh(row)
                return QValueRecord.model_validate(row)
            except Exception as e:
                await session.rollback()
                logger.error(
                    "update_q_value_error",
                    state_id=state_id,
                    action_id=action_id,
                    error=str(e),
                )
                raise

    async def get_top_q_values(self, state_id: str, limit: int = 10) -> list[QValueRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(QValue)
                .where(QValue.state_id == state_id)
                .order_by(desc(QValue.q_value))
                .limit(limit)
            )
            return [QValueRecord.model_validate(r) for r in result.scalars().all()]

    async def count_q_values(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(QValue))
            return int(result.scalar_one())

    # ------------------------------------------------------------------ #
    #  Episodes and parameters
    # ------------------------------------------------------------------ #

    async def save_training_episode(self, episode: EpisodeCreate) -> EpisodeRecord:
        async with self._session_factory() as session:
            try:
                row = TrainingEpisode(**episode.model_dump(mode="json"))
                session.add(row)
                await session.commit()
                await session.refresh(row)
                return EpisodeRecord.model_validate(row)
            except Exception as e:
                await session.rollback()
                logger.error("save_training_episode_error", game_id=episode.game_id, error=str(e))
                raise

    async def get_training_episodes(self, limit: int = 100) -> list[EpisodeRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TrainingEpisode)
                .order_by(desc(TrainingEpisode.episode_number), desc(TrainingEpisode.created_at))
                .limit(limit)
            )
            rows = list(result.scalars().all())
            return [EpisodeRecord.model_validate(r) for r in reversed(rows)]

    async def get_model_parameter(self, name: str) -> Optional[ModelParameterRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ModelParameter).where(ModelParameter.parameter_name == name)
            )
            row = result.scalar_one_or_none()
            return ModelParameterRecord.model_validate(row) if row else None

    async def set_model_parameter(
        self,
        name: str,
        value: float,
        model_type: str = Q_LEARNING_MODEL_TYPE,
        description: Optional[str] = None,
    ) -> ModelParameterRecord:
        async with self.state_lock(f"param:{name}"):
            async with self._session_factory() as session:
                try:
                    result = await session.execute(
                        select(ModelParameter).where(ModelParameter.parameter_name == name)
                    )
                    row = result.scalar_one_or_none()
                    if row is None:
                        row = ModelParameter(
                            parameter_name=name,
                            parameter_value=value,
                            model_type=model_type,
                            description=description,
                        )
                        session.add(row)
                    else:
                        row.parameter_value = value
                        row.model_type = model_type
                        if description is not None:
                            row.description = description
                    await session.commit()
                    await session.refresh(row)
                    return ModelParameterRecord.model_validate(row)
                except Exception as e:
                    await session.rollback()
                    logger.error("set_model_parameter_error", name=name, error=str(e))
                    raise

    async def get_all_model_parameters(self) -> list[ModelParameterRecord]:
        async with self._session_factory() as session:
            result = await session.execute(select(ModelParameter).order_by(ModelParameter.parameter_name))
            return [ModelParameterRecord.model_validate(r) for r in result.scalars().all()]

    # ------------------------------------------------------------------ #
    #  Side bets and metrics
    # ------------------------------------------------------------------ #

    async def save_side_bet(self, bet: SideBetCreate) -> SideBetRecord:
        async with self.state_lock("side_bets"):
            async with self._session_factory() as session:
                try:
                    row = SideBet(
                        seq=await self._next_seq(session, SideBet.seq),
                        actual_outcome="PENDING",
                        **bet.model_dump(mode="json"),
                    )
                    session.add(row)
                    await session.commit()
                    await session.refresh(row)
                    return SideBetRecord.model_validate(row)
                except Exception as e:
                    await session.rollback()
                    logger.error("save_side_bet_error", game_id=bet.game_id, error=str(e))
                    raise

    async def update_side_bet(self, bet_id: str, update: SideBetUpdate) -> SideBetRecord:
        async with self._session_factory() as session:
            try:
                row = await session.get(SideBet, bet_id)
                if row is None:
                    raise RecordNotFoundError(f"Side bet '{bet_id}' not found")
                for field, value in update.model_dump(exclude_none=True).items():
                    if field == "actual_outcome":
                        value = value.value
                    setattr(row, field, value)
                await session.commit()
                await session.refresh(row)
                return SideBetRecord.model_validate(row)
            except Exception as e:
                await session.rollback()
                logger.error("update_side_bet_error", bet_id=bet_id, error=str(e))
                raise

    async def get_side_bets(
        self,
        game_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[SideBetRecord]:
        async with self._session_factory() as session:
            stmt = select(SideBet).order_by(desc(SideBet.seq))
            if game_id is not None:
                stmt = stmt.where(SideBet.game_id == game_id)
            if limit is not None:
                stmt = stmt.limit(max(0, limit))
            result = await session.execute(stmt)
            rows = list(result.scalars().all())
            return [SideBetRecord.model_validate(r) for r in reversed(rows)]

    async def save_performance_metric(self, metric: PerformanceMetricCreate) -> PerformanceMetricRecord:
        async with self.state_lock("performance_metrics"):
            async with self._session_factory() as session:
                try:
                    row = PerformanceMetric(
                        seq=await self._next_seq(session, PerformanceMetric.seq),
                        **metric.model_dump(),
                    )
                    session.add(row)
                    await session.commit()
                    await session.refresh(row)
                    return PerformanceMetricRecord.model_validate(row)
                except Exception as e:
                    await session.rollback()
                    logger.error("save_performance_metric_error", metric_type=metric.metric_type, error=str(e))
                    raise

    async def get_performance_metrics(
        self,
        metric_type: MetricType | str,
        limit: int = 10,
    ) -> list[PerformanceMetricRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PerformanceMetric)
                .where(PerformanceMetric.metric_type == MetricType(metric_type).value)
                .order_by(desc(PerformanceMetric.seq))
                .limit(limit)
            )
            return [PerformanceMetricRecord.model_validate(r) for r in result.scalars().all()]

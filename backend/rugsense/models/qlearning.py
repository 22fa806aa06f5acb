from uuid import uuid4
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Float, Integer, Text, JSON, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rugsense.db.base import Base, TimestampMixin


def _uuid() -> str:
    return str(uuid4())


class QState(Base):
    """Canonical discretized state, identified by its feature hash."""

    __tablename__ = "q_states"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    state_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True
    )
    features: Mapped[dict] = mapped_column(JSON, default=dict)
    visit_count: Mapped[int] = mapped_column(Integer, default=1)
    last_seen: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )


class QAction(Base):
    """Static action set, seeded at startup."""

    __tablename__ = "q_actions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    action_type: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    bet_size_multiplier: Mapped[float] = mapped_column(Float, default=0.0)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class QValue(Base, TimestampMixin):
    """Learned value of one (state, action) pair."""

    __tablename__ = "q_values"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    state_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("q_states.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    action_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("q_actions.id", ondelete="CASCADE"),
        nullable=False
    )
    q_value: Mapped[float] = mapped_column(Float, default=0.0)
    visit_count: Mapped[int] = mapped_column(Integer, default=0)
    last_reward: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Constraints
    __table_args__ = (
        UniqueConstraint("state_id", "action_id", name="uq_q_values_state_action"),
    )


class TrainingEpisode(Base):
    """Closed learning episode. Rows are append-only."""

    __tablename__ = "training_episodes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    game_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    episode_number: Mapped[int] = mapped_column(Integer, nullable=False)
    state_sequence: Mapped[list] = mapped_column(JSON, default=list)
    action_sequence: Mapped[list] = mapped_column(JSON, default=list)
    reward_sequence: Mapped[list] = mapped_column(JSON, default=list)
    total_reward: Mapped[float] = mapped_column(Float, default=0.0)
    episode_length: Mapped[int] = mapped_column(Integer, default=0)
    final_outcome: Mapped[str] = mapped_column(String(20), nullable=False)
    exploration_rate: Mapped[float] = mapped_column(Float, nullable=False)
    learning_rate: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True
    )


class ModelParameter(Base, TimestampMixin):
    """Persisted hyperparameter or counter."""

    __tablename__ = "model_parameters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    parameter_name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True
    )
    parameter_value: Mapped[float] = mapped_column(Float, nullable=False)
    model_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

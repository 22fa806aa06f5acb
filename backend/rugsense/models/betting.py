from uuid import uuid4
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Float, Integer, JSON, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from rugsense.db.base import Base, TimestampMixin


def _uuid() -> str:
    return str(uuid4())


class SideBet(Base, TimestampMixin):
    """Side bet on a rug within a fixed tick window."""

    __tablename__ = "side_bets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    game_id: Mapped[str] = mapped_column(String(100), nullable=False)
    player_id: Mapped[str] = mapped_column(String(100), default="qlearning-bot")
    start_tick: Mapped[int] = mapped_column(Integer, nullable=False)
    end_tick: Mapped[int] = mapped_column(Integer, nullable=False)
    bet_amount: Mapped[float] = mapped_column(Float, nullable=False)
    payout: Mapped[float] = mapped_column(Float, nullable=False)
    actual_outcome: Mapped[str] = mapped_column(String(20), default="PENDING")
    rug_tick: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    profit: Mapped[float] = mapped_column(Float, default=0.0)
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    recommendation: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    game_state: Mapped[dict] = mapped_column(JSON, default=dict)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Indexes
    __table_args__ = (
        Index("ix_side_bets_game_outcome", "game_id", "actual_outcome"),
    )


class PerformanceMetric(Base):
    """Windowed performance metric snapshot."""

    __tablename__ = "performance_metrics"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    metric_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    window_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    window_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    sample_size: Mapped[int] = mapped_column(Integer, default=0)
    model_version: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

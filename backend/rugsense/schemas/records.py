"""
Storage record schemas for RugSense.

Every storage backend returns these models so callers never depend on a
particular persistence engine. Relational rows convert through
`model_validate(row)` thanks to `from_attributes`.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from rugsense.config.constants import ActionType, BetOutcome


class QStateRecord(BaseModel):
    """Canonical discretized state row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    state_hash: str
    features: dict[str, Any]
    visit_count: int = 1
    last_seen: datetime


class QActionRecord(BaseModel):
    """One entry of the static action set."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    action_type: ActionType
    bet_size_multiplier: float
    description: Optional[str] = None


class QValueRecord(BaseModel):
    """Learned value of taking an action in a state."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    state_id: str
    action_id: str
    q_value: float = 0.0
    visit_count: int = 0
    last_reward: Optional[float] = None
    updated_at: datetime


class EpisodeCreate(BaseModel):
    """
    Closed learning episode, written once and never mutated.

    Attributes:
        game_id: Round the episode belongs to
        episode_number: Monotonic episode counter
        state_sequence: Ordered state ids
        action_sequence: Ordered action ids, same length as state_sequence
        reward_sequence: Per-step rewards, same length as state_sequence
        total_reward: Final reward passed in at episode end
        episode_length: Number of steps
        final_outcome: WIN or LOSS
        exploration_rate: Epsilon in effect during the episode
        learning_rate: Alpha in effect during the episode
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    game_id: str
    episode_number: int
    state_sequence: list[str]
    action_sequence: list[str]
    reward_sequence: list[float]
    total_reward: float
    episode_length: int
    final_outcome: BetOutcome
    exploration_rate: float
    learning_rate: float


class EpisodeRecord(EpisodeCreate):
    id: str
    created_at: datetime


class ModelParameterRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    parameter_name: str
    parameter_value: float
    model_type: str
    description: Optional[str] = None
    updated_at: datetime


class SideBetCreate(BaseModel):
    """
    Schema for a newly placed side bet.

    Attributes:
        game_id: Round the bet was placed in
        player_id: Who placed the bet
        start_tick: Tick at placement
        end_tick: Last tick of the window (start_tick + window)
        bet_amount: Stake
        payout: Gross payout on a win
        confidence: Decision confidence at placement
        recommendation: Action that produced the bet
        game_state: Snapshot of the game state at placement
    """

    model_config = ConfigDict(from_attributes=True)

    game_id: str
    player_id: str = "qlearning-bot"
    start_tick: int
    end_tick: int
    bet_amount: float = Field(gt=0.0)
    payout: float
    confidence: float = 0.0
    recommendation: Optional[str] = None
    game_state: dict[str, Any] = Field(default_factory=dict)


class SideBetRecord(SideBetCreate):
    id: str
    actual_outcome: BetOutcome = BetOutcome.PENDING
    rug_tick: Optional[int] = None
    profit: float = 0.0
    created_at: datetime
    resolved_at: Optional[datetime] = None


class SideBetUpdate(BaseModel):
    """Resolution fields of a side bet."""

    actual_outcome: Optional[BetOutcome] = None
    rug_tick: Optional[int] = None
    profit: Optional[float] = None
    resolved_at: Optional[datetime] = None


class PerformanceMetricCreate(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    metric_type: str
    value: float
    window_start: datetime
    window_end: datetime
    sample_size: int
    model_version: str


class PerformanceMetricRecord(PerformanceMetricCreate):
    id: str
    created_at: datetime

"""
Game-facing Pydantic schemas for RugSense.

Handles validation and serialization of the raw game feed consumed by the
engine and of the predictions and decisions it exposes.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rugsense.config.constants import ActionType, Zone


class GameState(BaseModel):
    """
    Schema for one observed game tick relayed from the upstream feed.

    Attributes:
        tick_count: Current tick index of the round
        price: Current price multiplier
        active: Whether the round is running
        cooldown_timer: Cooldown remaining between rounds
        peak_price: Highest price reached this round
        game_id: Optional round identifier
        timestamp: Optional feed timestamp in epoch milliseconds
    """

    model_config = ConfigDict(populate_by_name=True)

    tick_count: int = Field(default=0, alias="tickCount")
    price: float = 1.0
    active: bool = True
    cooldown_timer: int = Field(default=0, alias="cooldownTimer")
    peak_price: float = Field(default=1.0, alias="peakPrice")
    game_id: Optional[str] = Field(default=None, alias="gameId")
    timestamp: Optional[int] = None

    @field_validator("tick_count")
    @classmethod
    def clamp_tick_count(cls, v: int) -> int:
        """Negative ticks are clamped to zero."""
        return max(0, v)


class TimingData(BaseModel):
    """Tick timing summary in milliseconds."""

    model_config = ConfigDict(populate_by_name=True)

    current_rate: float = Field(alias="currentRate")
    reliability: float
    variance: float
    mean: float
    median: float


class Prediction(BaseModel):
    """
    Point-in-time rug estimate. Derived every tick, never persisted.

    Attributes:
        rug_probability: Probability of a rug within the bet window, in [0, 1]
        expected_value: Net expected value of a side bet (4p - 1)
        confidence: Timing reliability score, in [0, 1]
        zone: Discrete risk band for the probability
        recommendation: Human-readable action for the zone
    """

    rug_probability: float = Field(ge=0.0, le=1.0)
    expected_value: float
    confidence: float = Field(ge=0.0, le=1.0)
    zone: Zone
    recommendation: str


class Decision(BaseModel):
    """
    Policy output for the current game state.

    Attributes:
        action: Selected action
        confidence: Relative Q-value strength scaled by state maturity, in [0, 1]
        expected_value: Q-value weighted by the action's bet multiplier
        q_value: Learned value of the selected action
        reasoning: Human-readable explanation
        bet_amount: Stake for betting actions, 0 for HOLD
        is_learning: Whether the learner is currently training
        state_id: Q-state the decision was taken in
        action_id: Q-action that was selected
    """

    action: ActionType
    confidence: float = Field(ge=0.0, le=1.0)
    expected_value: float
    q_value: float
    reasoning: str
    bet_amount: Optional[float] = None
    is_learning: bool = False
    state_id: Optional[str] = None
    action_id: Optional[str] = None

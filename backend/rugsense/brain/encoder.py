"""
PURPOSE: State encoder for the Q-learning brain.

Discretizes a continuous game state into a small categorical feature tuple
and derives a stable content hash used as the Q-state identity key.

CALLED BY:
    - services/decision_service.py -> get_recommendation()
    - storage backends -> get_or_create_q_state()
"""

import hashlib
import json
import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from rugsense.config.constants import GamePhase, RecentPattern
from rugsense.prediction.timing import TimingModel
from rugsense.schemas.game import GameState

MID_PHASE_TICK = 50
LATE_PHASE_TICK = 200

HIGH_VOLATILITY = 0.10
MEDIUM_VOLATILITY = 0.05

HIGH_RELIABILITY_CV = 0.1
MEDIUM_RELIABILITY_CV = 0.3

RISING_PEAK_RATIO = 0.95
FALLING_PEAK_RATIO = 0.80


class GameStateFeatures(BaseModel):
    """
    Discretized game situation.

    Attributes:
        tick_phase: EARLY (<= 50), MID (<= 200) or LATE
        price_level: ceil(price) clamped to [1, 5]
        volatility_level: 1 low, 2 medium, 3 high distance from peak
        timing_reliability: 1 low, 2 medium, 3 high tick regularity
        recent_pattern: Price position relative to the round's peak
    """

    model_config = ConfigDict(frozen=True)

    tick_phase: GamePhase
    price_level: int = Field(ge=1, le=5)
    volatility_level: int = Field(ge=1, le=3)
    timing_reliability: int = Field(ge=1, le=3)
    recent_pattern: RecentPattern

    def canonical(self) -> dict:
        """Plain dict of the features with enum values."""
        return self.model_dump(mode="json")


def state_hash(features: GameStateFeatures) -> str:
    """
    PURPOSE: Deterministic content hash of a feature tuple.

    Serializes the features with sorted keys and no whitespace before
    hashing, so identical tuples always produce the same SHA256 digest
    regardless of field order.
    """
    payload = json.dumps(features.canonical(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def tick_phase(tick_count: int) -> GamePhase:
    if tick_count > LATE_PHASE_TICK:
        return GamePhase.LATE
    if tick_count > MID_PHASE_TICK:
        return GamePhase.MID
    return GamePhase.EARLY


def price_level(price: float) -> int:
    return min(5, max(1, math.ceil(price)))


def _peak(state: GameState) -> float:
    if state.peak_price and state.peak_price > 0:
        return state.peak_price
    return state.price if state.price > 0 else 1.0


def volatility_level(state: GameState) -> int:
    """Bucket the relative distance between price and peak."""
    peak = _peak(state)
    volatility = abs(state.price - peak) / peak
    if volatility > HIGH_VOLATILITY:
        return 3
    if volatility > MEDIUM_VOLATILITY:
        return 2
    return 1


def timing_reliability_level(cv: Optional[float]) -> int:
    """Bucket the recent interval CV; unknown CV maps to medium."""
    if cv is None:
        return 2
    if cv < HIGH_RELIABILITY_CV:
        return 3
    if cv < MEDIUM_RELIABILITY_CV:
        return 2
    return 1


def recent_pattern(state: GameState) -> RecentPattern:
    peak = _peak(state)
    if state.price >= peak * RISING_PEAK_RATIO:
        return RecentPattern.RISING
    if state.price < peak * FALLING_PEAK_RATIO:
        return RecentPattern.FALLING
    return RecentPattern.VOLATILE


class StateEncoder:
    """
    PURPOSE: Turn raw game states into GameStateFeatures.

    Attributes:
        _timing: Timing model whose recent CV drives the reliability feature
    """

    def __init__(self, timing: TimingModel) -> None:
        self._timing = timing

    def encode(self, state: GameState) -> GameStateFeatures:
        return GameStateFeatures(
            tick_phase=tick_phase(state.tick_count),
            price_level=price_level(state.price),
            volatility_level=volatility_level(state),
            timing_reliability=timing_reliability_level(self._timing.recent_cv()),
            recent_pattern=recent_pattern(state),
        )

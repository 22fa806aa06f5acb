"""
PURPOSE: Enumerations and empirical constants shared across RugSense.

The empirical baseline values were measured from historical rounds and are
used to stabilize estimates while live samples are sparse.
"""

from enum import Enum


class ActionType(str, Enum):
    """Fixed action set of the Q-learning policy, in declaration order."""

    HOLD = "HOLD"
    BET_SMALL = "BET_SMALL"
    BET_MEDIUM = "BET_MEDIUM"
    BET_LARGE = "BET_LARGE"


class GamePhase(str, Enum):
    EARLY = "EARLY"
    MID = "MID"
    LATE = "LATE"


class RecentPattern(str, Enum):
    RISING = "RISING"
    FALLING = "FALLING"
    VOLATILE = "VOLATILE"


class BetOutcome(str, Enum):
    PENDING = "PENDING"
    WIN = "WIN"
    LOSS = "LOSS"


class Zone(str, Enum):
    """Risk/opportunity bands derived from rug probability."""

    AVOID = "AVOID"
    CAUTION = "CAUTION"
    OPPORTUNITY = "OPPORTUNITY"
    STRONG = "STRONG"
    EXCELLENT = "EXCELLENT"
    CERTAINTY = "CERTAINTY"


class MetricType(str, Enum):
    WIN_RATE = "WIN_RATE"
    EXPLORATION_RATE = "EXPLORATION_RATE"


# Default action seeds: (action type, bet size multiplier, description)
DEFAULT_ACTIONS: tuple = (
    (ActionType.HOLD, 0.0, "Hold and wait for better opportunity"),
    (ActionType.BET_SMALL, 0.5, "Small conservative bet (0.5x base)"),
    (ActionType.BET_MEDIUM, 1.0, "Medium standard bet (1.0x base)"),
    (ActionType.BET_LARGE, 1.5, "Large aggressive bet (1.5x base)"),
)

# Empirical tick timing baseline (milliseconds)
EMPIRICAL_MEAN_MS: float = 271.5
EMPIRICAL_MEDIAN_MS: float = 251.0
EMPIRICAL_STDEV_MS: float = 295.3
EMPIRICAL_CV: float = 1.09
THEORETICAL_TICK_MS: float = 250.0

# Rug probability anchors: tick -> probability of a rug within the bet window
PROBABILITY_ANCHORS: dict[int, float] = {
    0: 0.15,
    50: 0.32,
    100: 0.50,
    150: 0.58,
    200: 0.74,
    250: 0.80,
    300: 0.88,
    400: 0.93,
    500: 0.96,
    600: 0.98,
}
MAX_RUG_PROBABILITY: float = 0.98

# Net odds of a 5:1 side bet payout
NET_ODDS: float = 4.0

Q_LEARNING_MODEL_TYPE = "Q_LEARNING"

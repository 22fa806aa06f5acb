"""
PURPOSE: Empirical rug probability model with timing adjustment.

Maps a tick count to the probability that the round rugs within the side
bet window, adjusts it by observed tick timing, and derives expected value,
half-Kelly bet size and the discrete zone classification.

CALLED BY: prediction/engine.py -> PredictionEngine
"""

from dataclasses import dataclass
from typing import Optional

from rugsense.config.constants import (
    EMPIRICAL_MEAN_MS,
    MAX_RUG_PROBABILITY,
    NET_ODDS,
    PROBABILITY_ANCHORS,
    THEORETICAL_TICK_MS,
    Zone,
)
from rugsense.prediction.timing import TimingModel
from rugsense.utils.math_utils import clamp

TIMING_DAMPING_EXPONENT = 0.3
KELLY_FRACTION = 0.5
MAX_BANKROLL_FRACTION = 0.2

_ANCHOR_TICKS: list[int] = sorted(PROBABILITY_ANCHORS)


@dataclass(frozen=True)
class ZoneBand:
    """One probability band, left-closed and right-open except the last."""

    zone: Zone
    lower: float
    upper: float
    description: str
    recommendation: str


ZONE_BANDS: tuple[ZoneBand, ...] = (
    ZoneBand(Zone.AVOID, 0.0, 0.167, "Negative EV, high risk", "Do not bet"),
    ZoneBand(Zone.CAUTION, 0.167, 0.25, "Marginal EV, proceed carefully", "Small bets only"),
    ZoneBand(Zone.OPPORTUNITY, 0.25, 0.50, "Positive EV, reasonable risk", "Standard betting"),
    ZoneBand(Zone.STRONG, 0.50, 0.75, "Good EV, favorable odds", "Increased bet size"),
    ZoneBand(Zone.EXCELLENT, 0.75, 0.90, "High EV, low risk", "Aggressive betting"),
    ZoneBand(Zone.CERTAINTY, 0.90, 1.0, "Near-guaranteed success", "Maximum bet size"),
)


def base_probability(tick: float) -> float:
    """
    PURPOSE: Piecewise-linear interpolation across the empirical anchors.

    Ticks below the first anchor return its probability, ticks beyond the
    last anchor return the last one.

    Args:
        tick: Tick count (may be fractional or out of range).

    Returns:
        float: Base rug probability.
    """
    first, last = _ANCHOR_TICKS[0], _ANCHOR_TICKS[-1]
    if tick <= first:
        return PROBABILITY_ANCHORS[first]
    if tick >= last:
        return PROBABILITY_ANCHORS[last]

    for lo, hi in zip(_ANCHOR_TICKS, _ANCHOR_TICKS[1:]):
        if lo <= tick <= hi:
            ratio = (tick - lo) / (hi - lo)
            p_lo = PROBABILITY_ANCHORS[lo]
            return p_lo + (PROBABILITY_ANCHORS[hi] - p_lo) * ratio

    return PROBABILITY_ANCHORS[last]


def zone_for(probability: float) -> ZoneBand:
    """
    PURPOSE: Classify a probability into its zone band.

    Out-of-range input is clamped into [0, 1] first.
    """
    p = clamp(probability, 0.0, 1.0)
    for band in ZONE_BANDS[:-1]:
        if band.lower <= p < band.upper:
            return band
    return ZONE_BANDS[-1]


def expected_value(probability: float) -> float:
    """Net expected value of a 5:1 side bet: 4p - 1."""
    return NET_ODDS * probability - 1.0


def kelly_bet_size(probability: float, bankroll: float = 1.0) -> float:
    """
    PURPOSE: Half-Kelly stake, hard-capped at 20% of bankroll.

    Formula: clamp(((b*p - q) / b) * bankroll * 0.5, 0, 0.2 * bankroll), b = 4.

    Args:
        probability: Rug probability within the bet window.
        bankroll: Available bankroll.

    Returns:
        float: Stake in bankroll units, never negative.
    """
    if bankroll <= 0:
        return 0.0
    p = clamp(probability, 0.0, 1.0)
    kelly_fraction = (NET_ODDS * p - (1.0 - p)) / NET_ODDS
    return clamp(kelly_fraction * bankroll * KELLY_FRACTION, 0.0, MAX_BANKROLL_FRACTION * bankroll)


class ProbabilityModel:
    """
    PURPOSE: Timing-adjusted rug probability.

    Attributes:
        _timing: Timing model providing the observed tick rate and reliability
    """

    def __init__(self, timing: TimingModel) -> None:
        self._timing = timing

    def blended_timing_ratio(self) -> float:
        """
        PURPOSE: Mix the observed/theoretical tick-rate ratio with the empirical one.

        Weighted by the timing reliability score, so unreliable timing falls
        back to the empirical baseline ratio.
        """
        observed_ratio = self._timing.current_tick_rate() / THEORETICAL_TICK_MS
        empirical_ratio = EMPIRICAL_MEAN_MS / THEORETICAL_TICK_MS
        reliability = self._timing.reliability_score()
        return observed_ratio * reliability + empirical_ratio * (1.0 - reliability)

    def adaptive_probability(self, tick: float, timing_ratio: Optional[float] = None) -> float:
        """
        PURPOSE: Base probability scaled by the damped timing ratio.

        Args:
            tick: Tick count.
            timing_ratio: Fixed blended ratio to use instead of the live one.

        Returns:
            float: Probability in [0, 0.98].
        """
        ratio = self.blended_timing_ratio() if timing_ratio is None else timing_ratio
        ratio = max(0.0, ratio)
        adjusted = base_probability(tick) * ratio ** TIMING_DAMPING_EXPONENT
        return clamp(adjusted, 0.0, MAX_RUG_PROBABILITY)

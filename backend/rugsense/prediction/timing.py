"""
PURPOSE: Tick timing model for adaptive rug prediction.

Tracks inter-tick intervals in a fixed-capacity window, derives the current
tick rate and a reliability score relative to the empirical baseline. The
same interval window feeds the state encoder's timing reliability feature.

CALLED BY:
    - prediction/engine.py -> PredictionEngine.record_tick()
    - brain/encoder.py -> StateEncoder.encode()
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from rugsense.config.constants import (
    EMPIRICAL_CV,
    EMPIRICAL_MEAN_MS,
    EMPIRICAL_MEDIAN_MS,
    EMPIRICAL_STDEV_MS,
)
from rugsense.schemas.game import GameState, TimingData
from rugsense.utils.logger import get_logger
from rugsense.utils.math_utils import clamp, coefficient_of_variation, mean, population_stdev
from rugsense.utils.ring_buffer import RingBuffer

logger = get_logger("prediction.timing")

RATE_WINDOW = 20
RELIABILITY_WINDOW = 50
MIN_RELIABILITY_SAMPLES = 20
VARIANCE_WINDOW = 20
MIN_VARIANCE_SAMPLES = 10


@dataclass(frozen=True)
class TickSample:
    """One observed tick."""

    tick: int
    price: float
    timestamp: float
    interval: float


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


class TimingModel:
    """
    PURPOSE: Rolling tick interval statistics.

    The first sample has no predecessor and is recorded with the empirical
    mean interval. Later samples use the delta to the previous call's
    timestamp.

    Attributes:
        _samples: Ring buffer of the most recent TickSample entries
        _clock: Millisecond clock used when the game state carries no timestamp
        _last_timestamp: Timestamp of the previous sample, None before the first
    """

    def __init__(
        self,
        capacity: int = 100,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._samples: RingBuffer[TickSample] = RingBuffer(capacity)
        self._clock: Callable[[], float] = clock or _wall_clock_ms
        self._last_timestamp: Optional[float] = None

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def record_tick(self, state: GameState) -> TickSample:
        """
        PURPOSE: Append a TickSample for the given game state.

        Uses the feed timestamp when present, the wall clock otherwise.

        Args:
            state: Current game state.

        Returns:
            TickSample: The recorded sample.
        """
        timestamp = float(state.timestamp) if state.timestamp is not None else self._clock()
        if self._last_timestamp is None:
            interval = EMPIRICAL_MEAN_MS
        else:
            # Out-of-order timestamps are clamped to a zero interval
            interval = max(0.0, timestamp - self._last_timestamp)

        sample = TickSample(
            tick=state.tick_count,
            price=state.price,
            timestamp=timestamp,
            interval=interval,
        )
        self._samples.append(sample)
        self._last_timestamp = timestamp
        return sample

    def intervals(self, n: int) -> list[float]:
        """Return up to the last `n` intervals, oldest first."""
        return [s.interval for s in self._samples.last(n)]

    def current_tick_rate(self) -> float:
        """
        PURPOSE: Average interval over the last 20 samples, blended toward the baseline.

        The blend weight is min(n / 20, 1), so a sparse window leans on the
        empirical mean.

        Returns:
            float: Estimated milliseconds per tick.
        """
        recent = self.intervals(RATE_WINDOW)
        if not recent:
            return EMPIRICAL_MEAN_MS

        weight = min(len(recent) / RATE_WINDOW, 1.0)
        return mean(recent) * weight + EMPIRICAL_MEAN_MS * (1.0 - weight)

    def reliability_score(self) -> float:
        """
        PURPOSE: Compare observed interval dispersion against the empirical baseline.

        Below 20 samples the neutral default 1 - baselineCV is returned,
        clamped into [0, 1].

        Returns:
            float: clamp(baselineCV / observedCV, 0, 1).
        """
        neutral = clamp(1.0 - EMPIRICAL_CV, 0.0, 1.0)
        if self.sample_count < MIN_RELIABILITY_SAMPLES:
            return neutral

        cv = coefficient_of_variation(self.intervals(RELIABILITY_WINDOW))
        if cv is None:
            return neutral
        if cv == 0:
            return 1.0
        return clamp(EMPIRICAL_CV / cv, 0.0, 1.0)

    def recent_cv(self, window: int = 20, min_samples: int = 10) -> Optional[float]:
        """
        PURPOSE: Coefficient of variation of the most recent intervals.

        Returns:
            float or None: CV, or None when fewer than `min_samples` samples exist.

        CALLED BY: brain/encoder.py for the timing reliability bucket
        """
        if self.sample_count < min_samples:
            return None
        return coefficient_of_variation(self.intervals(window))

    def interval_stdev(self) -> float:
        """Standard deviation of the last 20 intervals, baseline under 10 samples."""
        if self.sample_count < MIN_VARIANCE_SAMPLES:
            return EMPIRICAL_STDEV_MS
        return population_stdev(self.intervals(VARIANCE_WINDOW))

    def timing_data(self) -> TimingData:
        return TimingData(
            current_rate=self.current_tick_rate(),
            reliability=self.reliability_score(),
            variance=self.interval_stdev(),
            mean=EMPIRICAL_MEAN_MS,
            median=EMPIRICAL_MEDIAN_MS,
        )

    def reset(self) -> None:
        self._samples.clear()
        self._last_timestamp = None
        logger.info("timing_model_reset")

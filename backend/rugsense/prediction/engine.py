"""
PURPOSE: Adaptive prediction engine combining the timing and probability models.

Records each tick, recomputes the adaptive rug probability, and exposes the
current Prediction along with calibration statistics (accuracy and Brier
score) over recently resolved predictions.

CALLED BY: services/decision_service.py -> DecisionService.record_tick()
"""

from dataclasses import dataclass
from typing import Optional

from rugsense.prediction.probability import (
    ProbabilityModel,
    expected_value,
    kelly_bet_size,
    zone_for,
)
from rugsense.prediction.timing import TimingModel
from rugsense.schemas.game import GameState, Prediction, TimingData
from rugsense.utils.logger import get_logger
from rugsense.utils.ring_buffer import RingBuffer

logger = get_logger("prediction.engine")

PROBABILITY_HISTORY_SIZE = 100
RESULT_HISTORY_SIZE = 100


@dataclass(frozen=True)
class PredictionResult:
    predicted: float
    actual: bool
    correct: bool


class PredictionEngine:
    """
    PURPOSE: Per-tick rug prediction.

    Attributes:
        timing: Shared timing model
        probability: Probability model reading from `timing`
        _probabilities: Rolling window of computed probabilities
        _results: Rolling window of resolved predictions
    """

    def __init__(self, timing: Optional[TimingModel] = None) -> None:
        self.timing: TimingModel = timing or TimingModel()
        self.probability: ProbabilityModel = ProbabilityModel(self.timing)
        self._probabilities: RingBuffer[float] = RingBuffer(PROBABILITY_HISTORY_SIZE)
        self._results: RingBuffer[PredictionResult] = RingBuffer(RESULT_HISTORY_SIZE)

    def record_tick(self, state: GameState) -> Prediction:
        """
        PURPOSE: Record timing for a tick and recompute the prediction.

        Args:
            state: Current game state.

        Returns:
            Prediction: The prediction for this tick.
        """
        self.timing.record_tick(state)
        self._probabilities.append(self.probability.adaptive_probability(state.tick_count))
        return self.current_prediction()

    def current_prediction(self) -> Prediction:
        """
        PURPOSE: Build a Prediction from the most recent probability.

        Returns a zero-probability prediction before the first tick.
        """
        probability = self._probabilities.latest() or 0.0
        band = zone_for(probability)
        return Prediction(
            rug_probability=probability,
            expected_value=expected_value(probability),
            confidence=self.timing.reliability_score(),
            zone=band.zone,
            recommendation=band.recommendation,
        )

    def timing_data(self) -> TimingData:
        return self.timing.timing_data()

    def kelly_bet_size(self, bankroll: float = 1.0) -> float:
        """Half-Kelly stake for the current probability."""
        return kelly_bet_size(self._probabilities.latest() or 0.0, bankroll)

    def record_prediction_result(self, predicted: float, actual: bool) -> None:
        """
        PURPOSE: Store a resolved prediction for calibration tracking.

        A prediction counts as correct when (predicted > 0.5) matches the outcome.
        """
        correct = (predicted > 0.5) == actual
        self._results.append(PredictionResult(predicted=predicted, actual=actual, correct=correct))
        logger.debug(
            "prediction_result_recorded",
            predicted=round(predicted, 4),
            actual=actual,
            correct=correct,
        )

    def accuracy(self) -> float:
        if len(self._results) == 0:
            return 0.0
        return sum(1 for r in self._results if r.correct) / len(self._results)

    def brier_score(self) -> float:
        """Mean squared error between predicted probability and outcome."""
        if len(self._results) == 0:
            return 0.0
        total = sum((r.predicted - (1.0 if r.actual else 0.0)) ** 2 for r in self._results)
        return total / len(self._results)

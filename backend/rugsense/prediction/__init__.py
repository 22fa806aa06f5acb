"""
PURPOSE: Rug prediction package.

Exports:
    - TimingModel: Rolling tick interval statistics
    - ProbabilityModel: Timing-adjusted rug probability
    - PredictionEngine: Per-tick Prediction builder
"""

from rugsense.prediction.engine import PredictionEngine
from rugsense.prediction.probability import (
    ZONE_BANDS,
    ProbabilityModel,
    base_probability,
    expected_value,
    kelly_bet_size,
    zone_for,
)
from rugsense.prediction.timing import TickSample, TimingModel

__all__ = [
    "PredictionEngine",
    "ProbabilityModel",
    "TimingModel",
    "TickSample",
    "ZONE_BANDS",
    "base_probability",
    "expected_value",
    "kelly_bet_size",
    "zone_for",
]

"""Database models for RugSense.

Import all models here so Base.metadata registers every table.
"""

from rugsense.models.qlearning import QState, QAction, QValue, TrainingEpisode, ModelParameter
from rugsense.models.betting import SideBet, PerformanceMetric

__all__ = [
    "QState",
    "QAction",
    "QValue",
    "TrainingEpisode",
    "ModelParameter",
    "SideBet",
    "PerformanceMetric",
]

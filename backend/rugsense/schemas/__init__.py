"""
PURPOSE: Pydantic schemas for RugSense.

Game-facing schemas (GameState, TimingData, Prediction, Decision) and the
storage records exchanged across the storage contract.
"""

from rugsense.schemas.game import Decision, GameState, Prediction, TimingData
from rugsense.schemas.records import (
    EpisodeCreate,
    EpisodeRecord,
    ModelParameterRecord,
    PerformanceMetricCreate,
    PerformanceMetricRecord,
    QActionRecord,
    QStateRecord,
    QValueRecord,
    SideBetCreate,
    SideBetRecord,
    SideBetUpdate,
)

__all__ = [
    "Decision",
    "GameState",
    "Prediction",
    "TimingData",
    "EpisodeCreate",
    "EpisodeRecord",
    "ModelParameterRecord",
    "PerformanceMetricCreate",
    "PerformanceMetricRecord",
    "QActionRecord",
    "QStateRecord",
    "QValueRecord",
    "SideBetCreate",
    "SideBetRecord",
    "SideBetUpdate",
]

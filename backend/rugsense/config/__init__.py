"""
PURPOSE: Export configuration settings and constants for RugSense.

This module centralizes access to all configuration settings and constants
used throughout the decision engine.
"""

from .constants import (
    ActionType,
    BetOutcome,
    GamePhase,
    MetricType,
    RecentPattern,
    Zone,
)
from .settings import Settings, settings

__all__ = [
    "settings",
    "Settings",
    "ActionType",
    "BetOutcome",
    "GamePhase",
    "MetricType",
    "RecentPattern",
    "Zone",
]

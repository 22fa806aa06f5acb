"""RugSense: adaptive rug prediction and Q-learning side-bet decisions."""

__version__ = "1.0.0"

"""
PURPOSE: Q-learning brain package.

Exports the state encoder and the epsilon-greedy policy. The learner is
imported from rugsense.brain.learner directly since it depends on the
storage layer, which itself depends on the encoder.
"""

from rugsense.brain.encoder import GameStateFeatures, StateEncoder, state_hash
from rugsense.brain.policy import EpsilonGreedyPolicy, PolicyChoice, bet_amount, expected_value

__all__ = [
    "GameStateFeatures",
    "StateEncoder",
    "state_hash",
    "EpsilonGreedyPolicy",
    "PolicyChoice",
    "bet_amount",
    "expected_value",
]

"""
PURPOSE: Epsilon-greedy action selection over learned Q-values.

With probability epsilon a uniformly random action is explored; otherwise
the action with the highest Q-value is exploited, ties going to the first
declared action.

CALLED BY: services/decision_service.py -> get_recommendation()
"""

import random
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from rugsense.config.constants import ActionType
from rugsense.schemas.records import QActionRecord, QStateRecord

MATURITY_VISITS = 100


@dataclass(frozen=True)
class PolicyChoice:
    """Result of one policy evaluation."""

    action: QActionRecord
    q_value: float
    confidence: float
    explored: bool


class EpsilonGreedyPolicy:
    """
    PURPOSE: Stateless epsilon-greedy selector.

    Attributes:
        _rng: Random source, injectable for deterministic tests
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng: random.Random = rng or random.Random()

    def select(
        self,
        state: QStateRecord,
        actions: Sequence[QActionRecord],
        q_values: Mapping[str, float],
        epsilon: float,
    ) -> PolicyChoice:
        """
        PURPOSE: Choose an action for the given state.

        Args:
            state: Current Q-state (its visit count scales confidence).
            actions: Candidate actions in declaration order.
            q_values: Q-value per action id; missing ids count as 0.
            epsilon: Exploration probability.

        Returns:
            PolicyChoice: Selected action, its Q-value and confidence.

        Raises:
            ValueError: If no candidate actions are given.
        """
        if not actions:
            raise ValueError("Policy requires at least one candidate action")

        explored = self._rng.random() < epsilon
        if explored:
            action = actions[self._rng.randrange(len(actions))]
        else:
            action = self.greedy(actions, q_values)

        q_value = q_values.get(action.id, 0.0)
        confidence = self.confidence(state, q_value, [q_values.get(a.id, 0.0) for a in actions])
        return PolicyChoice(action=action, q_value=q_value, confidence=confidence, explored=explored)

    @staticmethod
    def greedy(actions: Sequence[QActionRecord], q_values: Mapping[str, float]) -> QActionRecord:
        """Highest Q-value action, first declared wins ties."""
        best = actions[0]
        best_q = q_values.get(best.id, 0.0)
        for action in actions[1:]:
            q = q_values.get(action.id, 0.0)
            if q > best_q:
                best, best_q = action, q
        return best

    @staticmethod
    def confidence(state: QStateRecord, q_value: float, candidates: Sequence[float]) -> float:
        """
        PURPOSE: Relative strength of the chosen Q-value scaled by state maturity.

        relative = (q - min) / (max - min), 0.5 when all values are equal;
        maturity = min(1, visit_count / 100).
        """
        high, low = max(candidates), min(candidates)
        spread = high - low
        relative = 0.5 if spread == 0 else (q_value - low) / spread
        maturity = min(1.0, state.visit_count / MATURITY_VISITS)
        return relative * maturity


def bet_amount(
    action: QActionRecord,
    bankroll: float,
    base_fraction: float = 0.02,
    max_base_bet: float = 0.05,
) -> float:
    """
    PURPOSE: Stake for a betting action.

    base = min(max_base_bet, bankroll * base_fraction); stake = base * multiplier.
    HOLD and non-positive bankrolls stake nothing.
    """
    if action.action_type == ActionType.HOLD or bankroll <= 0:
        return 0.0
    return min(max_base_bet, bankroll * base_fraction) * action.bet_size_multiplier


def expected_value(action: QActionRecord, q_value: float) -> float:
    """Q-value weighted by bet multiplier, 0 for HOLD."""
    if action.action_type == ActionType.HOLD:
        return 0.0
    return q_value * action.bet_size_multiplier

"""
PURPOSE: Tests for epsilon-greedy action selection and bet sizing.

Covers:
- Deterministic exploitation and tie-breaking
- Exploration frequency
- Confidence scaling by Q-value spread and state maturity
- Bet amount and expected value per action
"""

import random
from datetime import datetime

import pytest

from rugsense.brain.policy import EpsilonGreedyPolicy, bet_amount, expected_value
from rugsense.config.constants import ActionType
from rugsense.schemas.records import QActionRecord, QStateRecord

ACTIONS = [
    QActionRecord(id="hold", action_type=ActionType.HOLD, bet_size_multiplier=0.0),
    QActionRecord(id="small", action_type=ActionType.BET_SMALL, bet_size_multiplier=0.5),
    QActionRecord(id="medium", action_type=ActionType.BET_MEDIUM, bet_size_multiplier=1.0),
    QActionRecord(id="large", action_type=ActionType.BET_LARGE, bet_size_multiplier=1.5),
]


def _state(visits: int = 1) -> QStateRecord:
    return QStateRecord(
        id="s1",
        state_hash="abc",
        features={},
        visit_count=visits,
        last_seen=datetime(2024, 1, 1),
    )


class TestSelection:
    """Test action selection."""

    def test_scenario_greedy_picks_best(self):
        """Test epsilon 0 deterministically selects the highest Q-value."""
        q_values = {"hold": 0.0, "small": 0.2, "medium": 0.5, "large": 0.1}
        policy = EpsilonGreedyPolicy(random.Random(1))
        for _ in range(20):
            choice = policy.select(_state(), ACTIONS, q_values, epsilon=0.0)
            assert choice.action.action_type == ActionType.BET_MEDIUM
            assert choice.q_value == 0.5
            assert choice.explored is False

    def test_ties_go_to_first_declared(self):
        """Test equal Q-values resolve to the earliest action."""
        policy = EpsilonGreedyPolicy(random.Random(1))
        choice = policy.select(_state(), ACTIONS, {}, epsilon=0.0)
        assert choice.action.action_type == ActionType.HOLD

        tied = {"hold": 0.0, "small": 0.3, "medium": 0.3, "large": 0.1}
        assert policy.select(_state(), ACTIONS, tied, epsilon=0.0).action.id == "small"

    def test_missing_q_values_default_to_zero(self):
        """Test unseen pairs count as zero rather than erroring."""
        q_values = {"large": -0.4}
        choice = EpsilonGreedyPolicy().select(_state(), ACTIONS, q_values, epsilon=0.0)
        assert choice.action.id == "hold"
        assert choice.q_value == 0.0

    def test_full_exploration_is_uniform(self):
        """Test epsilon 1 picks every action roughly equally often."""
        policy = EpsilonGreedyPolicy(random.Random(7))
        counts = {a.id: 0 for a in ACTIONS}
        for _ in range(4000):
            choice = policy.select(_state(), ACTIONS, {"medium": 1.0}, epsilon=1.0)
            assert choice.explored is True
            counts[choice.action.id] += 1
        for count in counts.values():
            assert 850 < count < 1150

    def test_no_actions_raises(self):
        """Test an empty action set is rejected."""
        with pytest.raises(ValueError):
            EpsilonGreedyPolicy().select(_state(), [], {}, epsilon=0.0)


class TestConfidence:
    """Test confidence scoring."""

    def test_zero_range_is_half_scaled_by_maturity(self):
        """Test equal Q-values give 0.5 times maturity."""
        assert EpsilonGreedyPolicy.confidence(_state(100), 0.0, [0.0, 0.0]) == pytest.approx(0.5)
        assert EpsilonGreedyPolicy.confidence(_state(50), 0.0, [0.0, 0.0]) == pytest.approx(0.25)

    def test_relative_value_scaled_by_visits(self):
        """Test the best action in a mature state is fully confident."""
        candidates = [0.0, 0.2, 0.5, 0.1]
        assert EpsilonGreedyPolicy.confidence(_state(250), 0.5, candidates) == pytest.approx(1.0)
        assert EpsilonGreedyPolicy.confidence(_state(10), 0.5, candidates) == pytest.approx(0.1)
        assert EpsilonGreedyPolicy.confidence(_state(100), 0.0, candidates) == pytest.approx(0.0)

    def test_confidence_in_unit_interval(self):
        """Test confidence stays within [0, 1]."""
        policy = EpsilonGreedyPolicy(random.Random(3))
        q_values = {"hold": -1.0, "small": 0.3, "medium": 2.0, "large": -0.2}
        for visits in (1, 20, 100, 1000):
            for epsilon in (0.0, 0.5, 1.0):
                choice = policy.select(_state(visits), ACTIONS, q_values, epsilon)
                assert 0.0 <= choice.confidence <= 1.0


class TestBetSizing:
    """Test stake and expected value per action."""

    def test_hold_stakes_nothing(self):
        """Test HOLD never stakes."""
        assert bet_amount(ACTIONS[0], 10.0) == 0.0
        assert expected_value(ACTIONS[0], 0.9) == 0.0

    def test_small_bankroll_uses_fraction(self):
        """Test the base stake is 2% of a small bankroll."""
        # base = min(0.05, 1.0 * 0.02) = 0.02
        assert bet_amount(ACTIONS[1], 1.0) == pytest.approx(0.01)
        assert bet_amount(ACTIONS[2], 1.0) == pytest.approx(0.02)
        assert bet_amount(ACTIONS[3], 1.0) == pytest.approx(0.03)

    def test_large_bankroll_capped_base(self):
        """Test the base stake is capped at 0.05."""
        assert bet_amount(ACTIONS[2], 100.0) == pytest.approx(0.05)
        assert bet_amount(ACTIONS[3], 100.0) == pytest.approx(0.075)

    def test_expected_value_weighted_by_multiplier(self):
        """Test EV is the Q-value times the bet multiplier."""
        assert expected_value(ACTIONS[3], 0.4) == pytest.approx(0.6)
        assert expected_value(ACTIONS[1], -0.2) == pytest.approx(-0.1)

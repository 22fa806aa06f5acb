"""
PURPOSE: Tests for the rug probability model and prediction engine.

Covers:
- Anchor interpolation and monotonicity
- Timing-adjusted probability bounds
- Zone classification boundaries
- Expected value and half-Kelly sizing
- Prediction engine output and calibration stats
"""

import pytest

from rugsense.config.constants import EMPIRICAL_MEAN_MS, PROBABILITY_ANCHORS, THEORETICAL_TICK_MS, Zone
from rugsense.prediction.engine import PredictionEngine
from rugsense.prediction.probability import (
    ZONE_BANDS,
    ProbabilityModel,
    base_probability,
    expected_value,
    kelly_bet_size,
    zone_for,
)
from rugsense.prediction.timing import TimingModel
from rugsense.schemas.game import GameState


class TestBaseProbability:
    """Test piecewise-linear interpolation across anchors."""

    def test_anchor_values_exact(self):
        """Test every anchor tick returns its anchor probability."""
        for tick, p in PROBABILITY_ANCHORS.items():
            assert base_probability(tick) == pytest.approx(p)

    def test_interpolates_between_anchors(self):
        """Test the midpoint between two anchors is the midpoint probability."""
        assert base_probability(25) == pytest.approx(0.235)
        assert base_probability(350) == pytest.approx(0.905)

    def test_out_of_range_ticks(self):
        """Test ticks below 0 and beyond 600 saturate."""
        assert base_probability(-10) == pytest.approx(0.15)
        assert base_probability(600) == pytest.approx(0.98)
        assert base_probability(5000) == pytest.approx(0.98)

    def test_monotonic_non_decreasing(self):
        """Test probability never decreases as the tick grows."""
        ticks = [t * 0.5 for t in range(-20, 1500)]
        values = [base_probability(t) for t in ticks]
        assert all(a <= b for a, b in zip(values, values[1:]))


class TestAdaptiveProbability:
    """Test timing-adjusted probability."""

    def test_scenario_neutral_ratio_at_tick_200(self):
        """Test tick 200 with timing ratio 1 gives 0.74 in the STRONG zone."""
        model = ProbabilityModel(TimingModel())
        p = model.adaptive_probability(200, timing_ratio=1.0)
        assert p == pytest.approx(0.74)
        assert zone_for(p).zone == Zone.STRONG
        assert expected_value(p) == pytest.approx(1.96)

    def test_empty_timing_uses_empirical_ratio(self):
        """Test an unreliable timing model falls back to the empirical ratio."""
        model = ProbabilityModel(TimingModel())
        expected = 0.74 * (EMPIRICAL_MEAN_MS / THEORETICAL_TICK_MS) ** 0.3
        assert model.adaptive_probability(200) == pytest.approx(expected)

    def test_bounded_for_any_ratio(self):
        """Test the result stays in [0, 0.98] for extreme ratios."""
        model = ProbabilityModel(TimingModel())
        for ratio in (0.0, 0.01, 1.0, 3.0, 100.0, -5.0):
            for tick in (-50, 0, 200, 599, 1000):
                p = model.adaptive_probability(tick, timing_ratio=ratio)
                assert 0.0 <= p <= 0.98

    def test_monotonic_for_fixed_ratio(self):
        """Test probability is non-decreasing in tick for a fixed ratio."""
        model = ProbabilityModel(TimingModel())
        values = [model.adaptive_probability(t, timing_ratio=1.2) for t in range(0, 700, 5)]
        assert all(a <= b for a, b in zip(values, values[1:]))


class TestZones:
    """Test zone classification."""

    def test_scenario_tick_zero_is_avoid(self):
        """Test tick 0 lands in AVOID since 0.15 < 0.167."""
        assert zone_for(base_probability(0)).zone == Zone.AVOID

    def test_bands_contiguous_and_cover_unit_interval(self):
        """Test bands start at 0, end at 1 and share their boundaries."""
        assert ZONE_BANDS[0].lower == 0.0
        assert ZONE_BANDS[-1].upper == 1.0
        for prev, nxt in zip(ZONE_BANDS, ZONE_BANDS[1:]):
            assert prev.upper == nxt.lower

    def test_left_closed_boundaries(self):
        """Test each lower bound belongs to its own band."""
        for band in ZONE_BANDS:
            assert zone_for(band.lower).zone == band.zone

    def test_each_probability_in_exactly_one_band(self):
        """Test sampled probabilities match exactly one band."""
        for i in range(0, 1001):
            p = i / 1000
            matches = [
                b for b in ZONE_BANDS
                if b.lower <= p < b.upper or (b is ZONE_BANDS[-1] and p == 1.0)
            ]
            assert len(matches) == 1
            assert zone_for(p).zone == matches[0].zone

    def test_out_of_range_clamped(self):
        """Test probabilities outside [0, 1] are clamped."""
        assert zone_for(-0.3).zone == Zone.AVOID
        assert zone_for(1.7).zone == Zone.CERTAINTY


class TestExpectedValueAndKelly:
    """Test expected value and half-Kelly sizing."""

    def test_expected_value_formula(self):
        """Test EV is exactly 4p - 1."""
        for p in (0.0, 0.2, 0.25, 0.5, 0.74, 1.0):
            assert expected_value(p) == 4 * p - 1

    def test_kelly_zero_without_edge(self):
        """Test no stake when the edge is negative or zero."""
        assert kelly_bet_size(0.0) == 0.0
        assert kelly_bet_size(0.2) == pytest.approx(0.0)

    def test_kelly_half_fraction(self):
        """Test a moderate edge stakes half of full Kelly."""
        # (4 * 0.5 - 0.5) / 4 = 0.375, halved = 0.1875
        assert kelly_bet_size(0.5, 1.0) == pytest.approx(0.1875)

    def test_kelly_capped_at_twenty_percent(self):
        """Test a near-certain edge is capped at 20% of bankroll."""
        assert kelly_bet_size(1.0, 10.0) == pytest.approx(2.0)

    def test_kelly_bounds(self):
        """Test stake stays within [0, 0.2 * bankroll]."""
        for bankroll in (0.5, 1.0, 37.0):
            for i in range(0, 101):
                stake = kelly_bet_size(i / 100, bankroll)
                assert 0.0 <= stake <= 0.2 * bankroll + 1e-12


class TestPredictionEngine:
    """Test per-tick prediction."""

    def test_prediction_before_first_tick(self):
        """Test a fresh engine predicts zero probability."""
        prediction = PredictionEngine().current_prediction()
        assert prediction.rug_probability == 0.0
        assert prediction.zone == Zone.AVOID
        assert prediction.expected_value == pytest.approx(-1.0)

    def test_record_tick_updates_prediction(self):
        """Test recording a late tick raises the probability and uses reliability as confidence."""
        engine = PredictionEngine()
        prediction = engine.record_tick(GameState(tick_count=300, timestamp=1000))
        assert prediction.rug_probability > 0.85
        assert prediction.confidence == engine.timing.reliability_score()
        assert prediction.expected_value == pytest.approx(4 * prediction.rug_probability - 1)

    def test_accuracy_and_brier_score(self):
        """Test calibration stats over resolved predictions."""
        engine = PredictionEngine()
        assert engine.accuracy() == 0.0
        assert engine.brier_score() == 0.0

        engine.record_prediction_result(0.8, True)
        engine.record_prediction_result(0.7, False)
        assert engine.accuracy() == pytest.approx(0.5)
        assert engine.brier_score() == pytest.approx((0.04 + 0.49) / 2)

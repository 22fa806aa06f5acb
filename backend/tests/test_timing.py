"""
PURPOSE: Tests for the tick timing model.

Covers:
- First-sample default interval and feed/clock timestamps
- Rolling window capacity
- Tick rate blending toward the empirical baseline
- Reliability score and recent CV
"""

import pytest

from rugsense.config.constants import EMPIRICAL_MEAN_MS, EMPIRICAL_MEDIAN_MS, EMPIRICAL_STDEV_MS
from rugsense.prediction.timing import TimingModel
from rugsense.schemas.game import GameState


def _feed(model: TimingModel, deltas, start: int = 1_000_000) -> None:
    """Record one tick at `start`, then one tick per delta."""
    ts = start
    model.record_tick(GameState(tick_count=0, timestamp=ts))
    for i, delta in enumerate(deltas, start=1):
        ts += delta
        model.record_tick(GameState(tick_count=i, timestamp=ts))


class TestRecordTick:
    """Test sample recording."""

    def test_first_sample_uses_empirical_mean(self):
        """Test the very first interval defaults to the empirical mean."""
        model = TimingModel()
        sample = model.record_tick(GameState(tick_count=0, timestamp=5000))
        assert sample.interval == EMPIRICAL_MEAN_MS
        assert model.sample_count == 1

    def test_interval_from_feed_timestamps(self):
        """Test later intervals are the delta between feed timestamps."""
        model = TimingModel()
        model.record_tick(GameState(tick_count=0, timestamp=1000))
        sample = model.record_tick(GameState(tick_count=1, timestamp=1240))
        assert sample.interval == pytest.approx(240.0)

    def test_clock_used_without_timestamp(self):
        """Test the injected clock supplies timestamps when the feed has none."""
        times = iter([100.0, 400.0])
        model = TimingModel(clock=lambda: next(times))
        model.record_tick(GameState(tick_count=0))
        sample = model.record_tick(GameState(tick_count=1))
        assert sample.interval == pytest.approx(300.0)

    def test_out_of_order_timestamp_clamped_to_zero(self):
        """Test a timestamp earlier than the previous one gives a zero interval."""
        model = TimingModel()
        model.record_tick(GameState(tick_count=0, timestamp=2000))
        sample = model.record_tick(GameState(tick_count=1, timestamp=1500))
        assert sample.interval == 0.0

    def test_window_capped_at_capacity(self):
        """Test the oldest samples are evicted beyond capacity."""
        model = TimingModel(capacity=100)
        _feed(model, [250] * 149)
        assert model.sample_count == 100

    def test_reset_clears_samples(self):
        """Test reset empties the window and forgets the last timestamp."""
        model = TimingModel()
        _feed(model, [250] * 5)
        model.reset()
        assert model.sample_count == 0
        sample = model.record_tick(GameState(tick_count=0, timestamp=10))
        assert sample.interval == EMPIRICAL_MEAN_MS


class TestCurrentTickRate:
    """Test tick rate estimation."""

    def test_no_samples_returns_baseline(self):
        """Test an empty window returns the empirical mean."""
        assert TimingModel().current_tick_rate() == EMPIRICAL_MEAN_MS

    def test_sparse_window_blends_toward_baseline(self):
        """Test fewer than 20 samples are weighted by n / 20."""
        model = TimingModel()
        _feed(model, [250] * 4)
        observed = (EMPIRICAL_MEAN_MS + 4 * 250) / 5
        expected = observed * 0.25 + EMPIRICAL_MEAN_MS * 0.75
        assert model.current_tick_rate() == pytest.approx(expected)

    def test_full_window_uses_observed_mean(self):
        """Test 20 or more samples use the observed average only."""
        model = TimingModel()
        _feed(model, [250] * 30)
        assert model.current_tick_rate() == pytest.approx(250.0)


class TestReliabilityScore:
    """Test reliability scoring against the baseline CV."""

    def test_neutral_default_below_twenty_samples(self):
        """Test the neutral default 1 - baselineCV is clamped into [0, 1]."""
        model = TimingModel()
        _feed(model, [250] * 10)
        assert model.reliability_score() == 0.0

    def test_regular_ticks_fully_reliable(self):
        """Test near-constant intervals score 1."""
        model = TimingModel()
        _feed(model, [250] * 60)
        assert model.reliability_score() == pytest.approx(1.0)

    def test_erratic_ticks_score_below_one(self):
        """Test intervals noisier than the baseline score below 1."""
        model = TimingModel()
        _feed(model, [10, 10, 10, 10, 2000] * 12)
        score = model.reliability_score()
        assert 0.0 < score < 1.0

    def test_score_stays_in_unit_interval(self):
        """Test the score is bounded for assorted interval patterns."""
        for deltas in ([1] * 30, [5000, 1] * 20, [250, 300, 200] * 10):
            model = TimingModel()
            _feed(model, deltas)
            assert 0.0 <= model.reliability_score() <= 1.0


class TestRecentCv:
    """Test the recent interval CV used by the state encoder."""

    def test_none_below_ten_samples(self):
        """Test too few samples give no CV."""
        model = TimingModel()
        _feed(model, [250] * 5)
        assert model.recent_cv() is None

    def test_constant_intervals_zero_cv(self):
        """Test constant recent intervals give a zero CV."""
        model = TimingModel()
        _feed(model, [250] * 25)
        assert model.recent_cv() == pytest.approx(0.0)


class TestTimingData:
    """Test the timing summary."""

    def test_baseline_summary_when_empty(self):
        """Test an empty model reports the empirical baseline."""
        data = TimingModel().timing_data()
        assert data.current_rate == EMPIRICAL_MEAN_MS
        assert data.variance == EMPIRICAL_STDEV_MS
        assert data.mean == EMPIRICAL_MEAN_MS
        assert data.median == EMPIRICAL_MEDIAN_MS

    def test_variance_from_recent_intervals(self):
        """Test the variance field is the stdev of recent intervals once populated."""
        model = TimingModel()
        _feed(model, [250] * 25)
        assert model.timing_data().variance == pytest.approx(0.0)

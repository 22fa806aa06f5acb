"""
PURPOSE: Tests for the state encoder and Q-state identity.

Covers:
- Feature discretization (phase, price level, volatility, timing, pattern)
- Canonical hash stability and field-order independence
- Get-or-create semantics on both storage backends
"""

import asyncio
import hashlib
import json

import pytest

from rugsense.brain.encoder import (
    GameStateFeatures,
    StateEncoder,
    price_level,
    recent_pattern,
    state_hash,
    tick_phase,
    timing_reliability_level,
    volatility_level,
)
from rugsense.config.constants import GamePhase, RecentPattern
from rugsense.prediction.timing import TimingModel
from rugsense.schemas.game import GameState


def _features(**overrides) -> GameStateFeatures:
    values = {
        "tick_phase": GamePhase.MID,
        "price_level": 2,
        "volatility_level": 1,
        "timing_reliability": 2,
        "recent_pattern": RecentPattern.RISING,
    }
    values.update(overrides)
    return GameStateFeatures(**values)


class TestDiscretization:
    """Test individual feature buckets."""

    def test_tick_phase_boundaries(self):
        """Test phase buckets switch after ticks 50 and 200."""
        assert tick_phase(0) == GamePhase.EARLY
        assert tick_phase(50) == GamePhase.EARLY
        assert tick_phase(51) == GamePhase.MID
        assert tick_phase(200) == GamePhase.MID
        assert tick_phase(201) == GamePhase.LATE

    def test_price_level_ceil_and_clamp(self):
        """Test price level is ceil(price) clamped to [1, 5]."""
        assert price_level(0.4) == 1
        assert price_level(1.0) == 1
        assert price_level(1.01) == 2
        assert price_level(4.5) == 5
        assert price_level(42.0) == 5

    def test_volatility_bands(self):
        """Test distance from peak maps to three levels."""
        assert volatility_level(GameState(price=2.0, peak_price=2.0)) == 1
        assert volatility_level(GameState(price=1.88, peak_price=2.0)) == 2
        assert volatility_level(GameState(price=1.5, peak_price=2.0)) == 3

    def test_timing_reliability_bands(self):
        """Test CV buckets, with unknown CV defaulting to medium."""
        assert timing_reliability_level(None) == 2
        assert timing_reliability_level(0.05) == 3
        assert timing_reliability_level(0.2) == 2
        assert timing_reliability_level(0.9) == 1

    def test_recent_pattern(self):
        """Test price relative to peak picks the pattern."""
        assert recent_pattern(GameState(price=1.96, peak_price=2.0)) == RecentPattern.RISING
        assert recent_pattern(GameState(price=1.7, peak_price=2.0)) == RecentPattern.VOLATILE
        assert recent_pattern(GameState(price=1.5, peak_price=2.0)) == RecentPattern.FALLING

    def test_missing_peak_falls_back_to_price(self):
        """Test a zero peak uses the current price as peak."""
        state = GameState(price=3.0, peak_price=0.0)
        assert volatility_level(state) == 1
        assert recent_pattern(state) == RecentPattern.RISING

    def test_encoder_uses_timing_cv(self):
        """Test a regular tick stream is encoded as high timing reliability."""
        timing = TimingModel()
        ts = 0
        for tick in range(15):
            ts += 250
            timing.record_tick(GameState(tick_count=tick, timestamp=ts))
        features = StateEncoder(timing).encode(GameState(tick_count=120, price=1.5, peak_price=1.5))
        assert features.timing_reliability == 3
        assert features.tick_phase == GamePhase.MID
        assert features.price_level == 2


class TestStateHash:
    """Test canonical hashing."""

    def test_same_features_same_hash(self):
        """Test identical tuples hash identically."""
        assert state_hash(_features()) == state_hash(_features())

    def test_distinct_features_distinct_hash(self):
        """Test changing any feature changes the hash."""
        base = state_hash(_features())
        assert state_hash(_features(price_level=3)) != base
        assert state_hash(_features(recent_pattern=RecentPattern.FALLING)) != base

    def test_field_order_independent(self):
        """Test the hash matches a sorted-key serialization of the features."""
        features = _features()
        shuffled = dict(reversed(list(features.canonical().items())))
        expected = hashlib.sha256(
            json.dumps(shuffled, sort_keys=True, separators=(",", ":")).encode("utf-8")
        ).hexdigest()
        assert state_hash(features) == expected

    def test_encoding_same_state_twice(self):
        """Test encoding the same raw state twice yields the same hash."""
        encoder = StateEncoder(TimingModel())
        state = GameState(tick_count=75, price=1.3, peak_price=1.6)
        assert state_hash(encoder.encode(state)) == state_hash(encoder.encode(state))


class TestGetOrCreateQState:
    """Test Q-state identity in storage."""

    @pytest.mark.asyncio
    async def test_second_call_increments_visits(self, store):
        """Test the same features return the same row with a higher visit count."""
        first = await store.get_or_create_q_state(_features())
        second = await store.get_or_create_q_state(_features())

        assert first.id == second.id
        assert first.visit_count == 1
        assert second.visit_count == 2
        assert len(await store.get_q_states()) == 1

    @pytest.mark.asyncio
    async def test_distinct_features_create_rows(self, store):
        """Test distinct tuples create distinct rows."""
        a = await store.get_or_create_q_state(_features())
        b = await store.get_or_create_q_state(_features(tick_phase=GamePhase.LATE))
        assert a.id != b.id
        assert a.state_hash != b.state_hash
        assert len(await store.get_q_states()) == 2

    @pytest.mark.asyncio
    async def test_concurrent_get_or_create_single_row(self, store):
        """Test concurrent calls for one tuple never duplicate the row."""
        records = await asyncio.gather(*(store.get_or_create_q_state(_features()) for _ in range(10)))
        assert len({r.id for r in records}) == 1
        assert sorted(r.visit_count for r in records) == list(range(1, 11))
        assert len(await store.get_q_states()) == 1

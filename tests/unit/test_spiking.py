"""
Unit tests for LIF stepping, STDP and spike attention.
"""

import math

import numpy as np
import pytest

from reasoning_bank.engine.spiking import (
    LIFParams,
    lif_step,
    softmax,
    spike_attention,
    stdp_delta,
)
from reasoning_bank.models.pattern import PLASTICITY_MAX, PLASTICITY_MIN, Pattern, clamp_plasticity


class TestLIFStep:
    def test_integrates_small_input(self):
        result = lif_step(0.0, 0.5, LIFParams(threshold=1.0, decay=0.9, dt=0.001))
        assert result.potential == pytest.approx(0.0005)
        assert result.fired is False

    def test_crossing_threshold_fires_and_resets(self):
        result = lif_step(0.99, 200.0, LIFParams(threshold=1.0, decay=0.9, dt=0.1))
        assert result.fired is True
        assert result.potential == 0.0

    def test_decays_without_input(self):
        result = lif_step(0.5, 0.0, LIFParams(threshold=1.0, decay=0.9, dt=0.001))
        assert result.potential == pytest.approx(0.45)
        assert result.fired is False

    def test_repeated_zero_input_decays_geometrically(self):
        potential = 0.8
        for _ in range(50):
            potential = lif_step(potential, 0.0).potential
        assert potential == pytest.approx(0.8 * 0.9**50)

    def test_potential_never_negative(self):
        assert lif_step(0.0, -100.0).potential == 0.0

    @pytest.mark.parametrize(
        "kwargs",
        [{"threshold": 0.0}, {"decay": 0.0}, {"decay": 1.5}, {"dt": 0.0}],
    )
    def test_invalid_params(self, kwargs):
        with pytest.raises(ValueError):
            LIFParams(**kwargs)


class TestSTDP:
    def test_potentiation_inside_window(self):
        assert stdp_delta(0.01) == pytest.approx(0.01 * math.exp(-0.5))

    def test_depression_inside_window(self):
        assert stdp_delta(-0.01) == pytest.approx(-0.005 * math.exp(-0.5))

    @pytest.mark.parametrize("delta_t", [0.0, 0.1, -0.1, 5.0, -3600.0])
    def test_no_change_outside_window(self, delta_t):
        assert stdp_delta(delta_t) == 0.0

    def test_clamped(self):
        assert clamp_plasticity(PLASTICITY_MAX + stdp_delta(0.001)) == PLASTICITY_MAX
        assert clamp_plasticity(PLASTICITY_MIN + stdp_delta(-0.001)) == PLASTICITY_MIN
        assert clamp_plasticity(1.0 + stdp_delta(0.01)) == pytest.approx(1.0 + 0.01 * math.exp(-0.5))


class TestSpikeAttention:
    def test_softmax_sums_to_one(self):
        assert softmax(np.array([1.0, 2.0, 3.0])).sum() == pytest.approx(1.0)

    def test_potential_boosts_attention(self):
        patterns = [
            Pattern(id="calm", domain="d", embedding=[1.0, 0.0]),
            Pattern(id="excited", domain="d", embedding=[1.0, 0.0], spike_potential=0.5),
        ]
        weights = spike_attention([1.0, 0.0], patterns, limit=10)

        assert [w.pattern_id for w in weights] == ["excited", "calm"]
        assert weights[0].attention_score == pytest.approx(1.5)
        assert sum(w.normalized_weight for w in weights) == pytest.approx(1.0)

    def test_limit_keeps_top_scores(self):
        patterns = [Pattern(id=f"p{i}", domain="d", embedding=[1.0, i / 10]) for i in range(5)]
        weights = spike_attention([1.0, 0.0], patterns, limit=2)
        assert [w.pattern_id for w in weights] == ["p0", "p1"]

    def test_zero_query_or_no_patterns(self):
        assert spike_attention([0.0, 0.0], [Pattern(id="a", domain="d", embedding=[1.0, 0.0])]) == []
        assert spike_attention([1.0, 0.0], []) == []

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            spike_attention([1.0], [], limit=0)

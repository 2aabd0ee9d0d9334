"""
Unit tests for the persisted pattern models and MCP input models.
"""

import numpy as np
import pytest
from pydantic import ValidationError

from reasoning_bank.models.mcp_inputs import AnomalyParams, NoveltyParams, RankParams
from reasoning_bank.models.pattern import Pattern, SpikeEvent, UsageLink


class TestPattern:
    def test_embedding_accepts_numpy(self):
        pattern = Pattern(id="p", domain="d", embedding=np.array([0.1, 0.2]))
        assert pattern.embedding == [0.1, 0.2]

    def test_empty_embedding_becomes_none(self):
        assert Pattern(id="p", domain="d", embedding=[]).embedding is None

    def test_rejects_non_finite_embedding(self):
        with pytest.raises(ValidationError):
            Pattern(id="p", domain="d", embedding=[float("nan")])

    def test_rejects_negative_potential(self):
        with pytest.raises(ValidationError):
            Pattern(id="p", domain="d", spike_potential=-0.1)

    def test_to_dict_excludes_embedding(self):
        data = Pattern(id="p", domain="d", embedding=[1.0]).to_dict()
        assert "embedding" not in data
        assert data["spike_potential"] == 0.0


class TestUsageLink:
    def test_rejects_self_loop(self):
        with pytest.raises(ValidationError):
            UsageLink(source_id="a", target_id="a", domain="d", weight=0.5)

    def test_rejects_non_positive_weight(self):
        with pytest.raises(ValidationError):
            UsageLink(source_id="a", target_id="b", domain="d", weight=0.0)

    def test_effective_weight_defaults_to_weight(self):
        link = UsageLink(source_id="a", target_id="b", domain="d", weight=0.4)
        assert link.plasticity_weight == 1.0
        assert link.effective_weight == pytest.approx(0.4)
        assert link.key == ("a", "b")

    def test_plasticity_bounds(self):
        with pytest.raises(ValidationError):
            UsageLink(source_id="a", target_id="b", domain="d", weight=0.4, plasticity_weight=5.5)


class TestSpikeEvent:
    def test_defaults(self):
        event = SpikeEvent(fired_pattern="p", new_potential=0.0, did_fire=True)
        assert event.recorded is True
        assert event.timestamp > 0


class TestMCPInputs:
    def test_novelty_requires_exactly_one_target(self):
        with pytest.raises(ValidationError):
            NoveltyParams(domain="d")
        with pytest.raises(ValidationError):
            NoveltyParams(domain="d", pattern_id="p", embedding=[1.0])
        assert NoveltyParams(domain="d", embedding=[1.0]).embedding == [1.0]

    def test_rank_graph_literal(self):
        with pytest.raises(ValidationError):
            RankParams(domain="d", graph="bogus")

    def test_anomaly_window_positive(self):
        with pytest.raises(ValidationError):
            AnomalyParams(domain="d", window_seconds=-5)

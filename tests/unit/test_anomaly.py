"""
Unit tests for spike-rate anomaly scoring and the network summary.
"""

import pytest

from reasoning_bank.engine.anomaly import score_anomalies, summarize_network, window_counts
from reasoning_bank.models.pattern import Pattern

NOW = 1_000_000.0
HOUR = 3600.0


def _history(per_window: int, current: int) -> list[float]:
    times = [NOW - k * HOUR - 10.0 * (i + 1) for k in range(1, 25) for i in range(per_window)]
    times += [NOW - 10.0 * i for i in range(current)]
    return times


class TestWindowCounts:
    def test_buckets_by_age(self):
        counts = window_counts([NOW, NOW - 1, NOW - HOUR - 1, NOW - 30 * HOUR], NOW, HOUR, 3)
        assert counts.tolist() == [2.0, 1.0, 0.0]

    def test_future_timestamps_count_as_current(self):
        assert window_counts([NOW + 5], NOW, HOUR, 2).tolist() == [1.0, 0.0]


class TestScoreAnomalies:
    def test_burst_over_flat_history_uses_poisson_floor(self):
        scores = score_anomalies(["hot"], {"hot": _history(1, 5)}, NOW, HOUR)

        assert len(scores) == 1
        hot = scores[0]
        assert hot.spike_rate == 5.0
        assert hot.avg_rate == pytest.approx(1.0)
        assert hot.stddev_rate == 0.0
        assert hot.anomaly_score == pytest.approx(4.0)
        assert hot.is_anomalous is True

    def test_steady_and_silent_patterns_are_not_anomalous(self):
        fire_times = {"steady": _history(1, 1)}
        assert score_anomalies(["steady", "quiet"], fire_times, NOW, HOUR) == []

        scores = score_anomalies(["steady", "quiet"], fire_times, NOW, HOUR, include_all=True)
        assert {s.pattern_id: s.anomaly_score for s in scores} == {"steady": 0.0, "quiet": 0.0}

    def test_sorted_by_score_descending(self):
        fire_times = {"a": _history(1, 4), "b": _history(1, 8)}
        scores = score_anomalies(["a", "b"], fire_times, NOW, HOUR)
        assert [s.pattern_id for s in scores] == ["b", "a"]

    def test_uses_stddev_when_history_varies(self):
        times = [NOW - k * HOUR - 1 for k in range(1, 25, 2)]  # every other window
        score = score_anomalies(["p"], {"p": times}, NOW, HOUR, include_all=True)[0]
        assert score.avg_rate == pytest.approx(0.5)
        assert score.stddev_rate == pytest.approx(0.5)
        assert score.anomaly_score == pytest.approx(-1.0)

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            score_anomalies(["p"], {}, NOW, 0)


class TestSummarizeNetwork:
    def test_empty(self):
        state = summarize_network([], NOW)
        assert state.total_neurons == 0
        assert state.top_firing_patterns == []

    def test_aggregates(self):
        patterns = [
            Pattern(id="a", domain="d", spike_potential=0.4, last_fired_at=NOW - 10),
            Pattern(id="b", domain="d", spike_potential=0.2, last_fired_at=NOW - 2 * HOUR),
            Pattern(id="c", domain="d"),
        ]
        state = summarize_network(patterns, NOW, recent_window_seconds=HOUR, top_n=2)

        assert state.total_neurons == 3
        assert state.active_neurons == 2
        assert state.avg_potential == pytest.approx(0.2)
        assert state.recent_spikes == 1
        assert [p.pattern_id for p in state.top_firing_patterns] == ["a", "b"]
        assert state.to_dict()["top_firing_patterns"][0]["potential"] == 0.4

    def test_does_not_mutate(self):
        patterns = [Pattern(id="a", domain="d", spike_potential=0.4)]
        summarize_network(patterns, NOW)
        assert patterns[0].spike_potential == 0.4

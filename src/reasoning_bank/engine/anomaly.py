"""
Spike-rate anomaly scoring and network summaries.

A pattern's spike rate is its fire-event count in the trailing window.
Its baseline is the same count taken over ``baseline_windows`` equal
windows immediately before that, so each pattern is judged against its
own history rather than the domain average:

    score = (rate - mean) / sigma
    sigma = stddev            if stddev > 0
          = sqrt(max(mean, 1)) otherwise (Poisson floor)

The floor keeps a pattern with a perfectly flat history from producing an
infinite score while still flagging a sudden burst.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from ..models.pattern import Pattern


@dataclass(frozen=True, slots=True)
class AnomalyScore:
    pattern_id: str
    spike_rate: float
    avg_rate: float
    stddev_rate: float
    anomaly_score: float
    is_anomalous: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern_id": self.pattern_id,
            "spike_rate": self.spike_rate,
            "avg_rate": round(self.avg_rate, 6),
            "stddev_rate": round(self.stddev_rate, 6),
            "anomaly_score": round(self.anomaly_score, 6),
            "is_anomalous": self.is_anomalous,
        }


@dataclass(frozen=True, slots=True)
class FiringPattern:
    pattern_id: str
    potential: float
    last_fired_at: float | None

    def to_dict(self) -> dict[str, Any]:
        return {"pattern_id": self.pattern_id, "potential": self.potential, "last_fired_at": self.last_fired_at}


@dataclass(frozen=True, slots=True)
class NetworkState:
    total_neurons: int = 0
    active_neurons: int = 0
    avg_potential: float = 0.0
    recent_spikes: int = 0
    top_firing_patterns: list[FiringPattern] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_neurons": self.total_neurons,
            "active_neurons": self.active_neurons,
            "avg_potential": self.avg_potential,
            "recent_spikes": self.recent_spikes,
            "top_firing_patterns": [p.to_dict() for p in self.top_firing_patterns],
        }


def window_counts(fire_times: Sequence[float], now: float, window_seconds: float, n_windows: int) -> np.ndarray:
    """Bucket fire timestamps into ``n_windows`` trailing windows.

    Index 0 is the most recent window (age in [0, window)); later indices
    step back one window each. Events older than the last window are
    dropped; timestamps slightly in the future count as current.
    """
    counts = np.zeros(n_windows, dtype=np.float64)
    if not len(fire_times):
        return counts
    ages = np.maximum(now - np.asarray(fire_times, dtype=np.float64), 0.0)
    buckets = np.floor(ages / window_seconds).astype(np.int64)
    buckets = buckets[buckets < n_windows]
    np.add.at(counts, buckets, 1.0)
    return counts


def score_anomalies(
    pattern_ids: Iterable[str],
    fire_times: Mapping[str, Sequence[float]],
    now: float,
    window_seconds: float,
    baseline_windows: int = 24,
    z_threshold: float = 2.0,
    include_all: bool = False,
) -> list[AnomalyScore]:
    """Score every pattern's current spike rate against its own baseline.

    Returns anomalous patterns only (or all, with ``include_all``), highest
    score first.
    """
    if window_seconds <= 0:
        raise ValueError(f"window_seconds must be positive, got {window_seconds}")
    if baseline_windows < 1:
        raise ValueError(f"baseline_windows must be >= 1, got {baseline_windows}")

    scores: list[AnomalyScore] = []
    for pid in pattern_ids:
        counts = window_counts(fire_times.get(pid, ()), now, window_seconds, baseline_windows + 1)
        rate = float(counts[0])
        history = counts[1:]
        mean = float(history.mean())
        std = float(history.std())
        sigma = std if std > 0 else math.sqrt(max(mean, 1.0))
        score = (rate - mean) / sigma
        scores.append(
            AnomalyScore(
                pattern_id=pid,
                spike_rate=rate,
                avg_rate=mean,
                stddev_rate=std,
                anomaly_score=score,
                is_anomalous=score > z_threshold,
            )
        )

    if not include_all:
        scores = [s for s in scores if s.is_anomalous]
    scores.sort(key=lambda s: (-s.anomaly_score, s.pattern_id))
    return scores


def summarize_network(
    patterns: Iterable[Pattern],
    now: float,
    recent_window_seconds: float = 3600,
    top_n: int = 10,
) -> NetworkState:
    """Aggregate potential and firing statistics; never mutates ``patterns``."""
    patterns = list(patterns)
    if not patterns:
        return NetworkState()

    potentials = np.array([p.spike_potential for p in patterns], dtype=np.float64)
    cutoff = now - recent_window_seconds
    recent = sum(1 for p in patterns if p.last_fired_at is not None and p.last_fired_at > cutoff)

    top = sorted(patterns, key=lambda p: (-p.spike_potential, p.id))[:top_n]
    return NetworkState(
        total_neurons=len(patterns),
        active_neurons=int((potentials > 0).sum()),
        avg_potential=float(potentials.mean()),
        recent_spikes=recent,
        top_firing_patterns=[
            FiringPattern(pattern_id=p.id, potential=p.spike_potential, last_fired_at=p.last_fired_at) for p in top
        ],
    )

"""
Leaky integrate-and-fire neurons over the pattern graph.

Every pattern is a neuron whose membrane potential decays by ``decay`` each
step and integrates ``input * dt``. Crossing ``threshold`` fires the neuron
and resets it to exactly 0. The step is a pure function so the same rule
drives direct stimulation and one-hop propagation along usage links.

Spike-timing dependent plasticity (STDP) nudges a link's plasticity weight
when the downstream neuron fired shortly before the current spike:

    0 < Δt < 100ms:    +0.01  · exp(-Δt / 20ms)   (potentiation)
    -100ms < Δt < 0:   -0.005 · exp( Δt / 20ms)   (depression)

The repository adds the delta and clamps plasticity to [0.1, 5.0] in one
atomic write.

Spike attention ranks patterns for a query embedding by cosine similarity
boosted by current potential, softmax-normalised over the top results.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from ..models.pattern import Pattern
from .similarity import cosine_to_many

STDP_WINDOW_SECONDS = 0.1
STDP_TAU_SECONDS = 0.02
STDP_POTENTIATION = 0.01
STDP_DEPRESSION = 0.005


@dataclass(frozen=True, slots=True)
class LIFParams:
    """Neuron constants shared by every pattern in a network."""

    threshold: float = 1.0
    decay: float = 0.9
    dt: float = 0.001

    def __post_init__(self) -> None:
        if self.threshold <= 0:
            raise ValueError(f"threshold must be positive, got {self.threshold}")
        if not 0.0 < self.decay <= 1.0:
            raise ValueError(f"decay must be in (0, 1], got {self.decay}")
        if self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")


DEFAULT_LIF = LIFParams()


@dataclass(frozen=True, slots=True)
class StepResult:
    potential: float
    fired: bool


def lif_step(potential: float, input_current: float, params: LIFParams = DEFAULT_LIF) -> StepResult:
    """Advance one neuron by one timestep.

    >>> lif_step(0.5, 0.0).potential
    0.45
    """
    new_potential = potential * params.decay + input_current * params.dt
    if new_potential >= params.threshold:
        return StepResult(potential=0.0, fired=True)
    return StepResult(potential=max(new_potential, 0.0), fired=False)


def stdp_delta(delta_t: float) -> float:
    """Plasticity change for a spike-timing difference in seconds."""
    if 0.0 < delta_t < STDP_WINDOW_SECONDS:
        return STDP_POTENTIATION * math.exp(-delta_t / STDP_TAU_SECONDS)
    if -STDP_WINDOW_SECONDS < delta_t < 0.0:
        return -STDP_DEPRESSION * math.exp(delta_t / STDP_TAU_SECONDS)
    return 0.0


# ── Spike attention ─────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class AttentionWeight:
    pattern_id: str
    attention_score: float
    normalized_weight: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern_id": self.pattern_id,
            "attention_score": round(self.attention_score, 6),
            "normalized_weight": round(self.normalized_weight, 6),
        }


def softmax(scores: np.ndarray) -> np.ndarray:
    if scores.size == 0:
        return scores
    shifted = np.exp(scores - scores.max())
    return shifted / shifted.sum()


def spike_attention(
    query_embedding: Sequence[float],
    patterns: Iterable[Pattern],
    limit: int = 10,
) -> list[AttentionWeight]:
    """Attention weights of ``patterns`` for a query, modulated by potential.

    raw = cosine(query, embedding) * (1 + spike_potential); the top
    ``limit`` raw scores are softmax-normalised.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    query = np.asarray(query_embedding, dtype=np.float64)
    usable = [p for p in patterns if p.embedding is not None and len(p.embedding) == query.shape[0]]
    if not usable or not np.any(query):
        return []

    sims = cosine_to_many(query, np.array([p.embedding for p in usable], dtype=np.float64))
    raw = sims * (1.0 + np.array([p.spike_potential for p in usable]))

    order = sorted(range(len(usable)), key=lambda i: (-raw[i], usable[i].id))[:limit]
    top_raw = raw[order]
    weights = softmax(top_raw)

    result = [
        AttentionWeight(pattern_id=usable[i].id, attention_score=float(r), normalized_weight=float(w))
        for i, r, w in zip(order, top_raw, weights)
    ]
    result.sort(key=lambda a: (-a.normalized_weight, a.pattern_id))
    return result

"""
Global weighted minimum cut (Stoer–Wagner).

This is the exact edge-weight-sum minimum cut over the whole graph, not a
spectral or normalised cut: on dense graphs the two can split very
differently, and clustering relies on the exact one.

Each phase grows a maximum-adjacency ordering from the first active vertex.
The cut of the phase separates the last-added vertex (with everything
already merged into it) from the rest; the last two vertices are then
merged. After n-1 phases the lightest phase cut is the global minimum.

Runs in O(n³) on a dense numpy capacity matrix, which is fine for the
domain sizes the reasoning bank holds; larger domains should be sharded.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .similarity import PatternGraph


@dataclass(frozen=True, slots=True)
class MincutResult:
    """Two-sided split of a domain's nodes and the weight crossing it."""

    cut_value: float
    partition_a: list[str] = field(default_factory=list)
    partition_b: list[str] = field(default_factory=list)

    @property
    def node_count(self) -> int:
        return len(self.partition_a) + len(self.partition_b)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cut_value": self.cut_value,
            "partition_a": self.partition_a,
            "partition_b": self.partition_b,
        }


def stoer_wagner(weights: np.ndarray) -> tuple[float, list[int]]:
    """Minimum cut of an undirected graph given as a symmetric capacity matrix.

    Args:
        weights: (n, n) non-negative symmetric matrix; the diagonal is ignored.

    Returns:
        (cut_value, side): the minimum cut weight and the sorted vertex
        indices on one side of it. Graphs with fewer than two vertices
        return (0.0, all vertices).
    """
    n = weights.shape[0]
    if weights.shape != (n, n):
        raise ValueError(f"capacity matrix must be square, got {weights.shape}")
    if n < 2:
        return 0.0, list(range(n))
    if np.any(weights < 0):
        raise ValueError("capacities must be non-negative")

    w = np.array(weights, dtype=np.float64, copy=True)
    np.fill_diagonal(w, 0.0)

    groups: list[list[int]] = [[i] for i in range(n)]
    active = list(range(n))
    best_cut = math.inf
    best_side: list[int] = []

    while len(active) > 1:
        act = np.array(active)
        added = np.zeros(len(act), dtype=bool)
        added[0] = True
        connectivity = w[act[0], act].copy()
        prev = last = 0

        for _ in range(1, len(act)):
            # argmax returns the lowest index on ties, keeping phases deterministic
            nxt = int(np.argmax(np.where(added, -np.inf, connectivity)))
            added[nxt] = True
            prev, last = last, nxt
            connectivity += w[act[nxt], act]

        s, t = int(act[prev]), int(act[last])
        phase_cut = float(w[t, act].sum())

        if phase_cut < best_cut:
            best_cut = phase_cut
            best_side = sorted(groups[t])

        # Merge t into s
        w[s, :] += w[t, :]
        w[:, s] += w[:, t]
        w[s, s] = 0.0
        w[t, :] = 0.0
        w[:, t] = 0.0
        groups[s].extend(groups[t])
        groups[t] = []
        active.remove(t)

    return max(best_cut, 0.0), best_side


def compute_mincut(graph: PatternGraph, threshold: float = 0.3) -> MincutResult:
    """Global minimum cut of the thresholded similarity graph.

    Fewer than two nodes: cut_value 0, every node in partition_a.
    """
    if graph.size < 2:
        return MincutResult(cut_value=0.0, partition_a=list(graph.ids), partition_b=[])

    cut_value, side = stoer_wagner(graph.weights(threshold))
    in_a = set(side)
    return MincutResult(
        cut_value=cut_value,
        partition_a=[graph.ids[i] for i in side],
        partition_b=[pid for i, pid in enumerate(graph.ids) if i not in in_a],
    )

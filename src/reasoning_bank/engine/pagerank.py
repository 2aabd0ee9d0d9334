"""
Weighted PageRank for pattern importance.

Transitions come either from the similarity graph (each undirected edge
counted in both directions) or from the directed usage-link graph. Rows
are normalised per source; nodes with no outgoing weight are dangling and
spread their mass uniformly, so the scores always sum to 1.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from ..models.pattern import UsageLink

DEFAULT_DAMPING = 0.85
DEFAULT_TOLERANCE = 1e-6
DEFAULT_MAX_ITERATIONS = 100


@dataclass(frozen=True, slots=True)
class PageRankEntry:
    pattern_id: str
    importance: float

    def to_dict(self) -> dict[str, Any]:
        return {"pattern_id": self.pattern_id, "importance": self.importance}


def pagerank(
    adjacency: np.ndarray,
    damping: float = DEFAULT_DAMPING,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> np.ndarray:
    """Power-iteration PageRank over a non-negative weighted adjacency matrix.

    Args:
        adjacency: (n, n) matrix, entry [i, j] is the weight of i → j
        damping: Probability of following an edge rather than teleporting
        tolerance: Stop once the L1 change between iterations drops below this
        max_iterations: Hard cap on iterations

    Returns:
        Length-n vector of non-negative scores summing to 1 (empty for n=0).
    """
    if not 0.0 < damping < 1.0:
        raise ValueError(f"damping must be in (0, 1), got {damping}")
    n = adjacency.shape[0]
    if n == 0:
        return np.zeros(0)

    a = np.clip(np.asarray(adjacency, dtype=np.float64), 0.0, None)
    out_weight = a.sum(axis=1)
    dangling = out_weight == 0
    transition = np.divide(a, out_weight[:, None], out=np.zeros_like(a), where=~dangling[:, None])

    rank = np.full(n, 1.0 / n)
    teleport = (1.0 - damping) / n

    for _ in range(max_iterations):
        dangling_mass = rank[dangling].sum()
        updated = teleport + damping * (rank @ transition + dangling_mass / n)
        residual = np.abs(updated - rank).sum()
        rank = updated
        if residual < tolerance:
            break

    return rank / rank.sum()


def adjacency_from_links(ids: Sequence[str], links: Iterable[UsageLink]) -> np.ndarray:
    """Directed adjacency over ``ids`` weighted by each link's effective weight.

    Links touching patterns outside ``ids`` are ignored.
    """
    index = {pid: i for i, pid in enumerate(ids)}
    a = np.zeros((len(ids), len(ids)), dtype=np.float64)
    for link in links:
        i, j = index.get(link.source_id), index.get(link.target_id)
        if i is None or j is None or i == j:
            continue
        a[i, j] += link.effective_weight
    return a


def rank_patterns(ids: Sequence[str], scores: np.ndarray) -> list[PageRankEntry]:
    """Pair ids with scores, highest importance first (ties by id)."""
    entries = [PageRankEntry(pattern_id=pid, importance=max(float(s), 0.0)) for pid, s in zip(ids, scores)]
    entries.sort(key=lambda e: (-e.importance, e.pattern_id))
    return entries

"""
Cluster assignment from a mincut, and novelty scoring against clusters.

Clusters come from a single global mincut: a weak cut (below
``min_cut_threshold``) means the domain has two loosely joined groups and
is split along it; a strong cut means the domain is cohesive and stays one
cluster. Cluster ids are contiguous from 0 and the clusters always cover
every graph node exactly once.

Novelty compares a pattern against every clustered pattern, grouped by
cluster, and reports the best-matching cluster.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .mincut import MincutResult
from .similarity import PatternGraph, cosine_to_many


@dataclass(frozen=True, slots=True)
class Cluster:
    """A group of patterns and their mean pairwise similarity."""

    cluster_id: int
    pattern_ids: list[str] = field(default_factory=list)
    coherence_score: float = 0.0

    @property
    def size(self) -> int:
        return len(self.pattern_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cluster_id": self.cluster_id,
            "pattern_ids": self.pattern_ids,
            "size": self.size,
            "coherence_score": round(self.coherence_score, 6),
        }


@dataclass(frozen=True, slots=True)
class NoveltyScore:
    """How far a pattern sits from the existing clusters."""

    pattern_id: str
    max_similarity_to_cluster: float
    nearest_cluster_id: int | None
    is_novel: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern_id": self.pattern_id,
            "max_similarity_to_cluster": round(self.max_similarity_to_cluster, 6),
            "nearest_cluster_id": self.nearest_cluster_id,
            "is_novel": self.is_novel,
        }


@dataclass(frozen=True, slots=True)
class ClusteredVector:
    """A clustered pattern as seen by the novelty detector."""

    pattern_id: str
    cluster_id: int
    embedding: Sequence[float]


def mean_pairwise_similarity(similarity: np.ndarray, indices: Sequence[int]) -> float:
    """Mean cosine similarity over all unordered pairs; 1.0 for a singleton."""
    k = len(indices)
    if k == 0:
        return 0.0
    if k == 1:
        return 1.0
    idx = np.asarray(indices)
    block = similarity[np.ix_(idx, idx)]
    rows, cols = np.triu_indices(k, k=1)
    return float(block[rows, cols].mean())


def assign_clusters(graph: PatternGraph, mincut: MincutResult, min_cut_threshold: float) -> list[Cluster]:
    """Turn a mincut into one or two clusters.

    A cut strictly below ``min_cut_threshold`` with two non-empty sides
    gives cluster 0 = partition_a and cluster 1 = partition_b. Anything
    else (including the one-node domain, whose partition_b is empty) gives
    a single cluster 0 holding every node.
    """
    if graph.size == 0:
        return []

    index = graph.index_of()

    if mincut.cut_value < min_cut_threshold and mincut.partition_a and mincut.partition_b:
        sides = [mincut.partition_a, mincut.partition_b]
    else:
        sides = [list(graph.ids)]

    return [
        Cluster(
            cluster_id=cluster_id,
            pattern_ids=list(members),
            coherence_score=mean_pairwise_similarity(graph.similarity, [index[pid] for pid in members]),
        )
        for cluster_id, members in enumerate(sides)
    ]


def score_novelty(
    pattern_id: str,
    embedding: Sequence[float] | None,
    clustered: Sequence[ClusteredVector],
    novelty_threshold: float = 0.5,
) -> NoveltyScore:
    """Score ``embedding`` against every clustered pattern other than itself.

    With nothing clustered (or no usable embedding) the pattern is novel
    by definition and has no nearest cluster.
    """
    others = [c for c in clustered if c.pattern_id != pattern_id and c.embedding]
    if embedding is None or not len(embedding) or not others:
        return NoveltyScore(
            pattern_id=pattern_id,
            max_similarity_to_cluster=0.0,
            nearest_cluster_id=None,
            is_novel=True,
        )

    query = np.asarray(embedding, dtype=np.float64)
    dim = query.shape[0]
    others = [c for c in others if len(c.embedding) == dim]
    if not others:
        return NoveltyScore(pattern_id, 0.0, None, True)

    sims = cosine_to_many(query, np.array([c.embedding for c in others], dtype=np.float64))

    best_per_cluster: dict[int, float] = {}
    for member, sim in zip(others, sims):
        current = best_per_cluster.get(member.cluster_id)
        if current is None or sim > current:
            best_per_cluster[member.cluster_id] = float(sim)

    # Highest similarity wins; lowest cluster id breaks ties
    nearest, best = min(best_per_cluster.items(), key=lambda kv: (-kv[1], kv[0]))
    return NoveltyScore(
        pattern_id=pattern_id,
        max_similarity_to_cluster=best,
        nearest_cluster_id=nearest,
        is_novel=best < novelty_threshold,
    )

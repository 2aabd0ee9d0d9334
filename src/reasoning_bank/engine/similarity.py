"""
Cosine-similarity graph over the patterns of one domain.

The graph is a node arena: pattern ids are sorted and addressed by integer
index, and the full pairwise cosine matrix is held as a dense numpy array.
Thresholded views of that matrix feed the mincut partitioner, PageRank and
the usage-link fallback, so embeddings are compared once per snapshot.

Nodes are patterns of the requested domain that carry a non-zero embedding
of the majority dimension. Everything else is left out of the graph rather
than failing the whole domain.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import numpy as np

from ..models.pattern import Pattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SimilarityEdge:
    """Undirected similarity edge; source_id sorts before target_id."""

    source_id: str
    target_id: str
    domain: str
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "domain": self.domain,
            "similarity": round(self.similarity, 6),
        }


def cosine_similarity_matrix(vectors: np.ndarray) -> np.ndarray:
    """Pairwise cosine similarity of the rows of ``vectors``.

    Zero rows compare as 0.0 against everything (including themselves).
    Values are clipped to [-1, 1] to absorb rounding.
    """
    if vectors.ndim != 2:
        raise ValueError(f"expected a 2-D array, got shape {vectors.shape}")
    norms = np.linalg.norm(vectors, axis=1)
    safe = np.where(norms > 0, norms, 1.0)
    unit = vectors / safe[:, None]
    unit[norms == 0] = 0.0
    return np.clip(unit @ unit.T, -1.0, 1.0)


def cosine_to_many(query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    """Cosine similarity of one vector against each row of ``vectors``."""
    if vectors.size == 0:
        return np.zeros(0)
    q_norm = np.linalg.norm(query)
    v_norms = np.linalg.norm(vectors, axis=1)
    denom = q_norm * v_norms
    dots = vectors @ query
    sims = np.divide(dots, denom, out=np.zeros_like(dots, dtype=np.float64), where=denom > 0)
    return np.clip(sims, -1.0, 1.0)


@dataclass
class PatternGraph:
    """Integer-indexed similarity graph for a single domain snapshot."""

    domain: str
    ids: list[str]
    vectors: np.ndarray
    similarity: np.ndarray

    @property
    def size(self) -> int:
        return len(self.ids)

    def index_of(self) -> dict[str, int]:
        return {pid: i for i, pid in enumerate(self.ids)}

    def weights(self, threshold: float) -> np.ndarray:
        """Capacity matrix: similarities ≥ threshold that are positive, zero diagonal."""
        mask = (self.similarity >= threshold) & (self.similarity > 0)
        w = np.where(mask, self.similarity, 0.0)
        np.fill_diagonal(w, 0.0)
        return w

    def edges(self, threshold: float) -> list[SimilarityEdge]:
        """All unordered pairs with similarity ≥ threshold."""
        if self.size < 2:
            return []
        rows, cols = np.triu_indices(self.size, k=1)
        values = self.similarity[rows, cols]
        keep = values >= threshold
        return [
            SimilarityEdge(
                source_id=self.ids[i],
                target_id=self.ids[j],
                domain=self.domain,
                similarity=float(s),
            )
            for i, j, s in zip(rows[keep], cols[keep], values[keep])
        ]


def build_pattern_graph(domain: str, patterns: Iterable[Pattern]) -> PatternGraph:
    """Build the similarity arena for ``domain`` from a pattern snapshot."""
    candidates = [
        p for p in patterns if p.domain == domain and p.embedding is not None and any(x != 0.0 for x in p.embedding)
    ]

    if candidates:
        dim, _ = Counter(len(p.embedding) for p in candidates).most_common(1)[0]
        mismatched = [p.id for p in candidates if len(p.embedding) != dim]
        if mismatched:
            logger.warning(
                "Domain %r: skipping %d pattern(s) with embedding dimension != %d: %s",
                domain,
                len(mismatched),
                dim,
                mismatched[:5],
            )
        candidates = [p for p in candidates if len(p.embedding) == dim]

    candidates.sort(key=lambda p: p.id)
    ids = [p.id for p in candidates]

    if not candidates:
        empty = np.zeros((0, 0), dtype=np.float64)
        return PatternGraph(domain=domain, ids=[], vectors=empty, similarity=empty)

    vectors = np.array([p.embedding for p in candidates], dtype=np.float64)
    similarity = cosine_similarity_matrix(vectors)
    logger.debug("Built similarity graph for %r: %d nodes, dim=%d", domain, len(ids), vectors.shape[1])
    return PatternGraph(domain=domain, ids=ids, vectors=vectors, similarity=similarity)


"""
Usage-link derivation.

Links are directed propagation edges for the spiking network. They come
from successful trajectories when a domain has any: every pattern used
earlier in a trajectory links to every pattern used later in it, weighted
by how often that ordered pair co-occurs (relative to the domain's most
frequent pair). A domain with no successful trajectories falls back to
embedding similarity: pairs at or above the linkage threshold are linked
both ways with the similarity as weight.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable

from ..models.pattern import Trajectory, UsageLink
from .similarity import PatternGraph

logger = logging.getLogger(__name__)


def _ordered_unique(ids: Iterable[str], known: set[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for pid in ids:
        if pid in known and pid not in seen:
            seen.add(pid)
            ordered.append(pid)
    return ordered


def co_occurrence_counts(trajectories: Iterable[Trajectory], known_ids: set[str]) -> Counter[tuple[str, str]]:
    """Count ordered (earlier, later) pattern pairs, once per trajectory."""
    counts: Counter[tuple[str, str]] = Counter()
    for trajectory in trajectories:
        if not trajectory.successful:
            continue
        ordered = _ordered_unique(trajectory.pattern_ids, known_ids)
        pairs = {(a, b) for i, a in enumerate(ordered) for b in ordered[i + 1 :]}
        counts.update(pairs)
    return counts


def links_from_trajectories(
    domain: str,
    trajectories: Iterable[Trajectory],
    known_ids: set[str],
) -> list[UsageLink]:
    """Directed links weighted by co-occurrence frequency, in (0, 1]."""
    counts = co_occurrence_counts((t for t in trajectories if t.domain == domain), known_ids)
    if not counts:
        return []
    peak = max(counts.values())
    return [
        UsageLink(source_id=a, target_id=b, domain=domain, weight=count / peak, link_type="derived")
        for (a, b), count in sorted(counts.items())
    ]


def links_from_similarity(graph: PatternGraph, linkage_threshold: float) -> list[UsageLink]:
    """Bidirectional links for every pair at or above ``linkage_threshold``."""
    links: list[UsageLink] = []
    for edge in graph.edges(linkage_threshold):
        if edge.similarity <= 0:
            continue
        for source, target in ((edge.source_id, edge.target_id), (edge.target_id, edge.source_id)):
            links.append(
                UsageLink(
                    source_id=source,
                    target_id=target,
                    domain=graph.domain,
                    weight=edge.similarity,
                    link_type="related",
                )
            )
    return links


def derive_usage_links(
    graph: PatternGraph,
    trajectories: Iterable[Trajectory],
    linkage_threshold: float = 0.3,
    known_ids: set[str] | None = None,
) -> list[UsageLink]:
    """Trajectory links when available, otherwise similarity links.

    ``known_ids`` limits trajectory links to stored patterns; it defaults to
    the graph nodes, which leaves out patterns without an embedding.
    """
    trajectories = [t for t in trajectories if t.successful and t.domain == graph.domain]
    known = known_ids if known_ids is not None else set(graph.ids)
    if trajectories:
        links = links_from_trajectories(graph.domain, trajectories, known)
        logger.debug("Domain %r: %d links from %d trajectories", graph.domain, len(links), len(trajectories))
        return links

    links = links_from_similarity(graph, linkage_threshold)
    logger.debug("Domain %r: no successful trajectories, %d similarity links", graph.domain, len(links))
    return links

"""
Pure analytics engine for the reasoning bank.

No I/O lives here: every function works on an in-memory snapshot of
patterns, links, trajectories and spike timestamps, so the algorithms are
unit-testable without a repository.
"""

from .anomaly import AnomalyScore, FiringPattern, NetworkState, score_anomalies, summarize_network
from .clustering import Cluster, ClusteredVector, NoveltyScore, assign_clusters, score_novelty
from .links import derive_usage_links
from .mincut import MincutResult, compute_mincut, stoer_wagner
from .pagerank import PageRankEntry, adjacency_from_links, pagerank, rank_patterns
from .similarity import PatternGraph, SimilarityEdge, build_pattern_graph, cosine_similarity_matrix
from .spiking import AttentionWeight, LIFParams, StepResult, lif_step, spike_attention, stdp_delta

__all__ = [
    "AnomalyScore",
    "AttentionWeight",
    "Cluster",
    "ClusteredVector",
    "FiringPattern",
    "LIFParams",
    "MincutResult",
    "NetworkState",
    "NoveltyScore",
    "PageRankEntry",
    "PatternGraph",
    "SimilarityEdge",
    "StepResult",
    "adjacency_from_links",
    "assign_clusters",
    "build_pattern_graph",
    "compute_mincut",
    "cosine_similarity_matrix",
    "derive_usage_links",
    "lif_step",
    "pagerank",
    "rank_patterns",
    "score_anomalies",
    "score_novelty",
    "spike_attention",
    "stdp_delta",
    "stoer_wagner",
    "summarize_network",
]

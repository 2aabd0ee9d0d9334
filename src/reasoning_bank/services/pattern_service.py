"""
Pattern Analytics Service - shared business logic for the reasoning bank.

Single entry point used by both the HTTP API and the MCP tools. Each call
loads a snapshot of one domain from the pattern repository, runs the pure
engine functions on it (numeric work goes to the default executor so
concurrent domains proceed in parallel) and writes back only what changed.

Failure policy:
- Read analytics degrade to empty/default results when the repository is
  unreachable, logging at ERROR.
- Maintenance writes (partition, link rebuild, network reset) propagate
  StoreUnavailableError to the caller.
- Invalid arguments raise ValueError before any I/O happens.
"""

import asyncio
import functools
import logging
import time
from collections import defaultdict
from collections.abc import Callable, Sequence
from typing import Any

from ..config import GraphAnalyticsSettings, SpikingSettings, settings
from ..engine.anomaly import AnomalyScore, NetworkState, score_anomalies, summarize_network
from ..engine.clustering import Cluster, ClusteredVector, NoveltyScore, assign_clusters, score_novelty
from ..engine.links import derive_usage_links
from ..engine.mincut import MincutResult, compute_mincut
from ..engine.pagerank import PageRankEntry, adjacency_from_links, pagerank, rank_patterns
from ..engine.similarity import PatternGraph, SimilarityEdge, build_pattern_graph
from ..engine.spiking import AttentionWeight, LIFParams, StepResult, lif_step, spike_attention, stdp_delta
from ..models.pattern import Pattern, SpikeEvent, Trajectory
from ..models.validators import RankGraph, normalize_embedding
from ..storage.base import PatternRepository, StoreUnavailableError

logger = logging.getLogger(__name__)

RANK_GRAPHS = ("similarity", "links")


class PatternAnalyticsService:
    """
    Graph analytics and spiking-network operations over a pattern repository.

    Omitted tuning parameters fall back to the configured settings.
    """

    def __init__(
        self,
        repository: PatternRepository,
        graph_settings: GraphAnalyticsSettings | None = None,
        spiking_settings: SpikingSettings | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.repository = repository
        self.graph_settings = graph_settings or settings.graph
        self.spiking_settings = spiking_settings or settings.spiking
        self._clock = clock
        self.lif = LIFParams(
            threshold=self.spiking_settings.threshold,
            decay=self.spiking_settings.decay,
            dt=self.spiking_settings.dt,
        )

    async def _run_cpu(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def _load_graph(self, domain: str) -> tuple[list[Pattern], PatternGraph]:
        patterns = await self.repository.list_patterns(domain)
        graph = await self._run_cpu(build_pattern_graph, domain, patterns)
        return patterns, graph

    def _threshold(self, similarity_threshold: float | None) -> float:
        if similarity_threshold is None:
            return self.graph_settings.similarity_threshold
        if not -1.0 <= similarity_threshold <= 1.0:
            raise ValueError(f"similarity_threshold must be in [-1, 1], got {similarity_threshold}")
        return similarity_threshold

    # ── Similarity graph and mincut ────────────────────────────────────

    async def build_pattern_edges(
        self, domain: str, similarity_threshold: float | None = None
    ) -> list[SimilarityEdge]:
        """All same-domain pattern pairs with cosine similarity ≥ threshold."""
        threshold = self._threshold(similarity_threshold)
        try:
            _, graph = await self._load_graph(domain)
        except StoreUnavailableError as e:
            logger.error(f"build_pattern_edges({domain!r}) degraded to empty: {e}")
            return []
        edges = await self._run_cpu(graph.edges, threshold)
        logger.debug(f"Domain {domain!r}: {len(edges)} edges over {graph.size} nodes at threshold {threshold}")
        return edges

    async def compute_mincut(self, domain: str, similarity_threshold: float | None = None) -> MincutResult:
        """Global weighted minimum cut of the thresholded similarity graph."""
        threshold = self._threshold(similarity_threshold)
        try:
            _, graph = await self._load_graph(domain)
        except StoreUnavailableError as e:
            logger.error(f"compute_mincut({domain!r}) degraded to empty cut: {e}")
            return MincutResult(cut_value=0.0)
        return await self._run_cpu(compute_mincut, graph, threshold)

    async def partition_patterns(
        self,
        domain: str,
        similarity_threshold: float | None = None,
        min_cut_threshold: float | None = None,
    ) -> list[Cluster]:
        """Split a domain along its mincut and persist the cluster ids.

        The full assignment is computed before anything is written, then
        swapped in with a single repository call. Store failures propagate.
        """
        threshold = self._threshold(similarity_threshold)
        cut_threshold = self.graph_settings.min_cut_threshold if min_cut_threshold is None else min_cut_threshold
        if cut_threshold < 0:
            raise ValueError(f"min_cut_threshold must be non-negative, got {cut_threshold}")

        _, graph = await self._load_graph(domain)
        mincut = await self._run_cpu(compute_mincut, graph, threshold)
        clusters = await self._run_cpu(assign_clusters, graph, mincut, cut_threshold)

        assignments = {pid: c.cluster_id for c in clusters for pid in c.pattern_ids}
        coherence = {c.cluster_id: c.coherence_score for c in clusters}
        assigned = await self.repository.replace_cluster_assignments(domain, assignments, coherence)

        logger.info(
            f"Partitioned domain {domain!r}: {len(clusters)} cluster(s), {assigned} pattern(s), "
            f"cut={mincut.cut_value:.4f}, sizes={[c.size for c in clusters]}"
        )
        return clusters

    # ── Novelty ────────────────────────────────────────────────────────

    @staticmethod
    def _clustered(patterns: Sequence[Pattern]) -> list[ClusteredVector]:
        return [
            ClusteredVector(pattern_id=p.id, cluster_id=p.cluster_id, embedding=p.embedding)
            for p in patterns
            if p.cluster_id is not None and p.embedding
        ]

    def _novelty_threshold(self, novelty_threshold: float | None) -> float:
        return self.graph_settings.novelty_threshold if novelty_threshold is None else novelty_threshold

    async def detect_novel_pattern(
        self, pattern_id: str, domain: str, novelty_threshold: float | None = None
    ) -> NoveltyScore:
        """Compare a stored pattern against every other clustered pattern of its domain."""
        threshold = self._novelty_threshold(novelty_threshold)
        no_data = NoveltyScore(pattern_id, 0.0, None, True)
        try:
            patterns = await self.repository.list_patterns(domain)
        except StoreUnavailableError as e:
            logger.error(f"detect_novel_pattern({pattern_id!r}) degraded to no data: {e}")
            return no_data

        target = next((p for p in patterns if p.id == pattern_id), None)
        if target is None:
            return no_data
        return await self._run_cpu(score_novelty, pattern_id, target.embedding, self._clustered(patterns), threshold)

    async def score_embedding_novelty(
        self, embedding: Sequence[float], domain: str, novelty_threshold: float | None = None
    ) -> NoveltyScore:
        """Novelty of a candidate embedding that is not stored yet."""
        vector = normalize_embedding(embedding)
        threshold = self._novelty_threshold(novelty_threshold)
        try:
            patterns = await self.repository.list_patterns(domain)
        except StoreUnavailableError as e:
            logger.error(f"score_embedding_novelty({domain!r}) degraded to no data: {e}")
            return NoveltyScore("", 0.0, None, True)
        return await self._run_cpu(score_novelty, "", vector, self._clustered(patterns), threshold)

    # ── Importance ─────────────────────────────────────────────────────

    async def compute_pattern_pagerank(
        self,
        domain: str,
        damping: float | None = None,
        graph: RankGraph = "similarity",
        similarity_threshold: float | None = None,
    ) -> list[PageRankEntry]:
        """PageRank over the similarity graph or the usage-link graph."""
        if graph not in RANK_GRAPHS:
            raise ValueError(f"graph must be one of {RANK_GRAPHS}, got {graph!r}")
        d = self.graph_settings.pagerank_damping if damping is None else damping
        if not 0.0 < d < 1.0:
            raise ValueError(f"damping must be in (0, 1), got {d}")
        threshold = self._threshold(similarity_threshold)

        try:
            if graph == "similarity":
                _, sim_graph = await self._load_graph(domain)
                ids = sim_graph.ids
                adjacency = sim_graph.weights(threshold)
            else:
                patterns = await self.repository.list_patterns(domain)
                links = await self.repository.list_links(domain)
                ids = sorted(p.id for p in patterns)
                adjacency = adjacency_from_links(ids, links)
        except StoreUnavailableError as e:
            logger.error(f"compute_pattern_pagerank({domain!r}) degraded to empty: {e}")
            return []

        scores = await self._run_cpu(
            pagerank,
            adjacency,
            damping=d,
            tolerance=self.graph_settings.pagerank_tolerance,
            max_iterations=self.graph_settings.pagerank_max_iterations,
        )
        return rank_patterns(ids, scores)

    # ── Usage links ────────────────────────────────────────────────────

    async def build_links_from_trajectories(self, domain: str) -> int:
        """Derive and upsert the domain's usage links. Store failures propagate."""
        patterns, graph = await self._load_graph(domain)
        trajectories = await self.repository.list_trajectories(domain)

        links = await self._run_cpu(
            derive_usage_links,
            graph,
            trajectories,
            linkage_threshold=self.graph_settings.linkage_threshold,
            known_ids={p.id for p in patterns},
        )
        written = await self.repository.upsert_links(links)
        logger.info(f"Built {written} usage link(s) for domain {domain!r}")
        return written

    # ── Spiking network ────────────────────────────────────────────────

    async def _cas_step(
        self,
        pattern_id: str,
        compute: Callable[[Pattern], StepResult],
        now: float,
    ) -> tuple[Pattern, StepResult, bool] | None:
        """Apply ``compute`` to a fresh read of the neuron until the CAS wins.

        Returns (pre-update pattern, step, written), or None when the
        pattern does not exist.
        """
        pattern = None
        step = None
        for attempt in range(self.spiking_settings.cas_max_retries):
            pattern = await self.repository.get_pattern(pattern_id)
            if pattern is None:
                return None
            step = compute(pattern)
            fired_at = now if step.fired else None
            if await self.repository.compare_and_set_potential(
                pattern_id, pattern.spike_potential, step.potential, fired_at=fired_at
            ):
                return pattern, step, True
            logger.debug(f"CAS conflict on {pattern_id!r} (attempt {attempt + 1})")

        logger.warning(
            f"Spike update for {pattern_id!r} abandoned after {self.spiking_settings.cas_max_retries} attempts"
        )
        return pattern, step, False

    @staticmethod
    def _source_step(pattern: Pattern) -> StepResult:
        # Stimulation is a firing by definition, whatever the current potential
        return StepResult(potential=0.0, fired=True)

    async def fire_spike(self, pattern_id: str) -> list[SpikeEvent]:
        """Fire one neuron and propagate a single hop along its usage links.

        Returns the source event first, then one event per downstream link.
        Unknown patterns and an unreachable store both yield [].
        """
        now = self._clock()
        try:
            return await self._fire(pattern_id, now)
        except StoreUnavailableError as e:
            logger.error(f"fire_spike({pattern_id!r}) failed: {e}")
            return []

    async def _fire(self, pattern_id: str, now: float) -> list[SpikeEvent]:
        outcome = await self._cas_step(pattern_id, self._source_step, now)
        if outcome is None:
            return []
        source, step, written = outcome
        domain = source.domain

        events = [
            SpikeEvent(
                fired_pattern=pattern_id,
                domain=domain,
                new_potential=step.potential,
                did_fire=True,
                timestamp=now,
                recorded=written,
            )
        ]

        for link in await self.repository.get_outgoing_links(pattern_id):
            current = link.effective_weight
            outcome = await self._cas_step(
                link.target_id,
                lambda p, current=current: lif_step(p.spike_potential, current, self.lif),
                now,
            )
            if outcome is None:
                continue
            target, target_step, target_written = outcome
            events.append(
                SpikeEvent(
                    fired_pattern=target.id,
                    domain=target.domain,
                    new_potential=target_step.potential,
                    did_fire=target_step.fired,
                    timestamp=now,
                    recorded=target_written,
                )
            )
            if target_written and self.spiking_settings.stdp_enabled:
                delta = stdp_delta(now - target.last_fired_at) if target.last_fired_at is not None else 0.0
                await self.repository.update_link_plasticity(link.source_id, link.target_id, delta, now)

        recorded = [e for e in events if e.recorded]
        await self.repository.append_spike_events(recorded)

        fired = sum(1 for e in events if e.did_fire)
        logger.debug(f"Spike on {pattern_id!r}: {len(events)} event(s), {fired} fired, {len(recorded)} recorded")
        return events

    async def compute_spike_attention(
        self, query_embedding: Sequence[float], domain: str, limit: int = 10
    ) -> list[AttentionWeight]:
        """Softmax attention over the domain, boosted by spike potential."""
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        query = normalize_embedding(query_embedding)
        if query is None:
            return []
        try:
            patterns = await self.repository.list_patterns(domain)
        except StoreUnavailableError as e:
            logger.error(f"compute_spike_attention({domain!r}) degraded to empty: {e}")
            return []
        return await self._run_cpu(spike_attention, query, patterns, limit)

    # ── Reporting ──────────────────────────────────────────────────────

    async def get_network_state(self, domain: str, top_n: int | None = None) -> NetworkState:
        """Aggregate neuron statistics for a domain; read-only."""
        n = self.spiking_settings.top_n if top_n is None else top_n
        if n < 1:
            raise ValueError(f"top_n must be >= 1, got {n}")
        try:
            patterns = await self.repository.list_patterns(domain)
        except StoreUnavailableError as e:
            logger.error(f"get_network_state({domain!r}) degraded to default: {e}")
            return NetworkState()
        return summarize_network(
            patterns,
            now=self._clock(),
            recent_window_seconds=self.spiking_settings.recent_window_seconds,
            top_n=n,
        )

    async def reset_network(self, domain: str) -> int:
        """Zero every positive potential in a domain. Store failures propagate."""
        count = await self.repository.reset_potentials(domain)
        logger.info(f"Reset network for domain {domain!r}: {count} neuron(s) zeroed")
        return count

    async def detect_anomalies(
        self,
        domain: str,
        window_seconds: float | None = None,
        z_threshold: float | None = None,
        include_all: bool = False,
    ) -> list[AnomalyScore]:
        """Patterns whose current spike rate departs from their own baseline."""
        window = self.spiking_settings.anomaly_window_seconds if window_seconds is None else window_seconds
        if window <= 0:
            raise ValueError(f"window_seconds must be positive, got {window}")
        z = self.spiking_settings.anomaly_z_threshold if z_threshold is None else z_threshold
        baseline = self.spiking_settings.baseline_windows

        now = self._clock()
        try:
            patterns = await self.repository.list_patterns(domain)
            events = await self.repository.list_spike_events(domain, since=now - window * (baseline + 1))
        except StoreUnavailableError as e:
            logger.error(f"detect_anomalies({domain!r}) degraded to empty: {e}")
            return []

        fire_times: dict[str, list[float]] = defaultdict(list)
        for event in events:
            if event.did_fire:
                fire_times[event.fired_pattern].append(event.timestamp)

        return await self._run_cpu(
            score_anomalies,
            sorted(p.id for p in patterns),
            fire_times,
            now,
            window,
            baseline_windows=baseline,
            z_threshold=z,
            include_all=include_all,
        )

    # ── Ingest ─────────────────────────────────────────────────────────

    async def store_pattern(self, pattern: Pattern) -> None:
        """Insert a pattern, or refresh the ingest fields of an existing one."""
        await self.repository.upsert_pattern(pattern)

    async def record_trajectory(self, trajectory: Trajectory) -> None:
        await self.repository.record_trajectory(trajectory)

    async def health_check(self) -> dict[str, Any]:
        return await self.repository.health_check()

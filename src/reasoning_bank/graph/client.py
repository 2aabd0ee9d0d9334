"""
FalkorDB pattern repository.

Patterns, usage links, spike events and trajectories live in one FalkorDB
graph reached through a shared Redis connection pool. FalkorDB executes
each query atomically, which gives the three guarantees the service relies
on:

- compare_and_set_potential() is a single guarded MATCH ... WHERE ... SET,
  so concurrent fires on the same neuron serialize on the potential value.
- replace_cluster_assignments() clears and rewrites a whole domain in one
  query (copy-on-write from the reader's point of view).
- update_link_plasticity() increments spike_count and adds the STDP delta
  inside one SET, so concurrent spikes through a link all count.

Transient Redis connection/timeout errors are retried with exponential
backoff and then surface as StoreUnavailableError.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from falkordb.asyncio import FalkorDB
from redis.asyncio import BlockingConnectionPool
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from ..models.pattern import INGEST_FIELDS, PLASTICITY_MAX, PLASTICITY_MIN, Pattern, SpikeEvent, Trajectory, UsageLink
from ..storage.base import PatternRepository, StoreUnavailableError
from .schema import LINK_RETURN, PATTERN_FIELDS, PATTERN_RETURN, SCHEMA_STATEMENTS, USAGE_LINK

logger = logging.getLogger(__name__)


def is_retryable_error(exception: BaseException) -> bool:
    """Only connection-level failures are worth retrying."""
    return isinstance(exception, (RedisConnectionError, RedisTimeoutError))


def _pattern_from_row(row: Sequence[Any]) -> Pattern:
    data = {name: value for name, value in zip(PATTERN_FIELDS, row) if value is not None}
    return Pattern(**data)


def _link_from_row(row: Sequence[Any]) -> UsageLink:
    return UsageLink(
        source_id=row[0],
        target_id=row[1],
        domain=row[2],
        weight=float(row[3]),
        link_type=row[4] or "related",
        plasticity_weight=float(row[5]) if row[5] is not None else 1.0,
        spike_count=int(row[6]) if row[6] is not None else 0,
        last_activation=float(row[7]) if row[7] is not None else None,
    )


class PatternGraphClient(PatternRepository):
    """
    Async FalkorDB-backed PatternRepository.

    Manages a Redis connection pool; all reads and writes go through it.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        password: str | None = None,
        graph_name: str = "reasoning_bank",
        max_connections: int = 16,
    ):
        self.host = host
        self.port = port
        self.password = password
        self.graph_name = graph_name
        self.max_connections = max_connections

        self._pool: BlockingConnectionPool | None = None
        self._db: FalkorDB | None = None
        self._graph = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize connection pool, select graph, and apply schema."""
        if self._initialized:
            return

        self._pool = BlockingConnectionPool(
            host=self.host,
            port=self.port,
            password=self.password,
            max_connections=self.max_connections,
            timeout=None,
            decode_responses=True,
        )

        self._db = FalkorDB(connection_pool=self._pool)
        self._graph = self._db.select_graph(self.graph_name)

        for stmt in SCHEMA_STATEMENTS:
            try:
                await self._graph.query(stmt)
            except Exception as e:
                # Index already exists is not an error
                if "already indexed" not in str(e).lower():
                    logger.warning(f"Schema statement warning: {stmt} -> {e}")

        self._initialized = True
        logger.info(f"PatternGraphClient initialized: {self.host}:{self.port}/{self.graph_name}")

    @property
    def graph(self):
        if self._graph is None:
            raise StoreUnavailableError("PatternGraphClient not initialized. Call initialize() first.")
        return self._graph

    @retry(
        retry=retry_if_exception(is_retryable_error),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    async def _execute(self, query: str, params: dict[str, Any]):
        return await self.graph.query(query, params=params)

    async def _query(self, query: str, params: dict[str, Any] | None = None):
        try:
            return await self._execute(query, params or {})
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StoreUnavailableError(f"FalkorDB unreachable at {self.host}:{self.port}: {e}") from e

    @staticmethod
    def _count(result) -> int:
        return int(result.result_set[0][0]) if result.result_set else 0

    # ── Patterns ───────────────────────────────────────────────────────

    async def list_patterns(self, domain: str) -> list[Pattern]:
        result = await self._query(
            f"MATCH (p:Pattern {{domain: $domain}}) RETURN {PATTERN_RETURN} ORDER BY p.id",
            {"domain": domain},
        )
        return [_pattern_from_row(row) for row in result.result_set]

    async def get_pattern(self, pattern_id: str) -> Pattern | None:
        result = await self._query(
            f"MATCH (p:Pattern {{id: $id}}) RETURN {PATTERN_RETURN}",
            {"id": pattern_id},
        )
        if not result.result_set:
            return None
        return _pattern_from_row(result.result_set[0])

    async def upsert_pattern(self, pattern: Pattern) -> None:
        props = pattern.to_dict()
        props["embedding"] = pattern.embedding
        on_create = ", ".join(f"p.{name} = ${name}" for name in PATTERN_FIELDS if name != "id")
        on_match = ", ".join(f"p.{name} = ${name}" for name in INGEST_FIELDS)
        await self._query(
            f"MERGE (p:Pattern {{id: $id}}) ON CREATE SET {on_create} ON MATCH SET {on_match}",
            props,
        )

    async def replace_cluster_assignments(
        self,
        domain: str,
        assignments: Mapping[str, int],
        coherence: Mapping[int, float],
    ) -> int:
        rows = [
            {"id": pid, "cluster_id": cluster_id, "coherence": float(coherence.get(cluster_id, 0.0))}
            for pid, cluster_id in assignments.items()
        ]
        # One query: FalkorDB never exposes the cleared-but-not-yet-assigned state
        result = await self._query(
            "MATCH (p:Pattern {domain: $domain}) "
            "SET p.cluster_id = NULL, p.coherence_score = 0.0 "
            "WITH count(p) AS cleared "
            "UNWIND $rows AS row "
            "MATCH (p:Pattern {id: row.id, domain: $domain}) "
            "SET p.cluster_id = row.cluster_id, p.coherence_score = row.coherence "
            "RETURN count(p)",
            {"domain": domain, "rows": rows},
        )
        return self._count(result)

    async def compare_and_set_potential(
        self,
        pattern_id: str,
        expected: float,
        new_potential: float,
        fired_at: float | None = None,
    ) -> bool:
        result = await self._query(
            "MATCH (p:Pattern {id: $id}) "
            "WHERE coalesce(p.spike_potential, 0.0) = $expected "
            "SET p.spike_potential = $new, "
            "p.last_fired_at = CASE WHEN $fired_at IS NULL THEN p.last_fired_at ELSE $fired_at END "
            "RETURN count(p)",
            {"id": pattern_id, "expected": expected, "new": new_potential, "fired_at": fired_at},
        )
        return self._count(result) > 0

    async def reset_potentials(self, domain: str) -> int:
        result = await self._query(
            "MATCH (p:Pattern {domain: $domain}) WHERE p.spike_potential > 0 "
            "SET p.spike_potential = 0.0 RETURN count(p)",
            {"domain": domain},
        )
        count = self._count(result)
        logger.info(f"Reset {count} spike potentials in domain {domain!r}")
        return count

    # ── Usage links ────────────────────────────────────────────────────

    async def list_links(self, domain: str) -> list[UsageLink]:
        result = await self._query(
            f"MATCH (a:Pattern {{domain: $domain}})-[e:{USAGE_LINK}]->(b:Pattern) RETURN {LINK_RETURN}",
            {"domain": domain},
        )
        return [_link_from_row(row) for row in result.result_set]

    async def get_outgoing_links(self, pattern_id: str) -> list[UsageLink]:
        result = await self._query(
            f"MATCH (a:Pattern {{id: $id}})-[e:{USAGE_LINK}]->(b:Pattern) RETURN {LINK_RETURN}",
            {"id": pattern_id},
        )
        return [_link_from_row(row) for row in result.result_set]

    async def upsert_links(self, links: Sequence[UsageLink]) -> int:
        if not links:
            return 0
        rows = [
            {
                "source": link.source_id,
                "target": link.target_id,
                "weight": link.weight,
                "link_type": link.link_type,
                "plasticity": link.plasticity_weight,
                "spike_count": link.spike_count,
                "last_activation": link.last_activation,
            }
            for link in links
        ]
        # MATCH both endpoints first so links never dangle
        result = await self._query(
            "UNWIND $rows AS row "
            "MATCH (a:Pattern {id: row.source}), (b:Pattern {id: row.target}) "
            f"MERGE (a)-[e:{USAGE_LINK}]->(b) "
            "ON CREATE SET e.weight = row.weight, e.link_type = row.link_type, "
            "  e.plasticity_weight = row.plasticity, e.spike_count = row.spike_count, "
            "  e.last_activation = row.last_activation "
            "ON MATCH SET e.weight = row.weight, e.link_type = row.link_type "
            "RETURN count(e)",
            {"rows": rows},
        )
        return self._count(result)

    async def update_link_plasticity(
        self,
        source_id: str,
        target_id: str,
        delta: float,
        activated_at: float,
    ) -> None:
        # Increment in place; the new values never round-trip through Python
        await self._query(
            f"MATCH (a:Pattern {{id: $src}})-[e:{USAGE_LINK}]->(b:Pattern {{id: $dst}}) "
            "SET e.plasticity_weight = CASE "
            "  WHEN coalesce(e.plasticity_weight, 1.0) + $delta < $min THEN $min "
            "  WHEN coalesce(e.plasticity_weight, 1.0) + $delta > $max THEN $max "
            "  ELSE coalesce(e.plasticity_weight, 1.0) + $delta END, "
            "e.spike_count = coalesce(e.spike_count, 0) + 1, "
            "e.last_activation = $activated_at",
            {
                "src": source_id,
                "dst": target_id,
                "delta": delta,
                "min": PLASTICITY_MIN,
                "max": PLASTICITY_MAX,
                "activated_at": activated_at,
            },
        )

    # ── Spike log ──────────────────────────────────────────────────────

    async def append_spike_events(self, events: Sequence[SpikeEvent]) -> None:
        if not events:
            return
        rows = [
            {
                "pattern_id": e.fired_pattern,
                "domain": e.domain,
                "new_potential": e.new_potential,
                "did_fire": e.did_fire,
                "timestamp": e.timestamp,
            }
            for e in events
        ]
        await self._query(
            "UNWIND $rows AS row "
            "CREATE (:SpikeEvent {pattern_id: row.pattern_id, domain: row.domain, "
            "new_potential: row.new_potential, did_fire: row.did_fire, timestamp: row.timestamp})",
            {"rows": rows},
        )

    async def list_spike_events(self, domain: str, since: float) -> list[SpikeEvent]:
        result = await self._query(
            "MATCH (s:SpikeEvent {domain: $domain}) WHERE s.timestamp >= $since "
            "RETURN s.pattern_id, s.new_potential, s.did_fire, s.timestamp "
            "ORDER BY s.timestamp",
            {"domain": domain, "since": since},
        )
        return [
            SpikeEvent(
                fired_pattern=row[0],
                domain=domain,
                new_potential=float(row[1]),
                did_fire=bool(row[2]),
                timestamp=float(row[3]),
            )
            for row in result.result_set
        ]

    # ── Trajectories ───────────────────────────────────────────────────

    async def list_trajectories(self, domain: str) -> list[Trajectory]:
        result = await self._query(
            "MATCH (t:Trajectory {domain: $domain}) "
            "RETURN t.id, t.pattern_ids, t.successful, t.created_at ORDER BY t.created_at",
            {"domain": domain},
        )
        return [
            Trajectory(
                id=row[0],
                domain=domain,
                pattern_ids=list(row[1] or []),
                successful=bool(row[2]),
                created_at=float(row[3]) if row[3] is not None else 0.0,
            )
            for row in result.result_set
        ]

    async def record_trajectory(self, trajectory: Trajectory) -> None:
        await self._query(
            "MERGE (t:Trajectory {id: $id}) "
            "SET t.domain = $domain, t.pattern_ids = $pattern_ids, "
            "t.successful = $successful, t.created_at = $created_at",
            trajectory.model_dump(),
        )

    # ── Health ─────────────────────────────────────────────────────────

    async def health_check(self) -> dict[str, Any]:
        """Get graph statistics for health checks."""
        try:
            patterns = await self._query("MATCH (p:Pattern) RETURN count(p)")
            links = await self._query(f"MATCH ()-[e:{USAGE_LINK}]->() RETURN count(e)")
            events = await self._query("MATCH (s:SpikeEvent) RETURN count(s)")
            return {
                "backend": "falkordb",
                "graph_name": self.graph_name,
                "pattern_count": self._count(patterns),
                "link_count": self._count(links),
                "spike_event_count": self._count(events),
                "status": "operational",
            }
        except Exception as e:
            logger.error(f"Failed to get graph stats: {e}")
            return {
                "backend": "falkordb",
                "graph_name": self.graph_name,
                "status": "error",
                "error": str(e),
            }

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            try:
                await self._pool.aclose()
                logger.info("PatternGraphClient connection pool closed")
            except Exception as e:
                logger.warning(f"Error closing PatternGraphClient pool: {e}")
            finally:
                self._pool = None
                self._db = None
                self._graph = None
                self._initialized = False

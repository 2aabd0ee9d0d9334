#!/usr/bin/env python3
"""FastMCP server for the reasoning bank.

Exposes partitioning, novelty, ranking, spiking and anomaly analytics as
MCP tools. Each tool handler validates its arguments through a Pydantic
input model before calling the shared PatternAnalyticsService.
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP
from pydantic import ValidationError

from .config import settings
from .models.mcp_inputs import (
    AnomalyParams,
    NetworkStateParams,
    NoveltyParams,
    PartitionParams,
    RankParams,
    SpikeParams,
)
from .services.pattern_service import PatternAnalyticsService
from .storage.base import PatternRepository, StorageError

# Configure logging
logging.basicConfig(level=settings.logging.level)
logger = logging.getLogger(__name__)


@dataclass
class MCPServerContext:
    """Application context for the MCP server."""

    repository: PatternRepository
    pattern_service: PatternAnalyticsService


@asynccontextmanager
async def mcp_server_lifespan(server: FastMCP) -> AsyncIterator[MCPServerContext]:
    """Manage MCP server lifecycle with proper resource initialization and cleanup."""
    from .shared_storage import close_shared_repository, get_shared_repository, is_repository_initialized

    standalone = not is_repository_initialized()
    if standalone:
        logger.info("No shared repository found, initializing new instance (standalone mode)")
    repository = await get_shared_repository()

    try:
        yield MCPServerContext(repository=repository, pattern_service=PatternAnalyticsService(repository))
    finally:
        if standalone:
            logger.info("Shutting down Reasoning Bank MCP components...")
            await close_shared_repository()


# Create FastMCP server instance
mcp = FastMCP("Reasoning Bank Analytics", lifespan=mcp_server_lifespan)


def _service(ctx: Context) -> PatternAnalyticsService:
    return ctx.request_context.lifespan_context.pattern_service


# =============================================================================
# GRAPH ANALYTICS
# =============================================================================


@mcp.tool()
async def partition_patterns(
    domain: str,
    ctx: Context,
    similarity_threshold: float | None = None,
    min_cut_threshold: float | None = None,
) -> dict[str, Any]:
    """Split a domain's patterns into clusters along the global minimum cut.

    Args:
        domain: Pattern domain to repartition
        similarity_threshold: Minimum cosine similarity for a graph edge (default 0.3)
        min_cut_threshold: Cuts lighter than this split the domain in two (default 0.5)

    Returns:
        {success, clusters: [{cluster_id, pattern_ids, size, coherence_score}]}
    """
    try:
        params = PartitionParams(
            domain=domain,
            similarity_threshold=similarity_threshold,
            min_cut_threshold=min_cut_threshold,
        )
    except ValidationError as e:
        return {"success": False, "error": str(e)}

    try:
        clusters = await _service(ctx).partition_patterns(
            params.domain,
            similarity_threshold=params.similarity_threshold,
            min_cut_threshold=params.min_cut_threshold,
        )
    except StorageError as e:
        logger.error(f"partition_patterns failed: {e}")
        return {"success": False, "error": f"Storage failure: {e}"}

    return {"success": True, "domain": params.domain, "clusters": [c.to_dict() for c in clusters]}


@mcp.tool()
async def detect_novelty(
    domain: str,
    ctx: Context,
    pattern_id: str | None = None,
    embedding: list[float] | None = None,
    novelty_threshold: float | None = None,
) -> dict[str, Any]:
    """Check whether a pattern (stored, or a candidate embedding) is novel for a domain.

    Args:
        domain: Pattern domain
        pattern_id: Stored pattern to score (mutually exclusive with embedding)
        embedding: Candidate embedding to score before storing it
        novelty_threshold: Below this best-cluster similarity the pattern is novel (default 0.5)

    Returns:
        {success, pattern_id, max_similarity_to_cluster, nearest_cluster_id, is_novel}
    """
    try:
        params = NoveltyParams(
            domain=domain,
            pattern_id=pattern_id,
            embedding=embedding,
            novelty_threshold=novelty_threshold,
        )
    except ValidationError as e:
        return {"success": False, "error": str(e)}

    service = _service(ctx)
    if params.pattern_id is not None:
        score = await service.detect_novel_pattern(params.pattern_id, params.domain, params.novelty_threshold)
    else:
        score = await service.score_embedding_novelty(params.embedding, params.domain, params.novelty_threshold)
    return {"success": True, **score.to_dict()}


@mcp.tool()
async def rank_patterns(
    domain: str,
    ctx: Context,
    damping: float | None = None,
    graph: str = "similarity",
    limit: int = 20,
) -> dict[str, Any]:
    """Rank a domain's patterns by PageRank importance.

    Args:
        domain: Pattern domain
        damping: PageRank damping factor in (0, 1) (default 0.85)
        graph: "similarity" (embedding graph) or "links" (usage links with plasticity)
        limit: Maximum entries returned (default 20)

    Returns:
        {success, total, rankings: [{pattern_id, importance}]}
    """
    try:
        params = RankParams(domain=domain, damping=damping, graph=graph, limit=limit)
    except ValidationError as e:
        return {"success": False, "error": str(e)}

    entries = await _service(ctx).compute_pattern_pagerank(params.domain, damping=params.damping, graph=params.graph)
    return {
        "success": True,
        "domain": params.domain,
        "total": len(entries),
        "rankings": [e.to_dict() for e in entries[: params.limit]],
    }


# =============================================================================
# SPIKING NETWORK
# =============================================================================


@mcp.tool()
async def fire_spike(pattern_id: str, ctx: Context) -> dict[str, Any]:
    """Fire a pattern's neuron and propagate one hop along its usage links.

    Args:
        pattern_id: Pattern to stimulate

    Returns:
        {success, events: [{fired_pattern, new_potential, did_fire, timestamp, recorded}]}
    """
    try:
        params = SpikeParams(pattern_id=pattern_id)
    except ValidationError as e:
        return {"success": False, "error": str(e)}

    events = await _service(ctx).fire_spike(params.pattern_id)
    if not events:
        return {"success": False, "error": f"Pattern {params.pattern_id} not found or store unavailable"}
    return {"success": True, "events": [e.model_dump() for e in events]}


@mcp.tool()
async def network_state(
    domain: str,
    ctx: Context,
    top_n: int | None = None,
    reset: bool = False,
) -> dict[str, Any]:
    """Report (and optionally reset) the spiking network of a domain.

    Args:
        domain: Pattern domain
        top_n: Number of highest-potential patterns to list (default 10)
        reset: Zero every positive potential before reporting

    Returns:
        {success, total_neurons, active_neurons, avg_potential, recent_spikes, top_firing_patterns}
        plus reset_count when reset=True.
    """
    try:
        params = NetworkStateParams(domain=domain, top_n=top_n, reset=reset)
    except ValidationError as e:
        return {"success": False, "error": str(e)}

    service = _service(ctx)
    response: dict[str, Any] = {"success": True, "domain": params.domain}
    if params.reset:
        try:
            response["reset_count"] = await service.reset_network(params.domain)
        except StorageError as e:
            logger.error(f"network reset failed: {e}")
            return {"success": False, "error": f"Storage failure: {e}"}

    state = await service.get_network_state(params.domain, top_n=params.top_n)
    response.update(state.to_dict())
    return response


@mcp.tool()
async def detect_anomalies(
    domain: str,
    ctx: Context,
    window_seconds: float | None = None,
    z_threshold: float | None = None,
    include_all: bool = False,
) -> dict[str, Any]:
    """Find patterns whose recent spike rate departs from their own history.

    Args:
        domain: Pattern domain
        window_seconds: Trailing window length (default 3600)
        z_threshold: Score above which a pattern is anomalous (default 2.0)
        include_all: Return every pattern's score, not only anomalies

    Returns:
        {success, total, anomalies: [{pattern_id, spike_rate, avg_rate, stddev_rate, anomaly_score, is_anomalous}]}
    """
    try:
        params = AnomalyParams(
            domain=domain,
            window_seconds=window_seconds,
            z_threshold=z_threshold,
            include_all=include_all,
        )
    except ValidationError as e:
        return {"success": False, "error": str(e)}

    scores = await _service(ctx).detect_anomalies(
        params.domain,
        window_seconds=params.window_seconds,
        z_threshold=params.z_threshold,
        include_all=params.include_all,
    )
    return {"success": True, "domain": params.domain, "total": len(scores), "anomalies": [s.to_dict() for s in scores]}


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def main():
    """Main entry point for the MCP server."""
    port = int(os.getenv("RB_MCP_PORT", "8000"))
    host = os.getenv("RB_MCP_HOST", "0.0.0.0")
    transport_mode = os.getenv("RB_MCP_TRANSPORT", "http")

    logger.info(f"Starting Reasoning Bank MCP server ({transport_mode})")

    if transport_mode == "stdio":
        mcp.run(transport="stdio")
    else:
        mcp.run(transport="http", host=host, port=port, stateless_http=True)


if __name__ == "__main__":
    main()

# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Graph analytics endpoints for the HTTP interface.

Similarity edges, mincut, partitioning, novelty, PageRank and usage-link
maintenance, plus pattern and trajectory ingest.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ...models.pattern import Pattern, Trajectory
from ...models.validators import Embedding, RankGraph
from ...services.pattern_service import PatternAnalyticsService
from ...storage.base import StorageError
from ..dependencies import get_pattern_service

router = APIRouter()
logger = logging.getLogger(__name__)


# Request/Response Models
class EdgeResponse(BaseModel):
    source_id: str
    target_id: str
    domain: str
    similarity: float


class EdgeListResponse(BaseModel):
    domain: str
    threshold: float | None
    edges: list[EdgeResponse]
    total: int


class MincutResponse(BaseModel):
    domain: str
    cut_value: float
    partition_a: list[str]
    partition_b: list[str]


class PartitionRequest(BaseModel):
    """Request model for repartitioning a domain."""

    similarity_threshold: float | None = Field(None, ge=-1.0, le=1.0)
    min_cut_threshold: float | None = Field(None, ge=0.0)


class ClusterResponse(BaseModel):
    cluster_id: int
    pattern_ids: list[str]
    size: int
    coherence_score: float


class PartitionResponse(BaseModel):
    domain: str
    clusters: list[ClusterResponse]
    total_clusters: int


class NoveltyResponse(BaseModel):
    pattern_id: str
    max_similarity_to_cluster: float
    nearest_cluster_id: int | None
    is_novel: bool


class CandidateNoveltyRequest(BaseModel):
    """Request model for scoring an embedding that is not stored yet."""

    embedding: Embedding = Field(..., description="Candidate embedding vector")
    novelty_threshold: float | None = Field(None, ge=-1.0, le=1.0)


class PageRankItem(BaseModel):
    pattern_id: str
    importance: float


class PageRankResponse(BaseModel):
    domain: str
    graph: str
    rankings: list[PageRankItem]


class LinkRebuildResponse(BaseModel):
    success: bool
    domain: str
    links_written: int


class IngestResponse(BaseModel):
    success: bool
    id: str


def _storage_failure(action: str, e: StorageError) -> HTTPException:
    logger.error(f"{action} failed: {e}")
    return HTTPException(status_code=500, detail=f"Failed to {action}: {str(e)}")


@router.get("/domains/{domain}/edges", response_model=EdgeListResponse, tags=["analytics"])
async def get_pattern_edges(
    domain: str,
    threshold: float | None = Query(None, ge=-1.0, le=1.0, description="Minimum cosine similarity"),
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """List similarity edges between the patterns of a domain."""
    edges = await service.build_pattern_edges(domain, similarity_threshold=threshold)
    return EdgeListResponse(
        domain=domain,
        threshold=threshold,
        edges=[EdgeResponse(**e.to_dict()) for e in edges],
        total=len(edges),
    )


@router.get("/domains/{domain}/mincut", response_model=MincutResponse, tags=["analytics"])
async def get_mincut(
    domain: str,
    threshold: float | None = Query(None, ge=-1.0, le=1.0, description="Minimum cosine similarity"),
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Global weighted minimum cut of the domain's similarity graph."""
    result = await service.compute_mincut(domain, similarity_threshold=threshold)
    return MincutResponse(domain=domain, **result.to_dict())


@router.post("/domains/{domain}/partition", response_model=PartitionResponse, tags=["analytics"])
async def partition_domain(
    domain: str,
    request: PartitionRequest | None = None,
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Repartition a domain along its mincut and persist cluster ids."""
    request = request or PartitionRequest()
    try:
        clusters = await service.partition_patterns(
            domain,
            similarity_threshold=request.similarity_threshold,
            min_cut_threshold=request.min_cut_threshold,
        )
    except StorageError as e:
        raise _storage_failure("partition patterns", e) from e
    return PartitionResponse(
        domain=domain,
        clusters=[ClusterResponse(**c.to_dict()) for c in clusters],
        total_clusters=len(clusters),
    )


@router.get(
    "/domains/{domain}/patterns/{pattern_id}/novelty",
    response_model=NoveltyResponse,
    tags=["analytics"],
)
async def get_pattern_novelty(
    domain: str,
    pattern_id: str,
    threshold: float | None = Query(None, ge=-1.0, le=1.0, description="Novelty threshold"),
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """How far a stored pattern sits from the domain's clusters."""
    score = await service.detect_novel_pattern(pattern_id, domain, novelty_threshold=threshold)
    return NoveltyResponse(**score.to_dict())


@router.post("/domains/{domain}/novelty", response_model=NoveltyResponse, tags=["analytics"])
async def score_candidate_novelty(
    domain: str,
    request: CandidateNoveltyRequest,
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Novelty of a candidate embedding against the domain's clusters."""
    if request.embedding is None:
        raise HTTPException(status_code=400, detail="embedding must not be empty")
    score = await service.score_embedding_novelty(
        request.embedding, domain, novelty_threshold=request.novelty_threshold
    )
    return NoveltyResponse(**score.to_dict())


@router.get("/domains/{domain}/pagerank", response_model=PageRankResponse, tags=["analytics"])
async def get_pagerank(
    domain: str,
    damping: float | None = Query(None, gt=0.0, lt=1.0, description="Damping factor"),
    graph: RankGraph = Query("similarity", description="Transition graph: similarity or links"),
    threshold: float | None = Query(None, ge=-1.0, le=1.0, description="Similarity threshold"),
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Importance ranking of a domain's patterns."""
    entries = await service.compute_pattern_pagerank(
        domain, damping=damping, graph=graph, similarity_threshold=threshold
    )
    return PageRankResponse(
        domain=domain,
        graph=graph,
        rankings=[PageRankItem(**e.to_dict()) for e in entries],
    )


@router.post("/domains/{domain}/links/rebuild", response_model=LinkRebuildResponse, tags=["analytics"])
async def rebuild_links(
    domain: str,
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Re-derive usage links from trajectories (or similarity when none exist)."""
    try:
        written = await service.build_links_from_trajectories(domain)
    except StorageError as e:
        raise _storage_failure("rebuild usage links", e) from e
    return LinkRebuildResponse(success=True, domain=domain, links_written=written)


@router.post("/patterns", response_model=IngestResponse, tags=["ingest"])
async def store_pattern(
    pattern: Pattern,
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Insert a pattern, or refresh the recorder-owned fields of an existing one."""
    try:
        await service.store_pattern(pattern)
    except StorageError as e:
        raise _storage_failure("store pattern", e) from e
    return IngestResponse(success=True, id=pattern.id)


@router.post("/trajectories", response_model=IngestResponse, tags=["ingest"])
async def record_trajectory(
    trajectory: Trajectory,
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Record a reasoning trajectory for link derivation."""
    try:
        await service.record_trajectory(trajectory)
    except StorageError as e:
        raise _storage_failure("record trajectory", e) from e
    return IngestResponse(success=True, id=trajectory.id)

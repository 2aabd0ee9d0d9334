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
Spiking network endpoints for the HTTP interface.

Firing, network state, reset, anomaly detection and spike attention.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ...models.validators import Embedding
from ...services.pattern_service import PatternAnalyticsService
from ...storage.base import StorageError
from ..dependencies import get_pattern_service

router = APIRouter()
logger = logging.getLogger(__name__)


class SpikeEventResponse(BaseModel):
    fired_pattern: str
    domain: str
    new_potential: float
    did_fire: bool
    timestamp: float
    recorded: bool


class SpikeResponse(BaseModel):
    pattern_id: str
    events: list[SpikeEventResponse]
    fired_count: int


class FiringPatternResponse(BaseModel):
    pattern_id: str
    potential: float
    last_fired_at: float | None


class NetworkStateResponse(BaseModel):
    domain: str
    total_neurons: int
    active_neurons: int
    avg_potential: float
    recent_spikes: int
    top_firing_patterns: list[FiringPatternResponse]


class ResetResponse(BaseModel):
    success: bool
    domain: str
    reset_count: int


class AnomalyResponse(BaseModel):
    pattern_id: str
    spike_rate: float
    avg_rate: float
    stddev_rate: float
    anomaly_score: float
    is_anomalous: bool


class AnomalyListResponse(BaseModel):
    domain: str
    anomalies: list[AnomalyResponse]
    total: int


class AttentionRequest(BaseModel):
    """Request model for spike-modulated attention."""

    query_embedding: Embedding = Field(..., description="Query embedding vector")
    limit: int = Field(10, ge=1, le=100, description="Number of patterns to attend over")


class AttentionItem(BaseModel):
    pattern_id: str
    attention_score: float
    normalized_weight: float


class AttentionResponse(BaseModel):
    domain: str
    weights: list[AttentionItem]


@router.post("/patterns/{pattern_id}/spike", response_model=SpikeResponse, tags=["spiking"])
async def fire_spike(
    pattern_id: str,
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Fire a pattern's neuron and propagate one hop along its usage links."""
    events = await service.fire_spike(pattern_id)
    if not events:
        raise HTTPException(status_code=404, detail=f"Pattern {pattern_id} not found or store unavailable")
    return SpikeResponse(
        pattern_id=pattern_id,
        events=[SpikeEventResponse(**e.model_dump()) for e in events],
        fired_count=sum(1 for e in events if e.did_fire),
    )


@router.get("/domains/{domain}/network", response_model=NetworkStateResponse, tags=["spiking"])
async def get_network_state(
    domain: str,
    top_n: int | None = Query(None, ge=1, le=100, description="Number of top patterns by potential"),
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Aggregate neuron statistics for a domain."""
    state = await service.get_network_state(domain, top_n=top_n)
    return NetworkStateResponse(domain=domain, **state.to_dict())


@router.post("/domains/{domain}/network/reset", response_model=ResetResponse, tags=["spiking"])
async def reset_network(
    domain: str,
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Zero every positive potential in a domain."""
    try:
        count = await service.reset_network(domain)
    except StorageError as e:
        logger.error(f"Network reset failed for {domain!r}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to reset network: {str(e)}") from e
    return ResetResponse(success=True, domain=domain, reset_count=count)


@router.get("/domains/{domain}/anomalies", response_model=AnomalyListResponse, tags=["spiking"])
async def get_anomalies(
    domain: str,
    window_seconds: float | None = Query(None, gt=0, description="Trailing window length in seconds"),
    z_threshold: float | None = Query(None, description="Score above which a pattern is anomalous"),
    include_all: bool = Query(False, description="Return every pattern, not only anomalies"),
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Patterns whose spike rate departs from their own baseline."""
    scores = await service.detect_anomalies(
        domain, window_seconds=window_seconds, z_threshold=z_threshold, include_all=include_all
    )
    return AnomalyListResponse(
        domain=domain,
        anomalies=[AnomalyResponse(**s.to_dict()) for s in scores],
        total=len(scores),
    )


@router.post("/domains/{domain}/attention", response_model=AttentionResponse, tags=["spiking"])
async def compute_attention(
    domain: str,
    request: AttentionRequest,
    service: PatternAnalyticsService = Depends(get_pattern_service),
):
    """Softmax attention over a domain, boosted by spike potential."""
    if request.query_embedding is None:
        raise HTTPException(status_code=400, detail="query_embedding must not be empty")
    weights = await service.compute_spike_attention(request.query_embedding, domain, limit=request.limit)
    return AttentionResponse(domain=domain, weights=[AttentionItem(**w.to_dict()) for w in weights])

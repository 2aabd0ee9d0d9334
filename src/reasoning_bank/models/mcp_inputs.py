"""MCP tool input models.

Each MCP tool validates its arguments by constructing the matching model,
so range checks and cross-field rules live here as declarative constraints
instead of inline in ``mcp_server.py``.
"""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, Field, model_validator

from .validators import Domain, Embedding, PatternId, RankGraph, Similarity


class PartitionParams(BaseModel):
    """Validated input for the ``partition_patterns`` MCP tool."""

    domain: Domain
    similarity_threshold: Similarity | None = None
    min_cut_threshold: float | None = Field(default=None, ge=0.0)


class NoveltyParams(BaseModel):
    """Validated input for the ``detect_novelty`` MCP tool.

    Exactly one of ``pattern_id`` (stored pattern) or ``embedding``
    (candidate not stored yet) must be given.
    """

    domain: Domain
    pattern_id: str | None = None
    embedding: Embedding = None
    novelty_threshold: Similarity | None = None

    @model_validator(mode="after")
    def one_target(self) -> Self:
        if (self.pattern_id is None) == (self.embedding is None):
            raise ValueError("provide exactly one of pattern_id or embedding")
        return self


class RankParams(BaseModel):
    """Validated input for the ``rank_patterns`` MCP tool."""

    domain: Domain
    damping: float | None = Field(default=None, gt=0.0, lt=1.0)
    graph: RankGraph = "similarity"
    limit: int = Field(default=20, ge=1, le=1000)


class SpikeParams(BaseModel):
    """Validated input for the ``fire_spike`` MCP tool."""

    pattern_id: PatternId


class NetworkStateParams(BaseModel):
    """Validated input for the ``network_state`` MCP tool."""

    domain: Domain
    top_n: int | None = Field(default=None, ge=1, le=100)
    reset: bool = False


class AnomalyParams(BaseModel):
    """Validated input for the ``detect_anomalies`` MCP tool."""

    domain: Domain
    window_seconds: float | None = Field(default=None, gt=0)
    z_threshold: float | None = None
    include_all: bool = False

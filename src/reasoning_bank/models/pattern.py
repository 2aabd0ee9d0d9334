"""Persisted reasoning-bank entities.

Pydantic v2 models for the rows the engine loads from and saves to a
pattern repository: patterns, directed usage links, the append-only spike
event log, and the trajectories the link builder consumes.

Timestamps are Unix epoch floats throughout, matching what the FalkorDB
repository stores as node properties.
"""

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from .validators import Domain, Embedding, LinkType, NonNegativeFloat, NonNegativeInt, PatternId, UnitFloat

# STDP keeps plasticity inside this band
PLASTICITY_MIN = 0.1
PLASTICITY_MAX = 5.0

# Fields owned by the upstream pattern recorder. Re-ingesting a stored
# pattern updates only these; cluster and neuron state belong to the engine.
INGEST_FIELDS: tuple[str, ...] = ("domain", "embedding", "fingerprint", "usage_count", "confidence")


def clamp_plasticity(value: float) -> float:
    return max(PLASTICITY_MIN, min(PLASTICITY_MAX, value))


class Pattern(BaseModel):
    """A stored tool-use pattern and its spiking-neuron state."""

    model_config = ConfigDict(populate_by_name=True)

    id: PatternId
    domain: Domain
    embedding: Embedding = None
    fingerprint: str | None = None

    # Written only by the cluster assigner
    cluster_id: int | None = Field(default=None, ge=0)
    coherence_score: float = 0.0

    # LIF neuron state
    spike_potential: NonNegativeFloat = 0.0
    last_fired_at: float | None = None

    usage_count: NonNegativeInt = 0
    confidence: UnitFloat = 0.5

    def to_dict(self) -> dict[str, Any]:
        """Storage-compatible property dict (embedding excluded)."""
        return {
            "id": self.id,
            "domain": self.domain,
            "fingerprint": self.fingerprint,
            "cluster_id": self.cluster_id,
            "coherence_score": self.coherence_score,
            "spike_potential": self.spike_potential,
            "last_fired_at": self.last_fired_at,
            "usage_count": self.usage_count,
            "confidence": self.confidence,
        }


class UsageLink(BaseModel):
    """Directed propagation edge between two patterns of the same domain."""

    source_id: PatternId
    target_id: PatternId
    domain: Domain
    weight: float = Field(gt=0.0)
    link_type: LinkType = "related"

    # Spike-timing dependent plasticity state
    plasticity_weight: float = Field(default=1.0, ge=PLASTICITY_MIN, le=PLASTICITY_MAX)
    spike_count: NonNegativeInt = 0
    last_activation: float | None = None

    @field_validator("target_id")
    @classmethod
    def reject_self_loop(cls, v: str, info: ValidationInfo) -> str:
        if info.data.get("source_id") == v:
            raise ValueError("usage link cannot point a pattern at itself")
        return v

    @property
    def key(self) -> tuple[str, str]:
        return self.source_id, self.target_id

    @property
    def effective_weight(self) -> float:
        """Input current delivered to the target when the source fires."""
        return self.weight * self.plasticity_weight


class SpikeEvent(BaseModel):
    """One neuron update produced by a spike call."""

    fired_pattern: PatternId
    domain: str = ""
    new_potential: NonNegativeFloat
    did_fire: bool
    timestamp: float = Field(default_factory=time.time)
    # False when the compare-and-set budget ran out; such events are not logged
    recorded: bool = True


class Trajectory(BaseModel):
    """A reasoning trajectory: the patterns an agent used, in order."""

    id: str = Field(min_length=1)
    domain: Domain
    pattern_ids: list[str] = Field(default_factory=list)
    successful: bool = False
    created_at: float = Field(default_factory=time.time)

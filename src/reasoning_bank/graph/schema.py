"""
Graph schema for the reasoning bank pattern store.

Defines the Cypher schema for FalkorDB: node labels, relationship types
and indices. Schema is applied idempotently on startup.

Node Labels:
    :Pattern     - A stored tool-use pattern (keyed by id) with its
                   embedding, cluster assignment and LIF neuron state
    :SpikeEvent  - One append-only spike log entry
    :Trajectory  - An ordered list of pattern ids from one reasoning trace

Relationship Types:
    :USAGE_LINK  - Directed propagation edge between two patterns of the
                   same domain. Carries weight plus STDP plasticity state.

Indices:
    Pattern(id), Pattern(domain)          - row lookup and domain scans
    SpikeEvent(domain), SpikeEvent(timestamp) - windowed rate queries
    Trajectory(domain)
"""

USAGE_LINK = "USAGE_LINK"

# Cypher statements executed idempotently on graph initialization.
SCHEMA_STATEMENTS: list[str] = [
    "CREATE INDEX IF NOT EXISTS FOR (p:Pattern) ON (p.id)",
    "CREATE INDEX IF NOT EXISTS FOR (p:Pattern) ON (p.domain)",
    "CREATE INDEX IF NOT EXISTS FOR (s:SpikeEvent) ON (s.domain)",
    "CREATE INDEX IF NOT EXISTS FOR (s:SpikeEvent) ON (s.timestamp)",
    "CREATE INDEX IF NOT EXISTS FOR (t:Trajectory) ON (t.domain)",
]

# Pattern properties in the order every read query returns them
PATTERN_FIELDS: tuple[str, ...] = (
    "id",
    "domain",
    "embedding",
    "fingerprint",
    "cluster_id",
    "coherence_score",
    "spike_potential",
    "last_fired_at",
    "usage_count",
    "confidence",
)

PATTERN_RETURN = ", ".join(f"p.{name}" for name in PATTERN_FIELDS)

LINK_RETURN = (
    "a.id, b.id, a.domain, e.weight, e.link_type, "
    "e.plasticity_weight, e.spike_count, e.last_activation"
)

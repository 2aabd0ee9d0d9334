"""
Abstract pattern repository.

The analytics engine never talks to a datastore directly; the service
layer loads snapshots through this interface and writes back only the
rows it mutated. Implementations must make three writes atomic:

- ``compare_and_set_potential``: a per-pattern conditional update used by
  the spike path's optimistic retry loop.
- ``replace_cluster_assignments``: a whole-domain swap, so readers never
  see a partially repartitioned domain.
- ``update_link_plasticity``: an in-place increment, so concurrent spikes
  through one link never lose a count or a plasticity delta.

Connectivity failures surface as ``StoreUnavailableError``; the service
decides whether to degrade or propagate.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from ..models.pattern import Pattern, SpikeEvent, Trajectory, UsageLink


class StorageError(Exception):
    """Storage-related errors."""


class StoreUnavailableError(StorageError):
    """The backing store could not be reached."""


class PatternRepository(ABC):
    """Durable store of patterns, usage links, trajectories and spike events."""

    async def initialize(self) -> None:
        """Open connections and apply schema. Idempotent."""

    async def close(self) -> None:
        """Release connections."""

    # ── Patterns ───────────────────────────────────────────────────────

    @abstractmethod
    async def list_patterns(self, domain: str) -> list[Pattern]:
        """All patterns of a domain (empty for an unknown domain)."""

    @abstractmethod
    async def get_pattern(self, pattern_id: str) -> Pattern | None:
        """A single pattern, or None."""

    @abstractmethod
    async def upsert_pattern(self, pattern: Pattern) -> None:
        """Insert a pattern, or refresh the recorder-owned fields of a stored one.

        On an existing row only ``INGEST_FIELDS`` change; cluster assignment
        and neuron state are left to the engine.
        """

    @abstractmethod
    async def replace_cluster_assignments(
        self,
        domain: str,
        assignments: Mapping[str, int],
        coherence: Mapping[int, float],
    ) -> int:
        """Atomically set cluster ids for a domain.

        Patterns listed in ``assignments`` get their cluster id and that
        cluster's coherence score; every other pattern in the domain has its
        cluster id cleared. Returns the number of patterns assigned.
        """

    @abstractmethod
    async def compare_and_set_potential(
        self,
        pattern_id: str,
        expected: float,
        new_potential: float,
        fired_at: float | None = None,
    ) -> bool:
        """Set the potential only if it still equals ``expected``.

        When ``fired_at`` is given, ``last_fired_at`` is updated in the same
        atomic write. Returns False on a lost race or a missing pattern.
        """

    @abstractmethod
    async def reset_potentials(self, domain: str) -> int:
        """Zero every positive potential in a domain; return how many changed."""

    # ── Usage links ────────────────────────────────────────────────────

    @abstractmethod
    async def list_links(self, domain: str) -> list[UsageLink]:
        """All usage links of a domain."""

    @abstractmethod
    async def get_outgoing_links(self, pattern_id: str) -> list[UsageLink]:
        """Links whose source is ``pattern_id``."""

    @abstractmethod
    async def upsert_links(self, links: Sequence[UsageLink]) -> int:
        """Create or update links keyed by (source, target).

        Existing links keep their plasticity state; only weight and type are
        replaced. Returns the number of links written.
        """

    @abstractmethod
    async def update_link_plasticity(
        self,
        source_id: str,
        target_id: str,
        delta: float,
        activated_at: float,
    ) -> None:
        """Record one propagation along a link as a single atomic write.

        Adds ``delta`` to the plasticity weight (clamped to the plasticity
        band), increments ``spike_count`` and sets ``last_activation``.
        Missing links are ignored.
        """

    # ── Spike log (append-only) ────────────────────────────────────────

    @abstractmethod
    async def append_spike_events(self, events: Sequence[SpikeEvent]) -> None:
        """Append events to the log."""

    @abstractmethod
    async def list_spike_events(self, domain: str, since: float) -> list[SpikeEvent]:
        """Events of a domain with timestamp ≥ ``since``, oldest first."""

    # ── Trajectories ───────────────────────────────────────────────────

    @abstractmethod
    async def list_trajectories(self, domain: str) -> list[Trajectory]:
        """Recorded trajectories of a domain."""

    @abstractmethod
    async def record_trajectory(self, trajectory: Trajectory) -> None:
        """Store a trajectory from the reasoning-trace recorder."""

    # ── Health ─────────────────────────────────────────────────────────

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """Backend status for health endpoints."""

"""
In-process pattern repository.

Dict-backed rows behind a single ``asyncio.Lock``. Every method copies
models on the way in and out so callers work on snapshots and can never
mutate stored state behind the lock. Used for embedded deployments and
tests.
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..models.pattern import INGEST_FIELDS, Pattern, SpikeEvent, Trajectory, UsageLink, clamp_plasticity
from .base import PatternRepository

logger = logging.getLogger(__name__)


class InMemoryPatternRepository(PatternRepository):
    """Thread-unsafe but coroutine-safe repository for a single event loop."""

    def __init__(self) -> None:
        self._patterns: dict[str, Pattern] = {}
        self._links: dict[tuple[str, str], UsageLink] = {}
        self._events: list[SpikeEvent] = []
        self._trajectories: dict[str, Trajectory] = {}
        self._lock = asyncio.Lock()

    # ── Patterns ───────────────────────────────────────────────────────

    async def list_patterns(self, domain: str) -> list[Pattern]:
        async with self._lock:
            return [p.model_copy(deep=True) for p in self._patterns.values() if p.domain == domain]

    async def get_pattern(self, pattern_id: str) -> Pattern | None:
        async with self._lock:
            pattern = self._patterns.get(pattern_id)
            return pattern.model_copy(deep=True) if pattern else None

    async def upsert_pattern(self, pattern: Pattern) -> None:
        async with self._lock:
            incoming = pattern.model_copy(deep=True)
            existing = self._patterns.get(pattern.id)
            if existing is None:
                self._patterns[pattern.id] = incoming
                return
            self._patterns[pattern.id] = existing.model_copy(
                update={name: getattr(incoming, name) for name in INGEST_FIELDS}
            )

    async def replace_cluster_assignments(
        self,
        domain: str,
        assignments: Mapping[str, int],
        coherence: Mapping[int, float],
    ) -> int:
        async with self._lock:
            # Build the new rows first, then swap them in one step
            updated: dict[str, Pattern] = {}
            for pid, pattern in self._patterns.items():
                if pattern.domain != domain:
                    continue
                cluster_id = assignments.get(pid)
                updated[pid] = pattern.model_copy(
                    update={
                        "cluster_id": cluster_id,
                        "coherence_score": coherence.get(cluster_id, 0.0) if cluster_id is not None else 0.0,
                    }
                )
            self._patterns.update(updated)
            return sum(1 for p in updated.values() if p.cluster_id is not None)

    async def compare_and_set_potential(
        self,
        pattern_id: str,
        expected: float,
        new_potential: float,
        fired_at: float | None = None,
    ) -> bool:
        async with self._lock:
            pattern = self._patterns.get(pattern_id)
            if pattern is None or pattern.spike_potential != expected:
                return False
            update: dict[str, Any] = {"spike_potential": new_potential}
            if fired_at is not None:
                update["last_fired_at"] = fired_at
            self._patterns[pattern_id] = pattern.model_copy(update=update)
            return True

    async def reset_potentials(self, domain: str) -> int:
        async with self._lock:
            count = 0
            for pid, pattern in self._patterns.items():
                if pattern.domain == domain and pattern.spike_potential > 0:
                    self._patterns[pid] = pattern.model_copy(update={"spike_potential": 0.0})
                    count += 1
            return count

    # ── Usage links ────────────────────────────────────────────────────

    async def list_links(self, domain: str) -> list[UsageLink]:
        async with self._lock:
            return [link.model_copy() for link in self._links.values() if link.domain == domain]

    async def get_outgoing_links(self, pattern_id: str) -> list[UsageLink]:
        async with self._lock:
            return [link.model_copy() for link in self._links.values() if link.source_id == pattern_id]

    async def upsert_links(self, links: Sequence[UsageLink]) -> int:
        async with self._lock:
            for link in links:
                existing = self._links.get(link.key)
                if existing is None:
                    self._links[link.key] = link.model_copy()
                else:
                    self._links[link.key] = existing.model_copy(
                        update={"weight": link.weight, "link_type": link.link_type}
                    )
            return len(links)

    async def update_link_plasticity(
        self,
        source_id: str,
        target_id: str,
        delta: float,
        activated_at: float,
    ) -> None:
        async with self._lock:
            existing = self._links.get((source_id, target_id))
            if existing is None:
                return
            self._links[existing.key] = existing.model_copy(
                update={
                    "plasticity_weight": clamp_plasticity(existing.plasticity_weight + delta),
                    "spike_count": existing.spike_count + 1,
                    "last_activation": activated_at,
                }
            )

    # ── Spike log ──────────────────────────────────────────────────────

    async def append_spike_events(self, events: Sequence[SpikeEvent]) -> None:
        async with self._lock:
            self._events.extend(e.model_copy() for e in events)

    async def list_spike_events(self, domain: str, since: float) -> list[SpikeEvent]:
        async with self._lock:
            events = [e.model_copy() for e in self._events if e.domain == domain and e.timestamp >= since]
        events.sort(key=lambda e: e.timestamp)
        return events

    # ── Trajectories ───────────────────────────────────────────────────

    async def list_trajectories(self, domain: str) -> list[Trajectory]:
        async with self._lock:
            return [t.model_copy(deep=True) for t in self._trajectories.values() if t.domain == domain]

    async def record_trajectory(self, trajectory: Trajectory) -> None:
        async with self._lock:
            self._trajectories[trajectory.id] = trajectory.model_copy(deep=True)

    async def health_check(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "backend": "memory",
                "status": "operational",
                "pattern_count": len(self._patterns),
                "link_count": len(self._links),
                "spike_event_count": len(self._events),
            }

import math
import os
import sys

import pytest

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

from reasoning_bank.models.pattern import Pattern  # noqa: E402
from reasoning_bank.storage.memory import InMemoryPatternRepository  # noqa: E402

EMBEDDING_DIM = 384


def _unit(values: list[float]) -> list[float]:
    norm = math.sqrt(sum(v * v for v in values))
    return [v / norm for v in values]


def finance_embeddings() -> dict[str, list[float]]:
    """Six 384-dim embeddings in three natural groups.

    Three valuation-like vectors share a sin(0.1d) carrier, two credit-like
    vectors share a cos(0.1d) carrier, and one outlier rides on sin(0.3d).
    Carriers are near-orthogonal over 384 dimensions, members of a group
    are ~0.99 similar.
    """
    dims = range(EMBEDDING_DIM)
    return {
        "valuation-a": _unit([math.sin(0.1 * d) + 0.05 * math.sin(0.7 * d) for d in dims]),
        "valuation-b": _unit([math.sin(0.1 * d) + 0.05 * math.cos(0.5 * d) for d in dims]),
        "valuation-c": _unit([math.sin(0.1 * d) + 0.05 * math.sin(0.9 * d) for d in dims]),
        "credit-a": _unit([math.cos(0.1 * d) + 0.05 * math.sin(0.3 * d) for d in dims]),
        "credit-b": _unit([math.cos(0.1 * d) + 0.05 * math.cos(0.4 * d) for d in dims]),
        "outlier": _unit([math.sin(0.3 * d) + 0.1 * math.cos(0.7 * d) for d in dims]),
    }


@pytest.fixture
def finance_patterns() -> list[Pattern]:
    return [Pattern(id=pid, domain="finance", embedding=vec) for pid, vec in finance_embeddings().items()]


@pytest.fixture
async def repository(finance_patterns) -> InMemoryPatternRepository:
    """In-memory repository seeded with the six finance patterns."""
    repo = InMemoryPatternRepository()
    for pattern in finance_patterns:
        await repo.upsert_pattern(pattern)
    return repo

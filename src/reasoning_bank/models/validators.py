"""Shared Pydantic types and validators for reuse across models.

Centralises embedding coercion, range-clamped floats, identifier
constraints, and Literal enums so every model speaks the same language.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, Field

# ---------------------------------------------------------------------------
# Embedding coercion
# ---------------------------------------------------------------------------


def normalize_embedding(v: Any) -> list[float] | None:
    """Accept any float sequence (list, tuple, numpy array) or ``None``.

    * ``numpy.array([0.1, 0.2])`` → ``[0.1, 0.2]``
    * ``[]`` → ``None`` (an empty vector cannot be compared)
    * non-finite components raise ``ValueError``
    """
    if v is None:
        return None
    if hasattr(v, "tolist"):
        v = v.tolist()
    values = [float(x) for x in v]
    if not values:
        return None
    if not all(math.isfinite(x) for x in values):
        raise ValueError("embedding contains NaN or infinite components")
    return values


Embedding = Annotated[list[float] | None, BeforeValidator(normalize_embedding)]
"""Flexible embedding input: any float sequence, always stored as list[float]."""


# ---------------------------------------------------------------------------
# Numeric types
# ---------------------------------------------------------------------------

UnitFloat = Annotated[float, Field(ge=0.0, le=1.0)]
"""Float clamped to [0.0, 1.0] for confidences and weights."""

Similarity = Annotated[float, Field(ge=-1.0, le=1.0)]
"""Cosine similarity range."""

NonNegativeInt = Annotated[int, Field(ge=0)]
"""Integer ≥ 0 for counts."""

NonNegativeFloat = Annotated[float, Field(ge=0.0)]


# ---------------------------------------------------------------------------
# String constraints
# ---------------------------------------------------------------------------

PatternId = Annotated[str, Field(min_length=1)]
"""Non-empty pattern identifier."""

Domain = Annotated[str, Field(min_length=1)]


# ---------------------------------------------------------------------------
# Literal enums
# ---------------------------------------------------------------------------

LinkType = Literal["related", "derived"]
RankGraph = Literal["similarity", "links"]

from .base import PatternRepository, StorageError, StoreUnavailableError
from .memory import InMemoryPatternRepository

__all__ = [
    "InMemoryPatternRepository",
    "PatternRepository",
    "StorageError",
    "StoreUnavailableError",
]

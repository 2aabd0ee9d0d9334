"""FalkorDB-backed pattern repository."""

from .client import PatternGraphClient, is_retryable_error
from .factory import create_graph_repository

__all__ = ["PatternGraphClient", "create_graph_repository", "is_retryable_error"]

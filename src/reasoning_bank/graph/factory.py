"""
Factory for the FalkorDB pattern repository.

Builds a PatternGraphClient from FalkorDBSettings. Returns None when the
FalkorDB backend is disabled (RB_FALKORDB_ENABLED=false).
"""

import logging

from ..config import settings
from .client import PatternGraphClient

logger = logging.getLogger(__name__)


async def create_graph_repository() -> PatternGraphClient | None:
    """
    Create and initialize the FalkorDB repository if enabled.

    Returns:
        Initialized PatternGraphClient if enabled, None otherwise.
    """
    config = settings.falkordb

    if not config.enabled:
        logger.info("FalkorDB repository disabled (RB_FALKORDB_ENABLED=false)")
        return None

    password = config.password.get_secret_value() if config.password else None

    client = PatternGraphClient(
        host=config.host,
        port=config.port,
        password=password,
        graph_name=config.graph_name,
        max_connections=config.max_connections,
    )

    await client.initialize()

    logger.info(f"Graph repository initialized: {config.host}:{config.port}/{config.graph_name}")
    return client

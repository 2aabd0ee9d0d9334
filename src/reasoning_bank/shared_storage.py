"""
Shared repository manager for the reasoning bank.

Provides a singleton pattern repository shared between the HTTP and MCP
servers, so both see the same connection pool and the same in-process
state when running in embedded mode.
"""

import asyncio
import logging
from threading import Lock
from typing import Optional

from .storage.base import PatternRepository
from .storage.factory import create_repository

logger = logging.getLogger(__name__)


class RepositoryManager:
    """Manages a singleton repository instance for shared access."""

    _instance: Optional["RepositoryManager"] = None
    _lock: Lock = Lock()

    def __init__(self):
        self._repository: PatternRepository | None = None
        self._initialization_lock: asyncio.Lock = asyncio.Lock()
        self._initialized: bool = False

    @classmethod
    def get_instance(cls) -> "RepositoryManager":
        """Get singleton instance of RepositoryManager (thread-safe)."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
                    logger.info("Created new RepositoryManager singleton instance")
        return cls._instance

    async def get_repository(self) -> PatternRepository:
        """Get or create the shared repository.

        Idempotent; concurrent callers share one initialization.
        """
        # Fast path - already initialized
        if self._initialized and self._repository is not None:
            return self._repository

        async with self._initialization_lock:
            # Double-check after acquiring lock
            if self._initialized and self._repository is not None:
                return self._repository

            logger.info("Initializing shared pattern repository...")
            self._repository = await create_repository()
            self._initialized = True
            logger.info(f"Shared repository initialized: {type(self._repository).__name__}")
            return self._repository

    async def close(self) -> None:
        """Close the managed repository. Safe to call if never initialized."""
        if self._repository is None:
            return
        try:
            logger.info("Closing shared pattern repository...")
            await self._repository.close()
        except Exception as e:
            logger.error(f"Error closing shared repository: {e}")
        finally:
            self._repository = None
            self._initialized = False

    def is_initialized(self) -> bool:
        return self._initialized and self._repository is not None


# Module-level convenience functions
_manager = RepositoryManager.get_instance()


async def get_shared_repository() -> PatternRepository:
    """Get the shared repository instance."""
    return await _manager.get_repository()


async def close_shared_repository() -> None:
    """Close the shared repository instance."""
    await _manager.close()


def is_repository_initialized() -> bool:
    """Check if the shared repository has been initialized."""
    return _manager.is_initialized()

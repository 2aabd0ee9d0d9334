"""
Unit tests for repository construction and the shared repository manager.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from reasoning_bank.config import FalkorDBSettings
from reasoning_bank.shared_storage import RepositoryManager
from reasoning_bank.storage.memory import InMemoryPatternRepository


class TestFactories:
    @pytest.mark.asyncio
    async def test_disabled_falkordb_falls_back_to_memory(self):
        from reasoning_bank.storage.factory import create_repository

        with patch("reasoning_bank.graph.factory.settings") as mock_settings:
            mock_settings.falkordb = FalkorDBSettings(enabled=False)
            repository = await create_repository()

        assert isinstance(repository, InMemoryPatternRepository)

    @pytest.mark.asyncio
    @patch("reasoning_bank.graph.factory.PatternGraphClient")
    async def test_enabled_falkordb_builds_client(self, mock_client_cls):
        from reasoning_bank.graph.factory import create_graph_repository

        client = MagicMock(initialize=AsyncMock())
        mock_client_cls.return_value = client

        with patch("reasoning_bank.graph.factory.settings") as mock_settings:
            mock_settings.falkordb = FalkorDBSettings(
                enabled=True, host="falkor", port=6380, password="s3cret", graph_name="rb_test"
            )
            result = await create_graph_repository()

        assert result is client
        client.initialize.assert_awaited_once()
        mock_client_cls.assert_called_once_with(
            host="falkor", port=6380, password="s3cret", graph_name="rb_test", max_connections=16
        )


class TestRepositoryManager:
    @pytest.mark.asyncio
    @patch("reasoning_bank.shared_storage.create_repository")
    async def test_repository_created_once(self, mock_create):
        repository = MagicMock(close=AsyncMock())
        mock_create.return_value = repository
        manager = RepositoryManager()

        assert manager.is_initialized() is False
        assert await manager.get_repository() is repository
        assert await manager.get_repository() is repository
        assert manager.is_initialized() is True
        mock_create.assert_awaited_once()

    @pytest.mark.asyncio
    @patch("reasoning_bank.shared_storage.create_repository")
    async def test_close_resets_even_when_close_fails(self, mock_create):
        repository = MagicMock(close=AsyncMock(side_effect=RuntimeError("pool gone")))
        mock_create.return_value = repository
        manager = RepositoryManager()
        await manager.get_repository()

        await manager.close()

        repository.close.assert_awaited_once()
        assert manager.is_initialized() is False

    @pytest.mark.asyncio
    async def test_close_without_repository_is_noop(self):
        await RepositoryManager().close()

    def test_singleton(self):
        assert RepositoryManager.get_instance() is RepositoryManager.get_instance()

"""
Integration tests for the MCP tools exercised through the FastMCP Client interface.

Tests the full pipeline: MCP tool → PatternAnalyticsService → InMemoryPatternRepository.
No external services required.
"""

import json

import pytest
from fastmcp import Client

from reasoning_bank.mcp_server import mcp

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_tool_result(result) -> dict | str:
    """Parse a FastMCP CallToolResult into a dict (JSON) or a raw string (plain text)."""
    text = result.content[0].text
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return text


def _patch_shared_storage(monkeypatch, repository):
    """Monkeypatch the shared_storage module so the mcp lifespan uses our test repository."""
    import reasoning_bank.shared_storage as shared_mod

    monkeypatch.setattr(shared_mod, "is_repository_initialized", lambda: True)

    async def _get_repository():
        return repository

    async def _close_repository():
        raise AssertionError("embedded lifespan must not close the shared repository")

    monkeypatch.setattr(shared_mod, "get_shared_repository", _get_repository)
    monkeypatch.setattr(shared_mod, "close_shared_repository", _close_repository)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def mcp_client(repository, monkeypatch):
    """FastMCP in-process client wired to the seeded in-memory repository."""
    _patch_shared_storage(monkeypatch, repository)
    async with Client(mcp) as client:
        yield client


async def call(client, tool: str, args: dict) -> dict:
    return parse_tool_result(await client.call_tool(tool, args))


async def test_tools_registered(mcp_client):
    names = {tool.name for tool in await mcp_client.list_tools()}
    assert names == {
        "partition_patterns",
        "detect_novelty",
        "rank_patterns",
        "fire_spike",
        "network_state",
        "detect_anomalies",
    }


# ---------------------------------------------------------------------------
# Graph analytics
# ---------------------------------------------------------------------------


class TestPartitionAndNovelty:
    async def test_partition_splits_on_cheap_cut(self, mcp_client):
        result = await call(mcp_client, "partition_patterns", {"domain": "finance", "min_cut_threshold": 10.0})
        assert result["success"] is True
        assert len(result["clusters"]) == 2
        assert sum(c["size"] for c in result["clusters"]) == 6

    async def test_partition_rejects_negative_threshold(self, mcp_client):
        result = await call(mcp_client, "partition_patterns", {"domain": "finance", "min_cut_threshold": -1.0})
        assert result["success"] is False

    async def test_novelty_after_partition(self, mcp_client, finance_patterns):
        await call(mcp_client, "partition_patterns", {"domain": "finance", "min_cut_threshold": 10.0})

        outlier = await call(mcp_client, "detect_novelty", {"domain": "finance", "pattern_id": "outlier"})
        assert outlier["success"] is True
        assert outlier["is_novel"] is True

        embedding = next(p.embedding for p in finance_patterns if p.id == "credit-a")
        candidate = await call(mcp_client, "detect_novelty", {"domain": "finance", "embedding": embedding})
        assert candidate["is_novel"] is False
        assert candidate["pattern_id"] == ""

    async def test_novelty_requires_exactly_one_subject(self, mcp_client):
        result = await call(mcp_client, "detect_novelty", {"domain": "finance"})
        assert result["success"] is False


class TestRankPatterns:
    async def test_rank_limit(self, mcp_client):
        result = await call(mcp_client, "rank_patterns", {"domain": "finance", "limit": 3})
        assert result["success"] is True
        assert result["total"] == 6
        assert len(result["rankings"]) == 3
        importances = [r["importance"] for r in result["rankings"]]
        assert importances == sorted(importances, reverse=True)

    async def test_rank_unknown_graph(self, mcp_client):
        result = await call(mcp_client, "rank_patterns", {"domain": "finance", "graph": "bogus"})
        assert result["success"] is False

    async def test_rank_empty_domain(self, mcp_client):
        result = await call(mcp_client, "rank_patterns", {"domain": "nowhere"})
        assert result == {"success": True, "domain": "nowhere", "total": 0, "rankings": []}


# ---------------------------------------------------------------------------
# Spiking network
# ---------------------------------------------------------------------------


class TestSpiking:
    async def test_fire_and_report(self, mcp_client):
        fired = await call(mcp_client, "fire_spike", {"pattern_id": "credit-a"})
        assert fired["success"] is True
        assert fired["events"][0]["fired_pattern"] == "credit-a"
        assert fired["events"][0]["did_fire"] is True

        state = await call(mcp_client, "network_state", {"domain": "finance"})
        assert state["total_neurons"] == 6
        assert state["recent_spikes"] == 1

    async def test_fire_unknown(self, mcp_client):
        result = await call(mcp_client, "fire_spike", {"pattern_id": "ghost"})
        assert result["success"] is False

    async def test_network_reset(self, mcp_client, repository):
        await repository.compare_and_set_potential("valuation-a", 0.0, 0.4)

        result = await call(mcp_client, "network_state", {"domain": "finance", "reset": True})

        assert result["reset_count"] == 1
        assert result["active_neurons"] == 0

    async def test_anomalies(self, mcp_client):
        await call(mcp_client, "fire_spike", {"pattern_id": "outlier"})

        flagged = await call(mcp_client, "detect_anomalies", {"domain": "finance"})
        assert flagged["total"] == 0

        everything = await call(mcp_client, "detect_anomalies", {"domain": "finance", "include_all": True})
        assert everything["total"] == 6
        assert everything["anomalies"][0]["pattern_id"] == "outlier"

    async def test_anomalies_window_validated(self, mcp_client):
        result = await call(mcp_client, "detect_anomalies", {"domain": "finance", "window_seconds": 0})
        assert result["success"] is False

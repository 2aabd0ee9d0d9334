"""
Integration tests for the HTTP API.

Drives every route through FastAPI's TestClient against an in-memory
repository seeded through the ingest endpoint.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from reasoning_bank.storage.base import PatternRepository, StoreUnavailableError
from reasoning_bank.storage.memory import InMemoryPatternRepository
from reasoning_bank.web import dependencies
from reasoning_bank.web.app import app


@pytest.fixture
def client(finance_patterns):
    dependencies.set_repository(InMemoryPatternRepository())
    with TestClient(app) as client:
        for pattern in finance_patterns:
            response = client.post("/api/patterns", json=pattern.model_dump())
            assert response.status_code == 200
        yield client
    dependencies.set_repository(None)


@pytest.fixture
def embeddings(finance_patterns):
    return {p.id: p.embedding for p in finance_patterns}


def test_routes_registered():
    paths = {route.path for route in app.routes}
    assert "/api/domains/{domain}/mincut" in paths
    assert "/api/patterns/{pattern_id}/spike" in paths
    assert "/api/health" in paths


def test_uninitialized_repository_returns_503():
    dependencies.set_repository(None)
    response = TestClient(app).get("/api/domains/finance/edges")
    assert response.status_code == 503


class TestHealth:
    def test_health(self, client):
        data = client.get("/api/health").json()
        assert data["status"] == "operational"
        assert data["repository"]["backend"] == "memory"
        assert data["repository"]["pattern_count"] == 6


class TestGraphRoutes:
    def test_edges(self, client):
        data = client.get("/api/domains/finance/edges", params={"threshold": 0.01}).json()
        assert data["total"] > 0
        assert all(edge["similarity"] >= 0.01 for edge in data["edges"])

    def test_edges_threshold_validated(self, client):
        assert client.get("/api/domains/finance/edges", params={"threshold": 2}).status_code == 422

    def test_mincut_covers_domain(self, client):
        data = client.get("/api/domains/finance/mincut").json()
        assert len(data["partition_a"]) + len(data["partition_b"]) == 6

    def test_partition_then_novelty(self, client, embeddings):
        response = client.post("/api/domains/finance/partition", json={"min_cut_threshold": 10.0})
        assert response.status_code == 200
        assert response.json()["total_clusters"] == 2

        outlier = client.get("/api/domains/finance/patterns/outlier/novelty").json()
        assert outlier["is_novel"] is True

        candidate = client.post(
            "/api/domains/finance/novelty", json={"embedding": embeddings["valuation-b"]}
        ).json()
        assert candidate["is_novel"] is False

    def test_partition_without_body_uses_defaults(self, client):
        assert client.post("/api/domains/finance/partition").status_code == 200

    def test_pagerank(self, client):
        data = client.get("/api/domains/finance/pagerank").json()
        assert len(data["rankings"]) == 6
        assert sum(r["importance"] for r in data["rankings"]) == pytest.approx(1.0)

    @pytest.mark.parametrize("params", [{"graph": "bogus"}, {"damping": 1.0}])
    def test_pagerank_validation(self, client, params):
        assert client.get("/api/domains/finance/pagerank", params=params).status_code == 422

    def test_links_rebuild(self, client):
        data = client.post("/api/domains/finance/links/rebuild").json()
        assert data == {"success": True, "domain": "finance", "links_written": 8}

    def test_trajectory_ingest_drives_links(self, client):
        response = client.post(
            "/api/trajectories",
            json={"id": "t1", "domain": "finance", "pattern_ids": ["credit-b", "valuation-c"], "successful": True},
        )
        assert response.status_code == 200
        assert client.post("/api/domains/finance/links/rebuild").json()["links_written"] == 1
        ranked = client.get("/api/domains/finance/pagerank", params={"graph": "links"}).json()["rankings"]
        assert ranked[0]["pattern_id"] == "valuation-c"


class TestSpikingRoutes:
    def test_spike_reset_cycle(self, client):
        client.post("/api/domains/finance/links/rebuild")

        spike = client.post("/api/patterns/valuation-a/spike").json()
        assert spike["events"][0]["fired_pattern"] == "valuation-a"
        assert {e["fired_pattern"] for e in spike["events"][1:]} == {"valuation-b", "valuation-c"}

        state = client.get("/api/domains/finance/network").json()
        assert state["active_neurons"] == 2
        assert state["recent_spikes"] == 1

        reset = client.post("/api/domains/finance/network/reset").json()
        assert reset["reset_count"] == 2
        after = client.get("/api/domains/finance/network").json()
        assert after["active_neurons"] == 0
        assert after["avg_potential"] == 0.0

    def test_spike_unknown_pattern(self, client):
        assert client.post("/api/patterns/ghost/spike").status_code == 404

    def test_anomalies(self, client):
        client.post("/api/patterns/outlier/spike")
        assert client.get("/api/domains/finance/anomalies").json()["total"] == 0
        everything = client.get("/api/domains/finance/anomalies", params={"include_all": True}).json()
        assert everything["total"] == 6

    def test_anomalies_window_validated(self, client):
        assert client.get("/api/domains/finance/anomalies", params={"window_seconds": 0}).status_code == 422

    def test_attention(self, client, embeddings):
        data = client.post(
            "/api/domains/finance/attention", json={"query_embedding": embeddings["credit-a"], "limit": 3}
        ).json()
        assert len(data["weights"]) == 3
        assert data["weights"][0]["pattern_id"] == "credit-a"

    def test_attention_empty_query(self, client):
        response = client.post("/api/domains/finance/attention", json={"query_embedding": []})
        assert response.status_code == 400


class TestStorageFailures:
    @pytest.fixture
    def failing_client(self):
        repo = AsyncMock(spec=PatternRepository)
        repo.list_patterns.side_effect = StoreUnavailableError("down")
        repo.reset_potentials.side_effect = StoreUnavailableError("down")
        dependencies.set_repository(repo)
        yield TestClient(app)
        dependencies.set_repository(None)

    def test_maintenance_write_returns_500(self, failing_client):
        response = failing_client.post("/api/domains/finance/partition")
        assert response.status_code == 500
        assert "down" in response.json()["detail"]
        assert failing_client.post("/api/domains/finance/network/reset").status_code == 500

    def test_reads_degrade(self, failing_client):
        data = failing_client.get("/api/domains/finance/edges").json()
        assert data["total"] == 0
        assert failing_client.get("/api/domains/finance/network").json()["total_neurons"] == 0

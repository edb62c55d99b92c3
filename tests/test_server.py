"""Unit tests for isomatch.server module."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from isomatch import server


@pytest.fixture
def client(graph, monkeypatch):
    """Test client with the fixture graph installed (lifespan not run)."""
    monkeypatch.setattr(server, "GRAPH", graph)
    return TestClient(server.APP)


class TestSyncMatch:
    """Tests for POST /match."""

    def test_cycle_query(self, client, cycle_query):
        res = client.post("/match", json=cycle_query)
        assert res.status_code == 200
        body = res.json()
        assert [r["node_bindings"] for r in body["results"]] == [
            {"a": "v0", "b": "v2", "c": "v4"},
            {"a": "v5", "b": "v3", "c": "v6"},
        ]
        assert body["mappings"]["a"] == ["v0", "v5"]

    def test_enriched_by_default(self, client, cycle_query):
        body = client.post("/match", json=cycle_query).json()
        assert body["knowledge_graph"]["nodes"]["v0"]["name"] == "alpha"

    def test_enrich_disabled(self, client, cycle_query):
        body = client.post("/match", json={**cycle_query, "enrich": False}).json()
        assert body["knowledge_graph"]["nodes"]["v0"] == {"label": "A"}

    def test_limit(self, client, cycle_query):
        body = client.post("/match", json={**cycle_query, "limit": 1}).json()
        assert len(body["results"]) == 1

    @pytest.mark.parametrize("limit", [-3, 0, "ten", 1.5, True, None])
    def test_bad_limit(self, client, cycle_query, limit):
        res = client.post("/match", json={**cycle_query, "limit": limit})
        assert res.status_code == 400

    def test_default_limit_when_absent(self, client, cycle_query):
        body = client.post("/match", json=cycle_query).json()
        assert len(body["results"]) == 2

    def test_undirected(self, client, cycle_query):
        body = client.post("/match", json={**cycle_query, "undirected": True}).json()
        assert body["results"] == []

    def test_missing_query_graph(self, client):
        res = client.post("/match", json={"nodes": {}})
        assert res.status_code == 400
        assert "query_graph" in res.json()["detail"]

    def test_unknown_query_node(self, client):
        query = {
            "query_graph": {
                "nodes": {"a": {"label": "A"}},
                "edges": {"e": {"subject": "a", "object": "zzz"}},
            }
        }
        res = client.post("/match", json=query)
        assert res.status_code == 400

    def test_graph_not_loaded(self, monkeypatch, cycle_query):
        monkeypatch.setattr(server, "GRAPH", None)
        res = TestClient(server.APP).post("/match", json=cycle_query)
        assert res.status_code == 503


class TestAsyncMatch:
    """Tests for POST /asyncmatch and the callback task."""

    def test_accepted(self, client, cycle_query, monkeypatch):
        calls = []
        monkeypatch.setattr(
            server, "async_match", lambda url, request: calls.append((url, request))
        )
        request = {**cycle_query, "callback": "http://callback.test/results"}

        res = client.post("/asyncmatch", json=request)

        assert res.status_code == 200
        assert res.json() == {"status": "accepted"}
        assert calls == [("http://callback.test/results", request)]

    def test_callback_required(self, client, cycle_query):
        res = client.post("/asyncmatch", json=cycle_query)
        assert res.status_code == 400

    def test_query_graph_required(self, client):
        res = client.post("/asyncmatch", json={"callback": "http://callback.test"})
        assert res.status_code == 400

    def test_posts_response_to_callback(self, graph, cycle_query, monkeypatch):
        posted = []

        def handler(request):
            posted.append(request)
            return httpx.Response(200)

        real_client = httpx.Client
        monkeypatch.setattr(server, "GRAPH", graph)
        monkeypatch.setattr(
            server.httpx,
            "Client",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler)),
        )

        server.async_match("http://callback.test/results", cycle_query)

        assert len(posted) == 1
        assert str(posted[0].url) == "http://callback.test/results"
        body = json.loads(posted[0].content)
        assert len(body["results"]) == 2

    def test_error_is_posted(self, cycle_query, monkeypatch):
        posted = []

        def handler(request):
            posted.append(request)
            return httpx.Response(200)

        real_client = httpx.Client
        monkeypatch.setattr(server, "GRAPH", None)
        monkeypatch.setattr(
            server.httpx,
            "Client",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler)),
        )

        server.async_match("http://callback.test/results", cycle_query)

        body = json.loads(posted[0].content)
        assert body["status_code"] == 503

    def test_callback_failure_logged(self, graph, cycle_query, monkeypatch, caplog):
        real_client = httpx.Client
        monkeypatch.setattr(server, "GRAPH", graph)
        monkeypatch.setattr(
            server.httpx,
            "Client",
            lambda **kwargs: real_client(
                transport=httpx.MockTransport(lambda request: httpx.Response(500))
            ),
        )

        server.async_match("http://callback.test/results", cycle_query)

        assert "Callback to http://callback.test/results failed" in caplog.text


class TestLoadGraph:
    """Tests for graph format detection."""

    def test_mmap_directory(self, graph, tmp_path):
        graph.save_mmap(tmp_path / "g")
        loaded = server.load_graph(str(tmp_path / "g"))
        assert loaded.num_nodes == graph.num_nodes
        assert loaded.lmdb_store is not None

    def test_pickle_file(self, graph, tmp_path):
        graph.save(tmp_path / "g.pkl")
        loaded = server.load_graph(str(tmp_path / "g.pkl"))
        assert loaded.num_edges == graph.num_edges

    def test_explicit_format(self, graph, tmp_path):
        graph.save(tmp_path / "graph.bin")
        loaded = server.load_graph(str(tmp_path / "graph.bin"), format="pickle")
        assert loaded.num_nodes == graph.num_nodes

    def test_undetectable_format(self, tmp_path):
        with pytest.raises(ValueError, match="auto-detect"):
            server.load_graph(str(tmp_path / "graph.bin"))

    def test_unknown_format(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown format"):
            server.load_graph(str(tmp_path), format="csv")

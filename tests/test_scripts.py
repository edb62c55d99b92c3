"""Smoke tests for the command-line tools in scripts/."""

import json
import sys

import pytest

from conftest import CYCLE_QUERY_FILE, EDGES_FILE, NODES_FILE
from isomatch.graph import LabeledGraph
from scripts import build_graph, diagnose, match_query


def _run(monkeypatch, module, argv):
    monkeypatch.setattr(sys, "argv", argv)
    module.main()


class TestBuildGraph:
    def test_build_mmap(self, tmp_path, monkeypatch, capsys):
        out = tmp_path / "graph_mmap"
        _run(monkeypatch, build_graph, [
            "isomatch-build", "--nodes", NODES_FILE, "--edges", EDGES_FILE,
            "--output", str(out), "--quiet",
        ])
        assert "Edges: 9" in capsys.readouterr().out
        g = LabeledGraph.load_mmap(out)
        assert g.get_node_properties(g.get_node_idx("v2")) == {"name": "gamma"}

    def test_build_pickle_undirected(self, tmp_path, monkeypatch):
        out = tmp_path / "sub" / "graph.pkl"
        _run(monkeypatch, build_graph, [
            "isomatch-build", "--nodes", NODES_FILE, "--edges", EDGES_FILE,
            "--output", str(out), "--undirected", "--quiet",
        ])
        assert LabeledGraph.load(out).num_edges == 18

    def test_missing_nodes_file(self, tmp_path, monkeypatch):
        with pytest.raises(SystemExit):
            _run(monkeypatch, build_graph, [
                "isomatch-build", "--nodes", str(tmp_path / "none.jsonl"),
                "--output", str(tmp_path / "g"),
            ])


class TestMatchQuery:
    @pytest.fixture
    def graph_dir(self, graph, tmp_path):
        graph.save_mmap(tmp_path / "graph_mmap")
        return tmp_path / "graph_mmap"

    def test_writes_output(self, graph_dir, tmp_path, monkeypatch):
        out = tmp_path / "results.json"
        _run(monkeypatch, match_query, [
            "isomatch-query", "--graph", str(graph_dir), "--query", CYCLE_QUERY_FILE,
            "--output", str(out), "--enrich", "--quiet",
        ])
        with open(out, "r", encoding="utf-8") as f:
            response = json.load(f)
        assert len(response["results"]) == 2
        assert response["knowledge_graph"]["nodes"]["v4"]["name"] == "epsilon"
        assert "elapsed_seconds" in response

    def test_prints_bindings(self, graph_dir, monkeypatch, capsys):
        _run(monkeypatch, match_query, [
            "isomatch-query", "--graph", str(graph_dir), "--query", CYCLE_QUERY_FILE,
        ])
        out = capsys.readouterr().out
        assert "a=v0, b=v2, c=v4" in out
        assert "Found 2 embeddings" in out

    def test_invalid_query(self, graph_dir, tmp_path, monkeypatch, capsys):
        query = tmp_path / "bad.json"
        query.write_text(json.dumps({"nodes": {}}))
        with pytest.raises(SystemExit):
            _run(monkeypatch, match_query, [
                "isomatch-query", "--graph", str(graph_dir), "--query", str(query),
            ])
        assert "invalid query" in capsys.readouterr().err


class TestDiagnose:
    def test_report(self, graph, tmp_path, monkeypatch, capsys):
        graph.save(tmp_path / "graph.pkl")
        _run(monkeypatch, diagnose, [
            "isomatch-diagnose", "--graph", str(tmp_path / "graph.pkl"),
            "--query", CYCLE_QUERY_FILE,
        ])
        out = capsys.readouterr().out
        assert "SEARCH SPACE DIAGNOSIS" in out
        assert "LABEL ANALYSIS" in out
        assert "Small search space" in out

    @pytest.mark.parametrize("content", ["[1, 2]", "42"])
    def test_non_object_query_file(self, graph, tmp_path, monkeypatch, capsys, content):
        graph.save(tmp_path / "graph.pkl")
        query = tmp_path / "bad.json"
        query.write_text(content)
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, diagnose, [
                "isomatch-diagnose", "--graph", str(tmp_path / "graph.pkl"),
                "--query", str(query),
            ])
        assert exc.value.code == 1
        assert "Error loading inputs" in capsys.readouterr().err

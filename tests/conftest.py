"""Pytest fixtures shared across all test modules."""

import json
import os

import pytest

from isomatch.graph import LabeledGraph
from isomatch.loader import build_graph_from_jsonl


FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")
NODES_FILE = os.path.join(FIXTURES_DIR, "nodes.jsonl")
EDGES_FILE = os.path.join(FIXTURES_DIR, "edges.jsonl")
CYCLE_QUERY_FILE = os.path.join(FIXTURES_DIR, "cycle_query.json")


@pytest.fixture
def graph():
    """Build the labeled fixture graph (8 nodes, 3 labels, directed)."""
    return build_graph_from_jsonl(NODES_FILE, EDGES_FILE)


@pytest.fixture
def cycle_query():
    """Query for a directed A -> B -> C -> A cycle."""
    with open(CYCLE_QUERY_FILE, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def make_graph():
    """Factory for small in-memory graphs: make_graph(labels, edges, undirected)."""

    def _make(labels, edges, undirected=False):
        edges = list(edges)
        if undirected:
            edges = edges + [(d, s) for s, d in edges]
        return LabeledGraph(len(labels), edges, labels)

    return _make


@pytest.fixture
def diamond_edges():
    """4-cycle 0-1-2-3 plus the 0-2 diagonal."""
    return [(0, 1), (1, 2), (2, 3), (3, 0), (0, 2)]


@pytest.fixture
def triangle_edges():
    """Directed 3-cycle a -> b -> c -> a."""
    return [(0, 1), (1, 2), (2, 0)]

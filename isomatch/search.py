"""Ullmann-style subgraph isomorphism search."""

import logging
import os
from typing import FrozenSet, Optional, Set, Tuple

from isomatch.graph import LabeledGraph
from isomatch.graph_sim import DualSimulation, Mapping
from isomatch.loader import build_query_graph
from isomatch.query_planner import make_order

logger = logging.getLogger(__name__)

# Stop collecting once this many matches are found
LIMIT = int(os.environ.get("ISOMATCH_LIMIT", 1_000_000))
# Log progress every CHECK matches
CHECK = int(os.environ.get("ISOMATCH_CHECK", 1_000))

Bijection = Tuple[int, ...]


class UllmannIso:
    """
    Subgraph isomorphism of query graph ``q`` in data graph ``g`` using
    Ullmann's backtracking over adjacency sets, pruned by dual simulation.

    Query vertices are assigned one at a time in a static degree order.
    After each tentative assignment the candidate mapping is refined by
    dual simulation; branches whose mapping becomes infeasible are dropped.

    The search stops silently once ``limit`` matches are collected, so with
    a limit below the true match count ``bijections()`` is incomplete.
    """

    def __init__(self, g: LabeledGraph, q: LabeledGraph, limit: int = LIMIT, check: int = CHECK):
        if check < 1:
            raise ValueError(f"check must be positive, got {check}")
        self.g = g
        self.q = q
        self.limit = limit
        self.check = check
        self.sims = DualSimulation(g, q)
        self._bijections: Optional[FrozenSet[Bijection]] = None

    def bijections(self) -> FrozenSet[Bijection]:
        """All injective, label and edge preserving maps from q into g.

        Each bijection is a tuple indexed by query vertex. The search runs
        on the first call only; later calls return the cached result.
        """
        if self._bijections is None:
            matches: Set[Mapping] = set()
            phi = self.sims.refine(self.sims.feasible_mates())
            self._search(phi, make_order(self.q), 0, matches)
            if len(matches) >= self.limit:
                logger.warning(
                    "Stopped after %d matches; results may be incomplete", len(matches)
                )
            self._bijections = frozenset(
                tuple(next(iter(candidates)) for candidates in phi) for phi in matches
            )
        return self._bijections

    def mappings(self) -> Tuple[FrozenSet[int], ...]:
        """Merge all bijections into one multi-valued mapping.

        Entry u is the set of data vertices that u maps to in any bijection.
        """
        merged = [set() for _ in range(self.q.num_nodes)]
        for psi in self.bijections():
            for u, v in enumerate(psi):
                merged[u].add(v)
        return tuple(frozenset(vs) for vs in merged)

    def _search(self, phi: Optional[Mapping], order, depth: int, matches: Set[Mapping]):
        """Extend ``phi`` by fixing the query vertex at ``order[depth]``.

        Every entry fixed at a shallower depth is a singleton. Refinement
        returns a new mapping, so the ``phi`` held by this frame is never
        changed by the recursive calls it makes.
        """
        if phi is None:
            return
        if depth == self.q.num_nodes:
            matches.add(phi)
            if len(matches) % self.check == 0:
                logger.info("ullmann_iso: matches so far = %d", len(matches))
            return

        u = order[depth]
        for i in sorted(phi[u]):
            if self._used(phi, i, order, depth):
                continue
            phi_copy = phi[:u] + (frozenset((i,)),) + phi[u + 1:]
            if len(matches) >= self.limit:
                return
            self._search(self.sims.refine(phi_copy), order, depth + 1, matches)

    @staticmethod
    def _used(phi: Mapping, j: int, order, depth: int) -> bool:
        """Is data vertex j already assigned at a previous depth?"""
        for k in range(depth):
            if j in phi[order[k]]:
                return True
        return False


def lookup(graph: LabeledGraph, query: dict, limit: int = LIMIT, undirected: bool = False):
    """Find all embeddings of a JSON query graph in ``graph``.

    Args:
        graph: Data graph.
        query: ``{"query_graph": {"nodes": {...}, "edges": {...}}}``; see
            ``build_query_graph`` for the query graph format.
        limit: Maximum number of embeddings to collect.
        undirected: Treat every query edge as going both ways.

    Returns:
        Response dict with ``results`` (one ``node_bindings`` dict per
        embedding, in ascending bijection order), the merged ``mappings``
        per query node, and the bound data nodes in ``knowledge_graph``.

    Raises:
        ValueError: if the query is malformed.
    """
    if not isinstance(query, dict) or "query_graph" not in query:
        raise ValueError("query must contain a 'query_graph'")
    query_graph = query["query_graph"]
    q = build_query_graph(query_graph, undirected=undirected)
    qnode_ids = [q.get_node_id(u) for u in range(q.num_nodes)]

    matcher = UllmannIso(graph, q, limit=limit)
    bijections = sorted(matcher.bijections())
    mappings = matcher.mappings()

    bound = sorted({v for psi in bijections for v in psi})
    kg_nodes = {
        graph.get_node_id(v): {"label": graph.label(v)} for v in bound
    }
    results = [
        {
            "node_bindings": {
                qnode_id: graph.get_node_id(v) for qnode_id, v in zip(qnode_ids, psi)
            }
        }
        for psi in bijections
    ]

    return {
        "query_graph": query_graph,
        "knowledge_graph": {"nodes": kg_nodes},
        "results": results,
        "mappings": {
            qnode_id: sorted(graph.get_node_id(v) for v in vs)
            for qnode_id, vs in zip(qnode_ids, mappings)
        },
    }

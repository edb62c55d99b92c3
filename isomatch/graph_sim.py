"""Dual simulation: the pruning oracle behind subgraph isomorphism search.

A candidate mapping ``phi`` is a tuple indexed by query vertex whose entries
are frozensets of data vertices. Entries are never edited in place: every
refinement step builds a new tuple, and unchanged entries are shared between
the old and new mapping. Because frozensets are immutable this sharing is
what keeps sibling search branches from observing each other's pruning.
"""

from typing import Optional, Tuple, FrozenSet

from isomatch.graph import LabeledGraph

Mapping = Tuple[FrozenSet[int], ...]


class DualSimulation:
    """Label and structure consistency checks of query graph ``q`` in ``g``."""

    def __init__(self, g: LabeledGraph, q: LabeledGraph):
        self.g = g
        self.q = q

    def feasible_mates(self) -> Mapping:
        """For every query vertex, the data vertices that share its label.

        An empty entry is legal; it makes the mapping infeasible.
        """
        return tuple(
            self.g.vertices_with_label(self.q.label(u)) for u in range(self.q.num_nodes)
        )

    def _supported(self, v, u, phi):
        """Does data vertex v keep a match for every edge touching query vertex u?"""
        g_adj = self.g.adj(v)
        for u_child in self.q.adj(u):
            if g_adj.isdisjoint(phi[u_child]):
                return False
        g_parents = self.g.parents(v)
        for u_parent in self.q.parents(u):
            if g_parents.isdisjoint(phi[u_parent]):
                return False
        return True

    def refine(self, phi: Mapping) -> Optional[Mapping]:
        """Shrink ``phi`` to the greatest dual simulation it contains.

        A data vertex v stays in phi[u] only if for every query edge u -> u'
        it has a successor in phi[u'], and for every query edge u' -> u it
        has a predecessor in phi[u']. Iterates to the fixpoint.

        Returns:
            The refined mapping, or None as soon as any entry is empty.
        """
        if any(not candidates for candidates in phi):
            return None

        phi = list(phi)
        changed = True
        while changed:
            changed = False
            for u in range(self.q.num_nodes):
                if not self.q.adj(u) and not self.q.parents(u):
                    continue
                kept = frozenset(v for v in phi[u] if self._supported(v, u, phi))
                if len(kept) < len(phi[u]):
                    if not kept:
                        return None
                    phi[u] = kept
                    changed = True
        return tuple(phi)

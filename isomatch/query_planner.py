"""Static search order over query vertices."""

from isomatch.graph import LabeledGraph


def make_order(q: LabeledGraph):
    """Order query vertices from largest to smallest out-adjacency set.

    Ties keep ascending vertex index (``sorted`` is stable), so the order
    is a pure function of the query graph.
    """
    return sorted(range(q.num_nodes), key=lambda u: -q.degree(u))

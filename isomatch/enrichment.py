"""Enrich a match response with stored node attributes.

``lookup()`` only reports the label of every bound data node.
``enrich_knowledge_graph()`` takes the response **and** the backing
``LabeledGraph`` and attaches every attribute kept in the graph's LMDB
cold-path store.
"""

from __future__ import annotations

from isomatch.graph import LabeledGraph


def enrich_knowledge_graph(response: dict, graph: LabeledGraph) -> dict:
    """Attach stored attributes to every knowledge-graph node.

    The function mutates *response* in place **and** returns it for
    convenience. Fields already present on a node are left untouched.

    Args:
        response: A ``lookup()`` response containing at least
            ``response["knowledge_graph"]["nodes"]``.
        graph: The :class:`LabeledGraph` the response was computed on.

    Returns:
        The same *response* dict, now enriched.
    """
    nodes = response.get("knowledge_graph", {}).get("nodes", {})
    if not nodes or graph.lmdb_store is None:
        return response

    idx_by_node_id = {}
    for node_id in nodes:
        node_idx = graph.get_node_idx(node_id)
        if node_idx is None:
            # Not a vertex of this graph; leave as-is
            continue
        idx_by_node_id[node_id] = node_idx

    stored = graph.lmdb_store.get_batch(idx_by_node_id.values())

    for node_id, node_idx in idx_by_node_id.items():
        node = nodes[node_id]
        for key, value in stored.get(node_idx, {}).items():
            if key not in node:
                node[key] = value

    return response

"""Load data graphs from JSONL and query graphs from JSON dicts.

Streaming data-graph loader:

Pass 1: Stream the nodes JSONL, collecting ids and labels. Attributes other
        than id and label are written to a temporary LMDB keyed by line.
Pass 2: Stream the edges JSONL once to count edges, then again to fill
        pre-allocated numpy index arrays.
Pass 3: Sort vertices by id, remap edge endpoints, build forward and reverse
        CSR arrays, and rewrite the temporary LMDB in vertex-index order so
        that the final store key == vertex index.
"""

import json
import logging
import shutil
import tempfile
from pathlib import Path

import lmdb
import msgpack
import numpy as np

from isomatch.graph import LabeledGraph, build_csr
from isomatch.lmdb_store import LMDBPropertyStore, _DEFAULT_MAP_SIZE, _encode_key

logger = logging.getLogger(__name__)

# Fields that are structural (not stored as attributes)
_CORE_FIELDS = {"id", "label"}


def _read_nodes(node_jsonl_path, temp_lmdb_path):
    """Pass 1: collect node ids and labels, spill attributes to temp LMDB."""
    node_ids = []
    labels = []
    seen = set()

    env = lmdb.open(
        str(temp_lmdb_path),
        map_size=_DEFAULT_MAP_SIZE,
        readonly=False,
        max_dbs=0,
        readahead=False,
    )
    txn = env.begin(write=True)
    try:
        with open(node_jsonl_path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                data = json.loads(line)
                if not isinstance(data, dict):
                    raise ValueError(
                        f"{node_jsonl_path}:{line_no}: node record must be a JSON object"
                    )
                node_id = data.get("id")
                label = data.get("label")
                if node_id is None or label is None:
                    raise ValueError(
                        f"{node_jsonl_path}:{line_no}: node record needs 'id' and 'label'"
                    )
                if node_id in seen:
                    raise ValueError(
                        f"{node_jsonl_path}:{line_no}: duplicate node id {node_id!r}"
                    )
                seen.add(node_id)

                attributes = {
                    k: v for k, v in data.items() if k not in _CORE_FIELDS
                }
                if attributes:
                    txn.put(
                        _encode_key(len(node_ids)),
                        msgpack.packb(attributes, use_bin_type=True),
                    )

                node_ids.append(node_id)
                labels.append(str(label))

                if len(node_ids) % 50_000 == 0:
                    txn.commit()
                    txn = env.begin(write=True)
        txn.commit()
    except BaseException:
        txn.abort()
        raise
    finally:
        env.close()

    return node_ids, labels


def _read_edges(edge_jsonl_path, line_to_node, node_id_to_line):
    """Pass 2: count edges, then fill (src, dst) arrays of node line indices."""
    edge_count = 0
    with open(edge_jsonl_path, "r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                edge_count += 1

    src = np.empty(edge_count, dtype=np.int32)
    dst = np.empty(edge_count, dtype=np.int32)

    i = 0
    with open(edge_jsonl_path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            data = json.loads(line)
            if not isinstance(data, dict):
                raise ValueError(
                    f"{edge_jsonl_path}:{line_no}: edge record must be a JSON object"
                )
            try:
                src[i] = line_to_node[node_id_to_line[data["subject"]]]
                dst[i] = line_to_node[node_id_to_line[data["object"]]]
            except (KeyError, TypeError) as e:
                raise ValueError(
                    f"{edge_jsonl_path}:{line_no}: unknown node or missing field {e}"
                ) from e
            i += 1

            if i % 1_000_000 == 0:
                logger.info("  %s/%s edges processed...", f"{i:,}", f"{edge_count:,}")

    return src, dst


def build_graph_from_jsonl(node_jsonl_path, edge_jsonl_path=None, undirected=False):
    """Build a labeled CSR graph from JSONL files.

    Args:
        node_jsonl_path: One JSON object per line with ``id`` and ``label``;
            any other fields are kept as node attributes in LMDB.
        edge_jsonl_path: One JSON object per line with ``subject`` and
            ``object`` node ids; other fields are ignored. Optional.
        undirected: Store every edge in both directions.

    Returns:
        LabeledGraph whose ``lmdb_store`` holds the node attributes.
    """
    temp_dir = tempfile.mkdtemp(prefix="isomatch_build_")
    try:
        return _build_in(temp_dir, str(node_jsonl_path), edge_jsonl_path, undirected)
    except BaseException:
        # The final store lives in temp_dir, so it is only removed on failure
        shutil.rmtree(temp_dir, ignore_errors=True)
        raise


def _build_in(temp_dir, node_jsonl_path, edge_jsonl_path, undirected):
    temp_lmdb_path = Path(temp_dir) / "temp_props.lmdb"
    temp_lmdb_path.mkdir(parents=True, exist_ok=True)

    # =================================================================
    # Pass 1: Nodes
    # =================================================================
    logger.info("Pass 1: Reading nodes from %s...", node_jsonl_path)
    node_ids, labels = _read_nodes(node_jsonl_path, temp_lmdb_path)
    num_nodes = len(node_ids)
    logger.info("  Found %s nodes, %s labels", f"{num_nodes:,}", f"{len(set(labels)):,}")

    # Vertex index order is sorted node id order
    sort_permutation = sorted(range(num_nodes), key=lambda line: node_ids[line])
    line_to_node = np.empty(num_nodes, dtype=np.int32)
    line_to_node[np.asarray(sort_permutation, dtype=np.int64)] = np.arange(
        num_nodes, dtype=np.int32
    )
    node_id_to_line = {nid: line for line, nid in enumerate(node_ids)}

    # =================================================================
    # Pass 2: Edges
    # =================================================================
    if edge_jsonl_path is not None:
        logger.info("Pass 2: Reading edges from %s...", edge_jsonl_path)
        src, dst = _read_edges(str(edge_jsonl_path), line_to_node, node_id_to_line)
    else:
        src = np.empty(0, dtype=np.int32)
        dst = np.empty(0, dtype=np.int32)
    if undirected:
        src, dst = np.concatenate([src, dst]), np.concatenate([dst, src])

    # =================================================================
    # Pass 3: Sort, build CSR, rewrite LMDB
    # =================================================================
    logger.info("Pass 3: Building CSR structure...")
    fwd_offsets, fwd_targets, rev_offsets, rev_sources = build_csr(num_nodes, src, dst)
    del src, dst

    sorted_ids = [node_ids[line] for line in sort_permutation]
    sorted_labels = [labels[line] for line in sort_permutation]
    idx_to_label = dict(enumerate(sorted(set(labels))))
    label_to_idx = {label: idx for idx, label in idx_to_label.items()}
    node_labels = np.array(
        [label_to_idx[label] for label in sorted_labels], dtype=np.int32
    )

    final_lmdb_path = Path(temp_dir) / "node_properties.lmdb"
    lmdb_store = LMDBPropertyStore.build_sorted(
        db_path=final_lmdb_path,
        temp_db_path=temp_lmdb_path,
        sort_permutation=sort_permutation,
    )
    shutil.rmtree(temp_lmdb_path)

    graph = LabeledGraph.from_arrays(
        node_ids=sorted_ids,
        idx_to_label=idx_to_label,
        node_labels=node_labels,
        fwd_offsets=fwd_offsets,
        fwd_targets=fwd_targets,
        rev_offsets=rev_offsets,
        rev_sources=rev_sources,
        lmdb_store=lmdb_store,
    )

    logger.info(
        "Graph built: %s nodes, %s edges, %s labels",
        f"{graph.num_nodes:,}",
        f"{graph.num_edges:,}",
        f"{len(idx_to_label):,}",
    )
    return graph


def build_query_graph(query_graph, undirected=False):
    """Build a small LabeledGraph from a query graph dict.

    Format::

        {
            "nodes": {"a": {"label": "C"}, "b": {"label": "O"}},
            "edges": {"e0": {"subject": "a", "object": "b"}},
        }

    Query vertex indices follow sorted query node id order.

    Raises:
        ValueError: if the query graph is malformed.
    """
    if not isinstance(query_graph, dict):
        raise ValueError("query_graph must be an object")
    nodes = query_graph.get("nodes") or {}
    edges = query_graph.get("edges") or {}
    if not isinstance(nodes, dict):
        raise ValueError("query_graph.nodes must be an object")
    if not isinstance(edges, dict):
        raise ValueError("query_graph.edges must be an object")

    node_ids = sorted(nodes)
    node_id_to_idx = {nid: idx for idx, nid in enumerate(node_ids)}

    labels = []
    for nid in node_ids:
        qnode = nodes[nid]
        if not isinstance(qnode, dict) or qnode.get("label") is None:
            raise ValueError(f"query node {nid!r} must have a 'label'")
        labels.append(str(qnode["label"]))

    edge_list = []
    for eid, qedge in edges.items():
        if not isinstance(qedge, dict):
            raise ValueError(f"query edge {eid!r} must be an object")
        subject = qedge.get("subject")
        obj = qedge.get("object")
        if subject not in node_id_to_idx or obj not in node_id_to_idx:
            raise ValueError(
                f"query edge {eid!r} must connect known query nodes, "
                f"got {subject!r} -> {obj!r}"
            )
        edge_list.append((node_id_to_idx[subject], node_id_to_idx[obj]))
        if undirected:
            edge_list.append((node_id_to_idx[obj], node_id_to_idx[subject]))

    return LabeledGraph(len(node_ids), edge_list, labels, node_ids=node_ids)

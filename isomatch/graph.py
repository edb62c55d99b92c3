"""Immutable vertex-labeled CSR graph."""

import logging
import pickle
import shutil
import time
from pathlib import Path
from typing import Optional, Union

import numpy as np

from isomatch.lmdb_store import LMDBPropertyStore

logger = logging.getLogger(__name__)

_EMPTY = frozenset()


def build_csr(num_nodes, src, dst):
    """Build forward and reverse CSR arrays from parallel edge arrays.

    Duplicate (src, dst) pairs are collapsed so that each vertex's
    successors form a set.

    Returns:
        (fwd_offsets, fwd_targets, rev_offsets, rev_sources)
    """
    src = np.asarray(src, dtype=np.int32)
    dst = np.asarray(dst, dtype=np.int32)

    if len(src):
        # Sort by (src, dst) using lexsort (last key is primary)
        order = np.lexsort((dst, src))
        src = src[order]
        dst = dst[order]
        keep = np.ones(len(src), dtype=bool)
        keep[1:] = (src[1:] != src[:-1]) | (dst[1:] != dst[:-1])
        src = src[keep]
        dst = dst[keep]

    fwd_offsets = np.searchsorted(src, np.arange(num_nodes + 1)).astype(np.int64)
    fwd_targets = dst

    # Reverse CSR: sort by (dst, src)
    rev_order = np.lexsort((src, dst))
    rev_dst = dst[rev_order]
    rev_sources = src[rev_order]
    rev_offsets = np.searchsorted(rev_dst, np.arange(num_nodes + 1)).astype(np.int64)

    return fwd_offsets, fwd_targets, rev_offsets, rev_sources


class LabeledGraph:
    """
    Compressed Sparse Row graph with one label per vertex.

    Maintains two CSR structures:
    - Forward: vertex -> successors (who does this vertex point to?)
    - Reverse: vertex -> predecessors (who points to this vertex?)

    Labels are interned: ``node_labels[v]`` is an index into
    ``idx_to_label``. Node attributes beyond the label live in an optional
    disk-backed LMDBPropertyStore and are only read for result enrichment.

    The graph is never mutated after construction. Successor and predecessor
    sets are materialized lazily as frozensets and cached, so repeated
    lookups during matching are O(1) after the first.
    """

    def __init__(
        self,
        num_nodes,
        edges,
        labels,
        node_ids=None,
    ):
        """
        Args:
            num_nodes: Total number of vertices
            edges: Iterable of (src_idx, dst_idx) tuples using integer indices
            labels: Sequence of labels, one per vertex
            node_ids: Optional sequence of external ids, one per vertex
                (defaults to the string form of each index)
        """
        num_nodes = int(num_nodes)
        if len(labels) != num_nodes:
            raise ValueError(
                f"Expected {num_nodes} labels, got {len(labels)}"
            )
        if node_ids is None:
            node_ids = [str(i) for i in range(num_nodes)]
        elif len(node_ids) != num_nodes:
            raise ValueError(
                f"Expected {num_nodes} node ids, got {len(node_ids)}"
            )

        self.num_nodes = num_nodes
        self.node_id_to_idx = {nid: idx for idx, nid in enumerate(node_ids)}
        if len(self.node_id_to_idx) != num_nodes:
            raise ValueError("Node ids must be unique")
        self.idx_to_node_id = {idx: nid for nid, idx in self.node_id_to_idx.items()}

        # Label vocabulary
        self.label_to_idx = {
            label: idx for idx, label in enumerate(sorted(set(labels)))
        }
        self.idx_to_label = {idx: label for label, idx in self.label_to_idx.items()}
        self.node_labels = np.array(
            [self.label_to_idx[label] for label in labels], dtype=np.int32
        )

        edges = list(edges)
        src = [s for s, _ in edges]
        dst = [d for _, d in edges]
        for v in src + dst:
            if v < 0 or v >= num_nodes:
                raise ValueError(f"Edge endpoint {v} out of range [0, {num_nodes})")

        (
            self.fwd_offsets,
            self.fwd_targets,
            self.rev_offsets,
            self.rev_sources,
        ) = build_csr(num_nodes, src, dst)

        # Cold path node attributes, set later by loader or load_mmap
        self.lmdb_store = None

        self._init_caches()

    @classmethod
    def from_arrays(
        cls,
        node_ids,
        idx_to_label,
        node_labels,
        fwd_offsets,
        fwd_targets,
        rev_offsets,
        rev_sources,
        lmdb_store=None,
    ):
        """Assemble a graph from prebuilt CSR arrays (used by the loader)."""
        graph = cls.__new__(cls)
        graph.num_nodes = len(node_ids)
        graph.node_id_to_idx = {nid: idx for idx, nid in enumerate(node_ids)}
        graph.idx_to_node_id = {idx: nid for nid, idx in graph.node_id_to_idx.items()}
        graph.idx_to_label = dict(idx_to_label)
        graph.label_to_idx = {label: idx for idx, label in graph.idx_to_label.items()}
        graph.node_labels = node_labels
        graph.fwd_offsets = fwd_offsets
        graph.fwd_targets = fwd_targets
        graph.rev_offsets = rev_offsets
        graph.rev_sources = rev_sources
        graph.lmdb_store = lmdb_store
        graph._init_caches()
        return graph

    def _init_caches(self):
        self._adj_cache = [None] * self.num_nodes
        self._parent_cache = [None] * self.num_nodes
        self._label_members = {}
        if self.num_nodes:
            order = np.argsort(self.node_labels, kind="stable")
            sorted_labels = self.node_labels[order]
            for label_idx, label in self.idx_to_label.items():
                left = int(np.searchsorted(sorted_labels, label_idx, side="left"))
                right = int(np.searchsorted(sorted_labels, label_idx, side="right"))
                self._label_members[label] = frozenset(
                    int(v) for v in order[left:right]
                )

    def __len__(self):
        return self.num_nodes

    @property
    def num_edges(self):
        return len(self.fwd_targets)

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def label(self, node_idx):
        """Get the label of a vertex."""
        return self.idx_to_label[int(self.node_labels[node_idx])]

    def vertices_with_label(self, label):
        """Get the frozenset of vertices carrying ``label`` (empty if unknown)."""
        return self._label_members.get(label, _EMPTY)

    def labels(self):
        """Get the label of every vertex as a list, in index order."""
        return [self.idx_to_label[int(i)] for i in self.node_labels]

    # ------------------------------------------------------------------
    # Neighbor queries
    # ------------------------------------------------------------------

    def successors(self, node_idx):
        """
        Get successor indices for a vertex (vertices this vertex points TO).
        """
        start = self.fwd_offsets[node_idx]
        end = self.fwd_offsets[node_idx + 1]
        return self.fwd_targets[start:end]

    def predecessors(self, node_idx):
        """
        Get predecessor indices (vertices that point TO this vertex).
        """
        start = self.rev_offsets[node_idx]
        end = self.rev_offsets[node_idx + 1]
        return self.rev_sources[start:end]

    def adj(self, node_idx):
        """Successor set of a vertex as a cached frozenset."""
        cached = self._adj_cache[node_idx]
        if cached is None:
            cached = frozenset(int(v) for v in self.successors(node_idx))
            self._adj_cache[node_idx] = cached
        return cached

    def parents(self, node_idx):
        """Predecessor set of a vertex as a cached frozenset."""
        cached = self._parent_cache[node_idx]
        if cached is None:
            cached = frozenset(int(v) for v in self.predecessors(node_idx))
            self._parent_cache[node_idx] = cached
        return cached

    def has_edge(self, src_idx, dst_idx):
        """Check for the edge src -> dst by binary search in src's row.

        Typical cost: O(log(degree)).
        """
        start = int(self.fwd_offsets[src_idx])
        end = int(self.fwd_offsets[src_idx + 1])
        if start == end:
            return False
        pos = int(np.searchsorted(self.fwd_targets[start:end], dst_idx))
        return pos < end - start and int(self.fwd_targets[start + pos]) == dst_idx

    def edges(self):
        """Iterate over all edges as (src_idx, dst_idx) tuples."""
        for src in range(self.num_nodes):
            for dst in self.successors(src):
                yield src, int(dst)

    def degree(self, node_idx):
        """Out-degree of a vertex."""
        return int(self.fwd_offsets[node_idx + 1] - self.fwd_offsets[node_idx])

    def in_degree(self, node_idx):
        """In-degree of a vertex."""
        return int(self.rev_offsets[node_idx + 1] - self.rev_offsets[node_idx])

    # ------------------------------------------------------------------
    # Node ids and attributes
    # ------------------------------------------------------------------

    def get_node_idx(self, node_id):
        """Convert original node ID to internal index"""
        return self.node_id_to_idx.get(node_id)

    def get_node_id(self, node_idx):
        """Convert internal index to original node ID"""
        return self.idx_to_node_id.get(node_idx)

    def get_node_properties(self, node_idx):
        """Get stored attributes for a vertex (empty dict without a store)."""
        if self.lmdb_store is None:
            return {}
        return self.lmdb_store.get(node_idx)

    def get_label_stats(self):
        """Get (label, vertex count) pairs, most frequent first."""
        counts = np.bincount(self.node_labels, minlength=len(self.idx_to_label))
        stats = [
            (self.idx_to_label[idx], int(count)) for idx, count in enumerate(counts)
        ]
        return sorted(stats, key=lambda x: x[1], reverse=True)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _node_ids(self):
        return [self.idx_to_node_id[i] for i in range(self.num_nodes)]

    def save(self, filepath):
        """Save graph to disk for fast reloading (pickle format).

        Node attributes in the LMDB store are not included.
        """
        logger.info("Saving graph to %s...", filepath)
        data = {
            "node_ids": self._node_ids(),
            "idx_to_label": self.idx_to_label,
            "node_labels": self.node_labels,
            # Forward CSR
            "fwd_offsets": self.fwd_offsets,
            "fwd_targets": self.fwd_targets,
            # Reverse CSR
            "rev_offsets": self.rev_offsets,
            "rev_sources": self.rev_sources,
        }
        with open(filepath, "wb") as f:
            pickle.dump(data, f, protocol=pickle.HIGHEST_PROTOCOL)
        logger.info("Graph saved!")

    @staticmethod
    def load(filepath):
        """Load graph from disk."""
        logger.info("Loading graph from %s...", filepath)
        with open(filepath, "rb") as f:
            data = pickle.load(f)

        graph = LabeledGraph.from_arrays(
            node_ids=data["node_ids"],
            idx_to_label=data["idx_to_label"],
            node_labels=data["node_labels"],
            fwd_offsets=data["fwd_offsets"],
            fwd_targets=data["fwd_targets"],
            rev_offsets=data["rev_offsets"],
            rev_sources=data["rev_sources"],
        )
        logger.info(
            "Graph loaded! %s nodes, %s edges, %s labels",
            f"{graph.num_nodes:,}",
            f"{graph.num_edges:,}",
            f"{len(graph.label_to_idx):,}",
        )
        return graph

    def save_mmap(self, directory: Union[str, Path]):
        """Save graph in memory-mappable format for fast loading.

        Creates a directory with separate files:
        - NumPy arrays as .npy files (can be memory-mapped)
        - Metadata dictionaries as pickle
        - Node attributes as LMDB (if present)
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        logger.info("Saving graph to %s (mmap format)...", directory)
        t0 = time.perf_counter()

        np.save(directory / "node_labels.npy", self.node_labels)
        np.save(directory / "fwd_offsets.npy", self.fwd_offsets)
        np.save(directory / "fwd_targets.npy", self.fwd_targets)
        np.save(directory / "rev_offsets.npy", self.rev_offsets)
        np.save(directory / "rev_sources.npy", self.rev_sources)

        metadata = {
            "node_ids": self._node_ids(),
            "idx_to_label": self.idx_to_label,
        }
        with open(directory / "metadata.pkl", "wb") as f:
            pickle.dump(metadata, f, protocol=pickle.HIGHEST_PROTOCOL)

        # Copy LMDB store if present
        if self.lmdb_store is not None:
            lmdb_src = self.lmdb_store._path
            lmdb_dst = directory / "node_properties.lmdb"
            if lmdb_src.resolve() != lmdb_dst.resolve():
                if lmdb_dst.exists():
                    shutil.rmtree(lmdb_dst)
                shutil.copytree(lmdb_src, lmdb_dst)

        t1 = time.perf_counter()
        logger.info("Graph saved in %.2fs", t1 - t0)

    @staticmethod
    def load_mmap(directory: Union[str, Path], mmap_mode: Optional[str] = "r"):
        """Load graph from memory-mapped format."""
        directory = Path(directory)
        logger.info("Loading graph from %s (mmap_mode=%s)...", directory, mmap_mode)
        t0 = time.perf_counter()

        metadata_path = directory / "metadata.pkl"
        if not metadata_path.exists():
            raise FileNotFoundError(f"No graph metadata found in {directory}")
        with open(metadata_path, "rb") as f:
            metadata = pickle.load(f)

        arrays = {
            name: np.load(directory / f"{name}.npy", mmap_mode=mmap_mode)
            for name in (
                "node_labels",
                "fwd_offsets",
                "fwd_targets",
                "rev_offsets",
                "rev_sources",
            )
        }

        lmdb_path = directory / "node_properties.lmdb"
        lmdb_store = None
        if lmdb_path.exists():
            lmdb_store = LMDBPropertyStore(lmdb_path, readonly=True)

        graph = LabeledGraph.from_arrays(
            node_ids=metadata["node_ids"],
            idx_to_label=metadata["idx_to_label"],
            lmdb_store=lmdb_store,
            **arrays,
        )

        t1 = time.perf_counter()
        logger.info(
            "Graph loaded in %.2fs: %s nodes, %s edges, %s labels",
            t1 - t0,
            f"{graph.num_nodes:,}",
            f"{graph.num_edges:,}",
            f"{len(graph.label_to_idx):,}",
        )
        return graph

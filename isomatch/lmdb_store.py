"""LMDB-backed node attribute storage.

Node attributes (names, descriptions, anything besides id and label) are
"cold path" data: matching never touches them, they are only read when a
response is enriched for the small set of vertices bound in results.

LMDB is a memory-mapped B-tree. Multiple worker processes share the same
physical memory pages via the OS, identical to how numpy mmap works.
"""

import logging
import shutil
import struct
from pathlib import Path

import lmdb
import msgpack

logger = logging.getLogger(__name__)

# 10 GB virtual address space (not allocated until used)
_DEFAULT_MAP_SIZE = 10 * 1024 * 1024 * 1024


def _encode_key(node_idx: int) -> bytes:
    """Encode vertex index as 4-byte big-endian for correct LMDB sort order."""
    return struct.pack(">I", node_idx)


def _decode_key(key: bytes) -> int:
    """Decode 4-byte big-endian key back to vertex index."""
    return struct.unpack(">I", key)[0]


def _open_env(path, readonly):
    return lmdb.open(
        str(path),
        readonly=readonly,
        max_dbs=0,
        map_size=_DEFAULT_MAP_SIZE,
        readahead=False,  # point reads only
        lock=not readonly,
    )


class LMDBPropertyStore:
    """Disk-backed node attribute storage using LMDB.

    Stores one msgpack blob per vertex. Keys are vertex indices encoded as
    4-byte big-endian integers.
    """

    def __init__(self, path, readonly=True):
        self._path = Path(path)
        self._env = _open_env(self._path, readonly)

    def get(self, node_idx):
        """Get all stored attributes for a single vertex.

        Returns an empty dict if the vertex has none.
        """
        with self._env.begin(buffers=True) as txn:
            val = txn.get(_encode_key(int(node_idx)))
            if val is None:
                return {}
            return msgpack.unpackb(val, raw=False)

    def get_batch(self, node_indices):
        """Get attributes for several vertices in one read transaction.

        Returns dict mapping node_idx -> attributes dict; vertices without
        attributes are omitted.
        """
        results = {}
        with self._env.begin(buffers=True) as txn:
            for idx in node_indices:
                val = txn.get(_encode_key(int(idx)))
                if val is not None:
                    results[idx] = msgpack.unpackb(val, raw=False)
        return results

    def keys(self):
        """Iterate over the vertex indices present in the store, in order."""
        with self._env.begin() as txn:
            cursor = txn.cursor()
            for key in cursor.iternext(keys=True, values=False):
                yield _decode_key(key)

    def close(self):
        """Close the LMDB environment."""
        if self._env is not None:
            self._env.close()
            self._env = None

    def __del__(self):
        self.close()

    @staticmethod
    def build(db_path, items, commit_every=50_000):
        """Build a store by streaming (node_idx, attributes) pairs.

        Args:
            db_path: Path for the LMDB directory (replaced if it exists).
            items: Yields (node_idx, attributes_dict) tuples.
            commit_every: Commit the write transaction every N records.

        Returns:
            LMDBPropertyStore opened in read-only mode.
        """
        db_path = Path(db_path)
        if db_path.exists():
            shutil.rmtree(db_path)
        db_path.mkdir(parents=True, exist_ok=True)

        env = _open_env(db_path, readonly=False)
        txn = env.begin(write=True)
        count = 0
        try:
            for node_idx, props in items:
                txn.put(
                    _encode_key(int(node_idx)),
                    msgpack.packb(props, use_bin_type=True),
                )
                count += 1
                if count % commit_every == 0:
                    txn.commit()
                    txn = env.begin(write=True)
            txn.commit()
        except BaseException:
            txn.abort()
            raise
        finally:
            env.close()

        logger.info("LMDB: wrote attributes for %s nodes to %s", f"{count:,}", db_path)
        return LMDBPropertyStore(db_path, readonly=True)

    @staticmethod
    def build_sorted(db_path, temp_db_path, sort_permutation, commit_every=50_000):
        """Rewrite a temp store keyed by input line into vertex-index order.

        Args:
            db_path: Path for the final LMDB directory.
            temp_db_path: Path to the temporary LMDB (keyed by line index).
            sort_permutation: sequence where sort_permutation[node_idx] is the
                line index the vertex was read from.
            commit_every: Commit transaction every N records.

        Returns:
            LMDBPropertyStore opened in read-only mode.
        """
        temp_env = lmdb.open(
            str(temp_db_path),
            readonly=True,
            lock=False,
            map_size=_DEFAULT_MAP_SIZE,
            readahead=False,
        )
        temp_txn = temp_env.begin(buffers=True)

        def _reordered():
            for node_idx, line_idx in enumerate(sort_permutation):
                val = temp_txn.get(_encode_key(int(line_idx)))
                if val is not None:
                    yield node_idx, msgpack.unpackb(val, raw=False)

        try:
            return LMDBPropertyStore.build(db_path, _reordered(), commit_every)
        finally:
            temp_txn.abort()
            temp_env.close()

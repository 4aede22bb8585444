"""
Neighbor Query API

Provides a stable interface for "who is within radius r of agent i" over one
Snapshot, with interchangeable backends:

- AllPairsScan: O(n) scan per agent (O(n^2) per tick), vectorized with numpy
- KDTreeIndex: scipy.cKDTree built once per tick (drop-in replacement, no
  call site changes)

Both backends return identical neighbor sets in identical (ascending index)
order, so switching backend never changes steering results.
"""

import time
from dataclasses import dataclass
from itertools import chain
from typing import Iterator, Optional, Tuple

import numpy as np
from scipy.spatial import cKDTree

from .constants import CKDTREE_LEAFSIZE, NEIGHBOR_BACKEND, NEIGHBOR_BACKENDS
from .data_types import ConfigurationError
from .snapshot import Snapshot

# Candidate radius slack for the tree query; final membership is always
# decided by the shared squared-distance test below
_KDTREE_RADIUS_SLACK = 1e-9


def squared_distances(origins: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Squared distances from each origin to each point.

    Summed component by component (no reduction kernels), so a given pair
    always produces the same bits whichever batch it was computed in, and
    the same bits as pair_squared_distances() for that pair.

    Args:
        origins: (C, D) array
        points: (N, D) array

    Returns:
        (C, N) array of squared distances
    """
    dist_sq = np.subtract.outer(origins[:, 0], points[:, 0])
    dist_sq *= dist_sq
    diff = np.empty_like(dist_sq)
    for axis in range(1, origins.shape[1]):
        np.subtract.outer(origins[:, axis], points[:, axis], out=diff)
        diff *= diff
        dist_sq += diff
    return dist_sq


def pair_squared_distances(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Squared distance between a[i] and b[i] for each i.

    Same per-component arithmetic as squared_distances().

    Args:
        a: (M, D) array
        b: (M, D) array

    Returns:
        (M,) array
    """
    diff = a[:, 0] - b[:, 0]
    dist_sq = diff * diff
    for axis in range(1, a.shape[1]):
        diff = a[:, axis] - b[:, axis]
        dist_sq += diff * diff
    return dist_sq


@dataclass(frozen=True)
class NeighborBatch:
    """
    Neighbors of a batch of agents in CSR layout.

    Neighbors of rows[k] are indices[offsets[k]:offsets[k+1]] (ascending
    agent index), with matching squared distances in dist_sq.
    """
    rows: np.ndarray  # (C,) agent indices that were queried
    offsets: np.ndarray  # (C + 1,) int64
    indices: np.ndarray  # (M,) int64 neighbor agent indices
    dist_sq: np.ndarray  # (M,) float64

    @property
    def counts(self) -> np.ndarray:
        """(C,) number of neighbors per queried row"""
        return np.diff(self.offsets)

    @property
    def owner(self) -> np.ndarray:
        """(M,) batch-local row (0..C-1) owning each neighbor entry"""
        return np.repeat(np.arange(len(self.rows)), self.counts)

    def row(self, k: int) -> Tuple[np.ndarray, np.ndarray]:
        start, end = self.offsets[k], self.offsets[k + 1]
        return self.indices[start:end], self.dist_sq[start:end]


def _batch_from_mask(rows: np.ndarray, mask: np.ndarray, dist_sq: np.ndarray) -> NeighborBatch:
    # np.nonzero walks row-major: grouped by row, ascending neighbor index
    owner, indices = np.nonzero(mask)
    offsets = np.zeros(len(rows) + 1, dtype=np.int64)
    np.cumsum(np.bincount(owner, minlength=len(rows)), out=offsets[1:])
    return NeighborBatch(
        rows=rows,
        offsets=offsets,
        indices=indices.astype(np.int64, copy=False),
        dist_sq=dist_sq[owner, indices],
    )


class NeighborQuery:
    """
    Neighbor query capability.

    Subclasses implement build() and query_rows(); neighbors() is the
    per-agent lazy form built on top of query_rows().

    Thread safety: after build(snapshot), query_rows() may be called
    concurrently from worker threads for that snapshot.
    """

    name = "base"

    def __init__(self):
        self.last_build_ms: float = 0.0

    def build(self, snapshot: Snapshot):
        """Prepare for queries against snapshot (called once per tick)"""
        self.last_build_ms = 0.0

    def query_rows(self, rows: np.ndarray, snapshot: Snapshot, radii) -> NeighborBatch:
        """
        Batch query: neighbors of each row within that row's radius.

        Args:
            rows: (C,) agent indices
            snapshot: snapshot the index was built for
            radii: scalar or (C,) perception radii

        Returns:
            NeighborBatch with self excluded and distance <= radius
        """
        raise NotImplementedError

    def neighbors(self, index: int, snapshot: Snapshot, radius: float) -> Iterator[Tuple[int, float]]:
        """
        Lazy (other_index, squared_distance) pairs within radius of agent index.

        Self is excluded; pairs come in ascending index order.
        """
        batch = self.query_rows(np.array([index], dtype=np.int64), snapshot, radius)
        indices, dist_sq = batch.row(0)
        for other, d2 in zip(indices.tolist(), dist_sq.tolist()):
            yield other, d2


class AllPairsScan(NeighborQuery):
    """
    Naive scan against every other agent in the flock.

    O(n) per agent. Vectorized per batch of rows: memory is C x N x D for a
    batch of C rows, so batches should stay chunk-sized.
    """

    name = "all_pairs"

    def query_rows(self, rows: np.ndarray, snapshot: Snapshot, radii) -> NeighborBatch:
        rows = np.asarray(rows, dtype=np.int64)
        radii = np.broadcast_to(np.asarray(radii, dtype=np.float64), rows.shape)

        positions = snapshot.positions
        dist_sq = squared_distances(positions[rows], positions)
        mask = dist_sq <= (radii * radii)[:, np.newaxis]
        mask[np.arange(len(rows)), rows] = False  # Self is never a neighbor

        return _batch_from_mask(rows, mask, dist_sq)


class KDTreeIndex(NeighborQuery):
    """
    scipy.cKDTree-backed neighbor query.

    The tree is rebuilt from each snapshot in build(). Candidates come from
    query_ball_point with a tiny radius slack and are then filtered with the
    same squared-distance test as AllPairsScan, so both backends agree
    exactly on membership.
    """

    name = "kdtree"

    def __init__(self, leafsize: Optional[int] = None):
        """
        Args:
            leafsize: Override CKDTREE_LEAFSIZE constant (for testing)
        """
        super().__init__()
        self._leafsize = leafsize if leafsize is not None else CKDTREE_LEAFSIZE
        self._tree: Optional[cKDTree] = None
        self._built_for: Optional[Snapshot] = None

    def build(self, snapshot: Snapshot):
        build_start = time.perf_counter()
        if snapshot.count > 0:
            self._tree = cKDTree(snapshot.positions, leafsize=self._leafsize)
        else:
            self._tree = None
        self._built_for = snapshot
        self.last_build_ms = (time.perf_counter() - build_start) * 1000.0

    def query_rows(self, rows: np.ndarray, snapshot: Snapshot, radii) -> NeighborBatch:
        if snapshot is not self._built_for:
            self.build(snapshot)

        rows = np.asarray(rows, dtype=np.int64)
        radii = np.broadcast_to(np.asarray(radii, dtype=np.float64), rows.shape)
        positions = snapshot.positions

        offsets = np.zeros(len(rows) + 1, dtype=np.int64)
        if self._tree is None or len(rows) == 0:
            empty = np.empty(0, dtype=np.int64)
            return NeighborBatch(rows, offsets, empty, np.empty(0, dtype=np.float64))

        candidates = self._tree.query_ball_point(
            positions[rows],
            r=radii * (1.0 + _KDTREE_RADIUS_SLACK),
            return_sorted=True,
        )

        # Flatten the per-row candidate lists; rows stay grouped, each ascending
        found_counts = np.fromiter(map(len, candidates), dtype=np.int64, count=len(rows))
        found = np.fromiter(chain.from_iterable(candidates), dtype=np.int64, count=int(found_counts.sum()))
        owner = np.repeat(np.arange(len(rows)), found_counts)

        dist_sq = pair_squared_distances(positions[rows[owner]], positions[found])
        keep = (found != rows[owner]) & (dist_sq <= (radii * radii)[owner])
        np.cumsum(np.bincount(owner[keep], minlength=len(rows)), out=offsets[1:])

        return NeighborBatch(
            rows=rows,
            offsets=offsets,
            indices=found[keep],
            dist_sq=dist_sq[keep],
        )


def make_neighbor_query(backend: str = NEIGHBOR_BACKEND) -> NeighborQuery:
    """
    Build a neighbor query backend by name.

    Raises:
        ConfigurationError: unknown backend name
    """
    if backend == AllPairsScan.name:
        return AllPairsScan()
    if backend == KDTreeIndex.name:
        return KDTreeIndex()
    raise ConfigurationError('neighbor_backend', backend, f"must be one of {', '.join(NEIGHBOR_BACKENDS)}")

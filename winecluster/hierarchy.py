"""
Agglomerative clustering over a precomputed dissimilarity matrix.

Each active cluster lives in the matrix slot of its lowest record index, so
the row-major first minimum of the matrix is also the tie-break winner: the
pair of clusters with the smallest representatives. Inter-cluster distances
are maintained with Lance-Williams updates and every row caches its nearest
neighbour, which keeps most merges at O(N) work.
"""

from __future__ import annotations

import logging

import numpy as np

from .errors import InputValidationError, InvalidCutError
from .types import ClusterAssignment, Linkage, MergeTree

logger = logging.getLogger(__name__)


def build_tree(distances: np.ndarray, linkage: Linkage | str) -> MergeTree:
    linkage = Linkage(linkage)
    dist = _check_distances(distances)
    n_leaves = dist.shape[0]

    work = dist.copy()
    np.fill_diagonal(work, np.inf)

    active = np.ones(n_leaves, dtype=bool)
    cluster_size = np.ones(n_leaves, dtype=int)
    node_id = np.arange(n_leaves)
    row_min = work.min(axis=1) if n_leaves > 1 else np.full(n_leaves, np.inf)
    row_arg = work.argmin(axis=1) if n_leaves > 1 else np.zeros(n_leaves, dtype=int)

    children = np.zeros((max(n_leaves - 1, 0), 2), dtype=int)
    heights = np.zeros(max(n_leaves - 1, 0), dtype=float)
    sizes = np.zeros(max(n_leaves - 1, 0), dtype=int)

    last_height = -np.inf
    for step in range(n_leaves - 1):
        a = int(np.argmin(row_min))
        b = int(row_arg[a])
        height = float(work[a, b])
        # rounding in the average update may dip below the previous merge
        height = max(height, last_height)
        last_height = height

        children[step] = (node_id[a], node_id[b])
        heights[step] = height
        sizes[step] = cluster_size[a] + cluster_size[b]

        merged = _merged_distances(work[a], work[b], cluster_size[a], cluster_size[b], linkage)
        active[b] = False
        merged[a] = np.inf
        merged[b] = np.inf
        work[a, :] = merged
        work[:, a] = merged
        work[b, :] = np.inf
        work[:, b] = np.inf

        cluster_size[a] += cluster_size[b]
        node_id[a] = n_leaves + step
        row_min[b] = np.inf

        row_min[a] = work[a].min()
        row_arg[a] = int(work[a].argmin())

        others = active.copy()
        others[a] = False
        stale = others & ((row_arg == a) | (row_arg == b))
        if stale.any():
            idx = np.where(stale)[0]
            row_min[idx] = work[idx].min(axis=1)
            row_arg[idx] = work[idx].argmin(axis=1)

        fresh = others & ~stale
        better = fresh & ((merged < row_min) | ((merged == row_min) & (a < row_arg)))
        row_min[better] = merged[better]
        row_arg[better] = a

        logger.debug("merge %d: nodes %s at height %.6f", step, tuple(children[step]), height)

    return MergeTree(
        n_leaves=n_leaves,
        linkage=linkage,
        children=children,
        heights=heights,
        sizes=sizes,
    )


def cut_tree(tree: MergeTree, k: int) -> ClusterAssignment:
    """Flat partition with exactly ``k`` clusters.

    Clusters are numbered 1..k in order of their lowest record index.
    """
    n_leaves = tree.n_leaves
    if not 1 <= k <= n_leaves:
        raise InvalidCutError(k, n_leaves)

    parent = np.arange(2 * n_leaves - 1)
    for step in range(n_leaves - k):
        left, right = tree.children[step]
        parent[left] = n_leaves + step
        parent[right] = n_leaves + step

    labels = np.zeros(n_leaves, dtype=int)
    root_label: dict[int, int] = {}
    for leaf in range(n_leaves):
        root = _find_root(parent, leaf)
        if root not in root_label:
            root_label[root] = len(root_label) + 1
        labels[leaf] = root_label[root]

    return ClusterAssignment(labels=labels, k=k, method=f"hierarchical-{tree.linkage}")


def _check_distances(distances: np.ndarray) -> np.ndarray:
    dist = np.asarray(distances, dtype=float)
    if dist.ndim != 2 or dist.shape[0] != dist.shape[1]:
        raise InputValidationError(f"dissimilarity matrix must be square, got shape {dist.shape}")
    if dist.shape[0] == 0:
        raise InputValidationError("dissimilarity matrix is empty")
    if not np.array_equal(dist, dist.T):
        raise InputValidationError("dissimilarity matrix is not symmetric")
    if not np.all(np.isfinite(dist)):
        raise InputValidationError("dissimilarity matrix contains NaN or infinite values")
    return dist


def _merged_distances(
    row_a: np.ndarray,
    row_b: np.ndarray,
    size_a: int,
    size_b: int,
    linkage: Linkage,
) -> np.ndarray:
    if linkage is Linkage.SINGLE:
        return np.minimum(row_a, row_b)
    if linkage is Linkage.COMPLETE:
        return np.maximum(row_a, row_b)
    return (size_a * row_a + size_b * row_b) / (size_a + size_b)


def _find_root(parent: np.ndarray, node: int) -> int:
    root = node
    while parent[root] != root:
        root = int(parent[root])
    while parent[node] != root:
        parent[node], node = root, int(parent[node])
    return root

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
import pandas as pd

from .config import DEFAULT_MAX_ITER, QUALITY_COLUMN
from .errors import DegenerateFeatureError, InputValidationError, InvalidClusterCountError
from .types import ClusterAssignment, Dataset, EmptyClusterRepaired

logger = logging.getLogger(__name__)


def degenerate_columns(matrix: np.ndarray) -> list[int]:
    if matrix.shape[0] < 2:
        return list(range(matrix.shape[1]))
    # max == min is exact; the float std of a constant column may not be 0
    constant = matrix.max(axis=0) == matrix.min(axis=0)
    std = matrix.std(axis=0, ddof=1)
    return [int(i) for i in np.where(constant | ~(std > 0.0))[0]]


def standardize(matrix: np.ndarray, feature_names: Sequence[str] | None = None) -> np.ndarray:
    """Rescale each column to zero mean and unit sample variance.

    Raises DegenerateFeatureError naming every constant column.
    """
    matrix = _as_matrix(matrix)
    bad = degenerate_columns(matrix)
    if bad:
        names = [feature_names[i] if feature_names is not None else f"column {i}" for i in bad]
        raise DegenerateFeatureError(names)

    mean = matrix.mean(axis=0)
    std = matrix.std(axis=0, ddof=1)
    return (matrix - mean) / std


def standardize_dataset(dataset: Dataset) -> np.ndarray:
    return standardize(dataset.features, dataset.feature_names)


def pairwise_distances(matrix: np.ndarray) -> np.ndarray:
    matrix = _as_matrix(matrix)
    n_samples = matrix.shape[0]
    dist = np.zeros((n_samples, n_samples), dtype=float)
    # (a - b)**2 == (b - a)**2 exactly, so rows built this way are symmetric
    for i in range(n_samples):
        diff = matrix - matrix[i]
        dist[i] = np.sqrt(np.einsum("ij,ij->i", diff, diff))
    np.fill_diagonal(dist, 0.0)
    return dist


def run_kmeans(
    matrix: np.ndarray,
    k: int,
    seed: int,
    max_iter: int = DEFAULT_MAX_ITER,
) -> ClusterAssignment:
    """Lloyd's k-means with seeded initialisation and empty-cluster repair.

    Labels are ``centroid index + 1``. Ties go to the lower-indexed centroid.
    """
    matrix = _as_matrix(matrix)
    n_samples = matrix.shape[0]
    if not 1 <= k <= n_samples:
        raise InvalidClusterCountError(k, n_samples)
    if max_iter < 1:
        raise ValueError(f"max_iter must be >= 1, got {max_iter}")

    rng = np.random.default_rng(seed)
    centroid_idx = rng.choice(n_samples, size=k, replace=False)
    centroids = matrix[centroid_idx].copy()

    labels = np.full(n_samples, -1, dtype=int)
    repairs: list[EmptyClusterRepaired] = []
    converged = False
    iteration = 0
    for iteration in range(1, max_iter + 1):
        new_labels, nearest = _nearest_centroids(matrix, centroids)
        new_labels = _repair_empty(matrix, centroids, new_labels, nearest, k, iteration, repairs)

        if np.array_equal(labels, new_labels):
            converged = True
            break
        labels = new_labels

        for c in range(k):
            centroids[c] = matrix[labels == c].mean(axis=0)

    if not converged:
        logger.warning("k-means (k=%d, seed=%d) hit the %d iteration cap before converging", k, seed, max_iter)

    inertia = float(np.sum((matrix - centroids[labels]) ** 2))
    return ClusterAssignment(
        labels=labels + 1,
        k=k,
        method="kmeans",
        centroids=centroids,
        iterations=iteration,
        converged=converged,
        inertia=inertia,
        repairs=repairs,
    )


def summarize_clusters(dataset: Dataset, assignment: ClusterAssignment) -> pd.DataFrame:
    """Mean of every feature and of quality per cluster id, with cluster sizes."""
    if len(assignment) != len(dataset):
        raise InputValidationError(
            f"assignment covers {len(assignment)} records but the dataset has {len(dataset)}"
        )
    frame = pd.DataFrame(dataset.features, columns=list(dataset.feature_names))
    frame[QUALITY_COLUMN] = dataset.quality
    frame["cluster"] = assignment.labels

    summary = frame.groupby("cluster").mean()
    summary.insert(0, "size", frame.groupby("cluster").size())
    return summary.reindex(range(1, assignment.k + 1))


def _as_matrix(matrix: np.ndarray) -> np.ndarray:
    matrix = np.asarray(matrix, dtype=float)
    if matrix.ndim != 2:
        raise InputValidationError(f"expected a 2-D feature matrix, got shape {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise InputValidationError("feature matrix contains NaN or infinite values")
    return matrix


def _squared_distances(matrix: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    out = np.empty((matrix.shape[0], centroids.shape[0]), dtype=float)
    for c, centroid in enumerate(centroids):
        diff = matrix - centroid
        out[:, c] = np.einsum("ij,ij->i", diff, diff)
    return out


def _nearest_centroids(matrix: np.ndarray, centroids: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    # argmin returns the first minimum, so ties go to the lower centroid index
    sq_dist = _squared_distances(matrix, centroids)
    labels = np.argmin(sq_dist, axis=1)
    return labels, sq_dist[np.arange(matrix.shape[0]), labels]


def _repair_empty(
    matrix: np.ndarray,
    centroids: np.ndarray,
    labels: np.ndarray,
    nearest: np.ndarray,
    k: int,
    iteration: int,
    repairs: list[EmptyClusterRepaired],
) -> np.ndarray:
    counts = np.bincount(labels, minlength=k)
    empty = [c for c in range(k) if counts[c] == 0]
    if not empty:
        return labels

    labels = labels.copy()
    far = nearest.astype(float).copy()
    for c in empty:
        # only take rows whose cluster keeps at least one other member
        donors = counts[labels] > 1
        candidates = np.where(donors, far, -np.inf)
        row = int(np.argmax(candidates))
        counts[labels[row]] -= 1
        labels[row] = c
        counts[c] = 1
        far[row] = -np.inf
        centroids[c] = matrix[row]
        repairs.append(EmptyClusterRepaired(cluster_id=c + 1, record_index=row, iteration=iteration))
        logger.info("Empty cluster %d repaired with record %d at iteration %d", c + 1, row, iteration)
    return labels

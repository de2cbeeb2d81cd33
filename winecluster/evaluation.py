from __future__ import annotations

import logging
from collections import Counter, defaultdict
from typing import Iterable, Iterator, Sequence

import numpy as np
import pandas as pd

from .config import DEFAULT_MAX_ITER
from .errors import InputValidationError
from .pipeline import run_kmeans
from .types import ClusterAssignment, SweepPoint

logger = logging.getLogger(__name__)


def silhouette_samples(assignment: ClusterAssignment | np.ndarray, distances: np.ndarray) -> np.ndarray:
    """Per-record silhouette coefficients ``(b - a) / max(a, b)``.

    Records in singleton clusters, and every record when there is only one
    cluster, get 0.
    """
    labels = _labels_of(assignment)
    dist = np.asarray(distances, dtype=float)
    n = len(labels)
    if dist.shape != (n, n):
        raise InputValidationError(f"distances have shape {dist.shape}, expected ({n}, {n})")
    if n == 0:
        return np.zeros(0, dtype=float)

    unique, codes = np.unique(labels, return_inverse=True)
    if len(unique) < 2:
        return np.zeros(n, dtype=float)

    onehot = np.zeros((n, len(unique)), dtype=float)
    onehot[np.arange(n), codes] = 1.0
    counts = onehot.sum(axis=0)
    totals = dist @ onehot

    own_count = counts[codes]
    own_total = totals[np.arange(n), codes]
    singleton = own_count <= 1
    a = np.where(singleton, 0.0, own_total / np.maximum(own_count - 1, 1))

    mean_to = totals / counts
    mean_to[np.arange(n), codes] = np.inf
    b = mean_to.min(axis=1)

    denom = np.maximum(a, b)
    sil = np.where(denom > 0, (b - a) / np.where(denom > 0, denom, 1.0), 0.0)
    sil[singleton] = 0.0
    return np.clip(sil, -1.0, 1.0)


def silhouette_score(assignment: ClusterAssignment | np.ndarray, distances: np.ndarray) -> float:
    samples = silhouette_samples(assignment, distances)
    if len(samples) == 0:
        return 0.0
    return float(np.mean(samples))


class SilhouetteSweep:
    """Lazily runs k-means and scores it for every ``k`` in ``k_range``.

    Iterating again reruns the sweep from the start; results are identical
    because each run is seeded.
    """

    def __init__(
        self,
        matrix: np.ndarray,
        distances: np.ndarray,
        k_range: Iterable[int],
        seed: int,
        max_iter: int = DEFAULT_MAX_ITER,
    ) -> None:
        self._matrix = matrix
        self._distances = distances
        self._k_values = list(k_range)
        self._seed = seed
        self._max_iter = max_iter

    def __len__(self) -> int:
        return len(self._k_values)

    def __iter__(self) -> Iterator[SweepPoint]:
        for k in self._k_values:
            assignment = run_kmeans(self._matrix, k, seed=self._seed, max_iter=self._max_iter)
            point = SweepPoint(k=k, score=silhouette_score(assignment, self._distances))
            logger.info("k=%d silhouette=%.4f", point.k, point.score)
            yield point


def sweep(
    matrix: np.ndarray,
    distances: np.ndarray,
    k_range: Iterable[int],
    seed: int,
    max_iter: int = DEFAULT_MAX_ITER,
) -> SilhouetteSweep:
    return SilhouetteSweep(matrix, distances, k_range, seed=seed, max_iter=max_iter)


def best_k(points: Iterable[SweepPoint]) -> int:
    """Highest-scoring ``k``; the smaller ``k`` wins ties."""
    ranked = sorted(points, key=lambda p: (-p.score, p.k))
    if not ranked:
        raise ValueError("no sweep points to choose from")
    return ranked[0].k


def adjusted_rand_index(labels_a: Sequence[object] | np.ndarray, labels_b: Sequence[object] | np.ndarray) -> float:
    labels_a = list(_labels_of(labels_a).tolist())
    labels_b = list(_labels_of(labels_b).tolist())
    if len(labels_a) != len(labels_b) or len(labels_a) == 0:
        return 0.0
    n = len(labels_a)

    contingency: dict[tuple[object, object], int] = defaultdict(int)
    counts_a: Counter[object] = Counter(labels_a)
    counts_b: Counter[object] = Counter(labels_b)
    for la, lb in zip(labels_a, labels_b):
        contingency[(la, lb)] += 1

    sum_nij = sum(_comb2(v) for v in contingency.values())
    sum_ai = sum(_comb2(v) for v in counts_a.values())
    sum_bj = sum(_comb2(v) for v in counts_b.values())
    total = _comb2(n)
    if total == 0:
        return 0.0

    expected = (sum_ai * sum_bj) / total
    max_index = 0.5 * (sum_ai + sum_bj)
    denom = max_index - expected
    if denom == 0:
        # identical trivial partitions agree perfectly
        return 1.0 if sum_nij == max_index else 0.0
    return float((sum_nij - expected) / denom)


def crosstab(assignment: ClusterAssignment, labels: Sequence[object] | np.ndarray, name: str) -> pd.DataFrame:
    """Record counts per cluster id (rows) and label value (columns)."""
    values = [str(v) if not isinstance(v, (int, np.integer)) else int(v) for v in labels]
    if len(values) != len(assignment):
        raise InputValidationError(
            f"{name} has {len(values)} values but the assignment covers {len(assignment)} records"
        )
    table = pd.crosstab(
        pd.Series(assignment.labels, name="cluster"),
        pd.Series(values, name=name),
    )
    return table.reindex(range(1, assignment.k + 1), fill_value=0)


def _labels_of(assignment: ClusterAssignment | Sequence[object] | np.ndarray) -> np.ndarray:
    if isinstance(assignment, ClusterAssignment):
        return np.asarray(assignment.labels)
    return np.asarray(assignment)


def _comb2(n: int) -> float:
    return n * (n - 1) / 2.0

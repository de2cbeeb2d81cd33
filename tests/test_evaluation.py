from __future__ import annotations

import unittest

import numpy as np

from winecluster.errors import InputValidationError
from winecluster.evaluation import (
    adjusted_rand_index,
    best_k,
    crosstab,
    silhouette_samples,
    silhouette_score,
    sweep,
)
from winecluster.pipeline import pairwise_distances
from winecluster.types import ClusterAssignment, SweepPoint


class SilhouetteTests(unittest.TestCase):
    def test_hand_computed_value(self) -> None:
        dist = pairwise_distances(np.array([[0.0], [1.0], [5.0], [6.0]]))
        labels = np.array([1, 1, 2, 2])
        samples = silhouette_samples(labels, dist)
        # record 0: a = 1, b = mean(5, 6) = 5.5
        self.assertAlmostEqual(samples[0], (5.5 - 1.0) / 5.5)
        # record 1: a = 1, b = mean(4, 5) = 4.5
        self.assertAlmostEqual(samples[1], (4.5 - 1.0) / 4.5)
        self.assertAlmostEqual(silhouette_score(labels, dist), float(np.mean(samples)))

    def test_singleton_scores_zero(self) -> None:
        dist = pairwise_distances(np.array([[0.0], [1.0], [9.0]]))
        samples = silhouette_samples(ClusterAssignment(np.array([1, 1, 2]), 2, "kmeans"), dist)
        self.assertEqual(samples[2], 0.0)

    def test_single_cluster_scores_zero(self) -> None:
        dist = pairwise_distances(np.array([[0.0], [1.0], [9.0]]))
        self.assertEqual(silhouette_score(np.array([1, 1, 1]), dist), 0.0)

    def test_score_stays_in_range(self) -> None:
        rng = np.random.default_rng(2)
        dist = pairwise_distances(rng.normal(size=(50, 4)))
        for _ in range(20):
            labels = rng.integers(1, 6, size=50)
            score = silhouette_score(labels, dist)
            self.assertGreaterEqual(score, -1.0)
            self.assertLessEqual(score, 1.0)

    def test_shape_mismatch(self) -> None:
        with self.assertRaises(InputValidationError):
            silhouette_score(np.array([1, 2]), np.zeros((3, 3)))


class SweepTests(unittest.TestCase):
    def setUp(self) -> None:
        rng = np.random.default_rng(17)
        self.matrix = np.vstack([rng.normal(0.0, 0.2, size=(10, 2)), rng.normal(3.0, 0.2, size=(10, 2))])
        self.dist = pairwise_distances(self.matrix)

    def test_sweep_is_lazy_and_restartable(self) -> None:
        points = sweep(self.matrix, self.dist, range(2, 6), seed=42)
        self.assertEqual(len(points), 4)
        first = list(points)
        second = list(points)
        self.assertEqual(first, second)
        self.assertEqual([p.k for p in first], [2, 3, 4, 5])

    def test_best_k_prefers_smaller_k_on_ties(self) -> None:
        points = [SweepPoint(2, 0.5), SweepPoint(3, 0.7), SweepPoint(4, 0.7)]
        self.assertEqual(best_k(points), 3)
        with self.assertRaises(ValueError):
            best_k([])


class AgreementTests(unittest.TestCase):
    def test_ari_ignores_label_names(self) -> None:
        self.assertAlmostEqual(adjusted_rand_index(np.array([1, 1, 2, 2]), np.array([7, 7, 3, 3])), 1.0)
        self.assertAlmostEqual(adjusted_rand_index(["red", "red", "white"], [1, 1, 2]), 1.0)

    def test_ari_of_unrelated_partitions_is_low(self) -> None:
        self.assertLess(adjusted_rand_index(np.array([1, 1, 2, 2]), np.array([1, 2, 1, 2])), 0.0)

    def test_ari_length_mismatch(self) -> None:
        self.assertEqual(adjusted_rand_index(np.array([1, 2]), np.array([1])), 0.0)

    def test_crosstab_counts(self) -> None:
        assignment = ClusterAssignment(np.array([1, 1, 2, 3]), 3, "kmeans")
        table = crosstab(assignment, np.array([5, 6, 6, 6]), "quality")
        self.assertEqual(list(table.index), [1, 2, 3])
        self.assertEqual(int(table.loc[1, 5]), 1)
        self.assertEqual(int(table.loc[1, 6]), 1)
        self.assertEqual(int(table.loc[3, 6]), 1)
        self.assertEqual(int(table.loc[2, 5]), 0)

    def test_crosstab_length_mismatch(self) -> None:
        assignment = ClusterAssignment(np.array([1, 2]), 2, "kmeans")
        with self.assertRaises(InputValidationError):
            crosstab(assignment, ["red"], "origin")


if __name__ == "__main__":
    unittest.main()

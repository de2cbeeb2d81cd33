from __future__ import annotations

import unittest

import numpy as np

from winecluster.errors import InputValidationError, InvalidClusterCountError, InvalidCutError
from winecluster.hierarchy import build_tree, cut_tree
from winecluster.pipeline import pairwise_distances
from winecluster.types import Linkage

LINE = pairwise_distances(np.array([[0.0], [1.0], [2.0], [3.0]]))


class BuildTreeTests(unittest.TestCase):
    def test_single_linkage_breaks_ties_by_lowest_indices(self) -> None:
        tree = build_tree(LINE, Linkage.SINGLE)
        self.assertEqual(tree.children.tolist(), [[0, 1], [4, 2], [5, 3]])
        np.testing.assert_allclose(tree.heights, [1.0, 1.0, 1.0])
        self.assertEqual(tree.sizes.tolist(), [2, 3, 4])

    def test_complete_linkage(self) -> None:
        tree = build_tree(LINE, "complete")
        self.assertEqual(tree.children.tolist(), [[0, 1], [2, 3], [4, 5]])
        np.testing.assert_allclose(tree.heights, [1.0, 1.0, 3.0])

    def test_average_linkage(self) -> None:
        tree = build_tree(LINE, Linkage.AVERAGE)
        self.assertEqual(tree.children.tolist(), [[0, 1], [2, 3], [4, 5]])
        np.testing.assert_allclose(tree.heights, [1.0, 1.0, 2.0])

    def test_heights_never_decrease(self) -> None:
        rng = np.random.default_rng(21)
        dist = pairwise_distances(rng.normal(size=(60, 4)))
        for linkage in Linkage:
            tree = build_tree(dist, linkage)
            self.assertEqual(len(tree.heights), 59)
            self.assertTrue(np.all(np.diff(tree.heights) >= 0.0), linkage)
            self.assertEqual(int(tree.sizes[-1]), 60)

    def test_repeated_builds_are_identical(self) -> None:
        rng = np.random.default_rng(4)
        # integer grid coordinates produce many tied distances
        dist = pairwise_distances(rng.integers(0, 3, size=(30, 2)).astype(float))
        first = build_tree(dist, Linkage.AVERAGE)
        second = build_tree(dist, Linkage.AVERAGE)
        np.testing.assert_array_equal(first.children, second.children)
        np.testing.assert_array_equal(first.heights, second.heights)

    def test_rejects_non_square_matrix(self) -> None:
        with self.assertRaises(InputValidationError):
            build_tree(np.zeros((3, 2)), Linkage.SINGLE)

    def test_rejects_asymmetric_matrix(self) -> None:
        dist = np.array([[0.0, 1.0], [2.0, 0.0]])
        with self.assertRaises(InputValidationError):
            build_tree(dist, Linkage.SINGLE)

    def test_unknown_linkage(self) -> None:
        with self.assertRaises(ValueError):
            build_tree(LINE, "ward")

    def test_single_record(self) -> None:
        tree = build_tree(np.zeros((1, 1)), Linkage.COMPLETE)
        self.assertEqual(tree.children.shape, (0, 2))
        self.assertEqual(cut_tree(tree, 1).labels.tolist(), [1])


class CutTreeTests(unittest.TestCase):
    def test_cut_two_groups(self) -> None:
        tree = build_tree(LINE, Linkage.COMPLETE)
        assignment = cut_tree(tree, 2)
        self.assertEqual(assignment.labels.tolist(), [1, 1, 2, 2])
        self.assertEqual(assignment.method, "hierarchical-complete")

        chained = cut_tree(build_tree(LINE, Linkage.SINGLE), 2)
        self.assertEqual(chained.labels.tolist(), [1, 1, 1, 2])

    def test_k_equal_n_and_k_one(self) -> None:
        rng = np.random.default_rng(8)
        dist = pairwise_distances(rng.normal(size=(12, 3)))
        tree = build_tree(dist, Linkage.AVERAGE)
        singletons = cut_tree(tree, 12)
        self.assertEqual(sorted(singletons.labels.tolist()), list(range(1, 13)))
        whole = cut_tree(tree, 1)
        self.assertEqual(set(whole.labels.tolist()), {1})

    def test_every_cut_has_k_clusters(self) -> None:
        rng = np.random.default_rng(10)
        tree = build_tree(pairwise_distances(rng.normal(size=(15, 2))), Linkage.SINGLE)
        for k in range(1, 16):
            labels = cut_tree(tree, k).labels
            self.assertEqual(sorted(set(labels.tolist())), list(range(1, k + 1)))

    def test_out_of_range_cut(self) -> None:
        tree = build_tree(LINE, Linkage.SINGLE)
        with self.assertRaises(InvalidCutError):
            cut_tree(tree, 0)
        with self.assertRaises(InvalidClusterCountError):
            cut_tree(tree, 5)


if __name__ == "__main__":
    unittest.main()

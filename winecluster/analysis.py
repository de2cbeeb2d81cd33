from __future__ import annotations

from functools import cached_property
from typing import Iterable

import numpy as np
import pandas as pd

from .config import AnalysisConfig
from .evaluation import SilhouetteSweep, silhouette_score, sweep
from .hierarchy import build_tree, cut_tree
from .pipeline import pairwise_distances, run_kmeans, standardize_dataset, summarize_clusters
from .types import ClusterAssignment, Dataset, Linkage, MergeTree


class ClusterAnalysis:
    """Runs both clustering evaluators over one Dataset.

    The standardized features and the dissimilarity matrix are computed once
    on first use and shared by every later call.
    """

    def __init__(self, dataset: Dataset, config: AnalysisConfig | None = None) -> None:
        self.dataset = dataset
        self.config = config or AnalysisConfig()
        self._trees: dict[Linkage, MergeTree] = {}

    @cached_property
    def standardized(self) -> np.ndarray:
        return standardize_dataset(self.dataset)

    @cached_property
    def distances(self) -> np.ndarray:
        return pairwise_distances(self.dataset.features)

    def kmeans(self, k: int) -> ClusterAssignment:
        return run_kmeans(self.standardized, k, seed=self.config.seed, max_iter=self.config.max_iter)

    def score(self, assignment: ClusterAssignment) -> float:
        return silhouette_score(assignment, self.distances)

    def sweep(self, k_range: Iterable[int] | None = None) -> SilhouetteSweep:
        return sweep(
            self.standardized,
            self.distances,
            self.config.k_range if k_range is None else k_range,
            seed=self.config.seed,
            max_iter=self.config.max_iter,
        )

    def tree(self, linkage: Linkage | str | None = None) -> MergeTree:
        linkage = Linkage(linkage or self.config.linkage)
        if linkage not in self._trees:
            self._trees[linkage] = build_tree(self.distances, linkage)
        return self._trees[linkage]

    def hierarchical(self, k: int, linkage: Linkage | str | None = None) -> ClusterAssignment:
        return cut_tree(self.tree(linkage), k)

    def summary(self, assignment: ClusterAssignment) -> pd.DataFrame:
        return summarize_clusters(self.dataset, assignment)

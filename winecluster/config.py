"""
Dataset constants and run configuration for the wine clustering analysis.
"""

from __future__ import annotations

from dataclasses import dataclass

from .types import Linkage

# ----- Dataset schema -----
FEATURE_COLUMNS = (
    "fixed acidity",
    "volatile acidity",
    "citric acid",
    "residual sugar",
    "chlorides",
    "free sulfur dioxide",
    "total sulfur dioxide",
    "density",
    "pH",
    "sulphates",
    "alcohol",
)
QUALITY_COLUMN = "quality"
ORIGIN_COLUMN = "origin"
QUALITY_RANGE = (0, 10)

# ----- Reproducibility -----
DEFAULT_SEED = 42

# ----- Clustering -----
DEFAULT_K_MIN = 2
DEFAULT_K_MAX = 20
DEFAULT_LINKAGE = Linkage.COMPLETE
DEFAULT_MAX_ITER = 300

DEFAULT_OUTPUT_DIR = "output/winecluster"


@dataclass(frozen=True)
class AnalysisConfig:
    seed: int = DEFAULT_SEED
    k_min: int = DEFAULT_K_MIN
    k_max: int = DEFAULT_K_MAX
    linkage: Linkage = DEFAULT_LINKAGE
    max_iter: int = DEFAULT_MAX_ITER

    def __post_init__(self) -> None:
        if self.k_min < 1:
            raise ValueError(f"k_min must be >= 1, got {self.k_min}")
        if self.k_max < self.k_min:
            raise ValueError(f"k_max ({self.k_max}) must be >= k_min ({self.k_min})")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {self.max_iter}")
        # accepts plain strings such as "average"
        object.__setattr__(self, "linkage", Linkage(self.linkage))

    @property
    def k_range(self) -> range:
        return range(self.k_min, self.k_max + 1)

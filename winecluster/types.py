from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterator, NamedTuple, Sequence

import numpy as np
import pandas as pd

from .errors import InputValidationError, SchemaMismatchError


class Origin(StrEnum):
    RED = "red"
    WHITE = "white"


class Linkage(StrEnum):
    SINGLE = "single"
    COMPLETE = "complete"
    AVERAGE = "average"


@dataclass
class Record:
    record_id: str
    features: tuple[float, ...]
    origin: Origin
    quality: int


@dataclass(frozen=True, eq=False)
class Dataset:
    """Raw wine samples sharing one feature schema, in load order."""

    record_ids: list[str]
    feature_names: tuple[str, ...]
    features: np.ndarray
    origin: list[Origin]
    quality: np.ndarray

    def __post_init__(self) -> None:
        n = len(self.record_ids)
        if self.features.ndim != 2 or self.features.shape[1] != len(self.feature_names):
            raise SchemaMismatchError(
                f"feature matrix shape {self.features.shape} does not match "
                f"{len(self.feature_names)} feature names"
            )
        if self.features.shape[0] != n or len(self.origin) != n or len(self.quality) != n:
            raise InputValidationError("record ids, features, origin and quality differ in length")

    def __len__(self) -> int:
        return len(self.record_ids)

    @classmethod
    def from_records(cls, records: Sequence[Record], feature_names: Sequence[str]) -> Dataset:
        names = tuple(feature_names)
        for record in records:
            if len(record.features) != len(names):
                raise SchemaMismatchError(
                    f"record {record.record_id!r} has {len(record.features)} features, expected {len(names)}"
                )
        features = np.array([record.features for record in records], dtype=float).reshape(len(records), len(names))
        return cls(
            record_ids=[record.record_id for record in records],
            feature_names=names,
            features=features,
            origin=[Origin(record.origin) for record in records],
            quality=np.array([record.quality for record in records], dtype=int),
        )

    def records(self) -> Iterator[Record]:
        for idx, record_id in enumerate(self.record_ids):
            yield Record(
                record_id=record_id,
                features=tuple(float(v) for v in self.features[idx]),
                origin=self.origin[idx],
                quality=int(self.quality[idx]),
            )

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(self.features, columns=list(self.feature_names), index=self.record_ids)
        frame["quality"] = self.quality
        frame["origin"] = [str(o) for o in self.origin]
        frame.index.name = "record_id"
        return frame

    def drop_features(self, names: Sequence[str]) -> Dataset:
        unknown = [name for name in names if name not in self.feature_names]
        if unknown:
            raise SchemaMismatchError(f"unknown feature columns: {unknown}")
        keep = [i for i, name in enumerate(self.feature_names) if name not in names]
        return Dataset(
            record_ids=list(self.record_ids),
            feature_names=tuple(self.feature_names[i] for i in keep),
            features=self.features[:, keep].copy(),
            origin=list(self.origin),
            quality=self.quality.copy(),
        )


@dataclass(frozen=True)
class EmptyClusterRepaired:
    cluster_id: int
    record_index: int
    iteration: int


@dataclass(frozen=True, eq=False)
class ClusterAssignment:
    """Cluster id in ``[1, k]`` for every record, in dataset order."""

    labels: np.ndarray
    k: int
    method: str
    centroids: np.ndarray | None = None
    iterations: int = 0
    converged: bool = True
    inertia: float | None = None
    repairs: list[EmptyClusterRepaired] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.labels)

    def members(self, cluster_id: int) -> np.ndarray:
        return np.where(self.labels == cluster_id)[0]

    def sizes(self) -> dict[int, int]:
        return {c: len(self.members(c)) for c in range(1, self.k + 1)}


class SweepPoint(NamedTuple):
    k: int
    score: float


@dataclass(frozen=True, eq=False)
class MergeTree:
    """Agglomerative merge history.

    ``children[s]`` holds the two node ids joined by merge ``s``. Ids below
    ``n_leaves`` are records; id ``n_leaves + s`` is the node made by merge ``s``.
    """

    n_leaves: int
    linkage: Linkage
    children: np.ndarray
    heights: np.ndarray
    sizes: np.ndarray

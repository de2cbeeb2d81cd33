from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd

from .config import FEATURE_COLUMNS, ORIGIN_COLUMN, QUALITY_COLUMN, QUALITY_RANGE
from .errors import InputValidationError, SchemaMismatchError
from .types import Dataset, Origin

logger = logging.getLogger(__name__)


def load_wine_dataset(
    red_path: str | Path,
    white_path: str | Path,
    sep: str = ",",
    id_column: str | None = None,
    feature_columns: Sequence[str] = FEATURE_COLUMNS,
) -> Dataset:
    """Read the red and white tables and concatenate them, red first.

    The colour of each wine is not a column of either table; it is taken
    from which file the row came from and kept as the ``origin`` label.
    """
    frames: list[pd.DataFrame] = []
    for origin, path in ((Origin.RED, red_path), (Origin.WHITE, white_path)):
        frame = _read_table(path, sep=sep)
        _check_columns(frame, feature_columns, source=str(path), id_column=id_column)
        frame = frame.copy()
        if id_column is None:
            frame["record_id"] = [f"{origin}-{i}" for i in range(len(frame))]
        else:
            frame["record_id"] = frame[id_column].astype(str)
        frame[ORIGIN_COLUMN] = str(origin)
        logger.info("Loaded %d %s wine records from %s", len(frame), origin, path)
        frames.append(frame)

    red, white = frames
    extra = sorted(set(red.columns) ^ set(white.columns))
    if extra:
        raise SchemaMismatchError(f"red and white sources have different columns: {extra}")

    combined = pd.concat(frames, ignore_index=True)
    return dataset_from_frame(combined, feature_columns=feature_columns)


def dataset_from_frame(
    frame: pd.DataFrame,
    origin: Origin | str | None = None,
    feature_columns: Sequence[str] = FEATURE_COLUMNS,
) -> Dataset:
    """Build a Dataset from a frame holding features, quality and origin.

    ``origin`` tags every row when the frame has no origin column. Record ids
    come from a ``record_id`` column when present, else from the index.
    """
    _check_columns(frame, feature_columns, source="frame")
    if origin is None and ORIGIN_COLUMN not in frame.columns:
        raise SchemaMismatchError(f"frame has no {ORIGIN_COLUMN!r} column and no origin was given")

    features = _numeric_block(frame, list(feature_columns))
    quality = _quality_values(frame)

    if origin is not None:
        origins = [Origin(origin)] * len(frame)
    else:
        try:
            origins = [Origin(str(value).strip().lower()) for value in frame[ORIGIN_COLUMN]]
        except ValueError as exc:
            raise InputValidationError(f"unknown origin label: {exc}") from exc

    if "record_id" in frame.columns:
        record_ids = [str(v) for v in frame["record_id"]]
    else:
        record_ids = [str(v) for v in frame.index]

    return Dataset(
        record_ids=record_ids,
        feature_names=tuple(feature_columns),
        features=features,
        origin=origins,
        quality=quality,
    )


def describe_by_origin(dataset: Dataset) -> pd.DataFrame:
    """Per-origin mean and standard deviation of every feature and quality."""
    frame = dataset.to_frame()
    columns = list(dataset.feature_names) + [QUALITY_COLUMN]
    stats = frame.groupby(ORIGIN_COLUMN)[columns].agg(["mean", "std"])
    stats.insert(0, ("count", ""), frame.groupby(ORIGIN_COLUMN).size())
    return stats


def _read_table(path: str | Path, sep: str) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise InputValidationError(f"input table not found: {path}")
    frame = pd.read_csv(path, sep=sep)
    frame.columns = [str(c).strip().strip('"') for c in frame.columns]
    return frame


def _check_columns(
    frame: pd.DataFrame,
    feature_columns: Sequence[str],
    source: str,
    id_column: str | None = None,
) -> None:
    required = list(feature_columns) + [QUALITY_COLUMN]
    if id_column is not None:
        required.append(id_column)
    missing = [c for c in required if c not in frame.columns]
    if missing:
        raise SchemaMismatchError(f"{source}: missing columns {missing}")


def _numeric_block(frame: pd.DataFrame, columns: list[str]) -> np.ndarray:
    block = frame[columns].apply(pd.to_numeric, errors="coerce")
    bad = block.isna()
    if bad.to_numpy().any():
        rows = [int(i) for i in np.where(bad.any(axis=1).to_numpy())[0][:10]]
        cols = [c for c in columns if bad[c].any()]
        raise InputValidationError(f"non-numeric or missing values in columns {cols} at rows {rows}")
    return block.to_numpy(dtype=float)


def _quality_values(frame: pd.DataFrame) -> np.ndarray:
    quality = pd.to_numeric(frame[QUALITY_COLUMN], errors="coerce")
    low, high = QUALITY_RANGE
    invalid = quality.isna() | (quality != quality.round()) | (quality < low) | (quality > high)
    if invalid.any():
        rows = [int(i) for i in np.where(invalid.to_numpy())[0][:10]]
        raise InputValidationError(f"quality must be an integer in [{low}, {high}]; bad rows {rows}")
    return quality.to_numpy().astype(int)

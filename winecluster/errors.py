from __future__ import annotations

from typing import Sequence


class WineClusterError(Exception):
    pass


class InputValidationError(WineClusterError, ValueError):
    """Malformed input rows or values."""


class SchemaMismatchError(InputValidationError):
    """Missing columns, or feature schemas that differ between sources."""


class DegenerateFeatureError(WineClusterError, ValueError):
    def __init__(self, columns: Sequence[str]) -> None:
        self.columns = list(columns)
        super().__init__(
            f"zero-variance feature columns cannot be standardized: {', '.join(self.columns)}; "
            "drop them before clustering"
        )


class InvalidClusterCountError(WineClusterError, ValueError):
    def __init__(self, k: int, n: int, message: str | None = None) -> None:
        self.k = k
        self.n = n
        super().__init__(message or f"cluster count k={k} is outside [1, {n}]")


class InvalidCutError(InvalidClusterCountError):
    def __init__(self, k: int, n: int) -> None:
        super().__init__(k, n, f"cannot cut a tree over {n} records into k={k} clusters")

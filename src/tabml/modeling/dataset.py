"""
In-memory tabular dataset and the row preparation used before training.

A Dataset wraps a pandas DataFrame together with a per-column type tag
(number, string, boolean). Rows are kept as loaded; cleaning happens in
prepare_training_data(), which only looks at the columns a model uses.
"""

from dataclasses import dataclass, field
from functools import cached_property
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping

import numpy as np
import pandas as pd

from tabml.config.settings import TaskKind
from tabml.errors import InsufficientData, InvalidInput
from tabml.utils.hashing import hash_dataframe
from tabml.utils.logging import get_logger
from tabml.utils.numeric import to_number

log = get_logger(__name__)


class ColumnType(str, Enum):
    """Scalar type of a dataset column."""

    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"


def infer_column_type(series: pd.Series) -> ColumnType:
    """Infer the column type from its pandas dtype."""
    if pd.api.types.is_bool_dtype(series):
        return ColumnType.BOOLEAN
    if pd.api.types.is_numeric_dtype(series):
        return ColumnType.NUMBER
    return ColumnType.STRING


def is_missing(value: Any) -> bool:
    """True for None, NaN and blank strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


class Dataset:
    """
    Ordered rows of named scalar columns.

    Attributes:
        frame: Underlying DataFrame (treated as read-only).
        column_types: Type tag per column.
    """

    def __init__(
        self,
        frame: pd.DataFrame,
        column_types: Mapping[str, ColumnType | str] | None = None,
    ) -> None:
        self.frame = frame.reset_index(drop=True)
        inferred = {str(col): infer_column_type(frame[col]) for col in frame.columns}
        if column_types:
            inferred.update({col: ColumnType(t) for col, t in column_types.items()})
        self.column_types: dict[str, ColumnType] = inferred

    @classmethod
    def from_records(
        cls,
        rows: Iterable[Mapping[str, Any]],
        column_types: Mapping[str, ColumnType | str] | None = None,
    ) -> "Dataset":
        """Build a dataset from a sequence of row mappings."""
        return cls(pd.DataFrame.from_records(list(rows)), column_types)

    @classmethod
    def from_csv(cls, path: Path) -> "Dataset":
        """Load a CSV file with pandas' type inference."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Dataset file not found: {path}")
        frame = pd.read_csv(path)
        log.info("Loaded dataset", path=str(path), n_rows=len(frame), n_columns=len(frame.columns))
        return cls(frame)

    @classmethod
    def empty(cls) -> "Dataset":
        """Dataset with no rows and no columns."""
        return cls(pd.DataFrame())

    def __len__(self) -> int:
        return len(self.frame)

    def __repr__(self) -> str:
        return f"Dataset(n_rows={len(self)}, columns={self.columns})"

    @property
    def columns(self) -> list[str]:
        """Column names in order."""
        return [str(c) for c in self.frame.columns]

    @property
    def shape(self) -> tuple[int, int]:
        """(rows, columns)."""
        return self.frame.shape

    @property
    def is_empty(self) -> bool:
        """True when the dataset holds no rows."""
        return len(self.frame) == 0

    @property
    def numeric_columns(self) -> list[str]:
        """Columns tagged as numbers."""
        return [c for c, t in self.column_types.items() if t == ColumnType.NUMBER]

    @property
    def categorical_columns(self) -> list[str]:
        """Columns tagged as strings or booleans."""
        return [c for c, t in self.column_types.items() if t != ColumnType.NUMBER]

    @cached_property
    def fingerprint(self) -> str:
        """Content hash of the dataset, computed once per instance."""
        return hash_dataframe(self.frame)

    def missing_columns(self, columns: Iterable[str]) -> list[str]:
        """Names from columns that the dataset does not have."""
        present = set(self.columns)
        return [c for c in columns if c not in present]

    def numeric_matrix(self, columns: list[str]) -> np.ndarray:
        """
        Columns as a float matrix for distance computations.

        Cells that are missing or not numeric become 0, as do columns
        the dataset does not have.
        """
        if not columns:
            return np.zeros((len(self), 0))
        block = self.frame.reindex(columns=columns).apply(pd.to_numeric, errors="coerce")
        return block.to_numpy(dtype=float, na_value=0.0)


@dataclass
class PreparedData:
    """
    Numeric training matrices extracted from a dataset.

    Attributes:
        X: Feature matrix of the kept rows.
        y: Target vector (None for clustering without a target).
        row_index: Positions of the kept rows in the dataset.
        class_labels: Original target values of encoded classes.
        n_dropped: Rows dropped for missing or non-numeric values.
    """

    X: np.ndarray
    y: np.ndarray | None
    row_index: np.ndarray
    class_labels: list[Any] | None = None
    n_dropped: int = 0
    features: list[str] = field(default_factory=list)

    @property
    def n_samples(self) -> int:
        return len(self.X)


def encode_class_labels(values: list[Any]) -> tuple[np.ndarray, list[Any] | None]:
    """
    Encode classification targets.

    Numeric targets are kept as-is (class_labels is None). Otherwise each
    distinct value maps to its index in first-appearance order.

    Raises:
        InvalidInput: If fewer than 2 distinct values are present.
    """
    if len({str(v) for v in values}) < 2:
        raise InvalidInput("Target column must have at least 2 unique values for classification")

    numbers = [to_number(v) if not isinstance(v, str) else None for v in values]
    if all(n is not None for n in numbers):
        return np.asarray(numbers, dtype=float), None

    first_seen: dict[str, Any] = {}
    for v in values:
        first_seen.setdefault(str(v), v)
    mapping = {key: i for i, key in enumerate(first_seen)}
    encoded = np.asarray([mapping[str(v)] for v in values], dtype=float)
    return encoded, list(first_seen.values())


def prepare_training_data(
    dataset: Dataset,
    features: list[str],
    target: str | None,
    task: TaskKind,
) -> PreparedData:
    """
    Extract the numeric matrices a trainer needs.

    Rows whose selected features are missing, blank or non-numeric are
    dropped, as are rows without a target value (supervised tasks).

    Args:
        dataset: Source dataset.
        features: Ordered feature columns.
        target: Target column (required unless task is clustering).
        task: Learning task.

    Returns:
        PreparedData with the kept rows.

    Raises:
        InvalidInput: On unknown columns, a missing target, a non-numeric
            regression target or a single-class classification target.
        InsufficientData: If no rows survive cleaning.
    """
    if not features:
        raise InvalidInput("At least one feature column must be selected")
    if task != TaskKind.CLUSTERING and not target:
        raise InvalidInput(f"A target column is required for {task.value}")

    wanted = features + ([target] if target else [])
    missing = dataset.missing_columns(wanted)
    if missing:
        raise InvalidInput(f"Unknown columns: {', '.join(missing)}")

    if dataset.is_empty:
        raise InsufficientData("No data available for training")

    block = dataset.frame[features]
    numeric = block.apply(lambda col: col.map(to_number))
    keep = numeric.notna().all(axis=1)

    if target and task != TaskKind.CLUSTERING:
        raw_target = dataset.frame[target]
        keep &= ~raw_target.map(is_missing)

    kept_index = np.flatnonzero(keep.to_numpy())
    n_dropped = len(dataset) - len(kept_index)
    if len(kept_index) == 0:
        raise InsufficientData("No valid data rows after filtering missing values")

    X = numeric.iloc[kept_index].to_numpy(dtype=float)

    y: np.ndarray | None = None
    class_labels: list[Any] | None = None
    if target and task == TaskKind.CLASSIFICATION:
        target_values = raw_target.iloc[kept_index].tolist()
        y, class_labels = encode_class_labels(target_values)
    elif target and task == TaskKind.REGRESSION:
        target_values = raw_target.iloc[kept_index].tolist()
        converted = [to_number(v) for v in target_values]
        bad = [v for v, n in zip(target_values, converted) if n is None]
        if bad:
            raise InvalidInput(f"Non-numeric value found in target column: {bad[0]!r}")
        y = np.asarray(converted, dtype=float)

    if n_dropped:
        log.info("Dropped rows with missing values", n_dropped=n_dropped, n_kept=len(kept_index))

    return PreparedData(
        X=X,
        y=y,
        row_index=kept_index,
        class_labels=class_labels,
        n_dropped=n_dropped,
        features=list(features),
    )


def sequential_split(
    n_samples: int, test_size: float
) -> tuple[slice, slice]:
    """
    Split positions into a leading train part and a trailing test part.

    The train part holds floor(n * (1 - test_size)) rows, at least one.
    """
    n_train = max(1, int(np.floor(n_samples * (1.0 - test_size))))
    n_train = min(n_train, n_samples)
    return slice(0, n_train), slice(n_train, n_samples)

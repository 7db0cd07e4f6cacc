"""
Binary fingerprint feature matrix with sensitivity labels.

A FeatureMatrix is an immutable, explicitly-typed view over samples (rows)
and binary features (columns). Labels are three-valued: Sensitive, Resistant,
or missing (None). Samples with a missing label form the test subset and are
never used for training or as evaluation ground truth.

Every projection or filter returns a new matrix; nothing is modified in place.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..exceptions import InvalidMatrixError


class Label(str, Enum):
    """Binary sensitivity label."""
    SENSITIVE = "Sensitive"
    RESISTANT = "Resistant"


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _coerce_label(value: Any) -> Optional[Label]:
    if _is_missing(value):
        return None
    if isinstance(value, Label):
        return value
    try:
        return Label(value)
    except ValueError:
        raise InvalidMatrixError(
            f"Label must be one of {[l.value for l in Label]} or missing, got {value!r}"
        )


class FeatureMatrix:
    """
    Samples x binary features, plus a possibly-missing label per sample.

    Args:
        sample_ids: Unique sample identifiers, in row order
        feature_names: Ordered, unique feature names
        values: 2D array-like of 0/1 values, one row per sample
        labels: Label, its string value, or None per sample

    Raises:
        InvalidMatrixError: on any structural violation

    Example:
        >>> matrix = FeatureMatrix(
        ...     sample_ids=["a", "b", "c"],
        ...     feature_names=["bit_0", "bit_1"],
        ...     values=[[1, 0], [0, 1], [1, 1]],
        ...     labels=["Sensitive", "Resistant", None],
        ... )
        >>> len(matrix.training_subset())
        2
    """

    def __init__(
        self,
        sample_ids: Sequence[Any],
        feature_names: Sequence[str],
        values: Any,
        labels: Sequence[Any],
    ):
        sample_ids = tuple(sample_ids)
        feature_names = tuple(feature_names)
        labels = tuple(_coerce_label(l) for l in labels)

        if len(set(sample_ids)) != len(sample_ids):
            raise InvalidMatrixError("Sample identifiers must be unique")
        if len(set(feature_names)) != len(feature_names):
            raise InvalidMatrixError("Feature names must be unique")
        if len(labels) != len(sample_ids):
            raise InvalidMatrixError(
                f"Got {len(labels)} labels for {len(sample_ids)} samples"
            )

        array = self._validate_values(values, len(sample_ids), len(feature_names))
        array.setflags(write=False)

        self._sample_ids = sample_ids
        self._feature_names = feature_names
        self._values = array
        self._labels = labels

    @staticmethod
    def _validate_values(values: Any, n_samples: int, n_features: int) -> np.ndarray:
        if isinstance(values, np.ndarray):
            if values.ndim != 2 or values.shape[1] != n_features:
                raise InvalidMatrixError(
                    f"Feature matrix has shape {values.shape}, expected (*, {n_features})"
                )
            rows = values
        else:
            rows = list(values)
            for i, row in enumerate(rows):
                if len(row) != n_features:
                    raise InvalidMatrixError(
                        f"Row {i} has {len(row)} values, expected {n_features}"
                    )

        if len(rows) != n_samples:
            raise InvalidMatrixError(
                f"Got {len(rows)} feature rows for {n_samples} samples"
            )

        try:
            array = np.array(rows, dtype=float).reshape(n_samples, n_features)
        except (TypeError, ValueError) as e:
            raise InvalidMatrixError(f"Feature values are not numeric: {e}")

        binary = (array == 0) | (array == 1)
        if not binary.all():
            row, col = np.argwhere(~binary)[0]
            raise InvalidMatrixError(
                f"Feature column '{col}' is not binary "
                f"(row {row} has value {array[row, col]})"
            )

        return array.astype(np.int8)

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        id_column: str,
        label_column: str,
        feature_columns: Sequence[str],
        sensitive_value: Any = "Sensitive",
        resistant_value: Any = "Resistant",
    ) -> "FeatureMatrix":
        """
        Build a matrix from a DataFrame using an explicit schema.

        Args:
            df: Input table
            id_column: Column holding unique sample identifiers
            label_column: Column holding the label (null = missing)
            feature_columns: Binary feature columns, in the order to keep
            sensitive_value: Raw value that encodes Sensitive
            resistant_value: Raw value that encodes Resistant

        Returns:
            FeatureMatrix
        """
        required = [id_column, label_column, *feature_columns]
        absent = [c for c in required if c not in df.columns]
        if absent:
            raise InvalidMatrixError(f"Columns not found in table: {absent}")

        mapping = {sensitive_value: Label.SENSITIVE, resistant_value: Label.RESISTANT}
        labels = []
        for raw in df[label_column].tolist():
            if _is_missing(raw):
                labels.append(None)
            elif raw in mapping:
                labels.append(mapping[raw])
            else:
                raise InvalidMatrixError(
                    f"Unexpected value {raw!r} in label column '{label_column}'"
                )

        return cls(
            sample_ids=df[id_column].tolist(),
            feature_names=list(feature_columns),
            values=df[list(feature_columns)].to_numpy(),
            labels=labels,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def sample_ids(self) -> Tuple[Any, ...]:
        return self._sample_ids

    @property
    def feature_names(self) -> Tuple[str, ...]:
        return self._feature_names

    @property
    def values(self) -> np.ndarray:
        """Read-only (n_samples, n_features) int8 array."""
        return self._values

    @property
    def labels(self) -> Tuple[Optional[Label], ...]:
        return self._labels

    @property
    def n_features(self) -> int:
        return len(self._feature_names)

    def __len__(self) -> int:
        return len(self._sample_ids)

    def __repr__(self) -> str:
        n_labeled = sum(l is not None for l in self._labels)
        return (
            f"FeatureMatrix(n_samples={len(self)}, n_features={self.n_features}, "
            f"n_labeled={n_labeled})"
        )

    def feature_index(self, name: str) -> int:
        try:
            return self._feature_names.index(name)
        except ValueError:
            raise KeyError(f"Unknown feature: {name}")

    # ------------------------------------------------------------------
    # Projections and partitions
    # ------------------------------------------------------------------

    def take(self, indices: Iterable[int]) -> "FeatureMatrix":
        """Return a new matrix holding the given rows, in the given order."""
        idx = np.asarray(list(indices), dtype=int)
        return FeatureMatrix(
            sample_ids=[self._sample_ids[i] for i in idx],
            feature_names=self._feature_names,
            values=self._values[idx],
            labels=[self._labels[i] for i in idx],
        )

    def select_features(self, names: Sequence[str]) -> "FeatureMatrix":
        """Return a new matrix restricted to the named feature columns."""
        cols = [self.feature_index(n) for n in names]
        return FeatureMatrix(
            sample_ids=self._sample_ids,
            feature_names=list(names),
            values=self._values[:, cols],
            labels=self._labels,
        )

    def training_subset(self) -> "FeatureMatrix":
        """All samples with a Sensitive or Resistant label."""
        return self.take(i for i, l in enumerate(self._labels) if l is not None)

    def test_subset(self) -> "FeatureMatrix":
        """All samples with a missing label."""
        return self.take(i for i, l in enumerate(self._labels) if l is None)

    def label_vector(self) -> np.ndarray:
        """
        Labels encoded as 1 (Sensitive) / 0 (Resistant).

        Raises:
            InvalidMatrixError: if any label is missing
        """
        if any(l is None for l in self._labels):
            raise InvalidMatrixError(
                "label_vector() requires a fully labeled matrix; "
                "use training_subset() first"
            )
        return np.array([l is Label.SENSITIVE for l in self._labels], dtype=int)

    def to_frame(self) -> pd.DataFrame:
        """Tabular copy: id, label, then one column per feature."""
        df = pd.DataFrame(self._values, columns=list(self._feature_names))
        df.insert(0, "label", [l.value if l is not None else None for l in self._labels])
        df.insert(0, "sample_id", list(self._sample_ids))
        return df


def label_counts(labels: Iterable[Optional[Label]]) -> List[int]:
    """Return [n_sensitive, n_resistant] over the non-missing labels."""
    labels = list(labels)
    return [
        sum(l is Label.SENSITIVE for l in labels),
        sum(l is Label.RESISTANT for l in labels),
    ]

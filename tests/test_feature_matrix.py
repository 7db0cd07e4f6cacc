"""
Unit tests for the FeatureMatrix container.
"""

import numpy as np
import pandas as pd
import pytest

from bioactivity_eval.data.feature_matrix import FeatureMatrix, Label, label_counts
from bioactivity_eval.exceptions import InvalidMatrixError


def _matrix(**overrides):
    kwargs = dict(
        sample_ids=["a", "b", "c", "d"],
        feature_names=["bit_0", "bit_1"],
        values=[[1, 0], [0, 1], [1, 1], [0, 0]],
        labels=["Sensitive", "Resistant", None, Label.SENSITIVE],
    )
    kwargs.update(overrides)
    return FeatureMatrix(**kwargs)


class TestConstruction:
    """Test schema validation."""

    def test_valid_matrix(self):
        matrix = _matrix()

        assert len(matrix) == 4
        assert matrix.n_features == 2
        assert matrix.feature_names == ("bit_0", "bit_1")
        assert matrix.labels == (Label.SENSITIVE, Label.RESISTANT, None, Label.SENSITIVE)
        assert matrix.values.dtype == np.int8

    def test_ragged_row(self):
        with pytest.raises(InvalidMatrixError, match="Row 1"):
            _matrix(values=[[1, 0], [0], [1, 1], [0, 0]])

    def test_array_with_wrong_width(self):
        with pytest.raises(InvalidMatrixError):
            _matrix(values=np.zeros((4, 3)))

    def test_row_count_mismatch(self):
        with pytest.raises(InvalidMatrixError):
            _matrix(values=[[1, 0], [0, 1], [1, 1]])

    def test_non_binary_value(self):
        with pytest.raises(InvalidMatrixError, match="not binary"):
            _matrix(values=[[1, 0], [0, 2], [1, 1], [0, 0]])

    def test_nan_value(self):
        with pytest.raises(InvalidMatrixError):
            _matrix(values=[[1, 0], [0, np.nan], [1, 1], [0, 0]])

    def test_duplicate_sample_ids(self):
        with pytest.raises(InvalidMatrixError, match="unique"):
            _matrix(sample_ids=["a", "a", "c", "d"])

    def test_duplicate_feature_names(self):
        with pytest.raises(InvalidMatrixError, match="unique"):
            _matrix(feature_names=["bit_0", "bit_0"])

    def test_unknown_label(self):
        with pytest.raises(InvalidMatrixError):
            _matrix(labels=["Sensitive", "Partial", None, None])

    def test_nan_label_is_missing(self):
        matrix = _matrix(labels=["Sensitive", float("nan"), None, "Resistant"])
        assert matrix.labels[1] is None

    def test_values_are_read_only(self):
        matrix = _matrix()
        with pytest.raises(ValueError):
            matrix.values[0, 0] = 0


class TestPartitions:
    """Test training/test partitioning and projections."""

    def test_training_subset(self):
        training = _matrix().training_subset()

        assert training.sample_ids == ("a", "b", "d")
        assert None not in training.labels

    def test_test_subset(self):
        test = _matrix().test_subset()

        assert test.sample_ids == ("c",)
        assert test.values.tolist() == [[1, 1]]

    def test_subsets_partition_matrix(self, panel_matrix):
        training = panel_matrix.training_subset()
        test = panel_matrix.test_subset()

        assert len(training) + len(test) == len(panel_matrix)
        assert set(training.sample_ids).isdisjoint(test.sample_ids)

    def test_empty_test_subset(self, perfect_matrix):
        test = perfect_matrix.test_subset()

        assert len(test) == 0
        assert test.values.shape == (0, 1)

    def test_label_vector(self):
        y = _matrix().training_subset().label_vector()
        np.testing.assert_array_equal(y, [1, 0, 1])

    def test_label_vector_requires_labels(self):
        with pytest.raises(InvalidMatrixError):
            _matrix().label_vector()

    def test_select_features(self):
        projected = _matrix().select_features(["bit_1"])

        assert projected.feature_names == ("bit_1",)
        assert projected.values[:, 0].tolist() == [0, 1, 1, 0]

    def test_select_unknown_feature(self):
        with pytest.raises(KeyError):
            _matrix().select_features(["bit_9"])

    def test_take_preserves_order(self):
        taken = _matrix().take([3, 0])
        assert taken.sample_ids == ("d", "a")

    def test_label_counts(self):
        assert label_counts(_matrix().labels) == [2, 1]


class TestDataFrameRoundTrip:
    """Test explicit-schema construction from tables."""

    def test_from_dataframe(self):
        df = pd.DataFrame({
            "cell_line": ["x1", "x2", "x3"],
            "response": ["S", "R", None],
            "fp_1": [1, 0, 1],
            "fp_2": [0, 0, 1],
            "unused": [5.0, 6.0, 7.0],
        })

        matrix = FeatureMatrix.from_dataframe(
            df, "cell_line", "response", ["fp_2", "fp_1"],
            sensitive_value="S", resistant_value="R",
        )

        assert matrix.feature_names == ("fp_2", "fp_1")
        assert matrix.values.tolist() == [[0, 1], [0, 0], [1, 1]]
        assert matrix.labels == (Label.SENSITIVE, Label.RESISTANT, None)

    def test_missing_column(self):
        df = pd.DataFrame({"id": [1], "label": ["Sensitive"], "fp_1": [1]})

        with pytest.raises(InvalidMatrixError, match="fp_2"):
            FeatureMatrix.from_dataframe(df, "id", "label", ["fp_1", "fp_2"])

    def test_unexpected_label_value(self):
        df = pd.DataFrame({"id": [1, 2], "label": ["Sensitive", "Maybe"], "fp_1": [1, 0]})

        with pytest.raises(InvalidMatrixError, match="Maybe"):
            FeatureMatrix.from_dataframe(df, "id", "label", ["fp_1"])

    def test_to_frame(self):
        df = _matrix().to_frame()

        assert list(df.columns) == ["sample_id", "label", "bit_0", "bit_1"]
        assert df["label"].tolist()[:2] == ["Sensitive", "Resistant"]
        assert df["label"].isna().sum() == 1

"""
Pytest configuration and shared fixtures for bioactivity-eval tests.
"""

import numpy as np
import pandas as pd
import pytest

from bioactivity_eval.data.feature_matrix import FeatureMatrix, Label
from bioactivity_eval.exceptions import FitFailure
from bioactivity_eval.models.scorers import FittedScorer, ScorerAdapter, config_id


# ============================================================================
# Mock scorers
# ============================================================================

class _ConstantFitted(FittedScorer):
    def __init__(self, method, params, feature_names, value):
        super().__init__(method, params, feature_names)
        self.value = value

    def predict_probabilities(self, matrix):
        self._check_features(matrix)
        return np.full(len(matrix), self.value)


class ConstantScorer(ScorerAdapter):
    """Always predicts the same probability."""

    def __init__(self, name="constant", value=0.5, param_grid=None):
        super().__init__(name, param_grid)
        self.value = value

    def fit(self, training_samples, params, random_state=None):
        return _ConstantFitted(self.name, params, training_samples.feature_names, self.value)


class _EchoFitted(FittedScorer):
    def __init__(self, method, params, feature_names, feature):
        super().__init__(method, params, feature_names)
        self.column = self.feature_names.index(feature)

    def predict_probabilities(self, matrix):
        self._check_features(matrix)
        return matrix.values[:, self.column].astype(float)


class EchoScorer(ScorerAdapter):
    """Scores each sample by the value of one feature (1 -> high probability)."""

    def __init__(self, name="echo", feature="bit_0", param_grid=None):
        super().__init__(name, param_grid)
        self.feature = feature

    def fit(self, training_samples, params, random_state=None):
        return _EchoFitted(self.name, params, training_samples.feature_names, self.feature)


class FlakyScorer(ScorerAdapter):
    """Raises FitFailure for every configuration with fail=True."""

    def __init__(self, name="flaky", param_grid=None):
        super().__init__(name, param_grid or {"fail": [False, True]})

    def fit(self, training_samples, params, random_state=None):
        if params.get("fail"):
            raise FitFailure(self.name, config_id(params), "configured to fail")
        return _ConstantFitted(self.name, params, training_samples.feature_names, 0.25)


class RecordingScorer(ScorerAdapter):
    """Remembers which samples each fit was trained on (sequential runs only)."""

    def __init__(self, name="recording", param_grid=None):
        super().__init__(name, param_grid)
        self.seen = []

    def fit(self, training_samples, params, random_state=None):
        self.seen.append(set(training_samples.sample_ids))
        fitted = _ConstantFitted(self.name, params, training_samples.feature_names, 0.5)
        fitted.training_ids = set(training_samples.sample_ids)
        return fitted


# ============================================================================
# Matrices
# ============================================================================

@pytest.fixture
def perfect_matrix():
    """10 labeled samples, one feature perfectly correlated with the label."""
    labels = [Label.SENSITIVE] * 5 + [Label.RESISTANT] * 5
    return FeatureMatrix(
        sample_ids=[f"s{i}" for i in range(10)],
        feature_names=["bit_0"],
        values=[[1]] * 5 + [[0]] * 5,
        labels=labels,
    )


@pytest.fixture
def panel_matrix():
    """20 labeled (10/10) + 4 unlabeled samples, 6 features; bit_0 is informative."""
    rng = np.random.default_rng(0)
    n_labeled, n_unlabeled, n_features = 20, 4, 6
    n = n_labeled + n_unlabeled

    labels = [Label.SENSITIVE if i % 2 == 0 else Label.RESISTANT for i in range(n_labeled)]
    labels += [None] * n_unlabeled

    values = rng.integers(0, 2, size=(n, n_features))
    # bit_0 tracks the label except for one sample of each class (9/1 vs 1/9)
    for i, label in enumerate(labels[:n_labeled]):
        values[i, 0] = int(label is Label.SENSITIVE)
    values[0, 0] = 0
    values[1, 0] = 1

    return FeatureMatrix(
        sample_ids=[f"cl_{i:02d}" for i in range(n)],
        feature_names=[f"bit_{j}" for j in range(n_features)],
        values=values,
        labels=labels,
    )


@pytest.fixture
def twenty_sample_matrix():
    """20 labeled samples with an imbalanced 6/14 label split."""
    rng = np.random.default_rng(1)
    labels = [Label.SENSITIVE] * 6 + [Label.RESISTANT] * 14
    return FeatureMatrix(
        sample_ids=list(range(20)),
        feature_names=["bit_0", "bit_1", "bit_2"],
        values=rng.integers(0, 2, size=(20, 3)),
        labels=labels,
    )


@pytest.fixture
def panel_csv(tmp_path, panel_matrix):
    """Panel matrix written as CSV with fp_ feature columns and blank labels for test samples."""
    df = panel_matrix.to_frame()
    df = df.rename(columns={f: f"fp_{f}" for f in panel_matrix.feature_names})
    df = df.rename(columns={"sample_id": "cell_line", "label": "response"})
    csv_path = tmp_path / "panel.csv"
    df.to_csv(csv_path, index=False)
    return csv_path


@pytest.fixture
def output_dir(tmp_path):
    """Create a temporary output directory."""
    out_dir = tmp_path / "output"
    out_dir.mkdir()
    return out_dir

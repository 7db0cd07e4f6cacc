"""
Unit tests for univariate association testing and FDR adjustment.
"""

import math

import numpy as np
import pytest
from loguru import logger
from scipy import stats

from bioactivity_eval.data.feature_matrix import FeatureMatrix, Label
from bioactivity_eval.evaluation.significance_testing import (
    AssociationResult,
    associations_to_frame,
    benjamini_hochberg_adjust,
    compute_associations,
    contingency_tables,
    fisher_exact_pvalue,
    significant_features,
)
from bioactivity_eval.exceptions import EmptyTrainingSetError, InvalidMatrixError


class TestFisherExact:
    """Test the exact test on single tables."""

    def test_perfect_five_five_split(self):
        odds, p = fisher_exact_pvalue(np.array([[5, 0], [0, 5]]))

        # 2 / C(10, 5)
        assert p == pytest.approx(2 / 252)
        assert p <= 0.0080

    def test_matches_scipy(self):
        table = np.array([[7, 2], [3, 8]])
        _, expected = stats.fisher_exact(table)

        _, p = fisher_exact_pvalue(table)

        assert p == pytest.approx(expected)

    def test_empty_row_gives_one(self):
        odds, p = fisher_exact_pvalue(np.array([[4, 6], [0, 0]]))

        assert p == 1.0
        assert math.isnan(odds)

    def test_empty_column_gives_one(self):
        _, p = fisher_exact_pvalue(np.array([[3, 0], [2, 0]]))
        assert p == 1.0


class TestContingencyTables:
    """Test vectorised table construction."""

    def test_counts(self):
        values = np.array([[1, 0], [1, 1], [0, 1], [0, 0], [1, 0]])
        y = np.array([1, 1, 0, 0, 0])

        tables = contingency_tables(values, y)

        assert tables.shape == (2, 2, 2)
        # bit 0: present & S = 2, present & R = 1, absent & S = 0, absent & R = 2
        assert tables[0].tolist() == [[2, 1], [0, 2]]
        assert tables[1].tolist() == [[1, 1], [1, 2]]
        assert tables.sum(axis=(1, 2)).tolist() == [5, 5]


class TestBenjaminiHochberg:
    """Test the BH step-up adjustment."""

    def test_known_values(self):
        adjusted = benjamini_hochberg_adjust([0.01, 0.04, 0.03, 0.20])

        np.testing.assert_allclose(adjusted, [0.04, 0.16 / 3, 0.16 / 3, 0.20])

    def test_all_equal_at_threshold(self):
        adjusted = benjamini_hochberg_adjust([0.01, 0.02, 0.03, 0.04, 0.05])
        np.testing.assert_allclose(adjusted, [0.05] * 5)

    def test_capped_at_one(self):
        adjusted = benjamini_hochberg_adjust([0.9, 0.95, 1.0])
        assert adjusted.max() <= 1.0

    def test_monotone_in_raw_order(self):
        rng = np.random.default_rng(3)
        pvalues = rng.random(200) ** 3

        adjusted = benjamini_hochberg_adjust(pvalues)
        by_raw = adjusted[np.argsort(pvalues, kind="stable")]

        assert np.all(np.diff(by_raw) >= 0)
        assert np.all(adjusted >= pvalues - 1e-15)

    def test_empty(self):
        assert len(benjamini_hochberg_adjust([])) == 0


class TestComputeAssociations:
    """Test the full per-feature pipeline."""

    def test_perfect_feature(self, perfect_matrix):
        results = compute_associations(perfect_matrix.training_subset())

        assert len(results) == 1
        r = results[0]
        assert isinstance(r, AssociationResult)
        assert r.feature == "bit_0"
        assert r.pvalue <= 0.0080
        assert r.fdr == pytest.approx(r.pvalue)
        assert r.contingency_table == ((5, 0), (0, 5))

    def test_constant_feature_does_not_crash(self):
        matrix = FeatureMatrix(
            sample_ids=range(6),
            feature_names=["always_on", "signal"],
            values=[[1, 1], [1, 1], [1, 1], [1, 0], [1, 0], [1, 0]],
            labels=["Sensitive"] * 3 + ["Resistant"] * 3,
        )

        results = {r.feature: r for r in compute_associations(matrix)}

        assert results["always_on"].pvalue == 1.0
        assert results["always_on"].n_absent_sensitive == 0
        assert results["always_on"].n_absent_resistant == 0

    def test_ordering(self, panel_matrix):
        results = compute_associations(panel_matrix.training_subset())

        keys = [(r.fdr, r.pvalue, r.column_index) for r in results]
        assert keys == sorted(keys)
        assert {r.feature for r in results} == set(panel_matrix.feature_names)
        assert results[0].feature == "bit_0"

    def test_ties_keep_column_order(self):
        matrix = FeatureMatrix(
            sample_ids=range(4),
            feature_names=["c", "a", "b"],
            values=[[1, 1, 1], [1, 1, 1], [0, 0, 0], [0, 0, 0]],
            labels=["Sensitive", "Resistant", "Sensitive", "Resistant"],
        )

        results = compute_associations(matrix)

        assert [r.feature for r in results] == ["c", "a", "b"]

    def test_bh_monotonicity_over_results(self, panel_matrix):
        results = compute_associations(panel_matrix.training_subset())

        by_raw_desc = sorted(results, key=lambda r: r.pvalue, reverse=True)
        fdrs = [r.fdr for r in by_raw_desc]
        assert all(a >= b for a, b in zip(fdrs, fdrs[1:]))

    def test_parallel_matches_sequential(self, panel_matrix):
        training = panel_matrix.training_subset()

        sequential = compute_associations(training, n_jobs=1)
        parallel = compute_associations(training, n_jobs=2)

        assert [r.feature for r in sequential] == [r.feature for r in parallel]
        np.testing.assert_allclose([r.fdr for r in sequential], [r.fdr for r in parallel])

    def test_empty_training_set(self, panel_matrix):
        empty = panel_matrix.take([])

        with pytest.raises(EmptyTrainingSetError):
            compute_associations(empty)

    def test_unlabeled_samples_rejected(self, panel_matrix):
        with pytest.raises(InvalidMatrixError):
            compute_associations(panel_matrix)


class TestReporting:
    """Test helpers consumed by report generation."""

    def test_significant_features(self, perfect_matrix):
        results = compute_associations(perfect_matrix.training_subset())

        assert significant_features(results, fdr=0.05) == ["bit_0"]
        assert significant_features(results, fdr=0.001) == []

    def test_frame(self, panel_matrix):
        results = compute_associations(panel_matrix.training_subset())
        df = associations_to_frame(results)

        assert len(df) == panel_matrix.n_features
        assert {"feature", "pvalue", "fdr", "odds_ratio"} <= set(df.columns)
        assert df["feature"].tolist() == [r.feature for r in results]

    def test_logged_count_uses_threshold(self, perfect_matrix):
        messages = []
        sink_id = logger.add(messages.append, format="{message}", level="INFO")
        try:
            compute_associations(perfect_matrix, fdr_threshold=0.001)
        finally:
            logger.remove(sink_id)

        summary = [m for m in messages if m.startswith("Tested")]
        assert summary == ["Tested 1 features on 10 samples; 0 at FDR <= 0.001\n"]

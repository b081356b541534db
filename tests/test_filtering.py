"""Tests for quality control transforms."""

import logging

import numpy as np
import pandas as pd
import pytest

from coexnet.core.expression import ExpressionMatrix
from coexnet.quality import DegenerateFeatureFilter, MedianImputer, SampleOutlierFilter
from conftest import make_matrix


@pytest.fixture
def gappy_matrix():
    rng = np.random.RandomState(1)
    data = rng.randn(10, 5)
    data[:, 1] = 3.0                # constant
    data[:6, 2] = np.nan            # 60% missing
    data[0, 3] = np.nan             # one gap
    data[4, 4] = np.inf             # non-finite counts as missing
    return make_matrix(data)


class TestDegenerateFeatureFilter:
    def test_drops_constant_and_sparse(self, gappy_matrix):
        f = DegenerateFeatureFilter(max_missing_fraction=0.5)
        filtered = f.apply(gappy_matrix)
        assert list(filtered.feature_ids) == ["F000", "F003", "F004"]
        assert f.dropped_features == ["F001", "F002"]

    def test_looser_missing_threshold(self, gappy_matrix):
        filtered = DegenerateFeatureFilter(max_missing_fraction=0.7).apply(gappy_matrix)
        assert "F002" in filtered.feature_ids

    def test_variance_floor(self):
        data = np.column_stack([np.arange(6.0), 0.01 * np.arange(6.0)])
        f = DegenerateFeatureFilter(min_variance=0.1)
        filtered = f.apply(make_matrix(data))
        assert list(filtered.feature_ids) == ["F000"]

    def test_input_untouched(self, gappy_matrix):
        before = gappy_matrix.data.copy()
        DegenerateFeatureFilter().apply(gappy_matrix)
        np.testing.assert_array_equal(gappy_matrix.data, before)

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            DegenerateFeatureFilter(max_missing_fraction=1.5)
        with pytest.raises(ValueError):
            DegenerateFeatureFilter(min_variance=-1)

    def test_single_sample_rejected(self):
        with pytest.raises(ValueError, match="cannot be applied"):
            DegenerateFeatureFilter().apply(make_matrix(np.ones((1, 3))))


class TestMedianImputer:
    def test_fills_with_feature_median(self, gappy_matrix):
        matrix = DegenerateFeatureFilter().apply(gappy_matrix)
        imputer = MedianImputer()
        complete = imputer.apply(matrix)

        assert imputer.n_imputed == 2
        assert np.all(np.isfinite(complete.data))
        column = matrix.data[1:, 1]
        assert complete.data[0, 1] == pytest.approx(np.median(column))

    def test_complete_matrix_unchanged(self, random_matrix):
        imputer = MedianImputer()
        result = imputer.apply(random_matrix)
        assert imputer.n_imputed == 0
        np.testing.assert_array_equal(result.data, random_matrix.data)

    def test_all_missing_feature_rejected(self):
        data = np.random.RandomState(0).randn(5, 2)
        data[:, 0] = np.nan
        with pytest.raises(ValueError, match="no observed values"):
            MedianImputer().apply(make_matrix(data))


class TestSampleOutlierFilter:
    @pytest.fixture
    def outlier_matrix(self):
        rng = np.random.RandomState(8)
        data = rng.randn(20, 5)
        data[3] += 50.0
        metadata = pd.DataFrame({'group': ['a', 'b'] * 10})
        return make_matrix(data, metadata=metadata)

    def test_injected_outlier_removed(self, outlier_matrix, caplog):
        f = SampleOutlierFilter(cut_height=20.0, min_cluster_size=10)
        with caplog.at_level(logging.WARNING, logger="coexnet.quality.filtering"):
            filtered = f.apply(outlier_matrix)
        assert f.dropped_samples == ["S03"]
        assert filtered.n_samples == 19
        assert filtered.sample_metadata.index.equals(filtered.sample_ids)
        assert "S03" in caplog.text

    def test_integer_sample_ids(self, outlier_matrix, caplog):
        sample_ids = pd.Index(range(outlier_matrix.n_samples))
        matrix = ExpressionMatrix(
            outlier_matrix.data, sample_ids, outlier_matrix.feature_ids,
            outlier_matrix.sample_metadata.set_axis(sample_ids),
        )
        f = SampleOutlierFilter(cut_height=20.0, min_cluster_size=10)
        with caplog.at_level(logging.WARNING, logger="coexnet.quality.filtering"):
            filtered = f.apply(matrix)
        assert f.dropped_samples == [3]
        assert 3 not in filtered.sample_ids
        assert "outlier sample(s) at height 20.0: 3" in caplog.text

    def test_no_cut_height_keeps_everything(self, outlier_matrix):
        f = SampleOutlierFilter()
        filtered = f.apply(outlier_matrix)
        assert filtered.n_samples == 20
        assert f.linkage_matrix.shape == (19, 4)

    def test_no_eligible_cluster(self, outlier_matrix):
        with pytest.raises(ValueError, match="no sample cluster"):
            SampleOutlierFilter(cut_height=20.0, min_cluster_size=25).apply(outlier_matrix)

    def test_missing_values_rejected(self):
        data = np.random.RandomState(0).randn(6, 3)
        data[1, 1] = np.nan
        with pytest.raises(ValueError, match="non-finite"):
            SampleOutlierFilter(cut_height=5.0).apply(make_matrix(data))

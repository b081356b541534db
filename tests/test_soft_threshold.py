"""Tests for adjacency construction and soft-threshold power selection."""

import logging

import numpy as np
import pytest

from coexnet.network.similarity import compute_similarity
from coexnet.network.soft_threshold import (
    ScaleFreeFit,
    adjacency_matrix,
    connectivity,
    evaluate_power,
    pick_soft_threshold,
    scale_free_fit,
)


@pytest.fixture
def similarity(module_matrix):
    return compute_similarity(module_matrix)


class TestAdjacency:
    """a_ij = |s_ij|^β with zero diagonal."""

    def test_power_and_diagonal(self):
        s = np.array([[1.0, 0.5, 0.2], [0.5, 1.0, 0.8], [0.2, 0.8, 1.0]])
        a = adjacency_matrix(s, 2)
        np.testing.assert_allclose(a, [[0, 0.25, 0.04], [0.25, 0, 0.64], [0.04, 0.64, 0]])

    def test_symmetric_and_in_unit_interval(self, similarity):
        a = adjacency_matrix(similarity, 6)
        np.testing.assert_array_equal(a, a.T)
        assert a.min() >= 0.0 and a.max() <= 1.0
        np.testing.assert_array_equal(np.diag(a), 0.0)

    def test_monotone_non_increasing_in_power(self, similarity):
        """Raising β never increases any adjacency entry."""
        previous = adjacency_matrix(similarity, 1)
        for power in range(2, 12):
            current = adjacency_matrix(similarity, power)
            assert np.all(current <= previous + 1e-15)
            previous = current

    def test_input_not_modified(self, similarity):
        before = similarity.copy()
        adjacency_matrix(similarity, 4)
        np.testing.assert_array_equal(similarity, before)

    def test_rejects_power_below_one(self, similarity):
        with pytest.raises(ValueError, match="power"):
            adjacency_matrix(similarity, 0.5)

    def test_connectivity_matches_row_sums(self, similarity):
        expected = adjacency_matrix(similarity, 5).sum(axis=1)
        for chunk_size, n_jobs in [(1000, 1), (3, 1), (3, 4)]:
            k = connectivity(similarity, 5, chunk_size=chunk_size, n_jobs=n_jobs)
            np.testing.assert_allclose(k, expected, rtol=1e-12)


class TestScaleFreeFit:
    """Log-log regression over equal-width connectivity bins."""

    def test_constant_connectivity_has_no_fit(self):
        fit = scale_free_fit(np.full(50, 3.0))
        assert fit.r_squared == 0.0
        assert fit.fit_index == 0.0

    def test_power_law_connectivity_fits_well(self):
        """Bin frequencies proportional to k^-2 give slope -2 and R² ~ 1."""
        # k = 1..10 lands one distinct value in each of 10 bins over [1, 10]
        values = np.arange(1, 11, dtype=float)
        counts = np.round(10000 * values ** -2).astype(int)
        k = np.repeat(values, counts)

        fit = scale_free_fit(k, n_breaks=10)
        assert fit.slope == pytest.approx(-2.0, abs=0.02)
        assert fit.fit_index > 0.99

    def test_fit_index_is_signed(self):
        assert ScaleFreeFit(r_squared=0.9, slope=-1.5).fit_index == pytest.approx(0.9)
        assert ScaleFreeFit(r_squared=0.9, slope=1.5).fit_index == pytest.approx(-0.9)
        assert ScaleFreeFit(r_squared=0.4, slope=float('nan')).fit_index == 0.0

    def test_evaluate_power_row(self, similarity):
        row = evaluate_power(similarity, 3)
        assert set(row) == {
            'power', 'fit_index', 'r_squared', 'slope',
            'mean_connectivity', 'median_connectivity', 'max_connectivity',
        }
        k = adjacency_matrix(similarity, 3).sum(axis=1)
        assert row['mean_connectivity'] == pytest.approx(k.mean())
        assert row['max_connectivity'] == pytest.approx(k.max())


class TestPickSoftThreshold:
    """Smallest β reaching the cutoff, else the best fit with a warning."""

    def test_selects_smallest_passing_power(self, similarity):
        result = pick_soft_threshold(similarity, powers=range(1, 13), r_squared_cutoff=0.8)
        table = result.fit_table
        assert list(table['power']) == list(range(1, 13))
        passing = table.loc[table['fit_index'] >= 0.8, 'power']
        if len(passing):
            assert result.reached_cutoff
            assert result.power == passing.min()
        else:
            assert not result.reached_cutoff
            assert result.power == int(table.loc[table['fit_index'].idxmax(), 'power'])

    def test_fallback_to_best_fit_logs_warning(self, similarity, caplog):
        """An unreachable cutoff picks the maximum fit index, never raises."""
        with caplog.at_level(logging.WARNING, logger="coexnet.network.soft_threshold"):
            result = pick_soft_threshold(similarity, powers=[1, 2, 3, 4], r_squared_cutoff=1.0)
        table = result.fit_table
        if not result.reached_cutoff:
            assert result.power == int(table.loc[table['fit_index'].idxmax(), 'power'])
            assert "No power reached" in caplog.text

    def test_adjacency_at_selected_power(self, similarity):
        result = pick_soft_threshold(similarity, powers=[6])
        assert result.power == 6
        np.testing.assert_allclose(result.adjacency, adjacency_matrix(similarity, 6))

    def test_parallel_scan_matches_sequential(self, similarity):
        """Completion order of threads does not change the table or choice."""
        sequential = pick_soft_threshold(similarity, powers=range(1, 11), n_jobs=1)
        parallel = pick_soft_threshold(similarity, powers=range(1, 11), n_jobs=4)
        assert parallel.power == sequential.power
        np.testing.assert_allclose(
            parallel.fit_table['fit_index'].to_numpy(),
            sequential.fit_table['fit_index'].to_numpy(),
        )
        assert list(parallel.fit_table['power']) == list(range(1, 11))

    def test_powers_deduplicated_and_sorted(self, similarity):
        result = pick_soft_threshold(similarity, powers=[8, 2, 8, 4])
        assert list(result.fit_table['power']) == [2, 4, 8]
        assert result.skipped_powers == []

    def test_generous_time_budget_evaluates_everything(self, similarity):
        result = pick_soft_threshold(similarity, powers=range(1, 6), time_budget=600.0)
        assert len(result.fit_table) == 5

    def test_empty_powers_rejected(self, similarity):
        with pytest.raises(ValueError):
            pick_soft_threshold(similarity, powers=[])

    def test_summary_is_plain_data(self, similarity):
        summary = pick_soft_threshold(similarity, powers=[2, 4]).summary()
        assert summary['n_powers_evaluated'] == 2
        assert isinstance(summary['power'], int)

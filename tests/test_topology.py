"""Tests for topological overlap."""

import numpy as np
import pytest

from coexnet.network.similarity import compute_similarity
from coexnet.network.soft_threshold import adjacency_matrix
from coexnet.network.topology import tom_dissimilarity, topological_overlap


def naive_tom(adjacency):
    """Direct per-pair evaluation of the TOM formula."""
    a = adjacency.copy()
    np.fill_diagonal(a, 0.0)
    k = a.sum(axis=1)
    n = len(a)
    tom = np.eye(n)
    for i in range(n):
        for j in range(n):
            if i == j:
                continue
            shared = sum(a[i, u] * a[u, j] for u in range(n) if u not in (i, j))
            tom[i, j] = (shared + a[i, j]) / (min(k[i], k[j]) + 1 - a[i, j])
    return tom


class TestTopologicalOverlap:
    """Matrix-product TOM against the per-pair definition."""

    def test_matches_per_pair_formula(self):
        rng = np.random.RandomState(11)
        s = rng.uniform(0, 1, size=(9, 9))
        s = (s + s.T) / 2
        a = adjacency_matrix(s, 3)
        np.testing.assert_allclose(topological_overlap(a), naive_tom(a), atol=1e-12)

    def test_unit_diagonal_and_range(self, module_matrix):
        a = adjacency_matrix(compute_similarity(module_matrix), 6)
        tom = topological_overlap(a)
        np.testing.assert_array_equal(np.diag(tom), 1.0)
        assert tom.min() >= 0.0 and tom.max() <= 1.0

    def test_dissimilarity_properties(self, module_matrix):
        a = adjacency_matrix(compute_similarity(module_matrix), 6)
        d = tom_dissimilarity(a)
        np.testing.assert_array_equal(d, d.T)
        np.testing.assert_array_equal(np.diag(d), 0.0)
        assert d.min() >= 0.0 and d.max() <= 1.0

    def test_fully_connected_clique(self):
        """Members of a clique of perfect adjacency have TOM 1."""
        a = np.ones((4, 4))
        np.fill_diagonal(a, 0.0)
        np.testing.assert_allclose(topological_overlap(a), 1.0)

    def test_isolated_features(self):
        tom = topological_overlap(np.zeros((3, 3)))
        np.testing.assert_array_equal(tom, np.eye(3))


class TestValidation:
    """Malformed adjacency is rejected with ValueError."""

    def test_non_square(self):
        with pytest.raises(ValueError, match="square"):
            topological_overlap(np.zeros((3, 4)))

    def test_asymmetric(self):
        a = np.array([[0, 0.2], [0.4, 0]])
        with pytest.raises(ValueError, match="symmetric"):
            topological_overlap(a)

    def test_out_of_range(self):
        a = np.array([[0, 1.5], [1.5, 0]])
        with pytest.raises(ValueError, match=r"\[0, 1\]"):
            topological_overlap(a)

"""
Topological overlap: network-neighborhood similarity between features.

Two features that share the same strong neighbors are related even when their
direct correlation is only moderate. Topological overlap captures this:

    TOM_ij = (Σ_u a_iu a_uj + a_ij) / (min(k_i, k_j) + 1 - a_ij),   TOM_ii = 1

where k is connectivity (row sums of adjacency). Because the adjacency
diagonal is zero, the shared-neighbor term Σ_u a_iu a_uj over u ∉ {i, j} is
exactly (A @ A)_ij, so the O(F³) work is one dense BLAS product.

Clustering uses the dissimilarity 1 - TOM, which lies in [0, 1] with a zero
diagonal. It need not satisfy the triangle inequality; it is used as a
clustering distance regardless.
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)

__all__ = ['topological_overlap', 'tom_dissimilarity']

_SYMMETRY_TOL = 1e-8


def _validate_adjacency(adjacency: np.ndarray) -> np.ndarray:
    adjacency = np.asarray(adjacency, dtype=np.float64)
    if adjacency.ndim != 2 or adjacency.shape[0] != adjacency.shape[1]:
        raise ValueError(f"adjacency must be square, got shape {adjacency.shape}")
    if not np.all(np.isfinite(adjacency)):
        raise ValueError("adjacency contains non-finite values")
    if adjacency.size and (adjacency.min() < 0 or adjacency.max() > 1):
        raise ValueError(
            f"adjacency entries must lie in [0, 1], got "
            f"[{adjacency.min():.3g}, {adjacency.max():.3g}]"
        )
    if not np.allclose(adjacency, adjacency.T, atol=_SYMMETRY_TOL):
        raise ValueError("adjacency must be symmetric")
    return adjacency


def topological_overlap(adjacency: np.ndarray) -> np.ndarray:
    """
    Topological overlap matrix of a weighted adjacency.

    Args:
        adjacency: Symmetric F x F adjacency, entries in [0, 1]. The diagonal
            is ignored (treated as 0).

    Returns:
        Symmetric F x F TOM with unit diagonal, entries in [0, 1]

    Raises:
        ValueError: If adjacency is not square, symmetric and within [0, 1]
    """
    adjacency = _validate_adjacency(adjacency).copy()
    np.fill_diagonal(adjacency, 0.0)

    k = adjacency.sum(axis=1)
    shared = adjacency @ adjacency

    denominator = np.minimum.outer(k, k) + 1.0 - adjacency
    tom = (shared + adjacency) / denominator

    tom = (tom + tom.T) / 2
    np.clip(tom, 0.0, 1.0, out=tom)
    np.fill_diagonal(tom, 1.0)
    return tom


def tom_dissimilarity(adjacency: np.ndarray) -> np.ndarray:
    """
    Dissimilarity 1 - TOM used for clustering (zero diagonal).

    Examples:
        >>> dissimilarity = tom_dissimilarity(result.adjacency)
        >>> np.allclose(np.diag(dissimilarity), 0)
        True
    """
    logger.info(f"Computing topological overlap for {len(adjacency):,} features")
    dissimilarity = 1.0 - topological_overlap(adjacency)
    np.fill_diagonal(dissimilarity, 0.0)
    return dissimilarity

"""
Pytest configuration and shared fixtures for the coexnet test suite.

This module provides synthetic-data generators with known module structure
and shared fixtures for all test suites.
"""

import numpy as np
import pandas as pd
import pytest

from coexnet.core.expression import ExpressionMatrix


def orthonormal_profiles(n_samples: int, n_profiles: int, seed: int = 0) -> np.ndarray:
    """
    Centered, mutually orthogonal unit-norm sample profiles.

    QR of [1, random] makes every returned column orthogonal to the constant
    vector (mean zero) and to every other column, so Pearson correlations
    between distinct profiles are exactly zero up to rounding.
    """
    rng = np.random.RandomState(seed)
    basis = np.column_stack([np.ones(n_samples), rng.randn(n_samples, n_profiles)])
    q, _ = np.linalg.qr(basis)
    return q[:, 1:n_profiles + 1]


def make_matrix(data: np.ndarray, metadata: pd.DataFrame = None, feature_prefix: str = "F") -> ExpressionMatrix:
    n_samples, n_features = data.shape
    sample_ids = pd.Index([f"S{i:02d}" for i in range(n_samples)])
    feature_ids = pd.Index([f"{feature_prefix}{j:03d}" for j in range(n_features)])
    if metadata is not None:
        metadata = metadata.copy()
        metadata.index = sample_ids
    return ExpressionMatrix(data, sample_ids, feature_ids, metadata)


def generate_correlated_group_matrix(
    n_samples: int = 20,
    n_group: int = 4,
    n_random: int = 4,
    seed: int = 0,
) -> ExpressionMatrix:
    """
    ``n_group`` perfectly correlated features plus ``n_random`` features
    uncorrelated with everything else.

    Group features are positive affine copies of one profile (GRP_*); random
    features are further orthogonal profiles (RND_*).
    """
    profiles = orthonormal_profiles(n_samples, 1 + n_random, seed=seed)
    rng = np.random.RandomState(seed + 1)

    columns = {}
    for i in range(n_group):
        scale = rng.uniform(1.0, 3.0)
        offset = rng.uniform(5.0, 10.0)
        columns[f"GRP_{i}"] = offset + scale * profiles[:, 0]
    for i in range(n_random):
        columns[f"RND_{i}"] = 7.0 + 2.0 * profiles[:, 1 + i]

    frame = pd.DataFrame(columns, index=[f"S{i:02d}" for i in range(n_samples)])
    return ExpressionMatrix.from_frame(frame)


def generate_module_matrix(
    n_samples: int = 40,
    module_sizes: tuple = (12, 8),
    n_noise: int = 10,
    noise: float = 0.3,
    seed: int = 42,
) -> ExpressionMatrix:
    """
    Noisy latent-factor modules with a two-level 'group' trait.

    Module 0's latent profile is shifted by group membership so that it is
    trait-associated; other modules are independent of the trait.

    Returns:
        ExpressionMatrix with features M<module>_<i> and N_<i> (noise) and a
        balanced 'group' column (control/treated) in sample_metadata
    """
    rng = np.random.RandomState(seed)
    group = np.array(["control", "treated"] * (n_samples // 2))
    shift = np.where(group == "treated", 1.5, -1.5)

    columns = {}
    for m, size in enumerate(module_sizes):
        latent = rng.randn(n_samples)
        if m == 0:
            latent = latent * 0.5 + shift
        for i in range(size):
            loading = rng.uniform(0.8, 1.2)
            columns[f"M{m}_{i}"] = 10 + loading * latent + noise * rng.randn(n_samples)
    for i in range(n_noise):
        columns[f"N_{i}"] = 10 + rng.randn(n_samples)

    index = [f"S{i:02d}" for i in range(n_samples)]
    frame = pd.DataFrame(columns, index=index)
    metadata = pd.DataFrame({'group': group}, index=index)
    return ExpressionMatrix.from_frame(frame, sample_metadata=metadata)


@pytest.fixture
def group_matrix():
    """4 perfectly correlated + 4 uncorrelated features, 20 samples."""
    return generate_correlated_group_matrix()


@pytest.fixture
def module_matrix():
    """Two noisy modules plus noise features, with a 'group' trait."""
    return generate_module_matrix()


@pytest.fixture
def random_matrix():
    """Unstructured 30 x 25 matrix."""
    rng = np.random.RandomState(7)
    return make_matrix(rng.randn(30, 25))

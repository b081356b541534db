"""
Pre-network quality filtering for expression matrices.

Correlation networks need every feature to vary and every sample to belong
to the bulk of the data:

    DegenerateFeatureFilter: drop features with too many missing values or
        (near-)zero variance, which would otherwise produce undefined
        correlations
    SampleOutlierFilter: cluster samples on Euclidean distance and keep the
        main cluster below a height cutoff, the standard WGCNA sample check

Both implement the Transform interface and record what they removed.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np
from scipy.cluster.hierarchy import fcluster, linkage

from coexnet.core.expression import ExpressionMatrix
from coexnet.core.transform import Transform

logger = logging.getLogger(__name__)

__all__ = ['DegenerateFeatureFilter', 'SampleOutlierFilter']


class DegenerateFeatureFilter(Transform):
    """
    Remove features unusable for correlation.

    A feature is dropped when its fraction of missing values exceeds
    ``max_missing_fraction`` or its variance over observed samples is at or
    below ``min_variance``.

    Params:
        max_missing_fraction: Largest tolerated fraction of missing values
        min_variance: Variance floor (ddof=1) over observed values

    Attributes:
        dropped_features: Feature ids removed by the last apply()

    Examples:
        >>> filtered = DegenerateFeatureFilter(max_missing_fraction=0.2).apply(matrix)
    """

    def __init__(self, max_missing_fraction: float = 0.5, min_variance: float = 0.0):
        super().__init__(
            name="DegenerateFeatureFilter",
            params={
                "max_missing_fraction": max_missing_fraction,
                "min_variance": min_variance,
            }
        )
        if not 0 <= max_missing_fraction <= 1:
            raise ValueError(
                f"max_missing_fraction must be in [0, 1], got {max_missing_fraction}"
            )
        if min_variance < 0:
            raise ValueError(f"min_variance must be >= 0, got {min_variance}")
        self.max_missing_fraction = max_missing_fraction
        self.min_variance = min_variance
        self.dropped_features: List[str] = []

    def validate(self, matrix: ExpressionMatrix) -> list[str]:
        errors = super().validate(matrix)
        if matrix.n_samples < 2:
            errors.append(f"Need at least 2 samples to estimate variance, got {matrix.n_samples}")
        return errors

    def _keep_mask(self, matrix: ExpressionMatrix) -> np.ndarray:
        data = np.where(np.isfinite(matrix.data), matrix.data, np.nan)
        missing = np.isnan(data).mean(axis=0)

        observed = (~np.isnan(data)).sum(axis=0)
        with np.errstate(invalid='ignore', divide='ignore'):
            mean = np.nansum(data, axis=0) / observed
            variance = np.nansum((data - mean) ** 2, axis=0) / (observed - 1)
        variance = np.where(observed >= 2, variance, 0.0)

        return (missing <= self.max_missing_fraction) & (variance > self.min_variance)

    def apply(self, matrix: ExpressionMatrix) -> ExpressionMatrix:
        self._raise_if_invalid(matrix)
        keep = self._keep_mask(matrix)
        self.dropped_features = list(matrix.feature_ids[~keep])

        if self.dropped_features:
            logger.info(
                f"Dropped {len(self.dropped_features):,} degenerate features "
                f"({int(keep.sum()):,} kept)"
            )
        else:
            logger.info("No degenerate features found")
        return matrix.select_features(keep)


class SampleOutlierFilter(Transform):
    """
    Remove outlier samples by hierarchical clustering.

    Samples are clustered with average linkage on Euclidean distance and the
    tree is cut at ``cut_height``. The largest resulting cluster with at
    least ``min_cluster_size`` samples is kept; all others are outliers.

    Params:
        cut_height: Tree height at which to cut (None = keep all samples and
            only report the tree)
        min_cluster_size: Minimum size of the retained cluster

    Attributes:
        dropped_samples: Sample ids removed by the last apply()
        linkage_matrix: Sample tree from the last apply()
    """

    def __init__(self, cut_height: Optional[float] = None, min_cluster_size: int = 10):
        super().__init__(
            name="SampleOutlierFilter",
            params={
                "cut_height": cut_height,
                "min_cluster_size": min_cluster_size,
            }
        )
        if cut_height is not None and cut_height <= 0:
            raise ValueError(f"cut_height must be positive, got {cut_height}")
        if min_cluster_size < 1:
            raise ValueError(f"min_cluster_size must be >= 1, got {min_cluster_size}")
        self.cut_height = cut_height
        self.min_cluster_size = min_cluster_size
        self.dropped_samples: List[str] = []
        self.linkage_matrix: Optional[np.ndarray] = None

    def validate(self, matrix: ExpressionMatrix) -> list[str]:
        errors = super().validate(matrix)
        if not np.all(np.isfinite(matrix.data)):
            errors.append("Matrix contains missing or non-finite values")
        if matrix.n_samples < 2:
            errors.append(f"Need at least 2 samples to cluster, got {matrix.n_samples}")
        return errors

    def apply(self, matrix: ExpressionMatrix) -> ExpressionMatrix:
        self._raise_if_invalid(matrix)
        self.linkage_matrix = linkage(matrix.data, method='average', metric='euclidean')

        if self.cut_height is None:
            self.dropped_samples = []
            return matrix.copy()

        clusters = fcluster(self.linkage_matrix, t=self.cut_height, criterion='distance')
        ids, counts = np.unique(clusters, return_counts=True)
        eligible = counts >= self.min_cluster_size
        if not np.any(eligible):
            raise ValueError(
                f"{self.name}: no sample cluster at height {self.cut_height} has "
                f"{self.min_cluster_size} or more samples (largest: {counts.max()})"
            )

        keep_cluster = ids[eligible][np.argmax(counts[eligible])]
        keep = clusters == keep_cluster
        self.dropped_samples = list(matrix.sample_ids[~keep])

        if self.dropped_samples:
            logger.warning(
                f"Removed {len(self.dropped_samples)} outlier sample(s) at height "
                f"{self.cut_height}: {', '.join(map(str, self.dropped_samples))}"
            )
        else:
            logger.info(f"No outlier samples at height {self.cut_height}")
        return matrix.select_samples(keep)

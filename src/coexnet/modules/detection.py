"""
Module detection: average-linkage clustering followed by the dynamic hybrid cut.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import linkage
from scipy.spatial.distance import squareform

from coexnet.modules.assignment import ModuleAssignment
from coexnet.modules.tree_cut import DynamicCutParameters, TreeCutResult, cutree_hybrid

logger = logging.getLogger(__name__)

__all__ = ['ModuleDetectionResult', 'cluster_features', 'detect_modules']


@dataclass
class ModuleDetectionResult:
    """
    Clustering tree plus the module assignment cut from it.

    Attributes:
        linkage: scipy linkage matrix over features ((F-1) x 4)
        feature_ids: Leaf order of the linkage matrix
        assignment: Feature -> module label
        cut: Labels and effective thresholds of the tree cut
    """
    linkage: np.ndarray
    feature_ids: pd.Index
    assignment: ModuleAssignment
    cut: TreeCutResult

    @property
    def merge_heights(self) -> np.ndarray:
        return self.linkage[:, 2]


def cluster_features(dissimilarity: np.ndarray) -> np.ndarray:
    """
    Average-linkage hierarchical clustering of a square dissimilarity.

    Returns an empty (0, 4) linkage for fewer than two features.
    """
    dissimilarity = np.asarray(dissimilarity, dtype=np.float64)
    if dissimilarity.ndim != 2 or dissimilarity.shape[0] != dissimilarity.shape[1]:
        raise ValueError(f"dissimilarity must be square, got shape {dissimilarity.shape}")
    if dissimilarity.shape[0] < 2:
        return np.empty((0, 4))

    dissimilarity = (dissimilarity + dissimilarity.T) / 2
    np.fill_diagonal(dissimilarity, 0.0)
    condensed = squareform(np.clip(dissimilarity, 0.0, None), checks=False)
    return linkage(condensed, method='average')


def detect_modules(
    dissimilarity: np.ndarray,
    feature_ids: Sequence[str],
    min_cluster_size: int = 20,
    deep_split: int = 2,
    cut_height: Optional[float] = None,
    cut_params: Optional[DynamicCutParameters] = None,
) -> ModuleDetectionResult:
    """
    Cluster features and cut the tree into modules.

    Args:
        dissimilarity: F x F TOM dissimilarity
        feature_ids: Feature names in matrix order
        min_cluster_size: Smallest accepted module
        deep_split: Branch-splitting sensitivity 0..4
        cut_height: Maximum merge height considered (None = automatic)
        cut_params: Full threshold set; overrides the three arguments above

    Returns:
        ModuleDetectionResult; modules are numbered by decreasing size and
        features on no accepted branch carry label 0
    """
    feature_ids = pd.Index(list(feature_ids))
    if len(feature_ids) != np.asarray(dissimilarity).shape[0]:
        raise ValueError(
            f"{len(feature_ids)} feature ids for a "
            f"{np.asarray(dissimilarity).shape[0]}-feature dissimilarity"
        )

    params = cut_params or DynamicCutParameters(
        min_cluster_size=min_cluster_size,
        deep_split=deep_split,
        cut_height=cut_height,
    )

    logger.info(f"Clustering {len(feature_ids):,} features (average linkage)")
    tree = cluster_features(dissimilarity)
    cut = cutree_hybrid(tree, dissimilarity, params)

    assignment = ModuleAssignment.from_labels(cut.labels, feature_ids)
    if assignment.n_modules == 0:
        logger.warning("No modules detected; every feature is unassigned")
    else:
        logger.info(
            f"Detected {assignment.n_modules} modules, "
            f"{assignment.n_unassigned:,} features unassigned"
        )

    return ModuleDetectionResult(
        linkage=tree,
        feature_ids=feature_ids,
        assignment=assignment,
        cut=cut,
    )

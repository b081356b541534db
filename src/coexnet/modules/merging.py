"""
Merging of modules whose eigenfeatures are nearly identical.

The tree cut often splits one biological module into branches whose
eigenfeatures are highly correlated. Eigenfeatures are clustered on
``1 - cor`` with average linkage and the tree is cut at ``merge_height``;
modules falling into one flat cluster are united and their eigenfeatures
recomputed.

Under average linkage a pair of modules is only guaranteed to merge when
their eigenfeature correlation exceeds ``1 - merge_height`` and no third
module pulls one of them into a different cluster first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import fcluster, linkage
from scipy.spatial.distance import squareform

from coexnet.core.expression import ExpressionMatrix
from coexnet.modules.assignment import UNASSIGNED, ModuleAssignment
from coexnet.modules.eigengenes import EigengeneResult, compute_eigengenes

logger = logging.getLogger(__name__)

__all__ = ['MergeResult', 'eigengene_dissimilarity', 'merge_modules']


@dataclass
class MergeResult:
    """
    Outcome of module merging.

    Attributes:
        assignment: Merged feature -> module labels (renumbered by size)
        eigengenes: Eigenfeatures of the merged modules
        mappings: One old-label -> new-label mapping per pass that merged
    """
    assignment: ModuleAssignment
    eigengenes: EigengeneResult
    mappings: List[Dict[int, int]] = field(default_factory=list)

    @property
    def n_passes(self) -> int:
        return len(self.mappings)


def eigengene_dissimilarity(eigengenes: pd.DataFrame) -> pd.DataFrame:
    """``1 - cor`` between eigenfeatures over pairwise-complete samples."""
    dissimilarity = 1.0 - eigengenes.corr(method='pearson')
    # undefined correlations count as unrelated
    return dissimilarity.fillna(1.0)


def _merge_pass(
    eigengenes: EigengeneResult,
    merge_height: float,
) -> Dict[int, int]:
    """Flat-cluster label for every module, or {} if nothing merges."""
    dissimilarity = eigengene_dissimilarity(eigengenes.eigengenes).to_numpy()
    dissimilarity = (dissimilarity + dissimilarity.T) / 2
    np.fill_diagonal(dissimilarity, 0.0)

    tree = linkage(squareform(np.clip(dissimilarity, 0.0, None), checks=False), method='average')
    clusters = fcluster(tree, t=merge_height, criterion='distance')

    if len(np.unique(clusters)) == len(eigengenes.labels):
        return {}
    return {label: int(cluster) for label, cluster in zip(eigengenes.labels, clusters)}


def merge_modules(
    matrix: ExpressionMatrix,
    assignment: ModuleAssignment,
    eigengenes: EigengeneResult,
    merge_height: float = 0.25,
    iterations: int = 1,
) -> MergeResult:
    """
    Merge modules with near-identical eigenfeatures.

    Args:
        matrix: Expression data the eigenfeatures were computed from
        assignment: Current module assignment
        eigengenes: Current eigenfeatures
        merge_height: Eigenfeature dissimilarity (1 - cor) cut height
        iterations: Maximum merge passes; stops early when a pass merges nothing

    Returns:
        MergeResult with the merged assignment and recomputed eigenfeatures.
        With fewer than two modules the inputs are returned unchanged.
    """
    if not 0 <= merge_height <= 1:
        raise ValueError(f"merge_height must be in [0, 1], got {merge_height}")
    if iterations < 1:
        raise ValueError(f"iterations must be >= 1, got {iterations}")

    result = MergeResult(assignment=assignment, eigengenes=eigengenes)

    for iteration in range(iterations):
        current = result.assignment
        if current.n_modules < 2:
            break

        clusters = _merge_pass(result.eigengenes, merge_height)
        if not clusters:
            logger.debug(f"Merge pass {iteration + 1}: no modules within {merge_height}")
            break

        raw = current.labels.map(lambda label: clusters.get(label, UNASSIGNED))
        merged = ModuleAssignment.from_labels(raw.to_numpy(), current.labels.index)
        mapping = {
            old: int(merged.labels.loc[current.members(old)[0]])
            for old in current.modules
        }

        logger.info(
            f"Merge pass {iteration + 1}: {current.n_modules} -> "
            f"{merged.n_modules} modules (merge height {merge_height})"
        )
        result = MergeResult(
            assignment=merged,
            eigengenes=compute_eigengenes(matrix, merged),
            mappings=result.mappings + [mapping],
        )

    return result

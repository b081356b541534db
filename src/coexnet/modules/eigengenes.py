"""
Module eigenfeatures: the first principal component of each module.

Each module is summarized by one sample-level profile. Member columns are
scaled (mean 0, sd 1), the first principal component score is taken and
standardized, and its sign is fixed so that the eigenfeature correlates
positively with the average scaled member. The sign rule makes the summary
deterministic: recomputing it on the same data returns the same vector.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA

from coexnet.core.expression import ExpressionMatrix
from coexnet.exceptions import DegenerateFeatureError, EmptyModuleError
from coexnet.modules.assignment import ModuleAssignment

logger = logging.getLogger(__name__)

__all__ = [
    'EIGENGENE_PREFIX',
    'EigengeneResult',
    'eigengene_name',
    'module_eigengene',
    'compute_eigengenes',
]

EIGENGENE_PREFIX = "ME"


def eigengene_name(color: str) -> str:
    return f"{EIGENGENE_PREFIX}{color}"


@dataclass
class EigengeneResult:
    """
    Eigenfeatures of every declared module.

    Attributes:
        eigengenes: Samples x modules, columns ``ME<color>``
        variance_explained: Fraction of member variance captured, per column
        labels: Module label behind each column, in column order
    """
    eigengenes: pd.DataFrame
    variance_explained: pd.Series
    labels: List[int]

    def column_for(self, label: int) -> str:
        return self.eigengenes.columns[self.labels.index(label)]


def _scale(values: np.ndarray) -> np.ndarray:
    centered = values - values.mean(axis=0)
    return centered / values.std(axis=0, ddof=1)


def module_eigengene(values: np.ndarray) -> tuple:
    """
    Eigenfeature of one module.

    Args:
        values: Samples x members array (finite, non-constant columns)

    Returns:
        (eigenfeature vector with sd 1, fraction of variance explained)
    """
    values = np.asarray(values, dtype=np.float64)
    scaled = _scale(values)

    if scaled.shape[1] == 1:
        return scaled[:, 0].copy(), 1.0

    pca = PCA(n_components=1, svd_solver='full')
    score = pca.fit_transform(scaled)[:, 0]
    score = score / score.std(ddof=1)

    average = scaled.mean(axis=1)
    if np.dot(score, average - average.mean()) < 0:
        score = -score
    return score, float(pca.explained_variance_ratio_[0])


def compute_eigengenes(
    matrix: ExpressionMatrix,
    assignment: ModuleAssignment,
) -> EigengeneResult:
    """
    Compute the eigenfeature of every non-zero module.

    Args:
        matrix: Samples x features expression data
        assignment: Feature -> module label for (a superset of) matrix features

    Returns:
        EigengeneResult indexed by sample id

    Raises:
        EmptyModuleError: A declared module has no member in the matrix
        DegenerateFeatureError: A member feature is constant across samples

    Examples:
        >>> result = compute_eigengenes(matrix, assignment)
        >>> result.eigengenes.columns.tolist()
        ['MEturquoise', 'MEblue']
    """
    frame = matrix.to_frame()
    columns = {}
    explained = {}
    labels = []

    for label in assignment.modules:
        members = [f for f in assignment.members(label) if f in frame.columns]
        if not members:
            raise EmptyModuleError(label)

        values = frame[members].to_numpy(dtype=np.float64)
        constant = [
            f for f, sd in zip(members, values.std(axis=0, ddof=1))
            if not np.isfinite(sd) or sd == 0
        ]
        if constant:
            raise DegenerateFeatureError(constant, stage="eigengenes")

        name = eigengene_name(assignment.color_of(label))
        columns[name], explained[name] = module_eigengene(values)
        labels.append(label)
        logger.debug(
            f"{name}: {len(members)} members, "
            f"{explained[name]:.1%} variance explained"
        )

    eigengenes = pd.DataFrame(columns, index=frame.index)
    logger.info(f"Computed {len(labels)} module eigenfeatures")
    return EigengeneResult(
        eigengenes=eigengenes,
        variance_explained=pd.Series(explained, name="variance_explained", dtype=float),
        labels=labels,
    )

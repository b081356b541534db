"""
Module membership (kME) and hub features.

kME of a feature in a module is the signed Pearson correlation between the
feature and the module eigenfeature. Members with high kME in their own
module are the module's hubs; high kME in another module flags features the
tree cut placed at a boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from coexnet.core.expression import ExpressionMatrix
from coexnet.modules.assignment import ModuleAssignment
from coexnet.modules.eigengenes import EIGENGENE_PREFIX, EigengeneResult
from coexnet.network.similarity import normalize_columns
from coexnet.utils.statistics import correlation_pvalue

logger = logging.getLogger(__name__)

__all__ = ['KME_PREFIX', 'MembershipResult', 'module_membership', 'hub_features']

KME_PREFIX = "kME"


@dataclass
class MembershipResult:
    """
    Features x modules membership table.

    Attributes:
        kme: Signed correlation with each eigenfeature, columns ``kME<color>``
        pvalues: Two-sided Student-t p-values, same shape and labels
    """
    kme: pd.DataFrame
    pvalues: pd.DataFrame

    def own_module(self, assignment: ModuleAssignment) -> pd.Series:
        """kME of each assigned feature in its own module (NaN for grey)."""
        values = {}
        for label in assignment.modules:
            column = f"{KME_PREFIX}{assignment.color_of(label)}"
            for feature in assignment.members(label):
                values[feature] = self.kme.at[feature, column]
        return pd.Series(values, dtype=float, name="kME").reindex(assignment.labels.index)


def module_membership(
    matrix: ExpressionMatrix,
    eigengenes: EigengeneResult,
) -> MembershipResult:
    """
    Correlate every feature with every module eigenfeature.

    Args:
        matrix: Samples x features expression data (no missing values)
        eigengenes: Eigenfeatures computed from ``matrix``

    Returns:
        MembershipResult indexed by feature id
    """
    me = eigengenes.eigengenes.loc[matrix.sample_ids]
    columns = [
        KME_PREFIX + name[len(EIGENGENE_PREFIX):] if name.startswith(EIGENGENE_PREFIX)
        else f"{KME_PREFIX}{name}"
        for name in me.columns
    ]

    if me.shape[1] == 0:
        empty = pd.DataFrame(index=matrix.feature_ids, columns=columns, dtype=float)
        return MembershipResult(kme=empty, pvalues=empty.copy())

    with np.errstate(divide='ignore', invalid='ignore'):
        features = normalize_columns(matrix.data)
        summaries = normalize_columns(me.to_numpy(dtype=np.float64))
        kme = np.clip(features.T @ summaries, -1.0, 1.0)

    pvalues = correlation_pvalue(kme, matrix.n_samples)
    logger.info(
        f"Module membership: {matrix.n_features:,} features x {me.shape[1]} modules"
    )
    return MembershipResult(
        kme=pd.DataFrame(kme, index=matrix.feature_ids, columns=columns),
        pvalues=pd.DataFrame(pvalues, index=matrix.feature_ids, columns=columns),
    )


def hub_features(
    membership: MembershipResult,
    assignment: ModuleAssignment,
    top_n: int = 10,
) -> pd.DataFrame:
    """
    Highest-kME members of each module.

    Returns:
        DataFrame with columns module, color, feature, kME, rank; at most
        ``top_n`` rows per module, ordered by decreasing kME
    """
    if top_n < 1:
        raise ValueError(f"top_n must be >= 1, got {top_n}")

    own = membership.own_module(assignment)
    rows = []
    for label in assignment.modules:
        ranked = own.loc[assignment.members(label)].sort_values(ascending=False)
        for rank, (feature, value) in enumerate(ranked.head(top_n).items(), start=1):
            rows.append({
                'module': label,
                'color': assignment.color_of(label),
                'feature': feature,
                'kME': float(value),
                'rank': rank,
            })
    return pd.DataFrame(rows, columns=['module', 'color', 'feature', 'kME', 'rank'])

"""
Module-trait association.

Each module eigenfeature is correlated with each trait-level indicator:

    r = Pearson(ME, indicator)          over samples present in both
    t = r * sqrt((n - 2) / (1 - r²))    Student t with n - 2 df
    p = two-sided tail probability of t

A module is reported as associated with a trait when any level reaches
``p < alpha`` and ``|r| > min_abs_correlation``. There is no multiple-testing
correction; p-values are descriptive.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Union

import numpy as np
import pandas as pd

from coexnet.exceptions import InsufficientSamplesError
from coexnet.network.similarity import MIN_SAMPLES
from coexnet.traits.encoding import TraitEncoding
from coexnet.utils.statistics import correlation_pvalue

logger = logging.getLogger(__name__)

__all__ = ['AssociationResult', 'correlate_pair', 'associate_traits']


@dataclass
class AssociationResult:
    """
    Module x trait-level association tables.

    Attributes:
        correlation: Pearson r, modules (rows) x ``<trait>_<level>`` columns
        pvalues: Two-sided p-values, same layout
        n_samples: Samples used per cell
        alpha: p-value threshold
        min_abs_correlation: |r| floor
    """
    correlation: pd.DataFrame
    pvalues: pd.DataFrame
    n_samples: pd.DataFrame
    alpha: float = 0.05
    min_abs_correlation: float = 0.2

    @property
    def significant(self) -> pd.DataFrame:
        """Boolean table: p < alpha and |r| > min_abs_correlation."""
        return (self.pvalues < self.alpha) & (self.correlation.abs() > self.min_abs_correlation)

    @property
    def significant_modules(self) -> List[str]:
        """Modules significant for at least one trait level."""
        flags = self.significant.any(axis=1)
        return list(flags.index[flags.values])

    def to_long(self) -> pd.DataFrame:
        """One row per (module, trait level)."""
        tables = {
            'correlation': self.correlation,
            'pvalue': self.pvalues,
            'n_samples': self.n_samples,
            'significant': self.significant,
        }
        long = None
        for column, table in tables.items():
            melted = table.rename_axis('module').reset_index().melt(
                id_vars='module', var_name='trait_level', value_name=column
            )
            long = melted if long is None else long.assign(**{column: melted[column].values})
        return long


def correlate_pair(x: np.ndarray, y: np.ndarray) -> tuple:
    """
    Pearson r and sample count over entries finite in both vectors.

    Returns NaN for r when either vector is constant on the shared samples.

    Raises:
        InsufficientSamplesError: Fewer than 3 shared samples
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    mask = np.isfinite(x) & np.isfinite(y)
    n = int(mask.sum())
    if n < MIN_SAMPLES:
        raise InsufficientSamplesError(n, required=MIN_SAMPLES, stage="association")

    xc = x[mask] - x[mask].mean()
    yc = y[mask] - y[mask].mean()
    denominator = np.sqrt(np.dot(xc, xc) * np.dot(yc, yc))
    if denominator == 0:
        return float("nan"), n
    return float(np.clip(np.dot(xc, yc) / denominator, -1.0, 1.0)), n


def associate_traits(
    eigengenes: pd.DataFrame,
    traits: Union[TraitEncoding, Sequence[TraitEncoding]],
    alpha: float = 0.05,
    min_abs_correlation: float = 0.2,
) -> AssociationResult:
    """
    Correlate module eigenfeatures with trait levels.

    Args:
        eigengenes: Samples x modules eigenfeatures
        traits: One or more encoded traits
        alpha: p-value threshold for significance
        min_abs_correlation: |r| threshold for significance

    Returns:
        AssociationResult (modules x trait levels)

    Raises:
        InsufficientSamplesError: A module/level pair shares fewer than 3 samples

    Examples:
        >>> result = associate_traits(eigengenes, encode_trait(metadata['group']))
        >>> result.significant_modules
        ['MEturquoise']
    """
    if isinstance(traits, TraitEncoding):
        traits = [traits]
    if not 0 < alpha < 1:
        raise ValueError(f"alpha must be in (0, 1), got {alpha}")

    columns = [
        (trait.column_name(level), trait.indicators[level])
        for trait in traits
        for level in trait.indicators.columns
    ]
    names = [name for name, _ in columns]

    correlation = pd.DataFrame(np.nan, index=eigengenes.columns, columns=names)
    n_samples = pd.DataFrame(0, index=eigengenes.columns, columns=names, dtype=int)

    for name, indicator in columns:
        shared = eigengenes.index.intersection(indicator.index)
        level_values = indicator.loc[shared].to_numpy()
        if len(shared) >= MIN_SAMPLES and np.std(level_values) == 0:
            logger.warning(f"Trait level '{name}' is constant over the shared samples; r undefined")
        for module in eigengenes.columns:
            r, n = correlate_pair(eigengenes.loc[shared, module].to_numpy(), level_values)
            correlation.at[module, name] = r
            n_samples.at[module, name] = n

    pvalues = pd.DataFrame(
        correlation_pvalue(correlation.to_numpy(), n_samples.to_numpy()),
        index=correlation.index,
        columns=correlation.columns,
    )

    result = AssociationResult(
        correlation=correlation,
        pvalues=pvalues,
        n_samples=n_samples,
        alpha=alpha,
        min_abs_correlation=min_abs_correlation,
    )
    logger.info(
        f"Module-trait association: {len(eigengenes.columns)} modules x "
        f"{len(names)} trait levels, {len(result.significant_modules)} significant module(s)"
    )
    return result

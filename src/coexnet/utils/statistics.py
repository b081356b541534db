"""
Shared statistical utilities for correlation-based inference.

Module-trait association and module membership both test Pearson
correlations against zero with the same Student-t statistic, so the
conversion lives here.

Functions:
    correlation_t_statistic: t = r * sqrt((n - 2) / (1 - r^2))
    correlation_pvalue: Two-sided p-value of a correlation coefficient
    critical_correlation: Smallest |r| significant at a given alpha
"""

from __future__ import annotations

import numpy as np
from scipy import stats


__all__ = [
    'correlation_t_statistic',
    'correlation_pvalue',
    'critical_correlation',
]


def correlation_t_statistic(r, n):
    """
    Student-t statistic of Pearson correlation(s) ``r`` over ``n`` samples.

    ``|r| = 1`` gives an infinite statistic; NaN propagates.
    """
    r = np.asarray(r, dtype=np.float64)
    n = np.asarray(n, dtype=np.float64)
    with np.errstate(divide='ignore', invalid='ignore'):
        t = r * np.sqrt((n - 2) / (1 - r ** 2))
    return np.where(np.abs(r) >= 1, np.sign(r) * np.inf, t)


def correlation_pvalue(r, n):
    """
    Two-sided p-value for H0: rho = 0, Student t with ``n - 2`` df.

    Args:
        r: Correlation coefficient(s)
        n: Sample count(s), broadcast against r; must be >= 3

    Returns:
        p-value(s); 0 where |r| = 1, NaN where r is NaN

    Example:
        >>> correlation_pvalue(0.5, 20)
        0.0248...
    """
    t = correlation_t_statistic(r, n)
    df = np.asarray(n, dtype=np.float64) - 2
    return 2 * stats.t.sf(np.abs(t), df)


def critical_correlation(alpha: float, n: int) -> float:
    """|r| at which the two-sided p-value equals ``alpha`` for ``n`` samples."""
    df = n - 2
    t_crit = stats.t.ppf(1 - alpha / 2, df)
    return float(t_crit / np.sqrt(df + t_crit ** 2))

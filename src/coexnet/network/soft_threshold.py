"""
Soft-threshold power selection by the scale-free topology criterion.

Adjacency in a weighted network is a power of similarity:

    a_ij = |s_ij|^β   (i ≠ j),   a_ii = 0

Raising β suppresses weak correlations. Too low a β leaves a dense, noisy
network; too high a β disconnects real structure. β is chosen so that the
connectivity distribution k_i = Σ_j a_ij is approximately scale-free, i.e.
log10 p(k) is linear in log10 k with negative slope.

Fit index (as in WGCNA's scaleFreeFitIndex / pickSoftThreshold):
    1. Cut k into n_breaks equal-width bins
    2. dk = mean k per bin (bin midpoint for empty bins), p(dk) = bin frequency
    3. Regress log10(p(dk) + 1e-9) on log10(dk)
    4. fit index = -sign(slope) × R²

Selection rule:
    smallest β whose fit index reaches the cutoff (default 0.8); if none does,
    the β with the largest fit index. The fallback is a warning, never an
    error: small or noisy datasets may never become scale-free.

Candidate exponents are independent full passes over the similarity matrix
and may be evaluated on a thread pool. Results are re-ordered by β before
selection so the tie-break does not depend on completion order.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats
from tqdm import tqdm

from coexnet.utils.parallel import run_blocks

logger = logging.getLogger(__name__)

__all__ = [
    'ScaleFreeFit',
    'SoftThresholdResult',
    'adjacency_matrix',
    'connectivity',
    'scale_free_fit',
    'evaluate_power',
    'pick_soft_threshold',
]

DEFAULT_POWERS = tuple(range(1, 21))
DEFAULT_R_SQUARED_CUTOFF = 0.8
DEFAULT_N_BREAKS = 10

# Added to bin frequencies before log10 so empty bins stay finite
_FREQUENCY_PSEUDOCOUNT = 1e-9


@dataclass
class ScaleFreeFit:
    """Scale-free topology fit of one connectivity vector."""
    r_squared: float
    slope: float

    @property
    def fit_index(self) -> float:
        """Signed R²: positive only when log p(k) decreases with log k."""
        if not np.isfinite(self.slope):
            return 0.0
        return float(-np.sign(self.slope) * self.r_squared)


@dataclass
class SoftThresholdResult:
    """
    Outcome of the soft-threshold scan.

    Attributes:
        power: Selected exponent β
        fit_index: Achieved signed R² at β
        reached_cutoff: Whether β satisfied the cutoff (False = fallback)
        r_squared_cutoff: Cutoff used for selection
        fit_table: One row per evaluated exponent, ordered by exponent
        adjacency: F x F adjacency at β (diagonal 0)
        skipped_powers: Exponents not evaluated within the time budget
    """
    power: int
    fit_index: float
    reached_cutoff: bool
    r_squared_cutoff: float
    fit_table: pd.DataFrame
    adjacency: np.ndarray = field(repr=False)
    skipped_powers: List[int] = field(default_factory=list)

    def summary(self) -> Dict[str, object]:
        return {
            'power': self.power,
            'fit_index': self.fit_index,
            'reached_cutoff': self.reached_cutoff,
            'r_squared_cutoff': self.r_squared_cutoff,
            'n_powers_evaluated': len(self.fit_table),
            'skipped_powers': list(self.skipped_powers),
        }


def adjacency_matrix(similarity: np.ndarray, power: float) -> np.ndarray:
    """
    Weighted adjacency |s|^β with zero diagonal.

    Args:
        similarity: Symmetric F x F similarity with entries in [0, 1]
        power: Soft-threshold exponent β >= 1

    Returns:
        New F x F array; similarity is left untouched
    """
    if power < 1:
        raise ValueError(f"power must be >= 1, got {power}")
    similarity = np.asarray(similarity, dtype=np.float64)
    if similarity.ndim != 2 or similarity.shape[0] != similarity.shape[1]:
        raise ValueError(f"similarity must be square, got shape {similarity.shape}")

    adjacency = np.power(np.abs(similarity), power)
    np.fill_diagonal(adjacency, 0.0)
    return adjacency


def connectivity(
    similarity: np.ndarray,
    power: float,
    chunk_size: int = 1000,
    n_jobs: int = 1,
) -> np.ndarray:
    """
    Whole-network connectivity k_i = Σ_{j≠i} |s_ij|^β.

    Computed block-wise so the full adjacency is never materialized; each
    block writes only its own slice of k.
    """
    similarity = np.asarray(similarity, dtype=np.float64)
    n_features = similarity.shape[0]
    k = np.empty(n_features, dtype=np.float64)

    def _fill(start: int, end: int) -> None:
        block = np.power(np.abs(similarity[start:end, :]), power)
        rows = np.arange(start, end)
        block[rows - start, rows] = 0.0
        k[start:end] = block.sum(axis=1)

    run_blocks(n_features, chunk_size, _fill, n_jobs=n_jobs)
    return k


def scale_free_fit(k: np.ndarray, n_breaks: int = DEFAULT_N_BREAKS) -> ScaleFreeFit:
    """
    Fit log10 p(k) against log10 k over equal-width connectivity bins.

    Args:
        k: Connectivity vector
        n_breaks: Number of bins

    Returns:
        ScaleFreeFit; a degenerate (constant) k yields R² = 0
    """
    k = np.asarray(k, dtype=np.float64)
    k_min, k_max = float(np.min(k)), float(np.max(k))
    if not np.isfinite(k_min) or not np.isfinite(k_max) or k_max <= k_min:
        return ScaleFreeFit(r_squared=0.0, slope=float('nan'))

    edges = np.linspace(k_min, k_max, n_breaks + 1)
    midpoints = (edges[:-1] + edges[1:]) / 2

    # Right-closed bins (a, b], the first one also holding k_min
    bins = np.searchsorted(edges[1:-1], k, side='left')
    counts = np.bincount(bins, minlength=n_breaks).astype(np.float64)
    sums = np.bincount(bins, weights=k, minlength=n_breaks)

    with np.errstate(invalid='ignore', divide='ignore'):
        dk = sums / counts
    dk = np.where((counts == 0) | (dk == 0), midpoints, dk)
    p_dk = counts / len(k)

    log_dk = np.log10(dk)
    log_p_dk = np.log10(p_dk + _FREQUENCY_PSEUDOCOUNT)

    usable = np.isfinite(log_dk)
    if usable.sum() < 3:
        return ScaleFreeFit(r_squared=0.0, slope=float('nan'))

    regression = stats.linregress(log_dk[usable], log_p_dk[usable])
    return ScaleFreeFit(r_squared=float(regression.rvalue ** 2), slope=float(regression.slope))


def evaluate_power(
    similarity: np.ndarray,
    power: int,
    n_breaks: int = DEFAULT_N_BREAKS,
    chunk_size: int = 1000,
    n_jobs: int = 1,
) -> Dict[str, float]:
    """Fit-table row for one exponent."""
    k = connectivity(similarity, power, chunk_size=chunk_size, n_jobs=n_jobs)
    fit = scale_free_fit(k, n_breaks=n_breaks)
    return {
        'power': int(power),
        'fit_index': fit.fit_index,
        'r_squared': fit.r_squared,
        'slope': fit.slope,
        'mean_connectivity': float(np.mean(k)),
        'median_connectivity': float(np.median(k)),
        'max_connectivity': float(np.max(k)),
    }


def _scan_sequential(
    similarity: np.ndarray,
    powers: Sequence[int],
    n_breaks: int,
    chunk_size: int,
    n_jobs: int,
    time_budget: Optional[float],
    verbose: bool,
) -> Dict[int, Dict[str, float]]:
    rows: Dict[int, Dict[str, float]] = {}
    started = time.monotonic()
    iterator = tqdm(powers, desc="Soft-threshold scan", unit="power") if verbose else powers
    for power in iterator:
        if time_budget is not None and time.monotonic() - started > time_budget:
            break
        rows[power] = evaluate_power(similarity, power, n_breaks, chunk_size, n_jobs)
        logger.debug(
            f"  power={power}: fit index={rows[power]['fit_index']:.3f}, "
            f"mean k={rows[power]['mean_connectivity']:.2f}"
        )
    return rows


def _scan_parallel(
    similarity: np.ndarray,
    powers: Sequence[int],
    n_breaks: int,
    chunk_size: int,
    n_jobs: int,
    time_budget: Optional[float],
    verbose: bool,
) -> Dict[int, Dict[str, float]]:
    rows: Dict[int, Dict[str, float]] = {}
    deadline = None if time_budget is None else time.monotonic() + time_budget
    progress = tqdm(total=len(powers), desc="Soft-threshold scan", unit="power") if verbose else None

    executor = ThreadPoolExecutor(max_workers=min(n_jobs, len(powers)))
    try:
        pending = {
            executor.submit(evaluate_power, similarity, p, n_breaks, chunk_size, 1): p
            for p in powers
        }
        while pending:
            timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
            done, _ = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
            if not done:
                break
            for future in done:
                power = pending.pop(future)
                rows[power] = future.result()
                if progress is not None:
                    progress.update(1)
    finally:
        executor.shutdown(wait=deadline is None, cancel_futures=True)
        if progress is not None:
            progress.close()
    return rows


def pick_soft_threshold(
    similarity: np.ndarray,
    powers: Sequence[int] = DEFAULT_POWERS,
    r_squared_cutoff: float = DEFAULT_R_SQUARED_CUTOFF,
    n_breaks: int = DEFAULT_N_BREAKS,
    chunk_size: int = 1000,
    n_jobs: int = 1,
    time_budget: Optional[float] = None,
    verbose: bool = False,
) -> SoftThresholdResult:
    """
    Scan candidate exponents and build the adjacency at the selected one.

    Args:
        similarity: Signed similarity matrix (F x F, entries in [0, 1])
        powers: Candidate exponents
        r_squared_cutoff: Fit index the selected exponent must reach
        n_breaks: Connectivity bins for the scale-free fit
        chunk_size: Rows per connectivity block
        n_jobs: Threads; >1 evaluates exponents concurrently
        time_budget: Wall-clock seconds for the scan. Exponents not finished
            within the budget are skipped; at least one must finish.
        verbose: Show a progress bar

    Returns:
        SoftThresholdResult

    Raises:
        ValueError: If powers is empty or no exponent finished in the budget

    Examples:
        >>> result = pick_soft_threshold(similarity, powers=range(1, 21))
        >>> print(result.fit_table[['power', 'fit_index', 'mean_connectivity']])
        >>> adjacency = result.adjacency
    """
    powers = sorted({int(p) for p in powers})
    if not powers:
        raise ValueError("powers must contain at least one exponent")

    logger.info(
        f"Soft-threshold scan over {len(powers)} power(s) "
        f"[{powers[0]}..{powers[-1]}], cutoff={r_squared_cutoff}"
    )

    scan = _scan_parallel if n_jobs > 1 and len(powers) > 1 else _scan_sequential
    rows = scan(similarity, powers, n_breaks, chunk_size, n_jobs, time_budget, verbose)

    skipped = [p for p in powers if p not in rows]
    if skipped:
        logger.warning(
            f"Soft-threshold scan exceeded its {time_budget}s budget; "
            f"skipped powers {skipped}"
        )
    if not rows:
        raise ValueError(
            f"No soft-threshold power was evaluated within the {time_budget}s budget"
        )

    fit_table = pd.DataFrame([rows[p] for p in sorted(rows)])
    fit_values = fit_table['fit_index'].to_numpy()

    passing = np.flatnonzero(fit_values >= r_squared_cutoff)
    if passing.size:
        selected_row = int(passing[0])
        reached = True
    else:
        selected_row = int(np.nanargmax(np.where(np.isnan(fit_values), -np.inf, fit_values)))
        reached = False

    power = int(fit_table.loc[selected_row, 'power'])
    fit_index = float(fit_table.loc[selected_row, 'fit_index'])

    if reached:
        logger.info(f"Selected soft-threshold power {power} (fit index {fit_index:.3f})")
    else:
        logger.warning(
            f"No power reached scale-free fit index {r_squared_cutoff}; "
            f"using power {power} with the best fit index {fit_index:.3f}"
        )

    return SoftThresholdResult(
        power=power,
        fit_index=fit_index,
        reached_cutoff=reached,
        r_squared_cutoff=r_squared_cutoff,
        fit_table=fit_table,
        adjacency=adjacency_matrix(similarity, power),
        skipped_powers=skipped,
    )

"""
Dynamic hybrid tree cut: adaptive branch detection on a hierarchical tree.

A fixed-height cut treats every branch alike; real co-expression dendrograms
have tight modules hanging at very different heights. The dynamic hybrid cut
(Langfelder, Zhang & Horvath 2008) walks the merges bottom-up and decides, at
every point where two branches meet, whether both are distinct modules or
whether the weaker one should be absorbed:

    - A *basic* branch grows by joining single leaves. A leaf (or an absorbed
      branch) that joins above the join height limit is not admitted as a
      member; it stays with the tree but is left unassigned.
    - When two branches meet, a basic branch is absorbed into the other if it
      is too small, its core is too scattered, its gap to the joining height
      is too shallow, or it joins below the minimum split height.
    - Otherwise both survive and a *composite* branch records them; basic
      branches that never get absorbed become modules
      when their core is compact and well separated from the cut height.

Only the tree-walking core is implemented here; there is no PAM stage, so
leaves not on a surviving basic branch stay unassigned (label 0).

Every threshold is a named field of ``DynamicCutParameters`` so the cut can be
audited and tested apart from clustering:

    >>> params = DynamicCutParameters(min_cluster_size=4, deep_split=2)
    >>> result = cutree_hybrid(linkage_matrix, dissimilarity, params)
    >>> result.labels
    array([1, 1, 1, 1, 0, 0, 0, 0])
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from coexnet.modules.assignment import relabel_by_size

logger = logging.getLogger(__name__)

__all__ = [
    'DEEP_SPLIT_MAX_CORE_SCATTER',
    'DEFAULT_MAX_JOIN_HEIGHT',
    'DynamicCutParameters',
    'TreeCutResult',
    'cutree_hybrid',
]

# Default max core scatter for deep_split = 0..4
DEEP_SPLIT_MAX_CORE_SCATTER = (0.64, 0.73, 0.82, 0.91, 0.95)
MIN_GAP_FRACTION = 0.75
# Members must join a basic branch in the lower half of the reference-to-cut range
DEFAULT_MAX_JOIN_HEIGHT = 0.5


@dataclass(frozen=True)
class DynamicCutParameters:
    """
    Thresholds of the dynamic hybrid cut.

    Relative thresholds (``max_core_scatter``, ``min_gap``,
    ``min_split_height``) are fractions of the range between the reference
    height and the cut height; the ``*_abs_*`` variants, when given, override
    them with absolute tree heights.

    Attributes:
        min_cluster_size: Smallest branch accepted as a module
        deep_split: Sensitivity 0..4; selects the default max core scatter
        cut_height: Merges above this height are ignored
            (None = ``cut_height_fraction`` of the reference-to-top range)
        max_core_scatter: Relative max core scatter (default from deep_split)
        min_gap: Relative min gap (default ``(1 - max_core_scatter) * 3/4``)
        max_abs_core_scatter: Absolute max core scatter
        min_abs_gap: Absolute min gap
        min_split_height: Relative min height at which branches may split
        min_abs_split_height: Absolute min split height (default 0)
        max_join_height: Relative height above which a leaf or absorbed
            branch joining a basic branch is not admitted as a member
            (default ``DEFAULT_MAX_JOIN_HEIGHT``)
        max_abs_join_height: Absolute join height limit
        ref_quantile: Quantile of merge heights used as reference height
        cut_height_fraction: Default cut height position within the range
    """
    min_cluster_size: int = 20
    deep_split: int = 2
    cut_height: Optional[float] = None
    max_core_scatter: Optional[float] = None
    min_gap: Optional[float] = None
    max_abs_core_scatter: Optional[float] = None
    min_abs_gap: Optional[float] = None
    min_split_height: Optional[float] = None
    min_abs_split_height: Optional[float] = None
    max_join_height: Optional[float] = None
    max_abs_join_height: Optional[float] = None
    ref_quantile: float = 0.05
    cut_height_fraction: float = 0.99

    def __post_init__(self):
        if self.min_cluster_size < 1:
            raise ValueError(f"min_cluster_size must be >= 1, got {self.min_cluster_size}")
        if self.deep_split not in range(len(DEEP_SPLIT_MAX_CORE_SCATTER)):
            raise ValueError(f"deep_split must be one of 0-4, got {self.deep_split}")
        if self.max_join_height is not None and self.max_join_height <= 0:
            raise ValueError(f"max_join_height must be > 0, got {self.max_join_height}")
        if not 0 <= self.ref_quantile < 1:
            raise ValueError(f"ref_quantile must be in [0, 1), got {self.ref_quantile}")
        if not 0 < self.cut_height_fraction <= 1:
            raise ValueError(
                f"cut_height_fraction must be in (0, 1], got {self.cut_height_fraction}"
            )


@dataclass
class TreeCutResult:
    """
    Labels and the absolute thresholds the cut actually used.

    Attributes:
        labels: Module label per leaf, 1 = largest module, 0 = unassigned
        cut_height: Effective cut height
        ref_height: Reference (low-quantile) merge height
        max_abs_core_scatter: Effective absolute core scatter limit
        min_abs_gap: Effective absolute gap limit
        min_abs_split_height: Effective absolute split height
        max_abs_join_height: Effective absolute join height limit
    """
    labels: np.ndarray
    cut_height: float = float("nan")
    ref_height: float = float("nan")
    max_abs_core_scatter: float = float("nan")
    min_abs_gap: float = float("nan")
    min_abs_split_height: float = float("nan")
    max_abs_join_height: float = float("nan")

    @property
    def n_modules(self) -> int:
        return int(len(np.unique(self.labels[self.labels > 0])))


@dataclass
class _Branch:
    is_basic: bool
    size: int
    singletons: List[int] = field(default_factory=list)
    basic_clusters: List[int] = field(default_factory=list)
    merging_heights: List[float] = field(default_factory=list)
    is_top_basic: bool = True
    attach_height: float = float("nan")
    merged_into: Optional[int] = None


def _core_size(branch_size: int, min_cluster_size: int) -> int:
    """Number of earliest-joined members forming the branch core."""
    base = min_cluster_size / 2 + 1
    if base < branch_size:
        return int(base + math.sqrt(branch_size - base))
    return branch_size


def _core_scatter(branch: _Branch, dissimilarity: np.ndarray, min_cluster_size: int) -> float:
    """Average within-core distance of a basic branch (0 for composites)."""
    if not branch.is_basic:
        return 0.0
    n_core = _core_size(len(branch.singletons), min_cluster_size)
    if n_core < 2:
        return 0.0
    core = branch.singletons[:n_core]
    block = dissimilarity[np.ix_(core, core)]
    return float(np.mean(block.sum(axis=0) / (n_core - 1)))


def _reference_height(heights: np.ndarray, quantile: float) -> float:
    ordered = np.sort(heights)
    ref_merge = int(round(len(ordered) * quantile))
    ref_merge = max(ref_merge, 1)
    return float(ordered[ref_merge - 1])


def cutree_hybrid(
    linkage_matrix: np.ndarray,
    dissimilarity: np.ndarray,
    params: Optional[DynamicCutParameters] = None,
) -> TreeCutResult:
    """
    Detect modules as branches of a hierarchical clustering tree.

    Args:
        linkage_matrix: scipy linkage matrix, (n-1) x 4, non-decreasing heights
        dissimilarity: n x n dissimilarity the tree was built from
        params: Cut thresholds (defaults: min_cluster_size=20, deep_split=2)

    Returns:
        TreeCutResult with one label per leaf (0 = unassigned)
    """
    params = params or DynamicCutParameters()
    linkage_matrix = np.asarray(linkage_matrix, dtype=np.float64)
    dissimilarity = np.asarray(dissimilarity, dtype=np.float64)

    n_leaves = dissimilarity.shape[0]
    n_merge = linkage_matrix.shape[0]
    if n_merge != max(n_leaves - 1, 0):
        raise ValueError(
            f"linkage has {n_merge} merges but dissimilarity has {n_leaves} leaves"
        )

    unassigned = TreeCutResult(labels=np.zeros(n_leaves, dtype=int))
    if n_leaves < params.min_cluster_size or n_merge == 0:
        logger.warning(
            f"Tree has {n_leaves} leaves and {n_merge} merges (min_cluster_size="
            f"{params.min_cluster_size}); all features unassigned"
        )
        return unassigned

    heights = linkage_matrix[:, 2]
    max_height = float(heights.max())
    ref_height = _reference_height(heights, params.ref_quantile)

    if params.cut_height is None:
        cut_height = params.cut_height_fraction * (max_height - ref_height) + ref_height
    else:
        cut_height = min(float(params.cut_height), max_height)

    # A module of min_cluster_size leaves needs min_cluster_size - 1 merges
    n_below_cut = int(np.sum(heights <= cut_height))
    if n_below_cut < params.min_cluster_size - 1:
        logger.warning(
            f"Cut height {cut_height:.4f} too low: {n_below_cut} merges below the cut; "
            f"all features unassigned"
        )
        unassigned.cut_height = cut_height
        unassigned.ref_height = ref_height
        return unassigned

    max_core_scatter = params.max_core_scatter
    if max_core_scatter is None:
        max_core_scatter = DEEP_SPLIT_MAX_CORE_SCATTER[params.deep_split]
    min_gap = params.min_gap
    if min_gap is None:
        min_gap = (1 - max_core_scatter) * MIN_GAP_FRACTION

    span = cut_height - ref_height
    max_abs_core_scatter = params.max_abs_core_scatter
    if max_abs_core_scatter is None:
        max_abs_core_scatter = ref_height + max_core_scatter * span
    min_abs_gap = params.min_abs_gap
    if min_abs_gap is None:
        min_abs_gap = min_gap * span
    min_abs_split_height = params.min_abs_split_height
    if min_abs_split_height is None:
        if params.min_split_height is None:
            min_abs_split_height = 0.0
        else:
            min_abs_split_height = ref_height + params.min_split_height * span
    max_abs_join_height = params.max_abs_join_height
    if max_abs_join_height is None:
        max_join_height = params.max_join_height
        if max_join_height is None:
            max_join_height = DEFAULT_MAX_JOIN_HEIGHT
        max_abs_join_height = ref_height + max_join_height * span

    logger.debug(
        f"Dynamic cut: cut_height={cut_height:.4f}, ref_height={ref_height:.4f}, "
        f"max_abs_core_scatter={max_abs_core_scatter:.4f}, min_abs_gap={min_abs_gap:.4f}, "
        f"max_abs_join_height={max_abs_join_height:.4f}"
    )

    min_size = params.min_cluster_size
    branches: List[_Branch] = []
    merge_branch = np.full(n_merge, -1, dtype=int)

    def fails(branch: _Branch, scatter: float, height: float) -> bool:
        return branch.is_basic and (
            branch.size < min_size
            or scatter > max_abs_core_scatter
            or height - scatter < min_abs_gap
            or height < min_abs_split_height
        )

    for merge in range(n_merge):
        height = float(heights[merge])
        if height > cut_height:
            # average linkage heights are non-decreasing
            break

        left, right = int(linkage_matrix[merge, 0]), int(linkage_matrix[merge, 1])
        left_leaf, right_leaf = left < n_leaves, right < n_leaves

        if left_leaf and right_leaf:
            pair = [left, right] if height <= max_abs_join_height else []
            branches.append(_Branch(
                is_basic=True,
                size=len(pair),
                singletons=pair,
                merging_heights=[height, height],
            ))
            merge_branch[merge] = len(branches) - 1

        elif left_leaf or right_leaf:
            leaf, other = (left, right) if left_leaf else (right, left)
            index = merge_branch[other - n_leaves]
            branch = branches[index]
            # basic branches only count members admitted below the join limit
            if not branch.is_basic:
                branch.size += 1
            elif height <= max_abs_join_height:
                branch.singletons.append(leaf)
                branch.size += 1
            branch.merging_heights.append(height)
            merge_branch[merge] = index

        else:
            first = merge_branch[left - n_leaves]
            second = merge_branch[right - n_leaves]
            # size ties: the first branch counts as the smaller one
            if branches[first].size <= branches[second].size:
                small, large = first, second
            else:
                small, large = second, first

            small_scatter = _core_scatter(branches[small], dissimilarity, min_size)
            large_scatter = _core_scatter(branches[large], dissimilarity, min_size)

            if fails(branches[small], small_scatter, height):
                do_merge = True
            elif fails(branches[large], large_scatter, height):
                do_merge = True
                small, large = large, small
            else:
                do_merge = False

            if do_merge:
                absorbed, target = branches[small], branches[large]
                absorbed.merged_into = large
                absorbed.attach_height = height
                absorbed.is_top_basic = False
                if not target.is_basic:
                    target.size += absorbed.size
                elif height <= max_abs_join_height:
                    target.singletons.extend(absorbed.singletons)
                    target.size += absorbed.size
                target.merging_heights.append(height)
                merge_branch[merge] = large
            else:
                if branches[large].is_basic and not branches[small].is_basic:
                    small, large = large, small
                small_branch, large_branch = branches[small], branches[large]

                if large_branch.is_basic:
                    branches.append(_Branch(
                        is_basic=False,
                        size=small_branch.size + large_branch.size,
                        basic_clusters=[small, large],
                        merging_heights=[height, height],
                        is_top_basic=False,
                    ))
                    composite = len(branches) - 1
                    for index in (small, large):
                        branches[index].attach_height = height
                        branches[index].merged_into = composite
                    merge_branch[merge] = composite
                else:
                    if small_branch.is_basic:
                        large_branch.basic_clusters.append(small)
                    else:
                        large_branch.basic_clusters.extend(small_branch.basic_clusters)
                    large_branch.merging_heights.append(height)
                    large_branch.size += small_branch.size
                    small_branch.attach_height = height
                    small_branch.merged_into = large
                    merge_branch[merge] = large

    # Surviving basic branches must also be compact and separated from where
    # they attach (the cut height for branches that never joined another)
    labels = np.zeros(n_leaves, dtype=int)
    next_label = 1
    for branch in branches:
        if not (branch.is_basic and branch.is_top_basic) or branch.size < min_size:
            continue
        attach_height = cut_height if math.isnan(branch.attach_height) else branch.attach_height
        scatter = _core_scatter(branch, dissimilarity, min_size)
        if scatter < max_abs_core_scatter and attach_height - scatter > min_abs_gap:
            labels[branch.singletons] = next_label
            next_label += 1

    labels = relabel_by_size(labels)
    result = TreeCutResult(
        labels=labels,
        cut_height=cut_height,
        ref_height=ref_height,
        max_abs_core_scatter=max_abs_core_scatter,
        min_abs_gap=min_abs_gap,
        min_abs_split_height=min_abs_split_height,
        max_abs_join_height=max_abs_join_height,
    )
    logger.debug(
        f"Dynamic cut found {result.n_modules} branches, "
        f"{int(np.sum(labels == 0))} leaves unassigned"
    )
    return result

"""
End-to-end network construction and module discovery.

    matrix ─► similarity ─► soft threshold ─► TOM dissimilarity
           ─► tree + dynamic cut ─► eigenfeatures ─► merge ─► re-summarize
           ─► membership (kME) ─► trait association

``run_pipeline`` is the library entry point. Each stage logs its boundary at
INFO; fatal errors propagate unchanged and name the stage that raised them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from coexnet.config import PipelineConfig
from coexnet.core.expression import ExpressionMatrix
from coexnet.modules.assignment import ModuleAssignment
from coexnet.modules.detection import ModuleDetectionResult, detect_modules
from coexnet.modules.eigengenes import EigengeneResult, compute_eigengenes
from coexnet.modules.membership import MembershipResult, hub_features, module_membership
from coexnet.modules.merging import MergeResult, merge_modules
from coexnet.network.similarity import compute_similarity
from coexnet.network.soft_threshold import SoftThresholdResult, pick_soft_threshold
from coexnet.network.topology import tom_dissimilarity
from coexnet.traits.association import AssociationResult, associate_traits
from coexnet.traits.encoding import TraitEncoding, encode_traits

logger = logging.getLogger(__name__)

__all__ = ['PipelineResult', 'run_pipeline']

TraitSpec = Union[TraitEncoding, Sequence[Union[TraitEncoding, str]], str, None]


@dataclass
class PipelineResult:
    """
    Everything a run produces.

    Attributes:
        config: Configuration the run used
        soft_threshold: Power scan and adjacency
        detection: Clustering tree and unmerged module assignment
        eigengenes: Eigenfeatures of the unmerged modules
        merge: Merged assignment and eigenfeatures
        membership: Feature x module kME table
        hubs: Highest-kME members per merged module
        association: Module-trait tables (None without traits)
        traits: Trait encodings used for association
        timings: Seconds spent per stage
    """
    config: PipelineConfig
    soft_threshold: SoftThresholdResult
    detection: ModuleDetectionResult
    eigengenes: EigengeneResult
    merge: MergeResult
    membership: MembershipResult
    hubs: pd.DataFrame
    association: Optional[AssociationResult] = None
    traits: List[TraitEncoding] = field(default_factory=list)
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def assignment(self) -> ModuleAssignment:
        """Final (merged) module assignment."""
        return self.merge.assignment

    @property
    def merged_eigengenes(self) -> pd.DataFrame:
        return self.merge.eigengenes.eigengenes

    def summary(self) -> Dict[str, object]:
        """JSON-serializable run summary."""
        assignment = self.assignment
        summary = {
            'soft_threshold': self.soft_threshold.summary(),
            'n_features': int(len(assignment.labels)),
            'n_modules_detected': self.detection.assignment.n_modules,
            'n_modules': assignment.n_modules,
            'n_unassigned': assignment.n_unassigned,
            'module_sizes': {
                assignment.color_of(label): int(size)
                for label, size in assignment.sizes().items()
            },
            'variance_explained': {
                name: float(value)
                for name, value in self.merge.eigengenes.variance_explained.items()
            },
            'merge_passes': self.merge.n_passes,
            'config': self.config.to_dict(),
            'timings': dict(self.timings),
        }
        if self.association is not None:
            summary['traits'] = [trait.name for trait in self.traits]
            summary['significant_modules'] = self.association.significant_modules
        return summary


def _resolve_traits(matrix: ExpressionMatrix, traits: TraitSpec) -> List[TraitEncoding]:
    if traits is None:
        return []
    if isinstance(traits, (TraitEncoding, str)):
        traits = [traits]

    encodings = []
    for trait in traits:
        if isinstance(trait, TraitEncoding):
            encodings.append(trait)
        else:
            encodings.extend(encode_traits(matrix.sample_metadata, [trait]))
    return encodings


def run_pipeline(
    matrix: ExpressionMatrix,
    traits: TraitSpec = None,
    config: Optional[PipelineConfig] = None,
    verbose: bool = False,
) -> PipelineResult:
    """
    Build the co-expression network and discover modules.

    Args:
        matrix: Samples x features data; no missing values, no constant features
        traits: Trait encodings and/or sample-metadata column names to
            associate with modules (None = skip association)
        config: Pipeline parameters (defaults if None)
        verbose: Progress bar for the power scan

    Returns:
        PipelineResult

    Raises:
        DegenerateFeatureError: Constant or non-finite features (stage similarity)
        InsufficientSamplesError: Fewer than 3 samples
        EmptyModuleError: A module lost all members (stage eigengenes)

    Examples:
        >>> config = PipelineConfig(min_cluster_size=30, merge_height=0.2)
        >>> result = run_pipeline(matrix, traits=['group'], config=config)
        >>> result.assignment.n_modules
        7
    """
    config = config or PipelineConfig()
    encodings = _resolve_traits(matrix, traits)
    timings: Dict[str, float] = {}

    logger.info(
        f"Network pipeline: {matrix.n_samples} samples x {matrix.n_features:,} features, "
        f"{config.correlation_estimator.value} correlation"
    )

    start = time.perf_counter()
    similarity = compute_similarity(
        matrix,
        estimator=config.correlation_estimator,
        chunk_size=config.chunk_size,
        n_jobs=config.n_jobs,
    )
    timings['similarity'] = time.perf_counter() - start

    start = time.perf_counter()
    soft_threshold = pick_soft_threshold(
        similarity,
        powers=config.soft_power_range,
        r_squared_cutoff=config.r_squared_cutoff,
        n_breaks=config.n_breaks,
        chunk_size=config.chunk_size,
        n_jobs=config.n_jobs,
        time_budget=config.scan_time_budget,
        verbose=verbose,
    )
    del similarity
    timings['soft_threshold'] = time.perf_counter() - start

    start = time.perf_counter()
    dissimilarity = tom_dissimilarity(soft_threshold.adjacency)
    timings['topology'] = time.perf_counter() - start

    start = time.perf_counter()
    detection = detect_modules(
        dissimilarity,
        matrix.feature_ids,
        min_cluster_size=config.min_cluster_size,
        deep_split=config.deep_split,
        cut_height=config.cut_height,
    )
    del dissimilarity
    timings['detection'] = time.perf_counter() - start

    start = time.perf_counter()
    eigengenes = compute_eigengenes(matrix, detection.assignment)
    merge = merge_modules(
        matrix,
        detection.assignment,
        eigengenes,
        merge_height=config.merge_height,
        iterations=config.merge_iterations,
    )
    timings['eigengenes'] = time.perf_counter() - start

    start = time.perf_counter()
    membership = module_membership(matrix, merge.eigengenes)
    hubs = hub_features(membership, merge.assignment, top_n=config.hub_top_n)
    timings['membership'] = time.perf_counter() - start

    association = None
    if encodings:
        start = time.perf_counter()
        association = associate_traits(
            merge.eigengenes.eigengenes,
            encodings,
            alpha=config.alpha,
            min_abs_correlation=config.min_abs_correlation,
        )
        timings['association'] = time.perf_counter() - start

    logger.info(
        f"Pipeline complete: β={soft_threshold.power}, "
        f"{merge.assignment.n_modules} modules, "
        f"{merge.assignment.n_unassigned:,} features unassigned"
    )
    return PipelineResult(
        config=config,
        soft_threshold=soft_threshold,
        detection=detection,
        eigengenes=eigengenes,
        merge=merge,
        membership=membership,
        hubs=hubs,
        association=association,
        traits=encodings,
        timings=timings,
    )

"""
Weighted network construction.

    expression → similarity (signed correlation) → adjacency (|s|^β)
               → topological overlap dissimilarity
"""

from coexnet.network.similarity import (
    compute_similarity,
    correlation_matrix,
    signed_similarity,
)
from coexnet.network.soft_threshold import (
    SoftThresholdResult,
    adjacency_matrix,
    connectivity,
    pick_soft_threshold,
    scale_free_fit,
)
from coexnet.network.topology import tom_dissimilarity, topological_overlap

__all__ = [
    'compute_similarity',
    'correlation_matrix',
    'signed_similarity',
    'SoftThresholdResult',
    'adjacency_matrix',
    'connectivity',
    'pick_soft_threshold',
    'scale_free_fit',
    'tom_dissimilarity',
    'topological_overlap',
]

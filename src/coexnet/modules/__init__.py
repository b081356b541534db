"""
Module detection and summarization.

    TOM dissimilarity → average-linkage tree → dynamic hybrid cut
        → eigenfeatures → merging of near-identical modules → kME
"""

from coexnet.modules.assignment import GREY, UNASSIGNED, ModuleAssignment, label_color
from coexnet.modules.detection import ModuleDetectionResult, cluster_features, detect_modules
from coexnet.modules.eigengenes import EigengeneResult, compute_eigengenes, module_eigengene
from coexnet.modules.membership import MembershipResult, hub_features, module_membership
from coexnet.modules.merging import MergeResult, eigengene_dissimilarity, merge_modules
from coexnet.modules.tree_cut import DynamicCutParameters, TreeCutResult, cutree_hybrid

__all__ = [
    'GREY',
    'UNASSIGNED',
    'ModuleAssignment',
    'label_color',
    'ModuleDetectionResult',
    'cluster_features',
    'detect_modules',
    'EigengeneResult',
    'compute_eigengenes',
    'module_eigengene',
    'MembershipResult',
    'hub_features',
    'module_membership',
    'MergeResult',
    'eigengene_dissimilarity',
    'merge_modules',
    'DynamicCutParameters',
    'TreeCutResult',
    'cutree_hybrid',
]

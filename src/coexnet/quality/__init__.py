"""
Quality control transforms applied before network construction.

Modules:
    filtering: DegenerateFeatureFilter, SampleOutlierFilter
    imputation: MedianImputer

Typical order:
    1. DegenerateFeatureFilter drops sparse and constant features
    2. MedianImputer fills the remaining scattered gaps
    3. SampleOutlierFilter removes samples far from the main cluster
"""

from coexnet.quality.filtering import DegenerateFeatureFilter, SampleOutlierFilter
from coexnet.quality.imputation import MedianImputer

__all__ = [
    'DegenerateFeatureFilter',
    'SampleOutlierFilter',
    'MedianImputer',
]

"""
coexnet: weighted co-expression network analysis.

Discovers modules of co-varying features (genes, lipids, metabolites) from a
samples x features matrix and relates them to categorical sample traits:

    similarity → soft-threshold adjacency → topological overlap
        → dynamic tree cut → eigenfeatures → merging → trait association

Examples:
    >>> from coexnet import PipelineConfig, load_expression_csv, run_pipeline
    >>> matrix = load_expression_csv("lipids.csv", trait_columns=["group"])
    >>> result = run_pipeline(matrix, traits=["group"], config=PipelineConfig(min_cluster_size=10))
    >>> result.assignment.sizes()
"""

__version__ = "0.1.0"

from coexnet.config import CorrelationEstimator, PipelineConfig, load_config
from coexnet.core.expression import ExpressionMatrix
from coexnet.exceptions import (
    CoexnetError,
    DegenerateFeatureError,
    EmptyModuleError,
    InsufficientSamplesError,
)
from coexnet.io.loaders import load_expression_csv
from coexnet.io.writers import write_results
from coexnet.pipeline import PipelineResult, run_pipeline

__all__ = [
    '__version__',
    'CorrelationEstimator',
    'PipelineConfig',
    'load_config',
    'ExpressionMatrix',
    'CoexnetError',
    'DegenerateFeatureError',
    'EmptyModuleError',
    'InsufficientSamplesError',
    'load_expression_csv',
    'write_results',
    'PipelineResult',
    'run_pipeline',
]

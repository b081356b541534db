"""Argument groups and input preparation shared by the CLI commands."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from coexnet.cli._validators import (
    _deep_split,
    _positive_float,
    _positive_int,
    _power_range,
    _probability,
    _unit_interval,
)
from coexnet.config import CorrelationEstimator, PipelineConfig, load_config
from coexnet.core.expression import ExpressionMatrix
from coexnet.io.loaders import load_expression_csv
from coexnet.quality.filtering import DegenerateFeatureFilter, SampleOutlierFilter
from coexnet.quality.imputation import MedianImputer

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# CLI dest -> PipelineConfig field
CONFIG_FLAGS = {
    'powers': 'soft_power_range',
    'r_squared_cutoff': 'r_squared_cutoff',
    'n_breaks': 'n_breaks',
    'min_module_size': 'min_cluster_size',
    'deep_split': 'deep_split',
    'cut_height': 'cut_height',
    'merge_height': 'merge_height',
    'merge_iterations': 'merge_iterations',
    'correlation': 'correlation_estimator',
    'workers': 'n_jobs',
    'chunk_size': 'chunk_size',
    'time_budget': 'scan_time_budget',
    'alpha': 'alpha',
    'min_abs_correlation': 'min_abs_correlation',
    'hub_top_n': 'hub_top_n',
}


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


def add_input_arguments(parser: argparse.ArgumentParser) -> None:
    """Input file and preprocessing options."""
    parser.add_argument("--input", "-i", type=Path, required=True,
                        help="Abundance table CSV/TSV (samples x features)")
    parser.add_argument("--sample-column", default=None,
                        help="Column holding sample ids (default: first column)")
    parser.add_argument("--transpose", action="store_true",
                        help="Input has features as rows and samples as columns")
    parser.add_argument("--max-missing", type=_unit_interval, default=0.5,
                        help="Drop features with a larger missing fraction (default: 0.5)")
    parser.add_argument("--sample-cut-height", type=_positive_float, default=None,
                        help="Remove outlier samples above this sample-tree height")
    parser.add_argument("--min-sample-cluster", type=_positive_int, default=10,
                        help="Minimum size of the retained sample cluster (default: 10)")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="YAML/JSON pipeline configuration (flags override it)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging and progress bars")


def add_network_arguments(parser: argparse.ArgumentParser) -> None:
    """Soft-threshold and similarity options."""
    parser.add_argument("--powers", type=_power_range, default=None,
                        help="Candidate soft powers, e.g. 1-20 or 4,6,8 (default: 1-20)")
    parser.add_argument("--r-squared-cutoff", type=_probability, default=None,
                        help="Scale-free fit index to reach (default: 0.8)")
    parser.add_argument("--n-breaks", type=_positive_int, default=None,
                        help="Connectivity bins in the scale-free fit (default: 10)")
    parser.add_argument("--correlation", choices=[e.value for e in CorrelationEstimator],
                        default=None, help="Correlation estimator (default: pearson)")
    parser.add_argument("--workers", type=_positive_int, default=None,
                        help="Worker threads (default: 1)")
    parser.add_argument("--chunk-size", type=_positive_int, default=None,
                        help="Rows per matrix block (default: 1000)")
    parser.add_argument("--time-budget", type=_positive_float, default=None,
                        help="Seconds allowed for the power scan (default: unlimited)")


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Defaults < config file < command-line flags."""
    values = load_config(args.config) if getattr(args, 'config', None) else {}
    for dest, field_name in CONFIG_FLAGS.items():
        value = getattr(args, dest, None)
        if value is not None:
            values[field_name] = value
    return PipelineConfig.from_dict(values)


def prepare_matrix(args: argparse.Namespace, trait_columns=()) -> ExpressionMatrix:
    """Load the input table and apply the quality transforms."""
    matrix = load_expression_csv(
        args.input,
        trait_columns=trait_columns,
        sample_column=args.sample_column,
        transpose=args.transpose,
    )
    matrix = DegenerateFeatureFilter(max_missing_fraction=args.max_missing).apply(matrix)
    matrix = MedianImputer().apply(matrix)
    if args.sample_cut_height is not None:
        matrix = SampleOutlierFilter(
            cut_height=args.sample_cut_height,
            min_cluster_size=args.min_sample_cluster,
        ).apply(matrix)
    return matrix


def add_module_arguments(parser: argparse.ArgumentParser) -> None:
    """Tree cut, merging and association options."""
    parser.add_argument("--min-module-size", type=_positive_int, default=None,
                        help="Minimum features per module (default: 20)")
    parser.add_argument("--deep-split", type=_deep_split, default=None,
                        help="Branch-splitting sensitivity 0-4 (default: 2)")
    parser.add_argument("--cut-height", type=_positive_float, default=None,
                        help="Maximum dendrogram height for the tree cut (default: automatic)")
    parser.add_argument("--merge-height", type=_unit_interval, default=None,
                        help="Eigenfeature dissimilarity below which modules merge (default: 0.25)")
    parser.add_argument("--merge-iterations", type=_positive_int, default=None,
                        help="Maximum merge passes (default: 1)")
    parser.add_argument("--alpha", type=_probability, default=None,
                        help="p-value threshold for module-trait significance (default: 0.05)")
    parser.add_argument("--min-abs-correlation", type=_unit_interval, default=None,
                        help="|r| floor for module-trait significance (default: 0.2)")
    parser.add_argument("--hub-top-n", type=_positive_int, default=None,
                        help="Hub features reported per module (default: 10)")

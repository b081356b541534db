"""
coexnet run command - full network construction and module discovery.

Loads an abundance table, filters degenerate features, imputes scattered
gaps, optionally removes outlier samples, runs the pipeline and writes the
result tables.

Usage:
    coexnet run --input lipids.csv --trait group --output results/
    coexnet run --input data.csv --trait group --config network.yaml --workers 4
"""

import argparse
import logging
from pathlib import Path

from coexnet.cli._common import (
    add_input_arguments,
    add_module_arguments,
    add_network_arguments,
    build_config,
    prepare_matrix,
    setup_logging,
)
from coexnet.exceptions import CoexnetError
from coexnet.io.writers import write_results
from coexnet.pipeline import run_pipeline

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the run subcommand."""
    parser = subparsers.add_parser(
        "run",
        help="Build the network, detect modules and associate them with traits",
        description=(
            "Signed weighted co-expression network analysis: soft-threshold "
            "selection, topological overlap, dynamic tree cut, eigenfeature "
            "merging and module-trait correlation."
        )
    )
    add_input_arguments(parser)
    parser.add_argument("--trait", "-t", action="append", default=[],
                        help="Categorical trait column (repeatable)")
    parser.add_argument("--output", "-o", type=Path, default=Path("results/coexnet"),
                        help="Output directory (default: results/coexnet)")
    add_network_arguments(parser)
    add_module_arguments(parser)
    parser.set_defaults(func=run_network)


def run_network(args: argparse.Namespace) -> int:
    """Execute the run command."""
    setup_logging(args.verbose)

    try:
        config = build_config(args)
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    print(f"\n{'='*70}")
    print("  Co-expression Network Analysis")
    print(f"{'='*70}\n")

    try:
        matrix = prepare_matrix(args, trait_columns=args.trait)
        result = run_pipeline(
            matrix,
            traits=args.trait or None,
            config=config,
            verbose=args.verbose,
        )
    except CoexnetError as e:
        logger.error(f"Pipeline failed: {e}")
        return 1
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Could not prepare input: {e}")
        return 1

    try:
        paths = write_results(result, args.output)
    except OSError as e:
        logger.error(f"Could not write results to {args.output}: {e}")
        return 1

    assignment = result.assignment
    threshold = result.soft_threshold
    print(f"\n{'='*70}")
    print("  Results")
    print(f"{'='*70}")
    fallback = "" if threshold.reached_cutoff else " (cutoff not reached)"
    print(f"  Soft power:        {threshold.power} (fit {threshold.fit_index:.3f}){fallback}")
    print(f"  Modules:           {assignment.n_modules} "
          f"({result.detection.assignment.n_modules} before merging)")
    print(f"  Unassigned:        {assignment.n_unassigned} features")
    for label, size in assignment.sizes().items():
        print(f"    {assignment.color_of(label):<16} {size} features")
    if result.association is not None:
        significant = result.association.significant_modules
        print(f"  Trait-associated:  {', '.join(significant) if significant else 'none'}")
    print(f"\n  Output: {args.output} ({len(paths)} files)")
    return 0

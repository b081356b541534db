"""
coexnet pick-power command - scale-free fit table for candidate soft powers.

Runs only the similarity and soft-threshold stages so the exponent can be
inspected before a full run.

Usage:
    coexnet pick-power --input lipids.csv --powers 1-20
    coexnet pick-power --input data.csv --output fit.csv --workers 4
"""

import argparse
import logging
from pathlib import Path

from coexnet.cli._common import (
    add_input_arguments,
    add_network_arguments,
    build_config,
    prepare_matrix,
    setup_logging,
)
from coexnet.exceptions import CoexnetError
from coexnet.io.writers import write_table
from coexnet.network.similarity import compute_similarity
from coexnet.network.soft_threshold import pick_soft_threshold

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the pick-power subcommand."""
    parser = subparsers.add_parser(
        "pick-power",
        help="Print the scale-free fit table for candidate soft powers",
        description="Evaluate scale-free topology fit for each candidate exponent."
    )
    add_input_arguments(parser)
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Also write the fit table to this CSV")
    add_network_arguments(parser)
    parser.set_defaults(func=run_pick_power)


def run_pick_power(args: argparse.Namespace) -> int:
    """Execute the pick-power command."""
    setup_logging(args.verbose)

    try:
        config = build_config(args)
        matrix = prepare_matrix(args)
        similarity = compute_similarity(
            matrix,
            estimator=config.correlation_estimator,
            chunk_size=config.chunk_size,
            n_jobs=config.n_jobs,
        )
        result = pick_soft_threshold(
            similarity,
            powers=config.soft_power_range,
            r_squared_cutoff=config.r_squared_cutoff,
            n_breaks=config.n_breaks,
            chunk_size=config.chunk_size,
            n_jobs=config.n_jobs,
            time_budget=config.scan_time_budget,
            verbose=args.verbose,
        )
    except CoexnetError as e:
        logger.error(f"Power selection failed: {e}")
        return 1
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Could not prepare input: {e}")
        return 1

    print(result.fit_table.to_string(index=False, float_format=lambda v: f"{v:.4f}"))
    status = "reaches" if result.reached_cutoff else "does not reach"
    print(f"\nSelected power {result.power}: fit index {result.fit_index:.3f} "
          f"{status} the cutoff {result.r_squared_cutoff}")

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        write_table(result.fit_table, args.output, index=False)
        logger.info(f"Wrote fit table to {args.output}")
    return 0

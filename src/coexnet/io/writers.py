"""
Result writers for pipeline output.

Output files (in ``output_dir``):
    module_assignment.csv        feature, module, color, kME in own module
    eigengenes.csv               samples x merged module eigenfeatures
    soft_threshold.csv           one row per evaluated exponent
    hub_features.csv             top-kME members per module
    module_trait_correlation.csv modules x trait levels (with traits only)
    module_trait_pvalue.csv      modules x trait levels (with traits only)
    summary.json                 chosen power, module sizes, config, timings

Every file is written atomically, so an interrupted run leaves either the
previous file or the complete new one.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, TYPE_CHECKING

import pandas as pd

from coexnet.utils.fileio import atomic_write_json, atomic_write_text

if TYPE_CHECKING:
    from coexnet.pipeline import PipelineResult

logger = logging.getLogger(__name__)

__all__ = ['assignment_table', 'write_table', 'write_results']


def write_table(frame: pd.DataFrame, path: Path, index: bool = True) -> Path:
    """Write a DataFrame as CSV atomically."""
    atomic_write_text(path, frame.to_csv(index=index))
    return path


def assignment_table(result: PipelineResult) -> pd.DataFrame:
    """Per-feature module label, color and own-module kME."""
    assignment = result.assignment
    table = assignment.to_frame()
    table['kME'] = result.membership.own_module(assignment)
    table.index.name = 'feature'
    return table


def write_results(result: PipelineResult, output_dir: Path) -> Dict[str, Path]:
    """
    Write all result tables and the run summary.

    Args:
        result: Output of run_pipeline
        output_dir: Destination directory (created if needed)

    Returns:
        Mapping of table name -> written path

    Examples:
        >>> paths = write_results(run_pipeline(matrix, traits=['group']), Path("results"))
        >>> sorted(paths)
        ['eigengenes', 'hub_features', 'module_assignment', ...]
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths: Dict[str, Path] = {}
    paths['module_assignment'] = write_table(
        assignment_table(result), output_dir / "module_assignment.csv"
    )

    eigengenes = result.merged_eigengenes.copy()
    eigengenes.index.name = 'sample'
    paths['eigengenes'] = write_table(eigengenes, output_dir / "eigengenes.csv")

    paths['soft_threshold'] = write_table(
        result.soft_threshold.fit_table, output_dir / "soft_threshold.csv", index=False
    )
    paths['hub_features'] = write_table(
        result.hubs, output_dir / "hub_features.csv", index=False
    )

    if result.association is not None:
        correlation = result.association.correlation.rename_axis('module')
        pvalues = result.association.pvalues.rename_axis('module')
        paths['module_trait_correlation'] = write_table(
            correlation, output_dir / "module_trait_correlation.csv"
        )
        paths['module_trait_pvalue'] = write_table(
            pvalues, output_dir / "module_trait_pvalue.csv"
        )

    summary_path = output_dir / "summary.json"
    atomic_write_json(summary_path, result.summary())
    paths['summary'] = summary_path

    logger.info(f"Wrote {len(paths)} result files to {output_dir}")
    return paths

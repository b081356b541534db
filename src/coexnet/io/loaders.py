"""
CSV loader for sample-by-feature abundance tables.

Expected layout (one row per sample):

    sample,group,PC_34_1,TG_52_2,...
    S01,control,5.21,7.80,...
    S02,treated,5.43,7.12,...

- First column (or ``sample_column``): unique sample ids
- Trait columns (``trait_columns``) and any other non-numeric column go to
  sample metadata
- Remaining columns are numeric features

Feature names that start with the eigenfeature prefix ("ME") are renamed
with an "X" prefix so they can never collide with eigenfeature columns in
result tables. Feature-major files (features as rows) are read with
``transpose=True``.

Examples:
    >>> from pathlib import Path
    >>> from coexnet.io.loaders import load_expression_csv
    >>>
    >>> matrix = load_expression_csv(Path("lipidomics.csv"), trait_columns=["group"])
    >>> matrix.sample_metadata['group'].value_counts()
    control    12
    treated    12
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from coexnet.core.expression import ExpressionMatrix
from coexnet.modules.eigengenes import EIGENGENE_PREFIX

logger = logging.getLogger(__name__)

__all__ = ['RENAME_PREFIX', 'rename_reserved_features', 'load_expression_csv']

RENAME_PREFIX = "X"


def _separator(path: Path) -> str:
    return "\t" if path.suffix.lower() in (".tsv", ".txt") else ","


def _check_unique(values: Sequence[str], what: str, path: Path) -> None:
    seen = set()
    dupes = []
    for value in values:
        if value in seen and value not in dupes:
            dupes.append(value)
        seen.add(value)
    if dupes:
        raise ValueError(f"Duplicate {what} in {path}: {dupes[:5]}")


def rename_reserved_features(
    feature_ids: Sequence[str],
    reserved_prefix: str = EIGENGENE_PREFIX,
) -> List[str]:
    """Prefix features whose names start with ``reserved_prefix`` with "X"."""
    renamed = [
        f"{RENAME_PREFIX}{name}" if reserved_prefix and name.startswith(reserved_prefix) else name
        for name in feature_ids
    ]
    changed = [old for old, new in zip(feature_ids, renamed) if old != new]
    if changed:
        logger.warning(
            f"Renamed {len(changed)} feature(s) starting with reserved prefix "
            f"'{reserved_prefix}': {changed[:5]}"
        )
    return renamed


def load_expression_csv(
    path: Path,
    trait_columns: Sequence[str] = (),
    sample_column: Optional[str] = None,
    reserved_prefix: str = EIGENGENE_PREFIX,
    transpose: bool = False,
) -> ExpressionMatrix:
    """
    Load a CSV/TSV abundance table into an ExpressionMatrix.

    Args:
        path: CSV (comma) or TSV/TXT (tab) file
        trait_columns: Columns holding categorical sample traits
        sample_column: Column with sample ids (default: first column)
        reserved_prefix: Feature-name prefix reserved for eigenfeatures
        transpose: File has features as rows and samples as columns
            (first column = feature ids; no trait columns)

    Returns:
        ExpressionMatrix (samples x features) with traits in sample_metadata.
        Missing values are kept as NaN for the quality filters to handle.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: Duplicate ids, missing trait/sample columns, or a file
            without numeric feature columns
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Expression file not found: {path}")

    sep = _separator(path)
    header = pd.read_csv(path, sep=sep, header=None, nrows=1).iloc[0].astype(str).tolist()
    _check_unique(header, "column names", path)

    frame = pd.read_csv(path, sep=sep)
    if frame.empty:
        raise ValueError(f"No data rows in {path}")

    if transpose:
        if trait_columns:
            raise ValueError("trait_columns cannot be combined with transpose=True")
        frame = frame.set_index(frame.columns[0])
        _check_unique(frame.index.astype(str).tolist(), "feature ids", path)
        frame = frame.T
        metadata = pd.DataFrame(index=frame.index)
    else:
        sample_column = sample_column or frame.columns[0]
        if sample_column not in frame.columns:
            raise ValueError(f"Sample column '{sample_column}' not found in {path}")
        missing = [c for c in trait_columns if c not in frame.columns]
        if missing:
            raise ValueError(
                f"Trait columns not found in {path}: {missing}. "
                f"Available: {list(frame.columns)}"
            )

        frame = frame.set_index(sample_column)
        _check_unique(frame.index.astype(str).tolist(), "sample ids", path)

        non_numeric = [
            c for c in frame.columns
            if c not in trait_columns and not pd.api.types.is_numeric_dtype(frame[c])
        ]
        if non_numeric:
            logger.info(f"Treating non-numeric columns as sample metadata: {non_numeric}")
        metadata_columns = list(trait_columns) + non_numeric
        metadata = frame[metadata_columns].copy()
        frame = frame.drop(columns=metadata_columns)

    frame.index = frame.index.astype(str)
    metadata.index = frame.index
    frame.columns = rename_reserved_features(
        [str(c) for c in frame.columns], reserved_prefix
    )
    _check_unique(list(frame.columns), "feature names after renaming", path)

    if frame.shape[1] == 0:
        raise ValueError(f"No numeric feature columns in {path}")
    try:
        frame = frame.apply(pd.to_numeric)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Non-numeric values in feature columns of {path}: {e}")

    matrix = ExpressionMatrix.from_frame(frame, sample_metadata=metadata)
    logger.info(
        f"Loaded {matrix.n_samples} samples x {matrix.n_features:,} features from {path.name}"
    )
    return matrix

"""
Categorical trait encoding.

A categorical sample trait (treatment group, genotype, sex) is turned into
one 0/1 indicator column per level so that each level can be correlated with
module eigenfeatures. Every encoded sample carries exactly one level; samples
with a missing trait value are left out of the encoding.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

__all__ = ['TraitEncoding', 'encode_trait', 'encode_traits']


@dataclass(frozen=True)
class TraitEncoding:
    """
    One-hot encoding of a categorical trait.

    Attributes:
        name: Trait name (metadata column)
        indicators: Samples x levels, float 0/1, each row sums to 1
    """
    name: str
    indicators: pd.DataFrame

    @property
    def levels(self) -> List[str]:
        return [str(level) for level in self.indicators.columns]

    @property
    def n_samples(self) -> int:
        return len(self.indicators)

    def column_name(self, level: str) -> str:
        return f"{self.name}_{level}"

    def labeled_indicators(self) -> pd.DataFrame:
        """Indicators with columns renamed ``<trait>_<level>``."""
        return self.indicators.rename(columns=lambda level: self.column_name(str(level)))


def encode_trait(
    values: pd.Series,
    name: Optional[str] = None,
    levels: Optional[Sequence] = None,
) -> TraitEncoding:
    """
    One-hot encode a categorical trait.

    Args:
        values: Trait value per sample (index = sample ids)
        name: Trait name (default: the Series name)
        levels: Level order (default: categorical order, else sorted)

    Returns:
        TraitEncoding over the samples with a non-missing value

    Raises:
        ValueError: No sample has a value, or a value is not among ``levels``

    Examples:
        >>> groups = pd.Series(['WT', 'KO', 'WT'], index=['S1', 'S2', 'S3'], name='genotype')
        >>> encode_trait(groups).indicators
            KO   WT
        S1  0.0  1.0
        S2  1.0  0.0
        S3  0.0  1.0
    """
    name = name if name is not None else values.name
    if name is None:
        raise ValueError("Trait name required for an unnamed Series")

    present = values.dropna()
    n_missing = len(values) - len(present)
    if n_missing:
        logger.warning(f"Trait '{name}': {n_missing} sample(s) without a value excluded")
    if present.empty:
        raise ValueError(f"Trait '{name}' has no non-missing values")

    if levels is None:
        if isinstance(present.dtype, pd.CategoricalDtype):
            levels = [level for level in present.cat.categories if (present == level).any()]
        else:
            levels = sorted(present.astype(str).unique())
    levels = [str(level) for level in levels]

    as_text = present.astype(str)
    unknown = sorted(set(as_text) - set(levels))
    if unknown:
        raise ValueError(f"Trait '{name}' has values outside the given levels: {unknown}")

    indicators = pd.DataFrame(
        {level: (as_text == level).astype(np.float64) for level in levels},
        index=present.index,
    )
    if len(levels) == 1:
        logger.warning(f"Trait '{name}' has a single level '{levels[0]}'")
    logger.debug(f"Encoded trait '{name}': {len(levels)} levels, {len(indicators)} samples")
    return TraitEncoding(name=str(name), indicators=indicators)


def encode_traits(metadata: pd.DataFrame, columns: Iterable[str]) -> List[TraitEncoding]:
    """Encode several metadata columns."""
    encodings = []
    for column in columns:
        if column not in metadata.columns:
            raise ValueError(
                f"Trait column '{column}' not found in sample metadata. "
                f"Available: {list(metadata.columns)}"
            )
        encodings.append(encode_trait(metadata[column], name=column))
    return encodings

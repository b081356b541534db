"""
Core data structure for sample-by-feature abundance matrices.

ExpressionMatrix couples the numerical measurements (expression, intensities,
lipid or metabolite abundances) with the sample annotations that traits are
drawn from.

Biological Context:
    Network analysis treats features as nodes and samples as observations:
    - Rows = samples (patients, animals, time points)
    - Columns = features (genes, lipids, metabolites)
    - Values = measurements, already normalized and log-transformed

    Co-expression networks need:
    - Stable, unique feature names (module membership is reported per feature)
    - Sample metadata aligned to rows (categorical traits for association)
    - Immutability so that every pipeline stage can be re-run from a snapshot

Engineering Design:
    - Immutable: subsetting returns new instances
    - NumPy for data, Pandas for identifiers and metadata
    - Constructor validates shapes, uniqueness and index alignment

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from coexnet.core.expression import ExpressionMatrix
    >>>
    >>> data = np.array([[1.0, 2.0], [3.0, 5.0], [2.0, 4.0]])
    >>> sample_ids = pd.Index(["S1", "S2", "S3"])
    >>> feature_ids = pd.Index(["PC_34_1", "TG_52_2"])
    >>> metadata = pd.DataFrame({'group': ['A', 'B', 'A']}, index=sample_ids)
    >>> matrix = ExpressionMatrix(data, sample_ids, feature_ids, metadata)
    >>> matrix.select_samples(matrix.sample_metadata['group'] == 'A').n_samples
    2
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd

__all__ = ['ExpressionMatrix']


def _checked_ids(ids, expected: int, axis: str) -> pd.Index:
    """Coerce ids to an Index of the expected length with no repeats."""
    ids = ids if isinstance(ids, pd.Index) else pd.Index(ids)
    if len(ids) != expected:
        raise ValueError(f"Got {len(ids)} {axis} ids for {expected} {axis}s in the data")
    if not ids.is_unique:
        dupes = ids[ids.duplicated()].unique().tolist()
        raise ValueError(f"{axis.capitalize()} ids must be unique, duplicated: {dupes[:5]}")
    return ids


class ExpressionMatrix:
    """
    Immutable container for a samples x features matrix and sample annotations.

    Attributes:
        data: Numerical matrix (samples x features), float64
        sample_ids: Row identifiers
        feature_ids: Column identifiers
        sample_metadata: Sample annotations (traits), indexed by sample_ids

    Shape Invariants:
        - data.shape == (len(sample_ids), len(feature_ids))
        - sample_ids and feature_ids are unique
        - sample_metadata.index equals sample_ids
    """

    def __init__(
        self,
        data: np.ndarray,
        sample_ids: pd.Index,
        feature_ids: pd.Index,
        sample_metadata: Optional[pd.DataFrame] = None,
    ):
        """
        Args:
            data: Measurements, samples x features
            sample_ids: One id per row
            feature_ids: One id per column
            sample_metadata: Trait annotations indexed by sample_ids
                (empty frame if None)

        Raises:
            TypeError: data is not an ndarray, or metadata is not a DataFrame
            ValueError: Shapes disagree, ids repeat, or metadata rows are
                not aligned with sample_ids
        """
        if not isinstance(data, np.ndarray):
            raise TypeError(f"data must be np.ndarray, got {type(data)}")
        if data.ndim != 2:
            raise ValueError(f"Expression data must be samples x features, got shape {data.shape}")

        sample_ids = _checked_ids(sample_ids, data.shape[0], "sample")
        feature_ids = _checked_ids(feature_ids, data.shape[1], "feature")

        if sample_metadata is None:
            sample_metadata = pd.DataFrame(index=sample_ids)
        elif not isinstance(sample_metadata, pd.DataFrame):
            raise TypeError(
                f"sample_metadata must be pd.DataFrame, got {type(sample_metadata)}"
            )
        elif not sample_metadata.index.equals(sample_ids):
            raise ValueError(
                f"Trait table rows are not aligned with the {len(sample_ids)} samples "
                f"({len(sample_metadata.index)} rows); reindex it by sample id first"
            )

        self._data = data.astype(np.float64, copy=False)
        self._sample_ids = sample_ids
        self._feature_ids = feature_ids
        self._sample_metadata = sample_metadata

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        sample_metadata: Optional[pd.DataFrame] = None,
    ) -> ExpressionMatrix:
        """Build from a samples x features DataFrame."""
        sample_ids = pd.Index(frame.index.astype(str))
        metadata = None
        if sample_metadata is not None:
            metadata = sample_metadata.copy()
            metadata.index = pd.Index(metadata.index.astype(str))
            metadata = metadata.loc[sample_ids]
        return cls(
            data=frame.to_numpy(dtype=np.float64),
            sample_ids=sample_ids,
            feature_ids=pd.Index(frame.columns.astype(str)),
            sample_metadata=metadata,
        )

    @property
    def data(self) -> np.ndarray:
        """Measurements (samples x features)."""
        return self._data

    @property
    def sample_ids(self) -> pd.Index:
        return self._sample_ids

    @property
    def feature_ids(self) -> pd.Index:
        return self._feature_ids

    @property
    def sample_metadata(self) -> pd.DataFrame:
        """Sample annotations (trait columns)."""
        return self._sample_metadata

    @property
    def shape(self) -> tuple[int, int]:
        """Matrix dimensions (n_samples, n_features)."""
        return self._data.shape

    @property
    def n_samples(self) -> int:
        return self._data.shape[0]

    @property
    def n_features(self) -> int:
        return self._data.shape[1]

    def to_frame(self) -> pd.DataFrame:
        """Return the data as a samples x features DataFrame."""
        return pd.DataFrame(self._data, index=self._sample_ids, columns=self._feature_ids)

    def _mask(self, mask: np.ndarray | pd.Series, length: int, axis: str) -> np.ndarray:
        # Series masks are positional; their index is ignored
        mask = np.asarray(mask.values if isinstance(mask, pd.Series) else mask, dtype=bool)
        if len(mask) != length:
            raise ValueError(f"{axis} mask has {len(mask)} entries for {length} {axis}s")
        return mask

    def select_samples(self, mask: np.ndarray | pd.Series) -> ExpressionMatrix:
        """
        Keep the samples where ``mask`` is True; trait rows follow.

        Used by the outlier filter, and for running the pipeline on one
        stratum of a trait.
        """
        mask = self._mask(mask, self.n_samples, "sample")
        kept = self._sample_ids[mask]
        return ExpressionMatrix(
            self._data[mask, :], kept, self._feature_ids, self._sample_metadata.loc[kept]
        )

    def select_features(self, mask: np.ndarray | pd.Series) -> ExpressionMatrix:
        """
        Keep the features where ``mask`` is True.

        Examples:
            >>> variances = np.var(matrix.data, axis=0)
            >>> variable = matrix.select_features(variances > np.percentile(variances, 50))
        """
        mask = self._mask(mask, self.n_features, "feature")
        return ExpressionMatrix(
            self._data[:, mask], self._sample_ids, self._feature_ids[mask], self._sample_metadata
        )

    def copy(self) -> ExpressionMatrix:
        """Deep copy: data, ids and trait table are all duplicated."""
        return ExpressionMatrix(
            self._data.copy(),
            self._sample_ids.copy(),
            self._feature_ids.copy(),
            self._sample_metadata.copy(),
        )

    def __repr__(self) -> str:
        traits = list(self._sample_metadata.columns)
        return (
            f"ExpressionMatrix({self.n_samples} samples × {self.n_features} features, "
            f"traits={traits})"
        )

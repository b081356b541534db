"""
Exception hierarchy for the network construction and module detection pipeline.

Every fatal error carries the pipeline stage that raised it together with the
offending entity (feature names, module label, sample count) so that callers
see "similarity: feature GENE_7 has zero variance" rather than a NaN deep
inside a matrix product.

Soft degradations (no soft-threshold power reaching the fit cutoff, every
feature left unassigned, a constant trait level) are NOT errors; they are
logged as warnings and the pipeline continues.
"""

from __future__ import annotations

from typing import Optional, Sequence

__all__ = [
    'CoexnetError',
    'DegenerateFeatureError',
    'EmptyModuleError',
    'InsufficientSamplesError',
]


class CoexnetError(Exception):
    """Base class for all fatal pipeline errors."""

    def __init__(self, message: str, stage: Optional[str] = None):
        self.stage = stage
        prefix = f"[{stage}] " if stage else ""
        super().__init__(f"{prefix}{message}")


class DegenerateFeatureError(CoexnetError):
    """Raised when features have zero variance (correlation undefined)."""

    def __init__(self, features: Sequence[str], stage: Optional[str] = "similarity"):
        self.features = [str(f) for f in features]
        shown = ", ".join(map(str, self.features[:10]))
        if len(self.features) > 10:
            shown += f", ... ({len(self.features)} total)"
        super().__init__(
            f"{len(self.features)} feature(s) have zero variance or non-finite "
            f"values and must be filtered before network construction: {shown}",
            stage=stage,
        )


class EmptyModuleError(CoexnetError):
    """Raised when a module label has no member features."""

    def __init__(self, module: int, stage: Optional[str] = "eigengenes"):
        self.module = module
        super().__init__(f"module {module} has no member features", stage=stage)


class InsufficientSamplesError(CoexnetError):
    """Raised when too few samples are available for a stable correlation."""

    def __init__(self, n_samples: int, required: int = 3, stage: Optional[str] = None):
        self.n_samples = n_samples
        self.required = required
        super().__init__(
            f"{n_samples} sample(s) available, at least {required} required",
            stage=stage,
        )

"""
Feature-to-module assignments and module color names.

Modules are integer labels; 0 is reserved for features left unassigned by the
tree cut ("grey"). Non-zero labels are numbered by decreasing module size and
named with the standard WGCNA color sequence, so reports read "turquoise",
"blue", ... from the largest module down. Names are a presentation
convenience only; they are not stable across runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

__all__ = [
    'UNASSIGNED',
    'GREY',
    'MODULE_COLORS',
    'label_color',
    'relabel_by_size',
    'ModuleAssignment',
]

UNASSIGNED = 0
GREY = "grey"

# Standard WGCNA module colors
MODULE_COLORS = (
    "turquoise", "blue", "brown", "yellow", "green", "red", "black", "pink",
    "magenta", "purple", "greenyellow", "tan", "salmon", "cyan",
    "midnightblue", "lightcyan", "grey60", "lightgreen", "lightyellow",
    "royalblue", "darkred", "darkgreen", "darkturquoise", "darkgrey",
    "orange", "darkorange", "white", "skyblue", "saddlebrown", "steelblue",
    "paleturquoise", "violet", "darkolivegreen", "darkmagenta",
)


def label_color(label: int) -> str:
    """Color name for a module label (grey for 0)."""
    if label == UNASSIGNED:
        return GREY
    if label <= len(MODULE_COLORS):
        return MODULE_COLORS[label - 1]
    return f"module{label}"


def relabel_by_size(labels: Sequence[int]) -> np.ndarray:
    """
    Renumber non-zero labels 1..M by decreasing size.

    Equal sizes keep the order of first appearance. Zero stays zero.
    """
    labels = np.asarray(labels, dtype=int)
    relabeled = np.zeros_like(labels)
    assigned = labels[labels != UNASSIGNED]
    if assigned.size == 0:
        return relabeled

    unique, first_index, counts = np.unique(assigned, return_index=True, return_counts=True)
    order = sorted(range(len(unique)), key=lambda i: (-counts[i], first_index[i]))
    mapping = {int(unique[i]): rank + 1 for rank, i in enumerate(order)}
    for old, new in mapping.items():
        relabeled[labels == old] = new
    return relabeled


@dataclass(frozen=True)
class ModuleAssignment:
    """
    Mapping from feature to module label.

    Attributes:
        labels: Series indexed by feature id, integer labels (0 = unassigned)
        colors: Label -> color name for every declared label, including 0
    """
    labels: pd.Series
    colors: Dict[int, str]

    @classmethod
    def from_labels(
        cls,
        labels: Sequence[int],
        feature_ids: Iterable[str],
        relabel: bool = True,
    ) -> ModuleAssignment:
        """
        Build an assignment from raw cluster labels.

        Args:
            labels: One integer per feature; 0 = unassigned
            feature_ids: Feature names in the same order
            relabel: Renumber modules by decreasing size
        """
        labels = np.asarray(labels, dtype=int)
        if relabel:
            labels = relabel_by_size(labels)
        index = pd.Index(list(feature_ids))
        if len(index) != len(labels):
            raise ValueError(
                f"feature_ids length ({len(index)}) must match labels ({len(labels)})"
            )
        declared = sorted({UNASSIGNED} | {int(l) for l in labels})
        return cls(
            labels=pd.Series(labels, index=index, name="module"),
            colors={label: label_color(label) for label in declared},
        )

    @property
    def modules(self) -> List[int]:
        """Declared module labels, excluding 0."""
        return [label for label in sorted(self.colors) if label != UNASSIGNED]

    @property
    def n_modules(self) -> int:
        return len(self.modules)

    @property
    def n_unassigned(self) -> int:
        return int((self.labels == UNASSIGNED).sum())

    def members(self, label: int) -> List[str]:
        """Feature ids assigned to ``label``."""
        return list(self.labels.index[self.labels.values == label])

    def sizes(self) -> pd.Series:
        """Members per declared module (excluding 0)."""
        counts = self.labels.value_counts()
        return pd.Series(
            {label: int(counts.get(label, 0)) for label in self.modules},
            name="size",
            dtype=int,
        )

    def color_of(self, label: int) -> str:
        return self.colors[label]

    def feature_colors(self) -> pd.Series:
        """Color name per feature."""
        return self.labels.map(self.colors).rename("color")

    def partition(self) -> List[frozenset]:
        """Modules as sets of feature ids (label-free comparison)."""
        return [frozenset(self.members(label)) for label in self.modules]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'module': self.labels,
            'color': self.feature_colors(),
        })

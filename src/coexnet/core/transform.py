"""
Preprocessing step interface.

Steps that run before network construction (dropping degenerate features,
filling gaps, removing outlier samples) take an ExpressionMatrix and return a
new one; the input is never modified. Each step carries its parameters so a
run can log exactly which preprocessing produced the network.

Examples:
    >>> from coexnet.core.transform import Transform
    >>>
    >>> class Log2Transform(Transform):
    ...     def __init__(self, pseudocount: float = 1.0):
    ...         super().__init__(name="Log2Transform", params={"pseudocount": pseudocount})
    ...         self.pseudocount = pseudocount
    ...
    ...     def apply(self, matrix):
    ...         self._raise_if_invalid(matrix)
    ...         return ExpressionMatrix(
    ...             np.log2(matrix.data + self.pseudocount),
    ...             matrix.sample_ids, matrix.feature_ids, matrix.sample_metadata,
    ...         )
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from coexnet.core.expression import ExpressionMatrix

__all__ = ['Transform']


class Transform(ABC):
    """
    Base class for preprocessing steps.

    Attributes:
        name: Step name used in logs and error messages
        params: JSON-serializable parameters, e.g. {"cut_height": 120.0}

    ``validate()`` lists every problem with an input; ``apply()`` calls
    ``_raise_if_invalid()`` so a failing precondition surfaces as one
    ValueError naming the step.
    """

    def __init__(self, name: str, params: dict[str, Any]) -> None:
        self.name = name
        self.params = params

    @abstractmethod
    def apply(self, matrix: ExpressionMatrix) -> ExpressionMatrix:
        """Return the transformed matrix; raises ValueError on invalid input."""

    def validate(self, matrix: ExpressionMatrix) -> list[str]:
        """
        Problems that prevent apply() on ``matrix`` (empty list = valid).

        Subclasses extend the list returned by ``super().validate()``.
        """
        if matrix.n_samples == 0 or matrix.n_features == 0:
            return [f"matrix is empty ({matrix.n_samples} x {matrix.n_features})"]
        return []

    def _raise_if_invalid(self, matrix: ExpressionMatrix) -> None:
        errors = self.validate(matrix)
        if errors:
            raise ValueError(f"{self.name} cannot be applied: " + "; ".join(errors))

    def __repr__(self) -> str:
        params = ", ".join(f"{key}={value}" for key, value in self.params.items())
        return f"{self.name}({params})"

"""
Core data structures for co-expression network analysis.

1. ExpressionMatrix: samples x features measurements with sample annotations
2. Transform: Abstract base class for immutable preprocessing steps

Design Philosophy:
    - Immutability: All operations return new instances
    - Composability: Small preprocessing steps chain into a pipeline
"""

from coexnet.core.expression import ExpressionMatrix
from coexnet.core.transform import Transform

__all__ = [
    'ExpressionMatrix',
    'Transform',
]

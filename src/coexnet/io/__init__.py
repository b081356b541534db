"""Input/output for abundance tables and pipeline results."""

from coexnet.io.loaders import load_expression_csv, rename_reserved_features
from coexnet.io.writers import assignment_table, write_results, write_table

__all__ = [
    'load_expression_csv',
    'rename_reserved_features',
    'assignment_table',
    'write_results',
    'write_table',
]

"""Utility modules for network computations and file output."""

from coexnet.utils.fileio import atomic_write_json, atomic_write_text
from coexnet.utils.parallel import iter_blocks, run_blocks
from coexnet.utils.statistics import (
    correlation_pvalue,
    correlation_t_statistic,
    critical_correlation,
)

__all__ = [
    'atomic_write_json',
    'atomic_write_text',
    'iter_blocks',
    'run_blocks',
    'correlation_pvalue',
    'correlation_t_statistic',
    'critical_correlation',
]

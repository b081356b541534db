"""
Row-block scheduling for dense feature x feature computations.

Correlation and connectivity are computed over disjoint row blocks so that
each worker writes its own slice of the output and no locking is needed.
Threads are sufficient: the heavy lifting is BLAS matrix products, which
release the GIL.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, Tuple

__all__ = ['iter_blocks', 'run_blocks']


def iter_blocks(n_rows: int, chunk_size: int) -> Iterator[Tuple[int, int]]:
    """Yield (start, end) boundaries covering range(n_rows)."""
    for start in range(0, n_rows, chunk_size):
        yield start, min(start + chunk_size, n_rows)


def run_blocks(
    n_rows: int,
    chunk_size: int,
    work: Callable[[int, int], None],
    n_jobs: int = 1,
) -> None:
    """
    Run ``work(start, end)`` over every row block.

    ``work`` must write only to rows [start, end) of its output. Exceptions
    raised by any block propagate to the caller.
    """
    blocks = list(iter_blocks(n_rows, chunk_size))
    if n_jobs <= 1 or len(blocks) <= 1:
        for start, end in blocks:
            work(start, end)
        return

    with ThreadPoolExecutor(max_workers=min(n_jobs, len(blocks))) as executor:
        futures = [executor.submit(work, start, end) for start, end in blocks]
        for future in futures:
            future.result()

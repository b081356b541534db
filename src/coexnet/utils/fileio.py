"""
Atomic file-write utilities.

Result files are written to a temporary file in the destination directory and
moved into place with ``os.replace()``, so an interrupted run never leaves a
half-written summary next to complete result tables.
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import Any, Callable, IO

import numpy as np

__all__ = ['atomic_write_json', 'atomic_write_text']


def _json_default(value: Any) -> Any:
    """Serialize numpy scalars/arrays found in result summaries."""
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _atomic_write(path: str | os.PathLike, write: Callable[[IO[str]], None]) -> None:
    path = os.fspath(path)
    dir_path = os.path.dirname(path) or "."
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=dir_path, suffix=".tmp", delete=False
        ) as tmp:
            tmp_path = tmp.name
            write(tmp)
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as JSON atomically; numpy scalars and arrays are converted."""
    _atomic_write(path, lambda f: json.dump(data, f, indent=indent, default=_json_default))


def atomic_write_text(path: str | os.PathLike, content: str) -> None:
    """Write *content* as text atomically."""
    _atomic_write(path, lambda f: f.write(content))

"""Shared argparse type validators for CLI parameter bounds checking.

These validators produce clear error messages when users pass invalid
values (e.g., ``--alpha 2.0``, ``--min-module-size -5``).  They are
intended to be used as the ``type=`` argument in ``add_argument()``.
"""

from __future__ import annotations

import argparse


def _positive_int(value: str) -> int:
    """argparse type for positive integers (> 0)."""
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return ivalue


def _probability(value: str) -> float:
    """argparse type for values in the open interval (0, 1)."""
    fvalue = float(value)
    if not (0 < fvalue < 1):
        raise argparse.ArgumentTypeError(
            f"{value} is not a valid probability (must be in (0, 1))"
        )
    return fvalue


def _unit_interval(value: str) -> float:
    """argparse type for values in the closed interval [0, 1]."""
    fvalue = float(value)
    if not (0 <= fvalue <= 1):
        raise argparse.ArgumentTypeError(f"{value} must be in [0, 1]")
    return fvalue


def _positive_float(value: str) -> float:
    """argparse type for positive floats (> 0)."""
    fvalue = float(value)
    if fvalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive float")
    return fvalue


def _deep_split(value: str) -> int:
    """argparse type for the tree-cut sensitivity level 0..4."""
    ivalue = int(value)
    if ivalue not in range(5):
        raise argparse.ArgumentTypeError(f"{value} is not a deep-split level (0-4)")
    return ivalue


def _power_range(value: str) -> list[int]:
    """argparse type for soft powers: "1-20" or "4,6,8,10"."""
    try:
        if "-" in value:
            start, stop = value.split("-", 1)
            powers = list(range(int(start), int(stop) + 1))
        else:
            powers = [int(p) for p in value.split(",") if p.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"{value} is not a power range (use e.g. 1-20 or 4,6,8)"
        )
    if not powers or min(powers) < 1:
        raise argparse.ArgumentTypeError(f"{value} must list exponents >= 1")
    return powers

"""
Pipeline configuration.

A single dataclass holds every tunable of the network pipeline. Values come
from defaults, a YAML/JSON configuration file, and CLI flags (highest
priority), in that order.

Example YAML:

    soft_power_range: {start: 1, stop: 20}   # or explicit exponents: [6, 12]
    min_cluster_size: 20
    deep_split: 2
    merge_height: 0.25
    correlation_estimator: robust
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

__all__ = [
    'CorrelationEstimator',
    'PipelineConfig',
    'load_config',
]


class CorrelationEstimator(str, Enum):
    """Correlation estimator used for feature similarity."""
    PEARSON = "pearson"
    ROBUST = "robust"  # biweight midcorrelation


def _expand_power_range(value: Any) -> List[int]:
    """
    Normalize a soft-power specification to a sorted list of exponents.

    Accepts a range object, an explicit list of exponents, or a
    {"start": a, "stop": b} mapping (inclusive) as written in config files.
    """
    if isinstance(value, range):
        powers = list(value)
    elif isinstance(value, dict):
        if set(value) != {"start", "stop"}:
            raise ValueError(
                f"soft_power_range mapping needs exactly start and stop, got {sorted(value)}"
            )
        powers = list(range(int(value["start"]), int(value["stop"]) + 1))
    else:
        powers = [int(p) for p in value]
    if not powers:
        raise ValueError("soft_power_range must contain at least one exponent")
    if any(p < 1 for p in powers):
        raise ValueError(f"soft powers must be >= 1, got {powers}")
    return sorted(set(powers))


@dataclass
class PipelineConfig:
    """
    Complete configuration for a network construction run.

    Attributes:
        soft_power_range: Candidate soft-threshold exponents
        r_squared_cutoff: Scale-free fit index a power must reach
        n_breaks: Number of connectivity bins in the scale-free fit
        min_cluster_size: Smallest branch accepted as a module
        deep_split: Branch-splitting sensitivity, 0 (coarse) to 4 (fine)
        cut_height: Maximum merge height considered by the tree cut
            (None = 99% of the dendrogram height range)
        merge_height: Eigenfeature dissimilarity below which modules merge
        merge_iterations: Maximum merge passes
        correlation_estimator: pearson or robust
        n_jobs: Worker threads for block-wise matrix work and the power scan
        chunk_size: Rows per block in correlation/connectivity computation
        scan_time_budget: Wall-clock seconds for the power scan (None = unlimited)
        alpha: p-value threshold for module-trait significance
        min_abs_correlation: |r| floor for module-trait significance
        hub_top_n: Hub features reported per module
    """
    soft_power_range: List[int] = field(default_factory=lambda: list(range(1, 21)))
    r_squared_cutoff: float = 0.8
    n_breaks: int = 10
    min_cluster_size: int = 20
    deep_split: int = 2
    cut_height: Optional[float] = None
    merge_height: float = 0.25
    merge_iterations: int = 1
    correlation_estimator: CorrelationEstimator = CorrelationEstimator.PEARSON
    n_jobs: int = 1
    chunk_size: int = 1000
    scan_time_budget: Optional[float] = None
    alpha: float = 0.05
    min_abs_correlation: float = 0.2
    hub_top_n: int = 10

    def __post_init__(self):
        self.soft_power_range = _expand_power_range(self.soft_power_range)
        self.correlation_estimator = CorrelationEstimator(self.correlation_estimator)

        if not 0 < self.r_squared_cutoff <= 1:
            raise ValueError(f"r_squared_cutoff must be in (0, 1], got {self.r_squared_cutoff}")
        if self.n_breaks < 3:
            raise ValueError(f"n_breaks must be >= 3, got {self.n_breaks}")
        if self.min_cluster_size < 1:
            raise ValueError(f"min_cluster_size must be >= 1, got {self.min_cluster_size}")
        if self.deep_split not in (0, 1, 2, 3, 4):
            raise ValueError(f"deep_split must be one of 0-4, got {self.deep_split}")
        if self.cut_height is not None and self.cut_height <= 0:
            raise ValueError(f"cut_height must be positive, got {self.cut_height}")
        if not 0 <= self.merge_height <= 1:
            raise ValueError(f"merge_height must be in [0, 1], got {self.merge_height}")
        if self.merge_iterations < 1:
            raise ValueError(f"merge_iterations must be >= 1, got {self.merge_iterations}")
        if self.n_jobs < 1:
            raise ValueError(f"n_jobs must be >= 1, got {self.n_jobs}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.scan_time_budget is not None and self.scan_time_budget <= 0:
            raise ValueError(f"scan_time_budget must be positive, got {self.scan_time_budget}")
        if not 0 < self.alpha < 1:
            raise ValueError(f"alpha must be in (0, 1), got {self.alpha}")
        if not 0 <= self.min_abs_correlation < 1:
            raise ValueError(
                f"min_abs_correlation must be in [0, 1), got {self.min_abs_correlation}"
            )

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> PipelineConfig:
        """
        Build a config from a mapping, rejecting unknown keys.

        A ``soft_power_range`` list is taken as explicit exponents; write
        an inclusive range as a ``{start, stop}`` mapping.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable view of the config."""
        out = asdict(self)
        out["correlation_estimator"] = self.correlation_estimator.value
        return out


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> values = load_config(Path("network.yaml"))
        >>> config = PipelineConfig.from_dict(values)
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config

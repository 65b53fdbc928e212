"""
config.py

Run configuration for the biopsy pipeline.

Precedence, lowest to highest:
    PipelineConfig defaults  <  YAML file (--config)  <  command-line flags

The YAML file is a flat mapping whose keys are PipelineConfig field names, e.g.

    data_path: data/breast-cancer-wisconsin.data
    label_scheme: uci
    dbscan_settings:
      - [1.0, 3]
      - [2.0, 4]
    mixture_components: 4
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from src.utils.errors import ConfigError

LABEL_SCHEMES: Dict[str, Tuple[str, str]] = {
    "uci": ("2", "4"),
    "mass": ("benign", "malignant"),
}
COVARIANCE_TYPES = ("full", "tied", "diag", "spherical")


@dataclass(frozen=True)
class PipelineConfig:
    # — input —
    data_path: Optional[str] = None
    sep: str = ","
    missing_token: str = "?"
    has_header: bool = False
    label_scheme: str = "uci"

    # — reducer —
    n_components: int = 2

    # — detectors —
    confidence: float = 0.975
    robust: bool = True
    dbscan_settings: Tuple[Tuple[float, int], ...] = ((1.0, 3), (2.0, 4))
    mixture_components: int = 4
    covariance_type: str = "full"
    random_state: int = 42
    n_jobs: int = 1

    # — output —
    report_dir: Optional[str] = "reports/biopsy"
    make_plots: bool = True
    log_file: Optional[str] = "logs/pipeline_monitor.log"
    verbose: bool = False

    def validate(self) -> "PipelineConfig":
        if not self.data_path:
            raise ConfigError("No input file given (use --data or data_path).",
                              key="data_path")
        if self.label_scheme not in LABEL_SCHEMES:
            raise ConfigError(
                f"Unknown label scheme '{self.label_scheme}'; "
                f"choose one of {sorted(LABEL_SCHEMES)}.", key="label_scheme")
        if not 1 <= self.n_components <= 9:
            raise ConfigError("n_components must be within 1..9.",
                              key="n_components")
        if not 0.0 < self.confidence < 1.0:
            raise ConfigError("confidence must lie strictly between 0 and 1.",
                              key="confidence")
        if not self.dbscan_settings:
            raise ConfigError("At least one DBSCAN setting is required.",
                              key="dbscan_settings")
        for eps, min_samples in self.dbscan_settings:
            if eps <= 0 or min_samples < 1:
                raise ConfigError(
                    f"Invalid DBSCAN setting eps={eps}, min_samples={min_samples}.",
                    key="dbscan_settings")
        if len(set(self.dbscan_settings)) != len(self.dbscan_settings):
            raise ConfigError(
                f"Repeated DBSCAN setting in {list(self.dbscan_settings)}.",
                key="dbscan_settings")
        if self.mixture_components < 1:
            raise ConfigError("mixture_components must be >= 1.",
                              key="mixture_components")
        if self.covariance_type not in COVARIANCE_TYPES:
            raise ConfigError(
                f"covariance_type must be one of {COVARIANCE_TYPES}.",
                key="covariance_type")
        if self.n_jobs == 0:
            raise ConfigError("n_jobs must be non-zero.", key="n_jobs")
        return self

    @property
    def label_codes(self) -> Tuple[str, str]:
        return LABEL_SCHEMES[self.label_scheme]

    def merged(self, overrides: Dict[str, Any]) -> "PipelineConfig":
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        clean = {}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigError(f"Unknown configuration key '{key}'.", key=key)
            if value is None:
                continue
            if key == "dbscan_settings":
                value = _coerce_dbscan(value)
            clean[key] = value
        return replace(self, **clean)

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _coerce_dbscan(value) -> Tuple[Tuple[float, int], ...]:
    try:
        return tuple((float(eps), int(mn)) for eps, mn in value)
    except (TypeError, ValueError) as e:
        raise ConfigError(
            f"dbscan_settings must be a list of [eps, min_samples] pairs: {e}",
            key="dbscan_settings") from e


def parse_dbscan_setting(text: str) -> Tuple[float, int]:
    """Parse an 'EPS:MIN_SAMPLES' command-line token."""
    try:
        eps, min_samples = text.split(":")
        return float(eps), int(min_samples)
    except ValueError as e:
        raise ConfigError(
            f"Expected EPS:MIN_SAMPLES, got '{text}'.", key="dbscan") from e


def load_yaml(path: Path) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}", key="config")
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML config malformed ({path}):\n{e}",
                          key="config") from e
    if not isinstance(data, dict):
        raise ConfigError(f"YAML config must be a mapping ({path}).",
                          key="config")
    return data


def load_config(path: Optional[Path] = None,
                overrides: Optional[Dict[str, Any]] = None) -> PipelineConfig:
    cfg = PipelineConfig()
    if path is not None:
        cfg = cfg.merged(load_yaml(Path(path)))
    if overrides:
        cfg = cfg.merged(overrides)
    return cfg.validate()

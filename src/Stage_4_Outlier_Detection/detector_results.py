"""
Tagged result types returned by the outlier detectors.

Each detector returns exactly one of these; none of them is mutated after
construction and none refers to another detector's output.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd


@dataclass(frozen=True, eq=False)
class DistanceResult:
    """
    Robust Mahalanobis test.

    distances : squared Mahalanobis distance per sample id
    flags     : True where distances > threshold
    threshold : chi-squared quantile at `confidence` with p degrees of freedom
    """
    distances: pd.Series
    flags: pd.Series
    threshold: float
    confidence: float
    location: np.ndarray
    covariance: np.ndarray
    method: str = "MinCovDet"
    kind: str = field(default="mahalanobis", init=False)

    @property
    def name(self) -> str:
        return "mahalanobis"

    @property
    def n_outliers(self) -> int:
        return int(self.flags.sum())

    def outlier_ids(self) -> list:
        return self.flags.index[self.flags.values].tolist()

    def column(self) -> pd.Series:
        return self.flags.rename(self.name)

    def summary(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "method": self.method,
            "confidence": self.confidence,
            "threshold": round(float(self.threshold), 6),
            "n_outliers": self.n_outliers,
            "n_records": int(self.flags.size),
        }


@dataclass(frozen=True, eq=False)
class ClusterResult:
    """
    Partition of the samples.

    assignments : sample id -> cluster / component id (1..n)
    noise_label : id reserved for noise (0 for DBSCAN), None when every sample
                  belongs to a component (mixture)
    """
    kind: str
    assignments: pd.Series
    noise_label: Optional[int]
    params: Dict[str, Any]
    probabilities: Optional[pd.DataFrame] = None
    bic: Optional[float] = None

    @property
    def name(self) -> str:
        if self.kind == "dbscan":
            return f"dbscan_eps{self.params['eps']:g}_min{self.params['min_samples']}"
        return f"mixture_k{self.params['n_components']}"

    def sizes(self) -> Dict[int, int]:
        """Cluster id -> member count, noise excluded."""
        vc = self.assignments.value_counts()
        return {int(k): int(v) for k, v in sorted(vc.items())
                if self.noise_label is None or k != self.noise_label}

    @property
    def n_clusters(self) -> int:
        return len(self.sizes())

    @property
    def noise_count(self) -> int:
        if self.noise_label is None:
            return 0
        return int((self.assignments == self.noise_label).sum())

    def column(self) -> pd.Series:
        return self.assignments.rename(self.name)

    def summary(self) -> Dict[str, Any]:
        out = {
            "kind": self.kind,
            "params": dict(self.params),
            "noise_label": self.noise_label,
            "noise_count": self.noise_count,
            "n_clusters": self.n_clusters,
            "sizes": {str(k): v for k, v in self.sizes().items()},
            "n_records": int(self.assignments.size),
        }
        if self.bic is not None:
            out["bic"] = round(float(self.bic), 4)
        return out

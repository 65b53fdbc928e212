#!/usr/bin/env python3
"""
Density_Detector.py

DBSCAN over the standardized Feature Matrix.

  • eps (neighborhood radius) and min_samples (neighbor count, the point itself
    included) have no defaults here: the partition shifts sharply with both, so
    callers must state them.
  • Cluster ids are reported as 1..n; 0 marks noise.
  • k_distance_curve / suggest_eps give the sorted k-NN distance "knee" as a
    starting point for eps.
"""
import logging
from typing import Tuple

import numpy as np
import pandas as pd
from sklearn.cluster import DBSCAN
from sklearn.neighbors import NearestNeighbors

from src.Stage_4_Outlier_Detection.detector_results import ClusterResult
from src.utils.errors import DetectorConfigError
from src.utils.monitor import monitor

log = logging.getLogger("detectors")

NOISE_LABEL = 0


class DensityDetector:

    def __init__(self, eps: float, min_samples: int, metric: str = "euclidean"):
        if eps is None or eps <= 0:
            raise DetectorConfigError(f"eps must be > 0, got {eps}", stage="dbscan")
        if min_samples is None or int(min_samples) != min_samples or min_samples < 1:
            raise DetectorConfigError(
                f"min_samples must be a positive integer, got {min_samples}",
                stage="dbscan")
        self.eps = float(eps)
        self.min_samples = int(min_samples)
        self.metric = metric

    @monitor(name="dbscan")
    def detect(self, matrix: pd.DataFrame) -> ClusterResult:
        X = matrix.to_numpy(dtype=float, copy=True)
        raw = DBSCAN(eps=self.eps, min_samples=self.min_samples,
                     metric=self.metric).fit_predict(X)
        # scikit-learn marks noise with -1 and numbers clusters from 0
        labels = np.where(raw < 0, NOISE_LABEL, raw + 1).astype(int)

        result = ClusterResult(
            kind="dbscan",
            assignments=pd.Series(labels, index=matrix.index, name="dbscan"),
            noise_label=NOISE_LABEL,
            params={"eps": self.eps, "min_samples": self.min_samples},
        )
        log.info(f"  • DBSCAN eps={self.eps:g} min_samples={self.min_samples}: "
                 f"{result.noise_count} noise, clusters={result.sizes()}")
        if result.n_clusters == 0:
            log.warning("DBSCAN eps=%g min_samples=%d labelled every sample as noise.",
                        self.eps, self.min_samples)
        elif result.n_clusters == 1 and result.noise_count == 0:
            log.warning("DBSCAN eps=%g min_samples=%d produced a single cluster.",
                        self.eps, self.min_samples)
        return result


def k_distance_curve(matrix: pd.DataFrame, k: int) -> np.ndarray:
    """Sorted distance of every sample to its k-th nearest neighbour (self included)."""
    X = matrix.to_numpy(dtype=float)
    if not 1 <= k <= len(X):
        raise DetectorConfigError(f"k must lie in 1..{len(X)}, got {k}",
                                  stage="dbscan")
    nn = NearestNeighbors(n_neighbors=k).fit(X)
    dists, _ = nn.kneighbors(X)
    return np.sort(dists[:, -1])


def knee_from_curve(sorted_vals: np.ndarray) -> Tuple[int, float]:
    """Point of the curve farthest from the chord joining its end points."""
    n = len(sorted_vals)
    if n < 3:
        return n - 1, float(sorted_vals[-1])
    x = np.arange(n, dtype=float)
    y = np.asarray(sorted_vals, dtype=float)
    v = np.array([x[-1] - x[0], y[-1] - y[0]])
    length = np.hypot(v[0], v[1])
    if length == 0:
        return n - 1, float(y[-1])
    u = v / length
    p = np.column_stack([x - x[0], y - y[0]])
    perp = p - np.outer(p @ u, u)
    k = int(np.argmax(np.hypot(perp[:, 0], perp[:, 1])))
    return k, float(y[k])


def suggest_eps(matrix: pd.DataFrame, min_samples: int) -> float:
    """eps at the knee of the min_samples-distance curve."""
    _, eps = knee_from_curve(k_distance_curve(matrix, min_samples))
    return eps

#!/usr/bin/env python3
"""
Mixture_Detector.py

Gaussian mixture fitted by expectation maximization over the Feature Matrix.
Hard assignments are reported as component ids 1..n_components, alongside the
soft membership probabilities. Which component (if any) holds the outliers is
left to whoever reads the result; nothing here picks one.
"""
import logging

import pandas as pd
from sklearn.mixture import GaussianMixture

from src.Stage_4_Outlier_Detection.detector_results import ClusterResult
from src.utils.errors import DetectorConfigError
from src.utils.monitor import monitor

log = logging.getLogger("detectors")


class MixtureDetector:
    """
    Parameters
    ----------
    n_components : int
        Number of mixture components.
    covariance_type : str
        "full", "tied", "diag" or "spherical".
    n_init : int
        EM restarts; the best likelihood wins.
    random_state : int
        Seed for the k-means initialisation.
    """

    def __init__(self, n_components: int, covariance_type: str = "full",
                 n_init: int = 1, random_state: int = 42):
        if n_components is None or n_components < 1:
            raise DetectorConfigError(
                f"n_components must be >= 1, got {n_components}", stage="mixture")
        self.n_components = int(n_components)
        self.covariance_type = covariance_type
        self.n_init = n_init
        self.random_state = random_state
        self.model = None

    @monitor(name="mixture")
    def detect(self, matrix: pd.DataFrame) -> ClusterResult:
        X = matrix.to_numpy(dtype=float, copy=True)
        if self.n_components > len(X):
            raise DetectorConfigError(
                f"n_components={self.n_components} exceeds the {len(X)} samples",
                stage="mixture")
        self.model = GaussianMixture(
            n_components=self.n_components,
            covariance_type=self.covariance_type,
            n_init=self.n_init,
            random_state=self.random_state,
        ).fit(X)
        if not self.model.converged_:
            log.warning("GaussianMixture(k=%d) did not converge in %d iterations.",
                        self.n_components, self.model.max_iter)

        comp_cols = [f"component_{i + 1}" for i in range(self.n_components)]
        probs = pd.DataFrame(self.model.predict_proba(X), index=matrix.index,
                             columns=comp_cols)
        labels = self.model.predict(X) + 1

        result = ClusterResult(
            kind="mixture",
            assignments=pd.Series(labels, index=matrix.index, name="mixture"),
            noise_label=None,
            params={"n_components": self.n_components,
                    "covariance_type": self.covariance_type},
            probabilities=probs,
            bic=float(self.model.bic(X)),
        )
        log.info(f"  • GaussianMixture k={self.n_components} "
                 f"({self.covariance_type}): sizes={result.sizes()} "
                 f"BIC={result.bic:.1f}")
        if result.n_clusters < self.n_components:
            log.warning("Only %d of %d mixture components received samples.",
                        result.n_clusters, self.n_components)
        return result

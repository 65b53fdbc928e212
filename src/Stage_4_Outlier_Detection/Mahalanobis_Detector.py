#!/usr/bin/env python3
"""
Mahalanobis_Detector.py

Multivariate distance test on the standardized Feature Matrix:
  – robust location/scatter via MinCovDet (EmpiricalCovariance when robust=False)
  – squared Mahalanobis distance per sample
  – outlier if distance > chi2.ppf(confidence, df=n_features)

Same input + same random_state → same flagged set.
"""
import logging
from typing import Optional

import numpy as np
import pandas as pd
from scipy.stats import chi2
from sklearn.covariance import EmpiricalCovariance, MinCovDet

from src.Stage_4_Outlier_Detection.detector_results import DistanceResult
from src.utils.errors import DetectorConfigError
from src.utils.monitor import monitor

log = logging.getLogger("detectors")


class MahalanobisDetector:
    """
    Parameters
    ----------
    confidence : float
        Chi-squared quantile used as the cutoff (default 0.975).
    robust : bool
        MinCovDet if True, plain EmpiricalCovariance otherwise.
    support_fraction : float | None
        Passed to MinCovDet; None lets scikit-learn pick (n + p + 1) / 2.
    random_state : int
        Seed for MinCovDet's random subsets.
    """

    MULTI_CI = 0.975

    def __init__(
        self,
        confidence: float = MULTI_CI,
        robust: bool = True,
        support_fraction: Optional[float] = None,
        random_state: int = 42,
    ):
        if not 0.0 < confidence < 1.0:
            raise DetectorConfigError(
                f"confidence must lie in (0, 1), got {confidence}",
                stage="mahalanobis")
        self.confidence = confidence
        self.robust = robust
        self.support_fraction = support_fraction
        self.random_state = random_state
        self.cov_estimator = None

    def _fit_estimator(self, X: np.ndarray):
        if self.robust:
            return MinCovDet(support_fraction=self.support_fraction,
                             random_state=self.random_state).fit(X)
        return EmpiricalCovariance().fit(X)

    @monitor(name="mahalanobis")
    def detect(self, matrix: pd.DataFrame) -> DistanceResult:
        X = matrix.to_numpy(dtype=float, copy=True)
        n_samples, n_features = X.shape
        if n_samples <= n_features:
            raise DetectorConfigError(
                f"Need more samples ({n_samples}) than features ({n_features}) "
                "for a covariance estimate.", stage="mahalanobis")

        self.cov_estimator = self._fit_estimator(X)
        md = self.cov_estimator.mahalanobis(X)
        threshold = float(chi2.ppf(self.confidence, df=n_features))

        distances = pd.Series(md, index=matrix.index, name="mahalanobis_sq")
        flags = pd.Series(md > threshold, index=matrix.index, name="mahalanobis")
        result = DistanceResult(
            distances=distances,
            flags=flags,
            threshold=threshold,
            confidence=self.confidence,
            location=self.cov_estimator.location_.copy(),
            covariance=self.cov_estimator.covariance_.copy(),
            method="MinCovDet" if self.robust else "EmpiricalCovariance",
        )
        frac = result.n_outliers / float(n_samples)
        log.info(f"  • Mahalanobis ({result.method}): {result.n_outliers} flagged "
                 f"({frac:.1%}) above chi2({n_features}) q={self.confidence} "
                 f"= {threshold:.3f}")
        if result.n_outliers in (0, n_samples):
            log.warning("Mahalanobis test flagged %s samples; check the "
                        "confidence level.", "no" if result.n_outliers == 0 else "all")
        return result

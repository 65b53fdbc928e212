from typing import List, Sequence, Union

import pandas as pd
from joblib import Parallel, delayed

from src.Stage_4_Outlier_Detection.Density_Detector import DensityDetector
from src.Stage_4_Outlier_Detection.detector_results import ClusterResult, DistanceResult
from src.Stage_4_Outlier_Detection.Mahalanobis_Detector import MahalanobisDetector
from src.Stage_4_Outlier_Detection.Mixture_Detector import MixtureDetector
from src.utils.config import PipelineConfig
from src.utils.monitor import monitor

DetectorResult = Union[DistanceResult, ClusterResult]


def build_detectors(cfg: PipelineConfig) -> list:
    """One Mahalanobis test, one DBSCAN per configured setting, one mixture."""
    detectors = [MahalanobisDetector(confidence=cfg.confidence, robust=cfg.robust,
                                     random_state=cfg.random_state)]
    detectors += [DensityDetector(eps=eps, min_samples=min_samples)
                  for eps, min_samples in cfg.dbscan_settings]
    detectors.append(MixtureDetector(n_components=cfg.mixture_components,
                                     covariance_type=cfg.covariance_type,
                                     random_state=cfg.random_state))
    return detectors


@monitor(name="detectors")
def run_detectors(matrix: pd.DataFrame, detectors: Sequence,
                  n_jobs: int = 1) -> List[DetectorResult]:
    """
    Run every detector over the same read-only matrix. Results come back in
    the order the detectors were given; n_jobs > 1 runs them on joblib threads.
    """
    if n_jobs == 1 or len(detectors) < 2:
        return [d.detect(matrix) for d in detectors]
    return Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(d.detect)(matrix) for d in detectors
    )

#!/usr/bin/env python3
"""
Stage 3: PCA on the standardized biopsy Feature Matrix

  • Fits a PCA (full SVD, whiten=False) on the matrix produced by the cleaner.
    The matrix is already centred and scaled, so no further scaling happens here.
  • Keeps the top `n_components` axes (default 2) for the embedding, and the
    full nine-axis spectrum for the scree report.
  • Component signs are arbitrary; only relative positions carry meaning.
  • Optionally saves `pca_scree.png` and `pca_report.json` under report_dir.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from sklearn.decomposition import PCA

from src.Stage_1_Ingestion.data_loaders import LABEL_COLUMN
from src.Stage_2_Cleaning.Biopsy_Cleaner import CleanedBiopsy
from src.utils.errors import DetectorConfigError
from src.utils.monitor import monitor

log = logging.getLogger("pca")


@dataclass(frozen=True, eq=False)
class PCAEmbedding:
    """
    coords    : PC1..PCk per sample (index = sample id) plus pass-through label
    axes      : k x p array, one orthonormal component axis per row
    explained_variance / explained_variance_ratio : per kept component
    loadings  : p x k DataFrame (feature x component)
    """
    coords: pd.DataFrame
    axes: np.ndarray
    explained_variance: np.ndarray
    explained_variance_ratio: np.ndarray
    loadings: pd.DataFrame

    @property
    def component_names(self) -> List[str]:
        return [c for c in self.coords.columns if c != LABEL_COLUMN]

    def scores(self) -> np.ndarray:
        S = self.coords[self.component_names].to_numpy(dtype=float, copy=True)
        S.setflags(write=False)
        return S

    def summary(self) -> dict:
        return {
            "n_components": len(self.component_names),
            "explained_variance": [round(float(v), 6) for v in self.explained_variance],
            "explained_variance_ratio": [round(float(v), 6)
                                         for v in self.explained_variance_ratio],
            "cumulative_variance": round(float(self.explained_variance_ratio.sum()), 6),
        }


class BiopsyPCA:
    """
    Parameters
    ----------
      n_components : int
          Number of axes kept in the embedding (1..n_features).
      report_dir : str | Path | None
          Where to write the scree plot and JSON report; None disables output.
    """
    N_COMPONENTS: int = 2

    def __init__(
        self,
        n_components: int = N_COMPONENTS,
        report_dir: Optional[Union[str, Path]] = None,
    ):
        self.n_components = n_components
        self.report_dir = Path(report_dir) if report_dir else None
        self.pca_model: PCA | None = None
        self.full_model: PCA | None = None
        self.feature_names: List[str] = []

    @monitor(name="pca", log_result=True)
    def fit_transform(self, cleaned: CleanedBiopsy) -> PCAEmbedding:
        """
        1) Validate n_components against the matrix shape.
        2) Fit the full PCA once (spectrum for reporting).
        3) Fit the truncated PCA and project every record.
        4) Assemble the embedding, carrying ids and labels through.
        5) Write scree plot + JSON report if report_dir is set.
        """
        X = cleaned.feature_matrix()
        n_samples, n_features = X.shape
        if not 1 <= self.n_components <= min(n_samples, n_features):
            raise DetectorConfigError(
                f"n_components={self.n_components} must lie in "
                f"1..{min(n_samples, n_features)}", stage="pca")
        self.feature_names = list(cleaned.matrix.columns)

        self.full_model = PCA(svd_solver="full").fit(X)
        self.pca_model = PCA(n_components=self.n_components, whiten=False,
                             svd_solver="full")
        scores = self.pca_model.fit_transform(X)

        cols = [f"PC{i + 1}" for i in range(self.n_components)]
        coords = pd.DataFrame(scores, columns=cols, index=cleaned.matrix.index)
        coords[LABEL_COLUMN] = cleaned.labels()
        loadings = pd.DataFrame(self.pca_model.components_.T,
                                index=self.feature_names, columns=cols)

        embedding = PCAEmbedding(
            coords=coords,
            axes=self.pca_model.components_.copy(),
            explained_variance=self.pca_model.explained_variance_.copy(),
            explained_variance_ratio=self.pca_model.explained_variance_ratio_.copy(),
            loadings=loadings,
        )
        cum = embedding.explained_variance_ratio.sum()
        log.info(f"PCA: kept {self.n_components}/{n_features} components "
                 f"(cumvar={cum:.3f})")

        if self.report_dir is not None:
            self._write_report(embedding)
        return embedding

    def full_spectrum(self) -> np.ndarray:
        """Explained-variance ratio of every component, not just the kept ones."""
        if self.full_model is None:
            raise ValueError("PCA model not fitted. Call fit_transform() first.")
        return self.full_model.explained_variance_ratio_.copy()

    def reconstruct(self, scores: np.ndarray) -> np.ndarray:
        """Map component scores back to the standardized feature space."""
        if self.pca_model is None:
            raise ValueError("PCA model not fitted. Call fit_transform() first.")
        return self.pca_model.inverse_transform(np.asarray(scores, dtype=float))

    def _write_report(self, embedding: PCAEmbedding) -> None:
        self.report_dir.mkdir(parents=True, exist_ok=True)
        spectrum = self.full_spectrum()
        cumvar = np.cumsum(spectrum)

        plt.figure(figsize=(6, 4))
        plt.bar(np.arange(1, len(spectrum) + 1), spectrum, alpha=0.6,
                label="per component")
        plt.plot(np.arange(1, len(cumvar) + 1), cumvar, marker="o",
                 linestyle="-", color="darkred", label="cumulative")
        plt.axvline(self.n_components + 0.5, color="grey", linestyle="--")
        plt.xlabel("Component")
        plt.ylabel("Explained Variance Ratio")
        plt.title("PCA Scree Plot")
        plt.legend()
        plt.grid(True, alpha=0.3)
        scree_path = self.report_dir / "pca_scree.png"
        plt.savefig(scree_path, bbox_inches="tight")
        plt.close()
        log.info(f"Scree plot saved to {scree_path}")

        report = embedding.summary()
        report["full_spectrum"] = [round(float(v), 6) for v in spectrum]
        report["loadings"] = embedding.loadings.round(6).to_dict()
        outpath = self.report_dir / "pca_report.json"
        with open(outpath, "w") as f:
            json.dump(report, f, indent=2)
        log.info(f"PCA report → {outpath}")

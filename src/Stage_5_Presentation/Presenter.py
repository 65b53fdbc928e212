"""
Presenter.py

Sink for the pipeline: joins the PCA embedding with any number of detector
results by sample id and renders tables and PC1/PC2 scatter plots.
"""
import logging
from pathlib import Path
from typing import Dict, List, Sequence, Union

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from scipy.stats import chi2

from src.Stage_1_Ingestion.data_loaders import LABEL_COLUMN
from src.Stage_3_Dimensionality_Reduction.PCA_Reducer import PCAEmbedding
from src.Stage_4_Outlier_Detection.detector_results import ClusterResult, DistanceResult

log = logging.getLogger("presenter")

DIAGNOSIS_NAMES = {0: "benign", 1: "malignant"}


def join_results(embedding: PCAEmbedding,
                 results: Sequence[Union[DistanceResult, ClusterResult]]) -> pd.DataFrame:
    """
    One row per sample id: PC coordinates, label, then one column per result.
    Every result must cover exactly the embedding's ids.
    """
    joined = embedding.coords.copy()
    for res in results:
        col = res.column()
        if set(col.index) != set(joined.index):
            raise ValueError(f"Result '{res.name}' does not cover the embedded ids.")
        if col.name in joined.columns:
            raise ValueError(f"Duplicate result column '{col.name}'.")
        joined[col.name] = col.reindex(joined.index)
        if isinstance(res, DistanceResult):
            joined[f"{res.name}_sq"] = res.distances.reindex(joined.index)
    return joined


def crosstab(joined: pd.DataFrame, column: str) -> pd.DataFrame:
    """Diagnosis vs detector column contingency table."""
    diagnosis = joined[LABEL_COLUMN].map(DIAGNOSIS_NAMES).rename("diagnosis")
    return pd.crosstab(diagnosis, joined[column])


class Presenter:

    def __init__(self, out_dir: Union[str, Path]):
        self.out_dir = Path(out_dir)
        self.plots_dir = self.out_dir / "figures"
        self.plots_dir.mkdir(parents=True, exist_ok=True)
        sns.set(style="whitegrid")

    def _scatter(self, joined: pd.DataFrame, hue: pd.Series, title: str,
                 filename: str) -> str:
        plt.figure(figsize=(7, 5))
        sns.scatterplot(x=joined["PC1"], y=joined["PC2"], hue=hue,
                        palette="deep", s=18, linewidth=0)
        plt.title(title)
        plt.tight_layout()
        filepath = self.plots_dir / filename
        plt.savefig(filepath)
        plt.close()
        return str(filepath)

    def plot_diagnosis(self, joined: pd.DataFrame) -> str:
        hue = joined[LABEL_COLUMN].map(DIAGNOSIS_NAMES).rename("diagnosis")
        return self._scatter(joined, hue, "PCA: diagnosis", "pca_diagnosis.png")

    def plot_result(self, joined: pd.DataFrame,
                    result: Union[DistanceResult, ClusterResult]) -> str:
        col = joined[result.name]
        if isinstance(result, DistanceResult):
            hue = col.map({True: "outlier", False: "inlier"}).rename(result.name)
            title = (f"PCA: Mahalanobis outliers ({result.n_outliers}, "
                     f"q={result.confidence})")
        else:
            hue = col.astype(str).rename(result.name)
            if result.noise_label is not None:
                hue = hue.replace({str(result.noise_label): "noise"})
            title = f"PCA: {result.name} ({result.n_clusters} clusters)"
        return self._scatter(joined, hue, title, f"pca_{result.name}.png")

    def plot_chi2_qq(self, result: DistanceResult, n_features: int) -> str:
        """Ordered squared distances against chi-squared quantiles."""
        d = np.sort(result.distances.to_numpy())
        probs = (np.arange(1, len(d) + 1) - 0.5) / len(d)
        q = chi2.ppf(probs, df=n_features)
        plt.figure(figsize=(5, 5))
        plt.scatter(q, d, s=10)
        lim = max(q.max(), 1.0)
        plt.plot([0, lim], [0, lim], color="grey", linestyle="--")
        plt.axhline(result.threshold, color="red", linestyle=":")
        plt.xlabel(f"chi2({n_features}) quantile")
        plt.ylabel("squared robust distance")
        plt.title("Chi-square QQ plot")
        plt.tight_layout()
        filepath = self.plots_dir / "mahalanobis_qq.png"
        plt.savefig(filepath)
        plt.close()
        return str(filepath)

    def plot_k_distance(self, curve: np.ndarray, k: int, eps_marks: Sequence[float]) -> str:
        plt.figure(figsize=(6, 4))
        plt.plot(np.arange(len(curve)), curve)
        for eps in eps_marks:
            plt.axhline(eps, linestyle="--", color="grey")
        plt.xlabel("samples sorted by distance")
        plt.ylabel(f"{k}-NN distance")
        plt.title("k-distance curve")
        plt.tight_layout()
        filepath = self.plots_dir / f"k_distance_{k}.png"
        plt.savefig(filepath)
        plt.close()
        return str(filepath)

    def render(self, embedding: PCAEmbedding,
               results: Sequence[Union[DistanceResult, ClusterResult]],
               plots: bool = True) -> Dict[str, List[str]]:
        """Write the joined table and, unless plots=False, every chart.
        Returns chart paths keyed by result name."""
        joined = join_results(embedding, results)
        table_path = self.out_dir / "joined_results.csv"
        joined.to_csv(table_path, index_label="sample_id")
        log.info(f"Joined table → {table_path}")

        if not plots:
            return {}

        charts: Dict[str, List[str]] = {"pca": []}
        if "PC2" in joined.columns:
            charts["pca"].append(self.plot_diagnosis(joined))
        n_features = embedding.axes.shape[1]
        for res in results:
            paths = []
            if "PC2" in joined.columns:
                paths.append(self.plot_result(joined, res))
            if isinstance(res, DistanceResult):
                paths.append(self.plot_chi2_qq(res, n_features))
            charts[res.name] = paths
        return charts

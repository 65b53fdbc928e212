#!/usr/bin/env python3
"""
run_pipeline.py

“One-stop” driver for the biopsy outlier analysis:

    load → health check → clean → PCA → detectors → join / plots → report

Defaults live in PipelineConfig; a YAML file (--config) overrides them and
command-line flags override both. Any PipelineError aborts the run with a
single descriptive line and exit status 1.

    python -m src.scripts.run_pipeline --data data/breast-cancer-wisconsin.data
    python -m src.scripts.run_pipeline --config configs/params.yaml --dbscan 1:3 --dbscan 2:4
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from src.Stage_1_Ingestion.data_loaders import RawBiopsy, check_biopsy, read_biopsy
from src.Stage_2_Cleaning.Biopsy_Cleaner import BiopsyCleaner, CleanedBiopsy
from src.Stage_3_Dimensionality_Reduction.PCA_Reducer import BiopsyPCA, PCAEmbedding
from src.Stage_4_Outlier_Detection.Density_Detector import k_distance_curve, suggest_eps
from src.Stage_4_Outlier_Detection.run_detectors import (
    DetectorResult,
    build_detectors,
    run_detectors,
)
from src.Stage_5_Presentation.Presenter import Presenter, crosstab, join_results
from src.utils.config import (
    COVARIANCE_TYPES,
    LABEL_SCHEMES,
    PipelineConfig,
    load_config,
    parse_dbscan_setting,
)
from src.utils.errors import ConfigError, PipelineError
from src.utils.monitor import configure_logging
from src.utils.PipelineReporter import PipelineReporter

# ─────────────────────────────────────────────────────────────────────────────
# 1) CONFIGURE YOUR DEFAULTS HERE
# ─────────────────────────────────────────────────────────────────────────────

# Example overrides file (pass it with --config).
EXAMPLE_CONFIG_PATH = "configs/params.yaml"
REPORT_NAME = "pipeline_report"

log = logging.getLogger("RunPipeline")


@dataclass
class PipelineRun:
    """Everything one run produced, stage by stage."""
    config: PipelineConfig
    raw: RawBiopsy
    health: dict
    cleaned: CleanedBiopsy
    embedding: PCAEmbedding
    results: List[DetectorResult]
    joined: pd.DataFrame
    report: Optional[dict] = None


# ─────────────────────────────────────────────────────────────────────────────
# 2) STAGES
# ─────────────────────────────────────────────────────────────────────────────

def run(cfg: PipelineConfig) -> PipelineRun:
    """Run every stage in order; PipelineError propagates unchanged."""
    report_dir = Path(cfg.report_dir) if cfg.report_dir else None

    raw = read_biopsy(cfg.data_path, sep=cfg.sep,
                      missing_token=cfg.missing_token,
                      has_header=cfg.has_header)
    health = check_biopsy(raw, label_codes=cfg.label_codes)

    cleaned = BiopsyCleaner(label_codes=cfg.label_codes,
                            verbose=cfg.verbose).fit_transform(raw)

    reducer = BiopsyPCA(n_components=cfg.n_components,
                        report_dir=report_dir if cfg.make_plots else None)
    embedding = reducer.fit_transform(cleaned)

    results = run_detectors(cleaned.matrix, build_detectors(cfg), n_jobs=cfg.n_jobs)

    if report_dir is None:
        joined = join_results(embedding, results)
        return PipelineRun(cfg, raw, health, cleaned, embedding, results, joined)

    presenter = Presenter(report_dir)
    charts = presenter.render(embedding, results, plots=cfg.make_plots)
    joined = join_results(embedding, results)

    reporter = PipelineReporter(report_dir)
    reporter.register("config", cfg.as_dict())
    reporter.register("ingest", {"source": raw.source, **health})
    reporter.register("clean", cleaned.summary())

    pca_summary = embedding.summary()
    pca_summary["full_spectrum"] = [round(float(v), 6) for v in reducer.full_spectrum()]
    pca_charts = list(charts.get("pca", []))
    if cfg.make_plots:
        pca_charts.insert(0, str(report_dir / "pca_scree.png"))
    reporter.register("pca", pca_summary, charts=pca_charts,
                      tables={"loadings": embedding.loadings.round(4)})

    for res in results:
        summary = res.summary()
        if res.kind == "mahalanobis":
            summary["outlier_ids"] = res.outlier_ids()
        reporter.register(res.name, summary,
                          charts=charts.get(res.name, []),
                          tables={"diagnosis vs " + res.name: crosstab(joined, res.name)})

    reporter.register("dbscan_tuning", _eps_hints(cleaned, cfg, presenter))

    report = reporter.generate_report(REPORT_NAME)
    return PipelineRun(cfg, raw, health, cleaned, embedding, results, joined, report)


def _eps_hints(cleaned: CleanedBiopsy, cfg: PipelineConfig,
               presenter: Presenter) -> Dict[str, float]:
    """Knee of the k-distance curve for every configured min_samples."""
    hints = {}
    for min_samples in sorted({m for _, m in cfg.dbscan_settings}):
        if min_samples > cleaned.n_records:
            continue
        hints[f"min_samples={min_samples}"] = round(
            suggest_eps(cleaned.matrix, min_samples), 4)
        if cfg.make_plots:
            eps_marks = [e for e, m in cfg.dbscan_settings if m == min_samples]
            presenter.plot_k_distance(k_distance_curve(cleaned.matrix, min_samples),
                                      min_samples, eps_marks)
    log.info(f"Suggested eps by k-distance knee: {hints}")
    return hints


# ─────────────────────────────────────────────────────────────────────────────
# 3) COMMAND LINE
# ─────────────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Biopsy outlier analysis: clean → PCA → Mahalanobis / DBSCAN / "
                    "Gaussian mixture → report.")
    p.add_argument("--data", dest="data_path", help="Delimited biopsy file.")
    p.add_argument("--config", help=f"YAML overrides, e.g. {EXAMPLE_CONFIG_PATH}.")

    g = p.add_argument_group("input")
    g.add_argument("--sep", help="Field delimiter (default ',').")
    g.add_argument("--missing-token", dest="missing_token",
                   help="Missing-value sentinel (default '?').")
    g.add_argument("--header", dest="has_header", action="store_true", default=None,
                   help="First line is a header row.")
    g.add_argument("--label-scheme", dest="label_scheme", choices=sorted(LABEL_SCHEMES))

    g = p.add_argument_group("reducer / detectors")
    g.add_argument("--n-components", dest="n_components", type=int)
    g.add_argument("--confidence", type=float,
                   help="Chi-squared quantile for the Mahalanobis cutoff.")
    g.add_argument("--no-robust", dest="robust", action="store_false", default=None,
                   help="Classical covariance instead of MinCovDet.")
    g.add_argument("--eps", type=float, help="DBSCAN neighborhood radius.")
    g.add_argument("--min-samples", dest="min_samples", type=int,
                   help="DBSCAN minimum neighbor count (point included).")
    g.add_argument("--dbscan", action="append", metavar="EPS:MIN",
                   help="DBSCAN setting; repeatable, replaces the defaults.")
    g.add_argument("--mixture-components", dest="mixture_components", type=int)
    g.add_argument("--covariance-type", dest="covariance_type", choices=COVARIANCE_TYPES)
    g.add_argument("--seed", dest="random_state", type=int)
    g.add_argument("--n-jobs", dest="n_jobs", type=int)

    g = p.add_argument_group("output")
    g.add_argument("--report-dir", dest="report_dir")
    g.add_argument("--no-plots", dest="make_plots", action="store_false", default=None)
    g.add_argument("--log-file", dest="log_file")
    g.add_argument("--verbose", action="store_true", default=None)
    return p


def overrides_from_args(args: argparse.Namespace) -> dict:
    """Turn parsed flags into PipelineConfig overrides (None = not given)."""
    overrides = {k: v for k, v in vars(args).items()
                 if k not in ("config", "eps", "min_samples", "dbscan")}

    if (args.eps is None) != (args.min_samples is None):
        raise ConfigError("--eps and --min-samples must be given together.",
                          key="dbscan_settings")
    settings = []
    if args.eps is not None:
        settings.append((args.eps, args.min_samples))
    settings += [parse_dbscan_setting(tok) for tok in args.dbscan or []]
    overrides["dbscan_settings"] = settings or None
    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = load_config(args.config, overrides_from_args(args))
        configure_logging(cfg.log_file,
                          level=logging.DEBUG if cfg.verbose else logging.INFO)
        log.info(f"▶ Biopsy pipeline on {cfg.data_path}")
        outcome = run(cfg)
    except PipelineError as e:
        log.error(f"✖ Pipeline aborted: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1

    flagged = {res.name: (res.n_outliers if res.kind == "mahalanobis"
                          else res.noise_count if res.kind == "dbscan"
                          else res.sizes())
               for res in outcome.results}
    log.info(f"✔ Done: {outcome.cleaned.n_records} records; {flagged}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

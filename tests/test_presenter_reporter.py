import json

import pandas as pd
import pytest

from src.Stage_1_Ingestion.data_loaders import LABEL_COLUMN, read_biopsy
from src.Stage_2_Cleaning.Biopsy_Cleaner import BiopsyCleaner
from src.Stage_3_Dimensionality_Reduction.PCA_Reducer import BiopsyPCA
from src.Stage_4_Outlier_Detection.Density_Detector import DensityDetector
from src.Stage_4_Outlier_Detection.Mahalanobis_Detector import MahalanobisDetector
from src.Stage_4_Outlier_Detection.Mixture_Detector import MixtureDetector
from src.Stage_5_Presentation.Presenter import Presenter, crosstab, join_results
from src.utils.PipelineReporter import PipelineReporter


@pytest.fixture
def stages(biopsy_file):
    cleaned = BiopsyCleaner().fit_transform(read_biopsy(biopsy_file))
    embedding = BiopsyPCA().fit_transform(cleaned)
    results = [
        MahalanobisDetector().detect(cleaned.matrix),
        DensityDetector(eps=2.0, min_samples=4).detect(cleaned.matrix),
        MixtureDetector(n_components=2).detect(cleaned.matrix),
    ]
    return cleaned, embedding, results


def test_join_has_one_row_per_id(stages):
    cleaned, embedding, results = stages
    joined = join_results(embedding, results)
    assert joined.index.equals(cleaned.matrix.index)
    assert list(joined.columns) == [
        "PC1", "PC2", LABEL_COLUMN,
        "mahalanobis", "mahalanobis_sq",
        "dbscan_eps2_min4",
        "mixture_k2",
    ]
    assert joined["mahalanobis"].dtype == bool


def test_join_rejects_foreign_ids(stages):
    _, embedding, results = stages
    dbscan = results[1]
    shifted = type(dbscan)(
        kind="dbscan",
        assignments=dbscan.assignments.rename(lambda s: s + "x"),
        noise_label=0,
        params=dbscan.params,
    )
    with pytest.raises(ValueError):
        join_results(embedding, [shifted])


def test_join_rejects_duplicate_result(stages):
    _, embedding, results = stages
    with pytest.raises(ValueError):
        join_results(embedding, [results[2], results[2]])


def test_crosstab_counts_every_record(stages):
    cleaned, embedding, results = stages
    joined = join_results(embedding, results)
    table = crosstab(joined, "mixture_k2")
    assert set(table.index) == {"benign", "malignant"}
    assert table.values.sum() == cleaned.n_records


def test_render_writes_table_and_charts(stages, tmp_path):
    _, embedding, results = stages
    charts = Presenter(tmp_path).render(embedding, results)
    table = pd.read_csv(tmp_path / "joined_results.csv", index_col="sample_id")
    assert len(table) == len(embedding.coords)
    assert set(charts) == {"pca", "mahalanobis", "dbscan_eps2_min4", "mixture_k2"}
    assert len(charts["mahalanobis"]) == 2
    for paths in charts.values():
        for p in paths:
            assert (tmp_path / "figures").joinpath(p.split("/")[-1]).exists()


def test_render_without_plots(stages, tmp_path):
    _, embedding, results = stages
    assert Presenter(tmp_path).render(embedding, results, plots=False) == {}
    assert (tmp_path / "joined_results.csv").exists()
    assert not list((tmp_path / "figures").glob("*.png"))


def test_reporter_writes_all_formats(stages, tmp_path):
    cleaned, embedding, results = stages
    reporter = PipelineReporter(tmp_path)
    reporter.register("clean", cleaned.summary())
    reporter.register("pca", embedding.summary(),
                      tables={"loadings": embedding.loadings})
    reporter.register(results[0].name, results[0].summary(),
                      charts=[str(tmp_path / "figures" / "mahalanobis_qq.png")])
    report = reporter.generate_report("run")

    assert set(report) == {"clean", "pca", "mahalanobis"}
    on_disk = json.loads((tmp_path / "run.json").read_text())
    assert on_disk["clean"]["summary"]["n_records"] == cleaned.n_records
    markdown = (tmp_path / "run.md").read_text()
    assert "## pca" in markdown
    assert "figures/mahalanobis_qq.png" in markdown
    assert (tmp_path / "run.html").exists()

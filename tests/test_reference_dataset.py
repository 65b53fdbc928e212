r"""
Regression values for the UCI breast-cancer-wisconsin file (699 rows, 16 with
'?'). Set BIOPSY_DATA or drop the file under data/ to run them:

    mkdir -p data
    curl -o data/breast-cancer-wisconsin.data \
      https://archive.ics.uci.edu/ml/machine-learning-databases/breast-cancer-wisconsin/breast-cancer-wisconsin.data
"""
import pytest

from src.Stage_1_Ingestion.data_loaders import read_biopsy
from src.Stage_2_Cleaning.Biopsy_Cleaner import BiopsyCleaner
from src.Stage_4_Outlier_Detection.Density_Detector import DensityDetector
from src.Stage_4_Outlier_Detection.Mahalanobis_Detector import MahalanobisDetector
from src.Stage_4_Outlier_Detection.Mixture_Detector import MixtureDetector

from conftest import REFERENCE_DATA

pytestmark = [
    pytest.mark.reference,
    pytest.mark.skipif(not REFERENCE_DATA.exists(),
                       reason=f"reference data not found at {REFERENCE_DATA}"),
]


@pytest.fixture(scope="module")
def cleaned():
    return BiopsyCleaner().fit_transform(read_biopsy(REFERENCE_DATA))


def test_cleaned_size(cleaned):
    assert cleaned.n_records == 683
    assert len(cleaned.dropped) == 16
    assert len(set(cleaned.ids)) == 683


@pytest.mark.parametrize("eps,min_samples,noise,sizes", [
    (1.0, 3, 266, [411, 3, 3]),
    (2.0, 4, 55, [438, 190]),
])
def test_dbscan_partitions(cleaned, eps, min_samples, noise, sizes):
    res = DensityDetector(eps=eps, min_samples=min_samples).detect(cleaned.matrix)
    assert res.noise_count == noise
    assert sorted(res.sizes().values(), reverse=True) == sizes


def test_mixture_four_components(cleaned):
    res = MixtureDetector(n_components=4).detect(cleaned.matrix)
    assert len(res.assignments) == 683
    assert res.assignments.between(1, 4).all()


def test_mahalanobis_rerun_is_identical(cleaned):
    a = MahalanobisDetector().detect(cleaned.matrix)
    b = MahalanobisDetector().detect(cleaned.matrix)
    assert a.outlier_ids() == b.outlier_ids()

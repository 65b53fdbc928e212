"""
Pytest configuration for the biopsy pipeline tests.
Puts the project root on sys.path and builds small synthetic biopsy files.
"""
import os
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

REFERENCE_DATA = Path(os.environ.get(
    "BIOPSY_DATA", PROJECT_ROOT / "data" / "breast-cancer-wisconsin.data"))


def pytest_configure(config):
    config.addinivalue_line("markers", "reference: needs the 699-row UCI biopsy file")


def synthetic_rows(n_benign=60, n_malignant=40, seed=0, labels=("2", "4")):
    """Two well separated groups of integer scores, ids 1000000.. in order."""
    rng = np.random.default_rng(seed)
    rows = []
    for i in range(n_benign + n_malignant):
        malignant = i >= n_benign
        feats = rng.integers(5, 11, size=9) if malignant else rng.integers(1, 5, size=9)
        rows.append([str(1000000 + i)] + [str(v) for v in feats]
                    + [labels[1] if malignant else labels[0]])
    return rows


def write_rows(path, rows, sep=",", header=None):
    lines = [sep.join(header)] if header else []
    lines += [sep.join(r) for r in rows]
    Path(path).write_text("\n".join(lines) + "\n")
    return Path(path)


@pytest.fixture
def rows():
    """
    100 synthetic records with:
      • '?' in bare_nuclei on records 10 and 20
      • records 4, 5, 6 sharing one identifier
    """
    data = synthetic_rows()
    data[10][6] = "?"
    data[20][6] = "?"
    data[5][0] = data[4][0]
    data[6][0] = data[4][0]
    return data


@pytest.fixture
def biopsy_file(tmp_path, rows):
    return write_rows(tmp_path / "biopsy.data", rows)


@pytest.fixture
def make_biopsy_file(tmp_path):
    """Factory: write the given rows to a fresh file and return its path."""
    counter = {"n": 0}

    def _make(data, **kwargs):
        counter["n"] += 1
        return write_rows(tmp_path / f"biopsy_{counter['n']}.data", data, **kwargs)

    return _make


@pytest.fixture
def blobs():
    """Two tight Gaussian blobs in 3-D plus one far-away point, indexed by id."""
    rng = np.random.default_rng(7)
    a = rng.normal(0.0, 0.2, size=(40, 3))
    b = rng.normal(5.0, 0.2, size=(40, 3))
    far = np.array([[20.0, -20.0, 20.0]])
    X = np.vstack([a, b, far])
    ids = [f"s{i}" for i in range(len(X))]
    return pd.DataFrame(X, index=pd.Index(ids, name="sample_id"),
                        columns=["f1", "f2", "f3"])


@pytest.fixture(scope="session")
def project_root():
    return PROJECT_ROOT

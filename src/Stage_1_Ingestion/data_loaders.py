from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

import numpy as np
import pandas as pd

from src.Stage_1_Ingestion.DataHealthCheck import DataHealthCheck
from src.utils.errors import MalformedRowError, PipelineError
from src.utils.monitor import monitor

log = logging.getLogger("ingest")

ID_COLUMN = "sample_id"
RAW_LABEL_COLUMN = "raw_label"
LABEL_COLUMN = "label"
SEQ_COLUMN = "seq"
FEATURE_COLUMNS: List[str] = [
    "clump_thickness",
    "uniformity_cell_size",
    "uniformity_cell_shape",
    "marginal_adhesion",
    "single_epithelial_cell_size",
    "bare_nuclei",
    "bland_chromatin",
    "normal_nucleoli",
    "mitoses",
]
RAW_COLUMNS: List[str] = [ID_COLUMN] + FEATURE_COLUMNS + [RAW_LABEL_COLUMN]

INTEGER_TOKEN = r"[+-]?\d{1,9}"


@dataclass(frozen=True, eq=False)
class RawBiopsy:
    """
    Raw rows exactly as read: every field a stripped string, plus the 0-based
    input order in `seq`. Consumers get copies through `frame()`.
    """
    table: pd.DataFrame
    source: str
    missing_token: str

    def frame(self) -> pd.DataFrame:
        return self.table.copy()

    def __len__(self) -> int:
        return len(self.table)


def _reject_long_row(bad_line: List[str]):
    raise MalformedRowError(
        f"Expected {len(RAW_COLUMNS)} fields, got {len(bad_line)}.",
        stage="load",
        details={"fields": bad_line},
    )


@monitor(name="load", log_result=True)
def read_biopsy(
    path: Union[str, Path],
    sep: str = ",",
    missing_token: str = "?",
    has_header: bool = False,
) -> RawBiopsy:
    """
    Read a delimited biopsy file: identifier, nine integer features, label.

    Rows with the wrong field count, an empty identifier or a feature token
    that is neither an integer nor `missing_token` abort the load. Rows that
    merely contain `missing_token` are kept here; the cleaner drops them.
    """
    path = Path(path)
    if not path.exists():
        raise PipelineError(f"Input file not found: {path}", stage="load")
    if not path.read_text().strip():
        raise PipelineError(f"No records found in {path}", stage="load")

    width = len(RAW_COLUMNS)
    # one spare column catches any field past the label
    df = pd.read_csv(
        path,
        sep=sep,
        header=None,
        skiprows=1 if has_header else 0,
        names=list(range(width + 1)),
        dtype=str,
        na_filter=False,
        skip_blank_lines=True,
        index_col=False,
        engine="python",
        on_bad_lines=_reject_long_row,
    )
    if df.empty:
        raise PipelineError(f"No records found in {path}", stage="load")

    extra = df[width].notna()
    if extra.any():
        pos = int(np.flatnonzero(extra.values)[0])
        raise MalformedRowError(
            f"Expected {width} fields, got more.", stage="load", row=pos + 1,
            details={"sample_id": df.at[pos, 0]})
    df = df.drop(columns=[width])
    df.columns = RAW_COLUMNS

    df = df.reset_index(drop=True)
    short = df[RAW_COLUMNS].isna().any(axis=1)
    if short.any():
        pos = int(np.flatnonzero(short.values)[0])
        raise MalformedRowError(
            f"Record has fewer than {len(RAW_COLUMNS)} fields.",
            stage="load", row=pos + 1)

    df = df.apply(lambda s: s.str.strip())

    empty_id = df[ID_COLUMN].eq("")
    if empty_id.any():
        pos = int(np.flatnonzero(empty_id.values)[0])
        raise MalformedRowError("Empty sample identifier.",
                                stage="load", row=pos + 1)

    feats = df[FEATURE_COLUMNS]
    valid = feats.eq(missing_token) | feats.apply(
        lambda s: s.str.fullmatch(INTEGER_TOKEN).fillna(False).astype(bool))
    if not valid.values.all():
        pos = int(np.flatnonzero(~valid.all(axis=1).values)[0])
        col = valid.columns[~valid.iloc[pos].values][0]
        raise MalformedRowError(
            f"Feature '{col}' has non-integer value {df.at[pos, col]!r}.",
            stage="load", row=pos + 1,
            details={"sample_id": df.at[pos, ID_COLUMN], "column": col})

    df[SEQ_COLUMN] = np.arange(len(df), dtype=int)
    log.info(f"Loaded {len(df)} records from {path}")
    return RawBiopsy(table=df, source=str(path), missing_token=missing_token)


@monitor(name="health_check")
def check_biopsy(raw: RawBiopsy, label_codes=None) -> dict:
    """Run the raw-table health checks and return their results."""
    health = DataHealthCheck(raw.frame(), missing_token=raw.missing_token,
                             label_codes=label_codes)
    return health.run_all_checks()

#!/usr/bin/env python3
"""
Biopsy_Cleaner.py

Stage 2: raw biopsy rows → cleaned records + standardized Feature Matrix

  • Drops every row holding the missing-value sentinel (no imputation).
  • Maps the raw diagnosis onto 0 = benign / 1 = malignant; any other token aborts.
  • Makes identifiers unique in input order: first occurrence keeps the bare id,
    later ones get ".1", ".2", … (never colliding with another id in the set).
  • Validates the cleaned table with a pandera schema (features within 1..10).
  • Standardizes each feature column with its own mean and sample standard
    deviation (ddof=1) over the cleaned rows; a constant column aborts.

Usage:
    cleaner = BiopsyCleaner(label_codes=("2", "4"))
    cleaned = cleaner.fit_transform(raw)
    X = cleaned.feature_matrix()
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd
import pandera.pandas as pa
from pandera.errors import SchemaErrors

from src.Stage_1_Ingestion.data_loaders import (
    FEATURE_COLUMNS,
    ID_COLUMN,
    LABEL_COLUMN,
    RAW_LABEL_COLUMN,
    SEQ_COLUMN,
    RawBiopsy,
)
from src.utils.errors import (
    MalformedRowError,
    PipelineError,
    UnknownLabelError,
    ZeroVarianceError,
)
from src.utils.monitor import monitor

log = logging.getLogger("clean")

BENIGN, MALIGNANT = 0, 1


def make_unique(ids: Sequence[str]) -> List[str]:
    """
    Disambiguate repeated identifiers by suffix, preserving order.

    >>> make_unique(["a", "b", "a", "a"])
    ['a', 'b', 'a.1', 'a.2']
    """
    taken = set(ids)
    seen = set()
    counters: Dict[str, int] = {}
    out = []
    for ident in ids:
        if ident not in seen:
            seen.add(ident)
            out.append(ident)
            continue
        n = counters.get(ident, 0)
        candidate = f"{ident}.{n + 1}"
        while candidate in taken:
            n += 1
            candidate = f"{ident}.{n + 1}"
        counters[ident] = n + 1
        taken.add(candidate)
        out.append(candidate)
    return out


def _fits_int64(token: str) -> bool:
    try:
        return -2**63 <= int(token) < 2**63
    except ValueError:
        return False


@dataclass(frozen=True, eq=False)
class CleanedBiopsy:
    """
    Read-only snapshot produced by the cleaner.

    records : features (int), label and seq, indexed by unique sample id
    matrix  : standardized features, same index and column order
    center / scale : column means and sample standard deviations used
    """
    records: pd.DataFrame
    matrix: pd.DataFrame
    center: pd.Series
    scale: pd.Series
    dropped: Tuple[str, ...]
    renamed: Mapping[str, str]

    @property
    def ids(self) -> List[str]:
        return self.records.index.tolist()

    @property
    def n_records(self) -> int:
        return len(self.records)

    def labels(self) -> pd.Series:
        return self.records[LABEL_COLUMN].copy()

    def feature_matrix(self) -> np.ndarray:
        X = self.matrix.to_numpy(dtype=float, copy=True)
        X.setflags(write=False)
        return X

    def summary(self) -> dict:
        return {
            "n_records": self.n_records,
            "n_dropped": len(self.dropped),
            "n_renamed": len(self.renamed),
            "label_counts": {
                "benign": int((self.records[LABEL_COLUMN] == BENIGN).sum()),
                "malignant": int((self.records[LABEL_COLUMN] == MALIGNANT).sum()),
            },
            "center": self.center.round(4).to_dict(),
            "scale": self.scale.round(4).to_dict(),
        }


class BiopsyCleaner:
    """
    Parameters
    ----------
      label_codes : (str, str)
          Raw tokens for (benign, malignant), e.g. ("2", "4") or
          ("benign", "malignant"). Matching ignores case and surrounding blanks.
      verbose : bool
          Log every intermediate count at INFO instead of DEBUG.
    """
    FEATURE_MIN: int = 1
    FEATURE_MAX: int = 10

    def __init__(self, label_codes: Tuple[str, str] = ("2", "4"),
                 verbose: bool = False):
        if len(label_codes) != 2 or label_codes[0].lower() == label_codes[1].lower():
            raise ValueError("label_codes must be two distinct tokens.")
        self.label_codes = label_codes
        self.verbose = verbose
        self.schema = self._build_schema()

    def _log(self, msg: str):
        log.log(logging.INFO if self.verbose else logging.DEBUG, msg)

    def _build_schema(self) -> pa.DataFrameSchema:
        columns = {
            c: pa.Column("int64", pa.Check.in_range(self.FEATURE_MIN, self.FEATURE_MAX))
            for c in FEATURE_COLUMNS
        }
        columns[LABEL_COLUMN] = pa.Column("int64", pa.Check.isin([BENIGN, MALIGNANT]))
        columns[SEQ_COLUMN] = pa.Column("int64", pa.Check.ge(0))
        return pa.DataFrameSchema(columns, index=pa.Index(unique=True), strict=True)

    # ——— individual steps, each returns a new frame ———

    def drop_incomplete(self, df: pd.DataFrame, missing_token: str
                        ) -> Tuple[pd.DataFrame, Tuple[str, ...]]:
        mask = df[FEATURE_COLUMNS].eq(missing_token).any(axis=1)
        dropped = tuple(df.loc[mask, ID_COLUMN].tolist())
        self._log(f"  • dropped {len(dropped)} rows holding '{missing_token}'")
        return df.loc[~mask].copy(), dropped

    def encode_labels(self, df: pd.DataFrame) -> pd.DataFrame:
        benign, malignant = (c.lower() for c in self.label_codes)
        tokens = df[RAW_LABEL_COLUMN].str.lower()
        unknown = ~tokens.isin([benign, malignant])
        if unknown.any():
            bad = df.loc[unknown].iloc[0]
            raise UnknownLabelError(
                f"Unrecognized diagnosis {bad[RAW_LABEL_COLUMN]!r} for sample "
                f"{bad[ID_COLUMN]!r}; expected one of {list(self.label_codes)}.",
                stage="clean", row=int(bad[SEQ_COLUMN]) + 1,
                details={"sample_id": bad[ID_COLUMN]})
        out = df.drop(columns=[RAW_LABEL_COLUMN])
        out[LABEL_COLUMN] = np.where(tokens == malignant, MALIGNANT, BENIGN).astype("int64")
        return out

    def deduplicate_ids(self, df: pd.DataFrame
                        ) -> Tuple[pd.DataFrame, Dict[str, str]]:
        df = df.sort_values(SEQ_COLUMN, kind="stable")
        raw_ids = df[ID_COLUMN].tolist()
        unique_ids = make_unique(raw_ids)
        renamed = {new: old for new, old in zip(unique_ids, raw_ids) if new != old}
        self._log(f"  • renamed {len(renamed)} duplicate identifiers")
        out = df.drop(columns=[ID_COLUMN])
        out.index = pd.Index(unique_ids, name=ID_COLUMN)
        return out, renamed

    def validate(self, df: pd.DataFrame) -> pd.DataFrame:
        try:
            typed = df.astype({c: "int64" for c in FEATURE_COLUMNS})
        except (OverflowError, ValueError) as err:
            fits = df[FEATURE_COLUMNS].apply(lambda s: s.map(_fits_int64))
            bad = df.loc[~fits.all(axis=1)].iloc[0]
            raise MalformedRowError(
                "Feature value is not a 64-bit integer.",
                stage="clean", row=int(bad[SEQ_COLUMN]) + 1,
                details={"sample_id": bad.name}) from err
        typed[SEQ_COLUMN] = typed[SEQ_COLUMN].astype("int64")
        try:
            return self.schema.validate(typed, lazy=True)
        except SchemaErrors as err:
            first = err.failure_cases.iloc[0].to_dict()
            idx = first.get("index")
            row = int(typed.at[idx, SEQ_COLUMN]) + 1 if idx in typed.index else idx
            raise MalformedRowError(
                f"Column '{first.get('column')}' failed check "
                f"{first.get('check')}: value {first.get('failure_case')!r}.",
                stage="clean", row=row,
                details={"sample_id": idx, "n_failures": int(len(err.failure_cases))}) from err

    def standardize(self, df: pd.DataFrame
                    ) -> Tuple[pd.DataFrame, pd.Series, pd.Series]:
        feats = df[FEATURE_COLUMNS].astype(float)
        center = feats.mean()
        scale = feats.std(ddof=1)
        for col in FEATURE_COLUMNS:
            if not np.isfinite(scale[col]) or scale[col] == 0:
                raise ZeroVarianceError(col)
        matrix = (feats - center) / scale
        return matrix, center, scale

    # ——— main entry ———

    @monitor(name="clean", log_result=True)
    def fit_transform(self, raw: RawBiopsy) -> CleanedBiopsy:
        df = raw.frame()
        n_in = len(df)

        df, dropped = self.drop_incomplete(df, raw.missing_token)
        if df.empty:
            raise PipelineError(
                "Every record holds a missing value; nothing left to analyse.",
                stage="clean")
        df = self.encode_labels(df)
        df, renamed = self.deduplicate_ids(df)
        df = self.validate(df)
        matrix, center, scale = self.standardize(df)

        records = df[FEATURE_COLUMNS + [LABEL_COLUMN, SEQ_COLUMN]].copy()
        log.info(f"Cleaned {n_in} → {len(records)} records "
                 f"({len(dropped)} dropped, {len(renamed)} renamed)")
        return CleanedBiopsy(
            records=records,
            matrix=matrix,
            center=center,
            scale=scale,
            dropped=dropped,
            renamed=MappingProxyType(dict(renamed)),
        )

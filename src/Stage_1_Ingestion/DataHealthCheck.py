import numpy as np
import pandas as pd

ID_COLUMN = "sample_id"
RAW_LABEL_COLUMN = "raw_label"


class DataHealthCheck:
    """
    Battery of quick checks on the raw biopsy table (all fields still strings).
    Nothing here raises: results are collected in `self.results` for the report.
    """

    def __init__(self, df: pd.DataFrame,
                 missing_token: str = "?",
                 label_codes: tuple = None):
        self.df = df.copy()
        self.missing_token = missing_token
        self.label_codes = label_codes
        self.feature_cols = [c for c in df.columns
                             if c not in (ID_COLUMN, RAW_LABEL_COLUMN, "seq")]
        self.results = {}

    def detect_dimensionality(self):
        self.results['dimensionality'] = {
            'n_rows': int(self.df.shape[0]),
            'n_features': len(self.feature_cols),
        }

    def detect_missingness(self):
        miss = self.df[self.feature_cols].eq(self.missing_token)
        per_col = miss.sum()
        self.results['missingness'] = {
            'rows_with_sentinel': int(miss.any(axis=1).sum()),
            'per_column': {c: int(n) for c, n in per_col.items() if n > 0},
        }

    def detect_duplicate_ids(self):
        counts = self.df[ID_COLUMN].value_counts()
        dups = counts[counts > 1]
        self.results['duplicate_ids'] = {
            'n_duplicated_ids': int(dups.size),
            'n_extra_rows': int((dups - 1).sum()),
            'top': {str(k): int(v) for k, v in dups.head(10).items()},
        }

    def detect_label_distribution(self):
        vc = self.df[RAW_LABEL_COLUMN].value_counts()
        dist = {str(k): int(v) for k, v in vc.items()}
        self.results['label_distribution'] = dist
        if self.label_codes is not None:
            known = {c.lower() for c in self.label_codes}
            self.results['unrecognized_labels'] = sorted(
                k for k in dist if k.lower() not in known)

    def detect_value_ranges(self):
        num = self.df[self.feature_cols].apply(
            pd.to_numeric, errors="coerce")
        self.results['value_ranges'] = {
            c: {'min': float(np.nanmin(num[c])), 'max': float(np.nanmax(num[c]))}
            for c in self.feature_cols if num[c].notna().any()
        }

    def run_all_checks(self) -> dict:
        self.detect_dimensionality()
        self.detect_missingness()
        self.detect_duplicate_ids()
        self.detect_label_distribution()
        self.detect_value_ranges()
        return self.results

import pytest

from src.Stage_1_Ingestion.data_loaders import (
    FEATURE_COLUMNS,
    ID_COLUMN,
    RAW_COLUMNS,
    RAW_LABEL_COLUMN,
    SEQ_COLUMN,
    check_biopsy,
    read_biopsy,
)
from src.utils.errors import MalformedRowError, PipelineError


def test_read_keeps_every_row_in_order(biopsy_file, rows):
    raw = read_biopsy(biopsy_file)
    df = raw.frame()
    assert len(raw) == len(rows)
    assert list(df[SEQ_COLUMN]) == list(range(len(rows)))
    assert df[ID_COLUMN].tolist() == [r[0] for r in rows]
    # sentinel rows survive loading; the cleaner drops them
    assert df.loc[10, "bare_nuclei"] == "?"


def test_frame_is_a_copy(biopsy_file):
    raw = read_biopsy(biopsy_file)
    df = raw.frame()
    df.loc[0, RAW_LABEL_COLUMN] = "changed"
    assert raw.frame().loc[0, RAW_LABEL_COLUMN] != "changed"


def test_whitespace_is_stripped(make_biopsy_file, rows):
    rows[0] = [f" {v} " for v in rows[0]]
    raw = read_biopsy(make_biopsy_file(rows))
    assert raw.frame().loc[0, ID_COLUMN] == "1000000"
    assert raw.frame().loc[0, RAW_LABEL_COLUMN] == "2"


def test_header_and_separator(make_biopsy_file, rows):
    path = make_biopsy_file(rows, sep=";", header=RAW_COLUMNS)
    raw = read_biopsy(path, sep=";", has_header=True)
    assert len(raw) == len(rows)
    assert raw.frame().loc[0, FEATURE_COLUMNS[0]] == rows[0][1]


def test_short_row_is_fatal(make_biopsy_file, rows):
    rows[3] = rows[3][:8]
    with pytest.raises(MalformedRowError) as exc:
        read_biopsy(make_biopsy_file(rows))
    assert exc.value.stage == "load"
    assert exc.value.row == 4


def test_long_row_is_fatal(make_biopsy_file, rows):
    rows[3] = rows[3] + ["7"]
    with pytest.raises(MalformedRowError) as exc:
        read_biopsy(make_biopsy_file(rows))
    assert exc.value.stage == "load"
    assert exc.value.row == 4


def test_long_first_row_is_fatal(make_biopsy_file, rows):
    rows[0] = rows[0] + ["7"]
    with pytest.raises(MalformedRowError) as exc:
        read_biopsy(make_biopsy_file(rows))
    assert exc.value.row == 1


@pytest.mark.parametrize("extra", [["7", "8", "9"], [""]])
def test_any_field_past_the_label_is_fatal(make_biopsy_file, rows, extra):
    rows[5] = rows[5] + extra
    with pytest.raises(MalformedRowError):
        read_biopsy(make_biopsy_file(rows))


def test_oversized_integer_is_fatal_at_load(make_biopsy_file, rows):
    rows[6][4] = "99999999999999999999"
    with pytest.raises(MalformedRowError) as exc:
        read_biopsy(make_biopsy_file(rows))
    assert exc.value.row == 7
    assert exc.value.details["column"] == FEATURE_COLUMNS[3]


def test_non_integer_feature_is_fatal(make_biopsy_file, rows):
    rows[7][2] = "abc"
    with pytest.raises(MalformedRowError) as exc:
        read_biopsy(make_biopsy_file(rows))
    assert exc.value.row == 8
    assert exc.value.details["column"] == FEATURE_COLUMNS[1]
    assert "abc" in str(exc.value)


def test_empty_identifier_is_fatal(make_biopsy_file, rows):
    rows[2][0] = ""
    with pytest.raises(MalformedRowError) as exc:
        read_biopsy(make_biopsy_file(rows))
    assert exc.value.row == 3


def test_custom_missing_token(make_biopsy_file, rows):
    rows[10][6] = rows[20][6] = "NA"
    rows[1][3] = "NA"
    raw = read_biopsy(make_biopsy_file(rows), missing_token="NA")
    assert raw.missing_token == "NA"
    with pytest.raises(MalformedRowError):
        read_biopsy(make_biopsy_file(rows), missing_token="?")


def test_missing_file(tmp_path):
    with pytest.raises(PipelineError) as exc:
        read_biopsy(tmp_path / "nope.data")
    assert exc.value.stage == "load"


def test_health_check(biopsy_file):
    raw = read_biopsy(biopsy_file)
    health = check_biopsy(raw, label_codes=("2", "4"))
    assert health["dimensionality"] == {"n_rows": 100, "n_features": 9}
    assert health["missingness"]["rows_with_sentinel"] == 2
    assert health["missingness"]["per_column"] == {"bare_nuclei": 2}
    assert health["duplicate_ids"]["n_extra_rows"] == 2
    assert health["label_distribution"] == {"2": 60, "4": 40}
    assert health["unrecognized_labels"] == []

"""
Unit tests for I/O operations.

Tests table loading, column and field normalization, sample assembly and
result export.
"""

from io import BytesIO
from pathlib import Path

import pytest
import pandas as pd
import numpy as np

from soilbio_calculator.io import (
    load_table,
    normalize_dataframe_columns,
    find_column_collisions,
    parse_dilution,
    parse_fov_fraction,
    parse_positive_number,
    parse_count,
    normalize_sample_id,
    normalize_date,
    dataframe_to_dict_list,
    group_fragments,
    build_sample_measurements,
    export_results_to_csv,
    export_results_to_excel,
    export_results,
    generate_export_filename,
)
from soilbio_calculator.config import OUTPUT_COLUMNS


# Path to test fixtures
FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _results_df():
    return pd.DataFrame(
        [
            ["S1", "2024-05-01", 14.82, 4.94, 0.333, 1.0, 0.6, 0.4, 190.0, 0.0, 0.0, 380.0],
            ["S2", "2024-05-01", np.nan, 0.0, np.nan, np.nan, np.nan, np.nan, 1.0, 2.0, 3.0, 4.0],
        ],
        columns=OUTPUT_COLUMNS,
    )


# ============================================================================
# load_table Tests
# ============================================================================


def test_load_table_csv():
    """load_table should load a CSV file from path."""
    df = load_table(FIXTURES_DIR / "metadata.csv")

    assert isinstance(df, pd.DataFrame)
    assert len(df) == 4
    assert "Main.Dilution" in df.columns


def test_load_table_excel_from_bytes():
    """load_table should load Excel bytes."""
    buffer = BytesIO()
    pd.DataFrame({"ID": ["S1", "S2"], "FunL": [0.1, 0.2]}).to_excel(buffer, index=False)

    df = load_table(buffer.getvalue())

    assert len(df) == 2
    assert list(df.columns) == ["ID", "FunL"]


def test_load_table_file_not_found():
    """load_table should raise FileNotFoundError for missing file."""
    with pytest.raises(FileNotFoundError):
        load_table("nonexistent_file.csv")


def test_load_table_corrupt_file(tmp_path):
    """load_table should raise ValueError for unreadable files."""
    bad = tmp_path / "bad.xlsx"
    bad.write_bytes(b"not an excel file")

    with pytest.raises(ValueError, match="Error reading table"):
        load_table(bad)


def test_load_table_removes_empty_rows(tmp_path):
    """load_table should remove completely empty rows."""
    path = tmp_path / "gaps.csv"
    path.write_text("ID,FunL\nS1,0.1\n,\nS2,0.2\n")

    df = load_table(path)

    assert len(df) == 2
    assert list(df.index) == [0, 1]


# ============================================================================
# normalize_dataframe_columns Tests
# ============================================================================


def test_normalize_columns_r_style_names():
    """Dotted R-style names map onto canonical column names."""
    df = pd.DataFrame(columns=["ID", "Date", "Main.Dilution", "Bacterial.Dilution",
                               "Bacterial.FOV", "Drops.per.mL", "Bf_Nem", "Pred_Nem"])
    normalized = normalize_dataframe_columns(df)

    assert list(normalized.columns) == [
        "ID", "Date", "Main Dilution", "Bacterial Dilution",
        "Bacterial FOV", "Drops per mL", "Bf Nem", "Pred Nem",
    ]


def test_normalize_columns_fungal_date_and_case():
    """Fungal_Date maps onto Date and matching is case-insensitive."""
    df = pd.DataFrame(columns=["id", "Fungal_Date", "funl", "FUNW"])
    normalized = normalize_dataframe_columns(df)

    assert list(normalized.columns) == ["ID", "Date", "FunL", "FunW"]


def test_normalize_columns_unknown_preserved():
    """Unknown columns keep their original names."""
    df = pd.DataFrame(columns=["Notes", "Bac1"])

    assert list(normalize_dataframe_columns(df).columns) == ["Notes", "Bac1"]


def test_find_column_collisions():
    """Headers that normalize to the same name are reported with their raw names."""
    df = pd.DataFrame(columns=["ID", "Date", "Fungal_Date", "FunL", "FunW", "sample"])

    assert find_column_collisions(df) == {
        "ID": ["ID", "sample"],
        "Date": ["Date", "Fungal_Date"],
    }


def test_find_column_collisions_none():
    """Distinct headers have no collisions."""
    df = pd.DataFrame(columns=["id", "Fungal_Date", "funl", "FUNW"])

    assert find_column_collisions(df) == {}


# ============================================================================
# Field Parsing Tests
# ============================================================================


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1:100", 100.0),
        ("1:10", 10.0),
        (" 1 : 5 ", 5.0),
        ("1:2.5", 2.5),
        ("100", 100.0),
        (100, 100.0),
        (7.0, 7.0),
    ],
)
def test_parse_dilution_valid(raw, expected):
    """Ratio strings and bare numbers yield the dilution factor."""
    assert parse_dilution(raw) == expected


@pytest.mark.parametrize("raw", [None, np.nan, "", "abc", "1:abc", "1:0", "0", -5, "2:100", "1:inf"])
def test_parse_dilution_invalid(raw):
    """Missing, unparseable or non-positive dilutions are None."""
    assert parse_dilution(raw) is None


@pytest.mark.parametrize(
    "raw,expected",
    [("Quarter", 0.25), ("Half", 0.5), ("Whole", 1.0), (" half ", 0.5), ("WHOLE", 1.0)],
)
def test_parse_fov_fraction_known(raw, expected):
    """Known field of view labels translate to fractions."""
    assert parse_fov_fraction(raw) == expected


@pytest.mark.parametrize("raw", ["Sixth", "", None, np.nan, 0.5])
def test_parse_fov_fraction_unknown(raw):
    """Unrecognized labels are undefined, not an error."""
    assert parse_fov_fraction(raw) is None


def test_parse_count():
    """Counts parse to float; missing and text are None."""
    assert parse_count(5) == 5.0
    assert parse_count("7") == 7.0
    assert parse_count(np.nan) is None
    assert parse_count(None) is None
    assert parse_count("many") is None


def test_parse_positive_number():
    """Drops per mL must be > 0."""
    assert parse_positive_number(19) == 19.0
    assert parse_positive_number("20") == 20.0
    assert parse_positive_number(0) is None
    assert parse_positive_number(-1) is None
    assert parse_positive_number(np.nan) is None


def test_normalize_sample_id():
    """IDs are compared as stripped strings."""
    assert normalize_sample_id(" S1 ") == "S1"
    assert normalize_sample_id(12) == "12"
    assert normalize_sample_id(12.0) == "12"
    assert normalize_sample_id(np.nan) == ""


def test_normalize_date():
    """Dates are normalized to ISO format when parseable."""
    assert normalize_date("2024-05-01") == "2024-05-01"
    assert normalize_date(pd.Timestamp("2024-05-01")) == "2024-05-01"
    assert normalize_date(" 2024-05-01 ") == "2024-05-01"
    assert normalize_date("spring batch") == "spring batch"
    assert normalize_date(np.nan) == ""


@pytest.mark.parametrize("keyword", ["today", "now", " Today ", "yesterday"])
def test_normalize_date_keywords_kept_as_text(keyword):
    """Relative date keywords are not resolved to the current date."""
    assert normalize_date(keyword) == keyword.strip()


def test_dataframe_to_dict_list_replaces_nan():
    """NaN values become None."""
    df = pd.DataFrame({"ID": ["S1", "S2"], "Bac1": [1.0, np.nan]})
    records = dataframe_to_dict_list(df)

    assert records == [{"ID": "S1", "Bac1": 1.0}, {"ID": "S2", "Bac1": None}]


# ============================================================================
# Sample Assembly Tests
# ============================================================================


def _fixture_tables():
    metadata = normalize_dataframe_columns(load_table(FIXTURES_DIR / "metadata.csv"))
    fungal = normalize_dataframe_columns(load_table(FIXTURES_DIR / "fungal_data.csv"))
    return metadata, fungal


def test_group_fragments():
    """Fragments are grouped per (ID, Date) in row order."""
    _, fungal = _fixture_tables()
    fungal = fungal.assign(Date=fungal["Date"].astype(str))
    groups = group_fragments(fungal)

    assert len(groups[("S1", "2024-05-01")]) == 2
    assert groups[("S1", "2024-05-01")][1].diameter_um == 3.0
    assert groups[("S3", "2024-05-02")][0].diameter_um is None


def test_build_sample_measurements_from_fixtures():
    """Every metadata row becomes a normalized sample."""
    metadata, fungal = _fixture_tables()
    samples, warnings = build_sample_measurements(metadata, fungal)

    assert [s.sample_id for s in samples] == ["S1", "S2", "S3", "S4"]

    s1 = samples[0]
    assert s1.date == "2024-05-01"
    assert s1.main_dilution == 10.0
    assert s1.bacterial_dilution == 100.0
    assert s1.fov_fraction == 0.5
    assert s1.drops_per_ml == 19.0
    assert s1.bacterial_counts == [5, 6, 5, 7, 6]
    assert len(s1.fragments) == 2
    assert s1.flagellates == 3
    assert s1.rf_nem == 2

    s3 = samples[2]
    assert s3.fov_fraction is None
    assert s3.flagellates is None
    assert s3.ff_nem is None

    s4 = samples[3]
    assert s4.main_dilution is None
    assert s4.bacterial_counts == [2, None, 3, None, 4]
    assert s4.fragments == []


def test_build_sample_measurements_reports_unmatched():
    """Unmatched fungal samples and samples without fragments are reported."""
    metadata, fungal = _fixture_tables()
    _, warnings = build_sample_measurements(metadata, fungal)

    assert any("(S9, 2024-06-01)" in w and "no matching metadata" in w for w in warnings)
    assert any("(S4, 2024-05-02)" in w and "no fungal fragments" in w for w in warnings)
    assert len(warnings) == 2


def test_build_sample_measurements_optional_columns_absent():
    """Absent optional count columns read as missing."""
    metadata = pd.DataFrame({
        "ID": ["S1"], "Date": ["2024-05-01"], "Main Dilution": ["1:10"],
        "Bacterial Dilution": ["1:100"], "Bacterial FOV": ["Whole"], "Drops per mL": [19],
        "Bac1": [1], "Bac2": [2], "Bac3": [3], "Bac4": [4], "Bac5": [5],
    })
    fungal = pd.DataFrame({"ID": ["S1"], "Date": ["2024-05-01"], "FunL": [0.1], "FunW": [2.0]})

    samples, warnings = build_sample_measurements(metadata, fungal)

    assert warnings == []
    assert samples[0].flagellates is None
    assert samples[0].pred_nem is None


def test_build_sample_measurements_matches_mixed_date_formats():
    """Dates are matched after normalization, not as raw text."""
    metadata = pd.DataFrame({
        "ID": [1], "Date": [pd.Timestamp("2024-05-01")], "Main Dilution": ["1:10"],
        "Bacterial Dilution": ["1:100"], "Bacterial FOV": ["Half"], "Drops per mL": [19],
        "Bac1": [1], "Bac2": [2], "Bac3": [3], "Bac4": [4], "Bac5": [5],
    })
    fungal = pd.DataFrame({"ID": ["1"], "Date": ["2024-05-01"], "FunL": [0.1], "FunW": [2.0]})

    samples, warnings = build_sample_measurements(metadata, fungal)

    assert warnings == []
    assert samples[0].sample_id == "1"
    assert len(samples[0].fragments) == 1


# ============================================================================
# Export Tests
# ============================================================================


def test_export_results_to_csv_file(tmp_path):
    """CSV export writes missing values as NA."""
    output_path = tmp_path / "out" / "results.csv"
    result = export_results_to_csv(_results_df(), output_path)

    assert result is None
    text = output_path.read_text()
    assert text.splitlines()[0] == ",".join(OUTPUT_COLUMNS)
    assert "S2,2024-05-01,NA,0.0,NA" in text


def test_export_results_to_csv_bytes():
    """CSV export without a path returns bytes."""
    data = export_results_to_csv(_results_df())

    assert isinstance(data, bytes)
    assert data.startswith(b"SampleID,Date,BacBio")


def test_export_results_to_excel_bytes():
    """Excel export returns bytes with Results and Metadata sheets."""
    data = export_results_to_excel(_results_df())

    assert isinstance(data, bytes)
    sheets = pd.read_excel(BytesIO(data), sheet_name=None)
    assert set(sheets) == {"Results", "Metadata"}
    assert list(sheets["Results"].columns) == OUTPUT_COLUMNS
    assert len(sheets["Results"]) == 2

    params = dict(zip(sheets["Metadata"]["Parameter"], sheets["Metadata"]["Value"]))
    assert params["App Name"] == "Soil Biology Calculator"
    assert params["fov_diameter_um"] == "450.0"
    assert "fields_per_coverslip" in params


def test_export_results_to_excel_run_params(tmp_path):
    """Run parameters are recorded in the Metadata sheet."""
    output_path = tmp_path / "results.xlsx"
    export_results_to_excel(_results_df(), output_path, run_params={"Metadata File": "meta.csv"})

    metadata = pd.read_excel(output_path, sheet_name="Metadata")
    params = dict(zip(metadata["Parameter"], metadata["Value"]))
    assert params["Metadata File"] == "meta.csv"


def test_export_results_picks_format_by_suffix(tmp_path):
    """export_results writes Excel for .xlsx and CSV otherwise."""
    xlsx_path = tmp_path / "results.xlsx"
    csv_path = tmp_path / "results.csv"

    export_results(_results_df(), xlsx_path)
    export_results(_results_df(), csv_path)

    assert pd.read_excel(xlsx_path, sheet_name="Results").shape == (2, len(OUTPUT_COLUMNS))
    assert pd.read_csv(csv_path).shape == (2, len(OUTPUT_COLUMNS))


def test_generate_export_filename():
    """Filenames carry prefix, timestamp and extension."""
    name = generate_export_filename()

    assert name.startswith("soilbio_results_")
    assert name.endswith(".xlsx")
    assert generate_export_filename("run", "csv").endswith(".csv")

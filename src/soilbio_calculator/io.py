"""
Input/Output operations for Soil Biology Calculator.

This module handles reading the metadata and fungal fragment tables,
normalizing raw field values (dilution ratios, field-of-view labels, sample
keys), grouping fragments per sample, and exporting results.
"""

import logging
import math
import re
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd

from soilbio_calculator import __version__
from soilbio_calculator.config import (
    APP_NAME,
    ID_COLUMN,
    DATE_COLUMN,
    MAIN_DILUTION_COLUMN,
    BACTERIAL_DILUTION_COLUMN,
    BACTERIAL_FOV_COLUMN,
    DROPS_PER_ML_COLUMN,
    BACTERIAL_COUNT_COLUMNS,
    FLAGELLATES_COLUMN,
    AMOEBA_COLUMN,
    BF_NEM_COLUMN,
    FF_NEM_COLUMN,
    PRED_NEM_COLUMN,
    RF_NEM_COLUMN,
    FUNGAL_LENGTH_COLUMN,
    FUNGAL_WIDTH_COLUMN,
    METADATA_OPTIONAL_COLUMNS,
    FOV_FRACTIONS,
    OUTPUT_NA_MARKER,
    WARN_UNMATCHED_FUNGAL,
    WARN_NO_FUNGAL_DATA,
    normalize_column_name,
)
from soilbio_calculator.models import (
    DEFAULT_CONSTANTS,
    FungalFragment,
    SampleMeasurements,
    ScalingConstants,
)

logger = logging.getLogger(__name__)

_RATIO_PATTERN = re.compile(r"^\s*1\s*:\s*(\S+)\s*$")


# ============================================================================
# Loading
# ============================================================================


def load_table(
    file_path_or_bytes: str | Path | bytes | BinaryIO,
    sheet_name: str | int = 0,
) -> pd.DataFrame:
    """
    Load a CSV or Excel table from file path or bytes.

    Args:
        file_path_or_bytes: Path to CSV/Excel file, Excel bytes, or file-like object
        sheet_name: Sheet name or index to read for Excel input

    Returns:
        DataFrame with raw data, completely empty rows removed

    Raises:
        FileNotFoundError: If file path doesn't exist
        ValueError: If file format is unsupported or corrupted
    """
    try:
        if isinstance(file_path_or_bytes, (str, Path)):
            file_path = Path(file_path_or_bytes)
            if not file_path.exists():
                raise FileNotFoundError(f"File not found: {file_path}")

            if file_path.suffix.lower() == ".csv":
                df = pd.read_csv(file_path)
            else:
                df = pd.read_excel(file_path, sheet_name=sheet_name)
        elif isinstance(file_path_or_bytes, bytes):
            df = pd.read_excel(BytesIO(file_path_or_bytes), sheet_name=sheet_name)
        else:
            df = pd.read_excel(file_path_or_bytes, sheet_name=sheet_name)

        df = df.dropna(how="all")
        df = df.reset_index(drop=True)

        logger.debug("Loaded %d rows, %d columns", len(df), len(df.columns))
        return df

    except FileNotFoundError:
        raise
    except Exception as e:
        raise ValueError(f"Error reading table: {e}") from e


def normalize_dataframe_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize column names in DataFrame using config mappings.

    Args:
        df: DataFrame with raw column names

    Returns:
        DataFrame with normalized column names
    """
    column_mapping = {col: normalize_column_name(str(col)) for col in df.columns}
    return df.rename(columns=column_mapping)


def find_column_collisions(df: pd.DataFrame) -> dict[str, list[str]]:
    """
    Find raw headers that normalize to the same column name.

    For example "Date" and "Fungal_Date" both become "Date".

    Args:
        df: DataFrame with raw column names

    Returns:
        Mapping of normalized name to the raw headers sharing it, only for
        names claimed by more than one header
    """
    sources: dict[str, list[str]] = {}
    for col in df.columns:
        sources.setdefault(normalize_column_name(str(col)), []).append(str(col))
    return {name: raw for name, raw in sources.items() if len(raw) > 1}


# ============================================================================
# Field Normalization
# ============================================================================


def parse_dilution(value: Any) -> float | None:
    """
    Convert a dilution ratio to its numeric factor.

    "1:100" → 100.0; bare numbers ("100", 100) are taken as the factor itself.

    Args:
        value: Raw dilution cell

    Returns:
        Positive dilution factor, or None if missing or unparseable
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None

    if isinstance(value, str):
        text = value.strip()
        match = _RATIO_PATTERN.match(text)
        if match:
            text = match.group(1)
        try:
            factor = float(text)
        except ValueError:
            return None
    else:
        try:
            factor = float(value)
        except (TypeError, ValueError):
            return None

    if not math.isfinite(factor) or factor <= 0:
        return None
    return factor


def parse_fov_fraction(value: Any) -> float | None:
    """
    Translate a field-of-view label (Quarter, Half, Whole) to its fraction.

    Args:
        value: Raw field-of-view cell

    Returns:
        Fraction of the field, or None for missing or unrecognized labels
    """
    if not isinstance(value, str):
        return None
    return FOV_FRACTIONS.get(value.strip().lower())


def parse_positive_number(value: Any) -> float | None:
    """
    Parse a positive scaling factor such as drops per mL.

    Returns:
        Float value, or None if missing, unparseable or not > 0
    """
    number = parse_count(value)
    if number is None or number <= 0:
        return None
    return number


def parse_count(value: Any) -> float | None:
    """
    Parse a raw count cell.

    Returns:
        Float value, or None if missing or unparseable
    """
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(number):
        return None
    return number


def normalize_sample_id(value: Any) -> str:
    """
    Normalize a sample ID for matching across tables.

    Integer-valued floats (1.0, from columns with gaps) become "1".
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_date(value: Any) -> str:
    """
    Normalize a sample date to ISO YYYY-MM-DD.

    Unparseable dates are kept as their stripped text so they still match
    identical text in the other table. Text without digits is never parsed,
    so keywords like "today" or "now" are not turned into the run date.
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    text = str(value).strip()
    if not any(ch.isdigit() for ch in text):
        return text
    try:
        return pd.to_datetime(text).strftime("%Y-%m-%d")
    except (ValueError, TypeError, OverflowError):
        return text


def add_sample_keys(df: pd.DataFrame) -> pd.DataFrame:
    """
    Replace ID and Date with their normalized matching keys.

    Args:
        df: DataFrame with normalized column names

    Returns:
        Copy of df with normalized ID and Date columns
    """
    df = df.copy()
    df[ID_COLUMN] = df[ID_COLUMN].apply(normalize_sample_id)
    df[DATE_COLUMN] = df[DATE_COLUMN].apply(normalize_date)
    return df


def dataframe_to_dict_list(df: pd.DataFrame) -> list[dict]:
    """
    Convert DataFrame to list of dictionaries for model creation.

    Args:
        df: DataFrame with sample data

    Returns:
        List of dictionaries, one per row, NaN replaced with None
    """
    records = df.to_dict(orient="records")

    cleaned_records = []
    for record in records:
        cleaned = {}
        for key, value in record.items():
            if not isinstance(value, (list, dict)) and pd.isna(value):
                cleaned[key] = None
            else:
                cleaned[key] = value
        cleaned_records.append(cleaned)

    return cleaned_records


# ============================================================================
# Sample Assembly
# ============================================================================


def group_fragments(fungal_df: pd.DataFrame) -> dict[tuple[str, str], list[FungalFragment]]:
    """
    Group fungal fragment rows by (ID, Date).

    Args:
        fungal_df: Fungal table with normalized columns and sample keys

    Returns:
        Mapping of sample key to its fragments, in row order
    """
    fragments: dict[tuple[str, str], list[FungalFragment]] = {}
    for record in dataframe_to_dict_list(fungal_df):
        key = (record[ID_COLUMN], record[DATE_COLUMN])
        fragment = FungalFragment(
            length_proportion=parse_count(record.get(FUNGAL_LENGTH_COLUMN)),
            diameter_um=parse_count(record.get(FUNGAL_WIDTH_COLUMN)),
        )
        fragments.setdefault(key, []).append(fragment)
    return fragments


def metadata_record_to_sample(
    record: dict[str, Any],
    fragments: list[FungalFragment],
) -> SampleMeasurements:
    """
    Build SampleMeasurements from one metadata row and its fragments.

    Args:
        record: Metadata row (normalized columns and sample keys)
        fragments: Fungal fragments for the same sample

    Returns:
        Validated SampleMeasurements instance
    """
    return SampleMeasurements(
        sample_id=record[ID_COLUMN],
        date=record[DATE_COLUMN],
        main_dilution=parse_dilution(record.get(MAIN_DILUTION_COLUMN)),
        bacterial_dilution=parse_dilution(record.get(BACTERIAL_DILUTION_COLUMN)),
        fov_fraction=parse_fov_fraction(record.get(BACTERIAL_FOV_COLUMN)),
        drops_per_ml=parse_positive_number(record.get(DROPS_PER_ML_COLUMN)),
        bacterial_counts=[parse_count(record.get(col)) for col in BACTERIAL_COUNT_COLUMNS],
        fragments=fragments,
        flagellates=parse_count(record.get(FLAGELLATES_COLUMN)),
        amoebae=parse_count(record.get(AMOEBA_COLUMN)),
        bf_nem=parse_count(record.get(BF_NEM_COLUMN)),
        ff_nem=parse_count(record.get(FF_NEM_COLUMN)),
        pred_nem=parse_count(record.get(PRED_NEM_COLUMN)),
        rf_nem=parse_count(record.get(RF_NEM_COLUMN)),
    )


def build_sample_measurements(
    metadata_df: pd.DataFrame,
    fungal_df: pd.DataFrame,
) -> tuple[list[SampleMeasurements], list[str]]:
    """
    Match the two tables on (ID, Date) and build one input per sample.

    Every metadata row becomes a sample. Fungal fragments without a matching
    metadata row are ignored and reported.

    Args:
        metadata_df: Metadata table with normalized column names
        fungal_df: Fungal table with normalized column names

    Returns:
        Tuple of (samples in metadata row order, warnings)
    """
    metadata_df = add_sample_keys(metadata_df)
    fungal_df = add_sample_keys(fungal_df)

    for col in METADATA_OPTIONAL_COLUMNS:
        if col not in metadata_df.columns:
            metadata_df[col] = None

    fragments_by_sample = group_fragments(fungal_df)
    warnings = []
    samples = []
    seen = set()

    for record in dataframe_to_dict_list(metadata_df):
        key = (record[ID_COLUMN], record[DATE_COLUMN])
        seen.add(key)
        fragments = fragments_by_sample.get(key)
        if fragments is None:
            fragments = []
            warnings.append(WARN_NO_FUNGAL_DATA.format(sample_id=key[0], date=key[1]))
        samples.append(metadata_record_to_sample(record, fragments))

    for sample_id, date in fragments_by_sample:
        if (sample_id, date) not in seen:
            warnings.append(WARN_UNMATCHED_FUNGAL.format(sample_id=sample_id, date=date))

    logger.debug(
        "Built %d samples from %d fungal sample groups", len(samples), len(fragments_by_sample)
    )
    return samples, warnings


# ============================================================================
# Export
# ============================================================================


def export_results_to_csv(
    results_df: pd.DataFrame,
    output_path: str | Path | None = None,
) -> bytes | None:
    """
    Export results to CSV with missing values written as NA.

    Args:
        results_df: Output table
        output_path: Optional path to save file (if None, returns bytes)

    Returns:
        Bytes of CSV file if output_path is None, otherwise None
    """
    if output_path is None:
        return results_df.to_csv(index=False, na_rep=OUTPUT_NA_MARKER).encode("utf-8")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    results_df.to_csv(output_path, index=False, na_rep=OUTPUT_NA_MARKER)
    logger.info("Wrote %d result rows to %s", len(results_df), output_path)
    return None


def export_results_to_excel(
    results_df: pd.DataFrame,
    output_path: str | Path | None = None,
    constants: ScalingConstants = DEFAULT_CONSTANTS,
    run_params: dict | None = None,
) -> bytes | None:
    """
    Export results to an Excel file with a Results and a Metadata sheet.

    Args:
        results_df: Output table
        output_path: Optional path to save file (if None, returns bytes)
        constants: Scaling constants used, recorded in the Metadata sheet
        run_params: Optional extra key/value pairs for the Metadata sheet

    Returns:
        Bytes of Excel file if output_path is None, otherwise None
    """
    if output_path is None:
        buffer = BytesIO()
        writer_target = buffer
    else:
        writer_target = Path(output_path)
        writer_target.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(writer_target, engine="openpyxl") as writer:
        results_df.to_excel(writer, sheet_name="Results", index=False, freeze_panes=(1, 0))

        metadata = _create_metadata_dict(constants, run_params)
        metadata_df = pd.DataFrame(list(metadata.items()), columns=["Parameter", "Value"])
        metadata_df.to_excel(writer, sheet_name="Metadata", index=False, freeze_panes=(1, 0))

        for sheet_name in writer.sheets:
            _auto_adjust_column_widths(writer.sheets[sheet_name])

    if output_path is None:
        buffer.seek(0)
        return buffer.getvalue()

    logger.info("Wrote %d result rows to %s", len(results_df), output_path)
    return None


def export_results(
    results_df: pd.DataFrame,
    output_path: str | Path,
    constants: ScalingConstants = DEFAULT_CONSTANTS,
) -> None:
    """
    Export results, choosing Excel for .xlsx paths and CSV otherwise.
    """
    if Path(output_path).suffix.lower() == ".xlsx":
        export_results_to_excel(results_df, output_path, constants=constants)
    else:
        export_results_to_csv(results_df, output_path)


def generate_export_filename(prefix: str = "soilbio_results", extension: str = "xlsx") -> str:
    """
    Generate a timestamped filename for exports.

    Args:
        prefix: Prefix for filename
        extension: File extension without dot

    Returns:
        Filename string with timestamp
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{timestamp}.{extension}"


def _create_metadata_dict(
    constants: ScalingConstants,
    run_params: dict | None = None,
) -> dict[str, str]:
    """
    Create metadata dictionary for export.

    Args:
        constants: Scaling constants used for the run
        run_params: Optional extra parameters

    Returns:
        Dictionary of metadata key-value pairs
    """
    metadata = {
        "Generated At": datetime.now().isoformat(),
        "App Name": APP_NAME,
        "App Version": __version__,
    }

    for name, value in constants.model_dump().items():
        metadata[name] = str(value)
    metadata["fields_per_coverslip"] = f"{constants.fields_per_coverslip:.4f}"

    if run_params:
        for key, value in run_params.items():
            metadata[str(key)] = str(value) if value is not None else "None"

    return metadata


def _auto_adjust_column_widths(worksheet) -> None:
    """
    Auto-adjust column widths in an openpyxl worksheet.

    Args:
        worksheet: openpyxl worksheet object
    """
    for column in worksheet.columns:
        column_letter = column[0].column_letter
        max_length = max(
            (len(str(cell.value)) for cell in column if cell.value is not None),
            default=0,
        )

        # Cap at 50 characters
        worksheet.column_dimensions[column_letter].width = min(max_length + 2, 50)

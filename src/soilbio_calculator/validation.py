"""
Validation logic for Soil Biology Calculator.

This module handles validation of the two input tables including:
- Column presence checks
- Row-level checks on keys, counts and fragment measurements
- Dilution, field of view and drops per mL sanity checks (warnings)
- Uniqueness of (ID, Date) in the metadata table
"""

import pandas as pd

from soilbio_calculator.config import (
    ID_COLUMN,
    DATE_COLUMN,
    MAIN_DILUTION_COLUMN,
    BACTERIAL_DILUTION_COLUMN,
    BACTERIAL_FOV_COLUMN,
    DROPS_PER_ML_COLUMN,
    METADATA_REQUIRED_COLUMNS,
    METADATA_COUNT_COLUMNS,
    FUNGAL_REQUIRED_COLUMNS,
    FUNGAL_LENGTH_COLUMN,
    FUNGAL_WIDTH_COLUMN,
    METADATA_TABLE_NAME,
    FUNGAL_TABLE_NAME,
    ERROR_MISSING_COLUMN,
    ERROR_COLUMN_COLLISION,
    ERROR_EMPTY_VALUE,
    ERROR_NEGATIVE_VALUE,
    ERROR_INVALID_TYPE,
    ERROR_DUPLICATE_SAMPLE,
    WARN_INVALID_DILUTION,
    WARN_UNKNOWN_FOV,
    WARN_NON_POSITIVE_DROPS,
)
from soilbio_calculator.io import (
    add_sample_keys,
    find_column_collisions,
    parse_dilution,
    parse_fov_fraction,
    parse_positive_number,
)
from soilbio_calculator.models import ValidationResult


def _is_blank(value) -> bool:
    return pd.isna(value) or str(value).strip() == ""


def validate_columns(df: pd.DataFrame, required: list[str], table: str) -> list[str]:
    """
    Validate that all required columns are present.

    Args:
        df: DataFrame with normalized column names
        required: Column names that must be present
        table: Table name used in messages

    Returns:
        List of error messages (empty if all columns present)
    """
    df_cols_lower = [str(col).lower() for col in df.columns]

    return [
        ERROR_MISSING_COLUMN.format(table=table, column=col)
        for col in required
        if col not in df.columns and col.lower() not in df_cols_lower
    ]


def validate_column_collisions(df: pd.DataFrame, table: str) -> list[str]:
    """
    Report headers that would map onto the same column after normalization.

    Run this on the raw table so the messages name the original headers.

    Args:
        df: DataFrame with raw column names
        table: Table name used in messages

    Returns:
        List of error messages, one per contested column
    """
    return [
        ERROR_COLUMN_COLLISION.format(
            table=table,
            sources=", ".join(f"'{name}'" for name in sources),
            column=column,
        )
        for column, sources in find_column_collisions(df).items()
    ]


def _check_keys(row: pd.Series, row_num: int, table: str) -> list[str]:
    errors = []
    for column in (ID_COLUMN, DATE_COLUMN):
        if _is_blank(row[column]):
            errors.append(ERROR_EMPTY_VALUE.format(table=table, row=row_num, column=column))
    return errors


def _check_non_negative(row: pd.Series, row_num: int, column: str, table: str) -> list[str]:
    """Missing values pass; present values must be numbers >= 0."""
    val = row[column]
    if _is_blank(val):
        return []
    try:
        number = float(val)
    except (ValueError, TypeError):
        return [ERROR_INVALID_TYPE.format(
            table=table, row=row_num, column=column, dtype="number", value=val
        )]
    if number < 0:
        return [ERROR_NEGATIVE_VALUE.format(table=table, row=row_num, column=column, value=number)]
    return []


def validate_metadata_rows(df: pd.DataFrame) -> tuple[list[str], list[str]]:
    """
    Validate each metadata row.

    Negative or non-numeric counts and empty keys are errors. Dilutions,
    field of view labels and drops per mL that cannot be used are warnings,
    since the affected metrics are simply reported as missing.

    Args:
        df: Metadata DataFrame with normalized column names

    Returns:
        Tuple of (errors, warnings)
    """
    errors = []
    warnings = []
    table = METADATA_TABLE_NAME

    for idx, row in df.iterrows():
        row_num = idx + 1

        errors.extend(_check_keys(row, row_num, table))

        for column in (MAIN_DILUTION_COLUMN, BACTERIAL_DILUTION_COLUMN):
            val = row[column]
            if not _is_blank(val) and parse_dilution(val) is None:
                warnings.append(WARN_INVALID_DILUTION.format(
                    table=table, row=row_num, column=column, value=val
                ))

        val = row[BACTERIAL_FOV_COLUMN]
        if not _is_blank(val) and parse_fov_fraction(val) is None:
            warnings.append(WARN_UNKNOWN_FOV.format(
                table=table, row=row_num, column=BACTERIAL_FOV_COLUMN, value=val
            ))

        val = row[DROPS_PER_ML_COLUMN]
        if not _is_blank(val) and parse_positive_number(val) is None:
            warnings.append(WARN_NON_POSITIVE_DROPS.format(
                table=table, row=row_num, column=DROPS_PER_ML_COLUMN, value=val
            ))

        for column in METADATA_COUNT_COLUMNS:
            if column in df.columns:
                errors.extend(_check_non_negative(row, row_num, column, table))

    return errors, warnings


def validate_fungal_rows(df: pd.DataFrame) -> list[str]:
    """
    Validate each fungal fragment row.

    Args:
        df: Fungal DataFrame with normalized column names

    Returns:
        List of error messages
    """
    errors = []
    table = FUNGAL_TABLE_NAME

    for idx, row in df.iterrows():
        row_num = idx + 1
        errors.extend(_check_keys(row, row_num, table))
        for column in (FUNGAL_LENGTH_COLUMN, FUNGAL_WIDTH_COLUMN):
            errors.extend(_check_non_negative(row, row_num, column, table))

    return errors


def validate_uniqueness(df: pd.DataFrame) -> list[str]:
    """
    Check that each (ID, Date) appears at most once in the metadata table.

    Args:
        df: Metadata DataFrame with normalized column names

    Returns:
        List of error messages for duplicates
    """
    errors = []
    keyed = add_sample_keys(df)
    keyed = keyed[(keyed[ID_COLUMN] != "") & (keyed[DATE_COLUMN] != "")]

    duplicated = keyed[keyed.duplicated(subset=[ID_COLUMN, DATE_COLUMN], keep=False)]
    for (sample_id, date), group in duplicated.groupby([ID_COLUMN, DATE_COLUMN], sort=False):
        errors.append(ERROR_DUPLICATE_SAMPLE.format(
            table=METADATA_TABLE_NAME,
            sample_id=sample_id,
            date=date,
            rows=", ".join(map(str, (group.index + 1).tolist())),
        ))

    return errors


def run_all_validations(metadata_df: pd.DataFrame, fungal_df: pd.DataFrame) -> ValidationResult:
    """
    Run all validation checks on both input tables.

    Args:
        metadata_df: Metadata DataFrame with normalized column names
        fungal_df: Fungal DataFrame with normalized column names

    Returns:
        ValidationResult with errors, warnings, and validity status
    """
    # 1. Check column presence and uniqueness
    col_errors = validate_column_collisions(metadata_df, METADATA_TABLE_NAME)
    col_errors += validate_column_collisions(fungal_df, FUNGAL_TABLE_NAME)
    col_errors += validate_columns(metadata_df, METADATA_REQUIRED_COLUMNS, METADATA_TABLE_NAME)
    col_errors += validate_columns(fungal_df, FUNGAL_REQUIRED_COLUMNS, FUNGAL_TABLE_NAME)

    # If columns are missing, can't do further validation
    if col_errors:
        return ValidationResult(is_valid=False, errors=col_errors)

    # 2. Check row-level data
    all_errors, all_warnings = validate_metadata_rows(metadata_df)
    all_errors.extend(validate_fungal_rows(fungal_df))

    # 3. Check uniqueness
    all_errors.extend(validate_uniqueness(metadata_df))

    return ValidationResult(
        is_valid=len(all_errors) == 0,
        errors=all_errors,
        warnings=all_warnings,
        summary={
            "num_samples": len(metadata_df),
            "num_fragments": len(fungal_df),
        },
    )

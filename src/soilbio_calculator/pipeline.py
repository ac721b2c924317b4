"""
End-to-end workflow for Soil Biology Calculator.

Workflow:
1. Load the metadata and fungal fragment tables
2. Check for colliding headers, then normalize column names
3. Validate both tables (blocking errors stop the run)
4. Match the tables on (ID, Date) and build per-sample measurements
5. Compute every metric per sample (optionally in parallel)
6. Assemble the output table
"""

import logging
from pathlib import Path
from typing import BinaryIO

import pandas as pd
from pydantic import BaseModel, Field

from soilbio_calculator.compute import compute_samples, results_to_dataframe
from soilbio_calculator.config import FUNGAL_TABLE_NAME, METADATA_TABLE_NAME
from soilbio_calculator.io import (
    build_sample_measurements,
    load_table,
    normalize_dataframe_columns,
)
from soilbio_calculator.models import DEFAULT_CONSTANTS, ScalingConstants, ValidationResult
from soilbio_calculator.validation import run_all_validations, validate_column_collisions

logger = logging.getLogger(__name__)

TableSource = str | Path | bytes | BinaryIO


class PipelineResult(BaseModel):
    """Output table of a run plus the validation report that accompanied it."""

    results: pd.DataFrame = Field(..., description="One row per sample, OUTPUT_COLUMNS order")
    validation: ValidationResult = Field(..., description="Validation and matching report")

    model_config = {"arbitrary_types_allowed": True}


def run_calculation(
    metadata_df: pd.DataFrame,
    fungal_df: pd.DataFrame,
    constants: ScalingConstants = DEFAULT_CONSTANTS,
    max_workers: int | None = None,
) -> PipelineResult:
    """
    Validate two already-loaded tables and compute the results.

    Args:
        metadata_df: Raw metadata table
        fungal_df: Raw fungal fragment table
        constants: Physical constants
        max_workers: Thread pool size for per-sample evaluation

    Returns:
        PipelineResult with the output table and validation report

    Raises:
        ValueError: If validation finds blocking errors
    """
    # Collisions are checked before renaming so messages name the raw headers
    collision_errors = validate_column_collisions(metadata_df, METADATA_TABLE_NAME)
    collision_errors += validate_column_collisions(fungal_df, FUNGAL_TABLE_NAME)

    metadata_df = normalize_dataframe_columns(metadata_df)
    fungal_df = normalize_dataframe_columns(fungal_df)

    logger.info("Validating %d metadata rows and %d fungal rows", len(metadata_df), len(fungal_df))
    if collision_errors:
        validation = ValidationResult(is_valid=False, errors=collision_errors)
    else:
        validation = run_all_validations(metadata_df, fungal_df)

    if not validation.is_valid:
        for error in validation.errors:
            logger.error(error)
        raise ValueError(f"Input validation failed:\n{validation.get_report()}")

    samples, match_warnings = build_sample_measurements(metadata_df, fungal_df)
    for warning in match_warnings:
        validation.add_warning(warning)
    for warning in validation.warnings:
        logger.warning(warning)

    logger.info("Computing metrics for %d samples", len(samples))
    results = compute_samples(samples, constants=constants, max_workers=max_workers)
    results_df = results_to_dataframe(results)

    validation.summary["num_results"] = len(results_df)
    return PipelineResult(results=results_df, validation=validation)


def run_pipeline(
    metadata_source: TableSource,
    fungal_source: TableSource,
    constants: ScalingConstants = DEFAULT_CONSTANTS,
    max_workers: int | None = None,
) -> PipelineResult:
    """
    Load both tables from disk or bytes and compute the results.

    Args:
        metadata_source: Metadata CSV/Excel path, bytes, or file-like object
        fungal_source: Fungal fragment CSV/Excel path, bytes, or file-like object
        constants: Physical constants
        max_workers: Thread pool size for per-sample evaluation

    Returns:
        PipelineResult with the output table and validation report

    Raises:
        FileNotFoundError: If an input path doesn't exist
        ValueError: If a table cannot be read or validation fails
    """
    logger.info("Loading metadata table")
    metadata_df = load_table(metadata_source)
    logger.info("Loading fungal fragment table")
    fungal_df = load_table(fungal_source)

    return run_calculation(metadata_df, fungal_df, constants=constants, max_workers=max_workers)

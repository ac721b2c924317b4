"""
Data models for Soil Biology Calculator using Pydantic.

This module defines the core data structures used throughout the application,
with runtime validation and type safety provided by Pydantic.
"""

import math
from typing import Any

from pydantic import BaseModel, Field, field_validator

from soilbio_calculator.config import (
    FOV_DIAMETER_UM,
    FIELDS_PER_DROP,
    FUNGAL_DENSITY_PG_PER_UM3,
    BACTERIAL_DENSITY_PG,
    FUNGAL_FIELDS_COUNTED,
    PROTOZOA_FIELDS_COUNTED,
    EYEPIECE_FIELD_NUMBER_MM,
    OBJECTIVE_MAGNIFICATION,
    COVERSLIP_SIDE_MM,
    PG_PER_UG,
    OUTPUT_SAMPLE_ID,
    OUTPUT_DATE,
    OUTPUT_BACTERIAL_BIOMASS,
    OUTPUT_FUNGAL_BIOMASS,
    OUTPUT_FB_RATIO,
    OUTPUT_TOTAL_PROTOZOA,
    OUTPUT_FLAGELLATES,
    OUTPUT_AMOEBAE,
    OUTPUT_BF_NEM,
    OUTPUT_FF_NEM,
    OUTPUT_PRED_NEM,
    OUTPUT_RF_NEM,
)


# ============================================================================
# Parameter Models
# ============================================================================


class ScalingConstants(BaseModel):
    """
    Physical constants used by every biomass and abundance formula.

    Passed explicitly into the calculator so a set of results can always be
    reproduced from the constants recorded alongside it.
    """

    fov_diameter_um: float = Field(FOV_DIAMETER_UM, gt=0, description="Field of view diameter (µm)")
    fields_per_drop: float = Field(FIELDS_PER_DROP, gt=0, description="Fields of view per drop")
    fungal_density_pg_per_um3: float = Field(
        FUNGAL_DENSITY_PG_PER_UM3, gt=0, description="Fungal density (pg/µm³)"
    )
    bacterial_density_pg: float = Field(
        BACTERIAL_DENSITY_PG, gt=0, description="Bacterial biomass per organism-equivalent (pg)"
    )
    fungal_fields_counted: float = Field(
        FUNGAL_FIELDS_COUNTED, gt=0, description="Fields the raw fragment tally covers"
    )
    protozoa_fields_counted: float = Field(
        PROTOZOA_FIELDS_COUNTED, gt=0, description="Fields the raw protozoa counts cover"
    )
    eyepiece_field_number_mm: float = Field(
        EYEPIECE_FIELD_NUMBER_MM, gt=0, description="Eyepiece field number (mm)"
    )
    objective_magnification: float = Field(
        OBJECTIVE_MAGNIFICATION, gt=0, description="Objective magnification for protozoa counts"
    )
    coverslip_side_mm: float = Field(COVERSLIP_SIDE_MM, gt=0, description="Coverslip side length (mm)")
    pg_per_ug: float = Field(PG_PER_UG, gt=0, description="Picograms per microgram")

    @property
    def protozoa_field_diameter_mm(self) -> float:
        """Field diameter at the protozoa counting magnification (mm)."""
        return self.eyepiece_field_number_mm / self.objective_magnification

    @property
    def protozoa_field_area_mm2(self) -> float:
        """Area of one field at the protozoa counting magnification (mm²)."""
        radius = self.protozoa_field_diameter_mm / 2
        return math.pi * radius**2

    @property
    def coverslip_area_mm2(self) -> float:
        """Area of the square coverslip (mm²)."""
        return self.coverslip_side_mm * self.coverslip_side_mm

    @property
    def fields_per_coverslip(self) -> float:
        """Number of protozoa fields that tile one coverslip."""
        return self.coverslip_area_mm2 / self.protozoa_field_area_mm2

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "fov_diameter_um": 450.0,
                    "fields_per_drop": 2038.0,
                    "fungal_density_pg_per_um3": 0.41,
                    "bacterial_density_pg": 0.33,
                    "fungal_fields_counted": 25.0,
                    "protozoa_fields_counted": 25.0,
                    "eyepiece_field_number_mm": 18.0,
                    "objective_magnification": 40.0,
                    "coverslip_side_mm": 18.0,
                    "pg_per_ug": 1000000.0,
                }
            ]
        },
    }


DEFAULT_CONSTANTS = ScalingConstants()


# ============================================================================
# Input Data Models
# ============================================================================


class FungalFragment(BaseModel):
    """A single measured fungal hypha fragment."""

    length_proportion: float | None = Field(
        None, ge=0, description="Fragment length as a fraction of the FOV diameter"
    )
    diameter_um: float | None = Field(None, ge=0, description="Fragment diameter in µm")

    @property
    def is_complete(self) -> bool:
        """True when both measurements are present and not NaN."""
        return all(
            value is not None and not math.isnan(value)
            for value in (self.length_proportion, self.diameter_um)
        )


class SampleMeasurements(BaseModel):
    """
    Normalized raw measurements for one sample, keyed by (sample_id, date).

    This is the input to the per-sample calculation. Missing values are None.
    """

    sample_id: str = Field(..., min_length=1, description="Sample identifier")
    date: str = Field(..., min_length=1, description="Sample date (ISO format when parseable)")
    main_dilution: float | None = Field(None, gt=0, description="Main dilution factor N of 1:N")
    bacterial_dilution: float | None = Field(None, gt=0, description="Bacterial dilution factor N of 1:N")
    fov_fraction: float | None = Field(None, gt=0, le=1, description="Bacterial field of view fraction")
    drops_per_ml: float | None = Field(None, gt=0, description="Drops per mL of the dropper")
    bacterial_counts: list[float | None] = Field(
        default_factory=list, description="Raw bacterial counts per field"
    )
    fragments: list[FungalFragment] = Field(default_factory=list, description="Fungal fragments")
    flagellates: float | None = Field(None, ge=0, description="Raw flagellate count")
    amoebae: float | None = Field(None, ge=0, description="Raw amoeba count")
    bf_nem: float | None = Field(None, ge=0, description="Raw bacterial-feeding nematode count")
    ff_nem: float | None = Field(None, ge=0, description="Raw fungal-feeding nematode count")
    pred_nem: float | None = Field(None, ge=0, description="Raw predatory nematode count")
    rf_nem: float | None = Field(None, ge=0, description="Raw root-feeding nematode count")

    @field_validator("sample_id", "date")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Strip leading/trailing whitespace from key fields."""
        return v.strip()

    @field_validator("bacterial_counts")
    @classmethod
    def validate_counts(cls, v: list[float | None]) -> list[float | None]:
        """Reject negative bacterial counts."""
        for count in v:
            if count is not None and count < 0:
                raise ValueError(f"Bacterial counts must be >= 0, got {count}")
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "sample_id": "S1",
                    "date": "2024-05-01",
                    "main_dilution": 10.0,
                    "bacterial_dilution": 100.0,
                    "fov_fraction": 0.5,
                    "drops_per_ml": 19.0,
                    "bacterial_counts": [5, 6, 5, 7, 6],
                    "fragments": [
                        {"length_proportion": 0.1, "diameter_um": 2.0},
                        {"length_proportion": 0.2, "diameter_um": 3.0},
                    ],
                    "flagellates": 3,
                    "amoebae": 2,
                    "bf_nem": 1,
                    "ff_nem": 0,
                    "pred_nem": 0,
                    "rf_nem": 2,
                }
            ]
        }
    }


# ============================================================================
# Result Models
# ============================================================================


class SampleResult(BaseModel):
    """
    Derived metrics for one sample.

    Biomass is in µg per g of soil; protozoa and nematodes are counts per g.
    Any metric whose inputs were missing is None.
    """

    sample_id: str = Field(..., description="Sample identifier")
    date: str = Field(..., description="Sample date")
    bacterial_biomass: float | None = Field(None, description="Bacterial biomass (µg/g)")
    fungal_biomass: float | None = Field(None, description="Fungal biomass (µg/g)")
    fb_ratio: float | None = Field(None, description="Fungal to bacterial biomass ratio")
    total_protozoa: float | None = Field(None, description="Flagellates plus amoebae (per g)")
    flagellates: float | None = Field(None, description="Scaled flagellates (per g)")
    amoebae: float | None = Field(None, description="Scaled amoebae (per g)")
    bf_nem: float | None = Field(None, description="Bacterial-feeding nematodes (per g)")
    ff_nem: float | None = Field(None, description="Fungal-feeding nematodes (per g)")
    pred_nem: float | None = Field(None, description="Predatory nematodes (per g)")
    rf_nem: float | None = Field(None, description="Root-feeding nematodes (per g)")

    def to_output_row(self) -> dict[str, Any]:
        """
        Map the result onto the output table's column names.

        Returns:
            Dictionary keyed by output column name
        """
        return {
            OUTPUT_SAMPLE_ID: self.sample_id,
            OUTPUT_DATE: self.date,
            OUTPUT_BACTERIAL_BIOMASS: self.bacterial_biomass,
            OUTPUT_FUNGAL_BIOMASS: self.fungal_biomass,
            OUTPUT_FB_RATIO: self.fb_ratio,
            OUTPUT_TOTAL_PROTOZOA: self.total_protozoa,
            OUTPUT_FLAGELLATES: self.flagellates,
            OUTPUT_AMOEBAE: self.amoebae,
            OUTPUT_BF_NEM: self.bf_nem,
            OUTPUT_FF_NEM: self.ff_nem,
            OUTPUT_PRED_NEM: self.pred_nem,
            OUTPUT_RF_NEM: self.rf_nem,
        }


# ============================================================================
# Validation Models
# ============================================================================


class ValidationResult(BaseModel):
    """
    Result of input validation checks.

    Contains all errors, warnings, and summary information.
    """

    is_valid: bool = Field(..., description="True if no blocking errors")
    errors: list[str] = Field(default_factory=list, description="Blocking validation errors")
    warnings: list[str] = Field(default_factory=list, description="Non-blocking warnings")
    summary: dict[str, Any] = Field(default_factory=dict, description="Summary statistics")

    @property
    def has_errors(self) -> bool:
        """Check if there are any errors."""
        return len(self.errors) > 0

    @property
    def has_warnings(self) -> bool:
        """Check if there are any warnings."""
        return len(self.warnings) > 0

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def get_report(self) -> str:
        """
        Generate a human-readable report.

        Returns:
            Formatted string with errors, warnings, and summary
        """
        lines = []

        if self.has_errors:
            lines.append("ERRORS:")
            for error in self.errors:
                lines.append(f"  - {error}")
            lines.append("")

        if self.has_warnings:
            lines.append("WARNINGS:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")
            lines.append("")

        if self.summary:
            lines.append("SUMMARY:")
            for key, value in self.summary.items():
                lines.append(f"  {key}: {value}")

        return "\n".join(lines)


# ============================================================================
# Helper Functions for Model Creation
# ============================================================================


def create_scaling_constants(overrides: dict[str, float] | None = None) -> ScalingConstants:
    """
    Create ScalingConstants with defaults, applying any overrides.

    Args:
        overrides: Mapping of field name to replacement value

    Returns:
        Validated ScalingConstants instance

    Raises:
        ValidationError: If an override is not a positive number
    """
    if not overrides:
        return DEFAULT_CONSTANTS
    return ScalingConstants(**overrides)

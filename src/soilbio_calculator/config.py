"""
Configuration constants and defaults for Soil Biology Calculator.

This module contains physical constants, column name mappings, validation
messages and output layout used throughout the application.
"""

from typing import Final

# ============================================================================
# Physical Constants (canonical formula set)
# ============================================================================

# Field of view diameter (µm) used to convert fungal length proportions
FOV_DIAMETER_UM: Final[float] = 450.0

# Approximate number of fields of view per drop
FIELDS_PER_DROP: Final[float] = 2038.0

# Fungal hyphae density (pg/µm³)
FUNGAL_DENSITY_PG_PER_UM3: Final[float] = 0.41

# Bacterial biomass per organism-equivalent (pg)
BACTERIAL_DENSITY_PG: Final[float] = 0.33

# Number of fields the raw fungal fragment tally was taken over
FUNGAL_FIELDS_COUNTED: Final[float] = 25.0

# Number of fields the raw protozoa counts were taken over
PROTOZOA_FIELDS_COUNTED: Final[float] = 25.0

# Protozoa are counted at 400x: 18 mm eyepiece field number, 40x objective
EYEPIECE_FIELD_NUMBER_MM: Final[float] = 18.0
OBJECTIVE_MAGNIFICATION: Final[float] = 40.0

# Square coverslip, 18 mm x 18 mm
COVERSLIP_SIDE_MM: Final[float] = 18.0

# Unit conversion
PG_PER_UG: Final[float] = 1_000_000.0

# ============================================================================
# Field of View Fractions
# ============================================================================

# Portion of the viewing field the bacterial counts were taken over.
# Keys are matched case-insensitively; anything else is undefined.
FOV_FRACTIONS: Final[dict[str, float]] = {
    "quarter": 0.25,
    "half": 0.5,
    "whole": 1.0,
}

# ============================================================================
# Input Column Names
# ============================================================================

ID_COLUMN: Final[str] = "ID"
DATE_COLUMN: Final[str] = "Date"

MAIN_DILUTION_COLUMN: Final[str] = "Main Dilution"
BACTERIAL_DILUTION_COLUMN: Final[str] = "Bacterial Dilution"
BACTERIAL_FOV_COLUMN: Final[str] = "Bacterial FOV"
DROPS_PER_ML_COLUMN: Final[str] = "Drops per mL"

BACTERIAL_COUNT_COLUMNS: Final[list[str]] = ["Bac1", "Bac2", "Bac3", "Bac4", "Bac5"]

FLAGELLATES_COLUMN: Final[str] = "Flagellates"
AMOEBA_COLUMN: Final[str] = "Amoeba"

BF_NEM_COLUMN: Final[str] = "Bf Nem"
FF_NEM_COLUMN: Final[str] = "Ff Nem"
PRED_NEM_COLUMN: Final[str] = "Pred Nem"
RF_NEM_COLUMN: Final[str] = "Rf Nem"

FUNGAL_LENGTH_COLUMN: Final[str] = "FunL"
FUNGAL_WIDTH_COLUMN: Final[str] = "FunW"

# Required columns in the metadata table
METADATA_REQUIRED_COLUMNS: Final[list[str]] = [
    ID_COLUMN,
    DATE_COLUMN,
    MAIN_DILUTION_COLUMN,
    BACTERIAL_DILUTION_COLUMN,
    BACTERIAL_FOV_COLUMN,
    DROPS_PER_ML_COLUMN,
    *BACTERIAL_COUNT_COLUMNS,
]

# Optional count columns (absent columns read as missing)
METADATA_OPTIONAL_COLUMNS: Final[list[str]] = [
    FLAGELLATES_COLUMN,
    AMOEBA_COLUMN,
    BF_NEM_COLUMN,
    FF_NEM_COLUMN,
    PRED_NEM_COLUMN,
    RF_NEM_COLUMN,
]

# Required columns in the fungal fragment table
FUNGAL_REQUIRED_COLUMNS: Final[list[str]] = [
    ID_COLUMN,
    DATE_COLUMN,
    FUNGAL_LENGTH_COLUMN,
    FUNGAL_WIDTH_COLUMN,
]

# Columns holding non-negative raw counts
METADATA_COUNT_COLUMNS: Final[list[str]] = BACTERIAL_COUNT_COLUMNS + METADATA_OPTIONAL_COLUMNS

# Column name aliases (for flexible matching)
# Maps alternative names to standard internal names
COLUMN_ALIASES: Final[dict[str, str]] = {
    # Sample ID variants
    "id": ID_COLUMN,
    "sample_id": ID_COLUMN,
    "sampleid": ID_COLUMN,
    "sample id": ID_COLUMN,
    "sample": ID_COLUMN,
    # Date variants
    "date": DATE_COLUMN,
    "sample_date": DATE_COLUMN,
    "sampledate": DATE_COLUMN,
    "fungal_date": DATE_COLUMN,
    "fungal date": DATE_COLUMN,
    # Dilution variants
    "main.dilution": MAIN_DILUTION_COLUMN,
    "main_dilution": MAIN_DILUTION_COLUMN,
    "dilution": MAIN_DILUTION_COLUMN,
    "bacterial.dilution": BACTERIAL_DILUTION_COLUMN,
    "bacterial_dilution": BACTERIAL_DILUTION_COLUMN,
    "bac dilution": BACTERIAL_DILUTION_COLUMN,
    # FOV variants
    "bacterial.fov": BACTERIAL_FOV_COLUMN,
    "bacterial_fov": BACTERIAL_FOV_COLUMN,
    "fov": BACTERIAL_FOV_COLUMN,
    # Drops variants
    "drops.per.ml": DROPS_PER_ML_COLUMN,
    "drops_per_ml": DROPS_PER_ML_COLUMN,
    "drops/ml": DROPS_PER_ML_COLUMN,
    # Protozoa variants
    "flagellate": FLAGELLATES_COLUMN,
    "amoebae": AMOEBA_COLUMN,
    # Nematode variants
    "bf_nem": BF_NEM_COLUMN,
    "ff_nem": FF_NEM_COLUMN,
    "pred_nem": PRED_NEM_COLUMN,
    "rf_nem": RF_NEM_COLUMN,
    # Fungal fragment variants
    "fun_l": FUNGAL_LENGTH_COLUMN,
    "fungal_length": FUNGAL_LENGTH_COLUMN,
    "length": FUNGAL_LENGTH_COLUMN,
    "fun_w": FUNGAL_WIDTH_COLUMN,
    "fungal_width": FUNGAL_WIDTH_COLUMN,
    "diameter": FUNGAL_WIDTH_COLUMN,
    "width": FUNGAL_WIDTH_COLUMN,
}

# ============================================================================
# Output Column Names
# ============================================================================

OUTPUT_SAMPLE_ID: Final[str] = "SampleID"
OUTPUT_DATE: Final[str] = "Date"
OUTPUT_BACTERIAL_BIOMASS: Final[str] = "BacBio"
OUTPUT_FUNGAL_BIOMASS: Final[str] = "FunBio"
OUTPUT_FB_RATIO: Final[str] = "F:B"
OUTPUT_TOTAL_PROTOZOA: Final[str] = "Proto"
OUTPUT_FLAGELLATES: Final[str] = "Flagellates"
OUTPUT_AMOEBAE: Final[str] = "Amoeba"
OUTPUT_BF_NEM: Final[str] = "BfNem"
OUTPUT_FF_NEM: Final[str] = "FfNem"
OUTPUT_PRED_NEM: Final[str] = "PNem"
OUTPUT_RF_NEM: Final[str] = "RfNem"

OUTPUT_COLUMNS: Final[list[str]] = [
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
]

# Marker written for missing values in CSV output
OUTPUT_NA_MARKER: Final[str] = "NA"

DEFAULT_OUTPUT_FILENAME: Final[str] = "Final_Summary_Results.csv"

# ============================================================================
# Validation Messages
# ============================================================================

ERROR_MISSING_COLUMN: Final[str] = "{table}: Missing required column: {column}"
ERROR_COLUMN_COLLISION: Final[str] = "{table}: Columns {sources} all map to column {column}; keep only one"
ERROR_EMPTY_VALUE: Final[str] = "{table} row {row}, {column}: Value cannot be empty"
ERROR_NEGATIVE_VALUE: Final[str] = "{table} row {row}, {column}: Value must be >= 0, got {value}"
ERROR_INVALID_TYPE: Final[str] = "{table} row {row}, {column}: Cannot parse as {dtype}, got '{value}'"
ERROR_DUPLICATE_SAMPLE: Final[str] = "{table}: Duplicate sample ({sample_id}, {date}) in rows {rows}"

WARN_INVALID_DILUTION: Final[str] = (
    "{table} row {row}, {column}: Cannot parse dilution '{value}' - results using it will be missing"
)
WARN_UNKNOWN_FOV: Final[str] = (
    "{table} row {row}, {column}: Unrecognized field of view '{value}' "
    "(expected Quarter, Half or Whole) - bacterial biomass will be missing"
)
WARN_NON_POSITIVE_DROPS: Final[str] = (
    "{table} row {row}, {column}: Drops per mL must be > 0, got '{value}' - results will be missing"
)
WARN_UNMATCHED_FUNGAL: Final[str] = (
    "Fungal data for sample ({sample_id}, {date}) has no matching metadata row - fragments ignored"
)
WARN_NO_FUNGAL_DATA: Final[str] = (
    "Sample ({sample_id}, {date}) has no fungal fragments - fungal biomass reported as 0"
)

METADATA_TABLE_NAME: Final[str] = "Metadata"
FUNGAL_TABLE_NAME: Final[str] = "Fungal data"

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME: Final[str] = "Soil Biology Calculator"

# ============================================================================
# Helper Functions
# ============================================================================


def normalize_column_name(name: str) -> str:
    """
    Normalize a column name for matching.

    Converts to lowercase, strips whitespace, and looks up aliases.

    Args:
        name: Raw column name from input file

    Returns:
        Standardized column name, or original if no match found
    """
    normalized = name.strip().lower()

    if normalized in COLUMN_ALIASES:
        return COLUMN_ALIASES[normalized]

    for col in get_all_valid_column_names():
        if col.lower() == normalized:
            return col

    return name


def get_all_valid_column_names() -> list[str]:
    """
    Get list of all known input column names (both tables).

    Returns:
        List of standard column names
    """
    names = METADATA_REQUIRED_COLUMNS + METADATA_OPTIONAL_COLUMNS
    return names + [col for col in FUNGAL_REQUIRED_COLUMNS if col not in names]

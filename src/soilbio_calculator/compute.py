"""
Computation engine for Soil Biology Calculator.

This module handles:
- Fungal biomass from hypha fragment measurements
- Bacterial biomass from field-of-view counts
- Fungal to bacterial ratio
- Protozoa and nematode abundance scaling
- Per-sample and batch evaluation

All functions are pure: they read only their arguments and the ScalingConstants
passed in. Missing inputs produce None for the affected metric, never an error.
"""

import math
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor

import pandas as pd

from soilbio_calculator.config import OUTPUT_COLUMNS
from soilbio_calculator.models import (
    DEFAULT_CONSTANTS,
    FungalFragment,
    SampleMeasurements,
    SampleResult,
    ScalingConstants,
)


def _is_missing(value: float | None) -> bool:
    # Covers None, float and NumPy NaN, and pd.NA
    return value is None or bool(pd.isna(value))


def _is_missing_scale(value: float | None) -> bool:
    """Dilutions, drops per mL and FOV fractions are only usable when > 0."""
    return _is_missing(value) or value <= 0


# ============================================================================
# Biomass Formulas
# ============================================================================


def compute_fragment_biomass_pg(
    fragment: FungalFragment,
    constants: ScalingConstants = DEFAULT_CONSTANTS,
) -> float | None:
    """
    Compute the mass of one fungal fragment, treated as a cylinder.

    Formula: m_pg = π × (d/2)² × (L_prop × FOV_µm) × ρ_fungal

    Args:
        fragment: Fragment with length proportion and diameter
        constants: Physical constants

    Returns:
        Fragment mass in pg, or None if a measurement is missing
    """
    if not fragment.is_complete:
        return None

    length_um = fragment.length_proportion * constants.fov_diameter_um
    radius_um = fragment.diameter_um / 2
    volume_um3 = math.pi * radius_um**2 * length_um

    return volume_um3 * constants.fungal_density_pg_per_um3


def compute_fungal_biomass(
    fragments: Iterable[FungalFragment],
    dilution: float | None,
    drops_per_ml: float | None,
    constants: ScalingConstants = DEFAULT_CONSTANTS,
) -> float | None:
    """
    Compute total fungal biomass for one sample.

    Formula: B_µg/g = Σm_pg / N_fields × fields_per_drop × drops/mL × dilution / 10^6

    Fragments with a missing measurement are left out of the sum. An empty
    fragment list gives 0.0.

    Args:
        fragments: Fungal fragments measured for the sample
        dilution: Main dilution factor
        drops_per_ml: Drops per mL of the dropper
        constants: Physical constants

    Returns:
        Fungal biomass in µg per g of soil, or None if a scaling input is
        missing or not positive
    """
    if _is_missing_scale(dilution) or _is_missing_scale(drops_per_ml):
        return None

    total_pg = 0.0
    for fragment in fragments:
        mass_pg = compute_fragment_biomass_pg(fragment, constants)
        if mass_pg is not None:
            total_pg += mass_pg

    scaled_pg = (
        total_pg
        / constants.fungal_fields_counted
        * constants.fields_per_drop
        * drops_per_ml
        * dilution
    )

    return scaled_pg / constants.pg_per_ug


def compute_bacterial_biomass(
    counts: Sequence[float | None],
    dilution: float | None,
    fov_fraction: float | None,
    drops_per_ml: float | None,
    constants: ScalingConstants = DEFAULT_CONSTANTS,
) -> float | None:
    """
    Compute bacterial biomass for one sample.

    Algorithm:
    1. Average the raw counts, ignoring missing entries
    2. Scale to a full field of view: avg / fov_fraction
    3. Organisms per drop: × fields_per_drop
    4. Mass: × bacterial density (pg)
    5. Concentration: × dilution × drops/mL, then pg → µg

    Args:
        counts: Raw field-of-view counts
        dilution: Bacterial dilution factor
        fov_fraction: Portion of the field the counts were taken over
        drops_per_ml: Drops per mL of the dropper
        constants: Physical constants

    Returns:
        Bacterial biomass in µg per g of soil, or None if inputs are missing
    """
    present = [count for count in counts if not _is_missing(count)]
    if not present:
        return None
    if _is_missing_scale(fov_fraction):
        return None
    if _is_missing_scale(dilution) or _is_missing_scale(drops_per_ml):
        return None

    avg_count = sum(present) / len(present)
    full_fov_count = avg_count / fov_fraction
    count_per_drop = full_fov_count * constants.fields_per_drop
    biomass_pg = count_per_drop * constants.bacterial_density_pg

    return biomass_pg * dilution * drops_per_ml / constants.pg_per_ug


def compute_fb_ratio(
    fungal_biomass: float | None,
    bacterial_biomass: float | None,
) -> float | None:
    """
    Compute the fungal to bacterial biomass ratio.

    Returns:
        F:B ratio, or None if either biomass is missing, bacterial biomass is
        zero, or the ratio is not finite
    """
    if _is_missing(fungal_biomass) or _is_missing(bacterial_biomass):
        return None
    if bacterial_biomass == 0:
        return None

    ratio = fungal_biomass / bacterial_biomass
    if not math.isfinite(ratio):
        return None

    return ratio


# ============================================================================
# Abundance Formulas
# ============================================================================


def compute_protozoa(
    flagellates: float | None,
    amoebae: float | None,
    dilution: float | None,
    drops_per_ml: float | None,
    constants: ScalingConstants = DEFAULT_CONSTANTS,
) -> tuple[float | None, float | None, float | None]:
    """
    Scale raw protozoa counts to counts per gram of soil.

    Formula: n = (raw / N_fields) × fields_per_coverslip × drops/mL × dilution

    Either all three values are computed or none are.

    Args:
        flagellates: Raw flagellate count
        amoebae: Raw amoeba count
        dilution: Main dilution factor
        drops_per_ml: Drops per mL of the dropper
        constants: Physical constants

    Returns:
        Tuple of (total_protozoa, scaled_flagellates, scaled_amoebae)
    """
    if _is_missing(flagellates) or _is_missing(amoebae):
        return None, None, None
    if _is_missing_scale(dilution) or _is_missing_scale(drops_per_ml):
        return None, None, None

    scale = constants.fields_per_coverslip * drops_per_ml * dilution
    scaled_flagellates = flagellates / constants.protozoa_fields_counted * scale
    scaled_amoebae = amoebae / constants.protozoa_fields_counted * scale

    return scaled_flagellates + scaled_amoebae, scaled_flagellates, scaled_amoebae


def compute_nematode_count(
    raw_count: float | None,
    dilution: float | None,
    drops_per_ml: float | None,
) -> float | None:
    """
    Scale one raw nematode count: raw × drops/mL × dilution.

    Returns:
        Nematodes per gram of soil, or None if any input is missing or a
        scaling factor is not positive
    """
    if _is_missing(raw_count) or _is_missing_scale(dilution) or _is_missing_scale(drops_per_ml):
        return None

    return raw_count * drops_per_ml * dilution


def compute_nematodes(
    bf_nem: float | None,
    ff_nem: float | None,
    pred_nem: float | None,
    rf_nem: float | None,
    dilution: float | None,
    drops_per_ml: float | None,
) -> dict[str, float | None]:
    """
    Scale each nematode trophic group independently.

    A missing count for one group does not affect the others.

    Returns:
        Dictionary with keys bf_nem, ff_nem, pred_nem and rf_nem
    """
    raw = {"bf_nem": bf_nem, "ff_nem": ff_nem, "pred_nem": pred_nem, "rf_nem": rf_nem}
    return {
        group: compute_nematode_count(count, dilution, drops_per_ml)
        for group, count in raw.items()
    }


# ============================================================================
# Per-Sample and Batch Evaluation
# ============================================================================


def compute_sample(
    sample: SampleMeasurements,
    constants: ScalingConstants = DEFAULT_CONSTANTS,
) -> SampleResult:
    """
    Compute every derived metric for one sample.

    Args:
        sample: Normalized raw measurements for the sample
        constants: Physical constants

    Returns:
        SampleResult with one field per output metric
    """
    bacterial = compute_bacterial_biomass(
        sample.bacterial_counts,
        sample.bacterial_dilution,
        sample.fov_fraction,
        sample.drops_per_ml,
        constants,
    )
    fungal = compute_fungal_biomass(
        sample.fragments,
        sample.main_dilution,
        sample.drops_per_ml,
        constants,
    )
    total_protozoa, flagellates, amoebae = compute_protozoa(
        sample.flagellates,
        sample.amoebae,
        sample.main_dilution,
        sample.drops_per_ml,
        constants,
    )
    nematodes = compute_nematodes(
        sample.bf_nem,
        sample.ff_nem,
        sample.pred_nem,
        sample.rf_nem,
        sample.main_dilution,
        sample.drops_per_ml,
    )

    return SampleResult(
        sample_id=sample.sample_id,
        date=sample.date,
        bacterial_biomass=bacterial,
        fungal_biomass=fungal,
        fb_ratio=compute_fb_ratio(fungal, bacterial),
        total_protozoa=total_protozoa,
        flagellates=flagellates,
        amoebae=amoebae,
        **nematodes,
    )


def compute_samples(
    samples: Sequence[SampleMeasurements],
    constants: ScalingConstants = DEFAULT_CONSTANTS,
    max_workers: int | None = None,
) -> list[SampleResult]:
    """
    Compute results for many samples.

    Samples are independent, so with max_workers > 1 they are evaluated on a
    thread pool. Output order always matches input order.

    Args:
        samples: Samples to evaluate
        constants: Physical constants
        max_workers: Thread pool size (None or 1 = sequential)

    Returns:
        List of SampleResult, one per sample

    Raises:
        ValueError: If max_workers is less than 1
    """
    if max_workers is not None and max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")

    if max_workers is None or max_workers == 1 or len(samples) < 2:
        return [compute_sample(sample, constants) for sample in samples]

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(lambda s: compute_sample(s, constants), samples))


def results_to_dataframe(results: Iterable[SampleResult]) -> pd.DataFrame:
    """
    Assemble sample results into the output table.

    Args:
        results: Per-sample results

    Returns:
        DataFrame with OUTPUT_COLUMNS, missing metrics as NaN
    """
    rows = [result.to_output_row() for result in results]
    df = pd.DataFrame(rows, columns=OUTPUT_COLUMNS)

    # None in numeric columns becomes NaN
    numeric_cols = OUTPUT_COLUMNS[2:]
    df[numeric_cols] = df[numeric_cols].astype(float)

    return df

"""
Command-line entry point for Soil Biology Calculator.

Usage:
    soilbio-calculator data/metadata.csv data/fungal_data.csv -o output/Final_Summary_Results.csv
"""

import argparse
import logging
import sys
from pathlib import Path

from soilbio_calculator import __version__
from soilbio_calculator.config import APP_NAME, DEFAULT_OUTPUT_FILENAME
from soilbio_calculator.io import export_results
from soilbio_calculator.models import ScalingConstants, create_scaling_constants
from soilbio_calculator.pipeline import run_pipeline

logger = logging.getLogger(__name__)


def parse_constant_override(text: str) -> tuple[str, float]:
    """Parse a NAME=VALUE override for one scaling constant."""
    name, sep, value = text.partition("=")
    name = name.strip()
    if not sep or name not in ScalingConstants.model_fields:
        valid = ", ".join(ScalingConstants.model_fields)
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE with NAME one of: {valid}")
    try:
        return name, float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"value for {name} must be a number, got '{value}'")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="soilbio-calculator",
        description=f"{APP_NAME}: biomass and abundance per gram of soil from microscopy counts",
    )
    parser.add_argument("metadata", type=Path, help="Metadata table (CSV or Excel)")
    parser.add_argument("fungal", type=Path, help="Fungal fragment table (CSV or Excel)")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("output") / DEFAULT_OUTPUT_FILENAME,
        help="Output path; .xlsx writes Excel, anything else CSV (default: %(default)s)",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        default=None,
        help="Number of worker threads for per-sample calculations",
    )
    parser.add_argument(
        "-c",
        "--constant",
        type=parse_constant_override,
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Override a scaling constant, e.g. fields_per_drop=2038 (repeatable)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Run the calculator from the command line.

    Returns:
        Process exit code (0 on success, 1 on failure)
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        constants = create_scaling_constants(dict(args.constant))
        result = run_pipeline(
            args.metadata, args.fungal, constants=constants, max_workers=args.workers
        )
        export_results(result.results, args.output, constants=constants)
    except (FileNotFoundError, ValueError) as e:
        logger.error("%s", e)
        return 1

    logger.info("Computed %d samples", len(result.results))
    return 0


if __name__ == "__main__":
    sys.exit(main())

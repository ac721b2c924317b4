"""
Gradio UI for Soil Biology Calculator

This module provides a web-based user interface using Gradio for computing
soil biology metrics from uploaded metadata and fungal fragment tables.
"""

import os
import tempfile
from pathlib import Path

import gradio as gr
import pandas as pd

from soilbio_calculator import __version__
from soilbio_calculator.config import OUTPUT_COLUMNS
from soilbio_calculator.io import export_results_to_excel, generate_export_filename
from soilbio_calculator.models import DEFAULT_CONSTANTS
from soilbio_calculator.pipeline import run_pipeline


def _upload_path(file_obj) -> str:
    # Gradio passes either a filepath string or an object with .name
    return file_obj if isinstance(file_obj, str) else file_obj.name


def process_upload(
    metadata_file,
    fungal_file,
) -> tuple[str, pd.DataFrame | None, bytes | None]:
    """
    Process uploaded tables and compute per-sample results.

    Args:
        metadata_file: Uploaded metadata file from Gradio
        fungal_file: Uploaded fungal fragment file from Gradio

    Returns:
        Tuple of (status_message, results_df, excel_bytes)
    """
    if metadata_file is None or fungal_file is None:
        return "Please upload both the metadata and the fungal data files.", None, None

    try:
        metadata_path = _upload_path(metadata_file)
        fungal_path = _upload_path(fungal_file)
        result = run_pipeline(metadata_path, fungal_path)
    except (FileNotFoundError, ValueError) as e:
        error_msg = "❌ **CALCULATION FAILED**\n\n"
        error_msg += f"```\n{e}\n```\n"
        error_msg += "Please check your input files and try again."
        return error_msg, None, None

    validation = result.validation
    results_df = result.results

    status_msg = "✅ **RESULTS COMPUTED**\n\n"
    status_msg += f"- Samples: {len(results_df)}\n"
    status_msg += f"- Fungal fragments loaded: {validation.summary.get('num_fragments', 0)}\n"

    if validation.warnings:
        status_msg += f"\n⚠️ **Warnings ({len(validation.warnings)}):**\n"
        for warn in validation.warnings[:10]:
            status_msg += f"- {warn}\n"
        if len(validation.warnings) > 10:
            status_msg += f"- ... and {len(validation.warnings) - 10} more\n"

    excel_bytes = export_results_to_excel(
        results_df,
        constants=DEFAULT_CONSTANTS,
        run_params={
            "Metadata File": Path(metadata_path).name,
            "Fungal File": Path(fungal_path).name,
        },
    )

    df_display = results_df[OUTPUT_COLUMNS].copy()
    numeric_cols = OUTPUT_COLUMNS[2:]
    df_display[numeric_cols] = df_display[numeric_cols].round(3)

    return status_msg, df_display, excel_bytes


def build_app() -> gr.Blocks:
    """
    Build and return the Gradio interface.

    Returns:
        Configured Gradio Blocks interface
    """
    with gr.Blocks(title="Soil Biology Calculator") as app:
        gr.Markdown(
            f"""
            # 🔬 Soil Biology Calculator
            **Version {__version__}**

            Bacterial and fungal biomass, F:B ratio, protozoa and nematodes per gram of soil
            from microscopy counts.
            """
        )

        with gr.Row():
            with gr.Column(scale=1):
                gr.Markdown("## 📁 Input")

                metadata_upload = gr.File(
                    label="Metadata Table (Excel/CSV)",
                    file_types=[".xlsx", ".csv"],
                    type="filepath",
                )

                fungal_upload = gr.File(
                    label="Fungal Fragment Table (Excel/CSV)",
                    file_types=[".xlsx", ".csv"],
                    type="filepath",
                )

                calculate_btn = gr.Button(
                    "🧮 Calculate",
                    variant="primary",
                    size="lg",
                )

            with gr.Column(scale=2):
                gr.Markdown("## 📊 Results")

                status_output = gr.Markdown(
                    value="Upload both files and click 'Calculate' to begin.",
                    label="Status",
                )

                results_table = gr.DataFrame(
                    label="Results per Sample",
                    wrap=True,
                )

                download_btn = gr.DownloadButton(
                    label="📥 Download Results (Excel)",
                    variant="secondary",
                    size="lg",
                    visible=False,
                )

        # Hidden state to store Excel bytes
        excel_state = gr.State(value=None)

        def calculate_wrapper(metadata_file, fungal_file):
            status, results_df, excel_bytes = process_upload(metadata_file, fungal_file)
            return (
                status,
                results_df,
                excel_bytes,
                gr.update(visible=excel_bytes is not None),
            )

        calculate_btn.click(
            fn=calculate_wrapper,
            inputs=[metadata_upload, fungal_upload],
            outputs=[status_output, results_table, excel_state, download_btn],
        )

        def prepare_download(excel_bytes):
            if excel_bytes is None:
                return None

            temp_path = Path(tempfile.gettempdir()) / generate_export_filename()
            temp_path.write_bytes(excel_bytes)
            return str(temp_path)

        download_btn.click(
            fn=prepare_download,
            inputs=[excel_state],
            outputs=download_btn,
        )

        gr.Markdown(
            """
            ---
            ### 📖 Quick Start Guide

            1. **Metadata table**, one row per sample:
               - `ID`, `Date`, `Main Dilution` (`1:N`), `Bacterial Dilution` (`1:N`),
               - `Bacterial FOV` (`Quarter`, `Half` or `Whole`), `Drops per mL`, `Bac1`-`Bac5`
               - Optional: `Flagellates`, `Amoeba`, `Bf Nem`, `Ff Nem`, `Pred Nem`, `Rf Nem`

            2. **Fungal fragment table**, one row per fragment:
               - `ID`, `Date` (or `Fungal_Date`), `FunL` (length as fraction of FOV), `FunW` (diameter, µm)

            3. **Click "Calculate"**. Metrics whose inputs are missing are left blank.

            4. **Download the Excel file** with results and the constants used.
            """
        )

    return app


def main():
    """Main entry point to launch the Gradio app."""
    app = build_app()

    # When running in Docker, set GRADIO_SERVER_NAME=0.0.0.0
    server_name = os.getenv("GRADIO_SERVER_NAME", "127.0.0.1")
    server_port = int(os.getenv("GRADIO_SERVER_PORT", "7860"))

    app.launch(
        server_name=server_name,
        server_port=server_port,
        share=False,
        show_error=True,
    )


if __name__ == "__main__":
    main()

"""
Tests for the Gradio upload handler.
"""

from io import BytesIO
from pathlib import Path
from unittest.mock import Mock

import pandas as pd

from soilbio_calculator.ui import process_upload


FIXTURES_DIR = Path(__file__).parent / "fixtures"


def test_process_upload_requires_both_files():
    """Both uploads are required."""
    status, df, excel_bytes = process_upload(None, str(FIXTURES_DIR / "fungal_data.csv"))

    assert "Please upload both" in status
    assert df is None
    assert excel_bytes is None


def test_process_upload_success():
    """A valid upload returns status, display table and Excel bytes."""
    # Gradio passes file objects with a .name attribute
    metadata_file = Mock()
    metadata_file.name = str(FIXTURES_DIR / "metadata.csv")

    status, df, excel_bytes = process_upload(metadata_file, str(FIXTURES_DIR / "fungal_data.csv"))

    assert "RESULTS COMPUTED" in status
    assert "Samples: 4" in status
    assert "Warnings (3)" in status
    assert len(df) == 4
    assert df.loc[0, "BacBio"] == 14.823

    sheets = pd.read_excel(BytesIO(excel_bytes), sheet_name=None)
    metadata = dict(zip(sheets["Metadata"]["Parameter"], sheets["Metadata"]["Value"]))
    assert metadata["Metadata File"] == "metadata.csv"


def test_process_upload_invalid_file(tmp_path):
    """Validation failures are reported in the status message."""
    bad = tmp_path / "metadata.csv"
    bad.write_text("ID,Date\nS1,2024-05-01\n")

    status, df, excel_bytes = process_upload(str(bad), str(FIXTURES_DIR / "fungal_data.csv"))

    assert "CALCULATION FAILED" in status
    assert "Missing required column" in status
    assert df is None
    assert excel_bytes is None

"""Integration test fixtures: require the poppler and tesseract binaries.

Gracefully skips all tests when either binary is missing from PATH.
"""

from __future__ import annotations

import shutil

import pytest

if shutil.which("pdftoppm") is None or shutil.which("pdfinfo") is None:
    pytest.skip("poppler-utils not installed", allow_module_level=True)
if shutil.which("tesseract") is None:
    pytest.skip("tesseract not installed", allow_module_level=True)


@pytest.fixture
def printed_pdf_bytes() -> bytes:
    """A 4-page PDF with one large printed line per page and no long text layer."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.set_font("Helvetica", size=32)
    for i in range(1, 5):
        pdf.add_page()
        pdf.cell(text=f"INVOICE {i}")
    return bytes(pdf.output())

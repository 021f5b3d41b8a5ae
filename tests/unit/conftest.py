"""Unit test conftest: PDF fixtures generated in memory with fpdf2."""

from __future__ import annotations

import pytest

ENGLISH_PARAGRAPH = (
    "This agreement is made between the landlord and the tenant for the lease of the "
    "property described below. The tenant agrees to pay the monthly rent on the first "
    "day of each month and to keep the premises in good condition. Either party may "
    "terminate this agreement with thirty days written notice to the other party."
)


@pytest.fixture
def text_pdf_bytes() -> bytes:
    """A 2-page PDF with a clean English text layer well above 200 chars."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.set_font("Helvetica", size=11)
    for _ in range(2):
        pdf.add_page()
        pdf.multi_cell(w=0, h=6, text=ENGLISH_PARAGRAPH)
    return bytes(pdf.output())


@pytest.fixture
def short_text_pdf_bytes() -> bytes:
    """A 1-page PDF whose text layer is far below the direct-text threshold."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.add_page()
    pdf.set_font("Helvetica", size=12)
    pdf.cell(text="Scanned page 1")
    return bytes(pdf.output())


@pytest.fixture
def garbled_pdf_bytes() -> bytes:
    """Long text layer full of symbols typical of a broken font mapping."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.add_page()
    pdf.set_font("Helvetica", size=11)
    pdf.multi_cell(w=0, h=6, text=("#@% ab" * 80))
    return bytes(pdf.output())


@pytest.fixture
def scanned_pdf_bytes() -> bytes:
    """A 3-page PDF with no text layer at all."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    for _ in range(3):
        pdf.add_page()
    return bytes(pdf.output())

"""
Tests for PDF rasterization and upload-time PDF checks.

PDFs are built in memory with PyMuPDF and pypdf.
"""

import io

import fitz
import pytest
from pypdf import PdfWriter

from modules.pdf_analyzer import PDFAnalyzer
from modules.rasterizer import PageImage, PyMuPDFRasterizer

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def _fitz_pdf(page_count):
    doc = fitz.open()
    for index in range(page_count):
        page = doc.new_page(width=200, height=100)
        page.insert_text((20, 50), f"Page {index + 1}")
    data = doc.tobytes()
    doc.close()
    return data


def _pypdf_pdf(path, width=612, height=792):
    writer = PdfWriter()
    writer.add_blank_page(width=width, height=height)
    buffer = io.BytesIO()
    writer.write(buffer)
    path.write_bytes(buffer.getvalue())
    return path


class TestPyMuPDFRasterizer:
    """Tests for PyMuPDFRasterizer."""

    def test_one_png_per_page_in_order(self):
        pages = PyMuPDFRasterizer().rasterize(_fitz_pdf(3))

        assert [p.page_number for p in pages] == [1, 2, 3]
        assert all(p.data.startswith(PNG_MAGIC) for p in pages)

    def test_rasterize_file(self, tmp_path):
        path = tmp_path / "two.pdf"
        path.write_bytes(_fitz_pdf(2))

        assert len(PyMuPDFRasterizer(scale=1.0).rasterize_file(path)) == 2

    def test_invalid_bytes(self):
        with pytest.raises(Exception):
            PyMuPDFRasterizer().rasterize(b"this is not a pdf")

    def test_invalid_scale(self):
        with pytest.raises(ValueError):
            PyMuPDFRasterizer(scale=0)

    def test_page_image_base64(self):
        assert PageImage(page_number=1, data=b"png").to_base64() == "cG5n"


class TestPDFAnalyzer:
    """Tests for PDFAnalyzer."""

    def test_is_pdf(self, tmp_path):
        assert PDFAnalyzer().is_pdf(_pypdf_pdf(tmp_path / "ok.pdf")) is True

    def test_is_not_pdf(self, tmp_path):
        path = tmp_path / "fake.pdf"
        path.write_bytes(b"<html>not a pdf</html>")

        assert PDFAnalyzer().is_pdf(path) is False

    def test_missing_file(self, tmp_path):
        assert PDFAnalyzer().is_pdf(tmp_path / "missing.pdf") is False

    def test_analyze_letter_page(self, tmp_path):
        info = PDFAnalyzer().analyze(_pypdf_pdf(tmp_path / "letter.pdf"))

        assert info["pages"] == 1
        assert info["size_kb"] > 0
        assert info["page_dimensions"] == [{"width_in": 8.5, "height_in": 11.0}]

    def test_analyze_broken_file(self, tmp_path):
        path = tmp_path / "broken.pdf"
        path.write_bytes(b"%PDF-1.4 garbage")

        info = PDFAnalyzer().analyze(path)

        assert info["pages"] == 0
        assert "error" in info

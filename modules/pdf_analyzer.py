"""Lightweight PDF checks run on upload, before any rendering."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Any

from pypdf import PdfReader

PDF_MAGIC = b"%PDF"


class PDFAnalyzer:
    """Extract minimal metadata, resilient to malformed PDFs."""

    def is_pdf(self, pdf_path: str | Path) -> bool:
        """True if the file starts with the PDF magic number."""
        try:
            with open(pdf_path, "rb") as fh:
                return fh.read(len(PDF_MAGIC)) == PDF_MAGIC
        except OSError:
            return False

    def analyze(self, pdf_path: str | Path) -> Dict[str, Any]:
        path = Path(pdf_path)
        info: Dict[str, Any] = {
            "path": str(path),
            "pages": 0,
            "size_kb": round(path.stat().st_size / 1024, 2) if path.exists() else 0,
            "page_dimensions": [],
        }

        try:
            reader = PdfReader(str(path))
            info["pages"] = len(reader.pages)
            if reader.pages:
                page = reader.pages[0]
                width = round(float(page.mediabox.width) / 72, 2)
                height = round(float(page.mediabox.height) / 72, 2)
                info["page_dimensions"].append({"width_in": width, "height_in": height})
        except Exception as exc:  # pragma: no cover - defensive logging hook
            info["error"] = f"PDF analysis failed: {exc}"

        return info

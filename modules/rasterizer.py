"""
PDF page rasterization.

The extraction pipeline only needs "PDF bytes in, one image per page out,
in page order". Rasterizer is that contract; PyMuPDFRasterizer is the
backend used in production.
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List

import fitz  # PyMuPDF


@dataclass(frozen=True)
class PageImage:
    """A rendered page. ``page_number`` is 1-indexed."""

    page_number: int
    data: bytes

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class Rasterizer(ABC):
    """Converts a PDF into page-ordered images."""

    @abstractmethod
    def rasterize(self, pdf_bytes: bytes) -> List[PageImage]:
        """Render every page of ``pdf_bytes``, first page first."""

    def rasterize_file(self, pdf_path: str | Path) -> List[PageImage]:
        return self.rasterize(Path(pdf_path).read_bytes())


class PyMuPDFRasterizer(Rasterizer):
    """Renders pages to PNG with PyMuPDF at ``scale`` x 72 DPI."""

    def __init__(self, scale: float = 2.0):
        if scale <= 0:
            raise ValueError("scale must be positive")
        self.scale = scale

    def rasterize(self, pdf_bytes: bytes) -> List[PageImage]:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        try:
            matrix = fitz.Matrix(self.scale, self.scale)
            pages = []
            for page_number, page in enumerate(doc, start=1):
                pix = page.get_pixmap(matrix=matrix)
                pages.append(PageImage(page_number=page_number, data=pix.tobytes("png")))
            return pages
        finally:
            doc.close()

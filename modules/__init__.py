"""Helper modules for the Print Queue Web application."""

__all__ = [
    "extraction",
    "pdf_analyzer",
    "positions",
    "rasterizer",
    "sanitize",
]

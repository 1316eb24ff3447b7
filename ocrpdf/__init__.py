"""Searchable PDFs from scanned documents.

Packages:
- ocrpdf.docs: geometry, recognized-text tree, row-merge, sessions, PDF I/O
- ocrpdf.ocr: Tesseract adapter and OCR preprocessing
- ocrpdf.image: frame splitting and page image encoding
- ocrpdf.render: page compositor and debug overlays
- ocrpdf.pipeline: job orchestration (`SearchablePdfCompressor`)
"""

from .config import ImageEncoding, PdfMode, PdfSettings, WriteTextMode, load_settings
from .errors import DocumentFatalError, GeometryError, InvalidUnitError, OcrAttachmentError, OcrPdfError

__all__ = [
    "ImageEncoding",
    "PdfMode",
    "PdfSettings",
    "WriteTextMode",
    "load_settings",
    "DocumentFatalError",
    "GeometryError",
    "InvalidUnitError",
    "OcrAttachmentError",
    "OcrPdfError",
]

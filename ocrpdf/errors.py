"""Exception types raised by the searchable PDF pipeline."""

from __future__ import annotations

from typing import Optional


class OcrPdfError(Exception):
    """Base class for all errors raised by ocrpdf."""


class GeometryError(OcrPdfError, ValueError):
    """Invalid bounding box or coordinate conversion (programming error)."""


class InvalidUnitError(GeometryError):
    """A box was converted from a unit it is not in."""


class OcrAttachmentError(OcrPdfError, RuntimeError):
    """OCR or text-layer compositing failed for a single page.

    The page is still emitted with its image layer; the job continues.
    """

    def __init__(self, message: str, page_number: Optional[int] = None) -> None:
        super().__init__(message)
        self.page_number = page_number


class DocumentFatalError(OcrPdfError, RuntimeError):
    """The whole job cannot continue (session I/O, rasterizer, writer setup)."""

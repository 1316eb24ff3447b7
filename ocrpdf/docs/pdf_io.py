from __future__ import annotations

import logging
import os
from typing import Optional

from pdf2image import convert_from_path, pdfinfo_from_path
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)

from ocrpdf.errors import DocumentFatalError

from .buffer import Session

logger = logging.getLogger(__name__)

_PDF2IMAGE_ERRORS = (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
    OSError,
)


def _ensure_poppler_env() -> Optional[str]:
    """Return a Poppler binary directory from POPPLER_PATH or the app layout.

    Priority:
    1) Respect existing POPPLER_PATH if it points to a valid directory.
    2) Try app_dir/poppler/Library/bin (bundled with app build).
    3) Try parent_of_app_dir/poppler/Library/bin (common dev layout: ..\\poppler).
    """
    cur = os.environ.get("POPPLER_PATH")
    if cur and os.path.isdir(cur):
        return cur

    # app_dir = project root (three levels up from this file: ocrpdf/docs/pdf_io.py)
    app_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

    candidates = [
        # Bundled layout (e.g., conda-forge style)
        os.path.join(app_dir, "poppler", "Library", "bin"),
        os.path.join(os.path.dirname(app_dir), "poppler", "Library", "bin"),
        # Classic layout (oschwartz releases)
        os.path.join(app_dir, "poppler", "bin"),
        os.path.join(os.path.dirname(app_dir), "poppler", "bin"),
    ]
    for c in candidates:
        if os.path.isdir(c):
            os.environ["POPPLER_PATH"] = c
            return c
    return None


class PdfRasterizer:
    """Renders PDF page ranges to bitmap files inside a session."""

    def __init__(self, dpi: int = 300, poppler_path: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.dpi = dpi
        self.poppler_path = poppler_path or _ensure_poppler_env()
        self.timeout = timeout

    def page_count(self, pdf_path: str) -> int:
        try:
            info = pdfinfo_from_path(pdf_path, poppler_path=self.poppler_path, timeout=self.timeout)
        except _PDF2IMAGE_ERRORS as exc:
            raise DocumentFatalError(f"Cannot read page count of {pdf_path}: {exc}") from exc
        return int(info.get("Pages", 0))

    def rasterize_pages(self, pdf_path: str, start_page: int, end_page: int, session: Session) -> str:
        """Render pages ``start_page..end_page`` (1-based, inclusive) to one file.

        Args:
            pdf_path: Path to the PDF file.
            start_page: First page to render.
            end_page: Last page to render.
            session: Session that owns the produced file.

        Returns:
            A PNG path for a single page, or a multi-frame TIFF path for a range.
        """
        if not os.path.exists(pdf_path):
            raise DocumentFatalError(f"PDF file not found: {pdf_path}")
        if start_page < 1 or end_page < start_page:
            raise ValueError(f"Invalid page range {start_page}..{end_page}")

        try:
            images = convert_from_path(
                pdf_path,
                dpi=self.dpi,
                first_page=start_page,
                last_page=end_page,
                poppler_path=self.poppler_path,
                timeout=self.timeout,
            )
        except _PDF2IMAGE_ERRORS as exc:
            raise DocumentFatalError(f"Cannot rasterize pages {start_page}-{end_page} of {pdf_path}: {exc}") from exc
        if not images:
            raise DocumentFatalError(f"No pages rendered for {start_page}-{end_page} of {pdf_path}")

        try:
            if len(images) == 1:
                out_path = session.create_temp_file(".png")
                images[0].save(out_path, dpi=(self.dpi, self.dpi))
            else:
                out_path = session.create_temp_file(".tif")
                images[0].save(out_path, save_all=True, append_images=images[1:], dpi=(self.dpi, self.dpi))
        except OSError as exc:
            raise DocumentFatalError(f"Cannot write rasterized page to session {session.id}: {exc}") from exc
        finally:
            for img in images:
                img.close()
        logger.debug("Rasterized pages %d-%d of %s to %s", start_page, end_page, pdf_path, out_path)
        return out_path

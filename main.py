"""
Entry point and compatibility facade for the scan → OCR → searchable PDF pipeline.

This module exposes a stable API and a CLI suitable for PyInstaller builds.

Packages:
- ocrpdf.docs: Geometry, text tree, row-merge, sessions, rasterizer, PDF writer
- ocrpdf.ocr: Tesseract adapter and OCR preprocessing
- ocrpdf.image: Frame splitting and image encoding
- ocrpdf.render: Page compositor and debug overlays
- ocrpdf.pipeline: High-level orchestration (`SearchablePdfCompressor`)
"""

from __future__ import annotations

import logging
import os

from ocrpdf.config import (
    ImageEncoding,
    PdfMode,
    PdfSettings,
    WriteTextMode,
    configure_dependencies,
    load_settings,
)
from ocrpdf.docs.buffer import SessionManager
from ocrpdf.docs.geometry import BBox, UnitFormat, to_page_points
from ocrpdf.docs.pdf_writer import PdfPageWriter
from ocrpdf.docs.rows import combine_same_row_lines
from ocrpdf.errors import DocumentFatalError
from ocrpdf.ocr.reader import TesseractEngine, binarize_hook
from ocrpdf.pipeline.process import JobReport, SearchablePdfCompressor, print_progress_bar
from ocrpdf.render.compositor import PageCompositor, PageResult

__all__ = [
    # configuration
    "ImageEncoding",
    "PdfMode",
    "PdfSettings",
    "WriteTextMode",
    "configure_dependencies",
    "load_settings",
    # geometry / tree
    "BBox",
    "UnitFormat",
    "to_page_points",
    "combine_same_row_lines",
    # engines
    "TesseractEngine",
    "binarize_hook",
    "PageCompositor",
    "SessionManager",
    # pipeline
    "JobReport",
    "SearchablePdfCompressor",
    "print_progress_bar",
    "create_searchable_pdf",
    "create_pdf_from_hocr",
]


def create_searchable_pdf(data: bytes, settings: PdfSettings | None = None, mode: PdfMode = PdfMode.OCR) -> JobReport:
    """One-shot helper: run a job with default collaborators."""
    return SearchablePdfCompressor(settings=settings, mode=mode).create_searchable_pdf(data)


def create_pdf_from_hocr(hocr_path: str, out_path: str, settings: PdfSettings | None = None,
                         mode: PdfMode = PdfMode.OCR) -> list[PageResult]:
    """Build a searchable PDF from an existing hOCR file and the images it names.

    Doxygen:
    - @param hocr_path: hOCR file produced by Tesseract.
    - @param out_path: Output PDF path.
    - @param settings: Page settings (default: PdfSettings()).
    - @param mode: Render mode for every page (default: ocr).
    - @return: One PageResult per hOCR page.
    - @throws DocumentFatalError: If the hOCR file, a page image or the output cannot be used.
    """
    settings = settings or PdfSettings()
    writer = PdfPageWriter(out_path)
    writer.set_metadata(author=settings.author, title=settings.title,
                        subject=settings.subject, keywords=settings.keywords)
    try:
        return PageCompositor(writer, settings).add_hocr_file(hocr_path, mode)
    finally:
        writer.save_and_close()


def _default_output_path(input_path: str) -> str:
    base, _ = os.path.splitext(input_path)
    return f"{base}.searchable.pdf"


def _cli() -> None:
    """CLI for turning a scanned PDF or image into a searchable PDF.

    --file / -f: Path to input document (pdf or image, multi-frame TIFF allowed)
    --out / -o: Output PDF path (default: <input>.searchable.pdf)
    --mode: image_only|ocr|text_only|draw_blocks|debug (default: ocr)
    --text-mode: word|line|character granularity of the text layer
    --dpi: Rasterization / image resolution (default: 300)
    --lang: Tesseract languages (default: eng)
    --encoding: tiff|png|jpeg|bmp|ccitt_g4 page image encoding
    --quality: JPEG quality
    --font: TTF font file name used for the text layer
    --settings: Path to a settings JSON file (default: config/settings.json)
    --timeout: Per-call timeout for Poppler/Tesseract in seconds (<=0 means none)
    --binarize: Binarize pages before OCR
    --combine-rows: Use merged rows for the line text layer
    --hocr: Treat --file as an hOCR file and lay its text over the images it names
    --title/--author/--subject/--keywords: Document metadata
    --verbose / -v: Log progress details
    """
    import argparse

    parser = argparse.ArgumentParser(description="Add an invisible OCR text layer to scanned documents.")
    parser.add_argument("--file", "-f", type=str, required=True, help="Path to input document (pdf or image)")
    parser.add_argument("--out", "-o", type=str, help="Output PDF path (default: <input>.searchable.pdf)")
    parser.add_argument("--mode", type=str, default="ocr", choices=[m.value for m in PdfMode], help="Page render mode (default: ocr)")
    parser.add_argument("--text-mode", type=str, choices=[m.value for m in WriteTextMode], help="Text layer granularity (default: word)")
    parser.add_argument("--dpi", type=int, help="Rasterization DPI (default: 300)")
    parser.add_argument("--lang", type=str, help="Tesseract languages (default: eng)")
    parser.add_argument("--encoding", type=str, choices=[e.value for e in ImageEncoding], help="Page image encoding (default: jpeg)")
    parser.add_argument("--quality", type=int, help="JPEG quality (default: 75)")
    parser.add_argument("--font", type=str, help="TTF font file name for the text layer")
    parser.add_argument("--settings", type=str, help="Settings JSON file (default: config/settings.json)")
    parser.add_argument("--timeout", type=float, help="Timeout in seconds for each Poppler/Tesseract call (<=0 means none)")
    parser.add_argument("--binarize", action="store_true", help="Binarize pages before OCR")
    parser.add_argument("--combine-rows", action="store_true", help="Write merged rows in line text mode")
    parser.add_argument("--hocr", action="store_true", help="Input is an hOCR file; skip rasterizing and OCR")
    parser.add_argument("--title", type=str)
    parser.add_argument("--author", type=str)
    parser.add_argument("--subject", type=str)
    parser.add_argument("--keywords", type=str)
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress details")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not os.path.exists(args.file):
        print(f"File not found: {args.file}")
        raise SystemExit(2)

    # Configure external dependencies like Tesseract and get Poppler path
    poppler_path = configure_dependencies()

    timeout_value = None if args.timeout is not None and args.timeout <= 0 else args.timeout
    overrides = dict(
        dpi=args.dpi,
        write_text_mode=args.text_mode,
        image_encoding=args.encoding,
        image_quality=args.quality,
        language=args.lang,
        font_name=args.font,
        timeout=timeout_value,
        poppler_path=poppler_path,
        combine_rows=True if args.combine_rows else None,
        title=args.title,
        author=args.author,
        subject=args.subject,
        keywords=args.keywords,
    )
    try:
        settings = load_settings(args.settings, **overrides) if args.settings else load_settings(**overrides)
    except ValueError as e:
        print(str(e))
        raise SystemExit(2)

    if args.hocr:
        out_path = args.out or _default_output_path(args.file)
        try:
            results = create_pdf_from_hocr(args.file, out_path, settings, PdfMode(args.mode))
        except DocumentFatalError as e:
            print(f"Processing stopped: {e}")
            raise SystemExit(1)
        print(f"Saved searchable PDF to: {out_path}")
        print(f"Pages written: {len(results)}")
        return

    sessions = SessionManager()
    compressor = SearchablePdfCompressor(
        settings=settings,
        sessions=sessions,
        mode=PdfMode(args.mode),
        on_page=print_progress_bar,
        on_exception=lambda _c, exc: print(f"\nProcessing stopped: {exc}"),
    )
    if args.binarize:
        with sessions.session() as hook_session:
            compressor.preprocess_hook = binarize_hook(hook_session)
            report = compressor.create_searchable_pdf_file(args.file, args.out or _default_output_path(args.file))
    else:
        report = compressor.create_searchable_pdf_file(args.file, args.out or _default_output_path(args.file))
    print()

    print(f"Saved searchable PDF to: {args.out or _default_output_path(args.file)}")
    print(f"Pages written: {len(report.pages)}")
    for page in report.pages:
        if page.error is not None:
            print(f"  page {page.number}: no text layer ({page.error})")
    if not report.success:
        raise SystemExit(1)


if __name__ == "__main__":
    _cli()

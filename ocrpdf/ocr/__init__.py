"""OCR (Optical Character Recognition) utilities.

This package turns pytesseract output, or hOCR files produced earlier, into the
recognized-text tree and provides an OpenCV-based binarisation step usable as a
preprocessing hook.
"""

from .reader import (
    build_dataframe_from_tesseract,
    build_char_dataframe,
    build_page_tree,
    preprocess_image_for_ocr,
    binarize_hook,
    TesseractEngine,
)
from .hocr import HocrPage, parse_hocr, parse_hocr_file

__all__ = [
    "build_dataframe_from_tesseract",
    "build_char_dataframe",
    "build_page_tree",
    "preprocess_image_for_ocr",
    "binarize_hook",
    "TesseractEngine",
    "HocrPage",
    "parse_hocr",
    "parse_hocr_file",
]

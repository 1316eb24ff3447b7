"""OCR reader built on top of pytesseract, pandas and OpenCV.

This module provides:
- Building a cleaned DataFrame from pytesseract word output.
- Parsing pytesseract character boxes.
- Grouping words into the Page → Paragraph → Line → Word → Character tree.
- An optional OpenCV binarisation step usable as a preprocessing hook.
- ``TesseractEngine``: the default OCR engine used by the pipeline.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import cv2
import numpy as np
import pandas as pd
import pytesseract
from PIL import Image

from ocrpdf.docs.buffer import Session
from ocrpdf.docs.geometry import BBox, union_bbox
from ocrpdf.docs.model import Character, Line, Page, Paragraph, Word

logger = logging.getLogger(__name__)

_CHAR_COLUMNS = ["char", "left", "top", "width", "height"]


def build_dataframe_from_tesseract(data: Dict[str, Any]) -> pd.DataFrame:
    """Create and clean a DataFrame from pytesseract.image_to_data output.

    Doxygen:
    - @param data: Dict returned by `pytesseract.image_to_data(..., output_type=Output.DICT)`.
    - @return: Filtered DataFrame with word rows (text, confidence, geometry, grouping ids).
    """
    df = pd.DataFrame(data)
    df['conf'] = pd.to_numeric(df['conf'], errors='coerce').fillna(-1)
    df = df[df['conf'] > 0].copy()
    df['text'] = df['text'].fillna('').astype(str).str.strip()
    df = df[df['text'] != '']
    return df


def build_char_dataframe(boxes: str, image_height: int) -> pd.DataFrame:
    """Parse `pytesseract.image_to_boxes` output into top-down pixel boxes.

    Tesseract reports character boxes as ``char left bottom right top page`` with
    the origin at the bottom-left corner of the image.

    Doxygen:
    - @param boxes: Raw string returned by `image_to_boxes`.
    - @param image_height: Height of the OCR'd image in pixels.
    - @return: DataFrame with columns char, left, top, width, height.
    """
    rows: List[Dict[str, Any]] = []
    for raw in (boxes or "").splitlines():
        parts = raw.split(" ")
        if len(parts) < 5:
            continue
        try:
            x1, y1, x2, y2 = (int(v) for v in parts[1:5])
        except ValueError:
            continue
        rows.append({
            'char': parts[0],
            'left': x1,
            'top': image_height - y2,
            'width': max(0, x2 - x1),
            'height': max(0, y2 - y1),
        })
    return pd.DataFrame(rows, columns=_CHAR_COLUMNS)


def _split_word_into_characters(text: str, bbox: BBox) -> List[Character]:
    if not text:
        return []
    step = bbox.width / len(text)
    return [
        Character(text=ch, bbox=BBox(bbox.left + i * step, bbox.top, step, bbox.height))
        for i, ch in enumerate(text)
    ]


def _characters_for_word(text: str, bbox: BBox, chars: Optional[pd.DataFrame]) -> List[Character]:
    if chars is None or chars.empty:
        return _split_word_into_characters(text, bbox)
    cx = chars['left'] + chars['width'] / 2.0
    cy = chars['top'] + chars['height'] / 2.0
    mask = (cx >= bbox.left) & (cx <= bbox.right) & (cy >= bbox.top) & (cy <= bbox.bottom)
    inside = chars[mask].sort_values('left')
    if inside.empty:
        return _split_word_into_characters(text, bbox)
    return [
        Character(text=str(r.char), bbox=BBox(float(r.left), float(r.top), float(r.width), float(r.height)))
        for r in inside.itertuples(index=False)
    ]


def build_page_tree(
    df: pd.DataFrame,
    image_width: int,
    image_height: int,
    dpi: int = 300,
    chars: Optional[pd.DataFrame] = None,
    number: int = 1,
) -> Page:
    """Group Tesseract word rows into a Page tree.

    Doxygen:
    - @param df: DataFrame produced by `build_dataframe_from_tesseract`.
    - @param image_width: Width of the OCR'd image in pixels.
    - @param image_height: Height of the OCR'd image in pixels.
    - @param dpi: Resolution of the image.
    - @param chars: Optional character boxes from `build_char_dataframe`.
    - @param number: 1-based page number.
    - @return: Page with paragraphs, lines, words and characters in reading order.
    """
    page = Page(image_width=int(image_width), image_height=int(image_height), dpi=int(dpi), number=number)
    if df.empty:
        return page
    for _, g_para in df.groupby(['block_num', 'par_num'], sort=True):
        lines: List[Line] = []
        for _, g_line in g_para.groupby('line_num', sort=True):
            g_sorted = g_line.sort_values('left')
            words: List[Word] = []
            for r in g_sorted.itertuples(index=False):
                bbox = BBox(float(r.left), float(r.top), float(r.width), float(r.height))
                text = str(r.text)
                words.append(Word(
                    text=text,
                    bbox=bbox,
                    characters=_characters_for_word(text, bbox, chars),
                    confidence=float(r.conf),
                ))
            lines.append(Line(
                text=' '.join(w.text for w in words),
                bbox=union_bbox(w.bbox for w in words),
                words=words,
            ))
        page.paragraphs.append(Paragraph(bbox=union_bbox(ln.bbox for ln in lines), lines=lines))
    return page


def preprocess_image_for_ocr(img_bgr: np.ndarray) -> np.ndarray:
    """Preprocess a BGR image to improve OCR accuracy.

    Doxygen:
    - @param img_bgr: Input image in BGR format.
    - @return: Preprocessed BGR image.
    """
    gray = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2GRAY)
    gray = cv2.bilateralFilter(gray, d=7, sigmaColor=50, sigmaSpace=50)
    th = cv2.adaptiveThreshold(gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                               cv2.THRESH_BINARY, 31, 10)
    th = cv2.medianBlur(th, 3)
    # convert back to 3-channel BGR for consistency with downstream
    return cv2.cvtColor(th, cv2.COLOR_GRAY2BGR)


def binarize_hook(session: Session) -> Callable[[str], str]:
    """Build a preprocessing hook that writes a binarised copy into ``session``."""

    def _hook(bitmap_path: str) -> str:
        img_bgr = cv2.imread(bitmap_path)
        if img_bgr is None:
            raise RuntimeError(f"Failed to load image: {bitmap_path}")
        out_path = session.create_temp_file(".png")
        if not cv2.imwrite(out_path, preprocess_image_for_ocr(img_bgr)):
            raise RuntimeError(f"Failed to write image: {out_path}")
        return out_path

    return _hook


class TesseractEngine:
    """Runs Tesseract on a page bitmap and returns its text tree."""

    def __init__(
        self,
        tesseract_cmd: Optional[str] = None,
        timeout: Optional[float] = None,
        config: str = "",
        with_characters: bool = True,
        default_dpi: int = 300,
    ) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.timeout = timeout or 0
        self.config = config
        self.with_characters = with_characters
        self.default_dpi = default_dpi

    def recognize(self, image: Image.Image, language: str = "eng") -> Page:
        """Run OCR on ``image``.

        Doxygen:
        - @param image: Page bitmap (PIL image).
        - @param language: Tesseract language(s), e.g. 'eng' or 'rus+eng'.
        - @return: Page tree in pixel units.
        - @throws RuntimeError: If Tesseract fails or times out.
        """
        data = pytesseract.image_to_data(
            image, lang=language, config=self.config,
            output_type=pytesseract.Output.DICT, timeout=self.timeout,
        )
        df = build_dataframe_from_tesseract(data)
        chars = None
        if self.with_characters and not df.empty:
            boxes = pytesseract.image_to_boxes(image, lang=language, config=self.config, timeout=self.timeout)
            chars = build_char_dataframe(boxes, image.height)
        dpi = image.info.get("dpi", (self.default_dpi, self.default_dpi))[0]
        logger.debug("Tesseract found %d words (lang=%s)", len(df), language)
        return build_page_tree(df, image.width, image.height, dpi=int(round(dpi)), chars=chars)

"""Debug overlay: burn OCR block rectangles into the page bitmap.

Uses OpenCV on a numpy copy of the image, then converts back to PIL.
"""

from __future__ import annotations

from typing import Iterable, Tuple

import cv2
import numpy as np
from PIL import Image

from ocrpdf.docs.geometry import BBox
from ocrpdf.docs.model import Line, Page

# RGB colours
PARAGRAPH_COLOR = (0, 128, 0)
LINE_COLOR = (0, 0, 255)
WORD_COLOR = (255, 0, 0)
COMBINED_LINE_COLOR = (255, 105, 180)
PEN_WIDTH = 3


def _rect(canvas: np.ndarray, bbox: BBox, color: Tuple[int, int, int]) -> None:
    x0, y0 = int(bbox.left), int(bbox.top)
    x1, y1 = int(bbox.left + bbox.width), int(bbox.top + bbox.height)
    cv2.rectangle(canvas, (x0, y0), (x1, y1), color, PEN_WIDTH)


def draw_blocks(image: Image.Image, page: Page, combined_lines: Iterable[Line] = ()) -> Image.Image:
    """Return an RGB copy of ``image`` with the page's block structure drawn on it.

    Doxygen:
    - @param image: Page bitmap the tree was recognized from.
    - @param page: Recognized tree in pixel units.
    - @param combined_lines: Output of the row-merge pass; only merged lines are drawn.
    - @return: New RGB image; paragraphs green, lines blue, words red, merged rows pink.
    """
    canvas = np.array(image.convert("RGB"))
    for para in page.paragraphs:
        _rect(canvas, para.bbox, PARAGRAPH_COLOR)
        for line in para.lines:
            for word in line.words:
                _rect(canvas, word.bbox, WORD_COLOR)
            _rect(canvas, line.bbox, LINE_COLOR)
    for line in combined_lines:
        if line.was_combined:
            _rect(canvas, line.bbox, COMBINED_LINE_COLOR)
    out = Image.fromarray(canvas)
    out.info["dpi"] = image.info.get("dpi", (page.dpi, page.dpi))
    return out

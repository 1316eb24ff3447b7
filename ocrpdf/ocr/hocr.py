"""hOCR reader: turns Tesseract hOCR markup into page trees.

Pages are ``ocr_page`` elements, paragraphs ``ocr_par``, lines any of
``ocr_line``/``ocr_caption``/``ocr_textfloat``/``ocr_header`` and words
``ocrx_word``. Coordinates come from the ``bbox`` entry of each element's
``title`` and are pixels of the page image named by ``image "..."``.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Dict, List, Optional, Tuple

from ocrpdf.docs.geometry import BBox, union_bbox
from ocrpdf.docs.model import Line, Page, Paragraph, Word

from .reader import _split_word_into_characters

BBOX_RE = re.compile(r"bbox\s+(-?\d+)\s+(-?\d+)\s+(-?\d+)\s+(-?\d+)")
IMAGE_RE = re.compile(r'image\s+"([^"]*)"')
SCAN_RES_RE = re.compile(r"scan_res\s+(\d+)")
WCONF_RE = re.compile(r"x_wconf\s+(-?\d+(?:\.\d+)?)")

_LINE_CLASSES = {"ocr_line", "ocr_caption", "ocr_textfloat", "ocr_header"}
_VOID_TAGS = {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "wbr"}


@dataclass
class HocrPage:
    """One ``ocr_page``: its text tree and the frame of the image it describes."""

    page: Page
    image_file: Optional[str]
    frame: int = 0


def _parse_bbox(title: str) -> Optional[BBox]:
    m = BBOX_RE.search(title)
    if not m:
        return None
    x1, y1, x2, y2 = (int(v) for v in m.groups())
    return BBox.from_edges(x1, y1, x2, y2)


class _HocrParser(HTMLParser):
    """Builds one Page per ``ocr_page`` element."""

    def __init__(self, base_dir: str = "", default_dpi: int = 300) -> None:
        super().__init__(convert_charrefs=True)
        self.base_dir = base_dir
        self.default_dpi = default_dpi
        self.pages: List[HocrPage] = []
        self._stack: List[Tuple[str, Optional[str]]] = []
        self._frames_seen: Dict[Optional[str], int] = {}
        self._page: Optional[HocrPage] = None
        self._para: Optional[List[Line]] = None
        self._line_bbox: Optional[BBox] = None
        self._words: Optional[List[Word]] = None
        self._word: Optional[Tuple[BBox, float]] = None
        self._word_text: List[str] = []

    def handle_starttag(self, tag: str, attrs: list) -> None:
        if tag in _VOID_TAGS:
            return
        d = dict(attrs)
        classes = set((d.get("class") or "").split())
        title = d.get("title") or ""
        role = None
        if "ocr_page" in classes:
            role = "page"
            self._open_page(title)
        elif self._page is None:
            pass
        elif "ocr_par" in classes:
            role = "par"
            self._para = []
        elif classes & _LINE_CLASSES and self._words is None:
            role = "line"
            self._line_bbox = _parse_bbox(title)
            self._words = []
        elif "ocrx_word" in classes and self._words is not None:
            bbox = _parse_bbox(title)
            if bbox is not None:
                role = "word"
                m = WCONF_RE.search(title)
                self._word = (bbox, float(m.group(1)) if m else -1.0)
                self._word_text = []
        self._stack.append((tag, role))

    def handle_startendtag(self, tag: str, attrs: list) -> None:
        # a self-closed element never holds text
        pass

    def handle_data(self, data: str) -> None:
        if self._word is not None:
            self._word_text.append(data)

    def handle_endtag(self, tag: str) -> None:
        if tag in _VOID_TAGS or all(t != tag for t, _ in self._stack):
            return
        while self._stack:
            open_tag, role = self._stack.pop()
            self._close(role)
            if open_tag == tag:
                break

    def finish(self) -> List[HocrPage]:
        self.close()
        while self._stack:
            self._close(self._stack.pop()[1])
        return self.pages

    def _open_page(self, title: str) -> None:
        bbox = _parse_bbox(title) or BBox(0, 0, 0, 0)
        m = SCAN_RES_RE.search(title)
        image = IMAGE_RE.search(title)
        image_file = None
        if image and image.group(1):
            image_file = os.path.join(self.base_dir, image.group(1))
        frame = self._frames_seen.get(image_file, 0)
        self._frames_seen[image_file] = frame + 1
        page = Page(
            image_width=int(bbox.width),
            image_height=int(bbox.height),
            dpi=int(m.group(1)) if m else self.default_dpi,
            number=len(self.pages) + 1,
        )
        self._page = HocrPage(page=page, image_file=image_file, frame=frame)
        self.pages.append(self._page)

    def _close(self, role: Optional[str]) -> None:
        if role == "word":
            bbox, conf = self._word
            text = "".join(self._word_text).strip()
            if text:
                self._words.append(Word(
                    text=text,
                    bbox=bbox,
                    characters=_split_word_into_characters(text, bbox),
                    confidence=conf,
                ))
            self._word = None
            self._word_text = []
        elif role == "line":
            words, self._words = self._words, None
            if words:
                line = Line(
                    text=" ".join(w.text for w in words),
                    bbox=self._line_bbox or union_bbox(w.bbox for w in words),
                    words=words,
                )
                if self._para is not None:
                    self._para.append(line)
                else:
                    self._page.page.paragraphs.append(Paragraph(bbox=line.bbox, lines=[line]))
        elif role == "par":
            lines, self._para = self._para, None
            if lines:
                self._page.page.paragraphs.append(Paragraph(bbox=union_bbox(ln.bbox for ln in lines), lines=lines))
        elif role == "page":
            self._page = None


def parse_hocr(markup: str, base_dir: str = "", default_dpi: int = 300) -> List[HocrPage]:
    """Parse hOCR markup into page trees.

    Doxygen:
    - @param markup: hOCR document text.
    - @param base_dir: Directory relative image paths are resolved against.
    - @param default_dpi: Resolution used when a page carries no ``scan_res``.
    - @return: One HocrPage per ``ocr_page``, in document order. Pages naming the
      same image file get consecutive frame indexes.
    """
    parser = _HocrParser(base_dir=base_dir, default_dpi=default_dpi)
    parser.feed(markup)
    return parser.finish()


def parse_hocr_file(path: str, default_dpi: int = 300) -> List[HocrPage]:
    """Parse an hOCR file; image paths resolve relative to the file's directory."""
    with open(path, "r", encoding="utf-8", errors="replace") as fh:
        markup = fh.read()
    return parse_hocr(markup, base_dir=os.path.dirname(os.path.abspath(path)), default_dpi=default_dpi)

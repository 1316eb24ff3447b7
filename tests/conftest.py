import re
from typing import Callable, Dict, List, Optional

import pytest
from PIL import Image

from ocrpdf.docs.geometry import BBox, union_bbox
from ocrpdf.docs.model import Character, Line, Page, Paragraph, Word
from ocrpdf.errors import DocumentFatalError


def make_word(text, left, top, width, height):
    bbox = BBox(left, top, width, height)
    step = width / max(1, len(text))
    chars = [Character(ch, BBox(left + i * step, top, step, height)) for i, ch in enumerate(text)]
    return Word(text=text, bbox=bbox, characters=chars)


def make_line(*words):
    return Line(text=" ".join(w.text for w in words), bbox=union_bbox(w.bbox for w in words), words=list(words))


def make_page(*paragraph_lines, width=600, height=800, dpi=72):
    """Each positional argument is a list of lines forming one paragraph."""
    paragraphs = [Paragraph(bbox=union_bbox(ln.bbox for ln in lines), lines=list(lines)) for lines in paragraph_lines]
    return Page(image_width=width, image_height=height, dpi=dpi, paragraphs=paragraphs)


def pdf_page_count(pdf: bytes) -> int:
    return len(re.findall(rb"/Type /Page\b", pdf))


class RecordingWriter:
    """In-memory stand-in for PdfPageWriter that keeps every finished page."""

    def __init__(self):
        self.pages: List[Dict] = []
        self._page: Optional[Dict] = None

    @property
    def page_count(self):
        return len(self.pages)

    @property
    def page_size(self):
        return self._page["size"]

    def begin_page(self, width, height):
        assert self._page is None
        self._page = {"size": (width, height), "image": None, "under": [], "direct": []}

    def draw_image(self, data):
        self._page["image"] = data

    def show_text(self, layer, run):
        self._page[layer].append(run)

    def discard_layer(self, layer):
        if self._page is not None:
            self._page[layer] = []

    def abort_page(self):
        self._page = None

    def end_page(self):
        self.pages.append(self._page)
        self._page = None


class FakeEngine:
    def __init__(self, factory: Callable[[Image.Image], Page]):
        self.factory = factory
        self.calls = 0

    def recognize(self, image, language="eng"):
        self.calls += 1
        return self.factory(image)


class FakeRasterizer:
    """Produces blank page bitmaps; raises DocumentFatalError on ``fail_on``."""

    def __init__(self, pages=3, size=(200, 260), fail_on=None, dpi=72):
        self.pages = pages
        self.size = size
        self.fail_on = fail_on
        self.dpi = dpi
        self.requested = []

    def page_count(self, pdf_path):
        return self.pages

    def rasterize_pages(self, pdf_path, start_page, end_page, session):
        self.requested.append((start_page, end_page))
        if self.fail_on is not None and start_page == self.fail_on:
            raise DocumentFatalError(f"rasterizer failed on page {start_page}")
        path = session.create_temp_file(".png")
        Image.new("RGB", self.size, "white").save(path, dpi=(self.dpi, self.dpi))
        return path


@pytest.fixture
def writer():
    return RecordingWriter()


@pytest.fixture
def blank_image():
    return Image.new("RGB", (600, 800), "white")


@pytest.fixture
def simple_page():
    return make_page(
        [make_line(make_word("Hello", 10, 100, 50, 12), make_word("world", 70, 102, 55, 12))],
        [make_line(make_word("Second", 10, 200, 60, 14))],
    )

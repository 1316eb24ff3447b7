from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional, Tuple, Union

from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ocrpdf.errors import DocumentFatalError

logger = logging.getLogger(__name__)

UNDER = "under"
DIRECT = "direct"
LAYERS = (UNDER, DIRECT)

# PDF text render modes
_FILL = 0
_INVISIBLE = 3


@dataclass
class TextRun:
    text: str
    x: float
    y: float
    font_name: str
    font_size: float
    word_spacing: float = 0.0
    char_spacing: float = 0.0


@dataclass
class _PendingPage:
    width: float
    height: float
    image: Optional[bytes] = None
    layers: Dict[str, List[TextRun]] = field(default_factory=lambda: {UNDER: [], DIRECT: []})


class PdfPageWriter:
    """Layered page sink on top of a reportlab canvas.

    A page is buffered between ``begin_page`` and ``end_page``: the under layer
    is drawn first (invisible text), then the page image, then the direct layer
    (visible text). Pages that are never ended are not written.
    """

    def __init__(self, out_path: Union[str, BinaryIO], compress: bool = True) -> None:
        self.out_path = out_path
        try:
            self._canvas = canvas.Canvas(out_path, pageCompression=1 if compress else 0)
        except Exception as exc:
            raise DocumentFatalError(f"Cannot initialise PDF writer for {out_path}: {exc}") from exc
        self._page: Optional[_PendingPage] = None
        self._closed = False
        self.page_count = 0

    def set_metadata(self, author: str = "", title: str = "", subject: str = "", keywords: str = "") -> None:
        if author:
            self._canvas.setAuthor(author)
        if title:
            self._canvas.setTitle(title)
        if subject:
            self._canvas.setSubject(subject)
        if keywords:
            self._canvas.setKeywords(keywords)

    @property
    def page_size(self) -> Tuple[float, float]:
        if self._page is None:
            raise RuntimeError("No page in progress")
        return (self._page.width, self._page.height)

    def begin_page(self, width: float, height: float) -> None:
        if self._closed:
            raise RuntimeError("Writer is closed")
        if self._page is not None:
            raise RuntimeError("begin_page called before the previous page was ended")
        self._page = _PendingPage(float(width), float(height))

    def draw_image(self, data: bytes) -> None:
        """Place encoded image bytes at (0, 0) scaled to the full page."""
        if self._page is None:
            raise RuntimeError("No page in progress")
        self._page.image = data

    def show_text(self, layer: str, run: TextRun) -> None:
        if self._page is None:
            raise RuntimeError("No page in progress")
        if layer not in LAYERS:
            raise ValueError(f"Unknown layer: {layer}")
        self._page.layers[layer].append(run)

    def discard_layer(self, layer: str) -> None:
        if self._page is not None:
            self._page.layers[layer] = []

    def abort_page(self) -> None:
        self._page = None

    def _draw_runs(self, runs: List[TextRun], render_mode: int) -> None:
        if not runs:
            return
        c = self._canvas
        # the text render mode outlives ET; keep it inside this layer
        c.saveState()
        for run in runs:
            t = c.beginText()
            t.setTextRenderMode(render_mode)
            t.setFont(run.font_name, run.font_size)
            t.setCharSpace(run.char_spacing)
            t.setWordSpace(run.word_spacing)
            t.setTextOrigin(run.x, run.y)
            t.textOut(run.text)
            c.drawText(t)
        c.restoreState()

    def end_page(self) -> None:
        page = self._page
        if page is None:
            raise RuntimeError("No page in progress")
        c = self._canvas
        c.setPageSize((page.width, page.height))
        self._draw_runs(page.layers[UNDER], _INVISIBLE)
        if page.image is not None:
            c.drawImage(ImageReader(io.BytesIO(page.image)), 0, 0, width=page.width, height=page.height)
        self._draw_runs(page.layers[DIRECT], _FILL)
        c.showPage()
        self._page = None
        self.page_count += 1

    def save_and_close(self) -> None:
        """Write the finished pages to ``out_path``; an unfinished page is dropped."""
        if self._closed:
            return
        if self._page is not None:
            logger.warning("Dropping unfinished page %d", self.page_count + 1)
            self._page = None
        if self.page_count == 0:
            # a PDF needs at least one page
            self._canvas.showPage()
        try:
            self._canvas.save()
        except OSError as exc:
            raise DocumentFatalError(f"Cannot write PDF {self.out_path}: {exc}") from exc
        finally:
            self._closed = True

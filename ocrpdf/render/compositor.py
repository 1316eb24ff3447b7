"""Page compositor: lays the image, text and debug layers of one page.

Each call to ``PageCompositor.add_page`` is independent; the mode is chosen per
call. OCR and text-layer work for a page runs inside a per-page boundary: a
failure there is recorded on the returned ``PageResult`` and the page is still
emitted with its image layer.

Pages read back from hOCR files and pages built from caller-placed text
locations go through the same page frame and boundary.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from PIL import Image

from ocrpdf.config import PdfMode, PdfSettings, WriteTextMode
from ocrpdf.docs.geometry import BBox, UnitFormat, to_page_points
from ocrpdf.docs.model import Line, Page, TextLocation, clean_text
from ocrpdf.docs.pdf_writer import DIRECT, UNDER, TextRun
from ocrpdf.docs.rows import combine_same_row_lines
from ocrpdf.errors import DocumentFatalError, GeometryError, OcrAttachmentError
from ocrpdf.image.processing import as_bitmap, encode_image, iter_frames, page_size_points
from ocrpdf.ocr.hocr import parse_hocr_file
from ocrpdf.render.draw import draw_blocks
from ocrpdf.render.fonts import resolve_font

logger = logging.getLogger(__name__)

Recognizer = Callable[[Image.Image], Page]
ImageHook = Callable[[Image.Image], Image.Image]

LINE_WORD_SPACING = 0.25
CHARACTER_SPACING = -1.0


def _identity(image: Image.Image) -> Image.Image:
    return image


@dataclass
class PageResult:
    """Outcome of compositing one page."""

    number: int
    mode: PdfMode
    page: Optional[Page] = None
    combined_lines: List[Line] = field(default_factory=list)
    fragments: int = 0
    skipped: int = 0
    error: Optional[OcrAttachmentError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PageCompositor:
    """Renders pages into a page writer according to a ``PdfMode``."""

    def __init__(
        self,
        writer,
        settings: Optional[PdfSettings] = None,
        display_hook: Optional[ImageHook] = None,
        ocr_hook: Optional[ImageHook] = None,
    ) -> None:
        self.writer = writer
        self.settings = settings or PdfSettings()
        self.display_hook = display_hook or _identity
        self.ocr_hook = ocr_hook or _identity
        self.font_name = resolve_font(self.settings.font_name)
        self.page_count = 0

    # -- public API -------------------------------------------------------

    def add_image_file(self, path: str, mode: PdfMode, recognize: Optional[Recognizer] = None) -> List[PageResult]:
        """Composite every frame of an image file as its own page."""
        return [self.add_page(frame, mode, recognize) for frame in iter_frames(path)]

    def add_hocr_file(self, hocr_path: str, mode: PdfMode = PdfMode.OCR) -> List[PageResult]:
        """Composite every page of an hOCR file over the image frame it was read from.

        Doxygen:
        - @param hocr_path: hOCR file; relative image paths resolve against its directory.
        - @param mode: Render mode for every page; the hOCR tree stands in for the recognizer.
        - @return: One PageResult per ``ocr_page``.
        - @throws DocumentFatalError: If the hOCR file or a page image cannot be read.
        """
        try:
            hocr_pages = parse_hocr_file(hocr_path, default_dpi=self.settings.dpi)
        except OSError as exc:
            raise DocumentFatalError(f"Cannot read hOCR file {hocr_path}: {exc}") from exc

        frames_by_file: Dict[str, List[Image.Image]] = {}
        results: List[PageResult] = []
        for hp in hocr_pages:
            if not hp.image_file:
                raise DocumentFatalError(f"hOCR page {hp.page.number} of {hocr_path} names no image")
            frames = frames_by_file.get(hp.image_file)
            if frames is None:
                try:
                    frames = iter_frames(hp.image_file)
                except OSError as exc:
                    raise DocumentFatalError(f"Cannot open page image {hp.image_file}: {exc}") from exc
                frames_by_file[hp.image_file] = frames
            if hp.frame >= len(frames):
                raise DocumentFatalError(
                    f"{hp.image_file} has {len(frames)} frame(s); hOCR page {hp.page.number} needs frame {hp.frame}"
                )
            results.append(self.add_page(frames[hp.frame], mode, lambda _image, page=hp.page: page))
        logger.info("Composited %d hOCR page(s) from %s", len(results), hocr_path)
        return results

    def add_page(self, image: Image.Image, mode: PdfMode, recognize: Optional[Recognizer] = None) -> PageResult:
        """Composite one single-frame bitmap as a finished page.

        Doxygen:
        - @param image: Page bitmap at ``settings.dpi``.
        - @param mode: Render mode for this page.
        - @param recognize: OCR callable returning the page tree; required by every
          mode except IMAGE_ONLY.
        - @return: PageResult; ``error`` is set when OCR/text compositing failed.
        - @throws GeometryError: On invalid coordinate conversions.
        - @throws DocumentFatalError: Raised by collaborators; the page is dropped.
        """
        mode = PdfMode(mode)
        if mode is not PdfMode.IMAGE_ONLY and recognize is None:
            raise ValueError(f"Mode {mode.value} requires an OCR recognizer")

        def _layers(bitmap: Image.Image, result: PageResult) -> None:
            if mode is PdfMode.IMAGE_ONLY:
                self._draw_image(bitmap)
            elif mode is PdfMode.OCR:
                self._draw_image(bitmap)
                self._attach(result, bitmap, recognize, self._write_underlay)
            elif mode is PdfMode.TEXT_ONLY:
                self._attach(result, bitmap, recognize, self._write_text_only)
            else:
                def _blocks(page: Page, res: PageResult) -> None:
                    self._draw_image(draw_blocks(bitmap, page, res.combined_lines))
                    if mode is PdfMode.DEBUG:
                        self._write_direct(page, res)

                if not self._attach(result, bitmap, recognize, _blocks):
                    self._draw_image(bitmap)

        return self._emit_page(image, mode, _layers)

    def write_locations(self, image: Image.Image, locations: Iterable[TextLocation]) -> PageResult:
        """Composite ``image`` over caller-placed text.

        Each location is written on the under layer at its own box, which may be
        in pixels (converted at ``settings.dpi``) or already in page points. The
        font size is the box height, or the minimum size for a flat box; no
        height guard applies.
        """

        def _layers(bitmap: Image.Image, result: PageResult) -> None:
            self._draw_image(bitmap)

            def _write() -> None:
                for loc in locations:
                    self._place(UNDER, clean_text(loc.text), loc.bbox, result, guard=False, allow_points=True)

            self._guard(result, _write)

        return self._emit_page(image, PdfMode.OCR, _layers)

    # -- layers -----------------------------------------------------------

    def _emit_page(self, image: Image.Image, mode: PdfMode,
                   layers: Callable[[Image.Image, PageResult], None]) -> PageResult:
        s = self.settings
        bitmap = as_bitmap(image, s.dpi)
        result = PageResult(number=self.page_count + 1, mode=mode)
        width, height = s.page_size or page_size_points(bitmap, s.dpi)

        self.writer.begin_page(width, height)
        try:
            layers(bitmap, result)
            self.writer.end_page()
        except BaseException:
            self.writer.abort_page()
            raise

        self.page_count += 1
        logger.debug(
            "Page %d composited (mode=%s, fragments=%d, skipped=%d, ok=%s)",
            result.number, mode.value, result.fragments, result.skipped, result.ok,
        )
        return result

    def _draw_image(self, bitmap: Image.Image) -> None:
        s = self.settings
        shown = self.display_hook(bitmap)
        self.writer.draw_image(encode_image(shown, s.image_encoding, s.image_quality, s.dpi))

    def _guard(self, result: PageResult, work: Callable[[], None]) -> bool:
        try:
            work()
            return True
        except (GeometryError, DocumentFatalError):
            raise
        except Exception as exc:
            err = OcrAttachmentError(f"Page {result.number}: {exc}", page_number=result.number)
            err.__cause__ = exc
            result.error = err
            result.fragments = 0
            self.writer.discard_layer(UNDER)
            self.writer.discard_layer(DIRECT)
            logger.warning("OCR layer skipped for page %d: %s", result.number, exc)
            return False

    def _attach(self, result: PageResult, bitmap: Image.Image, recognize: Recognizer,
                compose: Callable[[Page, PageResult], None]) -> bool:
        def _work() -> None:
            page = recognize(self.ocr_hook(bitmap))
            page.number = result.number
            result.page = page
            result.combined_lines = combine_same_row_lines(page, min_overlap=self.settings.row_overlap_ratio)
            compose(page, result)

        return self._guard(result, _work)

    def _font_size(self, height_pt: float) -> int:
        return max(self.settings.min_font_size, int(math.floor(height_pt)))

    def _place(self, layer: str, text: str, bbox: BBox, result: PageResult,
               font_size: Optional[float] = None, word_spacing: float = 0.0,
               char_spacing: float = 0.0, guard: bool = True, allow_points: bool = False) -> None:
        if not text.strip():
            return
        s = self.settings
        if allow_points and bbox.unit is UnitFormat.POINT:
            b = bbox
        else:
            _, page_height = self.writer.page_size
            b = to_page_points(bbox, s.dpi, page_height)
        if guard and b.height > s.max_fragment_height:
            result.skipped += 1
            return
        size = font_size if font_size is not None else self._font_size(b.height)
        self.writer.show_text(layer, TextRun(
            text=text,
            x=b.left,
            y=b.top + s.baseline_nudge,
            font_name=self.font_name,
            font_size=size,
            word_spacing=word_spacing,
            char_spacing=char_spacing,
        ))
        result.fragments += 1

    def _text_lines(self, page: Page, result: PageResult) -> Iterable[Line]:
        if self.settings.combine_rows:
            return result.combined_lines
        return page.iter_lines()

    def _write_underlay(self, page: Page, result: PageResult) -> None:
        mode = self.settings.write_text_mode
        if mode is WriteTextMode.LINE:
            for line in self._text_lines(page, result):
                self._place(UNDER, line.clean_text(), line.bbox, result, word_spacing=LINE_WORD_SPACING)
            return
        for line in page.iter_lines():
            for word in line.aligned_words():
                if mode is WriteTextMode.WORD:
                    text = word.clean_text()
                    if text:
                        self._place(UNDER, text + " ", word.bbox, result)
                    continue
                for ch in word.aligned_characters():
                    self._place(UNDER, clean_text(ch.text), ch.bbox, result, char_spacing=CHARACTER_SPACING)

    def _write_text_only(self, page: Page, result: PageResult) -> None:
        s = self.settings
        lines = list(page.iter_lines())
        font_size: Optional[int] = None
        if s.text_only_font_policy == "page_average" and lines:
            _, page_height = self.writer.page_size
            heights = [to_page_points(ln.bbox, s.dpi, page_height).height for ln in lines]
            font_size = self._font_size(sum(heights) / len(heights))
        for line in lines:
            self._place(DIRECT, line.clean_text(), line.bbox, result, font_size=font_size)

    def _write_direct(self, page: Page, result: PageResult) -> None:
        for line in page.iter_lines():
            self._place(DIRECT, line.clean_text(), line.bbox, result)

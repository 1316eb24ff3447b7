"""High-level pipeline: scanned document → searchable PDF.

``SearchablePdfCompressor`` owns one temp session per job, rasterizes every
page, runs the optional preprocessing hook, composites each page through
``PageCompositor`` and always returns a finished PDF: on a job-level failure
the pages composited so far are saved and the failure is reported.
"""

from __future__ import annotations

import io
import logging
import os
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

from PIL import Image

from ocrpdf.config import PdfMode, PdfSettings
from ocrpdf.docs.buffer import Session, SessionManager
from ocrpdf.docs.model import Page
from ocrpdf.docs.pdf_io import PdfRasterizer
from ocrpdf.docs.pdf_writer import PdfPageWriter
from ocrpdf.errors import DocumentFatalError, GeometryError
from ocrpdf.image.processing import iter_frames
from ocrpdf.ocr.reader import TesseractEngine
from ocrpdf.render.compositor import ImageHook, PageCompositor, PageResult

logger = logging.getLogger(__name__)

PreprocessHook = Callable[[str], str]
FailureCallback = Callable[["SearchablePdfCompressor", Exception], None]
ProgressCallback = Callable[[int, int], None]

PDF_MAGIC = b"%PDF-"


def print_progress_bar(done_pages: int, total_pages: int, width: int = 10) -> None:
    """Render a colored one-line progress bar (10 fixed segments).

    Doxygen:
    - @param done_pages: Number of pages already composited.
    - @param total_pages: Total pages in the document.
    - @param width: Number of bar segments (default 10).
    """
    total = max(1, total_pages)
    done = max(0, min(done_pages, total))
    segments = max(1, int(width))
    filled = segments if done >= total else int(done / total * segments)
    pending = max(0, segments - filled)
    GREEN = "\x1b[32m"
    RED = "\x1b[31m"
    RESET = "\x1b[0m"
    bar = f"{GREEN}{'█'*filled}{RESET}{RED}{'█'*pending}{RESET} [{done}/{total_pages}]"
    print(f"\r{bar}", end="", flush=True)


@dataclass
class JobReport:
    """Outcome of one document job; ``pdf`` is always a complete document."""

    success: bool = False
    error: Optional[Exception] = None
    pages: List[PageResult] = field(default_factory=list)
    pdf: bytes = b""

    @property
    def page_errors(self) -> List[Exception]:
        return [p.error for p in self.pages if p.error is not None]


def _identity_path(path: str) -> str:
    return path


def _blank_document() -> bytes:
    """A one-page empty PDF, built in memory for jobs that fail before their writer exists."""
    buf = io.BytesIO()
    PdfPageWriter(buf).save_and_close()
    return buf.getvalue()


def _persist(path: str, data: bytes) -> None:
    try:
        with open(path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
    except OSError as exc:
        raise DocumentFatalError(f"Cannot write session file {path}: {exc}") from exc


class SearchablePdfCompressor:
    """Drives rasterizer, OCR engine and compositor across a whole document.

    Collaborators are injectable: ``rasterizer`` needs ``page_count(path)`` and
    ``rasterize_pages(path, start, end, session)``; ``engine`` needs
    ``recognize(image, language)``.
    """

    def __init__(
        self,
        settings: Optional[PdfSettings] = None,
        rasterizer=None,
        engine=None,
        sessions: Optional[SessionManager] = None,
        mode: PdfMode = PdfMode.OCR,
        preprocess_hook: Optional[PreprocessHook] = None,
        on_exception: Optional[FailureCallback] = None,
        display_hook: Optional[ImageHook] = None,
        ocr_hook: Optional[ImageHook] = None,
        on_page: Optional[ProgressCallback] = None,
    ) -> None:
        self.settings = settings or PdfSettings()
        s = self.settings
        self.rasterizer = rasterizer or PdfRasterizer(dpi=s.dpi, poppler_path=s.poppler_path, timeout=s.timeout)
        self.engine = engine or TesseractEngine(tesseract_cmd=s.tesseract_cmd, timeout=s.timeout, default_dpi=s.dpi)
        self.sessions = sessions or SessionManager()
        self.mode = PdfMode(mode)
        self.preprocess_hook = preprocess_hook or _identity_path
        self.on_exception = on_exception
        self.display_hook = display_hook
        self.ocr_hook = ocr_hook
        self.on_page = on_page
        self._executor: Optional[ThreadPoolExecutor] = None

    # -- entry points -----------------------------------------------------

    def create_searchable_pdf(self, data: bytes) -> JobReport:
        """Run one job over ``data`` (PDF or image bytes) and return its report.

        The session created for the job is destroyed before returning, whatever
        the outcome.
        """
        try:
            session = self.sessions.create_session()
        except DocumentFatalError as exc:
            logger.error("Cannot start job: %s", exc)
            return self._fail(JobReport(pdf=_blank_document()), exc)
        logger.info("Job started in session %s (%d bytes, mode=%s)", session.id, len(data), self.mode.value)
        try:
            return self._compress_and_ocr(session, data)
        finally:
            self.sessions.destroy_session(session.id)

    def create_searchable_pdf_file(self, input_path: str, output_path: str) -> JobReport:
        with open(input_path, "rb") as f:
            data = f.read()
        report = self.create_searchable_pdf(data)
        if report.pdf:
            with open(output_path, "wb") as f:
                f.write(report.pdf)
        return report

    def submit(self, data: bytes, executor: Optional[Executor] = None) -> "Future[JobReport]":
        """Run ``create_searchable_pdf`` on a worker thread."""
        if executor is None:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ocrpdf")
            executor = self._executor
        return executor.submit(self.create_searchable_pdf, data)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        leftover = self.sessions.active_sessions()
        if leftover:
            logger.warning("%d session(s) still open at close: %s", len(leftover), ", ".join(leftover))

    # -- job --------------------------------------------------------------

    def _recognize(self, image: Image.Image) -> Page:
        return self.engine.recognize(image, self.settings.language)

    def _iter_page_bitmaps(self, session: Session, data: bytes) -> Iterator[Tuple[int, int, str]]:
        if data[:len(PDF_MAGIC)] == PDF_MAGIC:
            pdf_path = session.create_temp_file(".pdf")
            _persist(pdf_path, data)
            total = self.rasterizer.page_count(pdf_path)
            for number in range(1, total + 1):
                yield number, total, self.rasterizer.rasterize_pages(pdf_path, number, number, session)
            return

        image_path = session.create_temp_file(".img")
        _persist(image_path, data)
        try:
            frames = iter_frames(image_path)
        except OSError as exc:
            raise DocumentFatalError(f"Input is neither a PDF nor a readable image: {exc}") from exc
        for number, frame in enumerate(frames, start=1):
            frame_path = session.create_temp_file(".png")
            try:
                frame.save(frame_path)
            except OSError as exc:
                raise DocumentFatalError(f"Cannot write frame {number} to session {session.id}: {exc}") from exc
            yield number, len(frames), frame_path

    def _compress_and_ocr(self, session: Session, data: bytes) -> JobReport:
        s = self.settings
        report = JobReport()
        try:
            output_path = session.create_temp_file(".pdf")
            writer = PdfPageWriter(output_path)
        except DocumentFatalError as exc:
            report.pdf = _blank_document()
            return self._fail(report, exc)
        writer.set_metadata(author=s.author, title=s.title, subject=s.subject, keywords=s.keywords)
        compositor = PageCompositor(writer, s, display_hook=self.display_hook, ocr_hook=self.ocr_hook)

        try:
            for number, total, bitmap_path in self._iter_page_bitmaps(session, data):
                bitmap_path = self.preprocess_hook(bitmap_path)
                for frame in iter_frames(bitmap_path):
                    report.pages.append(compositor.add_page(frame, self.mode, self._recognize))
                logger.debug("Page %d/%d done", number, total)
                if self.on_page is not None:
                    self.on_page(number, total)
        except GeometryError:
            self._finish(writer, output_path, report)
            raise
        except Exception as exc:
            logger.error("Processing stopped after %d page(s): %s", writer.page_count, exc, exc_info=True)
            finish_error = self._finish(writer, output_path, report)
            if finish_error is not None:
                logger.error("Saving the partial document failed: %s", finish_error)
            return self._fail(report, exc)

        finish_error = self._finish(writer, output_path, report)
        if finish_error is not None:
            return self._fail(report, finish_error)
        report.success = True
        logger.info(
            "Job finished: %d page(s), %d without text layer",
            len(report.pages), len(report.page_errors),
        )
        return report

    def _finish(self, writer: PdfPageWriter, output_path: str, report: JobReport) -> Optional[DocumentFatalError]:
        try:
            writer.save_and_close()
            with open(output_path, "rb") as f:
                report.pdf = f.read()
        except DocumentFatalError as exc:
            return exc
        except OSError as exc:
            return DocumentFatalError(f"Cannot read finished PDF {output_path}: {exc}")
        return None

    def _fail(self, report: JobReport, exc: Exception) -> JobReport:
        report.success = False
        report.error = exc
        if self.on_exception is not None:
            self.on_exception(self, exc)
        return report

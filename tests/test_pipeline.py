import io
import os
from concurrent.futures import ThreadPoolExecutor

import pytest
from PIL import Image

from ocrpdf.config import ImageEncoding, PdfMode, PdfSettings
from ocrpdf.docs.buffer import SessionManager
from ocrpdf.errors import DocumentFatalError, GeometryError
from ocrpdf.pipeline.process import SearchablePdfCompressor, print_progress_bar

from conftest import FakeEngine, FakeRasterizer, make_line, make_page, make_word, pdf_page_count

FAKE_PDF = b"%PDF-1.4 scanned document"


def _page_for(image):
    return make_page(
        [make_line(make_word("Invoice", 10, 10, 80, 14))],
        width=image.width, height=image.height,
    )


@pytest.fixture
def sessions(tmp_path):
    return SessionManager(root=str(tmp_path / "sessions"))


def _compressor(sessions, rasterizer=None, engine=None, **kw):
    return SearchablePdfCompressor(
        settings=PdfSettings(dpi=72, image_encoding=ImageEncoding.PNG),
        rasterizer=rasterizer or FakeRasterizer(),
        engine=engine or FakeEngine(_page_for),
        sessions=sessions,
        **kw,
    )


def _session_dirs(sessions):
    if not os.path.isdir(sessions.root):
        return []
    return os.listdir(sessions.root)


def test_pdf_job_writes_every_page(sessions):
    progress = []
    engine = FakeEngine(_page_for)
    compressor = _compressor(sessions, engine=engine, on_page=lambda done, total: progress.append((done, total)))

    report = compressor.create_searchable_pdf(FAKE_PDF)

    assert report.success and report.error is None
    assert report.pdf.startswith(b"%PDF")
    assert pdf_page_count(report.pdf) == 3
    assert [p.number for p in report.pages] == [1, 2, 3]
    assert engine.calls == 3
    assert progress == [(1, 3), (2, 3), (3, 3)]


def test_rasterizer_failure_returns_partial_document(sessions):
    failures = []
    rasterizer = FakeRasterizer(pages=5, fail_on=3)
    compressor = _compressor(sessions, rasterizer=rasterizer, on_exception=lambda c, exc: failures.append((c, exc)))

    report = compressor.create_searchable_pdf(FAKE_PDF)

    assert report.success is False
    assert isinstance(report.error, DocumentFatalError)
    assert len(report.pages) == 2
    assert pdf_page_count(report.pdf) == 2
    assert len(failures) == 1
    assert failures[0][0] is compressor and failures[0][1] is report.error
    assert rasterizer.requested == [(1, 1), (2, 2), (3, 3)]
    assert sessions.active_sessions() == []
    assert _session_dirs(sessions) == []


def test_ocr_failure_on_one_page_does_not_stop_the_job(sessions):
    def flaky(image):
        flaky.calls = getattr(flaky, "calls", 0) + 1
        if flaky.calls == 2:
            raise RuntimeError("tesseract timed out")
        return _page_for(image)

    report = _compressor(sessions, engine=FakeEngine(flaky)).create_searchable_pdf(FAKE_PDF)

    assert report.success
    assert len(report.page_errors) == 1
    assert report.pages[1].error.page_number == 2
    assert pdf_page_count(report.pdf) == 3


def test_geometry_error_is_raised_and_session_cleaned(sessions):
    def broken(image):
        raise GeometryError("box in the wrong unit")

    with pytest.raises(GeometryError):
        _compressor(sessions, engine=FakeEngine(broken)).create_searchable_pdf(FAKE_PDF)
    assert sessions.active_sessions() == []
    assert _session_dirs(sessions) == []


def test_image_input_is_split_into_frames(sessions):
    frames = [Image.new("RGB", (120, 160), c) for c in ("white", "gray")]
    buf = io.BytesIO()
    frames[0].save(buf, "TIFF", save_all=True, append_images=frames[1:])
    rasterizer = FakeRasterizer()

    report = _compressor(sessions, rasterizer=rasterizer).create_searchable_pdf(buf.getvalue())

    assert report.success
    assert pdf_page_count(report.pdf) == 2
    assert rasterizer.requested == []


def test_unreadable_input_still_yields_a_pdf(sessions):
    failures = []
    report = _compressor(sessions, on_exception=lambda c, exc: failures.append(exc)).create_searchable_pdf(b"not a document")

    assert report.success is False
    assert isinstance(report.error, DocumentFatalError)
    assert pdf_page_count(report.pdf) == 1
    assert len(failures) == 1


def test_preprocess_hook_sees_every_page(sessions):
    seen = []

    def hook(path):
        seen.append(path)
        assert os.path.exists(path)
        return path

    _compressor(sessions, preprocess_hook=hook).create_searchable_pdf(FAKE_PDF)
    assert len(seen) == 3
    assert len(set(seen)) == 3


def test_image_only_mode_skips_ocr(sessions):
    engine = FakeEngine(_page_for)
    report = _compressor(sessions, engine=engine, mode=PdfMode.IMAGE_ONLY).create_searchable_pdf(FAKE_PDF)
    assert report.success
    assert engine.calls == 0


def test_submit_runs_jobs_on_worker_threads(sessions):
    compressor = _compressor(sessions)
    with ThreadPoolExecutor(max_workers=3) as pool:
        futures = [compressor.submit(FAKE_PDF, pool) for _ in range(3)]
        reports = [f.result() for f in futures]
    assert all(r.success for r in reports)
    assert all(pdf_page_count(r.pdf) == 3 for r in reports)
    assert sessions.active_sessions() == []


def test_submit_with_own_executor(sessions):
    compressor = _compressor(sessions)
    try:
        assert compressor.submit(FAKE_PDF).result().success
    finally:
        compressor.close()


def test_create_searchable_pdf_file(sessions, tmp_path):
    src = tmp_path / "in.pdf"
    src.write_bytes(FAKE_PDF)
    out = tmp_path / "out.pdf"

    report = _compressor(sessions).create_searchable_pdf_file(str(src), str(out))

    assert report.success
    assert out.read_bytes() == report.pdf


def test_print_progress_bar_renders_counts(capsys):
    print_progress_bar(1, 4)
    print_progress_bar(4, 4)
    out = capsys.readouterr().out
    assert "[1/4]" in out and "[4/4]" in out


def test_session_failure_still_reports_and_returns_a_pdf(tmp_path):
    root = tmp_path / "occupied"
    root.write_bytes(b"")
    failures = []
    compressor = _compressor(SessionManager(root=str(root)), on_exception=lambda c, exc: failures.append(exc))

    report = compressor.create_searchable_pdf(FAKE_PDF)

    assert report.success is False
    assert isinstance(report.error, DocumentFatalError)
    assert failures == [report.error]
    assert pdf_page_count(report.pdf) == 1


def test_output_file_failure_is_reported_once(sessions, monkeypatch):
    failures = []

    def no_room(self, ext_with_dot=""):
        raise DocumentFatalError("session disk is full")

    monkeypatch.setattr("ocrpdf.docs.buffer.Session.create_temp_file", no_room)
    compressor = _compressor(sessions, on_exception=lambda c, exc: failures.append(exc))

    report = compressor.create_searchable_pdf(FAKE_PDF)

    assert report.success is False
    assert len(failures) == 1
    assert pdf_page_count(report.pdf) == 1
    assert sessions.active_sessions() == []

import pytest
from PIL import Image
from pdf2image.exceptions import PDFPageCountError

from ocrpdf.docs import pdf_io
from ocrpdf.docs.buffer import SessionManager
from ocrpdf.docs.pdf_io import PdfRasterizer
from ocrpdf.errors import DocumentFatalError
from ocrpdf.image.processing import iter_frames


@pytest.fixture
def session(tmp_path):
    with SessionManager(root=str(tmp_path / "sessions")).session() as s:
        yield s


@pytest.fixture
def pdf_path(tmp_path):
    path = tmp_path / "doc.pdf"
    path.write_bytes(b"%PDF-1.4")
    return str(path)


def _fake_convert(calls):
    def convert(path, dpi, first_page, last_page, poppler_path, timeout):
        calls.append((first_page, last_page, dpi))
        return [Image.new("RGB", (30, 40), "white") for _ in range(first_page, last_page + 1)]
    return convert


def test_single_page_is_rendered_to_png(monkeypatch, session, pdf_path):
    calls = []
    monkeypatch.setattr(pdf_io, "convert_from_path", _fake_convert(calls))

    out = PdfRasterizer(dpi=150, poppler_path="/opt/poppler").rasterize_pages(pdf_path, 2, 2, session)

    assert out.endswith(".png") and out.startswith(session.base_dir)
    assert calls == [(2, 2, 150)]
    with Image.open(out) as img:
        assert round(img.info["dpi"][0]) == 150


def test_page_range_is_rendered_to_multi_frame_tiff(monkeypatch, session, pdf_path):
    monkeypatch.setattr(pdf_io, "convert_from_path", _fake_convert([]))

    out = PdfRasterizer(poppler_path="/opt/poppler").rasterize_pages(pdf_path, 1, 3, session)

    assert out.endswith(".tif")
    assert len(iter_frames(out)) == 3


def test_poppler_failure_is_fatal(monkeypatch, session, pdf_path):
    def broken(*args, **kwargs):
        raise PDFPageCountError("Unable to get page count.")

    monkeypatch.setattr(pdf_io, "convert_from_path", broken)
    with pytest.raises(DocumentFatalError):
        PdfRasterizer(poppler_path="/opt/poppler").rasterize_pages(pdf_path, 1, 1, session)


def test_missing_pdf_is_fatal(session, tmp_path):
    with pytest.raises(DocumentFatalError):
        PdfRasterizer(poppler_path="/opt/poppler").rasterize_pages(str(tmp_path / "gone.pdf"), 1, 1, session)


def test_invalid_range(session, pdf_path):
    with pytest.raises(ValueError):
        PdfRasterizer(poppler_path="/opt/poppler").rasterize_pages(pdf_path, 3, 2, session)


def test_page_count(monkeypatch, pdf_path):
    monkeypatch.setattr(pdf_io, "pdfinfo_from_path", lambda path, poppler_path, timeout: {"Pages": 7})
    assert PdfRasterizer(poppler_path="/opt/poppler").page_count(pdf_path) == 7

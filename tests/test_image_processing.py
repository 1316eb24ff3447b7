import io

import pytest
from PIL import Image

from ocrpdf.config import ImageEncoding
from ocrpdf.image.processing import as_bitmap, encode_image, iter_frames, page_size_points


def test_iter_frames_splits_multi_frame_tiff(tmp_path):
    path = str(tmp_path / "pages.tif")
    frames = [Image.new("L", (40, 30), v) for v in (0, 128, 255)]
    frames[0].save(path, save_all=True, append_images=frames[1:])

    out = iter_frames(path)
    assert len(out) == 3
    assert [f.getpixel((0, 0)) for f in out] == [0, 128, 255]


def test_iter_frames_single_image():
    assert len(iter_frames(Image.new("RGB", (10, 10)))) == 1


def test_as_bitmap_normalises_mode_and_dpi():
    rgba = Image.new("RGBA", (10, 10))
    out = as_bitmap(rgba, 200)
    assert out.mode == "RGB"
    assert out.info["dpi"] == (200, 200)

    gray = Image.new("L", (10, 10))
    assert as_bitmap(gray, 300).mode == "L"
    assert "dpi" not in gray.info


def test_page_size_points():
    assert page_size_points(Image.new("L", (2550, 3300)), 300) == pytest.approx((612, 792))


@pytest.mark.parametrize("encoding, fmt", [
    (ImageEncoding.TIFF, "TIFF"),
    (ImageEncoding.PNG, "PNG"),
    (ImageEncoding.JPEG, "JPEG"),
    (ImageEncoding.BMP, "BMP"),
])
def test_encode_image_formats(encoding, fmt):
    data = encode_image(Image.new("RGB", (64, 48), "white"), encoding, quality=80, dpi=150)
    decoded = Image.open(io.BytesIO(data))
    assert decoded.format == fmt
    assert decoded.size == (64, 48)


def test_encode_image_ccitt_g4_is_bilevel():
    data = encode_image(Image.new("RGB", (64, 48), "white"), ImageEncoding.CCITT_G4, dpi=300)
    decoded = Image.open(io.BytesIO(data))
    assert decoded.format == "TIFF"
    assert decoded.mode == "1"
    assert decoded.info.get("compression") == "group4"


def test_encode_image_jpeg_quality_is_clamped():
    img = Image.new("RGB", (32, 32), "white")
    assert encode_image(img, ImageEncoding.JPEG, quality=500)
    assert encode_image(img, ImageEncoding.JPEG, quality=-3)

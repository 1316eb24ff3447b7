"""Page bitmap helpers: frame normalisation and encoding for the PDF image layer.

Every input (single bitmap, multi-frame TIFF, rasterized page range) is turned
into an ordered list of single-frame PIL images before it reaches the
compositor.
"""

from __future__ import annotations

import io
from typing import List, Tuple, Union

from PIL import Image, ImageSequence

from ocrpdf.config import ImageEncoding
from ocrpdf.docs.geometry import pixels_to_points

_KEEP_MODES = ("1", "L", "RGB")

_PIL_FORMATS = {
    ImageEncoding.TIFF: "TIFF",
    ImageEncoding.PNG: "PNG",
    ImageEncoding.JPEG: "JPEG",
    ImageEncoding.BMP: "BMP",
    ImageEncoding.CCITT_G4: "TIFF",
}


def iter_frames(source: Union[str, Image.Image]) -> List[Image.Image]:
    """Split an image (path or PIL image) into independent single-frame copies.

    Doxygen:
    - @param source: Image path or an already opened PIL image.
    - @return: One loaded image per frame, in frame order.
    """
    if isinstance(source, Image.Image):
        return [frame.copy() for frame in ImageSequence.Iterator(source)]
    with Image.open(source) as img:
        return [frame.copy() for frame in ImageSequence.Iterator(img)]


def as_bitmap(image: Image.Image, dpi: int) -> Image.Image:
    """Normalise colour mode to 1/L/RGB and stamp the working resolution."""
    bitmap = image if image.mode in _KEEP_MODES else image.convert("RGB")
    if bitmap is image:
        bitmap = image.copy()
    bitmap.info["dpi"] = (dpi, dpi)
    return bitmap


def page_size_points(image: Image.Image, dpi: int) -> Tuple[float, float]:
    """Page size in points for an image rendered at ``dpi``."""
    width, height = image.size
    return (pixels_to_points(width, dpi), pixels_to_points(height, dpi))


def encode_image(image: Image.Image, encoding: ImageEncoding, quality: int = 75, dpi: int = 300) -> bytes:
    """Encode a page bitmap for embedding into the PDF.

    Doxygen:
    - @param image: Page bitmap.
    - @param encoding: Target encoding; CCITT_G4 produces a bilevel Group 4 TIFF.
    - @param quality: JPEG quality (1-95), ignored for lossless encodings.
    - @param dpi: Resolution stored in the encoded file.
    - @return: Encoded image bytes.
    """
    buf = io.BytesIO()
    fmt = _PIL_FORMATS[encoding]
    if encoding is ImageEncoding.CCITT_G4:
        image.convert("1").save(buf, fmt, compression="group4", dpi=(dpi, dpi))
    elif encoding is ImageEncoding.JPEG:
        rgb = image if image.mode in ("L", "RGB") else image.convert("RGB")
        rgb.save(buf, fmt, quality=max(1, min(95, int(quality))), dpi=(dpi, dpi))
    elif encoding is ImageEncoding.BMP:
        image.save(buf, fmt)
    else:
        image.save(buf, fmt, dpi=(dpi, dpi))
    return buf.getvalue()

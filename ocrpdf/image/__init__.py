"""Image-level helpers (frame splitting, bitmap normalisation, encoding)."""

from .processing import (
    as_bitmap,
    encode_image,
    iter_frames,
    page_size_points,
)

__all__ = [
    "as_bitmap",
    "encode_image",
    "iter_frames",
    "page_size_points",
]

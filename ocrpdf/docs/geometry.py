"""Bounding boxes and the pixel → page point transform.

Pixel boxes live in image space (origin top-left, Y grows downward) at a known
DPI. Point boxes live in PDF page space (origin bottom-left, Y grows upward).
After conversion ``top`` holds the bottom edge of the box in page space, which
is where a text run's origin is placed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List

from ocrpdf.errors import GeometryError, InvalidUnitError

POINTS_PER_INCH = 72.0


class UnitFormat(str, Enum):
    PIXEL = "pixel"
    POINT = "point"


@dataclass(frozen=True)
class BBox:
    left: float
    top: float
    width: float
    height: float
    unit: UnitFormat = UnitFormat.PIXEL

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise GeometryError(f"Box extents must be non-negative, got {self.width}x{self.height}")

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @classmethod
    def from_edges(cls, left: float, top: float, right: float, bottom: float,
                   unit: UnitFormat = UnitFormat.PIXEL) -> "BBox":
        return cls(left, top, max(0.0, right - left), max(0.0, bottom - top), unit)


def to_page_points(bbox: BBox, dpi: float, page_height_points: float) -> BBox:
    """Convert a pixel box into page points, flipping the vertical axis.

    Doxygen:
    - @param bbox: Box in pixel units.
    - @param dpi: Resolution the pixel box was measured at.
    - @param page_height_points: Height of the target page in points.
    - @return: Box in point units; ``top`` is the box's bottom edge in page space.
    - @throws InvalidUnitError: If ``bbox`` is already in points.
    - @throws GeometryError: If ``dpi`` is not positive.
    """
    if bbox.unit is not UnitFormat.PIXEL:
        raise InvalidUnitError(f"Cannot convert a {bbox.unit.value} box to points; convert exactly once")
    if dpi <= 0:
        raise GeometryError(f"DPI must be positive, got {dpi}")
    scale = POINTS_PER_INCH / float(dpi)
    height = bbox.height * scale
    return BBox(
        left=bbox.left * scale,
        top=page_height_points - bbox.top * scale - height,
        width=bbox.width * scale,
        height=height,
        unit=UnitFormat.POINT,
    )


def pixels_to_points(pixels: float, dpi: float) -> float:
    if dpi <= 0:
        raise GeometryError(f"DPI must be positive, got {dpi}")
    return pixels * POINTS_PER_INCH / float(dpi)


def union_bbox(boxes: Iterable[BBox]) -> BBox:
    """Smallest box containing all ``boxes`` (which must share one unit)."""
    items: List[BBox] = list(boxes)
    if not items:
        raise GeometryError("Cannot build the union of zero boxes")
    unit = items[0].unit
    if any(b.unit is not unit for b in items):
        raise InvalidUnitError("Cannot union boxes of different units")
    return BBox.from_edges(
        min(b.left for b in items),
        min(b.top for b in items),
        max(b.right for b in items),
        max(b.bottom for b in items),
        unit,
    )


def vertical_overlap(a: BBox, b: BBox) -> float:
    """Vertical intersection relative to the smaller of the two heights."""
    inter = max(0.0, min(a.bottom, b.bottom) - max(a.top, b.top))
    denom = min(a.height, b.height)
    if denom <= 0:
        return 0.0
    return inter / denom


def horizontal_overlap(a: BBox, b: BBox) -> float:
    """Horizontal intersection over the combined horizontal span, in [0, 1]."""
    inter = max(0.0, min(a.right, b.right) - max(a.left, b.left))
    denom = max(1.0, max(a.right, b.right) - min(a.left, b.left))
    return inter / denom

"""Row-merge repair for OCR line segmentation.

Tesseract frequently splits one visual text row into several lines (table
cells, columns, font-size changes). ``combine_same_row_lines`` puts them back
together. The result is advisory: it feeds the block visualisation and can
optionally drive the line-granularity text layer.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence

from .geometry import BBox, union_bbox, vertical_overlap
from .model import Line, Page

# Minimum vertical overlap (relative to the smaller height) for two lines to
# share a row. Tunable through PdfSettings.row_overlap_ratio.
DEFAULT_ROW_OVERLAP = 0.5


def _blocked(a: Line, b: Line, row: Sequence[Line], all_lines: Sequence[Line]) -> bool:
    """True if a line outside ``row`` sits in the horizontal gap between a and b."""
    gap_left, gap_right = a.bbox.right, b.bbox.left
    if gap_right <= gap_left:
        return False
    row_top = min(a.bbox.top, b.bbox.top)
    row_bottom = max(a.bbox.bottom, b.bbox.bottom)
    members = {id(ln) for ln in row}
    for other in all_lines:
        if id(other) in members:
            continue
        box = other.bbox
        if box.right <= gap_left or box.left >= gap_right:
            continue
        if min(box.bottom, row_bottom) - max(box.top, row_top) > 0:
            return True
    return False


def _merge(run: List[Line]) -> Line:
    words = sorted((w for ln in run for w in ln.words), key=lambda w: w.bbox.left)
    return Line(
        text=" ".join(ln.text.strip() for ln in run if ln.text.strip()),
        bbox=union_bbox(ln.bbox for ln in run),
        words=words,
        was_combined=True,
    )


def _close(run: List[Line]) -> Line:
    return _merge(run) if len(run) > 1 else replace(run[0])


def combine_same_row_lines(page: Page, min_overlap: float = DEFAULT_ROW_OVERLAP) -> List[Line]:
    """Merge lines that share a visual row and are horizontally adjacent.

    Lines already marked combined still take part in row building and block
    their neighbours, but are never merged again, so a second pass over the
    output changes nothing.

    Doxygen:
    - @param page: Page tree in pixel units.
    - @param min_overlap: Vertical overlap ratio required to share a row.
    - @return: Lines ordered top-to-bottom then left-to-right; merged lines carry
      ``was_combined=True`` and the union bbox, others are copies with
      ``was_combined=False``. Lines already marked combined are kept as-is.
    """
    all_lines = list(page.iter_lines())
    candidates = sorted(all_lines, key=lambda ln: (ln.bbox.top, ln.bbox.left))

    rows: List[List[Line]] = []
    row_boxes: List[BBox] = []
    for ln in candidates:
        for i, box in enumerate(row_boxes):
            if vertical_overlap(box, ln.bbox) >= min_overlap:
                rows[i].append(ln)
                row_boxes[i] = union_bbox([box, ln.bbox])
                break
        else:
            rows.append([ln])
            row_boxes.append(ln.bbox)

    out: List[Line] = []
    for row in rows:
        row.sort(key=lambda ln: ln.bbox.left)
        run: List[Line] = [row[0]]
        for prev, cur in zip(row, row[1:]):
            if prev.was_combined or cur.was_combined or _blocked(prev, cur, row, all_lines):
                out.append(_close(run))
                run = [cur]
            else:
                run.append(cur)
        out.append(_close(run))

    return sorted(out, key=lambda ln: (ln.bbox.top, ln.bbox.left))

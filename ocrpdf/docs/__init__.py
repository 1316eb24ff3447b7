"""Document layer: geometry, the recognized-text tree, temp sessions and PDF I/O.

Exposes:
- Geometry: BBox, UnitFormat, to_page_points
- Text tree: Page, Paragraph, Line, Word, Character, TextLocation
- Row-merge repair: combine_same_row_lines
- Session management: SessionManager, Session
"""

from .geometry import BBox, UnitFormat, to_page_points, union_bbox
from .model import Page, Paragraph, Line, Word, Character, TextLocation, clean_text
from .rows import combine_same_row_lines
from .buffer import Session, SessionManager

__all__ = [
    "BBox",
    "UnitFormat",
    "to_page_points",
    "union_bbox",
    "Page",
    "Paragraph",
    "Line",
    "Word",
    "Character",
    "TextLocation",
    "clean_text",
    "combine_same_row_lines",
    "Session",
    "SessionManager",
]

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Iterator, List

from .geometry import BBox

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Strip OCR noise: control characters, repeated and surrounding whitespace."""
    text = _CONTROL_CHARS.sub("", text or "")
    return _WHITESPACE.sub(" ", text).strip()


def _align_tops(boxes: List[BBox]) -> List[BBox]:
    if not boxes:
        return []
    top = min(b.top for b in boxes)
    return [replace(b, top=top) for b in boxes]


@dataclass
class Character:
    text: str
    bbox: BBox


@dataclass
class Word:
    text: str
    bbox: BBox
    characters: List[Character] = field(default_factory=list)
    confidence: float = -1.0

    def clean_text(self) -> str:
        return clean_text(self.text)

    def aligned_characters(self) -> List[Character]:
        """Copies of the characters with their tops moved to the topmost one."""
        boxes = _align_tops([c.bbox for c in self.characters])
        return [replace(c, bbox=b) for c, b in zip(self.characters, boxes)]


@dataclass
class Line:
    text: str
    bbox: BBox
    words: List[Word] = field(default_factory=list)
    was_combined: bool = False

    def clean_text(self) -> str:
        return clean_text(self.text)

    def aligned_words(self) -> List[Word]:
        """Copies of the words with their tops moved to the topmost one."""
        boxes = _align_tops([w.bbox for w in self.words])
        return [replace(w, bbox=b) for w, b in zip(self.words, boxes)]


@dataclass
class Paragraph:
    bbox: BBox
    lines: List[Line] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(ln.text for ln in self.lines)


@dataclass
class Page:
    """Recognized text geometry of one page image, in pixel units."""

    image_width: int
    image_height: int
    dpi: int
    number: int = 1
    paragraphs: List[Paragraph] = field(default_factory=list)

    def iter_lines(self) -> Iterator[Line]:
        for para in self.paragraphs:
            yield from para.lines

    def iter_words(self) -> Iterator[Word]:
        for line in self.iter_lines():
            yield from line.words

    @property
    def text(self) -> str:
        return "\n\n".join(p.text for p in self.paragraphs)

    def combine_same_row_lines(self, min_overlap: float = 0.5) -> List[Line]:
        from .rows import combine_same_row_lines

        return combine_same_row_lines(self, min_overlap=min_overlap)


@dataclass
class TextLocation:
    """A caller-placed piece of text; ``bbox`` may be in pixels or page points."""

    text: str
    bbox: BBox

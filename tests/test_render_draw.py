import numpy as np
from PIL import Image

from ocrpdf.docs.geometry import BBox
from ocrpdf.docs.model import Line, Page, Paragraph
from ocrpdf.render.draw import (
    COMBINED_LINE_COLOR,
    LINE_COLOR,
    PARAGRAPH_COLOR,
    WORD_COLOR,
    draw_blocks,
)

from conftest import make_word


def _page():
    word = make_word("Hello", 30, 25, 50, 30)
    line = Line(text="Hello", bbox=BBox(20, 20, 160, 40), words=[word])
    para = Paragraph(bbox=BBox(10, 10, 180, 100), lines=[line])
    return Page(image_width=200, image_height=150, dpi=300, paragraphs=[para])


def test_draw_blocks_colors_each_level():
    img = Image.new("RGB", (200, 150), "white")
    merged = Line(text="a b", bbox=BBox(40, 70, 100, 20), was_combined=True)
    out = np.array(draw_blocks(img, _page(), [merged]))

    assert tuple(out[40, 30]) == WORD_COLOR
    assert tuple(out[40, 20]) == LINE_COLOR
    assert tuple(out[80, 10]) == PARAGRAPH_COLOR
    assert tuple(out[80, 40]) == COMBINED_LINE_COLOR
    # untouched interior
    assert tuple(out[40, 100]) == (255, 255, 255)


def test_draw_blocks_skips_lines_that_were_not_merged():
    img = Image.new("RGB", (200, 150), "white")
    plain = Line(text="a", bbox=BBox(40, 70, 100, 20))
    out = np.array(draw_blocks(img, _page(), [plain]))
    assert tuple(out[80, 40]) == (255, 255, 255)


def test_draw_blocks_returns_a_copy():
    img = Image.new("L", (200, 150), 255)
    out = draw_blocks(img, _page())
    assert out.mode == "RGB"
    assert out.size == img.size
    assert img.getpixel((30, 40)) == 255

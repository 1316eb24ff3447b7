import pandas as pd

from ocrpdf.docs.geometry import BBox
from ocrpdf.ocr.reader import (
    build_char_dataframe,
    build_dataframe_from_tesseract,
    build_page_tree,
)


def test_build_dataframe_from_tesseract_filters_empty_and_low_conf():
    data = {
        'level': [5, 5, 5],
        'page_num': [1, 1, 1],
        'block_num': [1, 1, 1],
        'par_num': [1, 1, 1],
        'line_num': [1, 1, 1],
        'word_num': [1, 2, 3],
        'left': [10, 30, 50],
        'top': [10, 10, 10],
        'width': [10, 10, 10],
        'height': [10, 10, 10],
        'conf': ['0', '85', '95'],
        'text': [' ', 'Hello', ''],
    }
    df = build_dataframe_from_tesseract(data)
    # Only one valid row should remain ('Hello')
    assert len(df) == 1
    assert df.iloc[0]['text'] == 'Hello'


def _make_df_for_lines():
    data = {
        'block_num': [1, 1, 1, 1, 2, 2],
        'par_num': [1, 1, 1, 1, 1, 1],
        'line_num': [1, 1, 1, 2, 1, 1],
        'left': [50, 10, 30, 10, 330, 300],
        'top': [10, 10, 11, 40, 15, 15],
        'width': [10, 10, 10, 40, 10, 10],
        'height': [12, 12, 12, 12, 14, 14],
        'conf': [80, 90, 95, 70, 85, 88],
        'text': ['C', 'A', 'B', 'next', 'E', 'D'],
    }
    return pd.DataFrame(data)


def test_build_page_tree_groups_paragraphs_and_lines():
    page = build_page_tree(_make_df_for_lines(), image_width=600, image_height=800, dpi=300)

    assert page.image_width == 600 and page.dpi == 300
    assert len(page.paragraphs) == 2
    first, second = page.paragraphs
    assert [ln.text for ln in first.lines] == ['A B C', 'next']
    assert [ln.text for ln in second.lines] == ['D E']
    assert first.lines[0].bbox == BBox(10, 10, 50, 13)
    assert first.bbox == BBox(10, 10, 50, 42)


def test_build_page_tree_splits_words_without_character_boxes():
    page = build_page_tree(_make_df_for_lines(), 600, 800)
    word = page.paragraphs[0].lines[1].words[0]
    assert word.text == 'next'
    assert [c.text for c in word.characters] == list('next')
    assert word.characters[1].bbox == BBox(20, 40, 10, 12)


def test_build_page_tree_empty_dataframe():
    page = build_page_tree(pd.DataFrame(), 100, 100)
    assert page.paragraphs == []
    assert page.text == ''


def test_build_char_dataframe_flips_to_top_down():
    boxes = "H 10 780 20 790 0\ni 22 780 26 792 0\nbroken line\n"
    chars = build_char_dataframe(boxes, image_height=800)
    assert list(chars['char']) == ['H', 'i']
    assert list(chars['top']) == [10, 8]
    assert list(chars['height']) == [10, 12]
    assert list(chars['width']) == [10, 4]


def test_character_boxes_are_attached_to_their_word():
    df = pd.DataFrame({
        'block_num': [1, 1], 'par_num': [1, 1], 'line_num': [1, 1],
        'left': [10, 40], 'top': [10, 10], 'width': [20, 20], 'height': [10, 10],
        'conf': [90, 90], 'text': ['Hi', 'yo'],
    })
    chars = build_char_dataframe("i 20 780 30 790 0\nH 10 780 20 790 0\ny 40 780 50 790 0\no 50 780 60 790 0", 800)
    page = build_page_tree(df, 100, 800, chars=chars)
    words = page.paragraphs[0].lines[0].words
    assert [c.text for c in words[0].characters] == ['H', 'i']
    assert [c.text for c in words[1].characters] == ['y', 'o']

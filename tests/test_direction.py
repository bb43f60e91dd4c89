import pytest

from caption_core.direction import check_direction, map_alignment


@pytest.mark.parametrize("text, expected", [
    ("Hello", "ltr"),
    ("שלום", "rtl"),
    ("مرحبا بالعالم", "rtl"),
    ("12:30 - !", ""),
    ("", ""),
    ("42 שלום then English", "rtl"),
    ("42 English then שלום", "ltr"),
    ("こんにちは", "ltr"),
])
def test_check_direction(text, expected):
    assert check_direction(text) == expected


@pytest.mark.parametrize("alignment, direction, expected", [
    ("start", "ltr", "left"),
    ("middle", "ltr", "center"),
    ("end", "ltr", "right"),
    ("start", "rtl", "right"),
    ("end", "rtl", "left"),
    ("start", "", "left"),
])
def test_map_alignment(alignment, direction, expected):
    assert map_alignment(alignment, direction) == expected

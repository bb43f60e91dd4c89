import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from caption_core.metrics import wrap_lines


class FakeMeasurer:
    """Every character is 'char_width' px wide, so layout results are exact."""

    def __init__(self, char_width: float = 10.0):
        self.char_width = char_width
        self.width_calls = 0

    def text_width(self, text):
        self.width_calls += 1
        return max((len(line) for line in text.split("\n")), default=0) * self.char_width

    def content_height(self, text, box_width, line_height):
        if not text:
            return 0
        lines = wrap_lines(text, box_width, lambda s: len(s) * self.char_width)
        return len(lines) * line_height


@pytest.fixture
def measurer():
    return FakeMeasurer()


@pytest.fixture(scope="session")
def qapp():
    from PyQt6.QtCore import QCoreApplication
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


SAMPLE_VTT = """WEBVTT

1
00:00:01.000 --> 00:00:04.000
Hello <b>world</b>

2
00:00:02.000 --> 00:00:03.000 A:start
<v Roger>Second</v>

3
00:00:05.000 --> 00:00:07.000
Third line
"""


@pytest.fixture
def sample_vtt():
    return SAMPLE_VTT

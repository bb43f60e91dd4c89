"""
caption_core/metrics.py

What the layout engine needs to know about the outside world:
- ContainerMetrics: the render surface (video area) in pixels.
- TextMeasurer: how wide a string is and how tall it gets once wrapped.

PillowTextMeasurer is the default measurer. Tests use a fixed-width fake.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Protocol

from PIL import ImageFont

from . import log


@dataclass(frozen=True)
class ContainerMetrics:
    width: int
    height: int
    top: int = 0
    left: int = 0
    control_height: int = 0     # player controls strip at the bottom, never covered by cues


class TextMeasurer(Protocol):
    def text_width(self, text: str) -> float:
        ...

    def content_height(self, text: str, box_width: float, line_height: float) -> float:
        ...


def wrap_lines(text: str, box_width: float, width_of) -> List[str]:
    """
    Greedy word wrap. Explicit newlines always break.
    A single word wider than the box gets a line of its own (no hyphenation).
    """
    lines = []
    for paragraph in text.split("\n"):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue

        current = words[0]
        for word in words[1:]:
            candidate = f"{current} {word}"
            if width_of(candidate) <= box_width:
                current = candidate
            else:
                lines.append(current)
                current = word
        lines.append(current)
    return lines


class PillowTextMeasurer:
    """
    Measures with a Pillow font.
    font_path=None uses Pillow's bundled default font at 'font_size' px.
    """

    def __init__(self, font_path: Optional[str] = None, font_size: int = 24):
        self.font_path = font_path
        self.font_size = font_size
        self._font = self._load_font(font_path, font_size)

    @staticmethod
    def _load_font(font_path, font_size):
        if font_path:
            try:
                return ImageFont.truetype(font_path, font_size)
            except OSError as e:
                log.warning(f"Font '{font_path}' could not be loaded ({e}), using the default font")
        return ImageFont.load_default(size=font_size)

    def with_size(self, font_size: int) -> 'PillowTextMeasurer':
        if font_size == self.font_size:
            return self
        return PillowTextMeasurer(self.font_path, font_size)

    def text_width(self, text: str) -> float:
        # Widest line, explicit newlines are respected
        return max((self._font.getlength(line) for line in text.split("\n")), default=0.0)

    def content_height(self, text: str, box_width: float, line_height: float) -> float:
        if not text:
            return 0.0
        lines = wrap_lines(text, box_width, self._font.getlength)
        return math.ceil(len(lines) * line_height)

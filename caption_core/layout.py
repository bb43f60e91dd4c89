"""
caption_core/layout.py

Places every active cue on the render surface.

One layout pass works on a single AvailableArea. Each placed cue takes its
footprint out of that area, so the next cue is placed in what is left:
    1. Font metrics are derived once per pass from the container height.
    2. Horizontal cues occupy line rows (snap) or a percentage of the height.
    3. Vertical cues are split into glyph columns and positioned per glyph.
    4. Overflowing horizontal cues grow (and move up) until their text fits.
    5. The area shrinks from whichever side leaves the larger free rectangle.

UPDATED: Geometry is returned as plain CueGeometry records; nothing is drawn here.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from . import log
from .config import OverlayConfig
from .direction import check_direction, map_alignment
from .errors import LayoutError
from .metrics import ContainerMetrics, PillowTextMeasurer, TextMeasurer
from .models import AUTO, DIRECTION_VERTICAL_LR, Cue


@dataclass
class AvailableArea:
    """Free rectangle for the remaining cues of one layout pass. Only ever shrinks."""
    top: float
    left: float
    right: float
    bottom: float
    width: float
    height: float

    @classmethod
    def for_container(cls, metrics: ContainerMetrics) -> 'AvailableArea':
        usable = metrics.height - metrics.control_height
        return cls(top=0, left=0, right=metrics.width, bottom=usable,
                   width=metrics.width, height=usable)

    def take_rows(self, y: float, h: float) -> None:
        """Removes a horizontal band, keeping the larger of the space above / below it."""
        if h <= 0:
            return
        above = y - self.top
        below = self.bottom - (y + h)
        if above >= below and self.bottom > y:
            self.bottom = max(y, self.top)
        else:
            self.top = min(max(self.top, y + h), self.bottom)
        self.height = self.bottom - self.top

    def take_columns(self, x: float, w: float) -> None:
        """Removes a vertical band, keeping the larger of the space left / right of it."""
        if w <= 0:
            return
        left_space = x - self.left
        right_space = self.right - (x + w)
        if left_space >= right_space and self.right > x:
            self.right = max(x, self.left)
        else:
            self.left = min(max(self.left, x + w), self.right)
        self.width = self.right - self.left


@dataclass(frozen=True)
class FontMetrics:
    font_pt: float          # caption font size, points
    pixel_font: int         # caption font size, pixels
    line_pt: int            # line height, points
    line_px: int            # horizontal line pitch, pixels
    vertical_pitch: int     # column pitch for vertical cues, pixels

    @classmethod
    def for_container(cls, metrics: ContainerMetrics, config: OverlayConfig) -> 'FontMetrics':
        width, height = metrics.width, metrics.height

        font_pt = max(config.min_font_size, height * (config.font_size_percent / 100) / 96 * 72)
        pixel_font = math.floor(font_pt / 72 * 96)
        line_pt = max(config.min_line_height, math.floor(font_pt * config.line_height_ratio))
        line_px = math.ceil(line_pt / 72 * 96)
        vertical_pitch = line_px

        # Snap the pitch so a whole number of lines tiles the height
        rows = math.floor(height / line_px) if line_px else 0
        if rows and line_px * rows < height:
            line_px = math.floor(height / rows)
            line_pt = math.ceil(line_px / 96 * 72)

        # ...and derive the column pitch the same way for the width
        columns = math.floor(width / line_px) if line_px else 0
        if columns and line_px * columns < width:
            vertical_pitch = math.ceil(width / columns)

        return cls(font_pt, pixel_font, int(line_pt), int(line_px), int(vertical_pitch))


@dataclass(frozen=True)
class GlyphPlacement:
    """One character of a vertical cue, relative to the cue box."""
    char: str
    x: float
    y: float
    column: int


@dataclass
class CueGeometry:
    cue: Cue
    x: float
    y: float
    width: float
    height: float
    text_align: str                 # left / center / right
    direction: str                  # rtl / ltr / "" (script direction)
    writing_direction: str          # horizontal / vertical / vertical-lr
    padding: Tuple[int, int] = (0, 0)   # (top/bottom, left/right)
    font_size_px: int = 0
    font_family: str = ""
    line_height_pt: int = 0
    glyphs: List[GlyphPlacement] = field(default_factory=list)
    html: str = ""
    background: Tuple[float, float, float, float] = (0, 0, 0, 0.5)

    @property
    def rect(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.width, self.height

    def to_dict(self) -> dict:
        return {
            "id": self.cue.id,
            "x": self.x, "y": self.y, "width": self.width, "height": self.height,
            "text_align": self.text_align,
            "direction": self.direction,
            "writing_direction": self.writing_direction,
            "padding": list(self.padding),
            "font_size_px": self.font_size_px,
            "font_family": self.font_family,
            "line_height_pt": self.line_height_pt,
            "glyphs": [{"char": g.char, "x": g.x, "y": g.y, "column": g.column} for g in self.glyphs],
            "html": self.html,
            "background": list(self.background),
        }


class LayoutEngine:
    def __init__(self, config: Optional[OverlayConfig] = None, measurer: Optional[TextMeasurer] = None):
        self.config = config or OverlayConfig.get_system_defaults()
        if measurer is None:
            measurer = PillowTextMeasurer(self.config.font_path, self.config.measure_font_size or 24)
        self.measurer = measurer
        self._sized_measurers = {}

    def layout(self, cues: Sequence[Cue], metrics: ContainerMetrics,
               at_time: Optional[float] = None) -> List[CueGeometry]:
        """
        Places 'cues' in the given order. The order matters: earlier cues claim
        space first (see overlay.order_for_layout).
        """
        if not isinstance(metrics, ContainerMetrics):
            raise LayoutError(f"Layout needs ContainerMetrics, got {type(metrics).__name__}")

        area = AvailableArea.for_container(metrics)
        fm = FontMetrics.for_container(metrics, self.config)
        measurer = self._measurer_for(fm)

        results = []
        for cue in cues:
            if cue.is_vertical:
                geometry = self._place_vertical(cue, area, fm, metrics, at_time)
            else:
                geometry = self._place_horizontal(cue, area, fm, metrics, measurer, at_time)
            results.append(geometry)
            log.debug(f"Cue {cue.id} placed at ({geometry.x:.1f}, {geometry.y:.1f}) "
                      f"{geometry.width:.1f}x{geometry.height:.1f}")
        return results

    def _measurer_for(self, fm: FontMetrics):
        # The bundled Pillow measurer follows the caption font size unless one was configured
        if isinstance(self.measurer, PillowTextMeasurer) and self.config.measure_font_size is None:
            size = max(fm.pixel_font, 1)
            if size not in self._sized_measurers:
                self._sized_measurers[size] = self.measurer.with_size(size)
            return self._sized_measurers[size]
        return self.measurer

    def _geometry(self, cue, plain, html, x, y, w, h, padding, fm, glyphs=None) -> CueGeometry:
        direction = check_direction(plain)
        return CueGeometry(
            cue=cue, x=x, y=y, width=w, height=h,
            text_align=map_alignment(cue.alignment, direction),
            direction=direction,
            writing_direction=cue.direction,
            padding=padding,
            font_size_px=fm.pixel_font,
            font_family=self.config.font_family,
            line_height_pt=fm.line_pt,
            glyphs=glyphs or [],
            html=html,
            background=self.config.cue_background_colour,
        )

    # --- HORIZONTAL ---
    def _place_horizontal(self, cue, area, fm, metrics, measurer, at_time) -> CueGeometry:
        plain = cue.plain_text(at_time)
        pad_lr = math.floor(metrics.width * 0.01)
        pad_tb = 0

        # 1. Size: explicit, text bounding box, or the full width
        text_box_pct = 100
        if area.width > 0:
            text_box_width = measurer.text_width(plain) + fm.pixel_font * 2
            text_box_pct = min(math.floor(text_box_width / area.width * 100), 100)

        auto_size = False
        if not cue.size:
            if self.config.size_cues_by_text_box:
                size = text_box_pct
                auto_size = True
            else:
                size = 100
        else:
            size = min(cue.size, 100)

        if cue.text_position != AUTO and auto_size:
            # Narrow the box for the offset, but never below the text itself
            if size - cue.text_position > text_box_pct:
                size -= cue.text_position
            else:
                size = text_box_pct

        # 2. Box
        h = fm.line_px
        if cue.snap_to_lines:
            w = area.width * (size / 100)
        else:
            w = metrics.width * (size / 100)

        # Offset inside the free columns, then kept inside the container
        offset = 0.5 if cue.text_position == AUTO else cue.text_position / 100
        x = area.left + (area.width - w) * offset
        x = min(max(x, 0), metrics.width - w)

        line = 100 if cue.line_position == AUTO else cue.line_position
        if cue.snap_to_lines:
            lines_in_area = math.floor(area.height / fm.line_px) if fm.line_px else 0
            y = max(lines_in_area - 1, 0) * fm.line_px + area.top
        else:
            exclusions = metrics.control_height + fm.line_px + pad_tb * 2
            y = (metrics.height - exclusions) * (line / 100)

        # 3. Overflow: grow until the wrapped text fits
        content = measurer.content_height(plain, max(w - pad_lr * 2, 1), fm.line_px)
        tolerance = self.config.overflow_tolerance
        if content > h * tolerance:
            if cue.snap_to_lines:
                while content > h * tolerance:
                    h += fm.line_px
                    y -= fm.line_px
            else:
                h = content + pad_tb
                exclusions = metrics.control_height + h + pad_tb * 2
                y = (metrics.height - exclusions) * (line / 100)

        # Keep the box inside the container
        lowest = metrics.height - metrics.control_height - h
        y = max(0, min(y, lowest)) if lowest > 0 else 0

        # 4. Claim the rows
        area.take_rows(y, h)

        return self._geometry(cue, plain, cue.render(at_time), x, y, w, h, (pad_tb, pad_lr), fm)

    # --- VERTICAL ---
    def _place_vertical(self, cue, area, fm, metrics, at_time) -> CueGeometry:
        plain = cue.plain_text(at_time)
        pad_lr = 0
        pad_tb = math.floor(metrics.height * 0.01)

        size = min(cue.size, 100) if cue.size else 100
        h = area.height * (size / 100)

        # 1. Glyph columns
        glyph_chars = [c for c in plain if c != "\n"]
        count = len(glyph_chars)
        per_column = max(1, math.floor((h - pad_tb * 2) / fm.pixel_font)) if fm.pixel_font else 1
        columns = math.ceil(count / per_column)
        w = columns * fm.vertical_pitch
        final_count = count - per_column * (columns - 1) if columns else 0
        final_height = final_count * fm.pixel_font

        lr = cue.direction == DIRECTION_VERTICAL_LR

        # 2. Box x: a line column edge (snap) or a percentage of the width
        if cue.snap_to_lines:
            x = area.left if lr else area.right - w
        else:
            line = 0 if cue.line_position == AUTO else cue.line_position
            exclusions = w + pad_lr * 2
            room = metrics.width - exclusions
            x = room * (line / 100) if lr else room - room * (line / 100)

        # 3. Box y: centred in the area or offset by text position
        shift = 0.5 if cue.text_position == AUTO else cue.text_position / 100
        y = area.top + (area.height - h) * shift

        # 4. Glyphs: full columns are start aligned, the last one follows the cue alignment
        glyphs = []
        for i, char in enumerate(glyph_chars):
            column, position = divmod(i, per_column)
            if lr:
                gx = fm.vertical_pitch * column
            else:
                gx = w - fm.vertical_pitch * (column + 1)

            offset = position * fm.pixel_font
            if cue.alignment == "start" or column < columns - 1:
                gy = pad_tb + offset
            elif cue.alignment == "end":
                gy = h - pad_tb - final_height + offset
            else:
                gy = pad_tb + ((h - pad_tb * 2) - final_height) / 2 + offset
            glyphs.append(GlyphPlacement(char, gx, gy, column))

        # 5. Claim the columns
        area.take_columns(x, w)

        return self._geometry(cue, plain, cue.render(at_time), x, y, w, h, (pad_tb, pad_lr), fm, glyphs)

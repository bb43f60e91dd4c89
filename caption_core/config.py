"""
caption_core/config.py

Tunables for parsing, layout and playback.
Passed explicitly into CaptionParser, LayoutEngine and the Qt driver instead of
living as module-level globals.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional, Tuple

from . import log


@dataclass(frozen=True)
class ParseOptions:
    """How cue payloads are turned into markup trees."""
    process_markup: bool = True     # False = keep the raw payload string
    sanitise_markup: bool = True    # drop unknown tags, escape text
    ignore_whitespace: bool = False # True = keep newlines instead of <br />


@dataclass(frozen=True)
class OverlayConfig:
    # -- Font metrics --
    min_font_size: float = 10.0         # points
    min_line_height: float = 16.0       # points
    font_size_percent: float = 4.5      # caption font size as % of container height
    line_height_ratio: float = 1.5      # line height = font size * ratio
    font_family: str = "Verdana, Helvetica, Arial, sans-serif"

    # -- Cue box --
    cue_background_colour: Tuple[float, float, float, float] = (0, 0, 0, 0.5)  # R,G,B,A
    size_cues_by_text_box: bool = False
    overflow_tolerance: float = 1.2     # content may exceed box height by this factor
    control_height: int = 0             # height of the player control strip, px

    # -- Parsing --
    process_markup: bool = True
    sanitise_markup: bool = True
    ignore_whitespace: bool = False
    lrc_last_cue_duration: float = 5.0  # seconds shown for the final LRC line

    # -- Playback --
    refresh_interval_ms: int = 20

    # -- Measurement --
    font_path: Optional[str] = None     # TrueType file for Pillow; None = bundled default
    measure_font_size: Optional[int] = None  # px; None = derived per layout pass

    @staticmethod
    def get_system_defaults() -> 'OverlayConfig':
        return OverlayConfig()

    def parse_options(self) -> ParseOptions:
        return ParseOptions(
            process_markup=self.process_markup,
            sanitise_markup=self.sanitise_markup,
            ignore_whitespace=self.ignore_whitespace,
        )

    def merge_from(self, overrides: Dict[str, Any]) -> 'OverlayConfig':
        """
        Returns a NEW config with the valid entries of 'overrides' applied.
        Unknown keys and values of the wrong type are skipped, not raised.
        """
        known = {f.name: f for f in fields(self)}
        accepted = {}
        for key, value in (overrides or {}).items():
            if key not in known:
                log.warning(f"Unknown config option '{key}' ignored")
                continue
            current = getattr(self, key)
            if not _same_kind(current, value, key):
                log.debug(f"Config option '{key}' rejected: {value!r}")
                continue
            accepted[key] = tuple(value) if isinstance(value, list) else value
        return replace(self, **accepted)


_OPTIONAL_STR = {"font_path"}
_OPTIONAL_INT = {"measure_font_size"}


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same_kind(current, value, key: str) -> bool:
    if key in _OPTIONAL_STR:
        return value is None or isinstance(value, str)
    if key in _OPTIONAL_INT:
        return value is None or (isinstance(value, int) and not isinstance(value, bool))
    if isinstance(current, bool):
        return isinstance(value, bool)
    if _is_number(current):
        return _is_number(value)
    if isinstance(current, tuple):
        return isinstance(value, (tuple, list)) and len(value) == len(current) and all(_is_number(v) for v in value)
    return isinstance(value, type(current))

"""
caption_core/models.py

The Unified Cue Model.
Stores caption data in a normalized form, independent of the source dialect
(WebVTT, SRT, SUB, SBV, Google, LRC).

- Cue: one timed caption entry plus its positioning settings.
- Span nodes: the typed markup tree produced by the tokenizer. Plain text
  nodes are ordinary `str` objects inside a `children` list.
"""

import itertools
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

# --- WRITING DIRECTION ---
DIRECTION_HORIZONTAL = "horizontal"
DIRECTION_VERTICAL = "vertical"         # lines stack right-to-left (vertical-rl)
DIRECTION_VERTICAL_LR = "vertical-lr"   # lines stack left-to-right

_DIRECTION_ALIASES = {
    "horizontal": DIRECTION_HORIZONTAL,
    "vertical": DIRECTION_VERTICAL,
    "vertical-rl": DIRECTION_VERTICAL,
    "rl": DIRECTION_VERTICAL,
    "vertical-lr": DIRECTION_VERTICAL_LR,
    "lr": DIRECTION_VERTICAL_LR,
}

# --- ALIGNMENT ---
ALIGN_START = "start"
ALIGN_MIDDLE = "middle"
ALIGN_END = "end"

_ALIGNMENT_ALIASES = {
    "start": ALIGN_START, "left": ALIGN_START,
    "middle": ALIGN_MIDDLE, "center": ALIGN_MIDDLE,
    "end": ALIGN_END, "right": ALIGN_END,
}

AUTO = "auto"

# Short (legacy) and long (standard WebVTT) setting keys -> Cue field
SETTING_KEYS = {
    "D": "direction", "vertical": "direction",
    "L": "line_position", "line": "line_position",
    "T": "text_position", "position": "text_position",
    "A": "alignment", "align": "alignment",
    "S": "size", "size": "size",
}

_NON_NUMERIC_RE = re.compile(r"[^\d.]")

# Tie-break for cues sharing start and end times: the order they were created in
_creation_counter = itertools.count()


def sanitise_number(value) -> Optional[float]:
    """
    Returns a float for numbers and for strings once non-numeric characters are
    stripped ("50%" -> 50.0). Anything unusable returns None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _NON_NUMERIC_RE.sub("", str(value))
    try:
        return float(cleaned)
    except ValueError:
        return None


def normalise_direction(value) -> str:
    return _DIRECTION_ALIASES.get(str(value).strip().lower(), DIRECTION_HORIZONTAL)


def normalise_alignment(value) -> str:
    return _ALIGNMENT_ALIASES.get(str(value).strip().lower(), ALIGN_MIDDLE)


def normalise_position(value):
    """'auto' stays 'auto'; anything else becomes a float, or 'auto' if unusable."""
    if isinstance(value, str) and value.strip().lower() == AUTO:
        return AUTO
    number = sanitise_number(value)
    return AUTO if number is None else number


def normalise_size(value) -> Optional[float]:
    """0-100, None when unset, unusable or negative."""
    number = sanitise_number(value)
    if number is None or number < 0:
        return None
    return min(number, 100.0)


def parse_settings(settings: str) -> Dict[str, str]:
    """
    Splits 'key:value key:value' into {field_name: raw_value}.
    Unknown keys and tokens without ':' are skipped.
    Later tokens win, so merging is just dict.update().
    """
    result = {}
    for token in (settings or "").split():
        if ":" not in token:
            continue
        key, value = token.split(":", 1)
        name = SETTING_KEYS.get(key)
        if not name:
            continue
        if key in ("line", "position"):
            # WebVTT "line:90%,end" -> keep the value, drop the anchor
            value = value.split(",")[0]
        result[name] = value
    return result


def format_settings(settings: Dict[str, str]) -> str:
    short = {"direction": "D", "line_position": "L", "text_position": "T", "alignment": "A", "size": "S"}
    return " ".join(f"{short[k]}:{v}" for k, v in settings.items())


# --- MARKUP TREE ---
@dataclass
class VoiceSpan:
    """<v Speaker>...</v>"""
    voice: str
    children: List[Any] = field(default_factory=list)


@dataclass
class ClassSpan:
    """<c.class1.class2>...</c>"""
    classes: FrozenSet[str] = frozenset()
    children: List[Any] = field(default_factory=list)


@dataclass
class TimestampSpan:
    """<00:00:01.500>... - children appear once playback reaches time_seconds."""
    time_seconds: float
    token: str = ""
    children: List[Any] = field(default_factory=list)


@dataclass
class FormatSpan:
    """Inline formatting (<b>, <i>, <u>, <ruby>, <rt>) or any tag kept with sanitising off."""
    tag: str
    raw_token: str = ""
    children: List[Any] = field(default_factory=list)


# --- CUE ---
@dataclass(eq=False)
class Cue:
    """
    A single timed caption entry.
    Equality is identity: the tracker compares active lists element by element.
    Fields are fixed after creation apart from 'active' (kept by ActiveCueTracker).
    """
    id: str
    start_time: float
    end_time: float
    payload: Any = ""               # CuePayload tree, or raw string in unprocessed mode
    settings: str = ""              # merged settings string, applied over the fields below
    direction: str = DIRECTION_HORIZONTAL
    snap_to_lines: bool = True
    line_position: Any = AUTO
    text_position: Any = AUTO
    size: Optional[float] = None    # None/0 = auto
    alignment: str = ALIGN_MIDDLE
    pause_on_exit: bool = False
    style_data: str = ""
    order: int = field(default_factory=lambda: next(_creation_counter))

    track: Any = field(default=None, repr=False)
    active: bool = field(default=False, repr=False)

    def __post_init__(self):
        self.id = str(self.id)
        self.start_time = float(self.start_time)
        self.end_time = float(self.end_time)
        if self.end_time < self.start_time:
            raise ValueError(f"Cue {self.id!r} ends ({self.end_time}) before it starts ({self.start_time})")

        raw_line = self.line_position
        parsed = parse_settings(self.settings)
        if "direction" in parsed:
            self.direction = parsed["direction"]
        if "alignment" in parsed:
            self.alignment = parsed["alignment"]
        if "line_position" in parsed:
            raw_line = parsed["line_position"]
        if "text_position" in parsed:
            self.text_position = parsed["text_position"]
        if "size" in parsed:
            self.size = parsed["size"]

        self.direction = normalise_direction(self.direction)
        self.alignment = normalise_alignment(self.alignment)
        if isinstance(raw_line, str) and "%" in raw_line:
            self.snap_to_lines = False
        self.line_position = normalise_position(raw_line)
        self.text_position = normalise_position(self.text_position)
        self.size = normalise_size(self.size)

    @property
    def sort_key(self):
        return self.start_time, self.end_time, self.order

    @property
    def is_vertical(self) -> bool:
        return self.direction != DIRECTION_HORIZONTAL

    def render(self, at_time: Optional[float] = None) -> str:
        """Payload markup as it should look at 'at_time' (None = everything)."""
        if isinstance(self.payload, str):
            return self.payload
        return self.payload.render(at_time)

    def plain_text(self, at_time: Optional[float] = None) -> str:
        if isinstance(self.payload, str):
            return self.payload
        return self.payload.plain_text(at_time)

    @property
    def source_text(self) -> str:
        if isinstance(self.payload, str):
            return self.payload
        return self.payload.source

    def __str__(self):
        return f"Cue:{self.id}\n{self.render()}"

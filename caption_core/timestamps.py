"""
caption_core/timestamps.py

Timestamp recognizers, one per caption dialect.

Each grammar is independent and returns a TimestampMatch (or None), so the
parser can try them in a fixed priority order:
    1. SRT / WebVTT   00:00:01.000 --> 00:00:04.000 [settings]
    2. SUB (VOBSub)   00:00:01.00,00:00:04.00 [settings]
    3. SBV (YouTube)  0:00:01.000,0:00:04.000 [settings]
    4. Google         1.5 +2.0 [settings]
LRC lines ([mm:ss.xx]payload) and inline karaoke chunks (<00:00:01.500>) are
handled by separate helpers because they do not carry an end time.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

# Regex for the four block-level grammars. The trailing group is the settings string.
SRT_TIMESTAMP_RE = re.compile(
    r"^(\d{2,})?:?(\d{2}):(\d{2})[.,](\d+)\s+-->\s+(\d{2,})?:?(\d{2}):(\d{2})[.,](\d+)\s*(.*)")
SUB_TIMESTAMP_RE = re.compile(
    r"^(\d{2})?:?(\d{2}):(\d{2})\.(\d+),(\d{2})?:?(\d{2}):(\d{2})\.(\d+)\s*(.*)")
SBV_TIMESTAMP_RE = re.compile(
    r"^(\d+)?:?(\d{2}):(\d{2})\.(\d+),(\d+)?:?(\d{2}):(\d{2})\.(\d+)\s*(.*)")
GOOGLE_TIMESTAMP_RE = re.compile(r"^([\d.]+)\s+\+([\d.]+)\s*(.*)")

# Single-line lyric cue: [mm:ss.xx]text (hours optional)
LRC_TIMESTAMP_RE = re.compile(r"^\[(\d{2})?:?(\d{2}):(\d{2})\.(\d{2})\]\s*(.*?)$")
# LRC ID tag line, e.g. [ti:Song] or [ar:Artist]
LRC_TAG_RE = re.compile(r"^\[[a-z]+:[^\]]*\]\s*$", re.IGNORECASE)
# Inline timestamp inside a payload tag, e.g. <00:01.500>
CHUNK_TIMESTAMP_RE = re.compile(r"(\d{2})?:?(\d{2}):(\d{2})[.,](\d+)")


@dataclass(frozen=True)
class TimestampMatch:
    dialect: str
    start: float
    end: float
    settings: str = ""


def to_seconds(hours, minutes, seconds, fraction) -> float:
    """hours*3600 + minutes*60 + seconds + 0.<fraction>, missing groups count as 0."""
    return (int(hours or 0) * 3600
            + int(minutes or 0) * 60
            + int(seconds or 0)
            + float("0." + (fraction or "0")))


def _range_match(dialect: str, m) -> TimestampMatch:
    g = m.groups()
    return TimestampMatch(
        dialect=dialect,
        start=to_seconds(*g[0:4]),
        end=to_seconds(*g[4:8]),
        settings=(g[8] or "").strip(),
    )


def _google_match(m) -> Optional[TimestampMatch]:
    try:
        start = float(m.group(1))
        duration = float(m.group(2))
    except ValueError:
        # "1.2.3" satisfies the character class but is not a number
        return None
    return TimestampMatch("google", start, start + duration, (m.group(3) or "").strip())


class TimestampGrammar:
    """A named recognizer: match(line) -> TimestampMatch | None."""

    def __init__(self, name: str, pattern, convert: Callable):
        self.name = name
        self.pattern = pattern
        self._convert = convert

    def match(self, line: str) -> Optional[TimestampMatch]:
        m = self.pattern.match(line.strip())
        if not m:
            return None
        return self._convert(m)

    def __repr__(self):
        return f"TimestampGrammar({self.name!r})"


SRT_GRAMMAR = TimestampGrammar("srt", SRT_TIMESTAMP_RE, lambda m: _range_match("srt", m))
SUB_GRAMMAR = TimestampGrammar("sub", SUB_TIMESTAMP_RE, lambda m: _range_match("sub", m))
SBV_GRAMMAR = TimestampGrammar("sbv", SBV_TIMESTAMP_RE, lambda m: _range_match("sbv", m))
GOOGLE_GRAMMAR = TimestampGrammar("google", GOOGLE_TIMESTAMP_RE, _google_match)

# Priority order matters: a WebVTT line must never be read as SUB, etc.
TIMESTAMP_GRAMMARS = (SRT_GRAMMAR, SUB_GRAMMAR, SBV_GRAMMAR, GOOGLE_GRAMMAR)


def match_timestamp(line: str) -> Optional[TimestampMatch]:
    for grammar in TIMESTAMP_GRAMMARS:
        result = grammar.match(line)
        if result is not None:
            return result
    return None


def match_lrc_line(line: str) -> Optional[Tuple[float, str]]:
    """Returns (start_seconds, payload) for an LRC line."""
    m = LRC_TIMESTAMP_RE.match(line.strip())
    if not m:
        return None
    return to_seconds(*m.groups()[0:4]), m.group(5)


def is_lrc_tag_line(line: str) -> bool:
    """[ti:...], [ar:...] and friends: metadata that only appears in LRC files."""
    return LRC_TAG_RE.match(line.strip()) is not None


def parse_chunk_timestamp(token: str) -> Optional[float]:
    """Resolves the time carried by an inline tag such as <00:00:01.500>."""
    m = CHUNK_TIMESTAMP_RE.search(token)
    if not m:
        return None
    return to_seconds(*m.groups())


def format_timestamp(seconds: float) -> str:
    """Seconds -> HH:MM:SS.mmm (WebVTT style)."""
    ms = int(round(max(seconds, 0) * 1000))
    hh, ms = divmod(ms, 3_600_000)
    mm, ms = divmod(ms, 60_000)
    ss, ms = divmod(ms, 1000)
    return f"{hh:02d}:{mm:02d}:{ss:02d}.{ms:03d}"

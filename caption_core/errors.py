"""
caption_core/errors.py

Exceptions raised for API misuse.
Malformed caption data never raises: bad blocks, markup and numeric settings
are dropped or defaulted by the parser and the layout engine instead.
"""


class CaptionError(Exception):
    """Base class for every error raised by caption_core."""


class InputError(CaptionError, ValueError):
    """The parser was handed no caption text at all."""


class InvalidModeError(CaptionError, ValueError):
    """A track mode outside TrackMode was requested."""

    def __init__(self, value):
        super().__init__(f"Illegal mode value for track: {value!r}")
        self.value = value


class LayoutError(CaptionError, TypeError):
    """Layout was invoked on something that is not a render surface."""

"""
caption_core/direction.py

Dominant script direction of a piece of text, from the first strong character.
Used to mirror cue alignment for right-to-left captions.
"""

import re

LTR_CHARS = ("A-Za-z\u00C0-\u00D6\u00D8-\u00F6\u00F8-\u02B8\u0300-\u0590\u0800-\u1FFF"
             "\u2C00-\uFB1C\uFDFE-\uFE6F\uFEFD-\uFFFF")
RTL_CHARS = "\u0591-\u07FF\uFB1D-\uFDFD\uFE70-\uFEFC"

# "No LTR character before the first RTL one" and vice versa
RTL_DIR_CHECK_RE = re.compile(f"^[^{LTR_CHARS}]*[{RTL_CHARS}]")
LTR_DIR_CHECK_RE = re.compile(f"^[^{RTL_CHARS}]*[{LTR_CHARS}]")

DIRECTION_RTL = "rtl"
DIRECTION_LTR = "ltr"
DIRECTION_UNKNOWN = ""

_LTR_ALIGN = {"start": "left", "middle": "center", "end": "right"}
_RTL_ALIGN = {"start": "right", "middle": "center", "end": "left"}


def check_direction(text: str) -> str:
    """'rtl', 'ltr', or '' when the text has no strong characters."""
    if RTL_DIR_CHECK_RE.search(text):
        return DIRECTION_RTL
    if LTR_DIR_CHECK_RE.search(text):
        return DIRECTION_LTR
    return DIRECTION_UNKNOWN


def map_alignment(alignment: str, direction: str) -> str:
    """Cue alignment (start/middle/end) -> physical text alignment (left/center/right)."""
    table = _RTL_ALIGN if direction == DIRECTION_RTL else _LTR_ALIGN
    return table.get(alignment, "center")

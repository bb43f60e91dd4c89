"""
caption_core/markup.py

Cue payload tokenizer and renderer.

Turns "<v Roger>Hello <00:00:01.500><c.loud>world</c></v>" into a tree of
span nodes (see models.py) and renders it back to display markup.

Key Responsibilities:
1. Tag/Text Splitting: interleaved tokens, whitespace-only text dropped.
2. Whitelisting: unknown tags are dropped while sanitising.
3. Tolerant Nesting: a closing tag pops to the nearest matching open tag;
   a closer with no matching opener is ignored.
4. Karaoke Timing: timestamp tags reveal their content progressively.
5. Memoization: trees without timestamp tags render once and are cached.
"""

import html
import re
from typing import List, Optional

from .config import ParseOptions
from .models import ClassSpan, FormatSpan, TimestampSpan, VoiceSpan
from .timestamps import CHUNK_TIMESTAMP_RE, parse_chunk_timestamp

# Regex to split text by tags, capturing the delimiters.
# Example: "A<b>B</b>" -> ['A', '<b>', 'B', '</b>', '']
TAG_SPLIT_RE = re.compile(r"(</?[^>]+>)")

VOICE_TAG_RE = re.compile(r"^<v(?:\.[^\s>]*)?\s+([^>]+)>", re.IGNORECASE)
CLASS_TAG_RE = re.compile(r"^<c(\.[a-z0-9\-_.]+)?>", re.IGNORECASE)
FORMAT_TAG_RE = re.compile(r"^<(b|i|u|ruby|rt)>", re.IGNORECASE)
TOKEN_NAME_RE = re.compile(r"[\s.]+")
MARKUP_RE = re.compile(r"<[^>]+>")
BREAK_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
NEWLINES_RE = re.compile(r"\n+")


def _has_real_text(value: str) -> bool:
    return bool(re.sub(r"[^a-z0-9]+", "", value, flags=re.IGNORECASE))


class CuePayload:
    """
    Root of a parsed cue payload.
    'children' holds text (str) and span nodes; 'is_time_dependent' is set when
    any timestamp tag was seen, which disables the render cache.
    """

    def __init__(self, source: str, options: Optional[ParseOptions] = None):
        self.source = source
        self.options = options or ParseOptions()
        self.children: List = []
        self.is_time_dependent = False
        self._rendered: Optional[str] = None

    def render(self, at_time: Optional[float] = None) -> str:
        if self._rendered is not None:
            return self._rendered

        composite = self._render_layer(self.children, at_time)
        if not self.is_time_dependent:
            self._rendered = composite
        return composite

    def plain_text(self, at_time: Optional[float] = None) -> str:
        """Rendered text without markup, for measuring and direction checks."""
        text = BREAK_RE.sub("\n", self.render(at_time))
        return html.unescape(MARKUP_RE.sub("", text))

    def _render_layer(self, nodes, at_time) -> str:
        parts = []
        for node in nodes:
            if isinstance(node, str):
                parts.append(node)
                continue
            # Don't generate anything for a span without contents
            if not node.children:
                continue

            if isinstance(node, VoiceSpan):
                voice = node.voice.replace('"', "")
                speaker = re.sub(r"[^a-z0-9]+", "-", node.voice, flags=re.IGNORECASE).lower()
                parts.append(f'<q data-voice="{voice}" class="voice speaker-{speaker}" title="{voice}">'
                             f'{self._render_layer(node.children, at_time)}</q>')
            elif isinstance(node, ClassSpan):
                classes = " ".join(["webvtt-class-span"] + sorted(node.classes))
                parts.append(f'<span class="{classes}">{self._render_layer(node.children, at_time)}</span>')
            elif isinstance(node, TimestampSpan):
                if at_time is None or at_time >= node.time_seconds:
                    parts.append(f'<span class="webvtt-timestamp-span" data-timestamp="{node.token}" '
                                 f'data-timestamp-seconds="{node.time_seconds:g}">'
                                 f'{self._render_layer(node.children, at_time)}</span>')
            else:
                parts.append(f"{node.raw_token}{self._render_layer(node.children, at_time)}</{node.tag}>")
        return "".join(parts)

    def __str__(self):
        return self.render()

    def __repr__(self):
        return f"CuePayload({self.source!r}, time_dependent={self.is_time_dependent})"


class MarkupTokenizer:
    def __init__(self, options: Optional[ParseOptions] = None):
        self.options = options or ParseOptions()

    def tokenize(self, payload: str) -> CuePayload:
        structure = CuePayload(payload, self.options)
        tokens = [t for t in TAG_SPLIT_RE.split(payload) if t.strip()]

        # Each frame is (tag name, children list the tag's content goes into)
        stack = []
        current = structure.children

        for token in tokens:
            if token.startswith("</"):
                name = TOKEN_NAME_RE.split(token[2:].rstrip(">").strip())[0]
                # Scan backwards for the nearest open tag with this name
                for depth in range(len(stack) - 1, -1, -1):
                    if stack[depth][0] == name:
                        stack = stack[:depth]
                        current = stack[-1][1] if stack else structure.children
                        break
                # No match: the closer is ignored
                continue

            if token.startswith("<"):
                node = self._open_tag(token, structure)
                if node is None:
                    continue
                current.append(node)
                stack.append((self._token_name(token), node.children))
                current = node.children
                continue

            current.append(self._process_text(token))

        return structure

    def _token_name(self, token: str) -> str:
        return TOKEN_NAME_RE.split(token.strip("</>").strip())[0]

    def _open_tag(self, token: str, structure: CuePayload):
        """Builds the span node for an opening tag, or None if the tag is not allowed."""
        inner = token[1:-1]
        is_timestamp = CHUNK_TIMESTAMP_RE.match(inner) is not None
        voice = VOICE_TAG_RE.match(token)
        klass = CLASS_TAG_RE.match(token)
        fmt = FORMAT_TAG_RE.match(token)

        recognised = is_timestamp or voice or klass or fmt
        if not recognised and self.options.sanitise_markup:
            return None

        name = self._token_name(token)
        if is_timestamp:
            structure.is_time_dependent = True
            return TimestampSpan(time_seconds=parse_chunk_timestamp(inner), token=inner)
        if voice:
            return VoiceSpan(voice=voice.group(1).strip())
        if klass:
            parts = (klass.group(1) or "").split(".")
            return ClassSpan(classes=frozenset(p for p in parts if _has_real_text(p)))
        return FormatSpan(tag=name.lower() if fmt else name, raw_token=token)

    def _process_text(self, text: str) -> str:
        if not self.options.sanitise_markup:
            return text
        text = html.escape(text, quote=False)
        if not self.options.ignore_whitespace:
            text = NEWLINES_RE.sub("<br />", text)
        return text


def tokenize(payload: str, options: Optional[ParseOptions] = None) -> CuePayload:
    return MarkupTokenizer(options).tokenize(payload)

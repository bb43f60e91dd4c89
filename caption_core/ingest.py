"""
caption_core/ingest.py

Logic for parsing caption documents (WebVTT, SRT, SUB, SBV, Google, LRC) into the Cue model.

Key Responsibilities:
1. Normalisation: line endings and zero width spaces.
2. Dialect Sniffing: LRC by its first line, everything else block-by-block.
3. Metadata Blocks: DEFAULTS, STYLE, COMMENT/NOTE and REGION blocks update parser
   state (or nothing) and never produce a cue.
4. Settings Merging: cue settings override the file-level DEFAULTS key by key.
5. Tolerance: a block without a recognisable timing line is dropped, not raised.
"""

import os
import re
from dataclasses import dataclass, field
from typing import List, Optional

from . import log
from .config import OverlayConfig, ParseOptions
from .errors import InputError
from .markup import MarkupTokenizer
from .models import Cue, format_settings, parse_settings
from .timestamps import is_lrc_tag_line, match_lrc_line, match_timestamp

# Global whitelist of valid language codes to prevent false positives (like "1080p")
VALID_LANG_CODES = {
    # Japanese
    "ja": "ja", "jp": "ja", "jpn": "ja", "ja-jp": "ja",
    # English
    "en": "en", "eng": "en", "en-us": "en", "en-gb": "en",
    # French
    "fr": "fr", "fre": "fr", "fra": "fr",
    # German
    "de": "de", "deu": "de", "ger": "de",
    # Spanish
    "es": "es", "spa": "es",
    # Italian
    "it": "it", "ita": "it",
    # Portuguese
    "pt": "pt", "por": "pt",
    # Chinese
    "zh": "zh", "chi": "zh", "zho": "zh",
    # Korean
    "ko": "ko", "kor": "ko",
    # Russian
    "ru": "ru", "rus": "ru",
    # Arabic / Hebrew (right-to-left captions)
    "ar": "ar", "ara": "ar",
    "he": "he", "heb": "he",
}

# Blank lines (or whitespace-only lines) separate blocks
BLOCK_SPLIT_RE = re.compile(r"\n\s*\n")
CUE_ID_RE = re.compile(r"^\s*[a-z0-9]+\s*$", re.IGNORECASE)

# Legacy "KEYWORD -->" metadata blocks
DEFAULTS_BLOCK_RE = re.compile(r"^(DEFAULTS|DEFAULT)\s+-->\s+(.*)", re.DOTALL)
STYLE_BLOCK_RE = re.compile(r"^(STYLE|STYLES)\s+-->\s*\n([\s\S]*)")
COMMENT_BLOCK_RE = re.compile(r"^(COMMENT|COMMENTS)\s+-->")


def detect_language(path: str) -> str:
    """
    Parses [filename].[lang].[ext].
    Validates against VALID_LANG_CODES to avoid false positives like '1080p'.
    """
    parts = os.path.basename(path).lower().split(".")
    if len(parts) >= 3:
        potential_code = parts[-2]
        if potential_code in VALID_LANG_CODES:
            return VALID_LANG_CODES[potential_code]
    return ""


@dataclass
class CaptionDocument:
    """Result of one parse: the ordered cues plus what was learned about the file."""
    cues: List[Cue] = field(default_factory=list)
    dialect: str = ""           # "webvtt", "srt", "sub", "sbv", "google", "lrc" or "" (nothing matched)
    language: str = ""
    defaults: dict = field(default_factory=dict)
    style_data: str = ""
    dropped_blocks: int = 0


class CaptionParser:
    """
    Tolerant multi-dialect parser.
    One instance can parse many documents; DEFAULTS and STYLE state is reset per document.
    """

    def __init__(self, config: Optional[OverlayConfig] = None):
        self.config = config or OverlayConfig.get_system_defaults()

    def parse(self, text: Optional[str], options: Optional[ParseOptions] = None) -> List[Cue]:
        return self.parse_document(text, options).cues

    def parse_file(self, path: str, options: Optional[ParseOptions] = None) -> CaptionDocument:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()

        document = self.parse_document(content, options)
        document.language = detect_language(path)
        return document

    def parse_document(self, text: Optional[str], options: Optional[ParseOptions] = None) -> CaptionDocument:
        if text is None or text == "":
            raise InputError("Required parameter captionData not supplied.")

        options = options or self.config.parse_options()
        tokenizer = MarkupTokenizer(options)

        # 1. Normalise line endings, converts zero width space to nothing
        content = text.replace("\r\n", "\n").replace("\r", "\n").replace("\u200b", "")

        document = CaptionDocument()

        # 2. LRC is decided by the very first line with content: a timed lyric or an ID tag
        first_line = next((l for l in content.split("\n") if l.strip()), "")
        if match_lrc_line(first_line) or is_lrc_tag_line(first_line):
            document.dialect = "lrc"
            document.cues = self._parse_lrc(content, options, tokenizer, document)
        else:
            document.cues = self._parse_blocks(content, options, tokenizer, document)

        # 3. Sort by start, end, then creation order
        document.cues.sort(key=lambda c: c.sort_key)
        log.debug(f"Parsed {len(document.cues)} cue(s) as '{document.dialect or 'unknown'}' "
                  f"({document.dropped_blocks} block(s) dropped)")
        return document

    # --- BLOCK DIALECTS ---
    def _parse_blocks(self, content, options, tokenizer, document) -> List[Cue]:
        cues = []
        blocks = BLOCK_SPLIT_RE.split(content)

        for index, block in enumerate(blocks):
            lines = [l for l in block.split("\n") if l.strip()]
            if not lines:
                continue

            # --- BLOCK TYPE IDENTIFICATION ---

            # 1. Header (WEBVTT ...). Whatever follows in the same block is read as
            #    a normal block; header metadata has no timing line and gets dropped.
            if lines[0].startswith("WEBVTT"):
                document.dialect = "webvtt"
                lines = lines[1:]
                if not lines:
                    continue

            # 2. Metadata blocks
            if self._consume_metadata(lines, document):
                continue

            # 3. Cue block
            cue = self._process_cue_block(lines, index, options, tokenizer, document)
            if cue is None:
                document.dropped_blocks += 1
                continue
            cues.append(cue)

        return cues

    def _consume_metadata(self, lines: List[str], document: CaptionDocument) -> bool:
        """Returns True if the block was a metadata block (and so yields no cue)."""
        block = "\n".join(lines)
        first = lines[0].strip()

        m = DEFAULTS_BLOCK_RE.match(block)
        if m:
            document.defaults = parse_settings(m.group(2))
            log.debug(f"Cue defaults set: {document.defaults}")
            return True

        m = STYLE_BLOCK_RE.match(block)
        if m:
            document.style_data += m.group(2)
            return True

        if COMMENT_BLOCK_RE.match(block):
            return True

        # Modern WebVTT spelling: keyword alone on its first line
        if first == "STYLE" or first.startswith("STYLE "):
            document.style_data += "\n".join(lines[1:])
            return True
        if first == "NOTE" or first.startswith("NOTE ") or first.startswith("NOTE\t"):
            return True
        if first == "REGION" or first.startswith("REGION "):
            log.debug("REGION block skipped")
            return True

        return False

    def _process_cue_block(self, lines, index, options, tokenizer, document) -> Optional[Cue]:
        # 1. Optional ID line
        if CUE_ID_RE.match(lines[0]) and len(lines) > 1:
            cue_id = lines[0].strip()
            lines = lines[1:]
        else:
            cue_id = str(index)

        # 2. The timing line must come next
        timing = match_timestamp(lines[0])
        if timing is None:
            log.debug(f"Block {index} dropped: no timing line in {lines[0]!r}")
            return None

        if not document.dialect:
            document.dialect = timing.dialect

        if timing.end < timing.start:
            log.debug(f"Block {index} dropped: ends before it starts")
            return None

        # 3. Cue settings override the file-level defaults, key by key
        merged = dict(document.defaults)
        merged.update(parse_settings(timing.settings))

        payload = "\n".join(lines[1:])
        return Cue(
            id=cue_id,
            start_time=timing.start,
            end_time=timing.end,
            payload=self._build_payload(payload, options, tokenizer),
            settings=format_settings(merged),
            style_data=document.style_data,
        )

    # --- LRC ---
    def _parse_lrc(self, content, options, tokenizer, document) -> List[Cue]:
        entries = []
        for line in content.split("\n"):
            if not line.strip():
                continue
            parsed = match_lrc_line(line)
            if parsed is None:
                # Tag lines like [ar:Artist] or stray text
                document.dropped_blocks += 1
                continue
            entries.append(parsed)

        # Lines are not guaranteed to be in time order
        entries.sort(key=lambda e: e[0])

        cues = []
        for i, (start, payload) in enumerate(entries):
            if i + 1 < len(entries):
                end = entries[i + 1][0]
            else:
                end = start + self.config.lrc_last_cue_duration
            cues.append(Cue(
                id=str(i),
                start_time=start,
                end_time=end,
                payload=self._build_payload(payload, options, tokenizer),
            ))
        return cues

    def _build_payload(self, payload: str, options: ParseOptions, tokenizer: MarkupTokenizer):
        if not options.process_markup:
            return payload
        return tokenizer.tokenize(payload)


def parse_captions(text: str, config: Optional[OverlayConfig] = None,
                   options: Optional[ParseOptions] = None) -> List[Cue]:
    """Convenience wrapper: CaptionParser(config).parse(text, options)."""
    return CaptionParser(config).parse(text, options)

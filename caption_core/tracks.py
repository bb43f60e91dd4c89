"""
caption_core/tracks.py

Text tracks and their cue storage.

- CueStore: an ordered holder for a track's cues. Order is always
  (start_time, end_time, creation order); insertion keeps it that way.
- Track: kind/label/language/source, an explicit set_mode(), the ready state and
  the load lifecycle. Loads are tagged with a LoadToken so a result that
  arrives after a newer load was started is discarded instead of committed.
"""

import bisect
import itertools
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Iterable, Iterator, List, Optional

from . import log
from .config import ParseOptions
from .errors import InputError, InvalidModeError
from .models import Cue


class TrackMode(IntEnum):
    DISABLED = 0
    HIDDEN = 1      # cues are tracked (events fire) but not displayed
    SHOWING = 2


class ReadyState(IntEnum):
    NOT_LOADED = 0
    LOADING = 1
    LOADED = 2
    ERROR = 3


TEXT_TRACK_KINDS = (
    "subtitles", "captions", "descriptions", "metadata",
    "chapters", "karaoke", "lyrics", "tickertext",
)
# Recognised, but these carry media rather than text
MEDIA_TRACK_KINDS = ("audiodescription", "commentary", "alternate", "signlanguage")


def validate_text_kind(kind: str) -> str:
    kind = (kind or "subtitles").lower()
    if kind in TEXT_TRACK_KINDS:
        return kind
    if kind in MEDIA_TRACK_KINDS:
        raise ValueError(f"'{kind}' is a media track kind, not a text track kind")
    raise ValueError(f"Unknown track kind: '{kind}'")


@dataclass(frozen=True)
class LoadToken:
    """Identifies one load attempt. Only the newest token of a track may commit."""
    track_id: str
    generation: int
    source: str = ""


class CueStore:
    """
    Ordered, read-only sequence of cues belonging to one track.
    Mutation goes through append/load/remove/clear, which keep the order invariant.
    """

    def __init__(self, track=None):
        self.track = track
        self._cues: List[Cue] = []

    # --- SEQUENCE PROTOCOL ---
    def __len__(self) -> int:
        return len(self._cues)

    def __iter__(self) -> Iterator[Cue]:
        return iter(self._cues)

    def __getitem__(self, index):
        return self._cues[index]

    def __contains__(self, cue) -> bool:
        return any(c is cue for c in self._cues)

    def __repr__(self):
        return f"CueStore({len(self._cues)} cues)"

    # --- MUTATION ---
    def append(self, cue: Cue) -> None:
        """
        Adds one cue at its ordered position.
        Raises TypeError for non-cues and ValueError for cues owned by another track
        or already present.
        """
        if not isinstance(cue, Cue):
            raise TypeError(f"Expected a Cue, got {type(cue).__name__}")
        if cue.track is not None and cue.track is not self.track:
            raise ValueError(f"Cue {cue.id!r} is associated with a different track")
        if cue in self:
            raise ValueError(f"Cue {cue.id!r} is already in this track")

        cue.track = self.track
        bisect.insort(self._cues, cue, key=lambda c: c.sort_key)

    def load(self, cues: Iterable[Cue]) -> None:
        for cue in cues:
            self.append(cue)

    def get_by_id(self, cue_id) -> Optional[Cue]:
        cue_id = str(cue_id)
        for cue in self._cues:
            if cue.id == cue_id:
                return cue
        return None

    def remove(self, cue: Cue) -> None:
        for i, existing in enumerate(self._cues):
            if existing is cue:
                del self._cues[i]
                cue.track = None
                cue.active = False
                return
        raise ValueError(f"Cue {getattr(cue, 'id', cue)!r} is not in this track")

    def clear(self) -> None:
        for cue in self._cues:
            cue.track = None
            cue.active = False
        self._cues = []


def _noop(*args, **kwargs):
    pass


class Track:
    """
    A text track.

    Hooks (plain callables, replace them freely):
        on_load()            cues were committed
        on_error(error)      the load failed
        on_cue_change()      the active cue list changed (fired by ActiveCueTracker)
        on_dirty()           the overlay should re-run layout (mode change, load)
        on_load_requested(token)  a fetch should start; the Qt TrackLoader sets this
    """

    _ids = itertools.count()

    def __init__(self, id: str = "", kind: str = "subtitles", label: str = "", language: str = "",
                 src: str = "", default: bool = False):
        self.id = id or f"track{next(Track._ids)}"
        self.kind = validate_text_kind(kind)
        self.label = label
        self.language = language
        self.src = src
        self.default = default

        self.cues = CueStore(self)
        self.active_cues: tuple = ()
        self._mode = TrackMode.DISABLED
        self.ready_state = ReadyState.NOT_LOADED
        self.last_error: Optional[BaseException] = None
        self._generation = 0

        self.on_load: Callable = _noop
        self.on_error: Callable = _noop
        self.on_cue_change: Callable = _noop
        self.on_dirty: Callable = _noop
        self.on_load_requested: Callable = _noop

    def __repr__(self):
        return (f"Track(id={self.id!r}, kind={self.kind!r}, mode={self._mode.name}, "
                f"ready={self.ready_state.name}, cues={len(self.cues)})")

    # --- MODE ---
    @property
    def mode(self) -> TrackMode:
        return self._mode

    def set_mode(self, value) -> None:
        if isinstance(value, bool):
            raise InvalidModeError(value)
        try:
            mode = TrackMode(value)
        except (ValueError, TypeError):
            raise InvalidModeError(value) from None

        if mode == self._mode:
            return
        self._mode = mode

        # 1. First enable of an unloaded track with a source starts the load
        if self.ready_state == ReadyState.NOT_LOADED and self.src and mode > TrackMode.DISABLED:
            self.on_load_requested(self.begin_load(self.src))

        # 2. Whatever is showing has to be laid out again
        self.on_dirty()

        # 3. Make sure the resource is reloaded next time
        if mode == TrackMode.DISABLED:
            self.cues.clear()
            self.active_cues = ()
            self.ready_state = ReadyState.NOT_LOADED
            self._generation += 1

    @property
    def is_enabled(self) -> bool:
        return self._mode in (TrackMode.HIDDEN, TrackMode.SHOWING)

    # --- CUES ---
    def add_cue(self, cue: Cue) -> None:
        self.cues.append(cue)

    def remove_cue(self, cue: Cue) -> None:
        self.cues.remove(cue)

    def get_cue_by_id(self, cue_id) -> Optional[Cue]:
        return self.cues.get_by_id(cue_id)

    # --- LOADING ---
    def parse_options(self, base: ParseOptions) -> ParseOptions:
        """Metadata tracks may carry anything, so their payloads are left untouched."""
        if self.kind == "metadata":
            return ParseOptions(process_markup=False, sanitise_markup=False,
                                ignore_whitespace=base.ignore_whitespace)
        return base

    def begin_load(self, source: Optional[str] = None) -> LoadToken:
        if source is not None:
            self.src = source
        self._generation += 1
        self.ready_state = ReadyState.LOADING
        self.last_error = None
        log.debug(f"Track {self.id}: loading '{self.src}' (generation {self._generation})")
        return LoadToken(self.id, self._generation, self.src)

    def is_current(self, token: LoadToken) -> bool:
        return token.track_id == self.id and token.generation == self._generation

    def commit_load(self, token: LoadToken, text: str, parser) -> bool:
        """
        Parses 'text' and replaces the cues, unless a newer load has been started since
        'token' was issued. Returns True when the result was committed.
        """
        if not self.is_current(token):
            log.debug(f"Track {self.id}: stale load (generation {token.generation}) discarded")
            return False

        options = self.parse_options(parser.config.parse_options())
        try:
            cues = parser.parse(text, options)
        except InputError as e:
            self.fail_load(token, e)
            return False

        self.cues.clear()
        self.active_cues = ()
        self.cues.load(cues)
        self.ready_state = ReadyState.LOADED
        log.debug(f"Track {self.id}: {len(cues)} cue(s) loaded")

        self.on_dirty()
        self.on_load()
        return True

    def fail_load(self, token: LoadToken, error: BaseException) -> bool:
        if not self.is_current(token):
            return False
        self.ready_state = ReadyState.ERROR
        self.last_error = error
        log.error(f"Track {self.id}: failed to load '{token.source}': {error}")
        self.on_error(error)
        return True

    def load_text(self, text: str, parser) -> bool:
        """Synchronous load from text already in memory."""
        return self.commit_load(self.begin_load(), text, parser)

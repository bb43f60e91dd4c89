"""
caption_core/overlay.py

Ties tracks, the active cue tracker and the layout engine together.

update(current_time, metrics) is called on every clock tick. It only runs a
layout pass when the composite set of visible cues (or what they render to)
changed, or when something marked the overlay dirty (mode change, load, resize).
"""

from typing import Callable, List, Optional, Sequence

from . import log
from .config import OverlayConfig
from .ingest import CaptionParser
from .layout import CueGeometry, LayoutEngine
from .metrics import ContainerMetrics, TextMeasurer
from .models import Cue
from .tracker import ActiveCueTracker
from .tracks import ReadyState, Track, TrackMode


def order_for_layout(tracks: Sequence[Track]) -> List[Cue]:
    """
    Composite active list: showing + loaded tracks in track order,
    each track's active cues latest-starting first.
    """
    ordered = []
    for track in tracks:
        if track.mode != TrackMode.SHOWING or track.ready_state != ReadyState.LOADED:
            continue
        ordered.extend(sorted(track.active_cues, key=lambda c: c.start_time, reverse=True))
    return ordered


class CaptionOverlay:
    def __init__(self, config: Optional[OverlayConfig] = None, measurer: Optional[TextMeasurer] = None,
                 on_enter: Optional[Callable[[Cue], None]] = None,
                 on_exit: Optional[Callable[[Cue], None]] = None):
        self.config = config or OverlayConfig.get_system_defaults()
        self.parser = CaptionParser(self.config)
        self.layout_engine = LayoutEngine(self.config, measurer)
        self.tracker = ActiveCueTracker(on_enter, on_exit)
        self.tracks: List[Track] = []

        self.dirty = True
        self._previous_ids: tuple = ()
        self._last_metrics: Optional[ContainerMetrics] = None
        self.geometry: List[CueGeometry] = []

    # --- TRACKS ---
    def add_text_track(self, kind: str = "subtitles", label: str = "", language: str = "",
                       src: str = "", default: bool = False, id: str = "") -> Track:
        """Raises ValueError for media kinds and unknown kinds."""
        track = Track(id=id, kind=kind, label=label, language=language, src=src, default=default)
        track.on_dirty = self.mark_dirty
        self.tracks.append(track)
        self.mark_dirty()
        return track

    def remove_track(self, track: Track) -> None:
        self.tracks.remove(track)
        self.tracker.forget(track)
        self.mark_dirty()

    def load_track_text(self, track: Track, text: str) -> bool:
        return track.load_text(text, self.parser)

    def mark_dirty(self) -> None:
        self.dirty = True

    # --- REFRESH ---
    def refresh_tracks(self, current_time: float) -> List[Cue]:
        for track in self.tracks:
            self.tracker.refresh(track, current_time)
        return order_for_layout(self.tracks)

    def update(self, current_time: float, metrics: ContainerMetrics) -> Optional[List[CueGeometry]]:
        """
        Returns the new geometry list, or None when nothing visible changed.
        """
        if metrics != self._last_metrics:
            self._last_metrics = metrics
            self.dirty = True

        ordered = self.refresh_tracks(current_time)

        # Rendered length is part of the id so karaoke reveals count as a change
        ids = tuple(f"{c.track.id}.{c.id}:{len(c.render(current_time))}" for c in ordered)
        if ids == self._previous_ids and not self.dirty:
            return None

        self._previous_ids = ids
        self.dirty = False
        self.geometry = self.layout_engine.layout(ordered, metrics, current_time)
        log.debug(f"Layout pass at {current_time:.3f}s: {len(self.geometry)} cue(s)")
        return self.geometry

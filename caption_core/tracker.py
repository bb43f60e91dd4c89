"""
caption_core/tracker.py

Works out which cues of a track are visible at a given playback time.

Enter/exit events are edge-triggered off the cue's 'active' flag, so each fires
exactly once per transition no matter how often refresh() is called.
A per-track snapshot of the previous active list (a copy, never the live list)
decides whether the membership changed.
"""

from typing import Callable, Dict, List, Optional, Tuple

from .models import Cue
from .tracks import ReadyState, Track, TrackMode


def _noop(cue):
    pass


class ActiveCueTracker:
    def __init__(self, on_enter: Optional[Callable[[Cue], None]] = None,
                 on_exit: Optional[Callable[[Cue], None]] = None):
        self.on_enter = on_enter or _noop
        self.on_exit = on_exit or _noop
        self._snapshots: Dict[int, Tuple[Cue, ...]] = {}

    @staticmethod
    def is_tracked(track: Track) -> bool:
        return (track.mode in (TrackMode.HIDDEN, TrackMode.SHOWING)
                and track.ready_state == ReadyState.LOADED)

    def refresh(self, track: Track, current_time: float) -> Tuple[List[Cue], bool]:
        """
        Returns (active cues in store order, changed).
        Hook exceptions (on_enter, on_exit, track.on_cue_change) propagate to the caller.
        """
        tracked = self.is_tracked(track)
        active = []

        for cue in track.cues:
            is_active = tracked and cue.start_time <= current_time <= cue.end_time

            if is_active and not cue.active:
                cue.active = True
                self.on_enter(cue)
            elif not is_active and cue.active:
                cue.active = False
                self.on_exit(cue)

            if is_active:
                active.append(cue)

        previous = self._snapshots.get(id(track), ())
        changed = len(previous) != len(active) or any(a is not b for a, b in zip(active, previous))

        if changed:
            self._snapshots[id(track)] = tuple(active)
            track.active_cues = tuple(active)
            track.on_cue_change()

        return active, changed

    def forget(self, track: Track) -> None:
        """Drops the snapshot kept for a track (e.g. when it is removed from the overlay)."""
        self._snapshots.pop(id(track), None)

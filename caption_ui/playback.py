"""
caption_ui/playback.py

QTimer driven refresh loop.

Every tick reads the playback clock, lets the overlay refresh its tracks, and
emits the new geometry only when a layout pass actually ran.
Seeks and other time jumps can call on_time_update() directly.
Cues flagged pause_on_exit raise pause_requested when they exit; pausing the
media is up to the host.
"""

from typing import Callable, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal, pyqtSlot

from caption_core import log
from caption_core.metrics import ContainerMetrics
from caption_core.overlay import CaptionOverlay


class PlaybackDriver(QObject):
    captions_updated = pyqtSignal(object)   # List[CueGeometry]
    cue_entered = pyqtSignal(object)        # Cue
    cue_exited = pyqtSignal(object)         # Cue
    pause_requested = pyqtSignal(object)    # Cue whose pause_on_exit flag fired

    def __init__(self, overlay: CaptionOverlay, clock: Callable[[], float],
                 metrics: ContainerMetrics, parent=None):
        super().__init__(parent)
        self.overlay = overlay
        self.clock = clock
        self.metrics = metrics

        # Tracker events become Qt signals
        self.overlay.tracker.on_enter = self.cue_entered.emit
        self.overlay.tracker.on_exit = self._on_cue_exit

        self.timer = QTimer(self)
        self.timer.setInterval(overlay.config.refresh_interval_ms)
        self.timer.timeout.connect(self.tick)

    def _on_cue_exit(self, cue):
        self.cue_exited.emit(cue)
        if cue.pause_on_exit:
            log.debug(f"Cue {cue.id} asks for a pause on exit")
            self.pause_requested.emit(cue)

    def start(self):
        log.debug(f"PlaybackDriver started ({self.timer.interval()} ms)")
        self.timer.start()

    def stop(self):
        self.timer.stop()

    def is_running(self) -> bool:
        return self.timer.isActive()

    def set_metrics(self, metrics: ContainerMetrics):
        """Container resized: the next update lays everything out again."""
        self.metrics = metrics
        self.overlay.mark_dirty()

    @pyqtSlot()
    def tick(self):
        self.on_time_update(self.clock())

    @pyqtSlot(float)
    def on_time_update(self, current_time: float) -> Optional[list]:
        geometry = self.overlay.update(current_time, self.metrics)
        if geometry is not None:
            self.captions_updated.emit(geometry)
        return geometry

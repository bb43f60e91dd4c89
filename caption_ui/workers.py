"""
caption_ui/workers.py

Background caption fetching.

CaptionFetchWorker runs on a QThread and only fetches text. Parsing and the
commit happen back on the owning thread through Track.commit_load(), which
drops results whose LoadToken was superseded (source changed, track disabled).
"""

import os
import threading
import traceback
import urllib.error
import urllib.parse
import urllib.request
from typing import Dict, List, Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot

from caption_core import log
from caption_core.ingest import CaptionParser
from caption_core.tracks import LoadToken, Track

DEFAULT_HEADERS = {
    "User-Agent": "caption-overlay/1.0",
    "Accept": "text/vtt, text/plain, */*",
}


def fetch_caption_text(source: str, timeout_s: float = 30.0) -> str:
    """
    Reads a caption document from an http(s)/file URL or a local path.
    Raises OSError (urllib.error.URLError included) on failure. No retries.
    """
    scheme = urllib.parse.urlparse(source).scheme.lower()
    if scheme in ("", "file") or os.path.exists(source):
        path = urllib.request.url2pathname(urllib.parse.urlparse(source).path) if scheme == "file" else source
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    req = urllib.request.Request(source, headers=DEFAULT_HEADERS, method="GET")
    with urllib.request.urlopen(req, timeout=timeout_s) as r:
        raw = r.read()
        charset = r.headers.get_content_charset() or "utf-8"
    return raw.decode(charset, errors="replace")


class CaptionFetchWorker(QObject):
    finished_success = pyqtSignal(object, str)   # (LoadToken, text)
    error_occurred = pyqtSignal(object, str)     # (LoadToken, message)
    finished = pyqtSignal()

    def __init__(self, token: LoadToken, timeout_s: float = 30.0):
        super().__init__()
        self.token = token
        self.timeout_s = timeout_s
        self.cancel_requested = False

    def cancel(self):
        log.debug(f"CaptionFetchWorker.cancel called for {self.token.source}")
        self.cancel_requested = True

    def run(self):
        log.debug(f"CaptionFetchWorker.run started on thread: {threading.get_ident()}")
        try:
            text = fetch_caption_text(self.token.source, self.timeout_s)
            if self.cancel_requested:
                log.debug("Cancel detected after fetch.")
                return
            self.finished_success.emit(self.token, text)

        except (OSError, ValueError) as e:
            log.error(f"Fetch failed for {self.token.source}: {e}")
            self.error_occurred.emit(self.token, str(e))
        except Exception as e:
            log.error(f"CRASH inside CaptionFetchWorker.run: {e}")
            traceback.print_exc()
            self.error_occurred.emit(self.token, str(e))
        finally:
            self.finished.emit()


class TrackLoader(QObject):
    """
    Starts a fetch whenever an attached track asks for one, and commits the result.
    Only the newest fetch per track can commit; starting a new one cancels the old one.
    Superseded fetches keep running until their thread finishes, so every
    (thread, worker, token) is held in _running until then.
    """
    track_loaded = pyqtSignal(object)        # Track
    track_failed = pyqtSignal(object, str)   # Track, message

    def __init__(self, parser: Optional[CaptionParser] = None, parent=None):
        super().__init__(parent)
        self.parser = parser or CaptionParser()
        self._current: Dict[str, CaptionFetchWorker] = {}
        self._running: List[tuple] = []
        self._tracks: Dict[str, Track] = {}

    def attach(self, track: Track) -> None:
        self._tracks[track.id] = track
        track.on_load_requested = self.start_fetch

    def load(self, track: Track, source: Optional[str] = None) -> LoadToken:
        """Explicit (re)load, e.g. after the source changed."""
        self.attach(track)
        token = track.begin_load(source)
        self.start_fetch(token)
        return token

    def pending(self) -> int:
        """Fetch threads that have not finished yet, superseded ones included."""
        return len(self._running)

    def start_fetch(self, token: LoadToken) -> CaptionFetchWorker:
        previous = self._current.get(token.track_id)
        if previous is not None:
            previous.cancel()

        worker = CaptionFetchWorker(token)
        thread = QThread(self)
        worker.moveToThread(thread)

        # Start the worker when the thread starts
        thread.started.connect(worker.run)

        worker.finished_success.connect(self.on_fetched)
        worker.error_occurred.connect(self.on_failed)

        # Cleanup: When worker finishes, quit the thread
        worker.finished.connect(thread.quit)
        worker.finished.connect(worker.deleteLater)
        thread.finished.connect(self._on_thread_finished)

        self._current[token.track_id] = worker
        self._running.append((thread, worker, token))
        thread.start()
        return worker

    @pyqtSlot()
    def _on_thread_finished(self):
        thread = self.sender()
        for job in list(self._running):
            if job[0] is not thread:
                continue
            self._running.remove(job)
            worker, token = job[1], job[2]
            if self._current.get(token.track_id) is worker:
                del self._current[token.track_id]
            thread.deleteLater()
            log.debug(f"Fetch thread for {token.source} finished ({len(self._running)} still running)")

    @pyqtSlot(object, str)
    def on_fetched(self, token: LoadToken, text: str):
        track = self._tracks.get(token.track_id)
        if track is None:
            return
        if track.commit_load(token, text, self.parser):
            self.track_loaded.emit(track)
        elif track.is_current(token):
            # Committed nothing but still current: the parse itself failed
            self.track_failed.emit(track, str(track.last_error))

    @pyqtSlot(object, str)
    def on_failed(self, token: LoadToken, message: str):
        track = self._tracks.get(token.track_id)
        if track is None:
            return
        if track.fail_load(token, OSError(message)):
            self.track_failed.emit(track, message)

import argparse
import json
import os
import sys
import time

# Ensure we can find core modules
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from caption_core import log
from caption_core.config import OverlayConfig
from caption_core.errors import CaptionError
from caption_core.ingest import CaptionParser, detect_language
from caption_core.metrics import ContainerMetrics
from caption_core.overlay import CaptionOverlay
from caption_core.timestamps import format_timestamp
from caption_core.tracks import TrackMode


def _load_config(path):
    config = OverlayConfig.get_system_defaults()
    if not path:
        return config
    with open(path, "r", encoding="utf-8") as f:
        return config.merge_from(json.load(f))


def _metrics(args, config) -> ContainerMetrics:
    control_height = config.control_height if args.control_height is None else args.control_height
    return ContainerMetrics(width=args.width, height=args.height, control_height=control_height)


def _overlay_for(args, config):
    with open(args.file, "r", encoding="utf-8") as f:
        text = f.read()

    overlay = CaptionOverlay(config)
    track = overlay.add_text_track(kind=args.kind, language=detect_language(args.file),
                                   label=os.path.basename(args.file))
    track.set_mode(TrackMode.SHOWING)
    if not overlay.load_track_text(track, text):
        raise CaptionError(f"Could not load {args.file}: {track.last_error}")
    return overlay


def _cmd_cues(args, config) -> int:
    document = CaptionParser(config).parse_file(args.file)
    out = {
        "file": args.file,
        "dialect": document.dialect,
        "language": document.language,
        "dropped_blocks": document.dropped_blocks,
        "cues": [{
            "id": c.id,
            "start": format_timestamp(c.start_time),
            "end": format_timestamp(c.end_time),
            "direction": c.direction,
            "alignment": c.alignment,
            "line": c.line_position,
            "position": c.text_position,
            "size": c.size,
            "html": c.render(),
            "source": c.source_text,
        } for c in document.cues],
    }
    print(json.dumps(out, indent=2, ensure_ascii=False))
    return 0


def _cmd_layout(args, config) -> int:
    overlay = _overlay_for(args, config)
    geometry = overlay.update(args.time, _metrics(args, config)) or []
    print(json.dumps([g.to_dict() for g in geometry], indent=2, ensure_ascii=False))
    return 0


def _cmd_play(args, config) -> int:
    from PyQt6.QtCore import QCoreApplication, QTimer
    from caption_ui.playback import PlaybackDriver

    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    overlay = _overlay_for(args, config)

    t0 = time.monotonic() - args.start
    driver = PlaybackDriver(overlay, clock=lambda: time.monotonic() - t0, metrics=_metrics(args, config))
    driver.cue_entered.connect(lambda c: print(f"[{format_timestamp(driver.clock())}] + {c.id}: {c.plain_text()!r}"))
    driver.cue_exited.connect(lambda c: print(f"[{format_timestamp(driver.clock())}] - {c.id}"))
    driver.pause_requested.connect(lambda c: print(f"[{format_timestamp(driver.clock())}] pause after {c.id}"))

    driver.start()
    QTimer.singleShot(int(args.duration * 1000), app.quit)
    app.exec()
    driver.stop()
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="caption-overlay")
    parser.add_argument("--config", default=None, help="JSON file with OverlayConfig overrides")
    parser.add_argument("--debug", action="store_true", help="Print [DEBUG] lines")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("cues", help="Parse a caption file and dump its cues as JSON")
    p.add_argument("file")
    p.set_defaults(func=_cmd_cues)

    def add_surface_args(p):
        p.add_argument("file")
        p.add_argument("--kind", default="subtitles", help="Text track kind (subtitles, captions, karaoke, ...)")
        p.add_argument("--width", type=int, default=1280)
        p.add_argument("--height", type=int, default=720)
        p.add_argument("--control-height", type=int, default=None, help="Player control strip height in px (default from config)")

    p = sub.add_parser("layout", help="Dump cue geometry at a playback time as JSON")
    add_surface_args(p)
    p.add_argument("--time", type=float, required=True, help="Playback time in seconds")
    p.set_defaults(func=_cmd_layout)

    p = sub.add_parser("play", help="Run the refresh loop against a wall clock and print cue events")
    add_surface_args(p)
    p.add_argument("--start", type=float, default=0.0, help="Playback position to start from (s)")
    p.add_argument("--duration", type=float, default=10.0, help="How long to run (s)")
    p.set_defaults(func=_cmd_play)

    args = parser.parse_args(argv)
    log.set_debug(args.debug)

    try:
        config = _load_config(args.config)
        with log.stage(args.cmd):
            return args.func(args, config)
    except (OSError, CaptionError, ValueError) as e:
        log.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())

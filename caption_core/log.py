"""
caption_core/log.py

Console output in the "[DEBUG] message" form used across the project.
[DEBUG] lines only print after set_debug(True). [WARN] goes to stdout,
[ERROR] to stderr.
"""

import sys
import time
from contextlib import contextmanager

_DEBUG = False


def set_debug(enabled: bool) -> None:
    global _DEBUG
    _DEBUG = bool(enabled)


def debug(msg: str) -> None:
    if _DEBUG:
        print(f"[DEBUG] {msg}")


def warning(msg: str) -> None:
    print(f"[WARN] {msg}")


def error(msg: str) -> None:
    print(f"[ERROR] {msg}", file=sys.stderr)


@contextmanager
def stage(name: str):
    """Times one CLI command. A failure is reported and re-raised."""
    t0 = time.time()
    debug(f"{name}: started")
    try:
        yield
    except Exception as e:
        error(f"{name}: failed after {time.time() - t0:.2f}s ({e})")
        raise
    debug(f"{name}: done in {time.time() - t0:.2f}s")

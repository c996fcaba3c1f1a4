"""Timestamped logging for odia-lipi."""

from __future__ import annotations

import sys
import time
from typing import TextIO

_start = time.monotonic()
_stream: TextIO | None = None


def set_log_stream(stream: TextIO | None) -> None:
    """Send log lines to ``stream`` instead of stdout. ``None`` restores stdout."""
    global _stream
    _stream = stream


def log(tag: str, message: str) -> None:
    """Print a timestamped log line: [HH:MM:SS.mmm][tag] message"""
    elapsed = time.monotonic() - _start
    hours = int(elapsed // 3600)
    minutes = int((elapsed % 3600) // 60)
    seconds = elapsed % 60
    ts = f"{hours:02d}:{minutes:02d}:{seconds:06.3f}"
    print(f"[{ts}][{tag}] {message}", file=_stream or sys.stdout, flush=True)

"""Quiescence-window debouncer for rapidly changing values."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Generic, TypeVar

from .log import log

T = TypeVar("T")

_MISSING = object()


class Debouncer(Generic[T]):
    """Coalesce bursts of updates and settle once on the last value.

    Every ``push`` restarts the window. ``on_settle`` runs on the timer thread.
    """

    def __init__(self, delay_seconds: float, on_settle: Callable[[T], None]) -> None:
        self.delay_seconds = delay_seconds
        self._on_settle = on_settle
        self._lock = threading.Lock()
        self._seq = 0  # Incremented on every push/cancel to invalidate stale timers
        self._pending: object = _MISSING
        self._timer: threading.Timer | None = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not _MISSING

    def push(self, value: T) -> None:
        with self._lock:
            self._seq += 1
            seq = self._seq
            self._pending = value
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay_seconds, self._fire, args=(seq,))
            self._timer.daemon = True
            self._timer.name = "debounce"
            self._timer.start()

    def cancel(self) -> None:
        """Drop the pending value without settling."""
        with self._lock:
            self._seq += 1
            self._pending = _MISSING
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> None:
        """Settle the pending value now, if any."""
        with self._lock:
            if self._pending is _MISSING:
                return
            self._seq += 1
            value = self._pending
            self._pending = _MISSING
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        self._settle(value)

    def _fire(self, seq: int) -> None:
        with self._lock:
            # A push or cancel landed after this timer was armed.
            if seq != self._seq:
                return
            value = self._pending
            self._pending = _MISSING
            self._timer = None
        self._settle(value)

    def _settle(self, value: object) -> None:
        try:
            self._on_settle(value)  # type: ignore[arg-type]
        except Exception as exc:
            log("debounce", f"Settle callback failed: {exc}")

"""Conversion history: the last N transliterations, kept in memory for the session."""

from __future__ import annotations

import itertools
import threading
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class HistoryItem:
    id: str
    original: str
    transliterated: str
    timestamp: float  # time.time()


class TransliterationHistory:
    """Most-recent-first, capacity-bounded, unique on case-insensitive ``original``."""

    def __init__(self, max_items: int = 10) -> None:
        self.max_items = max_items
        self._entries: list[HistoryItem] = []
        self._lock = threading.Lock()
        self._counter = itertools.count(1)

    def _new_id(self, timestamp: float) -> str:
        # Millisecond timestamps collide on fast inserts; the counter keeps ids unique.
        return f"{int(timestamp * 1000)}-{next(self._counter)}"

    def upsert(self, original: str, transliterated: str) -> HistoryItem:
        now = time.time()
        key = original.lower()
        with self._lock:
            item = HistoryItem(
                id=self._new_id(now),
                original=original,
                transliterated=transliterated,
                timestamp=now,
            )
            entries = [e for e in self._entries if e.original.lower() != key]
            self._entries = [item, *entries][: self.max_items]
        return item

    def entries(self) -> list[HistoryItem]:
        """Return entries newest-first."""
        with self._lock:
            return list(self._entries)

    def get(self, item_id: str) -> HistoryItem:
        with self._lock:
            for entry in self._entries:
                if entry.id == item_id:
                    return entry
        raise KeyError(item_id)

    def last(self) -> HistoryItem | None:
        with self._lock:
            return self._entries[0] if self._entries else None

    def clear(self) -> None:
        with self._lock:
            self._entries = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

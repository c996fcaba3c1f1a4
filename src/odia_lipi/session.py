"""Debounced request orchestration and session state."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import pyperclip

from .config import AppConfig
from .debounce import Debouncer
from .history import HistoryItem, TransliterationHistory
from .log import log
from .transliterator import API_KEY_MISSING, GeminiService, Transliterator

GENERIC_ERROR = "Something went wrong."


class Status(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class TransliterationState:
    input: str
    output: str
    is_loading: bool
    error: str | None
    status: Status
    auto_mode: bool
    copied: bool

    @property
    def char_count(self) -> int:
        return len(self.input)


class TransliterationSession:
    """Owns input/output state and decides when to call the transliterator.

    Every dispatched request is tagged with a sequence number. A response is
    applied only while its number is still the latest, so a slow earlier
    request never overwrites a newer result, and ``clear()`` or a history
    recall discards whatever is still in flight.
    """

    def __init__(
        self,
        transliterator: Transliterator,
        history: TransliterationHistory | None = None,
        *,
        auto_mode: bool = True,
        debounce_seconds: float = 0.8,
        copied_reset_seconds: float = 2.0,
        min_history_length: int = 3,
    ) -> None:
        self.transliterator = transliterator
        self.history = history if history is not None else TransliterationHistory()
        self.copied_reset_seconds = copied_reset_seconds
        self.min_history_length = min_history_length

        self._lock = threading.Lock()
        # Serializes snapshot + delivery so callbacks see states in order.
        self._emit_lock = threading.RLock()
        self._input = ""
        self._output = ""
        self._error: str | None = None
        self._loading = False
        self._status = Status.IDLE
        self._auto_mode = auto_mode
        self._copied = False

        self._request_seq = 0
        self._settled = ""
        self._last_submitted: str | None = None

        self._copied_seq = 0
        self._copied_timer: threading.Timer | None = None

        self._threads_lock = threading.Lock()
        self._request_threads: set[threading.Thread] = set()

        self._debouncer: Debouncer[str] = Debouncer(debounce_seconds, self._on_settled)

        # Optional callback for UI updates: fn(state)
        self.on_state_change: Callable[[TransliterationState], None] | None = None

    @classmethod
    def from_config(cls, config: AppConfig) -> TransliterationSession:
        transliterator = Transliterator(
            GeminiService.from_config(config.gemini),
            model=config.gemini.model,
        )
        return cls(
            transliterator,
            TransliterationHistory(max_items=config.history.max_items),
            auto_mode=config.session.auto_mode,
            debounce_seconds=config.session.debounce_seconds,
            copied_reset_seconds=config.session.copied_reset_seconds,
            min_history_length=config.history.min_length,
        )

    # -- state ---------------------------------------------------------------

    def state(self) -> TransliterationState:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> TransliterationState:
        return TransliterationState(
            input=self._input,
            output=self._output,
            is_loading=self._loading,
            error=self._error,
            status=self._status,
            auto_mode=self._auto_mode,
            copied=self._copied,
        )

    def _emit_state(self) -> None:
        """Notify UI of state change. Never raises; UI failures must not break the session."""
        callback = self.on_state_change
        if callback is None:
            return
        with self._emit_lock:
            state = self.state()
            try:
                callback(state)
            except Exception as exc:
                log("ui", f"State callback failed ({state.status.value}): {exc}")

    @property
    def auto_mode(self) -> bool:
        with self._lock:
            return self._auto_mode

    @property
    def configuration_error(self) -> str | None:
        """Persistent banner text when no API key is configured."""
        if self.transliterator.configured:
            return None
        return API_KEY_MISSING

    # -- triggers ------------------------------------------------------------

    def set_input(self, text: str) -> None:
        """Record an edit. The debouncer decides when it reaches the transliterator."""
        with self._lock:
            self._input = text
        self._emit_state()
        self._debouncer.push(text)

    def _on_settled(self, value: str) -> None:
        with self._lock:
            self._settled = value
            auto_mode = self._auto_mode
        if auto_mode:
            self._request(value)
        elif not value:
            self._reset_output()

    def submit(self) -> bool:
        """Manual trigger: transliterate the current input now."""
        self._debouncer.cancel()
        with self._lock:
            text = self._input
            self._settled = text
        return self._request(text)

    def set_auto_mode(self, enabled: bool) -> None:
        """Switch trigger wiring.

        Turning automatic mode on fires a request for already-settled input
        that has not been submitted yet.
        """
        seq: int | None = None
        with self._lock:
            changed = enabled != self._auto_mode
            self._auto_mode = enabled
            settled = self._settled
            # A pending settle dispatches the newer input itself.
            if (
                enabled
                and changed
                and settled.strip()
                and settled != self._last_submitted
                and not self._debouncer.pending
            ):
                seq = self._begin_request(settled)
        log("session", f"Mode: {'automatic' if enabled else 'manual'}")
        self._emit_state()
        if seq is not None:
            self._start_worker(seq, settled)

    def toggle_auto_mode(self) -> bool:
        enabled = not self.auto_mode
        self.set_auto_mode(enabled)
        return enabled

    def _reset_output(self) -> None:
        with self._lock:
            self._request_seq += 1
            self._output = ""
            self._error = None
            self._loading = False
            self._status = Status.IDLE
        self._emit_state()

    def _request(self, text: str) -> bool:
        """Dispatch a tagged request for ``text``. Returns False when nothing was sent."""
        if not text.strip():
            self._reset_output()
            return False

        with self._lock:
            seq = self._begin_request(text)
        self._emit_state()
        self._start_worker(seq, text)
        return True

    def _begin_request(self, text: str) -> int:
        """Move to Loading and claim the next sequence number. Caller holds ``_lock``."""
        self._request_seq += 1
        self._loading = True
        self._error = None
        self._status = Status.LOADING
        self._last_submitted = text
        return self._request_seq

    def _start_worker(self, seq: int, text: str) -> None:
        worker = threading.Thread(
            target=self._run_request,
            args=(seq, text),
            daemon=True,
            name="transliterate",
        )
        with self._threads_lock:
            self._request_threads.add(worker)
        log("session", f"Request #{seq}: {len(text)} chars")
        worker.start()

    def _run_request(self, seq: int, text: str) -> None:
        try:
            self._apply_result(seq, text)
        finally:
            current = threading.current_thread()
            with self._threads_lock:
                self._request_threads.discard(current)

    def _apply_result(self, seq: int, text: str) -> None:
        try:
            result = self.transliterator.transliterate(text)
        except Exception as exc:
            with self._lock:
                if seq != self._request_seq:
                    log("session", f"Discarding stale failure #{seq} (latest #{self._request_seq})")
                    return
                self._error = str(exc) or GENERIC_ERROR
                self._loading = False
                self._status = Status.FAILED
            log("session", f"Request #{seq} failed: {exc}")
            self._emit_state()
            return

        with self._lock:
            if seq != self._request_seq:
                log("session", f"Discarding stale result #{seq} (latest #{self._request_seq})")
                return
            self._output = result
            self._loading = False
            self._status = Status.SUCCEEDED
            if len(text) >= self.min_history_length and result:
                self.history.upsert(text, result)
        log("session", f"Request #{seq} done: {len(result)} chars")
        self._emit_state()

    # -- user actions ----------------------------------------------------------

    def clear(self) -> None:
        """Reset input, output and error. Responses still in flight are discarded."""
        self._debouncer.cancel()
        with self._lock:
            self._request_seq += 1
            self._input = ""
            self._output = ""
            self._error = None
            self._loading = False
            self._status = Status.IDLE
            self._settled = ""
            self._last_submitted = None
        self._emit_state()

    def select_history(self, item_id: str) -> HistoryItem:
        """Republish a history entry as input/output without a network call."""
        item = self.history.get(item_id)
        self._debouncer.cancel()
        with self._lock:
            self._request_seq += 1
            self._input = item.original
            self._output = item.transliterated
            self._error = None
            self._loading = False
            self._status = Status.SUCCEEDED
            self._settled = item.original
            self._last_submitted = item.original
        self._emit_state()
        return item

    def clear_history(self) -> None:
        self.history.clear()
        log("history", "Cleared")
        self._emit_state()

    def copy_output(self) -> bool:
        """Copy the output to the clipboard. Failures are logged, never raised."""
        with self._lock:
            output = self._output
        if not output:
            return False

        try:
            pyperclip.copy(output)
        except Exception as exc:
            log("clipboard", f"Failed to copy: {exc}")
            return False

        with self._lock:
            self._copied = True
            self._copied_seq += 1
            seq = self._copied_seq
            if self._copied_timer is not None:
                self._copied_timer.cancel()
            self._copied_timer = threading.Timer(
                self.copied_reset_seconds, self._reset_copied, args=(seq,),
            )
            self._copied_timer.daemon = True
            self._copied_timer.start()
        self._emit_state()
        return True

    def _reset_copied(self, seq: int) -> None:
        with self._lock:
            if seq != self._copied_seq:
                return
            self._copied = False
            self._copied_timer = None
        self._emit_state()

    # -- lifecycle -------------------------------------------------------------

    def wait_idle(self, timeout: float = 5.0) -> bool:
        """Wait for pending debounce and request threads. Returns False on timeout."""
        self._debouncer.flush()
        with self._threads_lock:
            threads = list(self._request_threads)
        for thread in threads:
            thread.join(timeout=timeout)
            if thread.is_alive():
                return False
        return True

    def close(self) -> None:
        self._debouncer.cancel()
        with self._lock:
            if self._copied_timer is not None:
                self._copied_timer.cancel()
                self._copied_timer = None

        with self._threads_lock:
            threads = list(self._request_threads)
        for thread in threads:
            thread.join(timeout=2.0)
            if thread.is_alive():
                log("shutdown", f"Warning: {thread.name} did not finish in time")

        self.transliterator.close()

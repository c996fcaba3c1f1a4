"""CLI entry point for odia-lipi."""

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path
from typing import TextIO

from .config import AppConfig, default_config_path, load_config, set_config_value
from .history import TransliterationHistory
from .log import log, set_log_stream
from .session import TransliterationSession, TransliterationState
from .transliterator import (
    ConfigurationError,
    GeminiService,
    TransliterationError,
    Transliterator,
)

HELP_TEXT = """\
Type phonetic English and press Enter. Commands:
  /go              transliterate now (manual mode)
  /auto, /manual   switch trigger mode
  /clear           clear input and output
  /copy            copy output to clipboard
  /history         show recent conversions
  /recall N        restore history entry N
  /clear-history   forget all history
  /help            show this help
  /quit            exit"""


def _load(config_path: Path) -> AppConfig:
    try:
        return load_config(config_path)
    except (OSError, ValueError) as exc:
        # tomllib.TOMLDecodeError is a ValueError
        raise SystemExit(f"[error] Cannot read {config_path}: {exc}") from exc


def render_history(history: TransliterationHistory, out: TextIO) -> None:
    """Print the history panel. Prints nothing when history is empty."""
    entries = history.entries()
    if not entries:
        return
    print("Recent history:", file=out)
    for index, item in enumerate(entries, start=1):
        print(f"  {index:>2}. {item.original}  ->  {item.transliterated}", file=out)


class TerminalView:
    """Prints session state changes as they happen."""

    def __init__(self, out: TextIO) -> None:
        self._out = out
        self._last: TransliterationState | None = None
        self._lock = threading.Lock()

    def __call__(self, state: TransliterationState) -> None:
        with self._lock:
            last = self._last
            self._last = state
            self._render(last, state)

    def _render(self, last: TransliterationState | None, state: TransliterationState) -> None:
        if last is not None and state.is_loading and not last.is_loading:
            print("Converting...", file=self._out, flush=True)
        if state.error and (last is None or state.error != last.error):
            print(f"[error] {state.error}", file=self._out, flush=True)
        if state.output and (last is None or state.output != last.output):
            print(f"=> {state.output}", file=self._out, flush=True)
        if state.copied and (last is None or not last.copied):
            print("Copied", file=self._out, flush=True)


def run_interactive(session: TransliterationSession, stdin: TextIO, out: TextIO) -> int:
    banner = session.configuration_error
    if banner:
        print(f"[warning] {banner}", file=out)
    mode = "automatic" if session.auto_mode else "manual"
    print(f"odia-lipi ({mode} mode). /help for commands.", file=out, flush=True)

    session.on_state_change = TerminalView(out)
    for raw in stdin:
        line = raw.rstrip("\n")
        command, _, arg = line.strip().partition(" ")

        if not line.startswith("/"):
            session.set_input(line)
        elif command == "/quit":
            break
        elif command == "/help":
            print(HELP_TEXT, file=out)
        elif command == "/go":
            if not session.submit():
                print("Nothing to transliterate.", file=out)
        elif command == "/auto":
            session.set_auto_mode(True)
        elif command == "/manual":
            session.set_auto_mode(False)
        elif command == "/clear":
            session.clear()
        elif command == "/copy":
            if not session.copy_output():
                print("Nothing copied.", file=out)
        elif command == "/history":
            render_history(session.history, out)
        elif command == "/clear-history":
            session.clear_history()
        elif command == "/recall":
            entries = session.history.entries()
            try:
                item = entries[int(arg) - 1]
            except (ValueError, IndexError):
                print(f"No history entry '{arg}'.", file=out)
                continue
            session.select_history(item.id)
            print(f"<= {item.original}", file=out)
        else:
            print(f"Unknown command {command}. /help for commands.", file=out)
        out.flush()

    session.wait_idle()
    return 0


def command_run(config_path: Path) -> int:
    config = _load(config_path)
    set_log_stream(sys.stderr)
    session = TransliterationSession.from_config(config)
    try:
        return run_interactive(session, sys.stdin, sys.stdout)
    except KeyboardInterrupt:
        return 130
    finally:
        session.close()


def command_convert(config_path: Path, words: list[str]) -> int:
    config = _load(config_path)
    text = " ".join(words) if words else sys.stdin.read()

    transliterator = Transliterator(
        GeminiService.from_config(config.gemini),
        model=config.gemini.model,
    )
    try:
        print(transliterator.transliterate(text))
    except ConfigurationError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 2
    except TransliterationError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    finally:
        transliterator.close()
    return 0


def command_status(config_path: Path) -> int:
    from . import __version__

    config = _load(config_path)
    print(f"[status] odia-lipi v{__version__}")
    print(f"[status] Config: {config_path}{'' if config_path.exists() else ' (not found, using defaults)'}")
    print(
        "[status] gemini = "
        f"model={config.gemini.model}, url={config.gemini.url}, "
        f"timeout_seconds={config.gemini.timeout_seconds}, "
        f"api_key={'set' if config.gemini.api_key else 'missing'}"
    )
    print(
        "[status] session = "
        f"auto_mode={config.session.auto_mode}, "
        f"debounce_seconds={config.session.debounce_seconds}"
    )
    print(
        "[status] history = "
        f"max_items={config.history.max_items}, min_length={config.history.min_length}"
    )

    service = GeminiService.from_config(config.gemini)
    try:
        reachable = service.health_check()
    finally:
        service.close()
    print(f"[status] gemini endpoint reachable: {'yes' if reachable else 'no'}")

    if not config.gemini.api_key:
        return 2
    return 0 if reachable else 1


def command_set(config_path: Path, key: str, value: str) -> int:
    try:
        set_config_value(config_path, key, value)
    except ValueError as exc:
        print(f"[error] {exc}")
        return 1
    shown = "***" if key.endswith("api_key") else value
    log("config", f"{key} = {shown}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    config_parent = argparse.ArgumentParser(add_help=False)
    config_parent.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to config.toml",
    )

    parser = argparse.ArgumentParser(
        description="Phonetic English to Odia script transliteration.",
        parents=[config_parent],
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser(
        "run",
        parents=[config_parent],
        help="Start an interactive session",
    )
    convert_parser = subparsers.add_parser(
        "convert",
        parents=[config_parent],
        help="Transliterate text once (reads stdin when no text is given)",
    )
    convert_parser.add_argument("text", nargs="*", help="Text to transliterate")

    subparsers.add_parser(
        "status",
        parents=[config_parent],
        help="Show current config and endpoint reachability",
    )
    set_parser = subparsers.add_parser(
        "set",
        parents=[config_parent],
        help="Set a config value",
        epilog=(
            "examples:\n"
            "  odia-lipi set gemini.api_key AIza...\n"
            "  odia-lipi set gemini.model gemini-3-flash-preview\n"
            "  odia-lipi set session.auto_mode false\n"
            "  odia-lipi set session.debounce_seconds 0.5"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    set_parser.add_argument("key", help="Dotted key path (e.g. gemini.model)")
    set_parser.add_argument("value", help="Value to set")

    subparsers.add_parser(
        "version",
        help="Show version",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config).expanduser().resolve()
    command = args.command or "run"

    if command == "run":
        return command_run(config_path)
    if command == "convert":
        return command_convert(config_path, args.text)
    if command == "status":
        return command_status(config_path)
    if command == "set":
        return command_set(config_path, args.key, args.value)
    if command == "version":
        from . import __version__
        print(__version__)
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())

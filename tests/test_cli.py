"""Tests for CLI argument parsing and the interactive session loop."""

from __future__ import annotations

import io
import threading
from pathlib import Path
from unittest.mock import patch

from odia_lipi.cli import (
    TerminalView,
    build_parser,
    command_convert,
    command_set,
    main,
    render_history,
    run_interactive,
)
from odia_lipi.config import load_config
from odia_lipi.history import TransliterationHistory
from odia_lipi.session import Status, TransliterationSession, TransliterationState
from odia_lipi.transliterator import Transliterator


def _session(service, **kwargs) -> TransliterationSession:
    return TransliterationSession(Transliterator(service), debounce_seconds=10.0, **kwargs)


def _run(session: TransliterationSession, *lines: str) -> str:
    out = io.StringIO()
    assert run_interactive(session, io.StringIO("".join(f"{line}\n" for line in lines)), out) == 0
    return out.getvalue()


class TestBuildParser:
    def test_default_command_is_none(self) -> None:
        args = build_parser().parse_args([])
        assert args.command is None

    def test_run_command(self) -> None:
        assert build_parser().parse_args(["run"]).command == "run"

    def test_convert_words(self) -> None:
        args = build_parser().parse_args(["convert", "mu", "bhala", "achi"])
        assert args.command == "convert"
        assert args.text == ["mu", "bhala", "achi"]

    def test_convert_no_words(self) -> None:
        assert build_parser().parse_args(["convert"]).text == []

    def test_set_command(self) -> None:
        args = build_parser().parse_args(["set", "gemini.model", "gemini-2.5-flash"])
        assert args.key == "gemini.model"
        assert args.value == "gemini-2.5-flash"

    def test_custom_config_path(self) -> None:
        args = build_parser().parse_args(["status", "--config", "/tmp/test.toml"])
        assert args.config == "/tmp/test.toml"

    def test_version_command(self) -> None:
        assert build_parser().parse_args(["version"]).command == "version"


class TestInteractive:
    def test_go_prints_output(self, fake_service) -> None:
        out = _run(_session(fake_service), "namaskar", "/go", "/quit")
        assert "Converting..." in out
        assert "=> ନମସ୍କାର" in out

    def test_lines_settle_on_exit(self, fake_service) -> None:
        out = _run(_session(fake_service), "namaskar")
        assert "=> ନମସ୍କାର" in out
        assert len(fake_service.calls) == 1

    def test_missing_key_banner(self, fake_service) -> None:
        fake_service._has_credentials = False
        out = _run(_session(fake_service), "/quit")
        assert "[warning] API key missing" in out

    def test_error_is_shown(self, fake_service) -> None:
        fake_service.error = RuntimeError("down")
        out = _run(_session(fake_service), "namaskar", "/go")
        assert "[error] Failed to transliterate text" in out

    def test_history_and_recall(self, fake_service) -> None:
        session = _session(fake_service)
        session.history.upsert("mu bhala achi", "ମୁଁ ଭଲ ଅଛି")
        out = _run(session, "/history", "/recall 1")
        assert "1. mu bhala achi  ->  ମୁଁ ଭଲ ଅଛି" in out
        assert "<= mu bhala achi" in out
        assert fake_service.calls == []

    def test_recall_out_of_range(self, fake_service) -> None:
        out = _run(_session(fake_service), "/recall 3", "/recall x")
        assert "No history entry '3'." in out
        assert "No history entry 'x'." in out

    def test_clear_history_hides_panel(self, fake_service) -> None:
        session = _session(fake_service)
        session.history.upsert("namaskar", "ନମସ୍କାର")
        out = _run(session, "/clear-history", "/history")
        assert "Recent history" not in out

    def test_mode_switch(self, fake_service) -> None:
        session = _session(fake_service)
        _run(session, "/manual", "namaskar")
        assert not session.auto_mode
        assert fake_service.calls == []

    def test_copy(self, fake_service) -> None:
        with patch("odia_lipi.session.pyperclip") as mock_clip:
            out = _run(_session(fake_service), "/copy")
        assert "Nothing copied." in out
        mock_clip.copy.assert_not_called()

    def test_unknown_command(self, fake_service) -> None:
        out = _run(_session(fake_service), "/bogus")
        assert "Unknown command /bogus" in out


class TestRenderHistory:
    def test_empty_prints_nothing(self) -> None:
        out = io.StringIO()
        render_history(TransliterationHistory(), out)
        assert out.getvalue() == ""

    def test_newest_first(self) -> None:
        h = TransliterationHistory()
        h.upsert("first", "1")
        h.upsert("second", "2")
        out = io.StringIO()
        render_history(h, out)
        lines = out.getvalue().splitlines()
        assert "second" in lines[1]
        assert "first" in lines[2]


class TestTerminalView:
    def test_concurrent_updates_print_each_change_once(self) -> None:
        out = io.StringIO()
        view = TerminalView(out)
        state = TransliterationState(
            input="namaskar",
            output="ନମସ୍କାର",
            is_loading=False,
            error=None,
            status=Status.SUCCEEDED,
            auto_mode=True,
            copied=False,
        )
        start = threading.Barrier(8)

        def deliver() -> None:
            start.wait()
            view(state)

        workers = [threading.Thread(target=deliver) for _ in range(8)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(2.0)

        assert out.getvalue().count("=> ନମସ୍କାର") == 1


class TestCommands:
    def test_convert(self, tmp_config: Path, fake_service, capsys) -> None:
        with patch("odia_lipi.cli.GeminiService.from_config", return_value=fake_service):
            assert command_convert(tmp_config, ["namaskar"]) == 0
        assert capsys.readouterr().out.strip() == "ନମସ୍କାର"
        assert fake_service.closed

    def test_convert_missing_key(self, tmp_path: Path, fake_service, capsys) -> None:
        fake_service._has_credentials = False
        with patch("odia_lipi.cli.GeminiService.from_config", return_value=fake_service):
            assert command_convert(tmp_path / "none.toml", ["namaskar"]) == 2
        assert "API key missing" in capsys.readouterr().err

    def test_convert_failure(self, tmp_config: Path, fake_service) -> None:
        fake_service.error = RuntimeError("down")
        with patch("odia_lipi.cli.GeminiService.from_config", return_value=fake_service):
            assert command_convert(tmp_config, ["namaskar"]) == 1

    def test_set(self, tmp_config: Path) -> None:
        assert command_set(tmp_config, "session.debounce_seconds", "0.5") == 0
        assert load_config(tmp_config).session.debounce_seconds == 0.5

    def test_set_invalid_key(self, tmp_config: Path) -> None:
        assert command_set(tmp_config, "nosection", "1") == 1

    def test_version(self, capsys) -> None:
        from odia_lipi import __version__

        assert main(["version"]) == 0
        assert capsys.readouterr().out.strip() == __version__

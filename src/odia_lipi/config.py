"""Configuration loading and persistence for odia-lipi."""

from __future__ import annotations

import os
import re
import sys
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .log import log

DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models"

# Checked in order when gemini.api_key is empty.
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")


@dataclass
class GeminiConfig:
    api_key: str = ""
    model: str = DEFAULT_MODEL
    url: str = DEFAULT_GEMINI_URL
    timeout_seconds: float = 30.0


@dataclass
class SessionConfig:
    auto_mode: bool = True
    debounce_seconds: float = 0.8
    copied_reset_seconds: float = 2.0


@dataclass
class HistoryConfig:
    max_items: int = 10
    min_length: int = 3


@dataclass
class AppConfig:
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)


def default_config_path() -> Path:
    """Return the default config path (~/.config/odia-lipi/config.toml)."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home()))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "odia-lipi" / "config.toml"


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    cursor: Any = data
    for part in name.split("."):
        if not isinstance(cursor, dict):
            return {}
        cursor = cursor.get(part, {})
    return cursor if isinstance(cursor, dict) else {}


def _flag(data: dict[str, Any], dotted_key: str, default: bool) -> bool:
    """Read a TOML boolean. Quoted strings like ``"false"`` fall back to ``default``."""
    value = data.get(dotted_key.rsplit(".", 1)[-1], default)
    if isinstance(value, bool):
        return value
    log("config", f"{dotted_key}={value!r} is not true/false, defaulting to {str(default).lower()}")
    return default


def resolve_api_key(configured: str, environ: dict[str, str] | None = None) -> str:
    """Return the configured key, or the first non-empty key from the environment."""
    if configured.strip():
        return configured.strip()
    env = os.environ if environ is None else environ
    for name in API_KEY_ENV_VARS:
        value = env.get(name, "").strip()
        if value:
            return value
    return ""


def load_config(path: Path | None) -> AppConfig:
    """Load config from ``path``. A missing file yields defaults."""
    data: dict[str, Any] = {}
    if path is not None and path.exists():
        with path.open("rb") as fh:
            data = tomllib.load(fh)

    gemini_data = _section(data, "gemini")
    session_data = _section(data, "session")
    history_data = _section(data, "history")

    config = AppConfig(
        gemini=GeminiConfig(
            api_key=resolve_api_key(str(gemini_data.get("api_key", ""))),
            model=str(gemini_data.get("model", DEFAULT_MODEL)),
            url=str(gemini_data.get("url", DEFAULT_GEMINI_URL)),
            timeout_seconds=float(gemini_data.get("timeout_seconds", 30.0)),
        ),
        session=SessionConfig(
            auto_mode=_flag(session_data, "session.auto_mode", True),
            debounce_seconds=float(session_data.get("debounce_seconds", 0.8)),
            copied_reset_seconds=float(session_data.get("copied_reset_seconds", 2.0)),
        ),
        history=HistoryConfig(
            max_items=int(history_data.get("max_items", 10)),
            min_length=int(history_data.get("min_length", 3)),
        ),
    )
    return _validate_config(config)


def _validate_config(config: AppConfig) -> AppConfig:
    """Clamp config values to sane ranges. Logs warnings, never crashes."""
    if not config.gemini.model.strip():
        log("config", f"gemini.model is empty, defaulting to '{DEFAULT_MODEL}'")
        config.gemini.model = DEFAULT_MODEL

    if not config.gemini.url.startswith(("http://", "https://")):
        log("config", f"gemini.url='{config.gemini.url}' invalid, defaulting to {DEFAULT_GEMINI_URL}")
        config.gemini.url = DEFAULT_GEMINI_URL

    if config.gemini.timeout_seconds <= 0:
        log("config", f"timeout_seconds={config.gemini.timeout_seconds} invalid, clamped to 30.0")
        config.gemini.timeout_seconds = 30.0

    if not 0.05 <= config.session.debounce_seconds <= 10.0:
        clamped = max(0.05, min(10.0, config.session.debounce_seconds))
        log("config", f"debounce_seconds={config.session.debounce_seconds} out of range, clamped to {clamped}")
        config.session.debounce_seconds = clamped

    if config.session.copied_reset_seconds < 0:
        log("config", f"copied_reset_seconds={config.session.copied_reset_seconds} invalid, clamped to 2.0")
        config.session.copied_reset_seconds = 2.0

    if not 1 <= config.history.max_items <= 100:
        clamped_items = max(1, min(100, config.history.max_items))
        log("config", f"history.max_items={config.history.max_items} out of range, clamped to {clamped_items}")
        config.history.max_items = clamped_items

    if config.history.min_length < 1:
        log("config", f"history.min_length={config.history.min_length} invalid, clamped to 1")
        config.history.min_length = 1

    return config


_SECTION_HEADER = re.compile(r"(?m)^\[[^\]\n]+\]\s*$")
_INTEGER = re.compile(r"[+-]?\d+")
_DECIMAL = re.compile(r"[+-]?(?:\d+\.\d*|\d*\.\d+)(?:[eE][+-]?\d+)?")


def _toml_value(raw_value: str) -> str:
    """Render a CLI value as TOML: booleans and numbers bare, anything else quoted."""
    value = raw_value.strip()
    if not value:
        return '""'
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value
    if value.lower() in {"true", "false"}:
        return value.lower()
    if _INTEGER.fullmatch(value):
        return str(int(value))
    if _DECIMAL.fullmatch(value):
        return value
    # API keys and model ids land here.
    quoted = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{quoted}"'


def _section_body_span(text: str, section: str) -> tuple[int, int] | None:
    """Return (start, end) of the body under ``[section]``, or None."""
    header = re.search(rf"(?m)^\[{re.escape(section)}\]\s*$", text)
    if header is None:
        return None
    following = _SECTION_HEADER.search(text, header.end())
    return header.end(), following.start() if following else len(text)


def _upsert_key(body: str, key: str, literal: str) -> str:
    """Replace ``key = ...`` in a section body, or append it after the last entry."""
    assignment = re.compile(rf"(?m)^(\s*{re.escape(key)}\s*=\s*).*$")
    if assignment.search(body):
        return assignment.sub(lambda m: f"{m.group(1)}{literal}", body, count=1)

    entries = body.rstrip(" \t\r\n")
    blank_tail = body[len(entries):]
    if entries and not entries.endswith("\n"):
        entries += "\n"
    return f"{entries}{key} = {literal}\n{blank_tail}"


def set_config_value(config_path: Path, dotted_key: str, raw_value: str) -> None:
    """Set ``section.key`` in the TOML file, creating the file or section as needed."""
    parts = dotted_key.split(".")
    if len(parts) < 2 or any(not part.strip() for part in parts):
        raise ValueError(f"Invalid key path '{dotted_key}'. Use section.key, e.g. gemini.model")

    key = parts[-1].strip()
    section = ".".join(part.strip() for part in parts[:-1])
    value_literal = _toml_value(raw_value)

    text = config_path.read_text(encoding="utf-8") if config_path.exists() else ""

    section_span = _section_body_span(text, section)
    if section_span is None:
        if text and not text.endswith("\n"):
            text += "\n"
        if text and not text.endswith("\n\n"):
            text += "\n"
        text += f"[{section}]\n{key} = {value_literal}\n"
    else:
        block_start, block_end = section_span
        updated_block = _upsert_key(text[block_start:block_end], key, value_literal)
        text = text[:block_start] + updated_block + text[block_end:]

    # Atomic write: temp file in the same directory, then replace.
    config_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{config_path.name}.",
        suffix=".tmp",
        dir=str(config_path.parent),
        text=True,
    )
    tmp_path = Path(tmp_name)
    try:
        # The file may hold an API key.
        os.chmod(fd, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, config_path)
    finally:
        tmp_path.unlink(missing_ok=True)

"""Shared fixtures for odia-lipi tests."""

from __future__ import annotations

from pathlib import Path

import pytest


class FakeService:
    """In-memory stand-in for the Gemini service."""

    def __init__(self, reply: str = "ନମସ୍କାର", has_credentials: bool = True) -> None:
        self.reply = reply
        self.error: Exception | None = None
        self.calls: list[tuple[str, str]] = []
        self.closed = False
        self._has_credentials = has_credentials

    @property
    def has_credentials(self) -> bool:
        return self._has_credentials

    def generate(self, model: str, prompt: str) -> str:
        self.calls.append((model, prompt))
        if self.error is not None:
            raise self.error
        return self.reply

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_service() -> FakeService:
    return FakeService()


@pytest.fixture(autouse=True)
def _no_api_key_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's real key out of config tests."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)


@pytest.fixture()
def tmp_config(tmp_path: Path) -> Path:
    """Minimal valid TOML config in a temp directory."""
    p = tmp_path / "config.toml"
    p.write_text('[gemini]\napi_key = "test-key"\n')
    return p


@pytest.fixture()
def example_config() -> Path:
    """Path to the real config.example.toml shipped with the project."""
    return Path(__file__).resolve().parent.parent / "config.example.toml"

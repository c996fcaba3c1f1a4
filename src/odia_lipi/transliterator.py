"""Odia transliteration via the Gemini text-generation API."""

from __future__ import annotations

import re
from typing import Any, Protocol

import httpx

from .config import DEFAULT_GEMINI_URL, DEFAULT_MODEL, GeminiConfig
from .log import log

PROMPT_TEMPLATE = """You are a strict transliteration engine.
Task: Convert the following phonetic English text into Odia (Oriya) script.
Rules:
1. Do NOT translate the meaning. Convert the sounds (phonemes) to Odia script.
2. Maintain punctuation and formatting (newlines, spacing).
3. Output ONLY the Odia text. No explanations.
4. Example: "namaskar" -> "ନମସ୍କାର"
5. Example: "mu bhala achi" -> "ମୁଁ ଭଲ ଅଛି"

Input text:
"{text}"
"""

TRANSLITERATION_FAILED = "Failed to transliterate text. Please try again."
API_KEY_MISSING = (
    "API key missing. Transliteration will fail. "
    "Set gemini.api_key or GEMINI_API_KEY."
)


class OdiaLipiError(Exception):
    """Base class for user-facing odia-lipi errors."""


class ConfigurationError(OdiaLipiError):
    """No service credential is available."""


class TransliterationError(OdiaLipiError):
    """A single transliteration request failed."""


def _redact_sensitive(text: str) -> str:
    return re.sub(r"(AIza|key=|Bearer\s+)[\w-]{6,}", r"\1***", text)


def _describe_http_error(response: httpx.Response) -> str:
    """Turn HTTP errors into actionable messages."""
    code = response.status_code
    if code in (400, 401) and "api key" in response.text.lower():
        return "API key is invalid. Update with: odia-lipi set gemini.api_key YOUR_KEY"
    if code == 403:
        return "API key does not have permission for this model."
    if code == 404:
        return "Model not found. Check gemini.model in your config."
    if code == 429:
        return "Rate limit exceeded. Wait a moment and try again."
    if code >= 500:
        return f"Server error ({code}). The service may be temporarily down."
    return f"HTTP {code}: {_redact_sensitive(response.text[:200])}"


def build_prompt(text: str) -> str:
    """Return the instruction prompt with ``text`` embedded verbatim."""
    return PROMPT_TEMPLATE.format(text=text)


def _extract_text(payload: Any) -> str:
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(str(part.get("text", "")) for part in parts)


class TextGenerator(Protocol):
    """Opaque text-in/text-out generation service."""

    @property
    def has_credentials(self) -> bool: ...

    def generate(self, model: str, prompt: str) -> str: ...

    def close(self) -> None: ...


class GeminiService:
    """Calls Gemini's generateContent REST endpoint."""

    def __init__(
        self,
        api_key: str,
        url: str = DEFAULT_GEMINI_URL,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._api_key = api_key.strip()
        self.url = url.rstrip("/")
        self._client = httpx.Client(
            timeout=timeout_seconds,
            headers={"x-goog-api-key": self._api_key},
        )

    @classmethod
    def from_config(cls, config: GeminiConfig) -> GeminiService:
        return cls(
            api_key=config.api_key,
            url=config.url,
            timeout_seconds=config.timeout_seconds,
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self._api_key)

    def health_check(self) -> bool:
        """Return True when the API host answers at all."""
        try:
            self._client.get(self.url)
            return True
        except httpx.HTTPError:
            return False

    def generate(self, model: str, prompt: str) -> str:
        if not self.has_credentials:
            raise ConfigurationError(API_KEY_MISSING)

        response = self._client.post(
            f"{self.url}/{model}:generateContent",
            json={"contents": [{"parts": [{"text": prompt}]}]},
        )
        if response.status_code != 200:
            raise RuntimeError(_describe_http_error(response))
        return _extract_text(response.json())

    def close(self) -> None:
        self._client.close()


class Transliterator:
    """Converts phonetic English to Odia script with one service call per request."""

    def __init__(self, service: TextGenerator, model: str = DEFAULT_MODEL) -> None:
        self.service = service
        self.model = model

    @property
    def configured(self) -> bool:
        return self.service.has_credentials

    def transliterate(self, text: str) -> str:
        """Return the Odia rendering of ``text``.

        Raises:
            ConfigurationError: no API key is configured.
            TransliterationError: the request failed for any other reason.
        """
        if not self.configured:
            raise ConfigurationError(API_KEY_MISSING)

        if not text.strip():
            return ""

        try:
            result = self.service.generate(self.model, build_prompt(text))
        except Exception as exc:
            log("transliterate", f"Request failed: {_redact_sensitive(str(exc))}")
            raise TransliterationError(TRANSLITERATION_FAILED) from exc

        return (result or "").strip()

    def close(self) -> None:
        self.service.close()

"""odia-lipi: phonetic English to Odia script transliteration."""

from __future__ import annotations

from importlib.resources import files

__version__: str = files("odia_lipi").joinpath("VERSION").read_text().strip()

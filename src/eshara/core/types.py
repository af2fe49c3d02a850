"""Shared type aliases for the core and domain layers."""
from typing import Literal

Language = Literal["en", "fr"]
Sender = Literal["narrator", "player", "system"]

SUPPORTED_LANGUAGES: tuple[Language, ...] = ("en", "fr")
DEFAULT_LANGUAGE: Language = "en"

__all__ = ["DEFAULT_LANGUAGE", "Language", "Sender", "SUPPORTED_LANGUAGES"]

"""Translation request/response contract."""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class TranslationRequest:
    """Text to translate plus the language pair and credentials."""
    text: str
    source_lang: str
    target_lang: str
    api_key: str
    model: str


@dataclass
class TranslationResponse:
    """Outcome of a translation call. Failures never raise."""
    success: bool
    translated_text: Optional[str] = None
    error: Optional[str] = None


class TranslationClient(Protocol):
    """Protocol for translation providers."""

    async def translate(self, request: TranslationRequest) -> TranslationResponse:
        """Translate text, resolving with a failure response on error."""
        ...


LANGUAGE_NAMES = {
    "ru": "Russian",
    "en": "English",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
}


def language_name_for_prompt(lang_code: str) -> str:
    """Map a language tag ('ru-RU', 'en') to the name used in prompts."""
    return LANGUAGE_NAMES.get(lang_code.split("-")[0].lower(), lang_code)

"""Translation clients."""

from .base import TranslationRequest, TranslationResponse, TranslationClient, language_name_for_prompt
from .gemini_client import GeminiTranslationClient

__all__ = [
    "TranslationRequest",
    "TranslationResponse",
    "TranslationClient",
    "language_name_for_prompt",
    "GeminiTranslationClient",
]

"""Gemini translation client."""

import asyncio
import logging
from typing import Any, Callable, Optional

import aiohttp

from .base import TranslationRequest, TranslationResponse, language_name_for_prompt

logger = logging.getLogger(__name__)

GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiTranslationClient:
    """Translates text through the Gemini generateContent endpoint."""

    def __init__(self,
                 base_url: str = GEMINI_API_BASE_URL,
                 timeout_seconds: float = 15.0,
                 session_factory: Optional[Callable[[], Any]] = None):
        """Initialize Gemini translation client.

        Args:
            base_url: Models endpoint prefix
            timeout_seconds: Total timeout for one request
            session_factory: Callable returning an aiohttp-compatible session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session_factory = session_factory or self._default_session

        logger.info(f"GeminiTranslationClient initialized with endpoint: {self.base_url}")

    def _default_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_seconds))

    @staticmethod
    def build_prompt(request: TranslationRequest) -> str:
        source = language_name_for_prompt(request.source_lang)
        target = language_name_for_prompt(request.target_lang)
        return (f"Translate from {source} to {target}. Return ONLY the translated text.\n"
                f"Original: \"{request.text}\"")

    async def translate(self, request: TranslationRequest) -> TranslationResponse:
        """Send text to Gemini and return the translation.

        Args:
            request: Text, language pair, API key and model

        Returns:
            TranslationResponse; success is False on any failure
        """
        if not request.text.strip():
            return TranslationResponse(success=True, translated_text=request.text)
        if not request.api_key:
            return TranslationResponse(success=False, error="Gemini API key is not configured")

        url = f"{self.base_url}/{request.model}:generateContent"
        payload = {"contents": [{"parts": [{"text": self.build_prompt(request)}]}]}

        try:
            async with self.session_factory() as session:
                async with session.post(url, params={"key": request.api_key}, json=payload) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        return TranslationResponse(
                            success=False,
                            error=f"Gemini API error: {response.status} - {error_text}",
                        )
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Gemini request failed: {e!r}")
            return TranslationResponse(success=False, error=f"Gemini request failed: {e!r}")

        return self._parse_response(data)

    @staticmethod
    def _parse_response(data: Any) -> TranslationResponse:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None

        if text and text.strip():
            return TranslationResponse(success=True, translated_text=text.strip())

        block_reason = (data.get("promptFeedback") or {}).get("blockReason") if isinstance(data, dict) else None
        if block_reason:
            return TranslationResponse(success=False, error=f"Translation blocked: {block_reason}")
        return TranslationResponse(success=False, error="Could not extract translated text")

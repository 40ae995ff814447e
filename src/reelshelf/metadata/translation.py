"""Description translators."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

import httpx

from reelshelf.config import TranslationSettings
from reelshelf.errors import OperationCancelled

LOGGER = logging.getLogger(__name__)


class TextTranslator(Protocol):
    """Translate text, returning the original text on ordinary failures."""

    @property
    def enabled(self) -> bool: ...

    def translate(
        self,
        text: str,
        source_language: str | None,
        target_language: str,
        cancel_event: threading.Event | None = None,
    ) -> str: ...


class NullTranslator:
    """Pass-through translator used when translation is disabled."""

    @property
    def enabled(self) -> bool:
        return False

    def translate(
        self,
        text: str,
        source_language: str | None,
        target_language: str,
        cancel_event: threading.Event | None = None,
    ) -> str:
        return text or ""


class DeepLTranslator:
    """Translator backed by the DeepL REST API."""

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = "https://api-free.deepl.com/v2/translate",
        timeout: float = 20.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the translator.

        Args:
            api_key: DeepL authentication key.
            endpoint: Translate endpoint URL.
            timeout: Request timeout in seconds.
            client: Optional preconfigured HTTP client.

        Raises:
            ValueError: If ``api_key`` is blank.
        """
        if not api_key or not api_key.strip():
            raise ValueError("DeepL authentication key must be provided.")
        self._endpoint = endpoint
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {"Authorization": f"DeepL-Auth-Key {api_key.strip()}"}

    @property
    def enabled(self) -> bool:
        return True

    def translate(
        self,
        text: str,
        source_language: str | None,
        target_language: str,
        cancel_event: threading.Event | None = None,
    ) -> str:
        """Translate ``text``; any request or decoding failure returns it unchanged.

        Raises:
            ValueError: If ``target_language`` is blank.
            OperationCancelled: If ``cancel_event`` is set before the request.
        """
        if not text or not text.strip():
            LOGGER.info("DeepL translation skipped: input text is empty.")
            return ""
        if not target_language or not target_language.strip():
            raise ValueError("Target language code must be provided.")
        if cancel_event is not None and cancel_event.is_set():
            LOGGER.info("DeepL translation cancelled by caller.")
            raise OperationCancelled("Translation cancelled.")

        form = {
            "text": text,
            "target_lang": target_language.upper(),
            "preserve_formatting": "1",
        }
        if source_language:
            form["source_lang"] = source_language.upper()

        LOGGER.info(
            "DeepL translation request: target=%s, source=%s, length=%d.",
            target_language,
            source_language or "auto",
            len(text),
        )
        try:
            response = self._client.post(self._endpoint, data=form, headers=self._headers)
            response.raise_for_status()
            translations = response.json()["translations"]
            translated = str(translations[0]["text"]).strip()
        except httpx.HTTPError:
            LOGGER.exception("DeepL translation failed.")
            return text
        except (ValueError, KeyError, IndexError, TypeError):
            LOGGER.exception("DeepL returned an unexpected payload.")
            return text

        LOGGER.info(
            "DeepL translation succeeded: detected=%s.",
            translations[0].get("detected_source_language", "unknown"),
        )
        return translated or text

    def close(self) -> None:
        """Release the underlying HTTP client."""
        self._client.close()


def build_translator(settings: TranslationSettings) -> TextTranslator:
    """Return the translator described by ``settings``."""
    if settings.enabled and settings.api_key and settings.target_language:
        return DeepLTranslator(settings.api_key, endpoint=settings.endpoint)
    return NullTranslator()


__all__ = ["DeepLTranslator", "NullTranslator", "TextTranslator", "build_translator"]

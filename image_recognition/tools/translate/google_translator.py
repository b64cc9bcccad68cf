# image_recognition/tools/translate/google_translator.py
"""
Google Translate (REST v2) translation adapter.

The v2 endpoint takes one target language per request, so one adapter call
issues one request per language. A failing language is logged and left out of
the result; the remaining languages are still returned.
"""

from __future__ import annotations

import html
from collections.abc import Sequence

import requests

from image_recognition.core.logs import get_logger
from image_recognition.core.pipeline.errors import TranslationError
from image_recognition.schemas.models import TranslationResult

GOOGLE_TRANSLATE_URL = "https://translation.googleapis.com/language/translate/v2"

log = get_logger(__name__)


class GoogleTranslator:
    def __init__(self, *, api_key: str, timeout_s: float = 15.0, url: str = GOOGLE_TRANSLATE_URL) -> None:
        if not api_key:
            raise RuntimeError("Google Translate api_key is required.")
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._url = url

    def translate(self, labels: Sequence[str], source_language: str, target_languages: Sequence[str]) -> TranslationResult:
        out: TranslationResult = {}
        for lang in target_languages:
            try:
                out[lang] = self._translate_one(labels, source_language, lang)
            except TranslationError as e:
                log.warning("Translation %s -> %s failed: %s", source_language, lang, e)
        return out

    def _translate_one(self, labels: Sequence[str], source_language: str, lang: str) -> list[str]:
        body = {"q": list(labels), "source": source_language, "target": lang, "format": "text"}
        try:
            resp = requests.post(self._url, params={"key": self._api_key}, json=body, timeout=self._timeout_s)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as e:
            raise TranslationError(f"request failed: {e}", language=lang) from e
        except ValueError as e:
            raise TranslationError("invalid JSON response", language=lang) from e

        items = ((payload or {}).get("data") or {}).get("translations") or []
        texts = [html.unescape(str(it.get("translatedText", ""))) for it in items if isinstance(it, dict)]
        if len(texts) != len(labels):
            raise TranslationError(f"expected {len(labels)} translations, got {len(texts)}", language=lang)
        return texts

# image_recognition/tools/translate/translator_base.py
"""
Translation Adapter Interface

One call translates a list of labels into every requested language:

    translate(labels, source_language, target_languages) -> {lang: [labels...]}

Contract
--------
- Output lists are positionally aligned with `labels`.
- A language that failed is simply absent from the mapping; it must not
  prevent the other languages from being returned.
- Raising means the whole call failed (every requested language is treated
  as failed). The orchestrator requests one language per call, so a raise or
  a slow answer only costs that language.
- Implementations may be sync or async.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol


class Translator(Protocol):
    def translate(
        self, labels: Sequence[str], source_language: str, target_languages: Sequence[str]
    ) -> Mapping[str, Sequence[str]]: ...


def aligned_languages(
    result: Mapping[str, Sequence[str]] | None, labels: Sequence[str], target_languages: Sequence[str]
) -> dict[str, list[str] | None]:
    """
    Project an adapter result onto the configured language order. Each language
    maps to its aligned labels, or None when missing or malformed (wrong length,
    non-string entries).
    """
    out: dict[str, list[str] | None] = {}
    for lang in target_languages:
        vals = (result or {}).get(lang)
        if vals is None or isinstance(vals, str | bytes):
            out[lang] = None
            continue
        vals = list(vals)
        if len(vals) != len(labels) or not all(isinstance(v, str) for v in vals):
            out[lang] = None
            continue
        out[lang] = vals
    return out

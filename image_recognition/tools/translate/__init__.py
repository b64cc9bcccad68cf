"""
Translation tools package.
"""

from __future__ import annotations

from .google_translator import GoogleTranslator
from .translator_base import Translator, aligned_languages

__all__ = ["GoogleTranslator", "Translator", "aligned_languages"]

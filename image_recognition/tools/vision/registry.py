# image_recognition/tools/vision/registry.py
"""
Provider registry: builds adapters from settings.

Model allow-lists live here so settings validation can reject an unknown
model id at load time. A kind missing from `MODEL_ALLOW_LISTS` accepts any
model id (OpenAI model names, mock models).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from image_recognition.core.pipeline.errors import ConfigurationError

from . import clarifai_provider, google_provider
from .clarifai_provider import ClarifaiProvider
from .google_provider import GoogleVisionProvider
from .mock_provider import MockLabelProvider
from .provider_base import RecognitionProvider

if TYPE_CHECKING:
    from image_recognition.inputs.settings import AppSettings, ProviderSettings

MODEL_ALLOW_LISTS: Mapping[str, frozenset[str]] = {
    "clarifai": clarifai_provider.ALLOWED_MODELS,
    "google": google_provider.ALLOWED_MODELS,
}


def build_provider(ps: ProviderSettings) -> RecognitionProvider:
    """Construct the adapter for one provider; missing credentials or SDKs surface as ConfigurationError."""
    try:
        return _construct(ps)
    except RuntimeError as e:
        raise ConfigurationError(f"Provider {ps.name!r} ({ps.kind}): {e}") from e


def _construct(ps: ProviderSettings) -> RecognitionProvider:
    opts = dict(ps.options)
    if ps.kind == "mock":
        return MockLabelProvider(ps.name, opts.get("labels") or {}, confidence=float(opts.get("confidence", 0.9)))
    if ps.kind == "clarifai":
        return ClarifaiProvider(ps.name, api_key=ps.api_key or "", timeout_s=ps.timeout_s, max_labels=int(opts.get("max_labels", 20)))
    if ps.kind == "google":
        return GoogleVisionProvider(ps.name, api_key=ps.api_key or "", timeout_s=ps.timeout_s, max_labels=int(opts.get("max_labels", 20)))
    if ps.kind == "openai":
        from .openai_provider import OpenAIProvider

        return OpenAIProvider(ps.name, api_key=ps.api_key, timeout_s=ps.timeout_s, max_labels=int(opts.get("max_labels", 20)))
    raise ValueError(f"Unknown provider kind: {ps.kind!r}")


def build_providers(settings: AppSettings) -> dict[str, RecognitionProvider]:
    """Adapters for every enabled provider, keyed by provider name."""
    return {ps.name: build_provider(ps) for ps in settings.providers if ps.enabled}

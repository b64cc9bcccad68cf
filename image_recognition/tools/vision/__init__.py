# image_recognition/tools/vision/__init__.py
"""
Vision tools package

Re-exports the provider interface, the concrete adapters and the registry,
so callers can do:

    from image_recognition.tools.vision import (
        RecognitionProvider,
        MockLabelProvider,
        build_providers,
        run_models,
    )
"""

from __future__ import annotations

# Concrete providers
from .clarifai_provider import ClarifaiProvider
from .google_provider import GoogleVisionProvider
from .mock_provider import MockLabelProvider

# Provider protocol / helpers
from .provider_base import RecognitionProvider, call_maybe_async, run_models

# Registry
from .registry import MODEL_ALLOW_LISTS, build_provider, build_providers

__all__ = [
    "RecognitionProvider",
    "ClarifaiProvider",
    "GoogleVisionProvider",
    "MockLabelProvider",
    "call_maybe_async",
    "run_models",
    "MODEL_ALLOW_LISTS",
    "build_provider",
    "build_providers",
]

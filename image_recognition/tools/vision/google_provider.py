# image_recognition/tools/vision/google_provider.py
"""
Google Cloud Vision Provider (REST `images:annotate`)

Model ids map to Vision feature types. A single annotate request carries every
routed feature, so this provider implements `recognize_batch`.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping, Sequence
from typing import Any

import requests

from image_recognition.core.pipeline.errors import ProviderError
from image_recognition.schemas.models import Label

GOOGLE_VISION_URL = "https://vision.googleapis.com/v1/images:annotate"

GOOGLE_FEATURES: Mapping[str, tuple[str, str]] = {
    # model id -> (feature type, response key)
    "labels": ("LABEL_DETECTION", "labelAnnotations"),
    "landmarks": ("LANDMARK_DETECTION", "landmarkAnnotations"),
    "logos": ("LOGO_DETECTION", "logoAnnotations"),
}

ALLOWED_MODELS: frozenset[str] = frozenset(GOOGLE_FEATURES)


class GoogleVisionProvider:
    def __init__(
        self,
        name: str = "google",
        *,
        api_key: str,
        timeout_s: float = 20.0,
        url: str = GOOGLE_VISION_URL,
        max_labels: int = 20,
    ) -> None:
        if not api_key:
            raise RuntimeError("Google Vision api_key is required.")
        self.name = name
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._url = url
        self._max_labels = max_labels

    def recognize(self, content: bytes, model: str) -> list[Label]:
        return self.recognize_batch(content, [model])

    def recognize_batch(self, content: bytes, models: Sequence[str]) -> list[Label]:
        unknown = [m for m in models if m not in GOOGLE_FEATURES]
        if unknown:
            raise ProviderError(f"Unsupported Google Vision models: {unknown}", provider=self.name)

        features = [{"type": GOOGLE_FEATURES[m][0], "maxResults": self._max_labels} for m in models]
        body = {"requests": [{"image": {"content": base64.b64encode(content).decode("ascii")}, "features": features}]}
        try:
            resp = requests.post(self._url, params={"key": self._api_key}, json=body, timeout=self._timeout_s)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as e:
            raise ProviderError(f"Google Vision request failed: {e}", provider=self.name) from e
        except ValueError as e:
            raise ProviderError("Google Vision returned invalid JSON", provider=self.name) from e
        return self._parse(payload, models)

    def _parse(self, payload: dict[str, Any], models: Sequence[str]) -> list[Label]:
        responses = payload.get("responses") or [{}]
        first = responses[0] or {}
        if "error" in first:
            msg = (first.get("error") or {}).get("message", "unknown error")
            raise ProviderError(f"Google Vision error: {msg}", provider=self.name)
        out: list[Label] = []
        for m in models:
            key = GOOGLE_FEATURES[m][1]
            for ann in first.get(key) or []:
                text = ann.get("description")
                if not isinstance(text, str) or not text.strip():
                    continue
                conf = float(ann.get("score", 0.0))
                out.append(Label(text=text, confidence=min(max(conf, 0.0), 1.0), provider=self.name))
        return out

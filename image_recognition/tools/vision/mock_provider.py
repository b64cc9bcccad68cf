# image_recognition/tools/vision/mock_provider.py
"""
Mock Recognition Provider

Purpose
-------
Provide a deterministic, zero-network provider so the pipeline can run end to
end in tests and local dev. It returns canned labels per model id.

Design
------
- `labels_by_model` maps a model id to the labels it returns; the key "*"
  applies to any model without its own entry.
- Confidence values are fixed (default 0.9) so thresholds are predictable.
- Does not look at the image bytes.

Usage
-----
prov = MockLabelProvider("general", {"general": ["bride", "groom"]})
labels = prov.recognize(b"...", "general")
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from image_recognition.schemas.models import Label

WILDCARD = "*"


class MockLabelProvider:
    """Canned-label provider keyed by model id."""

    def __init__(
        self,
        name: str = "mock",
        labels_by_model: Mapping[str, Sequence[str]] | None = None,
        *,
        confidence: float = 0.9,
    ) -> None:
        self.name = name
        self._labels = {k: tuple(v) for k, v in (labels_by_model or {}).items()}
        self._confidence = confidence

    def recognize(self, content: bytes, model: str) -> list[Label]:
        texts = self._labels.get(model, self._labels.get(WILDCARD, ()))
        return [Label(text=t, confidence=self._confidence, provider=self.name) for t in texts]

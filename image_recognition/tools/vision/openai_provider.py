# image_recognition/tools/vision/openai_provider.py
"""
OpenAI Vision Provider

Purpose
-------
`RecognitionProvider` backed by OpenAI multimodal models. The model id routed
to this provider is the OpenAI model name (e.g. "gpt-4o-mini"). The response
is parsed into plain keyword labels with confidences.

Environment
-----------
OPENAI_API_KEY : used when no api_key is passed explicitly

Notes
-----
- No retries here: a failed call is a degraded outcome for the current cycle.
- The orchestrator enforces the deadline; `timeout_s` is passed to the SDK so
  the HTTP request itself also gives up.
"""

from __future__ import annotations

import base64
import io
import json
import os
import re

from PIL import Image, UnidentifiedImageError

from image_recognition.core.pipeline.errors import ProviderError
from image_recognition.schemas.models import Label


class OpenAIProvider:
    def __init__(self, name: str = "openai", *, api_key: str | None = None, timeout_s: float = 20.0, max_labels: int = 20) -> None:
        key = api_key or os.getenv("OPENAI_API_KEY")
        if not key:
            raise RuntimeError("OPENAI_API_KEY not set for OpenAIProvider.")
        try:
            from openai import OpenAI  # type: ignore
        except Exception as e:
            raise RuntimeError("OpenAI SDK not available. Install `openai>=1.0`.") from e

        self.name = name
        self._client = OpenAI(api_key=key)
        self._timeout_s = timeout_s
        self._max_labels = max_labels

    def recognize(self, content: bytes, model: str) -> list[Label]:
        mime = sniff_mime(content)
        if mime is None:
            raise ProviderError("Asset content is not a readable image.", provider=self.name)
        image_b64 = base64.b64encode(content).decode("ascii")
        try:
            text = self._call_chat_completions(image_b64, mime, model)
        except Exception as e:
            raise ProviderError(f"OpenAI request failed: {type(e).__name__}: {e}", provider=self.name) from e
        return [
            Label(text=item["label"], confidence=item["confidence"], provider=self.name)
            for item in parse_label_json(text)[: self._max_labels]
        ]

    # ---------- OpenAI call ----------
    def _call_chat_completions(self, image_b64: str, mime: str, model: str) -> str:
        data_url = f"data:{mime};base64,{image_b64}"
        resp = self._client.chat.completions.create(  # type: ignore[attr-defined]
            model=model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": _build_prompt(self._max_labels)},
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ],
                }
            ],
            timeout=self._timeout_s,
        )
        return resp.choices[0].message.content or ""  # type: ignore[union-attr]


# ---------- helpers ----------
def sniff_mime(content: bytes) -> str | None:
    """MIME type of an encoded image (via Pillow), or None if it cannot be opened."""
    try:
        with Image.open(io.BytesIO(content)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError):
        return None
    return Image.MIME.get(fmt or "", "image/jpeg")


def _build_prompt(max_labels: int) -> str:
    return (
        "You are an image keyword tagger for a digital asset library.\n"
        "Return ONLY a raw JSON array (no code fences, no markdown, no prose).\n"
        'Each item: {"label": <short keyword>, "confidence": <number in [0,1]>}.\n'
        f"At most {max_labels} items, most confident first. Omit anything you are unsure about.\n"
    )


def parse_label_json(text: str) -> list[dict]:
    """
    Tolerant JSON extractor:
      - Strips Markdown code fences (``` or ```json).
      - If extra prose surrounds JSON, extracts the first top-level JSON array.
      - Accepts plain strings as labels with confidence 1.0.
      - Drops items without a usable label; clamps confidence into [0,1].
    """
    if not isinstance(text, str):
        raise ValueError("Provider returned non-string response.")

    s = text.strip()
    if s.startswith("```"):
        s = re.sub(r"^```(?:json)?\s*", "", s, count=1, flags=re.IGNORECASE)
        s = re.sub(r"\s*```$", "", s, count=1)

    try:
        loaded = json.loads(s)
    except json.JSONDecodeError:
        start, end = s.find("["), s.rfind("]")
        if start == -1 or end <= start:
            raise ValueError("Expected a JSON array in provider output.") from None
        loaded = json.loads(s[start : end + 1])

    if isinstance(loaded, dict):
        loaded = [loaded]
    if not isinstance(loaded, list):
        raise ValueError("Expected a JSON array in provider output.")

    out: list[dict] = []
    for item in loaded:
        if isinstance(item, str):
            label, conf = item, 1.0
        elif isinstance(item, dict):
            label = item.get("label")
            try:
                conf = float(item.get("confidence", 1.0))
            except (TypeError, ValueError):
                continue
        else:
            continue
        if not isinstance(label, str) or not label.strip():
            continue
        out.append({"label": label, "confidence": min(max(conf, 0.0), 1.0)})
    return out

# image_recognition/tools/vision/clarifai_provider.py
"""
Clarifai Provider (REST v2)

Each routed model id is one `POST /v2/models/{model_id}/outputs` call. Model
ids may be given as the public aliases below (general, food, travel, ...) or
as raw Clarifai model ids.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping
from typing import Any

import requests

from image_recognition.core.pipeline.errors import ProviderError
from image_recognition.schemas.models import Label

CLARIFAI_API_URL = "https://api.clarifai.com/v2"

# Public Clarifai model ids
CLARIFAI_MODELS: Mapping[str, str] = {
    "general": "aaa03c23b3724a16a56b629203edc62c",
    "food": "bd367be194cf45149e75f01d59f77ba7",
    "travel": "eee28c313d69466f836ab83287a54ed9",
    "wedding": "c386b7a870114f4a87477c0824499348",
    "apparel": "e0be3b9d6a454f0493ac3a30784001ff",
    "celebrity": "e466caa0619f444ab97497640cefc4dc",
}

# Accepted model identifiers: aliases and their raw ids
ALLOWED_MODELS: frozenset[str] = frozenset(CLARIFAI_MODELS) | frozenset(CLARIFAI_MODELS.values())


def resolve_model(model: str) -> str:
    return CLARIFAI_MODELS.get(model, model)


class ClarifaiProvider:
    def __init__(
        self,
        name: str = "clarifai",
        *,
        api_key: str,
        timeout_s: float = 20.0,
        base_url: str = CLARIFAI_API_URL,
        max_labels: int = 20,
    ) -> None:
        if not api_key:
            raise RuntimeError("Clarifai api_key is required.")
        self.name = name
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._base_url = base_url.rstrip("/")
        self._max_labels = max_labels

    def recognize(self, content: bytes, model: str) -> list[Label]:
        url = f"{self._base_url}/models/{resolve_model(model)}/outputs"
        body = {"inputs": [{"data": {"image": {"base64": base64.b64encode(content).decode("ascii")}}}]}
        try:
            resp = requests.post(
                url,
                json=body,
                headers={"Authorization": f"Key {self._api_key}", "Content-Type": "application/json"},
                timeout=self._timeout_s,
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as e:
            raise ProviderError(f"Clarifai request failed for model {model!r}: {e}", provider=self.name) from e
        except ValueError as e:
            raise ProviderError(f"Clarifai returned invalid JSON for model {model!r}", provider=self.name) from e
        return self._parse(payload)[: self._max_labels]

    def _parse(self, payload: dict[str, Any]) -> list[Label]:
        status = (payload.get("status") or {}).get("code")
        # 10000 == SUCCESS in the Clarifai status catalogue
        if status is not None and status != 10000:
            desc = (payload.get("status") or {}).get("description", "unknown error")
            raise ProviderError(f"Clarifai error {status}: {desc}", provider=self.name)
        out: list[Label] = []
        for output in payload.get("outputs") or []:
            for concept in (output.get("data") or {}).get("concepts") or []:
                name = concept.get("name")
                if not isinstance(name, str) or not name.strip():
                    continue
                conf = float(concept.get("value", 0.0))
                out.append(Label(text=name, confidence=min(max(conf, 0.0), 1.0), provider=self.name))
        return out

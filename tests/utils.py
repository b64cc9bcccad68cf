# tests/utils.py
"""
Single source of truth for test data, factories, and fake collaborators.
Update values here to cascade across the test suite.
"""

from __future__ import annotations

import asyncio
import io
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from PIL import Image

from image_recognition.inputs.settings import AppSettings
from image_recognition.schemas.models import AssetRef, Label, MetadataUpdate

# -----------------------------
# Global defaults (edit once)
# -----------------------------

DEFAULT_ASSET_ID = "8uSd2Ww3aN2B1lmwNCJd1i"
DEFAULT_FOLDER = "/Demo Zone/Images/Wedding"
DEFAULT_MODIFIED = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
FIXED_NOW = datetime(2024, 5, 2, 8, 30, 0, tzinfo=timezone.utc)
WEBHOOK_TOKEN = "test-webhook-token"

# Two providers writing into one field: the canonical wedding scenario
WEDDING_SETTINGS: dict[str, Any] = {
    "dam": {"url": "http://elvis.test", "username": "api", "password": "s3cret-pass", "webhook_token": WEBHOOK_TOKEN},
    "providers": [
        {"name": "general", "kind": "mock", "field": "cf_tags"},
        {"name": "wedding", "kind": "mock", "field": "cf_tags"},
    ],
    "folders": [
        {
            "folder": "/Demo Zone/Images/Wedding",
            "routes": [{"provider": "general", "model": "general"}, {"provider": "wedding", "model": "wedding"}],
        },
    ],
    "combined_field": None,
}


# -----------------------------
# Domain factories
# -----------------------------


def make_asset(
    asset_id: str = DEFAULT_ASSET_ID,
    folder_path: str = DEFAULT_FOLDER,
    last_modified: datetime = DEFAULT_MODIFIED,
) -> AssetRef:
    return AssetRef(asset_id=asset_id, folder_path=folder_path, last_modified=last_modified)


def make_settings(base: Mapping[str, Any] | None = None, **overrides: Any) -> AppSettings:
    """AppSettings from the wedding defaults (or `base`), top-level keys overridden."""
    data = dict(WEDDING_SETTINGS if base is None else base)
    data.update(overrides)
    return AppSettings.model_validate(data)


def labels(provider: str, *texts: str, confidence: float = 0.9) -> list[Label]:
    return [Label(text=t, confidence=confidence, provider=provider) for t in texts]


def png_bytes(w: int = 32, h: int = 32, color: tuple[int, int, int] = (200, 120, 40)) -> bytes:
    """Small in-memory PNG."""
    buf = io.BytesIO()
    Image.new("RGB", (w, h), color).save(buf, format="PNG", compress_level=1)
    return buf.getvalue()


# -----------------------------
# Fake collaborators
# -----------------------------


class FakeDam:
    """
    In-memory DamClient. Writes are recorded; stored recognition timestamps are
    updated from them so consecutive cycles see their own effect.
    """

    def __init__(
        self,
        *,
        content: bytes = b"\x89PNG fake",
        timestamps: dict[str, datetime | None] | None = None,
        fail_fetch: bool = False,
        fail_read: bool = False,
        fail_write: bool = False,
    ) -> None:
        self.content = content
        self.timestamps: dict[str, datetime | None] = dict(timestamps or {})
        self.fail_fetch = fail_fetch
        self.fail_read = fail_read
        self.fail_write = fail_write
        self.updates: list[MetadataUpdate] = []
        self.fetches: list[str] = []

    def fetch_content(self, asset: AssetRef) -> bytes:
        self.fetches.append(asset.asset_id)
        if self.fail_fetch:
            raise ConnectionError("preview download refused")
        return self.content

    def update_metadata(self, update: MetadataUpdate) -> None:
        if self.fail_write:
            raise ConnectionError("update rejected")
        self.updates.append(update)
        self.timestamps[update.asset.asset_id] = update.recognized_at

    def last_recognition_timestamp(self, asset: AssetRef) -> datetime | None:
        if self.fail_read:
            raise ConnectionError("search unavailable")
        return self.timestamps.get(asset.asset_id)


class FailingProvider:
    def __init__(self, name: str, exc: Exception | None = None) -> None:
        self.name = name
        self._exc = exc or RuntimeError("quota exceeded")
        self.calls = 0

    def recognize(self, content: bytes, model: str) -> list[Label]:
        self.calls += 1
        raise self._exc


class SlowProvider:
    """Async provider that sleeps before answering; used for deadline tests."""

    def __init__(self, name: str, delay_s: float, texts: Sequence[str] = ("late",)) -> None:
        self.name = name
        self._delay_s = delay_s
        self._texts = tuple(texts)
        self.cancelled = False

    async def recognize(self, content: bytes, model: str) -> list[Label]:
        try:
            await asyncio.sleep(self._delay_s)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return labels(self.name, *self._texts)


class BatchProvider:
    """Records the model lists it receives through `recognize_batch`."""

    def __init__(self, name: str, labels_by_model: Mapping[str, Sequence[str]]) -> None:
        self.name = name
        self._labels = dict(labels_by_model)
        self.batches: list[list[str]] = []

    def recognize(self, content: bytes, model: str) -> list[Label]:
        raise AssertionError("recognize_batch should be preferred")

    def recognize_batch(self, content: bytes, models: Sequence[str]) -> list[Label]:
        self.batches.append(list(models))
        return [lab for m in models for lab in labels(self.name, *self._labels.get(m, ()))]


class FakeTranslator:
    """
    Dictionary-driven translator. `fail_languages` are left out of the result,
    mirroring a per-language failure inside the adapter.
    """

    def __init__(
        self,
        dictionary: Mapping[str, Mapping[str, str]],
        *,
        fail_languages: Sequence[str] = (),
        raise_error: Exception | None = None,
    ) -> None:
        self._dictionary = dictionary
        self._fail = set(fail_languages)
        self._raise = raise_error
        self.calls: list[tuple[list[str], str, list[str]]] = []

    def translate(self, labels: Sequence[str], source_language: str, target_languages: Sequence[str]) -> dict[str, list[str]]:
        self.calls.append((list(labels), source_language, list(target_languages)))
        if self._raise is not None:
            raise self._raise
        out: dict[str, list[str]] = {}
        for lang in target_languages:
            if lang in self._fail:
                continue
            words = self._dictionary.get(lang, {})
            out[lang] = [words.get(t, t) for t in labels]
        return out


class SlowTranslator:
    """Async translator that answers `slow_languages` only after `delay_s`."""

    def __init__(self, dictionary: Mapping[str, Mapping[str, str]], *, slow_languages: Sequence[str], delay_s: float) -> None:
        self._fast = FakeTranslator(dictionary)
        self._slow = set(slow_languages)
        self._delay_s = delay_s

    async def translate(self, labels: Sequence[str], source_language: str, target_languages: Sequence[str]) -> dict[str, list[str]]:
        if self._slow & set(target_languages):
            await asyncio.sleep(self._delay_s)
        return self._fast.translate(labels, source_language, target_languages)


def fixed_clock(now: datetime = FIXED_NOW):
    return lambda: now

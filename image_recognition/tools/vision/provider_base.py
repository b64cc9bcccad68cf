# image_recognition/tools/vision/provider_base.py
"""
Recognition Provider Interface — one adapter per provider

Purpose
-------
Define a minimal, provider-agnostic contract for image recognition and a
standard helper that runs all models routed to one provider. If a provider
implements a native `recognize_batch`, we use it (one call covering several
models). Otherwise we fall back to one `recognize` call per model.

Design
------
- Protocol `RecognitionProvider` keeps single-model `recognize(content, model)`.
- Optional duck-typed `recognize_batch(content, models)` is supported if present.
- Either method may be a plain function or a coroutine function; plain
  functions are moved to a worker thread so they never block the event loop.
- Every returned label is stamped with the provider name.

Public API
----------
class RecognitionProvider(Protocol):
    name: str
    def recognize(self, content: bytes, model: str) -> Iterable[Label]
    # Optional (duck-typed):
    # def recognize_batch(self, content: bytes, models: Sequence[str]) -> Iterable[Label]

async def run_models(provider, content, models) -> list[Label]

Invariants & Guardrails
-----------------------
- Timeouts are NOT handled here; the orchestrator bounds the whole call.
- Labels keep provider order; deduplication happens in the aggregator.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, Protocol, TypeVar

from image_recognition.schemas.models import Label

T = TypeVar("T")


class RecognitionProvider(Protocol):
    name: str

    def recognize(self, content: bytes, model: str) -> Iterable[Label]: ...

    # NOTE: Providers may optionally implement this to cover several models in one call.
    # def recognize_batch(self, content: bytes, models: Sequence[str]) -> Iterable[Label]:
    #     ...


async def call_maybe_async(fn: Callable[..., T | Awaitable[T]], *args: Any) -> T:
    """Await coroutine functions directly; run plain callables in a worker thread."""
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)  # type: ignore[no-any-return]
    result = await asyncio.to_thread(fn, *args)
    if inspect.isawaitable(result):
        return await result  # type: ignore[no-any-return]
    return result  # type: ignore[return-value]


def _stamp(labels: Iterable[Label | str], provider: str) -> list[Label]:
    out: list[Label] = []
    for lab in labels or ():
        if isinstance(lab, str):
            out.append(Label(text=lab, confidence=1.0, provider=provider))
        elif isinstance(lab, Label):
            out.append(lab if lab.provider == provider else lab.model_copy(update={"provider": provider}))
        else:
            raise TypeError(f"Provider {provider!r} returned unsupported label type {type(lab).__name__}.")
    return out


async def run_models(provider: RecognitionProvider, content: bytes, models: Sequence[str]) -> list[Label]:
    """
    Execute recognition for every model routed to `provider`, preserving model order.
    If provider exposes `recognize_batch`, use it; otherwise loop over `recognize`.
    """
    name = getattr(provider, "name", type(provider).__name__)
    recognize_batch = getattr(provider, "recognize_batch", None)
    if callable(recognize_batch):
        out = await call_maybe_async(recognize_batch, content, list(models))
        return _stamp(out, name)

    labels: list[Label] = []
    for model in models:
        out = await call_maybe_async(provider.recognize, content, model)
        labels.extend(_stamp(out, name))
    return labels

# image_recognition/core/dam/base.py
"""
Cross-layer contract for the DAM collaborator.

The orchestrator only talks to the DAM through `DamClient`. Concrete clients
(e.g. `ElvisClient`) live in separate modules. Methods may be sync or async;
the orchestrator runs sync methods in a worker thread.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from image_recognition.schemas.models import AssetRef, MetadataUpdate


class DamError(RuntimeError):
    """HTTP/transport or protocol failure while talking to the DAM."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@runtime_checkable
class DamClient(Protocol):
    def fetch_content(self, asset: AssetRef) -> bytes:
        """Download the image bytes used for recognition (a preview rendition is fine)."""
        ...

    def update_metadata(self, update: MetadataUpdate) -> None:
        """Write the label fields and the recognition timestamp in one request."""
        ...

    def last_recognition_timestamp(self, asset: AssetRef) -> datetime | None:
        """Stored recognition timestamp, or None when the asset was never recognized."""
        ...


__all__ = ["DamClient", "DamError"]

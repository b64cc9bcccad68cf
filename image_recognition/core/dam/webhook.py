# image_recognition/core/dam/webhook.py
"""
Inbound Elvis webhook helpers.

- `verify_signature` checks the `x-hook-signature` header: hex HMAC-SHA256 of
  the raw request body keyed with the webhook token.
- `parse_event` reduces the JSON payload to an `AssetEvent`.
- `read_event` does both; unverified or malformed events raise `WebhookError`
  and never reach the orchestrator.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import posixpath
from typing import Any

from image_recognition.core.dam.elvis import parse_dam_timestamp
from image_recognition.schemas.models import AssetEvent, AssetRef

SIGNATURE_HEADER = "x-hook-signature"


class WebhookError(ValueError):
    """Unverified or malformed webhook event."""


def sign(body: bytes | str, token: str) -> str:
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(token.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes | str, signature: str | None, token: str) -> bool:
    if not signature or not token:
        return False
    return hmac.compare_digest(sign(body, token), signature.strip().lower())


def _new_value(changed: dict[str, Any], key: str) -> Any:
    entry = changed.get(key)
    if isinstance(entry, dict) and "newValue" in entry:
        return entry["newValue"]
    return entry


def parse_event(payload: dict[str, Any] | str | bytes) -> AssetEvent:
    if isinstance(payload, str | bytes):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise WebhookError(f"Invalid webhook JSON: {e}") from e
    if not isinstance(payload, dict):
        raise WebhookError("Webhook payload must be a JSON object.")

    event_type = payload.get("type")
    asset_id = payload.get("assetId")
    if not event_type or not asset_id:
        raise WebhookError("Webhook payload misses 'type' or 'assetId'.")

    metadata = payload.get("metadata") or {}
    changed = payload.get("changedMetadata") or {}
    if not isinstance(metadata, dict) or not isinstance(changed, dict):
        raise WebhookError("Webhook 'metadata' and 'changedMetadata' must be objects.")

    folder = metadata.get("folderPath") or _new_value(changed, "folderPath")
    if not folder:
        asset_path = metadata.get("assetPath") or _new_value(changed, "assetPath")
        folder = posixpath.dirname(asset_path) if isinstance(asset_path, str) and asset_path else None
    if not folder:
        raise WebhookError(f"Webhook for asset {asset_id} carries no folderPath/assetPath.")

    modified_raw = metadata.get("assetModified")
    if modified_raw is None:
        modified_raw = _new_value(changed, "assetModified")
    try:
        modified = parse_dam_timestamp(modified_raw)
    except ValueError as e:
        raise WebhookError(f"Webhook for asset {asset_id} has an unreadable assetModified: {modified_raw!r}") from e
    if modified is None:
        raise WebhookError(f"Webhook for asset {asset_id} carries no assetModified timestamp.")

    return AssetEvent(
        event_type=str(event_type),
        asset=AssetRef(asset_id=str(asset_id), folder_path=str(folder), last_modified=modified),
        asset_domain=metadata.get("assetDomain"),
        changed_fields=frozenset(changed),
    )


def read_event(body: bytes | str, signature: str | None, token: str) -> AssetEvent:
    """Verify the signature of a raw webhook body, then parse it."""
    if not verify_signature(body, signature, token):
        raise WebhookError(f"Invalid webhook signature: {signature!r}. Check the configured webhook token.")
    return parse_event(body)

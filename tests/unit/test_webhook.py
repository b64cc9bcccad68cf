# tests/unit/test_webhook.py
from __future__ import annotations

import json

import pytest

from image_recognition.core.dam.webhook import WebhookError, parse_event, read_event, sign, verify_signature
from tests.utils import DEFAULT_MODIFIED, WEBHOOK_TOKEN

MODIFIED_MS = int(DEFAULT_MODIFIED.timestamp() * 1000)


def _payload(**overrides) -> dict:
    data = {
        "type": "asset_update_metadata",
        "assetId": "8uSd2Ww3aN2B1lmwNCJd1i",
        "metadata": {
            "assetDomain": "image",
            "folderPath": "/Demo Zone/Images/Wedding",
            "assetModified": MODIFIED_MS,
        },
        "changedMetadata": {"rating": {"oldValue": 3, "newValue": 5}},
    }
    data.update(overrides)
    return data


def test_signature_round_trip_and_tamper():
    body = json.dumps(_payload()).encode()
    sig = sign(body, WEBHOOK_TOKEN)
    assert verify_signature(body, sig, WEBHOOK_TOKEN)
    assert verify_signature(body, sig.upper(), WEBHOOK_TOKEN)
    assert not verify_signature(body + b" ", sig, WEBHOOK_TOKEN)
    assert not verify_signature(body, sig, "other-token")
    assert not verify_signature(body, None, WEBHOOK_TOKEN)
    assert not verify_signature(body, sig, "")


def test_parse_event_reads_folder_time_and_changes():
    ev = parse_event(_payload())
    assert ev.event_type == "asset_update_metadata"
    assert ev.asset.asset_id == "8uSd2Ww3aN2B1lmwNCJd1i"
    assert ev.asset.folder_path == "/Demo Zone/Images/Wedding"
    assert ev.asset.last_modified == DEFAULT_MODIFIED
    assert ev.asset_domain == "image"
    assert ev.changed_fields == frozenset({"rating"})


def test_parse_event_falls_back_to_changed_values_and_asset_path():
    ev = parse_event(
        _payload(
            metadata={"assetPath": "/Demo Zone/Images/Food/apple.jpg"},
            changedMetadata={"assetModified": {"oldValue": 1, "newValue": str(MODIFIED_MS)}},
        )
    )
    assert ev.asset.folder_path == "/Demo Zone/Images/Food"
    assert ev.asset.last_modified == DEFAULT_MODIFIED
    assert ev.asset_domain is None


def test_parse_event_accepts_iso_timestamps_and_bytes():
    body = json.dumps(_payload(metadata={"folderPath": "/A", "assetModified": "2024-05-01T12:00:00Z"})).encode()
    assert parse_event(body).asset.last_modified == DEFAULT_MODIFIED


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        json.dumps([1, 2]),
        _payload(type=None),
        _payload(assetId=""),
        _payload(metadata={"assetModified": MODIFIED_MS}),
        _payload(metadata={"folderPath": "/A"}),
        _payload(metadata={"folderPath": "/A", "assetModified": True}),
        _payload(changedMetadata=["folderPath"]),
    ],
)
def test_parse_event_rejects_malformed(payload):
    with pytest.raises(WebhookError):
        parse_event(payload)


def test_read_event_requires_valid_signature():
    body = json.dumps(_payload())
    assert read_event(body, sign(body, WEBHOOK_TOKEN), WEBHOOK_TOKEN).asset.asset_id == "8uSd2Ww3aN2B1lmwNCJd1i"
    with pytest.raises(WebhookError, match="signature"):
        read_event(body, "deadbeef", WEBHOOK_TOKEN)

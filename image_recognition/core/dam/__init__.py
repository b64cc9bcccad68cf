"""
DAM collaborator: client contract, Elvis REST client and webhook helpers.
"""

from __future__ import annotations

from .base import DamClient, DamError
from .elvis import ElvisClient, parse_dam_timestamp
from .webhook import SIGNATURE_HEADER, WebhookError, parse_event, read_event, sign, verify_signature

__all__ = [
    "DamClient",
    "DamError",
    "ElvisClient",
    "parse_dam_timestamp",
    "SIGNATURE_HEADER",
    "WebhookError",
    "parse_event",
    "read_event",
    "sign",
    "verify_signature",
]

"""
Recognition pipeline building blocks: routing, aggregation, idempotency and errors.
"""

from __future__ import annotations

from .aggregator import aggregate, merge_labels, normalize_label
from .errors import (
    FATAL_ERRORS,
    AssetFetchError,
    ConfigurationError,
    DamReadError,
    DamWriteError,
    OrchestrationError,
    ProviderError,
    RoutingConfigError,
    SettingsError,
    TranslationError,
)
from .gate import IdempotencyGate, should_process
from .routing import RoutingTable, normalize_folder

__all__ = [
    "aggregate",
    "merge_labels",
    "normalize_label",
    "FATAL_ERRORS",
    "AssetFetchError",
    "ConfigurationError",
    "DamReadError",
    "DamWriteError",
    "OrchestrationError",
    "ProviderError",
    "RoutingConfigError",
    "SettingsError",
    "TranslationError",
    "IdempotencyGate",
    "should_process",
    "RoutingTable",
    "normalize_folder",
]

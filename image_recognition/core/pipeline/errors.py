"""
Typed errors for the recognition pipeline.

Exports
-------
- OrchestrationError, AssetFetchError, DamReadError, DamWriteError
- ConfigurationError, RoutingConfigError, SettingsError
- ProviderError, TranslationError
- FATAL_ERRORS
"""

from __future__ import annotations

# =========================
# Cycle failures (infrastructure)
# =========================


class OrchestrationError(RuntimeError):
    """Base class for failures that abort a whole recognition cycle."""

    def __init__(self, message: str, *, asset_id: str | None = None) -> None:
        super().__init__(message)
        self.asset_id = asset_id


class AssetFetchError(OrchestrationError):
    """The asset content could not be downloaded from the DAM."""


class DamReadError(OrchestrationError):
    """The stored recognition timestamp could not be read from the DAM."""


class DamWriteError(OrchestrationError):
    """The metadata update was rejected or could not be delivered to the DAM."""


# =========================
# Load-time failures
# =========================


class ConfigurationError(ValueError):
    """Base class for configuration problems detected at startup."""


class RoutingConfigError(ConfigurationError):
    """Ambiguous or malformed folder routing entries."""


class SettingsError(ConfigurationError):
    """Settings file/env could not be parsed or failed cross-field validation."""


# =========================
# Degradations (recovered inside a cycle)
# =========================


class ProviderError(RuntimeError):
    """A recognition provider failed; the orchestrator records it as degraded."""

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class TranslationError(RuntimeError):
    """A translation call failed for one or more languages."""

    def __init__(self, message: str, *, language: str | None = None) -> None:
        super().__init__(message)
        self.language = language


# Selector tuple for grouped exception handling by callers of Orchestrator.process
FATAL_ERRORS = (
    AssetFetchError,
    DamReadError,
    DamWriteError,
    ConfigurationError,
)

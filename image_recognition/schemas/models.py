# image_recognition/schemas/models.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =========================
# Assets & requests
# =========================


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC (the DAM stores epoch millis)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AssetRef(BaseModel):
    """
    Reference to one asset in the DAM. Immutable for the duration of a recognition cycle.
    """

    model_config = ConfigDict(frozen=True)

    asset_id: str = Field(..., min_length=1, description="Opaque DAM identifier of the asset.")
    folder_path: str = Field(..., description="Folder the asset lives in (e.g. '/Demo Zone/Images/Food').")
    last_modified: datetime = Field(..., description="Last-modification timestamp assigned by the DAM.")

    @field_validator("last_modified")
    @classmethod
    def _tz_aware(cls, v: datetime) -> datetime:
        return _as_utc(v)


class ProviderRoute(BaseModel):
    """One (provider, model) combination that must run for a folder."""

    model_config = ConfigDict(frozen=True)

    provider: str = Field(..., min_length=1, description="Provider name as declared in settings.")
    model: str = Field(..., min_length=1, description="Opaque provider-specific model identifier.")


class RecognitionRequest(BaseModel):
    """Everything one cycle needs to call the providers. Created fresh per cycle."""

    model_config = ConfigDict(frozen=True)

    asset: AssetRef
    content: bytes = Field(..., description="Binary image content fetched from the DAM.")
    routes: tuple[ProviderRoute, ...] = Field(default_factory=tuple)

    def models_by_provider(self) -> dict[str, tuple[str, ...]]:
        """Group route models per provider, keeping first-seen provider and model order."""
        grouped: dict[str, list[str]] = {}
        for r in self.routes:
            models = grouped.setdefault(r.provider, [])
            if r.model not in models:
                models.append(r.model)
        return {p: tuple(ms) for p, ms in grouped.items()}


# =========================
# Labels
# =========================


class Label(BaseModel):
    """A single recognized keyword produced by a provider adapter."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Label text as returned by the provider.")
    confidence: float = Field(1.0, ge=0, le=1, description="Provider confidence in [0,1].")
    provider: str = Field("", description="Name of the provider that produced this label.")


# Field name -> ordered, case-insensitively unique label texts
FieldTagSet = dict[str, list[str]]

# Language code -> labels aligned with the source label order
TranslationResult = dict[str, list[str]]


# =========================
# Outcomes & commands
# =========================

ProviderStatus = Literal["ok", "error", "timeout"]
TranslationStatus = Literal["ok", "error", "missing"]
CycleStatus = Literal["updated", "skipped_unchanged", "skipped_unrouted", "deferred", "ignored"]


class ProviderOutcome(BaseModel):
    """Side-channel record of one provider call within a cycle."""

    model_config = ConfigDict(frozen=True)

    provider: str
    models: tuple[str, ...] = ()
    status: ProviderStatus = "ok"
    label_count: int = 0
    elapsed_s: float = 0.0
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class TranslationOutcome(BaseModel):
    """Side-channel record of one translated language slot."""

    model_config = ConfigDict(frozen=True)

    source_field: str
    language: str
    target_field: str
    status: TranslationStatus = "ok"
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class MetadataUpdate(BaseModel):
    """
    Terminal artifact of a cycle: the metadata write handed to the DAM.

    `fields` holds label lists only; the recognition timestamp travels separately
    and is rendered into `recognized_field` by `as_metadata()`.
    """

    model_config = ConfigDict(frozen=True)

    asset: AssetRef
    fields: dict[str, list[str]] = Field(default_factory=dict)
    recognized_at: datetime
    recognized_field: str = Field("cf_aiMetadataModified", min_length=1)

    @field_validator("recognized_at")
    @classmethod
    def _tz_aware(cls, v: datetime) -> datetime:
        return _as_utc(v)

    def as_metadata(self) -> dict[str, object]:
        """DAM payload: label fields plus the recognition timestamp in epoch milliseconds."""
        out: dict[str, object] = {name: list(values) for name, values in self.fields.items()}
        out[self.recognized_field] = to_epoch_ms(self.recognized_at)
        return out


class CycleResult(BaseModel):
    """Result of `Orchestrator.process`: the command (if any) plus the outcome log."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    status: CycleStatus
    update: MetadataUpdate | None = None
    provider_outcomes: tuple[ProviderOutcome, ...] = ()
    translation_outcomes: tuple[TranslationOutcome, ...] = ()

    @property
    def degraded(self) -> bool:
        return any(not o.ok for o in self.provider_outcomes) or any(not o.ok for o in self.translation_outcomes)


# =========================
# Inbound events
# =========================


class AssetEvent(BaseModel):
    """A verified DAM webhook event, reduced to what the pipeline needs."""

    model_config = ConfigDict(frozen=True)

    event_type: str = Field(..., description="DAM event type, e.g. 'asset_update_metadata'.")
    asset: AssetRef
    asset_domain: str | None = Field(None, description="DAM asset domain ('image', 'video', ...).")
    changed_fields: frozenset[str] = Field(default_factory=frozenset, description="Metadata fields changed by the event.")


# =========================
# Time helpers
# =========================


def to_epoch_ms(value: datetime) -> int:
    return int(round(_as_utc(value).timestamp() * 1000))


def from_epoch_ms(value: int | float) -> datetime:
    return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)

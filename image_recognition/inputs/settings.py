# image_recognition/inputs/settings.py
"""
Settings loader for the DAM image recognition tagger.

Goals
-----
- One immutable settings value, loaded once at startup and passed explicitly
  to every component (no module-level configuration state).
- File-first JSON settings validated via Pydantic.
- Environment overrides using the `IR_*` names operators already know.
- Every configuration error (unknown provider in a route, model not in the
  provider's allow-list, duplicate folder, language/field count mismatch)
  surfaces here, never in the middle of a recognition cycle.

JSON shape
----------
{
  "dam": {"url": "http://localhost:8080", "username": "api", "password": "...", "webhook_token": "..."},
  "providers": [
    {"name": "clarifai", "kind": "clarifai", "field": "cf_tagsClarifai", "api_key": "..."},
    {"name": "google", "kind": "google", "field": "cf_tagsGoogle", "timeout_s": 10}
  ],
  "folders": [
    {"folder": "/Demo Zone/Images/Food", "routes": [{"provider": "clarifai", "model": "food"}]},
    {"folder": "/Demo Zone/Images/Travel", "provider": "clarifai", "models": ["general", "travel"]}
  ],
  "combined_field": "tagsFromAI",
  "translations": [
    {"source_field": "tagsFromAI", "source_language": "en", "languages": "nl,fr", "target_fields": "cf_tagsNl,cf_tagsFr"}
  ]
}

Environment overrides (optional)
--------------------------------
- IR_ELVIS_URL / IR_ELVIS_USER / IR_ELVIS_PASSWORD / IR_ELVIS_TOKEN -> dam.*
- IR_ELVIS_TAGS_FIELD                  -> combined_field ("" disables)
- IR_ELVIS_AI_METADATA_MODIFIED_FIELD  -> recognized_field
- IR_LANGUAGES / IR_SOURCE_LANGUAGE / IR_LANGUAGE_TAG_FIELDS -> translation rule on combined_field
- IR_<PROVIDER>_ENABLED / IR_<PROVIDER>_API_KEY / IR_<PROVIDER>_TAGS_FIELD -> per provider
- IR_MAX_DEGRADED_RETRIES, IR_LOG_LEVEL, IR_LOG_FILE

Public API
----------
- class SettingsLoader:
    - load(path: str | Path | None) -> AppSettings
    - load_json(text: str) -> AppSettings
- function load_settings(path: str | Path | None) -> AppSettings  (convenience)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from image_recognition.core.pipeline.errors import SettingsError
from image_recognition.core.pipeline.routing import normalize_folder
from image_recognition.schemas.models import ProviderRoute
from image_recognition.tools.vision.registry import MODEL_ALLOW_LISTS

ProviderKind = Literal["mock", "clarifai", "google", "openai"]

_NULL_FIELDS = {"", "null", "none"}


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return value


def _nullable_field(value: str | None) -> str | None:
    if value is None:
        return None
    v = value.strip()
    return None if v.lower() in _NULL_FIELDS else v


# ----------------------------
# Pydantic models
# ----------------------------


class ProviderSettings(BaseModel):
    """One recognition provider and where its labels go."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique provider name used in routes.")
    kind: ProviderKind = Field("mock", description="Adapter implementation to build.")
    enabled: bool = Field(True, description="Disabled providers are dropped from every route.")
    field: str | None = Field(None, description="Metadata field for this provider's labels; None discards them.")
    timeout_s: float = Field(20.0, gt=0, description="Deadline for one provider call (all routed models).")
    min_confidence: float = Field(0.0, ge=0, le=1, description="Labels below this confidence are dropped.")
    api_key: str | None = Field(None, repr=False, description="Provider credential.")
    options: dict[str, Any] = Field(default_factory=dict, description="Adapter-specific options.")

    @field_validator("field")
    @classmethod
    def _normalize_field(cls, v: str | None) -> str | None:
        return _nullable_field(v)


class FolderRoute(BaseModel):
    """Folder prefix and the provider/model combinations that run for it."""

    model_config = ConfigDict(frozen=True)

    folder: str = Field(..., min_length=1)
    routes: tuple[ProviderRoute, ...] = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _expand_provider_models(cls, data: Any) -> Any:
        # Shorthand: {"folder": ..., "provider": "clarifai", "models": ["general", "food"]}
        if isinstance(data, dict) and "routes" not in data and "provider" in data:
            data = dict(data)
            provider = data.pop("provider")
            models = _split_csv(data.pop("models", [])) or []
            data["routes"] = [{"provider": provider, "model": m} for m in models]
        return data


class TranslationRule(BaseModel):
    """Translate one source field into several languages, one target field per language."""

    model_config = ConfigDict(frozen=True)

    source_field: str = Field(..., min_length=1)
    source_language: str = Field("en", min_length=1)
    languages: tuple[str, ...] = Field(..., min_length=1, description="Target language codes, in output order.")
    target_fields: tuple[str, ...] = Field(..., min_length=1, description="Aligned positionally with `languages`.")

    @field_validator("languages", "target_fields", mode="before")
    @classmethod
    def _csv(cls, v: Any) -> Any:
        return _split_csv(v)

    @model_validator(mode="after")
    def _aligned(self) -> TranslationRule:
        if len(self.languages) != len(self.target_fields):
            raise ValueError(
                f"Translation of {self.source_field!r}: {len(self.languages)} languages "
                f"but {len(self.target_fields)} target fields."
            )
        if len(set(self.languages)) != len(self.languages):
            raise ValueError(f"Translation of {self.source_field!r}: duplicate target languages.")
        return self


class DamSettings(BaseModel):
    """Connection to the Elvis DAM server."""

    model_config = ConfigDict(frozen=True)

    url: str = Field("http://localhost:8080", description="Elvis server URL.")
    username: str = Field("admin", description="Elvis API user.")
    password: str = Field("changemenow", repr=False)
    webhook_token: str = Field("my-webhook-token", repr=False, description="Shared secret for webhook signatures.")
    timeout_s: float = Field(30.0, gt=0)


class AppSettings(BaseModel):
    """Full, validated settings of one process."""

    model_config = ConfigDict(frozen=True)

    dam: DamSettings = Field(default_factory=DamSettings)
    providers: tuple[ProviderSettings, ...] = Field(default_factory=tuple)
    folders: tuple[FolderRoute, ...] = Field(default_factory=tuple)
    combined_field: str | None = Field("tagsFromAI", description="Field receiving the unique labels of all providers.")
    recognized_field: str = Field("cf_aiMetadataModified", min_length=1, description="Recognition timestamp field.")
    translations: tuple[TranslationRule, ...] = Field(default_factory=tuple)
    translation_timeout_s: float = Field(30.0, gt=0)
    translator_api_key: str | None = Field(None, repr=False, description="Google Translate API key.")
    max_degraded_retries: int = Field(0, ge=0, description="Fully degraded cycles deferred before the timestamp advances.")
    log_level: str = Field("INFO")
    log_file: str | None = Field(None)

    @field_validator("combined_field")
    @classmethod
    def _normalize_combined(cls, v: str | None) -> str | None:
        return _nullable_field(v)

    @model_validator(mode="after")
    def _cross_references(self) -> AppSettings:
        names = [p.name for p in self.providers]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate provider names: {dupes}")
        by_name = {p.name: p for p in self.providers}

        seen_folders: dict[str, str] = {}
        for fr in self.folders:
            key = normalize_folder(fr.folder)
            if key in seen_folders:
                raise ValueError(f"Duplicate routing entry for folder {key!r} ({seen_folders[key]!r} and {fr.folder!r}).")
            seen_folders[key] = fr.folder
            for r in fr.routes:
                prov = by_name.get(r.provider)
                if prov is None:
                    raise ValueError(f"Folder {fr.folder!r} routes to undeclared provider {r.provider!r}.")
                allowed = MODEL_ALLOW_LISTS.get(prov.kind)
                if allowed is not None and r.model not in allowed:
                    raise ValueError(
                        f"Model {r.model!r} is not supported by provider {prov.name!r} ({prov.kind}); allowed: {sorted(allowed)}"
                    )
        return self

    def provider(self, name: str) -> ProviderSettings | None:
        for p in self.providers:
            if p.name == name:
                return p
        return None

    def field_map(self) -> dict[str, str | None]:
        return {p.name: p.field for p in self.providers}


# ----------------------------
# Loader
# ----------------------------


@dataclass(frozen=True)
class SettingsLoader:
    """
    File-first settings loader with env overrides.

    Default search (when path=None):
        1) ./config.json
        2) built-in defaults (no providers, no folders)
    """

    env_prefix: str = "IR_"

    # ---------- Public API ----------

    def load(self, path: str | Path | None = None) -> AppSettings:
        raw = self._read_json_file(self._resolve_path(path)) if path is not None or Path("config.json").exists() else {}
        return self._parse_root(self._apply_env_overrides(raw))

    def load_json(self, text: str) -> AppSettings:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise SettingsError(f"Invalid JSON settings: {e}") from e
        if not isinstance(raw, dict):
            raise SettingsError("Settings root must be a JSON object.")
        return self._parse_root(self._apply_env_overrides(raw))

    # ---------- Internals ----------

    def _resolve_path(self, path: str | Path | None) -> Path:
        p = Path(path) if path is not None else Path("config.json")
        if not p.exists():
            raise SettingsError(f"Settings file not found: {p}")
        return p

    def _read_json_file(self, p: Path) -> dict[str, Any]:
        if p.suffix.lower() != ".json":
            raise SettingsError(f"Unsupported settings format for {p.name}; only .json is supported.")
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise SettingsError(f"Invalid JSON in {p}: {e}") from e
        if not isinstance(data, dict):
            raise SettingsError(f"Settings root in {p} must be a JSON object.")
        return data

    def _parse_root(self, data: dict[str, Any]) -> AppSettings:
        try:
            return AppSettings.model_validate(data)
        except ValidationError as e:
            raise SettingsError(f"Settings validation failed:\n{e}") from e

    def _env(self, name: str) -> str | None:
        return os.getenv(f"{self.env_prefix}{name}")

    def _apply_env_overrides(self, raw: dict[str, Any]) -> dict[str, Any]:
        data = dict(raw)

        dam = dict(data.get("dam") or {})
        for env_name, key in (("ELVIS_URL", "url"), ("ELVIS_USER", "username"), ("ELVIS_PASSWORD", "password"), ("ELVIS_TOKEN", "webhook_token")):
            val = self._env(env_name)
            if val:
                dam[key] = val
        if dam:
            data["dam"] = dam

        tags_field = self._env("ELVIS_TAGS_FIELD")
        if tags_field is not None:
            data["combined_field"] = tags_field
        modified_field = self._env("ELVIS_AI_METADATA_MODIFIED_FIELD")
        if modified_field:
            data["recognized_field"] = modified_field

        providers = []
        for prov in data.get("providers") or []:
            if not isinstance(prov, dict) or not prov.get("name"):
                providers.append(prov)
                continue
            prov = dict(prov)
            upper = str(prov["name"]).upper()
            enabled = self._env(f"{upper}_ENABLED")
            if enabled is not None:
                prov["enabled"] = enabled.strip().lower() in {"1", "true", "yes", "on"}
            api_key = self._env(f"{upper}_API_KEY")
            if api_key:
                prov["api_key"] = api_key
            field = self._env(f"{upper}_TAGS_FIELD")
            if field is not None:
                prov["field"] = field
            providers.append(prov)
        if providers:
            data["providers"] = providers

        languages = _split_csv(self._env("LANGUAGES") or "")
        if languages:
            source_field = _nullable_field(data.get("combined_field", "tagsFromAI"))
            if not source_field:
                raise SettingsError("IR_LANGUAGES requires a combined tags field to translate from.")
            fields = _split_csv(self._env("LANGUAGE_TAG_FIELDS") or "") or [source_field] * len(languages)
            rule = {
                "source_field": source_field,
                "source_language": self._env("SOURCE_LANGUAGE") or "en",
                "languages": languages,
                "target_fields": fields,
            }
            others = [t for t in data.get("translations") or [] if not (isinstance(t, dict) and t.get("source_field") == source_field)]
            data["translations"] = [*others, rule]

        retries = self._env("MAX_DEGRADED_RETRIES")
        if retries:
            try:
                data["max_degraded_retries"] = int(retries)
            except ValueError as e:
                raise SettingsError(f"{self.env_prefix}MAX_DEGRADED_RETRIES must be an integer, got {retries!r}") from e

        level = self._env("LOG_LEVEL")
        if level:
            data["log_level"] = level.strip().upper()
        log_file = self._env("LOG_FILE")
        if log_file:
            data["log_file"] = log_file

        translator_key = self._env("TRANSLATE_API_KEY")
        if translator_key:
            data["translator_api_key"] = translator_key

        return data


# ----------------------------
# Convenience function
# ----------------------------


def load_settings(path: str | Path | None = None) -> AppSettings:
    """Convenience wrapper for one-shot callers."""
    return SettingsLoader().load(path)

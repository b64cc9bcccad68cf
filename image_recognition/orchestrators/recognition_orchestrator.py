# image_recognition/orchestrators/recognition_orchestrator.py
"""
Recognition Orchestrator — one cycle per asset change

Pipeline
--------
  1) Idempotency gate (stored recognition timestamp vs. asset modification)
  2) Folder routing → (provider, model) routes
  3) Asset download through the DAM client
  4) One task per distinct provider, each with its own deadline
  5) Barrier: wait for every task (ok, error or timeout)
  6) Aggregate labels into metadata fields
  7) Optional translation of configured source fields
  8) One metadata update (labels + recognition timestamp) back to the DAM

Failure model
-------------
- DAM read/fetch/write failures raise `OrchestrationError` subclasses; nothing
  is written.
- Provider and translation failures are degradations: they are logged, kept
  in the returned `CycleResult`, and never fail the cycle.
- Cancelling `process` cancels every in-flight provider task.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from image_recognition.core.dam.base import DamClient
from image_recognition.core.logs import get_logger
from image_recognition.core.pipeline.aggregator import aggregate, merge_labels
from image_recognition.core.pipeline.errors import (
    AssetFetchError,
    ConfigurationError,
    DamReadError,
    DamWriteError,
    OrchestrationError,
)
from image_recognition.core.pipeline.gate import IdempotencyGate
from image_recognition.core.pipeline.routing import RoutingTable
from image_recognition.inputs.settings import AppSettings, TranslationRule
from image_recognition.schemas.models import (
    AssetEvent,
    AssetRef,
    CycleResult,
    FieldTagSet,
    Label,
    MetadataUpdate,
    ProviderOutcome,
    RecognitionRequest,
    TranslationOutcome,
    TranslationStatus,
)
from image_recognition.tools.translate.translator_base import Translator, aligned_languages
from image_recognition.tools.vision.provider_base import RecognitionProvider, call_maybe_async, run_models

log = get_logger(__name__)

# Fields the DAM itself touches whenever we write metadata
_DAM_SYSTEM_FIELDS = frozenset({"assetModified", "assetModifier", "metadataModified", "metadataModifier"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecognitionOrchestrator:
    def __init__(
        self,
        *,
        settings: AppSettings,
        dam: DamClient,
        providers: Mapping[str, RecognitionProvider],
        translator: Translator | None = None,
        routing: RoutingTable | None = None,
        gate: IdempotencyGate | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._dam = dam
        self._providers = dict(providers)
        self._translator = translator
        self._routing = routing if routing is not None else RoutingTable.from_settings(settings)
        self._gate = gate if gate is not None else IdempotencyGate(max_degraded_retries=settings.max_degraded_retries)
        self._clock = clock

        missing = [p for p in self._routing.providers() if p not in self._providers]
        if missing:
            raise ConfigurationError(f"Routes reference providers without an adapter: {missing}")
        if settings.translations and translator is None:
            raise ConfigurationError("Translations are configured but no translator was provided.")

        # Provider-declaration order drives merge order in shared fields
        self._declared = {p.name: i for i, p in enumerate(settings.providers)}
        self._field_map = settings.field_map()

    # ---------- public API ----------
    @property
    def routing(self) -> RoutingTable:
        return self._routing

    @property
    def owned_fields(self) -> frozenset[str]:
        """Every metadata field this orchestrator may write."""
        fields = {f for f in self._field_map.values() if f}
        fields.add(self._settings.recognized_field)
        if self._settings.combined_field:
            fields.add(self._settings.combined_field)
        for rule in self._settings.translations:
            fields.update(rule.target_fields)
        return frozenset(fields)

    async def process_event(self, event: AssetEvent) -> CycleResult:
        """
        Entry point for webhook events. Non-image assets and events caused by our
        own metadata writes are ignored before any DAM round trip.
        """
        asset = event.asset
        if event.asset_domain and event.asset_domain != "image":
            log.info("Ignoring %s for asset %s: domain %r is not an image", event.event_type, asset.asset_id, event.asset_domain)
            return CycleResult(asset_id=asset.asset_id, status="ignored")
        if event.changed_fields and event.changed_fields <= (self.owned_fields | _DAM_SYSTEM_FIELDS):
            log.info("Ignoring %s for asset %s: only recognition fields changed", event.event_type, asset.asset_id)
            return CycleResult(asset_id=asset.asset_id, status="ignored")
        return await self.process(asset)

    async def process(self, asset: AssetRef, *, force: bool = False) -> CycleResult:
        """
        Run one recognition cycle for `asset`.

        Args:
            asset: Asset reference from the trigger.
            force: Skip the idempotency gate (manual re-recognition).

        Returns:
            CycleResult with the written MetadataUpdate (status "updated") or a
            no-op status. Raises OrchestrationError on infrastructure failures.
        """
        aid = asset.asset_id

        # 1) Idempotency gate
        if not force:
            last = await self._dam_call(self._dam.last_recognition_timestamp, asset, DamReadError, "read recognition timestamp of")
            if not self._gate.should_process(asset, last):
                log.info("Skipping asset %s: not modified since last recognition (%s)", aid, last)
                return CycleResult(asset_id=aid, status="skipped_unchanged")

        # 2) Routing
        routes = self._routing.route(asset.folder_path)
        if not routes:
            log.info("Skipping asset %s: no providers routed for folder %r", aid, asset.folder_path)
            return CycleResult(asset_id=aid, status="skipped_unrouted")

        # 3) Content
        content = await self._dam_call(self._dam.fetch_content, asset, AssetFetchError, "fetch content of")
        request = RecognitionRequest(asset=asset, content=content, routes=tuple(routes))

        # 4-5) Fan-out / fan-in
        provider_results = await self._recognize(request)
        outcomes = tuple(o for o, _ in provider_results)

        # 6) Aggregate
        fields = aggregate(
            [(o.provider, labels) for o, labels in provider_results],
            self._field_map,
            combined_field=self._settings.combined_field,
        )

        fully_degraded = bool(outcomes) and all(not o.ok for o in outcomes)
        if fully_degraded:
            if self._gate.should_defer(asset):
                log.warning(
                    "All providers failed for asset %s; deferring (%d/%d retries)",
                    aid,
                    self._gate.degraded_count(aid),
                    self._gate.max_degraded_retries,
                )
                return CycleResult(asset_id=aid, status="deferred", provider_outcomes=outcomes)
            log.warning("All providers failed for asset %s; advancing recognition timestamp", aid)
        else:
            self._gate.record_success(asset)

        # 7) Translation
        translation_outcomes = await self._translate(fields)

        # 8) Command + write
        update = MetadataUpdate(
            asset=asset,
            fields=fields,
            recognized_at=max(self._clock(), asset.last_modified),
            recognized_field=self._settings.recognized_field,
        )
        await self._dam_call(self._dam.update_metadata, update, DamWriteError, "write metadata of", asset_id=aid)

        result = CycleResult(
            asset_id=aid,
            status="updated",
            update=update,
            provider_outcomes=outcomes,
            translation_outcomes=translation_outcomes,
        )
        log.info(
            "Asset %s tagged: %s%s",
            aid,
            {k: len(v) for k, v in fields.items()},
            " (degraded)" if result.degraded else "",
        )
        return result

    # ---------- providers ----------
    async def _recognize(self, request: RecognitionRequest) -> list[tuple[ProviderOutcome, list[Label]]]:
        grouped = request.models_by_provider()
        ordered = sorted(grouped.items(), key=lambda kv: self._declared.get(kv[0], len(self._declared)))
        tasks = [
            asyncio.create_task(self._run_provider(name, models, request), name=f"recognize:{request.asset.asset_id}:{name}")
            for name, models in ordered
        ]
        return list(await asyncio.gather(*tasks))

    async def _run_provider(
        self, name: str, models: Sequence[str], request: RecognitionRequest
    ) -> tuple[ProviderOutcome, list[Label]]:
        ps = self._settings.provider(name)
        timeout_s = ps.timeout_s if ps else 20.0
        min_conf = ps.min_confidence if ps else 0.0
        aid = request.asset.asset_id
        started = time.monotonic()
        try:
            labels = await asyncio.wait_for(run_models(self._providers[name], request.content, models), timeout=timeout_s)
        except asyncio.TimeoutError:
            elapsed = time.monotonic() - started
            log.warning("Provider %s timed out after %.1fs for asset %s", name, timeout_s, aid)
            return ProviderOutcome(provider=name, models=tuple(models), status="timeout", elapsed_s=elapsed, detail=f"timeout after {timeout_s}s"), []
        except Exception as e:
            elapsed = time.monotonic() - started
            log.warning("Provider %s failed for asset %s: %s: %s", name, aid, type(e).__name__, e)
            return ProviderOutcome(provider=name, models=tuple(models), status="error", elapsed_s=elapsed, detail=f"{type(e).__name__}: {e}"), []

        kept = [lab for lab in labels if lab.confidence >= min_conf]
        outcome = ProviderOutcome(
            provider=name,
            models=tuple(models),
            status="ok",
            label_count=len(kept),
            elapsed_s=time.monotonic() - started,
        )
        log.debug("Provider %s returned %d labels (%d kept) for asset %s", name, len(labels), len(kept), aid)
        return outcome, kept

    # ---------- translation ----------
    async def _translate(self, fields: FieldTagSet) -> tuple[TranslationOutcome, ...]:
        outcomes: list[TranslationOutcome] = []
        for rule in self._settings.translations:
            labels = list(fields.get(rule.source_field) or [])
            if not labels:
                continue
            outcomes.extend(await self._translate_rule(rule, labels, fields))
        return tuple(outcomes)

    async def _translate_rule(self, rule: TranslationRule, labels: list[str], fields: FieldTagSet) -> list[TranslationOutcome]:
        pairs = list(zip(rule.languages, rule.target_fields))
        # One adapter call per language, each under its own deadline
        results = await asyncio.gather(*(self._translate_language(rule, labels, lang) for lang, _ in pairs))

        outcomes: list[TranslationOutcome] = []
        for (lang, target), (translated, status, detail) in zip(pairs, results):
            if translated is None:
                outcomes.append(
                    TranslationOutcome(source_field=rule.source_field, language=lang, target_field=target, status=status, detail=detail)
                )
                continue
            merge_labels(fields.setdefault(target, []), translated)
            outcomes.append(TranslationOutcome(source_field=rule.source_field, language=lang, target_field=target))
        # Drop targets that received nothing (e.g. every translation normalized to empty)
        for target in rule.target_fields:
            if target in fields and not fields[target]:
                del fields[target]
        return outcomes

    async def _translate_language(
        self, rule: TranslationRule, labels: list[str], lang: str
    ) -> tuple[list[str] | None, TranslationStatus, str | None]:
        assert self._translator is not None
        timeout_s = self._settings.translation_timeout_s
        try:
            result = await asyncio.wait_for(
                call_maybe_async(self._translator.translate, labels, rule.source_language, [lang]),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            log.warning("Translation of %s into %s timed out after %.1fs", rule.source_field, lang, timeout_s)
            return None, "error", "timeout"
        except Exception as e:
            log.warning("Translation of %s into %s failed: %s: %s", rule.source_field, lang, type(e).__name__, e)
            return None, "error", f"{type(e).__name__}: {e}"

        translated = aligned_languages(result, labels, [lang])[lang]
        if translated is None:
            log.warning("Translation of %s into %s missing or malformed; target omitted", rule.source_field, lang)
            return None, "missing", None
        return translated, "ok", None

    # ---------- DAM ----------
    async def _dam_call(
        self,
        fn: Callable[..., Any],
        arg: Any,
        error_cls: type[OrchestrationError],
        action: str,
        *,
        asset_id: str | None = None,
    ) -> Any:
        aid = asset_id or getattr(arg, "asset_id", None)
        try:
            return await call_maybe_async(fn, arg)
        except Exception as e:
            log.error("Failed to %s asset %s: %s: %s", action, aid, type(e).__name__, e)
            raise error_cls(f"Failed to {action} asset {aid}: {e}", asset_id=aid) from e

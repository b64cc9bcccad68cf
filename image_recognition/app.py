# image_recognition/app.py
"""
Process-lifetime application context.

Built once at startup from validated settings and passed explicitly to
whatever drives recognition cycles (webhook listener, CLI, batch job).
There is no module-level instance.
"""

from __future__ import annotations

from dataclasses import dataclass

from image_recognition.core.dam.base import DamClient
from image_recognition.core.dam.elvis import ElvisClient
from image_recognition.core.dam.webhook import read_event
from image_recognition.core.logs import configure_logging, get_logger
from image_recognition.core.pipeline.errors import ConfigurationError
from image_recognition.inputs.settings import AppSettings
from image_recognition.orchestrators.recognition_orchestrator import RecognitionOrchestrator
from image_recognition.schemas.models import CycleResult
from image_recognition.tools.translate.google_translator import GoogleTranslator
from image_recognition.tools.translate.translator_base import Translator
from image_recognition.tools.vision.registry import build_providers

log = get_logger(__name__)


@dataclass(frozen=True)
class AppContext:
    settings: AppSettings
    dam: DamClient
    orchestrator: RecognitionOrchestrator

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        *,
        dam: DamClient | None = None,
        translator: Translator | None = None,
        configure_logs: bool = True,
    ) -> AppContext:
        if configure_logs:
            configure_logging(
                settings.log_level,
                log_file=settings.log_file,
                secrets=[
                    settings.dam.password,
                    settings.dam.webhook_token,
                    settings.translator_api_key,
                    *(p.api_key for p in settings.providers),
                ],
            )

        if dam is None:
            dam = ElvisClient(
                settings.dam.url,
                settings.dam.username,
                settings.dam.password,
                recognized_field=settings.recognized_field,
                timeout_s=settings.dam.timeout_s,
            )
        if translator is None and settings.translations:
            if not settings.translator_api_key:
                raise ConfigurationError("Translations are configured but no translator_api_key (IR_TRANSLATE_API_KEY) is set.")
            translator = GoogleTranslator(api_key=settings.translator_api_key, timeout_s=settings.translation_timeout_s)

        orchestrator = RecognitionOrchestrator(
            settings=settings,
            dam=dam,
            providers=build_providers(settings),
            translator=translator,
        )
        log.info(
            "Recognition context ready: %d providers, %d routed folders, %d translation rules",
            sum(1 for p in settings.providers if p.enabled),
            len(orchestrator.routing),
            len(settings.translations),
        )
        return cls(settings=settings, dam=dam, orchestrator=orchestrator)

    async def handle_webhook(self, body: bytes | str, signature: str | None) -> CycleResult:
        """Verify and parse a raw webhook body, then run one cycle for it."""
        event = read_event(body, signature, self.settings.dam.webhook_token)
        return await self.orchestrator.process_event(event)

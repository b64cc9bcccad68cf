# main.py
"""
Entry Point — DAM Image Recognition Tagger

Purpose
-------
Run recognition cycles outside the webhook listener:
  - Tag one asset by id (folder and modification time are looked up in Elvis).
  - Replay a saved webhook payload (signature verified unless --no-verify).
  - Validate a settings file and print the routing table.

Design
------
- Settings are loaded once; the AppContext is built once and passed around.
- Exit code 0 on success or no-op, 1 on infrastructure failure, 2 on bad settings.

Usage
-----
    python main.py --config config.json --check
    python main.py --config config.json --asset-id 8uSd2Ww3aN2B1lmwNCJd1i
    python main.py --config config.json --asset-id 8uSd2Ww3aN2B1lmwNCJd1i --force
    python main.py --config config.json --event event.json --signature 5f1c...
    python main.py --config config.json --event event.json --no-verify
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from image_recognition.app import AppContext
from image_recognition.core.dam.base import DamError
from image_recognition.core.dam.elvis import ElvisClient
from image_recognition.core.dam.webhook import WebhookError, parse_event, read_event
from image_recognition.core.pipeline.errors import FATAL_ERRORS, ConfigurationError
from image_recognition.inputs.settings import SettingsLoader
from image_recognition.schemas.models import CycleResult


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""
    p = argparse.ArgumentParser(description="DAM image recognition tagger")
    p.add_argument("--config", type=str, default=None, help="Path to JSON settings (defaults to ./config.json).")
    target = p.add_mutually_exclusive_group(required=True)
    target.add_argument("--asset-id", type=str, default=None, help="Recognize one asset by DAM id.")
    target.add_argument("--event", type=str, default=None, help="Replay a saved webhook payload (JSON file).")
    target.add_argument("--check", action="store_true", help="Validate settings and print the routing table.")
    p.add_argument("--signature", type=str, default=None, help="x-hook-signature of --event.")
    p.add_argument("--no-verify", action="store_true", help="Replay --event without checking its signature.")
    p.add_argument("--force", action="store_true", help="Ignore the recognition timestamp (re-tag unchanged assets).")
    args = p.parse_args()
    if args.event and not (args.signature or args.no_verify):
        p.error("--event requires --signature (or --no-verify to skip the check)")
    return args


def _print_result(result: CycleResult) -> None:
    print(f"asset {result.asset_id}: {result.status}{' (degraded)' if result.degraded else ''}")
    for o in result.provider_outcomes:
        print(f"  provider {o.provider} {list(o.models)}: {o.status} labels={o.label_count} {o.detail or ''}".rstrip())
    for t in result.translation_outcomes:
        print(f"  translation {t.source_field}->{t.language} ({t.target_field}): {t.status}")
    if result.update:
        print(json.dumps(result.update.as_metadata(), indent=2, ensure_ascii=False))


async def _run(ctx: AppContext, args: argparse.Namespace) -> CycleResult:
    if args.event:
        body = Path(args.event).read_bytes()
        event = parse_event(body) if args.no_verify else read_event(body, args.signature, ctx.settings.dam.webhook_token)
        return await ctx.orchestrator.process_event(event)

    if not isinstance(ctx.dam, ElvisClient):
        raise DamError("--asset-id requires the Elvis DAM client")
    asset = await asyncio.to_thread(ctx.dam.asset_ref, args.asset_id)
    return await ctx.orchestrator.process(asset, force=args.force)


def main() -> int:
    args = parse_args()

    try:
        settings = SettingsLoader().load(args.config)
        ctx = AppContext.from_settings(settings)
    except ConfigurationError as e:
        print(f"Invalid settings: {e}")
        return 2

    if args.check:
        for folder in ctx.orchestrator.routing.folders:
            routes = ", ".join(f"{r.provider}:{r.model}" for r in ctx.orchestrator.routing.route(folder))
            print(f"{folder} -> {routes or '(no enabled providers)'}")
        return 0

    try:
        result = asyncio.run(_run(ctx, args))
    except (*FATAL_ERRORS, DamError, WebhookError) as e:
        print(f"Recognition failed: {e}")
        return 1

    _print_result(result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

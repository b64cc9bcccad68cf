# image_recognition/core/pipeline/routing.py
"""
Routing Table — folder prefix → (provider, model) routes

Purpose
-------
Decide which provider/model combinations run for an asset, based on the DAM
folder the asset lives in.

Design
------
- Entries are normalized once at construction; lookups never mutate state,
  so a table can be shared across concurrent cycles without locking.
- Longest-prefix match on whole path segments: '/A/Food' matches
  '/A/Food/Fruit' but never '/A/Foodstuff'.
- Matching is case-sensitive.

Public API
----------
normalize_folder(path: str) -> str
class RoutingTable:
    route(folder_path: str) -> list[ProviderRoute]
    providers() -> list[str]
    from_settings(settings) -> RoutingTable
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import TYPE_CHECKING

from image_recognition.core.pipeline.errors import RoutingConfigError
from image_recognition.schemas.models import ProviderRoute

if TYPE_CHECKING:
    from image_recognition.inputs.settings import AppSettings

_MULTI_SLASH = re.compile(r"/{2,}")


def normalize_folder(path: str) -> str:
    """
    Canonical folder form: forward slashes, single separators, leading '/',
    no trailing '/'. The root folder is '/'.
    """
    p = (path or "").strip().replace("\\", "/")
    p = _MULTI_SLASH.sub("/", p)
    if not p.startswith("/"):
        p = "/" + p
    if len(p) > 1:
        p = p.rstrip("/") or "/"
    return p


def _is_prefix(prefix: str, folder: str) -> bool:
    if prefix == "/":
        return True
    return folder == prefix or folder.startswith(prefix + "/")


class RoutingTable:
    """Immutable folder → routes table with longest-prefix lookup."""

    def __init__(self, entries: Iterable[tuple[str, Sequence[ProviderRoute]]]) -> None:
        table: dict[str, tuple[ProviderRoute, ...]] = {}
        for folder, routes in entries:
            key = normalize_folder(folder)
            if key in table:
                raise RoutingConfigError(f"Duplicate routing entry for folder {key!r} (declared as {folder!r}).")
            deduped: list[ProviderRoute] = []
            for r in routes:
                if r not in deduped:
                    deduped.append(r)
            table[key] = tuple(deduped)
        self._table: Mapping[str, tuple[ProviderRoute, ...]] = MappingProxyType(table)
        # Longest folder first so the first hit is the longest prefix
        self._ordered: tuple[str, ...] = tuple(sorted(table, key=len, reverse=True))

    # ---------- lookup ----------
    def route(self, folder_path: str) -> list[ProviderRoute]:
        folder = normalize_folder(folder_path)
        for prefix in self._ordered:
            if _is_prefix(prefix, folder):
                return list(self._table[prefix])
        return []

    def providers(self) -> list[str]:
        """Distinct providers referenced by any entry, in first-seen order."""
        seen: list[str] = []
        for routes in self._table.values():
            for r in routes:
                if r.provider not in seen:
                    seen.append(r.provider)
        return seen

    @property
    def folders(self) -> tuple[str, ...]:
        return tuple(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"RoutingTable(folders={len(self._table)})"

    # ---------- construction ----------
    @classmethod
    def from_settings(cls, settings: AppSettings) -> RoutingTable:
        """Build from validated settings, skipping routes whose provider is disabled."""
        enabled = {p.name for p in settings.providers if p.enabled}
        entries: list[tuple[str, list[ProviderRoute]]] = []
        for fr in settings.folders:
            routes = [ProviderRoute(provider=r.provider, model=r.model) for r in fr.routes if r.provider in enabled]
            entries.append((fr.folder, routes))
        return cls(entries)

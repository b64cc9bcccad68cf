# image_recognition/core/dam/elvis.py
"""
Elvis DAM client (REST services API) built on `requests.Session`.

Endpoints used:
  - POST /services/login    form: username, password   → session cookie + csrfToken
  - POST /services/search   form: q, num, metadataToReturn → {"hits": [...]}
  - POST /services/update   form: id, metadata (JSON)
  - GET  <hit.previewUrl>   preview rendition bytes (relative URLs resolved against the server)

A 401 on any call triggers one re-login and a single replay of that call.
"""

from __future__ import annotations

import json
import threading
from urllib.parse import urljoin
from datetime import datetime
from typing import Any

import requests

from image_recognition.core.dam.base import DamError
from image_recognition.core.logs import get_logger
from image_recognition.schemas.models import AssetRef, MetadataUpdate, _as_utc, from_epoch_ms

log = get_logger(__name__)


def parse_dam_timestamp(value: Any) -> datetime | None:
    """
    Elvis date fields arrive as epoch millis, as {"value": <millis>, "formatted": ...},
    or as ISO-8601 strings. Returns None for empty values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        return parse_dam_timestamp(value.get("value"))
    if isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    if isinstance(value, int | float):
        return from_epoch_ms(value)
    if isinstance(value, str):
        s = value.strip()
        if s.isdigit():
            return from_epoch_ms(int(s))
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        return _as_utc(dt)
    raise ValueError(f"Unsupported timestamp value: {value!r}")


class ElvisClient:
    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        *,
        recognized_field: str = "cf_aiMetadataModified",
        timeout_s: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._username = username
        self._password = password
        self._recognized_field = recognized_field
        self._timeout_s = timeout_s
        self._session = session or requests.Session()
        self._csrf: str | None = None
        self._login_lock = threading.Lock()

    # ---------- DamClient ----------
    def fetch_content(self, asset: AssetRef) -> bytes:
        hit = self._hit(asset.asset_id, metadata=["assetDomain"])
        url = hit.get("previewUrl") or hit.get("originalUrl")
        if not url:
            raise DamError(f"Asset {asset.asset_id} has no preview or original rendition.")
        resp = self._request("GET", urljoin(f"{self._url}/", url))
        return resp.content

    def update_metadata(self, update: MetadataUpdate) -> None:
        data = {"id": update.asset.asset_id, "metadata": json.dumps(update.as_metadata())}
        self._request("POST", f"{self._url}/services/update", data=data)
        log.debug("Elvis metadata updated for %s: %s", update.asset.asset_id, sorted(update.fields))

    def last_recognition_timestamp(self, asset: AssetRef) -> datetime | None:
        hit = self._hit(asset.asset_id, metadata=[self._recognized_field])
        value = (hit.get("metadata") or {}).get(self._recognized_field)
        try:
            return parse_dam_timestamp(value)
        except ValueError as e:
            raise DamError(f"Unreadable {self._recognized_field} on asset {asset.asset_id}: {value!r}") from e

    def asset_ref(self, asset_id: str) -> AssetRef:
        """Look up folder and modification time of an asset (manual / CLI runs)."""
        hit = self._hit(asset_id, metadata=["folderPath", "assetModified"])
        meta = hit.get("metadata") or {}
        try:
            modified = parse_dam_timestamp(meta.get("assetModified"))
        except ValueError as e:
            raise DamError(f"Unreadable assetModified on asset {asset_id}") from e
        if modified is None or not meta.get("folderPath"):
            raise DamError(f"Asset {asset_id} misses folderPath or assetModified.")
        return AssetRef(asset_id=asset_id, folder_path=meta["folderPath"], last_modified=modified)

    # ---------- Elvis services ----------
    def login(self) -> None:
        with self._login_lock:
            self._login()

    def _ensure_login(self) -> None:
        if self._csrf is not None:
            return
        with self._login_lock:
            # Another thread may have logged in while we waited
            if self._csrf is None:
                self._login()

    def _login(self) -> None:
        try:
            resp = self._session.post(
                f"{self._url}/services/login",
                data={"username": self._username, "password": self._password},
                timeout=self._timeout_s,
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as e:
            raise DamError(f"Elvis login request failed: {e}") from e
        except ValueError as e:
            raise DamError("Elvis login returned invalid JSON") from e
        if not payload.get("loginSuccess"):
            raise DamError(f"Elvis login failed: {payload.get('loginFaultMessage', 'unknown reason')}")
        self._csrf = payload.get("csrfToken") or ""
        log.info("Logged in to Elvis at %s as %s", self._url, self._username)

    def search(self, query: str, *, metadata: list[str] | None = None, num: int = 1) -> list[dict[str, Any]]:
        data: dict[str, Any] = {"q": query, "num": num}
        if metadata:
            data["metadataToReturn"] = ",".join(metadata)
        resp = self._request("POST", f"{self._url}/services/search", data=data)
        try:
            payload = resp.json()
        except ValueError as e:
            raise DamError("Elvis search returned invalid JSON") from e
        if "errorcode" in payload:
            raise DamError(f"Elvis search failed: {payload.get('message')}", status_code=payload.get("errorcode"))
        return list(payload.get("hits") or [])

    def _hit(self, asset_id: str, *, metadata: list[str]) -> dict[str, Any]:
        hits = self.search(f'id:"{asset_id}"', metadata=metadata)
        if not hits:
            raise DamError(f"Asset {asset_id} not found in Elvis.", status_code=404)
        return hits[0]

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self._ensure_login()
        for attempt in (0, 1):
            headers = {"X-CSRF-TOKEN": self._csrf} if self._csrf else {}
            try:
                resp = self._session.request(method, url, headers=headers, timeout=self._timeout_s, **kwargs)
            except requests.RequestException as e:
                raise DamError(f"Elvis {method} {url} failed: {e}") from e
            if resp.status_code == 401 and attempt == 0:
                log.info("Elvis session expired, logging in again")
                self.login()
                continue
            if resp.status_code >= 400:
                raise DamError(f"Elvis {method} {url} returned HTTP {resp.status_code}", status_code=resp.status_code)
            return resp
        raise DamError(f"Elvis {method} {url} unauthorized after re-login", status_code=401)

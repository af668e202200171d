# moveout/clients/base.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

import httpx

from ..config import settings
from ..domain.errors import RemoteError
from ..middleware.request_id import outbound_headers

log = logging.getLogger("moveout.clients")


def _upstream_message(r: httpx.Response) -> str:
    try:
        data = r.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for k in ("message", "detail", "error"):
            v = data.get(k)
            if isinstance(v, str) and v.strip():
                return v
    text = (r.text or "").strip()
    return text or f"HTTP {r.status_code}"


def is_not_found(e: RemoteError) -> bool:
    # Some endpoints answer 400 "... not found" instead of 404.
    if e.status_code == 404:
        return True
    if e.status_code == 400:
        msg = (e.message or "").lower()
        return "not found" in msg or "không tìm thấy" in msg
    return False


class BackendClient:
    """
    Thin JSON-over-HTTP wrapper for the property-management backend.

    Every failure is raised as RemoteError with the upstream message passed
    through. `transport` exists so tests can plug in httpx.MockTransport.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base = (base_url or settings.backend_base_url).rstrip("/")
        self.token = token if token is not None else settings.backend_api_token
        self.timeout = float(timeout if timeout is not None else settings.http_timeout_seconds)
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        h = {"Accept": "application/json"}
        if self.token:
            h["Authorization"] = f"Bearer {self.token}"
        h.update(outbound_headers())
        return h

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        content: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Any:
        url = f"{self.base}{path}"
        headers = self._headers()
        if content_type:
            headers["Content-Type"] = content_type

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                r = client.request(method, url, params=params, json=json, content=content, headers=headers)
                r.raise_for_status()
        except httpx.HTTPStatusError as e:
            msg = _upstream_message(e.response)
            log.warning("backend %s %s -> %s: %s", method, path, e.response.status_code, msg)
            raise RemoteError(msg, status_code=e.response.status_code, url=url) from e
        except httpx.HTTPError as e:
            log.warning("backend %s %s failed: %s", method, path, e)
            raise RemoteError(str(e) or e.__class__.__name__, url=url) from e

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError:
            return r.text

    def get(self, path: str, **kw: Any) -> Any:
        return self.request("GET", path, **kw)

    def post(self, path: str, **kw: Any) -> Any:
        return self.request("POST", path, **kw)

    def put(self, path: str, **kw: Any) -> Any:
        return self.request("PUT", path, **kw)

    def get_or_none(self, path: str, **kw: Any) -> Any:
        try:
            return self.get(path, **kw)
        except RemoteError as e:
            if is_not_found(e):
                return None
            raise


# -----------------------------------------------------------------------------
# Payload helpers
# -----------------------------------------------------------------------------


def as_list(data: Any) -> list[Any]:
    """Accept bare arrays and the paged shapes ({content|data|items: [...]})."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for k in ("content", "data", "items"):
            v = data.get(k)
            if isinstance(v, list):
                return v
    return []


def as_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return float(v)
    try:
        return float(str(v).strip())
    except ValueError:
        return None


def as_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def iso(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None

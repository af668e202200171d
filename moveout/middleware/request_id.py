# moveout/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Any, Callable, Optional, TypeVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# the id is forwarded to the backend, so only plain tokens are taken from callers
_ACCEPTED = re.compile(r"[A-Za-z0-9._:\-]{1,128}")

T = TypeVar("T")

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    return request_id_ctx.get()


def clean_request_id(value: Optional[str]) -> Optional[str]:
    v = (value or "").strip()
    return v if _ACCEPTED.fullmatch(v) else None


def outbound_headers() -> dict[str, str]:
    """Headers that tie a backend call to the request that caused it."""
    rid = request_id_ctx.get()
    return {REQUEST_ID_HEADER: rid} if rid else {}


def carry_request_id(fn: Callable[..., T]) -> Callable[..., T]:
    """
    Bind the current request id to `fn` for use on another thread.

    ThreadPoolExecutor workers do not inherit context variables, so the meter
    reading batch wraps its calls with this before submitting them.
    """
    rid = request_id_ctx.get()

    def _run(*args: Any, **kwargs: Any) -> T:
        token = request_id_ctx.set(rid)
        try:
            return fn(*args, **kwargs)
        finally:
            request_id_ctx.reset(token)

    return _run


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Per-request correlation id, echoed back and forwarded on backend calls.

    An incoming X-Request-ID (or X-Request-Id) is kept when it is a plain
    token of at most 128 characters; anything else is replaced by a UUID4.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = (
            clean_request_id(request.headers.get("X-Request-ID"))
            or clean_request_id(request.headers.get("X-Request-Id"))
            or str(uuid.uuid4())
        )

        request.state.request_id = rid
        token = request_id_ctx.set(rid)
        try:
            resp = await call_next(request)
            resp.headers[REQUEST_ID_HEADER] = rid
            return resp
        finally:
            request_id_ctx.reset(token)

from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Inbound ids end up verbatim in log lines and response headers.
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    return request_id_ctx.get()


def accept_request_id(raw: str | None) -> str:
    """The caller's id when it is short and plain, otherwise a fresh UUID4."""
    rid = (raw or "").strip()
    return rid if _SAFE_REQUEST_ID.match(rid) else str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Per-request correlation id.

    Set on the ContextVar for log records, on request.state for the access
    log line, and echoed back in the X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = accept_request_id(request.headers.get(REQUEST_ID_HEADER))

        request.state.request_id = rid
        token = request_id_ctx.set(rid)
        try:
            resp = await call_next(request)
            resp.headers[REQUEST_ID_HEADER] = rid
            return resp
        finally:
            request_id_ctx.reset(token)

from __future__ import annotations

import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from .domain.errors import InvalidInput, MarketError, Unavailable

log = logging.getLogger("propmarket.errors")


def _render(exc: MarketError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())


async def market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
    if exc.status_code >= 500:
        log.warning("request failed: %s", exc.message, extra={"path": request.url.path})
    return _render(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # body/query/path prefixes are transport detail; report the field names only
    fields: list[str] = []
    for err in exc.errors():
        loc = [str(p) for p in (err.get("loc") or ()) if p not in ("body", "query", "path", "header")]
        name = ".".join(loc) or "body"
        if name not in fields:
            fields.append(name)
    return _render(InvalidInput(fields))


async def store_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
    log.error("store unavailable", exc_info=exc)
    return _render(Unavailable("Store unavailable; retry"))


async def provider_unavailable_handler(request: Request, exc: httpx.HTTPError) -> JSONResponse:
    log.error("upstream provider unavailable", exc_info=exc)
    return _render(Unavailable("Upstream provider unavailable; retry"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketError, market_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(OperationalError, store_unavailable_handler)
    app.add_exception_handler(httpx.HTTPError, provider_unavailable_handler)

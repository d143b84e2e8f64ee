from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .db import init_db
from .exception_handlers import register_exception_handlers
from .logging_config import configure_logging
from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.admin import router as admin_router
from .routers.appointments import router as appointments_router
from .routers.auth import router as auth_router
from .routers.dashboard import router as dashboard_router
from .routers.health import router as health_router
from .routers.listings import router as listings_router
from .routers.me import router as me_router
from .routers.payments import router as payments_router

API_PREFIX = "/api"


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


@asynccontextmanager
async def _lifespan(app: FastAPI):
    init_db()
    yield


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="PropMarket", version="0.1.0", lifespan=_lifespan)

    # added last runs first: request id must be set before the logging middleware reads it
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    origins = _cors_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Core
    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(auth_router, prefix=API_PREFIX)

    # Listings: lifecycle, search, contact unlock, shortlist
    app.include_router(listings_router, prefix=API_PREFIX)
    app.include_router(me_router, prefix=API_PREFIX)

    # Moderation
    app.include_router(admin_router, prefix=API_PREFIX)

    # Paid unlock
    app.include_router(payments_router, prefix=API_PREFIX)

    # Visits and dashboards
    app.include_router(appointments_router, prefix=API_PREFIX)
    app.include_router(dashboard_router, prefix=API_PREFIX)

    return app


app = create_app()

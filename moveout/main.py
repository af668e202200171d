# moveout/main.py
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .logging_config import configure_logging

from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.contracts import router as contracts_router
from .routers.inspections import router as inspections_router
from .routers.pricing import router as pricing_router
from .routers.settlements import router as settlements_router

API_PREFIX = "/api"

configure_logging()


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


app = FastAPI(
    title="Move-Out Settlement Engine",
    version=settings.engine_version,
)

# added last runs first: request id must exist before the access log line
app.add_middleware(StructuredLoggingMiddleware)
app.add_middleware(RequestIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix=API_PREFIX)

# Contracts + pricing
app.include_router(contracts_router, prefix=API_PREFIX)
app.include_router(pricing_router, prefix=API_PREFIX)

# Move-out
app.include_router(inspections_router, prefix=API_PREFIX)
app.include_router(settlements_router, prefix=API_PREFIX)

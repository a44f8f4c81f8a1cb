# -*- coding: utf-8 -*-
"""
Symptom tracker API

Journal logging, trend analysis and food/trigger correlation analytics.
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .analytics.api import router as analytics_router
from .analytics.worker import scheduler, worker_pool
from .app_db import init_app_db, schema_version
from .config import settings
from .journal.api import router as journal_router
from .security import get_current_user_from_request

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Symptom Tracker",
    description="Journal logging, trend analysis and correlation analytics",
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup() -> None:
    init_app_db(settings.db_path)
    scheduler.initialize()


@app.on_event("shutdown")
def _shutdown() -> None:
    scheduler.shutdown()
    worker_pool.shutdown(wait=False)


# Ensure the DB exists even when lifespan events are not triggered (e.g. some test clients).
init_app_db(settings.db_path)


_IDENTITY_EXEMPT_PREFIXES = (
    "/api/docs",
    "/api/redoc",
    "/api/openapi.json",
)


@app.middleware("http")
async def _identity_gate(request: Request, call_next):
    path = request.url.path
    if path.startswith("/api") and path != "/api/health" and not any(path.startswith(p) for p in _IDENTITY_EXEMPT_PREFIXES):
        try:
            user = get_current_user_from_request(request)
            request.state.user = user
        except HTTPException as exc:
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
    return await call_next(request)


app.include_router(journal_router)
app.include_router(analytics_router)


@app.get("/api/health")
def health() -> dict:
    return {
        "status": "ok",
        "version": __version__,
        "schema_version": schema_version(settings.db_path),
    }


def run() -> None:
    """Console entry point (used by pyproject [project.scripts])."""
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = settings.host or os.environ.get("HOST") or "127.0.0.1"
    try:
        port = int(settings.port_raw)
    except ValueError:
        logger.warning("Invalid SYMTRACK_PORT %r, falling back to 8000", settings.port_raw)
        port = 8000

    uvicorn.run("symptom_tracker.api:app", host=host, port=port, reload=False)

"""PULSE — FastAPI Application Entry Point.

Sales call analytics: traffic source attribution, KPIs, funnels and trends
per workspace.
"""

import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from pulse.api.analytics_routes import router as analytics_router
from pulse.api.call_routes import router as call_router
from pulse.api.classification_routes import router as traffic_source_router
from pulse.config import settings
from pulse.core.logging import get_logger
from pulse.database import _mask_url, check_connection, db_url, init_db
from pulse.scheduler.jobs import start_scheduler, stop_scheduler

logger = get_logger("main")

VERSION = "1.0.0"

IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and start the snapshot scheduler."""
    logger.info(
        f"PULSE starting ({'serverless' if IS_SERVERLESS else 'local'}, "
        f"record store: {settings.record_store_backend})"
    )
    connected, error = check_connection()
    if connected:
        init_db()
    else:
        logger.error(f"Database unavailable, analytics endpoints will fail: {error}")
    # No long-lived event loop on serverless
    if not IS_SERVERLESS:
        start_scheduler()
    yield
    if not IS_SERVERLESS:
        stop_scheduler()
    logger.info("PULSE shut down")


app = FastAPI(
    title="PULSE",
    description="Sales call analytics — classify traffic sources and compute KPIs, funnels, breakdowns and trends per workspace.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        f"{request.method} {request.url.path}",
        extra={
            "endpoint": request.url.path,
            "workspace_id": request.query_params.get("workspace_id"),
            "status_code": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 1),
        },
    )
    return response


app.include_router(analytics_router)
app.include_router(traffic_source_router)
app.include_router(call_router)


@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "healthy", "service": "pulse", "version": VERSION}


@app.get("/debug/db", tags=["System"])
async def debug_db():
    """Database connectivity and which record store backs the analytics."""
    connected, error = check_connection()
    return {
        "connected": connected,
        "backend": "postgresql" if db_url.startswith("postgresql") else "sqlite",
        "url": _mask_url(db_url),
        "record_store": settings.record_store_backend,
        "environment": "serverless" if IS_SERVERLESS else "local",
        "error": error,
    }
